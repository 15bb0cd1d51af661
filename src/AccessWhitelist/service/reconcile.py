"""Status, admit and revoke: composing the ledger with the remote policy."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

from AccessWhitelist.ledger import WhitelistLedger
from AccessWhitelist.policy import Deadline, RemotePolicyAdapter, RemotePolicyError
from AccessWhitelist.resolver import validate_address

from .durations import format_time_remaining, parse_duration

logger = logging.getLogger("AccessWhitelist.service.reconcile")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class WhitelistStatus:
    address: str
    whitelisted: bool
    expires_at: Optional[datetime] = None
    time_remaining: Optional[str] = None


@dataclass(frozen=True)
class AdmitResult:
    address: str
    expires_at: datetime
    duration: timedelta
    extended: bool


class WhitelistService:
    """Externally visible whitelist operations.

    Admitting a new address mutates the remote policy first and records it
    locally only once that succeeded. Re-admitting a known address only
    moves its expiry to ``now + duration``. Revoking always tries the
    remote side and keeps the local entry if that fails.
    """

    def __init__(
        self,
        ledger: WhitelistLedger,
        policy: RemotePolicyAdapter,
        *,
        remote_timeout: Optional[float] = 30.0,
        clock: Clock = utc_now,
    ) -> None:
        self.ledger = ledger
        self.policy = policy
        self._remote_timeout = remote_timeout
        self._clock = clock

    @property
    def remote_configured(self) -> bool:
        return self.policy.configured

    def _deadline(self) -> Optional[Deadline]:
        if self._remote_timeout is None:
            return None
        return Deadline.after(self._remote_timeout)

    def status(self, address: str) -> WhitelistStatus:
        address = validate_address(address)
        expires_at = self.ledger.get(address)
        now = self._clock()
        in_ledger = expires_at is not None and now < expires_at
        whitelisted = in_ledger
        if self.policy.configured:
            try:
                in_policy = self.policy.contains(address, deadline=self._deadline())
            except RemotePolicyError as exc:
                logger.warning(
                    "Policy lookup failed; reporting address as not whitelisted",
                    extra={"address": address, "stage": exc.stage, "error": str(exc)},
                )
                in_policy = False
            whitelisted = in_ledger and in_policy
        if expires_at is None:
            return WhitelistStatus(address=address, whitelisted=whitelisted)
        return WhitelistStatus(
            address=address,
            whitelisted=whitelisted,
            expires_at=expires_at,
            time_remaining=format_time_remaining(expires_at - now),
        )

    def admit(self, address: str, requested: Union[str, int, float, None] = None) -> AdmitResult:
        address = validate_address(address)
        duration = parse_duration(requested)
        existing = self.ledger.get(address)
        if existing is not None:
            expires_at = self._clock() + duration
            self.ledger.add(address, expires_at)
            logger.info(
                "Extended whitelist entry",
                extra={
                    "address": address,
                    "previous_expiry": existing.isoformat(),
                    "expires_at": expires_at.isoformat(),
                },
            )
            return AdmitResult(address=address, expires_at=expires_at, duration=duration, extended=True)

        logger.info(
            "Whitelisting address",
            extra={"address": address, "duration_seconds": duration.total_seconds()},
        )
        try:
            self.policy.ensure_included(address, deadline=self._deadline())
        except RemotePolicyError as exc:
            logger.error(
                "Policy update failed; address not whitelisted",
                extra={"address": address, "stage": exc.stage, "error_type": type(exc).__name__, "error": str(exc)},
            )
            raise
        expires_at = self._clock() + duration
        self.ledger.add(address, expires_at)
        logger.info("Address whitelisted", extra={"address": address, "expires_at": expires_at.isoformat()})
        return AdmitResult(address=address, expires_at=expires_at, duration=duration, extended=False)

    def revoke(self, address: str) -> bool:
        """Remove ``address`` remotely and locally; returns whether a ledger entry existed."""

        address = validate_address(address)
        logger.info("Revoking address", extra={"address": address})
        try:
            self.policy.ensure_excluded(address, deadline=self._deadline())
        except RemotePolicyError as exc:
            logger.error(
                "Policy removal failed; ledger entry kept",
                extra={"address": address, "stage": exc.stage, "error_type": type(exc).__name__, "error": str(exc)},
            )
            raise
        removed = self.ledger.remove(address)
        logger.info("Address revoked", extra={"address": address, "ledger_entry_removed": removed})
        return removed


__all__ = ["AdmitResult", "WhitelistService", "WhitelistStatus", "utc_now"]
