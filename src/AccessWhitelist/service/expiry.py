"""Background sweep that revokes expired whitelist entries."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional

from AccessWhitelist.ledger import WhitelistLedger
from AccessWhitelist.policy import Deadline, RemotePolicyAdapter, RemotePolicyError

from .reconcile import Clock, utc_now

DEFAULT_SWEEP_INTERVAL = 10.0

logger = logging.getLogger("AccessWhitelist.service.expiry")


class ExpiryDaemon:
    """Periodically drop expired addresses from the policy and the ledger.

    With the default ``max_remote_attempts=1`` an expired address leaves the
    ledger after one removal attempt whether or not the remote call worked,
    so a failing remote cannot pin entries forever. Larger values keep the
    entry for that many sweeps while the remote removal keeps failing.
    """

    def __init__(
        self,
        ledger: WhitelistLedger,
        policy: RemotePolicyAdapter,
        *,
        interval: float = DEFAULT_SWEEP_INTERVAL,
        clock: Clock = utc_now,
        max_remote_attempts: int = 1,
        remote_timeout: Optional[float] = 30.0,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        if max_remote_attempts < 1:
            raise ValueError("max_remote_attempts must be at least 1")
        self._ledger = ledger
        self._policy = policy
        self._interval = interval
        self._clock = clock
        self._max_attempts = max_remote_attempts
        self._remote_timeout = remote_timeout
        self._failures: Dict[str, int] = {}
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="expiry-daemon", daemon=True)
        self._thread.start()
        logger.info("Expiry daemon started", extra={"interval_seconds": self._interval})

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        self._thread = None
        logger.info("Expiry daemon stopped")

    def sweep(self, now: Optional[datetime] = None) -> List[str]:
        """Run one pass; returns the addresses removed from the ledger."""

        now = now or self._clock()
        expired = self._ledger.expired(now)
        pending = set(expired)
        self._failures = {address: count for address, count in self._failures.items() if address in pending}
        removed: List[str] = []
        for address in expired:
            logger.info("Removing expired address", extra={"address": address})
            if not self._remove_remote(address):
                attempts = self._failures.get(address, 0) + 1
                if attempts < self._max_attempts:
                    self._failures[address] = attempts
                    continue
                if self._max_attempts > 1:
                    logger.warning(
                        "Giving up on remote removal; policy may still admit address",
                        extra={"address": address, "attempts": attempts},
                    )
            self._failures.pop(address, None)
            if self._ledger.remove_if_expired(address, now):
                removed.append(address)
            else:
                self._restore_remote(address)
        return removed

    def _restore_remote(self, address: str) -> None:
        if address not in self._ledger:
            return
        logger.info("Address renewed during sweep, restoring policy rule", extra={"address": address})
        deadline = Deadline.after(self._remote_timeout) if self._remote_timeout is not None else None
        try:
            self._policy.ensure_included(address, deadline=deadline)
        except RemotePolicyError as exc:
            logger.error(
                "Error restoring renewed address in policy",
                extra={"address": address, "stage": exc.stage, "error_type": type(exc).__name__, "error": str(exc)},
            )

    def _remove_remote(self, address: str) -> bool:
        deadline = Deadline.after(self._remote_timeout) if self._remote_timeout is not None else None
        try:
            self._policy.ensure_excluded(address, deadline=deadline)
        except RemotePolicyError as exc:
            logger.error(
                "Error removing expired address from policy",
                extra={"address": address, "stage": exc.stage, "error_type": type(exc).__name__, "error": str(exc)},
            )
            return False
        return True

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.sweep()
            except Exception:  # pragma: no cover - keep the daemon alive
                logger.exception("Expiry sweep failed")


__all__ = ["DEFAULT_SWEEP_INTERVAL", "ExpiryDaemon"]
