"""Keep the remote Access policy's include list in step with the ledger."""

from __future__ import annotations

import logging
from typing import Optional

from .client import AccessApiError, AccessPolicyClient, Deadline, DeadlineExceeded
from .models import PolicyDocument
from .telemetry import policy_span, record_policy_outcome

logger = logging.getLogger("AccessWhitelist.policy")

STAGE_FETCH = "fetch"
STAGE_WRITE = "write"
STAGE_VERIFY = "verify"


class RemotePolicyError(RuntimeError):
    """Base class for failures talking to the remote policy."""

    def __init__(self, message: str, *, address: str, stage: str) -> None:
        super().__init__(message)
        self.address = address
        self.stage = stage


class PolicyReadError(RemotePolicyError):
    """The policy could not be fetched (initially or while verifying)."""


class PolicyWriteError(RemotePolicyError):
    """The replace call was rejected or never reached the remote store."""


class PolicyVerificationError(RemotePolicyError):
    """The replace was accepted but a re-fetch shows it did not take effect."""


class PolicyTimeoutError(RemotePolicyError):
    """The caller's deadline ran out during the read-modify-write cycle."""


class RemotePolicyAdapter:
    """Read-modify-write-verify operations over a single policy document.

    Without a client every operation is a successful no-op so the service
    degrades to local-only tracking. Concurrent writers are not guarded
    against: one service instance is expected to own the policy.
    """

    def __init__(self, client: Optional[AccessPolicyClient] = None) -> None:
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None

    def contains(self, address: str, *, deadline: Optional[Deadline] = None) -> bool:
        client = self._client
        if client is None:
            return False
        with policy_span("policy.contains", attributes={"policy.address": address}):
            document = self._fetch(client, address, STAGE_FETCH, deadline)
        return document.contains(address)

    def ensure_included(self, address: str, *, deadline: Optional[Deadline] = None) -> None:
        client = self._client
        if client is None:
            logger.info("Skipping policy update: remote policy not configured", extra={"address": address})
            return
        with policy_span("policy.ensure_included", attributes={"policy.address": address}):
            logger.info(
                "Adding address to policy",
                extra={"address": address, "policy_id": client.policy_id},
            )
            document = self._fetch(client, address, STAGE_FETCH, deadline)
            if document.contains(address):
                logger.info("Address already present in policy, skipping add", extra={"address": address})
                record_policy_outcome("include", "noop")
                return
            self._replace(client, address, document.with_address(address), deadline)
            verified = self._fetch(client, address, STAGE_VERIFY, deadline)
            if not verified.contains(address):
                record_policy_outcome("include", "unverified")
                raise PolicyVerificationError(
                    f"verification failed: {address} not found in policy after update",
                    address=address,
                    stage=STAGE_VERIFY,
                )
            record_policy_outcome("include", "applied")
            logger.info("Added and verified address in policy", extra={"address": address})

    def ensure_excluded(self, address: str, *, deadline: Optional[Deadline] = None) -> None:
        client = self._client
        if client is None:
            logger.info("Skipping policy removal: remote policy not configured", extra={"address": address})
            return
        with policy_span("policy.ensure_excluded", attributes={"policy.address": address}):
            logger.info(
                "Removing address from policy",
                extra={"address": address, "policy_id": client.policy_id},
            )
            document = self._fetch(client, address, STAGE_FETCH, deadline)
            if not document.contains(address):
                logger.info("Address not found in policy, nothing to remove", extra={"address": address})
                record_policy_outcome("exclude", "noop")
                return
            self._replace(client, address, document.without_address(address), deadline)
            verified = self._fetch(client, address, STAGE_VERIFY, deadline)
            if verified.contains(address):
                record_policy_outcome("exclude", "unverified")
                raise PolicyVerificationError(
                    f"verification failed: {address} still found in policy after removal",
                    address=address,
                    stage=STAGE_VERIFY,
                )
            record_policy_outcome("exclude", "applied")
            logger.info("Removed and verified address from policy", extra={"address": address})

    @staticmethod
    def _fetch(
        client: AccessPolicyClient,
        address: str,
        stage: str,
        deadline: Optional[Deadline],
    ) -> PolicyDocument:
        try:
            return client.fetch_policy(deadline=deadline)
        except DeadlineExceeded as exc:
            raise PolicyTimeoutError(str(exc), address=address, stage=stage) from exc
        except AccessApiError as exc:
            action = "get policy" if stage == STAGE_FETCH else "verify policy update"
            raise PolicyReadError(f"failed to {action}: {exc}", address=address, stage=stage) from exc

    @staticmethod
    def _replace(
        client: AccessPolicyClient,
        address: str,
        document: PolicyDocument,
        deadline: Optional[Deadline],
    ) -> None:
        try:
            client.replace_policy(document, deadline=deadline)
        except DeadlineExceeded as exc:
            raise PolicyTimeoutError(str(exc), address=address, stage=STAGE_WRITE) from exc
        except AccessApiError as exc:
            raise PolicyWriteError(
                f"failed to update policy: {exc}",
                address=address,
                stage=STAGE_WRITE,
            ) from exc


__all__ = [
    "PolicyReadError",
    "PolicyTimeoutError",
    "PolicyVerificationError",
    "PolicyWriteError",
    "RemotePolicyAdapter",
    "RemotePolicyError",
]
