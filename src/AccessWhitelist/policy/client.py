"""HTTP client for the Cloudflare Access policy API."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional

import httpx

from .models import PolicyDocument

DEFAULT_API_BASE = "https://api.cloudflare.com/client/v4"
DEFAULT_TIMEOUT = 30.0

logger = logging.getLogger("AccessWhitelist.policy.client")


class AccessApiError(RuntimeError):
    """Raised when a call to the Access API fails or reports failure."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        errors: Optional[List[Any]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.errors = list(errors or [])


class DeadlineExceeded(AccessApiError):
    """Raised when the caller's time budget ran out before or during a call."""


@dataclass(frozen=True)
class Deadline:
    """Absolute point on the monotonic clock by which a call chain must finish."""

    expires_at: float
    clock: Callable[[], float] = field(default=time.monotonic, compare=False, repr=False)

    @classmethod
    def after(cls, seconds: float, *, clock: Callable[[], float] = time.monotonic) -> "Deadline":
        return cls(expires_at=clock() + seconds, clock=clock)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self.clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0


@dataclass(frozen=True)
class AccessCredentials:
    api_token: str
    account_id: str
    policy_id: str


class AccessPolicyClient:
    """Fetches and replaces one account-level Access policy."""

    def __init__(
        self,
        credentials: AccessCredentials,
        *,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._credentials = credentials
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def policy_id(self) -> str:
        return self._credentials.policy_id

    @property
    def policy_url(self) -> str:
        return (
            f"{self._api_base}/accounts/{self._credentials.account_id}"
            f"/access/policies/{self._credentials.policy_id}"
        )

    def fetch_policy(self, *, deadline: Optional[Deadline] = None) -> PolicyDocument:
        result = self._request("GET", deadline=deadline)
        return PolicyDocument.from_result(result)

    def replace_policy(
        self,
        document: PolicyDocument,
        *,
        deadline: Optional[Deadline] = None,
    ) -> PolicyDocument:
        result = self._request("PUT", body=document.to_update_payload(), deadline=deadline)
        return PolicyDocument.from_result(result)

    def close(self) -> None:
        self._client.close()

    def _request(
        self,
        method: str,
        *,
        body: Optional[Mapping[str, Any]] = None,
        deadline: Optional[Deadline] = None,
    ) -> Mapping[str, Any]:
        timeout = self._timeout
        if deadline is not None:
            if deadline.expired:
                raise DeadlineExceeded(f"Deadline exceeded before {method} {self.policy_url}")
            timeout = min(timeout, deadline.remaining())
        headers = {
            "Authorization": f"Bearer {self._credentials.api_token}",
            "Content-Type": "application/json",
        }
        start = time.perf_counter()
        try:
            response = self._client.request(
                method,
                self.policy_url,
                json=body,
                headers=headers,
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            if deadline is not None and deadline.expired:
                raise DeadlineExceeded(f"Deadline exceeded during {method}: {exc}") from exc
            raise AccessApiError(f"{method} timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise AccessApiError(f"{method} failed: {exc}") from exc
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.debug(
            "Access API call",
            extra={"method": method, "status_code": response.status_code, "elapsed_ms": round(elapsed_ms, 1)},
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise AccessApiError(
                f"{method} returned an undecodable body (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from exc
        if not isinstance(payload, Mapping) or not payload.get("success"):
            errors = payload.get("errors") if isinstance(payload, Mapping) else None
            raise AccessApiError(
                f"Access API error (HTTP {response.status_code}): {errors or []}",
                status_code=response.status_code,
                errors=errors,
            )
        result = payload.get("result")
        if not isinstance(result, Mapping):
            raise AccessApiError(
                f"{method} {self.policy_url} returned no policy result (HTTP {response.status_code})",
                status_code=response.status_code,
            )
        return result


__all__ = [
    "AccessApiError",
    "AccessCredentials",
    "AccessPolicyClient",
    "DEFAULT_API_BASE",
    "Deadline",
    "DeadlineExceeded",
]
