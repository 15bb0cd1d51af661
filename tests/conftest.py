from __future__ import annotations

import copy
import json
import logging
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Disable OTEL export during tests to avoid noisy connection errors when a collector
# is not running. Individual tests can override as needed.
os.environ.setdefault("OTEL_METRICS_EXPORTER", "none")
os.environ.setdefault("OTEL_TRACES_EXPORTER", "none")
os.environ.setdefault("OTEL_SDK_DISABLED", "true")

import httpx  # noqa: E402
import pytest  # noqa: E402

from AccessWhitelist.ledger import WhitelistLedger  # noqa: E402
from AccessWhitelist.policy import (  # noqa: E402
    AccessCredentials,
    AccessPolicyClient,
    RemotePolicyAdapter,
)

API_BASE = "https://api.test/client/v4"
POLICY_URL = f"{API_BASE}/accounts/acct-123/access/policies/pol-456"


class FakeAccessApi:
    """In-memory stand-in for the Cloudflare Access policy endpoint."""

    def __init__(self, include: Optional[List[Any]] = None) -> None:
        self.policy: Dict[str, Any] = {
            "id": "pol-456",
            "name": "Office access",
            "decision": "allow",
            "include": include if include is not None else [{"email_domain": {"domain": "example.com"}}],
            "exclude": [{"geo": {"country_code": "XX"}}],
            "require": [{"login_method": {"id": "otp-1"}}],
        }
        self.requests: List[httpx.Request] = []
        self.fail_methods: Set[str] = set()
        self.transport_failures: Set[str] = set()
        self.drop_writes = False

    @property
    def writes(self) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.method == "PUT"]

    def count(self, method: str) -> int:
        return sum(1 for r in self.requests if r.method == method)

    def ip_rules(self) -> List[str]:
        return [rule["ip"]["ip"] for rule in self.policy["include"] if isinstance(rule, dict) and "ip" in rule]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method in self.transport_failures:
            raise httpx.ConnectError("connection refused", request=request)
        if str(request.url) != POLICY_URL:
            return httpx.Response(404, json={"success": False, "errors": [{"code": 7003, "message": "not found"}]})
        if request.headers.get("Authorization") != "Bearer token-abcdefgh":
            return httpx.Response(403, json={"success": False, "errors": [{"code": 10000, "message": "auth"}]})
        if request.method in self.fail_methods:
            return httpx.Response(
                400,
                json={"success": False, "errors": [{"code": 12130, "message": "rejected"}], "result": None},
            )
        if request.method == "PUT":
            body = json.loads(request.content)
            if not self.drop_writes:
                self.policy.update(copy.deepcopy(body))
        return httpx.Response(200, json={"success": True, "errors": [], "result": copy.deepcopy(self.policy)})

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture(autouse=True)
def reset_package_logging():
    yield
    logger = logging.getLogger("AccessWhitelist")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture()
def fake_api() -> FakeAccessApi:
    return FakeAccessApi()


@pytest.fixture()
def credentials() -> AccessCredentials:
    return AccessCredentials(api_token="token-abcdefgh", account_id="acct-123", policy_id="pol-456")


@pytest.fixture()
def policy_client(fake_api: FakeAccessApi, credentials: AccessCredentials) -> AccessPolicyClient:
    return AccessPolicyClient(credentials, api_base=API_BASE, client=fake_api.client())


@pytest.fixture()
def adapter(policy_client: AccessPolicyClient) -> RemotePolicyAdapter:
    return RemotePolicyAdapter(policy_client)


@pytest.fixture()
def ledger(tmp_path: Path) -> WhitelistLedger:
    store = WhitelistLedger(tmp_path / "whitelist_store.json")
    store.load()
    return store


class FrozenClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()
