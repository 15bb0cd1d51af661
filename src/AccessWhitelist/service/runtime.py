"""Construct the ledger, policy adapter, service and daemon from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from AccessWhitelist.ledger import WhitelistLedger
from AccessWhitelist.policy import AccessCredentials, AccessPolicyClient, RemotePolicyAdapter
from AccessWhitelist.resolver import AddressResolver, PublicAddressLookup

from .expiry import ExpiryDaemon
from .reconcile import WhitelistService
from .settings import Settings

logger = logging.getLogger("AccessWhitelist.service.runtime")


@dataclass
class Runtime:
    settings: Settings
    ledger: WhitelistLedger
    policy: RemotePolicyAdapter
    resolver: AddressResolver
    service: WhitelistService
    daemon: ExpiryDaemon
    _closeables: List[object] = field(default_factory=list, repr=False)

    def close(self) -> None:
        self.daemon.stop()
        for closeable in self._closeables:
            closeable.close()  # type: ignore[attr-defined]
        self._closeables.clear()


def log_settings(settings: Settings) -> None:
    logger.info("=== Access whitelist service ===")
    for key, value in settings.describe().items():
        logger.info("%s: %s", key, value)
    if not settings.remote_configured:
        logger.warning("Cloudflare credentials not fully configured")
        logger.warning("Addresses will only be tracked locally, not added to the Access policy")


def build_runtime(
    settings: Settings,
    *,
    http_client: Optional[httpx.Client] = None,
    lookup_client: Optional[httpx.Client] = None,
) -> Runtime:
    """Wire every component; raises ``LedgerLoadError`` on a corrupt ledger file."""

    ledger = WhitelistLedger(settings.store_path)
    loaded = ledger.load()
    logger.info("Loaded whitelisted addresses from store", extra={"count": loaded, "path": str(settings.store_path)})

    closeables: List[object] = []
    client: Optional[AccessPolicyClient] = None
    if settings.remote_configured:
        client = AccessPolicyClient(
            AccessCredentials(
                api_token=settings.api_token or "",
                account_id=settings.account_id or "",
                policy_id=settings.policy_id or "",
            ),
            api_base=settings.api_base,
            timeout=settings.remote_timeout_seconds,
            client=http_client,
        )
        closeables.append(client)
    policy = RemotePolicyAdapter(client)

    lookup = PublicAddressLookup(settings.public_ip_url, client=lookup_client)
    closeables.append(lookup)
    resolver = AddressResolver(lookup)

    service = WhitelistService(ledger, policy, remote_timeout=settings.remote_timeout_seconds)
    daemon = ExpiryDaemon(
        ledger,
        policy,
        interval=settings.sweep_interval_seconds,
        max_remote_attempts=settings.max_remote_attempts,
        remote_timeout=settings.remote_timeout_seconds,
    )
    return Runtime(
        settings=settings,
        ledger=ledger,
        policy=policy,
        resolver=resolver,
        service=service,
        daemon=daemon,
        _closeables=closeables,
    )


__all__ = ["Runtime", "build_runtime", "log_settings"]
