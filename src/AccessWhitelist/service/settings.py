"""Environment-driven configuration for the whitelist service."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from AccessWhitelist.policy.client import DEFAULT_API_BASE
from AccessWhitelist.resolver.lookup import DEFAULT_LOOKUP_URL

DEFAULT_PORT = 8080
DEFAULT_STORE_PATH = Path("whitelist_store.json")
DEFAULT_STATIC_DIR = Path("dist")


def mask_secret(value: Optional[str]) -> str:
    """Mask a credential for logging: first and last four characters only."""

    if not value:
        return "(not set)"
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}****{value[-4:]}"


def _number(env: Mapping[str, str], key: str, default: float, *, minimum: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be a number, got {raw!r}") from exc
    if value < minimum:
        raise ValueError(f"{key} must be at least {minimum}")
    return value


def _integer(env: Mapping[str, str], key: str, default: int, *, minimum: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ValueError(f"{key} must be at least {minimum}")
    return value


@dataclass(frozen=True)
class Settings:
    """Resolved runtime configuration."""

    api_token: Optional[str] = None
    account_id: Optional[str] = None
    policy_id: Optional[str] = None
    api_base: str = DEFAULT_API_BASE
    port: int = DEFAULT_PORT
    store_path: Path = DEFAULT_STORE_PATH
    static_dir: Path = DEFAULT_STATIC_DIR
    sweep_interval_seconds: float = 10.0
    remote_timeout_seconds: float = 30.0
    max_remote_attempts: int = 1
    public_ip_url: str = DEFAULT_LOOKUP_URL
    allowed_origins: Tuple[str, ...] = ("*",)
    log_format: str = "text"

    @property
    def remote_configured(self) -> bool:
        return bool(self.api_token and self.account_id and self.policy_id)

    def describe(self) -> Dict[str, str]:
        return {
            "port": str(self.port),
            "store_path": str(self.store_path),
            "static_dir": str(self.static_dir),
            "api_token": mask_secret(self.api_token),
            "account_id": mask_secret(self.account_id),
            "policy_id": mask_secret(self.policy_id),
            "remote": "enabled" if self.remote_configured else "local-only",
            "sweep_interval_seconds": f"{self.sweep_interval_seconds:g}",
        }


def load_settings(env: Optional[Mapping[str, str]] = None, **overrides: object) -> Settings:
    env = os.environ if env is None else env

    log_format = (env.get("WHITELIST_LOG_FORMAT") or "text").lower()
    if log_format not in {"text", "json"}:
        raise ValueError("WHITELIST_LOG_FORMAT must be 'text' or 'json'")
    origins = tuple(
        origin.strip()
        for origin in (env.get("WHITELIST_ALLOWED_ORIGINS") or "*").split(",")
        if origin.strip()
    )
    settings = Settings(
        api_token=env.get("CLOUDFLARE_API_TOKEN") or None,
        account_id=env.get("CLOUDFLARE_ACCOUNT_ID") or None,
        policy_id=env.get("CLOUDFLARE_POLICY_ID") or None,
        api_base=env.get("CLOUDFLARE_API_BASE") or DEFAULT_API_BASE,
        port=_integer(env, "PORT", DEFAULT_PORT, minimum=1),
        store_path=Path(env.get("WHITELIST_STORE_PATH") or DEFAULT_STORE_PATH).expanduser(),
        static_dir=Path(env.get("WHITELIST_STATIC_DIR") or DEFAULT_STATIC_DIR).expanduser(),
        sweep_interval_seconds=_number(env, "WHITELIST_SWEEP_INTERVAL", 10.0, minimum=0.1),
        remote_timeout_seconds=_number(env, "WHITELIST_REMOTE_TIMEOUT", 30.0, minimum=0.1),
        max_remote_attempts=_integer(env, "WHITELIST_DAEMON_MAX_ATTEMPTS", 1, minimum=1),
        public_ip_url=env.get("PUBLIC_IP_LOOKUP_URL") or DEFAULT_LOOKUP_URL,
        allowed_origins=origins or ("*",),
        log_format=log_format,
    )
    applied = {key: value for key, value in overrides.items() if value is not None}
    if applied:
        settings = replace(settings, **applied)
    return settings


__all__ = ["Settings", "load_settings", "mask_secret"]
