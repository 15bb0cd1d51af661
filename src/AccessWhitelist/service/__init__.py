"""Service layer package exports."""

from .app import create_app
from .durations import format_time_remaining, parse_duration
from .expiry import ExpiryDaemon
from .reconcile import AdmitResult, WhitelistService, WhitelistStatus
from .runtime import Runtime, build_runtime, log_settings
from .settings import Settings, load_settings, mask_secret

__all__ = [
    "create_app",
    "AdmitResult",
    "ExpiryDaemon",
    "Runtime",
    "Settings",
    "WhitelistService",
    "WhitelistStatus",
    "build_runtime",
    "format_time_remaining",
    "load_settings",
    "log_settings",
    "mask_secret",
    "parse_duration",
]
