"""Whitelist ledger package exports."""

from .locks import ReadWriteLock
from .models import LedgerEntry, format_timestamp, parse_timestamp
from .store import LedgerLoadError, LedgerSaveError, WhitelistLedger

__all__ = [
    "LedgerEntry",
    "LedgerLoadError",
    "LedgerSaveError",
    "ReadWriteLock",
    "WhitelistLedger",
    "format_timestamp",
    "parse_timestamp",
]
