"""JSON-backed ledger of whitelisted addresses and their expiry instants."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from .locks import ReadWriteLock
from .models import LedgerEntry, ensure_utc, format_timestamp, parse_timestamp

logger = logging.getLogger("AccessWhitelist.ledger")


class LedgerLoadError(RuntimeError):
    """Raised when the persisted ledger exists but cannot be decoded."""


class LedgerSaveError(RuntimeError):
    """Raised when the ledger cannot be written to disk."""


class WhitelistLedger:
    """Durable mapping of address to expiry.

    The in-memory mapping is authoritative for the running process. Every
    mutation is persisted synchronously by rewriting the whole file; a
    failed write is logged and leaves the in-memory change in place.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._entries: Dict[str, datetime] = {}
        self._lock = ReadWriteLock()
        self._save_lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> int:
        """Replace the in-memory mapping with the persisted one.

        A missing file yields an empty ledger. Returns the number of entries
        loaded.
        """

        with self._lock.write():
            try:
                content = self._path.read_text(encoding="utf-8")
            except FileNotFoundError:
                self._entries = {}
                return 0
            except OSError as exc:
                raise LedgerLoadError(f"Cannot read ledger {self._path}: {exc}") from exc
            self._entries = _decode(content, self._path)
            return len(self._entries)

    def save(self) -> None:
        with self._lock.read(), self._save_lock:
            payload = {
                address: format_timestamp(expires_at)
                for address, expires_at in sorted(self._entries.items())
            }
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            except OSError as exc:
                raise LedgerSaveError(f"Cannot write ledger {self._path}: {exc}") from exc

    def add(self, address: str, expires_at: datetime) -> None:
        with self._lock.write():
            self._entries[address] = ensure_utc(expires_at)
        self._persist("add", address)

    def remove(self, address: str) -> bool:
        with self._lock.write():
            removed = self._entries.pop(address, None) is not None
        self._persist("remove", address)
        return removed

    def remove_if_expired(self, address: str, now: datetime) -> bool:
        """Remove ``address`` only while its recorded expiry is at or before ``now``.

        Returns ``False`` when the entry is gone or has been renewed since
        it was seen as expired.
        """

        now = ensure_utc(now)
        with self._lock.write():
            expires_at = self._entries.get(address)
            if expires_at is None or now < expires_at:
                return False
            del self._entries[address]
        self._persist("expire", address)
        return True

    def get(self, address: str) -> Optional[datetime]:
        with self._lock.read():
            return self._entries.get(address)

    def snapshot(self) -> Dict[str, datetime]:
        with self._lock.read():
            return dict(self._entries)

    def entries(self) -> List[LedgerEntry]:
        return [
            LedgerEntry(address=address, expires_at=expires_at)
            for address, expires_at in sorted(self.snapshot().items())
        ]

    def expired(self, now: datetime) -> List[str]:
        """Addresses whose expiry is at or before ``now``."""

        now = ensure_utc(now)
        with self._lock.read():
            return sorted(address for address, expires_at in self._entries.items() if now >= expires_at)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def __contains__(self, address: object) -> bool:
        with self._lock.read():
            return address in self._entries

    def _persist(self, operation: str, address: str) -> None:
        try:
            self.save()
        except LedgerSaveError as exc:
            logger.error(
                "Ledger persistence failed; in-memory state kept",
                extra={"operation": operation, "address": address, "error": str(exc)},
            )


def _decode(content: str, path: Path) -> Dict[str, datetime]:
    if not content.strip():
        return {}
    try:
        raw = json.loads(content)
    except json.JSONDecodeError as exc:
        raise LedgerLoadError(f"Ledger {path} is not valid JSON: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise LedgerLoadError(f"Ledger {path} must contain a JSON object")
    entries: Dict[str, datetime] = {}
    for address, value in raw.items():
        if not isinstance(value, str):
            raise LedgerLoadError(f"Ledger entry for {address!r} has a non-string expiry")
        try:
            entries[address] = parse_timestamp(value)
        except ValueError as exc:
            raise LedgerLoadError(f"Ledger entry for {address!r} has an invalid expiry: {exc}") from exc
    return entries


__all__ = ["LedgerLoadError", "LedgerSaveError", "WhitelistLedger"]
