"""Ledger entry model and timestamp codecs."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone

_FRACTION = re.compile(r"\.(\d+)")


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """A locally admitted address and the instant its admission lapses."""

    address: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def remaining(self, now: datetime) -> float:
        return (self.expires_at - now).total_seconds()


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render an RFC3339 timestamp in UTC with a ``Z`` suffix."""

    return ensure_utc(value).isoformat().replace("+00:00", "Z")


def _microseconds(match: re.Match[str]) -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def parse_timestamp(raw: str) -> datetime:
    """Parse an RFC3339 timestamp.

    Fractions of any length are accepted: digits past microseconds (as
    written by nanosecond-precision clocks) are truncated, shorter ones are
    padded. A trailing ``Z`` and naive values are read as UTC.
    """

    text = raw.strip()
    if not text:
        raise ValueError("empty timestamp")
    text = _FRACTION.sub(_microseconds, text, count=1)
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


__all__ = ["LedgerEntry", "ensure_utc", "format_timestamp", "parse_timestamp"]
