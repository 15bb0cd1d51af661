"""Parsing requested whitelist durations and rendering time remaining."""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Optional, Union

DEFAULT_DURATION = timedelta(minutes=60)

_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_TERM = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_BARE_NUMBER = re.compile(r"(?:\d+(?:\.\d*)?|\.\d+)")


def _parse_unit_string(text: str) -> Optional[timedelta]:
    position = 0
    seconds = 0.0
    while position < len(text):
        match = _TERM.match(text, position)
        if match is None:
            return None
        seconds += float(match.group(1)) * _UNITS[match.group(2)]
        position = match.end()
    return timedelta(seconds=seconds)


def parse_duration(value: Union[str, int, float, None]) -> timedelta:
    """Interpret a requested whitelist duration.

    A bare number means minutes (``"60"``, ``"0.5"``); otherwise a sequence
    of ``<number><unit>`` terms such as ``"30s"`` or ``"1h30m"``. Anything
    unparsable, empty or not strictly positive falls back to 60 minutes.
    """

    if value is None or isinstance(value, bool):
        return DEFAULT_DURATION
    text = str(value).strip()
    if not text:
        return DEFAULT_DURATION
    try:
        if _BARE_NUMBER.fullmatch(text):
            duration: Optional[timedelta] = timedelta(minutes=float(text))
        else:
            duration = _parse_unit_string(text)
    except OverflowError:
        return DEFAULT_DURATION
    if duration is None or duration <= timedelta(0):
        return DEFAULT_DURATION
    return duration


def _plural(count: int, unit: str) -> str:
    return f"1 {unit}" if count == 1 else f"{count} {unit}s"


def format_time_remaining(remaining: timedelta) -> str:
    """Human rendering such as ``"2 hours 15 minutes"`` or ``"45 seconds"``.

    Seconds are only shown while less than an hour remains.
    """

    if remaining <= timedelta(0):
        return "expired"
    total = int(remaining.total_seconds())
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    parts = []
    if hours:
        parts.append(_plural(hours, "hour"))
    if minutes:
        parts.append(_plural(minutes, "minute"))
    if seconds and not hours:
        parts.append(_plural(seconds, "second"))
    if not parts:
        return "less than a second"
    return " ".join(parts)


__all__ = ["DEFAULT_DURATION", "format_time_remaining", "parse_duration"]
