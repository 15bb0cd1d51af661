from __future__ import annotations

from datetime import timedelta

import pytest

from AccessWhitelist.service import format_time_remaining, parse_duration


@pytest.mark.parametrize(
    "value, expected",
    [
        ("60", timedelta(minutes=60)),
        ("5", timedelta(minutes=5)),
        ("0.5", timedelta(seconds=30)),
        (15, timedelta(minutes=15)),
        ("30s", timedelta(seconds=30)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("1.5h", timedelta(minutes=90)),
        ("250ms", timedelta(milliseconds=250)),
    ],
)
def test_parse_duration(value, expected) -> None:
    assert parse_duration(value) == expected


@pytest.mark.parametrize("value", [None, "", "   ", "soon", "10 minutes", "0", "-5", "0s", True, "1e400"])
def test_parse_duration_falls_back_to_an_hour(value) -> None:
    assert parse_duration(value) == timedelta(minutes=60)


@pytest.mark.parametrize(
    "remaining, text",
    [
        (timedelta(hours=2, minutes=15, seconds=9), "2 hours 15 minutes"),
        (timedelta(hours=1), "1 hour"),
        (timedelta(minutes=1, seconds=1), "1 minute 1 second"),
        (timedelta(seconds=45), "45 seconds"),
        (timedelta(milliseconds=400), "less than a second"),
        (timedelta(0), "expired"),
        (timedelta(seconds=-3), "expired"),
    ],
)
def test_format_time_remaining(remaining: timedelta, text: str) -> None:
    assert format_time_remaining(remaining) == text
