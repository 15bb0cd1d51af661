from __future__ import annotations

import httpx
import pytest

from AccessWhitelist.resolver import (
    AddressResolver,
    InvalidAddressError,
    PublicAddressLookup,
    is_private_address,
    strip_port,
    validate_address,
)


def _lookup(body: str = "203.0.113.50", status_code: int = 200, calls: list | None = None) -> PublicAddressLookup:
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(str(request.url))
        return httpx.Response(status_code, text=body)

    return PublicAddressLookup("https://lookup.test/?format=text", client=httpx.Client(transport=httpx.MockTransport(handler)))


@pytest.mark.parametrize(
    "headers, peer, expected",
    [
        ({"CF-Connecting-IP": "1.2.3.4"}, "10.0.0.1:1234", "1.2.3.4"),
        ({"X-Forwarded-For": "5.6.7.8, 1.2.3.4"}, "10.0.0.1:1234", "5.6.7.8"),
        ({}, "9.9.9.9:1234", "9.9.9.9"),
        ({"CF-Connecting-IP": "1.2.3.4", "X-Forwarded-For": "5.6.7.8"}, "9.9.9.9:1", "1.2.3.4"),
        ({"x-forwarded-for": " 8.8.4.4 "}, None, "8.8.4.4"),
        ({}, "[2001:db8::5]:443", "2001:db8::5"),
    ],
)
def test_resolution_precedence(headers, peer, expected) -> None:
    assert AddressResolver().resolve(headers, peer) == expected


def test_private_peer_is_replaced_by_public_lookup() -> None:
    calls: list = []
    resolver = AddressResolver(_lookup(calls=calls))
    assert resolver.resolve({}, "127.0.0.1:50000") == "203.0.113.50"
    assert calls == ["https://lookup.test/?format=text"]


def test_public_peer_skips_lookup() -> None:
    calls: list = []
    resolver = AddressResolver(_lookup(calls=calls))
    assert resolver.resolve({}, "198.51.100.7:80") == "198.51.100.7"
    assert calls == []


def test_lookup_failure_keeps_private_address() -> None:
    resolver = AddressResolver(_lookup(status_code=503))
    assert resolver.resolve({}, "192.168.1.20:1234") == "192.168.1.20"


def test_lookup_garbage_is_ignored() -> None:
    resolver = AddressResolver(_lookup(body="<html>rate limited</html>"))
    assert resolver.resolve({"X-Forwarded-For": "10.1.2.3"}, None) == "10.1.2.3"


def test_lookup_transport_error_returns_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    lookup = PublicAddressLookup(client=httpx.Client(transport=httpx.MockTransport(handler)))
    assert lookup.fetch() is None


@pytest.mark.parametrize(
    "address, private",
    [
        ("127.0.0.1", True),
        ("::1", True),
        ("10.20.30.40", True),
        ("172.16.0.1", True),
        ("172.31.255.255", True),
        ("172.32.0.1", False),
        ("192.168.0.10", True),
        ("::ffff:192.168.0.10", True),
        ("8.8.8.8", False),
        ("not-an-ip", False),
    ],
)
def test_is_private_address(address: str, private: bool) -> None:
    assert is_private_address(address) is private


@pytest.mark.parametrize(
    "peer, host",
    [
        ("1.2.3.4:5678", "1.2.3.4"),
        ("1.2.3.4", "1.2.3.4"),
        ("[::1]:8080", "::1"),
        ("2001:db8::1", "2001:db8::1"),
    ],
)
def test_strip_port(peer: str, host: str) -> None:
    assert strip_port(peer) == host


@pytest.mark.parametrize("value", ["999.999.999.999", "not-an-ip", "fe80::1%eth0", " 1.2.3.4"])
def test_validate_rejects_non_literals(value: str) -> None:
    with pytest.raises(InvalidAddressError, match="Invalid IP address"):
        validate_address(value)


def test_validate_rejects_empty() -> None:
    with pytest.raises(InvalidAddressError, match="Could not determine client IP"):
        validate_address("")


def test_validate_accepts_both_families() -> None:
    assert validate_address("203.0.113.9") == "203.0.113.9"
    assert validate_address("2001:db8::1") == "2001:db8::1"
