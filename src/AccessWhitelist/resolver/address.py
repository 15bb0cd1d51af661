"""Determine and validate the caller's network address."""

from __future__ import annotations

import ipaddress
import logging
from typing import TYPE_CHECKING, Mapping, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .lookup import PublicAddressLookup

TRUSTED_HEADER = "cf-connecting-ip"
FORWARDED_HEADER = "x-forwarded-for"

PRIVATE_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)

logger = logging.getLogger("AccessWhitelist.resolver")


class InvalidAddressError(ValueError):
    """Raised when a resolved address is empty or not an IP literal."""


def validate_address(value: Optional[str]) -> str:
    """Return ``value`` if it is a plain IPv4 or IPv6 literal."""

    if not value:
        raise InvalidAddressError("Could not determine client IP")
    if not is_valid_address(value):
        raise InvalidAddressError(f"Invalid IP address detected: {value!r}")
    return value


def is_valid_address(value: str) -> bool:
    if not value or "%" in value or value != value.strip():
        return False
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def is_private_address(value: str) -> bool:
    """Loopback or RFC 1918 space; anything unparsable is not private."""

    try:
        address = ipaddress.ip_address(value)
    except ValueError:
        return False
    if address.is_loopback:
        return True
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
        if address.is_loopback:
            return True
    return any(address in network for network in PRIVATE_NETWORKS)


def strip_port(peer: str) -> str:
    """Remove a ``:port`` suffix from ``host:port`` or ``[v6]:port``."""

    peer = peer.strip()
    if peer.startswith("["):
        closing = peer.find("]")
        if closing != -1:
            return peer[1:closing]
        return peer
    if peer.count(":") == 1:
        host, _, _ = peer.partition(":")
        return host
    return peer


def _header(headers: Mapping[str, str], name: str) -> str:
    value = headers.get(name)
    if value is None:
        for key, candidate in headers.items():
            if key.lower() == name:
                value = candidate
                break
    return (value or "").strip()


class AddressResolver:
    """Resolve the caller's address from proxy headers and the socket peer.

    Precedence is the trusted ``CF-Connecting-IP`` header, then the
    left-most ``X-Forwarded-For`` entry, then the peer address. A loopback
    or private result is swapped for the public address when a lookup is
    configured and succeeds.
    """

    def __init__(self, lookup: Optional["PublicAddressLookup"] = None) -> None:
        self._lookup = lookup

    def resolve(self, headers: Mapping[str, str], peer: Optional[str]) -> str:
        address = self._from_signals(headers, peer)
        if address and is_private_address(address) and self._lookup is not None:
            logger.info("Detected private address, fetching public address", extra={"address": address})
            public = self._lookup.fetch()
            if public:
                return public
            logger.warning("Falling back to private address", extra={"address": address})
        return address

    @staticmethod
    def _from_signals(headers: Mapping[str, str], peer: Optional[str]) -> str:
        trusted = _header(headers, TRUSTED_HEADER)
        if trusted:
            return trusted
        forwarded = _header(headers, FORWARDED_HEADER)
        if forwarded:
            return forwarded.split(",")[0].strip()
        return strip_port(peer or "")


__all__ = [
    "AddressResolver",
    "InvalidAddressError",
    "is_private_address",
    "is_valid_address",
    "strip_port",
    "validate_address",
]
