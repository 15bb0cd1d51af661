"""Client address resolution exports."""

from .address import (
    AddressResolver,
    InvalidAddressError,
    is_private_address,
    is_valid_address,
    strip_port,
    validate_address,
)
from .lookup import DEFAULT_LOOKUP_URL, PublicAddressLookup

__all__ = [
    "AddressResolver",
    "DEFAULT_LOOKUP_URL",
    "InvalidAddressError",
    "PublicAddressLookup",
    "is_private_address",
    "is_valid_address",
    "strip_port",
    "validate_address",
]
