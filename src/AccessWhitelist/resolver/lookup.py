"""Public address discovery for callers hidden behind local NAT."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .address import is_valid_address

DEFAULT_LOOKUP_URL = "https://api.ipify.org?format=text"

logger = logging.getLogger("AccessWhitelist.resolver.lookup")


class PublicAddressLookup:
    """Ask an external "what is my address" service for our public address."""

    def __init__(
        self,
        url: str = DEFAULT_LOOKUP_URL,
        *,
        timeout: float = 5.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._url = url
        self._client = client or httpx.Client(timeout=timeout)

    def fetch(self) -> Optional[str]:
        """Return the public address, or ``None`` when the lookup fails."""

        try:
            response = self._client.get(self._url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Public address lookup failed", extra={"url": self._url, "error": str(exc)})
            return None
        candidate = response.text.strip()
        if not is_valid_address(candidate):
            logger.warning("Public address lookup returned garbage", extra={"url": self._url})
            return None
        return candidate

    def close(self) -> None:
        self._client.close()


__all__ = ["DEFAULT_LOOKUP_URL", "PublicAddressLookup"]
