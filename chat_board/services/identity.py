from __future__ import annotations

import hashlib
from typing import Mapping, Optional

FALLBACK_ADDRESS = "0.0.0.0"
FORWARDED_FOR_HEADER = "X-Forwarded-For"
REAL_IP_HEADER = "X-Real-IP"
_IPV4_MAPPED_PREFIX = "::ffff:"


def _first_entry(raw_value: Optional[str]) -> str:
    if not raw_value:
        return ""
    return raw_value.split(",")[0].strip()


def normalize_address(address: str) -> str:
    """Strip the IPv4-mapped IPv6 prefix (``::ffff:1.2.3.4`` -> ``1.2.3.4``)."""
    trimmed = address.strip()
    if trimmed.lower().startswith(_IPV4_MAPPED_PREFIX):
        return trimmed[len(_IPV4_MAPPED_PREFIX):]
    return trimmed


def client_address(headers: Mapping[str, str], peer: Optional[str] = None) -> str:
    """Pick the originating address: forwarded-for, then real-ip, then the socket peer."""
    for header in (FORWARDED_FOR_HEADER, REAL_IP_HEADER):
        candidate = _first_entry(headers.get(header))
        if candidate:
            return normalize_address(candidate)
    if peer and peer.strip():
        return normalize_address(peer)
    return FALLBACK_ADDRESS


def derive_user_id(address: str) -> str:
    """Map an address to the decimal value of the first 32 bits of its SHA-256 digest.

    Collisions between addresses are accepted; the id is a pseudonym, not a key.
    """
    digest = hashlib.sha256(address.encode("utf-8")).hexdigest()
    return str(int(digest[:8], 16))


__all__ = [
    "FALLBACK_ADDRESS",
    "client_address",
    "derive_user_id",
    "normalize_address",
]
