"""Client address helpers."""
from __future__ import annotations

import logging
from ipaddress import IPv4Address, IPv6Address, ip_address
from typing import Mapping, Optional, Union

LOGGER = logging.getLogger(__name__)

IPAddress = Union[IPv4Address, IPv6Address]

FORWARDED_FOR = "X-Forwarded-For"


def parse_address(value: object) -> Optional[IPAddress]:
    """Parse ``value`` into an IP address, returning ``None`` when malformed."""

    if isinstance(value, (IPv4Address, IPv6Address)):
        return value
    if not isinstance(value, str):
        return None
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1]
    try:
        return ip_address(value)
    except ValueError:
        return None


def client_address(headers: Mapping[str, str], peer: Optional[str]) -> Optional[IPAddress]:
    """Resolve the originating client address of a forwarded request.

    The reverse proxy is trusted to set ``X-Forwarded-For``; the leftmost
    entry is the original client. When the header is missing or unparsable
    the transport peer is used instead.
    """

    forwarded = headers.get(FORWARDED_FOR)
    if forwarded:
        address = parse_address(forwarded.split(",", 1)[0])
        if address is not None:
            return address
        LOGGER.warning("invalid forwarded address header", extra={"client_ip": forwarded})
    return parse_address(peer)
