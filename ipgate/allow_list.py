"""Static set of permanently trusted client addresses."""
from __future__ import annotations

from typing import FrozenSet, Iterable

from ipgate.utils import IPAddress, parse_address


class AllowList:
    """Addresses that are always authorized, bypassing the access store."""

    def __init__(self, addresses: Iterable[str | IPAddress] = ()) -> None:
        parsed = []
        for raw in addresses:
            address = parse_address(raw)
            if address is None:
                raise ValueError(f"Invalid allow-list address: {raw!r}")
            parsed.append(address)
        self._addresses: FrozenSet[IPAddress] = frozenset(parsed)

    def __contains__(self, address: object) -> bool:
        parsed = parse_address(address)
        return parsed is not None and parsed in self._addresses
