"""Thread-safe store of authorized client addresses."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional

from ipgate.config import ScheduleConfig
from ipgate.utils import IPAddress, compute_expiry, ensure_utc, utc_now

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class AuthorizationEntry:
    address: IPAddress
    headers: Mapping[str, str]
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at


class AccessStore:
    """Maps client addresses to the headers captured when they were authorized.

    Every operation runs under a single lock and entries are immutable, so a
    reader sees either the previous entry for an address or its replacement,
    never a mix of the two.
    """

    def __init__(self, schedule: ScheduleConfig, clock: Clock = utc_now) -> None:
        self._schedule = schedule
        self._clock = clock
        self._entries: Dict[IPAddress, AuthorizationEntry] = {}
        self._lock = Lock()

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_utc(now if now is not None else self._clock())

    def lookup(self, address: IPAddress, now: Optional[datetime] = None) -> Dict[str, str] | None:
        """Return the header snapshot for a currently authorized address."""

        now = self._now(now)
        with self._lock:
            entry = self._entries.get(address)
            if entry is None:
                return None
            if not entry.is_valid(now):
                LOGGER.debug("expired address", extra={"client_ip": str(address)})
                del self._entries[address]
                return None
            return dict(entry.headers)

    def authorize(
        self,
        address: IPAddress,
        headers: Mapping[str, str],
        now: Optional[datetime] = None,
    ) -> AuthorizationEntry:
        """Grant ``address`` access, replacing any previous grant wholesale."""

        now = self._now(now)
        entry = AuthorizationEntry(
            address=address,
            headers=MappingProxyType(dict(headers)),
            expires_at=compute_expiry(now, self._schedule),
        )
        with self._lock:
            self._entries[address] = entry
        return entry

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Drop every entry that has expired by ``now``; return how many."""

        now = self._now(now)
        with self._lock:
            expired = [address for address, entry in self._entries.items() if not entry.is_valid(now)]
            for address in expired:
                del self._entries[address]
        return len(expired)

    def __contains__(self, address: object) -> bool:
        with self._lock:
            return address in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
