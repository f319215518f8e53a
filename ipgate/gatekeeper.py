"""Request handling for the ``allowed`` and ``authorize`` endpoints."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional

from ipgate.allow_list import AllowList
from ipgate.store import AccessStore, AuthorizationEntry
from ipgate.utils import IPAddress

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckResult:
    authorized: bool
    headers: Dict[str, str] = field(default_factory=dict)


DENIED = CheckResult(authorized=False)


class Gatekeeper:
    """Answers forward-auth checks and records new authorizations."""

    def __init__(self, store: AccessStore, allow_list: AllowList, header_names: Iterable[str]) -> None:
        self.store = store
        self.allow_list = allow_list
        self._header_names = {name.lower(): name for name in header_names}

    def check(self, address: Optional[IPAddress]) -> CheckResult:
        """Return whether ``address`` may pass and which headers to replay."""

        if address is None:
            return DENIED
        if address in self.allow_list:
            return CheckResult(authorized=True)
        headers = self.store.lookup(address)
        if headers is None:
            return DENIED
        return CheckResult(authorized=True, headers=headers)

    def capture_headers(self, source: Mapping[str, str]) -> Dict[str, str]:
        """Keep only the configured headers, keyed by their configured names."""

        captured: Dict[str, str] = {}
        for key, value in source.items():
            name = self._header_names.get(key.lower())
            if name is not None:
                captured[name] = value
        return captured

    def authorize(self, address: IPAddress, headers: Mapping[str, str]) -> AuthorizationEntry:
        captured = self.capture_headers(headers)
        entry = self.store.authorize(address, captured)
        LOGGER.info(
            "authorized address",
            extra={"client_ip": str(address), "headers": sorted(captured)},
        )
        return entry
