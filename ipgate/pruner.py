"""Background sweeping of expired authorizations."""
from __future__ import annotations

import logging
import threading
from typing import Optional

from ipgate.store import AccessStore

LOGGER = logging.getLogger(__name__)


class Pruner:
    """Runs :meth:`AccessStore.sweep` on a dedicated thread every ``interval_seconds``.

    The daily cutoff is already part of every entry's expiry, so a plain
    interval is enough; the interval only bounds how late an expired entry
    may linger in memory.
    """

    def __init__(self, store: AccessStore, interval_seconds: float) -> None:
        self._store = store
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the loop, first waiting out a previous loop that is still stopping."""

        if self.running:
            if not self._stop.is_set():
                return
            self._thread.join()
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="ipgate-pruner", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the loop and wait for any sweep in progress to finish."""

        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if not self._thread.is_alive():
                self._thread = None

    def run_once(self) -> int:
        if self._stop.is_set():
            return 0
        evicted = self._store.sweep()
        LOGGER.debug("pruner run", extra={"evicted": evicted})
        return evicted

    def _run(self) -> None:
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(self._interval)
