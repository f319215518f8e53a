from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from ipgate.config import ScheduleConfig
from ipgate.store import AccessStore


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 10, 0, tzinfo=UTC))


@pytest.fixture()
def store(clock) -> AccessStore:
    return AccessStore(ScheduleConfig(hour=3, minute=0, days=0), clock=clock)
