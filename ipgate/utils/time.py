"""Time helpers for computing authorization expiry."""
from __future__ import annotations

from datetime import UTC, datetime, time, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ipgate.config import ScheduleConfig


def utc_now() -> datetime:
    """Return the current instant as an aware UTC datetime."""

    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def next_boundary(now: datetime, hour: int, minute: int) -> datetime:
    """Return the next ``hour:minute:00`` UTC instant strictly after ``now``."""

    now = ensure_utc(now)
    boundary = datetime.combine(now.date(), time(hour, minute), tzinfo=UTC)
    if boundary <= now:
        boundary += timedelta(days=1)
    return boundary


def compute_expiry(now: datetime, schedule: ScheduleConfig) -> datetime:
    """Expiry for a grant made at ``now``.

    The grant survives until the next daily cutoff and then ``days`` more
    full days, so a grant made just before the cutoff still gets the
    following boundary rather than the one about to fire.
    """

    boundary = next_boundary(now, schedule.hour, schedule.minute)
    return boundary + timedelta(days=schedule.days)
