"""Shared utility functions."""

from __future__ import annotations

from datetime import UTC, date, datetime
from functools import lru_cache
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Return aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize datetime to UTC timezone."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


@lru_cache(maxsize=64)
def get_zone(name: str) -> ZoneInfo:
    """Return cached ZoneInfo for an IANA name."""
    return ZoneInfo(name)


def local_day(instant: datetime, tz_name: str) -> date:
    """Return the calendar day of an instant in the given time zone."""
    return ensure_utc(instant).astimezone(get_zone(tz_name)).date()


def sunday_based_weekday(day: date) -> int:
    """Weekday number with 0 = Sunday through 6 = Saturday."""
    return (day.weekday() + 1) % 7
