"""
Timezone utilities for the Spa Booking platform.

Slot dates and times are wall-clock values in the spa's configured timezone;
hold expiries are stored as UTC instants.
"""

from datetime import date, datetime, time, timezone
from typing import Optional

import pytz

from .config import settings


def get_timezone(tz_name: Optional[str] = None) -> pytz.BaseTzInfo:
    """Return the configured timezone (or ``tz_name`` when given)."""
    return pytz.timezone(tz_name or settings.timezone)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC value.

    Some drivers (SQLite) hand back naive datetimes for timezone-aware
    columns; those are stored as UTC, so the tzinfo is simply attached.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_local_today(now: Optional[datetime] = None, tz_name: Optional[str] = None) -> date:
    """Get 'today' in the configured timezone."""
    reference = ensure_utc(now) if now else now_utc()
    return reference.astimezone(get_timezone(tz_name)).date()


def local_to_utc(day: date, at: time, tz_name: Optional[str] = None) -> datetime:
    """Interpret a local date/time pair and return the UTC instant."""
    tz = get_timezone(tz_name)
    local_dt = tz.localize(datetime.combine(day, at))
    return local_dt.astimezone(timezone.utc)


def hours_until(
    day: date,
    at: time,
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
) -> float:
    """Hours from ``now`` until the local date/time (negative when in the past)."""
    reference = ensure_utc(now) if now else now_utc()
    return (local_to_utc(day, at, tz_name) - reference).total_seconds() / 3600


def minutes_between(start: time, end: time) -> int:
    """
    Duration in minutes between two wall-clock times on the same day.

    Example: minutes_between(time(10, 0), time(11, 30)) -> 90
    """
    return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)
