"""
Centralized datetime and timezone utilities.

All instants handled by the standup engine are timezone-aware UTC. Calendar
decisions (weekday checks, start times) are made in the team's IANA zone via
pytz so daylight-saving transitions are honoured.
"""

from datetime import datetime, date, time, timedelta
from typing import Optional, Union
import pytz

from config import settings


def utc_now() -> datetime:
    """Current instant as an aware UTC datetime. Default clock for services."""
    return datetime.now(pytz.UTC)


def get_zone(timezone: str) -> pytz.BaseTzInfo:
    """
    Resolve an IANA zone name.

    Raises:
        pytz.UnknownTimeZoneError: if the name is not in the tz database
    """
    return pytz.timezone(timezone)


def get_local_tz() -> pytz.BaseTzInfo:
    """Get the configured scheduler timezone."""
    return get_zone(settings.timezone)


def is_valid_timezone(timezone: str) -> bool:
    """Check a zone name against the tz database."""
    try:
        get_zone(timezone)
        return True
    except pytz.UnknownTimeZoneError:
        return False


def ensure_aware_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    Naive datetimes are assumed to already be UTC.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)

    return dt.astimezone(pytz.UTC)


def to_zone(dt: datetime, timezone: str) -> datetime:
    """Convert an instant to wall-clock time in the given zone."""
    return ensure_aware_utc(dt).astimezone(get_zone(timezone))


def local_date(moment: Union[date, datetime], timezone: str) -> date:
    """
    Calendar date of ``moment`` in ``timezone``.

    A plain ``date`` is taken to already be a local calendar date.
    """
    if isinstance(moment, datetime):
        return to_zone(moment, timezone).date()
    return moment


def sunday_based_weekday(day: date) -> int:
    """Weekday with 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def parse_time_local(time_local: str) -> time:
    """Parse an ``HH:MM`` wall-clock string."""
    hours, minutes = time_local.strip().split(":")
    return time(int(hours), int(minutes))


def localize(day: date, wall_time: time, timezone: str) -> datetime:
    """
    Attach ``wall_time`` on ``day`` to ``timezone`` and return the aware UTC instant.

    Wall times that fall into a DST gap are shifted forward by pytz.normalize;
    ambiguous wall times resolve to the standard-time reading.
    """
    zone = get_zone(timezone)
    naive = datetime.combine(day, wall_time)
    localized = zone.normalize(zone.localize(naive, is_dst=False))
    return localized.astimezone(pytz.UTC)


def hours_between(start: datetime, end: datetime) -> float:
    """Hours from ``start`` to ``end`` (negative if ``end`` is earlier)."""
    delta = ensure_aware_utc(end) - ensure_aware_utc(start)
    return delta.total_seconds() / 3600


def add_hours(dt: datetime, hours: float) -> datetime:
    """Shift an instant by a number of hours."""
    return ensure_aware_utc(dt) + timedelta(hours=hours)
