"""Utility modules for the standup engine."""

from .datetime_utils import (
    utc_now,
    get_zone,
    get_local_tz,
    is_valid_timezone,
    ensure_aware_utc,
    to_zone,
    local_date,
    sunday_based_weekday,
    parse_time_local,
    localize,
    hours_between,
    add_hours,
)

__all__ = [
    "utc_now",
    "get_zone",
    "get_local_tz",
    "is_valid_timezone",
    "ensure_aware_utc",
    "to_zone",
    "local_date",
    "sunday_based_weekday",
    "parse_time_local",
    "localize",
    "hours_between",
    "add_hours",
]
