"""
Schedule evaluation for standups.

Decides whether a team's standup runs on a given day and when the next one
is, always in the team's own IANA timezone.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Tuple, Union

from ..database.models import StandupConfigDB, TeamDB
from ..utils.datetime_utils import (
    add_hours,
    ensure_aware_utc,
    local_date,
    localize,
    parse_time_local,
    sunday_based_weekday,
)
from .snapshot import ConfigSnapshot

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = [
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
]

# Points of the response window at which follow-up reminders go out
FOLLOWUP_REMINDER_FRACTIONS = (0.5, 0.8)


@dataclass(frozen=True)
class StandupSchedule:
    """The schedule-relevant slice of a config."""

    weekdays: Tuple[int, ...]
    timezone: str
    time_local: str = "09:00"

    @classmethod
    def from_config(cls, team: TeamDB, config: StandupConfigDB) -> "StandupSchedule":
        return cls(
            weekdays=tuple(config.weekdays or ()),
            timezone=team.timezone,
            time_local=config.time_local,
        )

    @classmethod
    def from_snapshot(cls, snapshot: ConfigSnapshot) -> "StandupSchedule":
        return cls(
            weekdays=snapshot.weekdays,
            timezone=snapshot.timezone,
            time_local=snapshot.time_local,
        )

    def weekday_names(self) -> List[str]:
        return [WEEKDAY_NAMES[d] for d in sorted(self.weekdays)]


class ScheduleEvaluator:
    """Pure schedule decisions. Weekdays are numbered 0 = Sunday ... 6 = Saturday."""

    LOOKAHEAD_DAYS = 7

    @classmethod
    def should_run_on(cls, schedule: StandupSchedule, moment: Union[date, datetime]) -> bool:
        """
        Whether the standup runs on the local day of ``moment``.

        A datetime is an instant and is converted into the schedule's zone
        first, so the local weekday is used, not UTC's. A date is taken as a
        local calendar date as-is.
        """
        day = local_date(moment, schedule.timezone)
        return sunday_based_weekday(day) in schedule.weekdays

    @classmethod
    def next_run_after(cls, schedule: StandupSchedule, from_instant: datetime) -> Optional[date]:
        """
        First local date strictly after ``from_instant``'s local day whose weekday is active.

        Returns None when no weekday is active.
        """
        if not schedule.weekdays:
            logger.warning(f"Schedule in {schedule.timezone} has no active weekdays")
            return None

        today = local_date(from_instant, schedule.timezone)
        for offset in range(1, cls.LOOKAHEAD_DAYS + 1):
            candidate = today + timedelta(days=offset)
            if sunday_based_weekday(candidate) in schedule.weekdays:
                return candidate

        return None

    @classmethod
    def upcoming_dates(
        cls, schedule: StandupSchedule, from_instant: datetime, count: int = 5
    ) -> List[date]:
        """The next ``count`` scheduled local dates after ``from_instant``."""
        dates: List[date] = []
        cursor = ensure_aware_utc(from_instant)
        while len(dates) < count:
            next_day = cls.next_run_after(schedule, cursor)
            if next_day is None:
                break
            dates.append(next_day)
            # Noon local on the found day keeps the next lookup on the right side of DST shifts
            cursor = localize(next_day, parse_time_local("12:00"), schedule.timezone)
        return dates

    @classmethod
    def start_time(cls, schedule: StandupSchedule, target_date: date) -> datetime:
        """Instant (UTC) at which the standup on ``target_date`` starts locally."""
        return localize(target_date, parse_time_local(schedule.time_local), schedule.timezone)


def response_deadline(created_at: datetime, response_timeout_hours: float) -> datetime:
    """Instance creation time plus the snapshot's response timeout."""
    return add_hours(created_at, response_timeout_hours)


def reminder_time(snapshot: ConfigSnapshot, target_date: date) -> datetime:
    """When the pre-standup reminder should be sent."""
    start = standup_start_time(snapshot, target_date)
    return start - timedelta(minutes=snapshot.reminder_minutes_before)


def followup_reminder_times(
    created_at: datetime,
    response_timeout_hours: float,
    fractions: Iterable[float] = FOLLOWUP_REMINDER_FRACTIONS,
) -> List[datetime]:
    """Follow-up reminder instants at fixed fractions of the response window."""
    return [add_hours(created_at, response_timeout_hours * f) for f in fractions]


def standup_start_time(snapshot: ConfigSnapshot, target_date: date) -> datetime:
    """Instant at which an instance's standup starts, from its snapshot."""
    return ScheduleEvaluator.start_time(StandupSchedule.from_snapshot(snapshot), target_date)
