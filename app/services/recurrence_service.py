# app/services/recurrence_service.py
"""
Recurrence calculation for ContactHub schedules.

Turns a schedule definition into concrete future fire times: the frequency
predicate deciding whether a local date matches, a forward walk in
frequency-sized strides bounded by a horizon, and the per-day check used
by the dispatch job.

Everything here is a pure function of the schedule and the injected "now".
"""

import logging
from datetime import datetime, date, timedelta
from typing import Iterator, List, NamedTuple, Optional

from dateutil.relativedelta import relativedelta

from app.core.config import settings
from app.db.models.enums import FrequencyType, ScheduleType
from app.schemas.schedule import ScheduleDefinition
from app.services import timezone_service

logger = logging.getLogger(__name__)


class Fire(NamedTuple):
    """One concrete occurrence of a schedule."""

    fire_date: date  # local date in the schedule's zone
    instant: datetime
    message: Optional[str]
    is_override: bool = False


def as_definition(schedule) -> ScheduleDefinition:
    """Accept an ORM Schedule or a ScheduleDefinition."""
    if isinstance(schedule, ScheduleDefinition):
        return schedule
    return ScheduleDefinition.model_validate(schedule, from_attributes=True)


def weekday_index(day: date) -> int:
    """Weekday with 0=Sunday..6=Saturday."""
    return (day.weekday() + 1) % 7


def week_start(day: date) -> date:
    """Sunday starting the week of day."""
    return day - timedelta(days=weekday_index(day))


def _month_offset(start: date, day: date) -> int:
    return (day.year - start.year) * 12 + (day.month - start.month)


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    # Days absent from a month are skipped, never clamped
    try:
        return date(year, month, day)
    except ValueError:
        return None


def matches_frequency(schedule: ScheduleDefinition, day: date) -> bool:
    """
    Frequency predicate of a recurring schedule, ignoring bounds and exceptions.

    Returns False for degenerate rules (no frequency, weekly without days,
    monthly without days).
    """
    frequency = schedule.frequency
    if frequency is None:
        return False

    start = schedule.start_date
    interval = max(1, frequency.interval)

    if frequency.type == FrequencyType.DAILY:
        return (day - start).days % interval == 0

    if frequency.type == FrequencyType.WEEKLY:
        if weekday_index(day) not in frequency.days_of_week:
            return False
        weeks = (week_start(day) - week_start(start)).days // 7
        return weeks % interval == 0

    if frequency.type == FrequencyType.MONTHLY:
        if day.day not in frequency.days_of_month:
            return False
        if frequency.months_of_year and day.month not in frequency.months_of_year:
            return False
        return _month_offset(start, day) % interval == 0

    if frequency.type == FrequencyType.YEARLY:
        if (day.year - start.year) % interval != 0 or day.day != start.day:
            return False
        if frequency.months_of_year:
            return day.month in frequency.months_of_year
        return day.month == start.month

    return False


class RecurrenceService:
    """
    Engine computing the next occurrences of schedules.

    The service holds configuration only; all methods are safe to call
    from any thread.
    """

    def __init__(self, horizon_days: Optional[int] = None):
        """
        Initialize the recurrence service.

        Args:
            horizon_days: How far ahead of the walk start to look
        """
        self.horizon_days = horizon_days or settings.RECURRENCE_HORIZON_DAYS

    def matches(self, schedule, day: date) -> bool:
        """
        Check whether a schedule has a regular occurrence on a local date.

        Applies the enabled flag, the [start_date, end_date] window,
        exceptions, override suppression and the frequency predicate.
        """
        schedule = as_definition(schedule)
        if not schedule.enabled:
            return False

        if schedule.type == ScheduleType.ONE_TIME:
            return day == schedule.start_date

        if day < schedule.start_date:
            return False
        if schedule.end_date is not None and day > schedule.end_date:
            return False
        if day in schedule.exceptions:
            return False
        if any(o.original_date == day for o in schedule.overrides):
            return False
        return matches_frequency(schedule, day)

    def _candidate_dates(
        self, schedule: ScheduleDefinition, first: date, last: date
    ) -> Iterator[date]:
        """
        Dates in [first, last] that fit the frequency stride, ascending.

        The stride is aligned on start_date so every yielded date only needs
        the remaining checks of matches().
        """
        frequency = schedule.frequency
        start = schedule.start_date
        interval = max(1, frequency.interval)

        if frequency.type == FrequencyType.DAILY:
            offset = (first - start).days % interval
            day = first if offset == 0 else first + timedelta(days=interval - offset)
            while day <= last:
                yield day
                day += timedelta(days=interval)

        elif frequency.type == FrequencyType.WEEKLY:
            if not frequency.days_of_week:
                return
            weeks = (week_start(first) - week_start(start)).days // 7
            week = week_start(first) + timedelta(weeks=(-weeks) % interval)
            while week <= last:
                for index in frequency.days_of_week:
                    day = week + timedelta(days=index)
                    if first <= day <= last:
                        yield day
                week += timedelta(weeks=interval)

        elif frequency.type == FrequencyType.MONTHLY:
            if not frequency.days_of_month:
                return
            month = date(first.year, first.month, 1)
            month += relativedelta(months=(-_month_offset(start, month)) % interval)
            while month <= last:
                if not frequency.months_of_year or month.month in frequency.months_of_year:
                    for day_of_month in frequency.days_of_month:
                        day = _safe_date(month.year, month.month, day_of_month)
                        if day is not None and first <= day <= last:
                            yield day
                month += relativedelta(months=interval)

        elif frequency.type == FrequencyType.YEARLY:
            year = first.year + (-(first.year - start.year)) % interval
            months = frequency.months_of_year or [start.month]
            while year <= last.year:
                for month in months:
                    day = _safe_date(year, month, start.day)
                    if day is not None and first <= day <= last:
                        yield day
                year += interval

    def _regular_fires(
        self, schedule: ScheduleDefinition, now: datetime, zone: str
    ) -> Iterator[Fire]:
        if schedule.type == ScheduleType.ONE_TIME:
            instant = timezone_service.combine(
                schedule.start_date, schedule.start_time, zone
            )
            if instant > now:
                yield Fire(schedule.start_date, instant, schedule.message)
            return

        if schedule.frequency is None:
            return

        first = max(schedule.start_date, timezone_service.local_date(now, zone))
        last = first + timedelta(days=self.horizon_days)
        if schedule.end_date is not None:
            last = min(last, schedule.end_date)

        for day in self._candidate_dates(schedule, first, last):
            if not self.matches(schedule, day):
                continue
            instant = timezone_service.combine(day, schedule.start_time, zone)
            if instant > now:
                yield Fire(day, instant, schedule.message)

    def _override_fires(
        self, schedule: ScheduleDefinition, now: datetime, zone: str
    ) -> List[Fire]:
        fires = []
        for override in schedule.overrides:
            instant = timezone_service.combine(
                override.new_date, override.new_time or schedule.start_time, zone
            )
            if instant > now:
                message = override.message if override.message is not None else schedule.message
                fires.append(Fire(override.new_date, instant, message, True))
        return fires

    def next_fires(
        self, schedule, now: datetime, count: int, tz: Optional[str] = None
    ) -> List[Fire]:
        """
        Next fires of a schedule strictly after now.

        Args:
            schedule: ScheduleDefinition or ORM Schedule
            now: Reference instant (naive is treated as UTC)
            count: Maximum number of fires
            tz: Fallback zone when the schedule has none, usually the group owner's

        Returns:
            Up to count fires in ascending instant order; fewer when the
            horizon or end date runs out
        """
        schedule = as_definition(schedule)
        if count <= 0 or not schedule.enabled:
            return []

        now = timezone_service.ensure_aware(now)
        zone = timezone_service.resolve_timezone(schedule.timezone, tz)

        fires = []
        for fire in self._regular_fires(schedule, now, zone):
            fires.append(fire)
            if len(fires) >= count:
                break

        overrides = self._override_fires(schedule, now, zone)
        if overrides:
            fires = sorted(fires + overrides, key=lambda f: f.instant)[:count]

        return fires

    def occurrences(
        self, schedule, now: datetime, count: int, tz: Optional[str] = None
    ) -> List[datetime]:
        """
        Next occurrence instants of a schedule strictly after now.

        Returns:
            Ascending list of at most count aware datetimes
        """
        return [fire.instant for fire in self.next_fires(schedule, now, count, tz)]

    def fires_for_day(
        self, schedule, day: date, tz: Optional[str] = None
    ) -> List[Fire]:
        """
        All fires landing on a local day, earliest first.

        A day holds at most one regular occurrence, plus any overrides
        moved onto it.

        Args:
            schedule: ScheduleDefinition or ORM Schedule
            day: Local calendar date in the schedule's effective zone
            tz: Fallback zone when the schedule has none
        """
        schedule = as_definition(schedule)
        if not schedule.enabled:
            return []

        zone = timezone_service.resolve_timezone(schedule.timezone, tz)
        candidates = []
        if self.matches(schedule, day):
            instant = timezone_service.combine(day, schedule.start_time, zone)
            candidates.append(Fire(day, instant, schedule.message))

        for override in schedule.overrides:
            if override.new_date == day:
                instant = timezone_service.combine(
                    day, override.new_time or schedule.start_time, zone
                )
                message = override.message if override.message is not None else schedule.message
                candidates.append(Fire(day, instant, message, True))

        return sorted(candidates, key=lambda f: f.instant)

    def fire_for_day(
        self, schedule, day: date, tz: Optional[str] = None
    ) -> Optional[Fire]:
        """
        The fire due on a local day, if any.

        A schedule fires at most once per day; when an override lands on a
        day that also has a regular occurrence the earlier instant wins.

        Args:
            schedule: ScheduleDefinition or ORM Schedule
            day: Local calendar date in the schedule's effective zone
            tz: Fallback zone when the schedule has none

        Returns:
            The fire, or None if nothing is due that day
        """
        fires = self.fires_for_day(schedule, day, tz)
        return fires[0] if fires else None
