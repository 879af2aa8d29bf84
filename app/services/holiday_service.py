# app/services/holiday_service.py
"""
Holiday date resolution for ContactHub.

Resolves holiday keys to concrete dates for a year, rolls past holidays
forward to the next year when resolving for "now", and maps dates and
labels back to keys for the holiday picker.

Movable holidays are computed with dateutil's relativedelta weekday
arithmetic; Easter uses the Meeus/Jones/Butcher Gregorian algorithm.
"""

import logging
from datetime import date
from typing import Callable, Dict, List, NamedTuple, Optional

from dateutil.relativedelta import relativedelta, MO, TH, SU

from app.core.config import settings
from app.core.exceptions import UnknownHolidayException
from app.db.models.enums import ScheduleType
from app.schemas.holiday import HolidayResponse
from app.schemas.schedule import ScheduleCreate
from app.services import timezone_service

logger = logging.getLogger(__name__)


def easter_sunday(year: int) -> date:
    """
    Gregorian Easter Sunday (Meeus/Jones/Butcher).

    Integer arithmetic only; always a Sunday between March 22 and April 25.
    """
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


def _fixed(month: int, day: int) -> Callable[[int], date]:
    return lambda year: date(year, month, day)


def _nth_weekday(month: int, weekday) -> Callable[[int], date]:
    # weekday carries its ordinal, e.g. TH(+4) is the fourth Thursday
    return lambda year: date(year, month, 1) + relativedelta(weekday=weekday)


class Holiday(NamedTuple):
    key: str
    label: str
    rule: Callable[[int], date]


HOLIDAYS: Dict[str, Holiday] = {
    h.key: h
    for h in (
        Holiday("new-year", "New Year's Day", _fixed(1, 1)),
        Holiday("valentines", "Valentine's Day", _fixed(2, 14)),
        Holiday("easter", "Easter", easter_sunday),
        Holiday("mothers-day", "Mother's Day", _nth_weekday(5, SU(+2))),
        Holiday("fathers-day", "Father's Day", _nth_weekday(6, SU(+3))),
        Holiday("independence-day", "Independence Day", _fixed(7, 4)),
        Holiday("labor-day", "Labor Day", _nth_weekday(9, MO(+1))),
        Holiday("halloween", "Halloween", _fixed(10, 31)),
        Holiday("thanksgiving", "Thanksgiving", _nth_weekday(11, TH(+4))),
        Holiday("christmas", "Christmas", _fixed(12, 25)),
    )
}


class HolidayService:
    """
    Resolver for the closed set of supported holidays.

    Stateless apart from configuration; "today" is always passed in or
    taken from the calendar at call time.
    """

    def __init__(self, max_roll_years: Optional[int] = None):
        """
        Initialize the holiday service.

        Args:
            max_roll_years: Upper bound on roll-forward steps
        """
        self.max_roll_years = max_roll_years or settings.HOLIDAY_MAX_ROLL_YEARS

    def _get(self, key: str) -> Holiday:
        holiday = HOLIDAYS.get(key)
        if holiday is None:
            raise UnknownHolidayException(key)
        return holiday

    def date_for_year(self, key: str, year: int) -> date:
        """
        Resolve a holiday in a given year, without rolling forward.

        Raises:
            UnknownHolidayException: If the key is not supported
        """
        return self._get(key).rule(year)

    def resolve(
        self,
        key: str,
        year: Optional[int] = None,
        today: Optional[date] = None,
        fallback: Optional[date] = None,
    ) -> date:
        """
        Resolve a holiday key to a concrete date.

        When resolving for the current year (year omitted or equal to
        today's year) a date that has already passed rolls forward to the
        next year. A holiday falling on today has not passed.

        Args:
            key: Holiday key, e.g. "thanksgiving"
            year: Target year, defaults to today's year
            today: Reference date, defaults to the current date
            fallback: Date returned for unknown keys instead of raising

        Returns:
            The resolved date

        Raises:
            UnknownHolidayException: If the key is unknown and no fallback is given
        """
        if key not in HOLIDAYS and fallback is not None:
            logger.warning(f"Unknown holiday key '{key}', using fallback {fallback}")
            return fallback

        holiday = self._get(key)
        today = today or date.today()
        target_year = year if year is not None else today.year

        resolved = holiday.rule(target_year)
        if target_year != today.year:
            return resolved

        for _ in range(self.max_roll_years):
            if resolved >= today:
                break
            target_year += 1
            resolved = holiday.rule(target_year)
        else:
            if resolved < today:
                logger.warning(
                    f"Holiday '{key}' still in the past after "
                    f"{self.max_roll_years} roll-forward steps"
                )

        return resolved

    def label_for_key(self, key: str) -> str:
        """Display label of a holiday key."""
        return self._get(key).label

    def key_for_label(self, label: str) -> Optional[str]:
        """
        Map a display label back to its key.

        Matching ignores case and surrounding whitespace; returns None when
        no holiday has that label.
        """
        wanted = label.strip().lower()
        for holiday in HOLIDAYS.values():
            if holiday.label.lower() == wanted:
                return holiday.key
        return None

    def holiday_for_date(self, day: date) -> Optional[str]:
        """Key of the holiday falling exactly on day, or None."""
        for holiday in HOLIDAYS.values():
            if holiday.rule(day.year) == day:
                return holiday.key
        return None

    def list_holidays(self, year: int) -> List[HolidayResponse]:
        """All supported holidays of a year, in date order."""
        items = [
            HolidayResponse(key=h.key, label=h.label, date=h.rule(year))
            for h in HOLIDAYS.values()
        ]
        return sorted(items, key=lambda item: item.date)

    def seed_schedule(
        self,
        key: str,
        today: Optional[date] = None,
        start_time: Optional[str] = None,
    ) -> ScheduleCreate:
        """
        Draft a one-time schedule on the next occurrence of a holiday.

        Args:
            key: Holiday key
            today: Reference date for roll-forward
            start_time: Wall-clock time, defaults to DEFAULT_START_TIME

        Returns:
            Unsaved schedule named after the holiday
        """
        holiday = self._get(key)
        if start_time is not None:
            timezone_service.parse_time(start_time)
        return ScheduleCreate(
            type=ScheduleType.ONE_TIME,
            name=holiday.label,
            start_date=self.resolve(key, today=today),
            start_time=start_time or settings.DEFAULT_START_TIME,
        )
