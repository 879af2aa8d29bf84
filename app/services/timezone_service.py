# app/services/timezone_service.py
"""
Timezone projection for ContactHub.

Converts absolute instants to local calendar dates and wall-clock times in
an IANA zone and back, picks the effective zone of a schedule, and renders
relative day labels and human readable schedule summaries.

All conversions use the standard library zoneinfo database, so DST rules
follow the instant being converted rather than the current offset.
"""

import logging
import math
import os
import re
from datetime import datetime, date, time, timezone
from typing import NamedTuple, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.config import settings
from app.core.exceptions import InvalidLocalTimeException, InvalidTimezoneException
from app.db.models.enums import FrequencyType, ScheduleType

logger = logging.getLogger(__name__)

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

WEEKDAY_ABBREVIATIONS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
MONTH_ABBREVIATIONS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]
_UNITS = {
    FrequencyType.DAILY: "day",
    FrequencyType.WEEKLY: "week",
    FrequencyType.MONTHLY: "month",
    FrequencyType.YEARLY: "year",
}


class LocalProjection(NamedTuple):
    """Local view of an instant. fold is 1 for the second pass of a repeated hour."""

    date_string: str
    time_string: str
    fold: int = 0


def get_zone(name: str) -> ZoneInfo:
    """
    Look up an IANA zone.

    Raises:
        InvalidTimezoneException: If the name is not in the tz database
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        raise InvalidTimezoneException(str(name))


def is_valid_timezone(name: Optional[str]) -> bool:
    if not name:
        return False
    try:
        get_zone(name)
    except InvalidTimezoneException:
        return False
    return True


def _host_timezone() -> Optional[str]:
    """IANA name of the host zone from TZ or the /etc/localtime link."""
    candidate = os.environ.get("TZ", "").lstrip(":")
    if candidate and is_valid_timezone(candidate):
        return candidate
    try:
        target = os.path.realpath("/etc/localtime")
    except OSError:
        return None
    if "zoneinfo/" in target:
        candidate = target.split("zoneinfo/", 1)[1]
        if is_valid_timezone(candidate):
            return candidate
    return None


def default_timezone() -> str:
    """Runtime default zone: DEFAULT_TIMEZONE, then the host zone, then UTC."""
    return settings.DEFAULT_TIMEZONE or _host_timezone() or "UTC"


def resolve_timezone(
    schedule_timezone: Optional[str] = None, owner_timezone: Optional[str] = None
) -> str:
    """
    Effective zone of a schedule.

    The schedule's own zone wins, then the group owner's zone, then the
    runtime default. Unknown names are skipped with a warning.
    """
    for candidate in (schedule_timezone, owner_timezone):
        if not candidate:
            continue
        if is_valid_timezone(candidate):
            return candidate
        logger.warning(f"Ignoring unknown timezone '{candidate}'")
    return default_timezone()


def parse_time(value: Optional[str]) -> Tuple[int, int]:
    """
    Parse an HH:MM wall-clock string.

    Raises:
        InvalidLocalTimeException: If the value is not a 24h HH:MM time
    """
    match = _TIME_PATTERN.match(value or "")
    if not match:
        raise InvalidLocalTimeException(str(value), "HH:MM")
    return int(match.group(1)), int(match.group(2))


def is_valid_time(value: Optional[str]) -> bool:
    return bool(_TIME_PATTERN.match(value or ""))


def parse_date(value: str) -> date:
    """
    Parse a YYYY-MM-DD string.

    Raises:
        InvalidLocalTimeException: If the value is not an ISO date
    """
    if not _DATE_PATTERN.match(value or ""):
        raise InvalidLocalTimeException(str(value), "YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidLocalTimeException(value, "YYYY-MM-DD")


def ensure_aware(instant: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant


def to_local(instant: datetime, zone_name: str) -> LocalProjection:
    """
    Project an absolute instant into a zone.

    Args:
        instant: Aware datetime (naive is treated as UTC)
        zone_name: IANA zone name

    Returns:
        LocalProjection with YYYY-MM-DD, HH:MM and the fold of the local time
    """
    local = ensure_aware(instant).astimezone(get_zone(zone_name))
    return LocalProjection(
        local.strftime("%Y-%m-%d"), local.strftime("%H:%M"), local.fold
    )


def to_instant(
    date_string: str, time_string: str, zone_name: str, fold: int = 0
) -> datetime:
    """
    Convert a local date and wall-clock time to an absolute UTC instant.

    Times skipped by a spring-forward transition use the offset in force
    before the transition. Repeated times resolve to their first pass
    unless fold=1.

    Returns:
        Aware datetime in UTC
    """
    day = parse_date(date_string)
    hour, minute = parse_time(time_string)
    local = datetime(
        day.year, day.month, day.day, hour, minute,
        tzinfo=get_zone(zone_name), fold=1 if fold else 0,
    )
    return local.astimezone(timezone.utc)


def combine(day: date, start_time: Optional[str], zone_name: str) -> datetime:
    """
    Instant of a schedule's wall-clock time on a local day.

    Returns:
        Aware datetime expressed in the schedule's zone
    """
    instant = to_instant(
        day.isoformat(), start_time or settings.DEFAULT_START_TIME, zone_name
    )
    return instant.astimezone(get_zone(zone_name))


def local_date(instant: datetime, zone_name: str) -> date:
    """Calendar date of an instant in a zone."""
    return ensure_aware(instant).astimezone(get_zone(zone_name)).date()


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def relative_label(instant: datetime, now: datetime, zone_name: str) -> str:
    """
    Relative label of an occurrence from whole calendar days in the zone.

    Today, Tomorrow, "In N days" under a week, "In N weeks" under thirty
    days, otherwise "In N months".
    """
    days = (local_date(instant, zone_name) - local_date(now, zone_name)).days
    if days <= 0:
        return "Today"
    if days == 1:
        return "Tomorrow"
    if days < 7:
        return f"In {_plural(days, 'day')}"
    if days < 30:
        return f"In {_plural(math.ceil(days / 7), 'week')}"
    return f"In {_plural(math.ceil(days / 30), 'month')}"


def format_time_12h(value: Optional[str]) -> str:
    """'13:05' -> '1:05 PM'."""
    hour, minute = parse_time(value)
    return time(hour, minute).strftime("%I:%M %p").lstrip("0")


def format_schedule(schedule) -> str:
    """
    Human readable summary of a schedule.

    Args:
        schedule: ScheduleDefinition or anything with the same attributes

    Returns:
        E.g. "Every 2 weeks on Mon, Wed at 9:00 AM"
    """
    time_part = ""
    if schedule.start_time:
        try:
            time_part = f" at {format_time_12h(schedule.start_time)}"
        except InvalidLocalTimeException:
            time_part = ""

    if schedule.type == ScheduleType.ONE_TIME:
        day = schedule.start_date.isoformat()
        if schedule.name:
            return f"{schedule.name} ({day}{time_part})"
        return f"Once on {day}{time_part}"

    frequency = schedule.frequency
    if frequency is None:
        return "Invalid recurring schedule"

    unit = _UNITS[FrequencyType(frequency.type)]
    if frequency.interval == 1:
        description = f"Every {unit}"
    else:
        description = f"Every {frequency.interval} {unit}s"

    if frequency.type == FrequencyType.WEEKLY and frequency.days_of_week:
        days = ", ".join(WEEKDAY_ABBREVIATIONS[d] for d in frequency.days_of_week)
        description += f" on {days}"
    if frequency.type == FrequencyType.MONTHLY and frequency.days_of_month:
        plural = "s" if len(frequency.days_of_month) > 1 else ""
        days = ", ".join(str(d) for d in frequency.days_of_month)
        description += f" on day{plural} {days}"
    if frequency.type == FrequencyType.YEARLY:
        start = schedule.start_date
        if frequency.months_of_year:
            description += f" on day {start.day}"
        else:
            description += f" on {MONTH_ABBREVIATIONS[start.month - 1]} {start.day}"
    if frequency.months_of_year and frequency.type in (
        FrequencyType.MONTHLY, FrequencyType.YEARLY
    ):
        months = ", ".join(MONTH_ABBREVIATIONS[m - 1] for m in frequency.months_of_year)
        description += f" in {months}"

    return description + time_part
