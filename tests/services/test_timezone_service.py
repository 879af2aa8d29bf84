# tests/services/test_timezone_service.py
from datetime import date, timedelta

import pytest

from app.core.exceptions import InvalidLocalTimeException, InvalidTimezoneException
from app.schemas.schedule import Frequency
from app.services import timezone_service
from app.services.timezone_service import LocalProjection
from tests.helpers import make_definition, utc

NEW_YORK = "America/New_York"


def test_to_local():
    assert timezone_service.to_local(utc(2024, 1, 15, 14), "Asia/Tokyo") == LocalProjection(
        "2024-01-15", "23:00", 0
    )
    assert timezone_service.to_local(utc(2024, 1, 15, 3), NEW_YORK) == LocalProjection(
        "2024-01-14", "22:00", 0
    )


def test_to_instant():
    assert timezone_service.to_instant("2024-07-01", "09:00", NEW_YORK) == utc(2024, 7, 1, 13)
    assert timezone_service.to_instant("2024-01-01", "09:00", NEW_YORK) == utc(2024, 1, 1, 14)


@pytest.mark.parametrize(
    "instant",
    [
        utc(2024, 1, 15, 12),
        utc(2024, 3, 10, 7),  # 03:00 EDT, just after spring-forward
        utc(2024, 11, 3, 5, 30),  # 01:30 EDT, first pass
        utc(2024, 11, 3, 6, 30),  # 01:30 EST, second pass
    ],
)
def test_projection_round_trip(instant):
    projection = timezone_service.to_local(instant, NEW_YORK)

    back = timezone_service.to_instant(
        projection.date_string, projection.time_string, NEW_YORK, projection.fold
    )

    assert back == instant


def test_repeated_hour_resolves_to_first_pass_by_default():
    first = timezone_service.to_instant("2024-11-03", "01:30", NEW_YORK)
    second = timezone_service.to_instant("2024-11-03", "01:30", NEW_YORK, fold=1)

    assert first == utc(2024, 11, 3, 5, 30)
    assert second == utc(2024, 11, 3, 6, 30)


def test_skipped_time_uses_offset_before_transition():
    instant = timezone_service.to_instant("2024-03-10", "02:30", NEW_YORK)

    assert instant == utc(2024, 3, 10, 7, 30)


def test_invalid_timezone():
    with pytest.raises(InvalidTimezoneException):
        timezone_service.to_local(utc(2024, 1, 1), "Mars/Olympus_Mons")
    assert not timezone_service.is_valid_timezone("Mars/Olympus_Mons")
    assert not timezone_service.is_valid_timezone(None)
    assert timezone_service.is_valid_timezone("Europe/Berlin")


@pytest.mark.parametrize("value", ["24:00", "9:00", "12:60", "noon", ""])
def test_invalid_times(value):
    with pytest.raises(InvalidLocalTimeException):
        timezone_service.parse_time(value)


def test_invalid_dates():
    with pytest.raises(InvalidLocalTimeException):
        timezone_service.parse_date("2024-02-30")
    with pytest.raises(InvalidLocalTimeException):
        timezone_service.parse_date("01/02/2024")
    assert timezone_service.parse_date("2024-02-29") == date(2024, 2, 29)


def test_resolve_timezone_order():
    assert timezone_service.resolve_timezone("Europe/Berlin", "Asia/Tokyo") == "Europe/Berlin"
    assert timezone_service.resolve_timezone(None, "Asia/Tokyo") == "Asia/Tokyo"
    assert timezone_service.resolve_timezone("Not/AZone", "Asia/Tokyo") == "Asia/Tokyo"
    assert timezone_service.resolve_timezone(None, None) == "UTC"


def test_local_date_crosses_midnight():
    assert timezone_service.local_date(utc(2024, 1, 1, 3), NEW_YORK) == date(2023, 12, 31)


@pytest.mark.parametrize(
    "days, label",
    [
        (0, "Today"),
        (1, "Tomorrow"),
        (3, "In 3 days"),
        (6, "In 6 days"),
        (7, "In 1 week"),
        (10, "In 2 weeks"),
        (29, "In 5 weeks"),
        (30, "In 1 month"),
        (45, "In 2 months"),
    ],
)
def test_relative_label(days, label):
    now = utc(2024, 1, 10, 12)

    assert timezone_service.relative_label(now + timedelta(days=days), now, "UTC") == label


def test_relative_label_uses_local_calendar_days():
    now = utc(2024, 1, 10, 23)
    instant = utc(2024, 1, 11, 1)

    assert timezone_service.relative_label(instant, now, "UTC") == "Tomorrow"
    # Both are still January 10 in New York
    assert timezone_service.relative_label(instant, now, NEW_YORK) == "Today"


def test_format_time_12h():
    assert timezone_service.format_time_12h("09:00") == "9:00 AM"
    assert timezone_service.format_time_12h("13:05") == "1:05 PM"
    assert timezone_service.format_time_12h("00:30") == "12:30 AM"


def test_format_schedule_recurring():
    biweekly = make_definition(
        frequency=Frequency(type="weekly", interval=2, days_of_week=[1, 3])
    )
    monthly = make_definition(
        start_time="18:00", frequency=Frequency(type="monthly", days_of_month=[1, 15])
    )
    yearly = make_definition(start_date=date(2024, 3, 31), frequency=Frequency(type="yearly"))
    daily = make_definition(frequency=Frequency(type="daily"))

    assert timezone_service.format_schedule(biweekly) == "Every 2 weeks on Mon, Wed at 9:00 AM"
    assert timezone_service.format_schedule(monthly) == "Every month on days 1, 15 at 6:00 PM"
    assert timezone_service.format_schedule(yearly) == "Every year on Mar 31 at 9:00 AM"
    assert timezone_service.format_schedule(daily) == "Every day at 9:00 AM"


def test_format_schedule_one_time():
    named = make_definition(
        type="one-time", name="Christmas", start_date=date(2024, 12, 25), start_time="18:30"
    )
    unnamed = make_definition(type="one-time", start_date=date(2024, 12, 25))

    assert timezone_service.format_schedule(named) == "Christmas (2024-12-25 at 6:30 PM)"
    assert timezone_service.format_schedule(unnamed) == "Once on 2024-12-25 at 9:00 AM"
