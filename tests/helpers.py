# tests/helpers.py
from datetime import datetime, date, timezone

from app.schemas.schedule import ScheduleDefinition


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_definition(**kwargs) -> ScheduleDefinition:
    """Recurring definition in UTC starting 2024-01-01 at 09:00 unless overridden."""
    values = {
        "type": "recurring",
        "start_date": date(2024, 1, 1),
        "start_time": "09:00",
        "timezone": "UTC",
    }
    values.update(kwargs)
    return ScheduleDefinition(**values)
