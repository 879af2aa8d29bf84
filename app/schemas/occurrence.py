# app/schemas/occurrence.py
"""
Occurrence schemas for the ContactHub API.

Occurrences are derived on every request and never stored.
"""

from datetime import datetime, date
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.db.models.enums import OccurrenceEditScope
from app.schemas.schedule import ScheduleResponse, parse_date_string


class OccurrenceResponse(BaseModel):
    """A concrete future occurrence of a schedule."""

    schedule_id: Optional[str] = None
    group_id: Optional[str] = None
    group_name: Optional[str] = None
    schedule_name: Optional[str] = None
    instant: datetime = Field(..., description="Absolute fire time with offset")
    local_date: str = Field(..., description="YYYY-MM-DD in the schedule's timezone")
    local_time: str = Field(..., description="HH:MM in the schedule's timezone")
    timezone: str
    label: str = Field(..., description="Relative day label, e.g. 'Tomorrow'")
    message: Optional[str] = None


class OccurrenceEditRequest(BaseModel):
    """Edit of one occurrence, or of the series from that occurrence on."""

    occurrence_date: date = Field(..., description="Local date of the occurrence to edit")
    occurrence_time: Optional[str] = Field(
        None, description="Local HH:MM of the occurrence when several land on that date"
    )
    new_date: date = Field(..., description="New local date")
    new_time: str = Field(..., description="New local time HH:MM")
    message: Optional[str] = None
    scope: OccurrenceEditScope = Field(OccurrenceEditScope.THIS)
    now: Optional[datetime] = Field(None, description="Reference time, defaults to the current time")

    @field_validator("occurrence_date", "new_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return parse_date_string(v)


class OccurrenceEditResult(BaseModel):
    """Outcome of an occurrence edit."""

    scope: OccurrenceEditScope
    schedule: ScheduleResponse
    new_schedule: Optional[ScheduleResponse] = None
