# app/schemas/schedule.py
"""
Schedule schemas for the ContactHub API.

This module contains Pydantic models for schedules: the frequency rule,
per-occurrence overrides, create/update payloads and responses. The
ScheduleDefinition model is also the input of the recurrence engine, so a
persisted schedule and an unsaved preview go through the same code path.
"""

from datetime import datetime, date
from typing import List, Optional, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.db.models.enums import DeliveryChannel, FrequencyType, ScheduleType


def parse_date_string(value: Any) -> Any:
    """Accept full ISO datetimes where a date is expected."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return value.split("T", 1)[0]
    return value


def _check_range(values: List[int], low: int, high: int, field_name: str) -> List[int]:
    for value in values:
        if value < low or value > high:
            raise ValueError(f"{field_name} values must be between {low} and {high}")
    return sorted(set(values))


class Frequency(BaseModel):
    """Recurrence rule of a recurring schedule. Weekdays are 0=Sunday..6=Saturday."""

    type: FrequencyType = Field(..., description="daily, weekly, monthly or yearly")
    interval: int = Field(1, ge=1, description="Step between occurrences, in units of type")
    days_of_week: List[int] = Field(default_factory=list, description="Weekdays for weekly rules")
    days_of_month: List[int] = Field(default_factory=list, description="Days for monthly rules")
    months_of_year: List[int] = Field(
        default_factory=list, description="Optional month filter for monthly and yearly rules"
    )

    @field_validator("days_of_week")
    @classmethod
    def validate_days_of_week(cls, v):
        return _check_range(v, 0, 6, "days_of_week")

    @field_validator("days_of_month")
    @classmethod
    def validate_days_of_month(cls, v):
        return _check_range(v, 1, 31, "days_of_month")

    @field_validator("months_of_year")
    @classmethod
    def validate_months_of_year(cls, v):
        return _check_range(v, 1, 12, "months_of_year")


class OccurrenceOverride(BaseModel):
    """Replacement of one occurrence of a recurring schedule."""

    original_date: date = Field(..., description="Date of the occurrence being replaced")
    new_date: date = Field(..., description="Local date of the replacement")
    new_time: Optional[str] = Field(None, description="Local HH:MM of the replacement")
    message: Optional[str] = Field(None, description="Message for this occurrence only")

    @field_validator("original_date", "new_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return parse_date_string(v)


class ScheduleBase(BaseModel):
    """Base schema for schedule data."""

    type: ScheduleType = Field(ScheduleType.ONE_TIME, description="one-time or recurring")
    name: Optional[str] = Field(None, max_length=200, description="Display name")
    start_date: date = Field(..., description="First (or only) occurrence date")
    start_time: Optional[str] = Field(None, description="Local wall-clock time HH:MM")
    end_date: Optional[date] = Field(None, description="Last possible date, inclusive")
    frequency: Optional[Frequency] = Field(None, description="Recurrence rule")
    exceptions: List[date] = Field(default_factory=list, description="Suppressed dates")
    enabled: bool = Field(True, description="Whether the schedule produces occurrences")
    timezone: Optional[str] = Field(None, description="IANA timezone of the schedule")
    message: Optional[str] = Field(None, description="Message template")
    channels: List[DeliveryChannel] = Field(
        default_factory=list, description="Delivery channels"
    )

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return parse_date_string(v)

    @field_validator("exceptions", mode="before")
    @classmethod
    def parse_exceptions(cls, v):
        if v is None:
            return []
        return [parse_date_string(item) for item in v]


class ScheduleCreate(ScheduleBase):
    """Schema for creating a new schedule."""

    pass


class ScheduleUpdate(BaseModel):
    """Schema for updating schedule information."""

    type: Optional[ScheduleType] = None
    name: Optional[str] = Field(None, max_length=200)
    start_date: Optional[date] = None
    start_time: Optional[str] = None
    end_date: Optional[date] = None
    frequency: Optional[Frequency] = None
    exceptions: Optional[List[date]] = None
    enabled: Optional[bool] = None
    timezone: Optional[str] = None
    message: Optional[str] = None
    channels: Optional[List[DeliveryChannel]] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return parse_date_string(v)


class ScheduleDefinition(ScheduleBase):
    """
    Everything the recurrence engine needs to know about a schedule.

    Built from a persisted Schedule with model_validate(..., from_attributes=True)
    or posted directly for a live preview.
    """

    id: Optional[str] = None
    group_id: Optional[str] = None
    overrides: List[OccurrenceOverride] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @field_validator("overrides", mode="before")
    @classmethod
    def parse_overrides(cls, v):
        return v or []


class ScheduleResponse(ScheduleBase):
    """Schema for schedule responses."""

    id: str
    group_id: str
    overrides: List[OccurrenceOverride] = Field(default_factory=list)
    summary: Optional[str] = Field(None, description="Human readable description")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("overrides", mode="before")
    @classmethod
    def parse_overrides(cls, v):
        return v or []
