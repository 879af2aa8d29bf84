# app/schemas/holiday.py
"""
Holiday schemas for the ContactHub API.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class HolidayResponse(BaseModel):
    """A holiday resolved to a concrete date."""

    key: str = Field(..., description="Holiday key, e.g. 'mothers-day'")
    label: str = Field(..., description="Display label, e.g. \"Mother's Day\"")
    date: date


class HolidayLookupResponse(BaseModel):
    """Reverse lookup of a date; key and label are None when nothing matches."""

    date: date
    key: Optional[str] = None
    label: Optional[str] = None
