# app/api/endpoints/holidays.py
"""
Holiday API endpoints for ContactHub.

Backs the holiday picker: listing supported holidays, resolving one to
its next date, reverse lookup of a date and seeding a one-time schedule.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query

from app.api.deps import get_holiday_service
from app.schemas.holiday import HolidayLookupResponse, HolidayResponse
from app.schemas.schedule import ScheduleCreate
from app.services.holiday_service import HolidayService

router = APIRouter()


@router.get("/", response_model=List[HolidayResponse])
def list_holidays(
    *,
    year: Optional[int] = Query(None, ge=1583, le=9999, description="Year, defaults to the current year"),
    holiday_service: HolidayService = Depends(get_holiday_service),
):
    """
    All supported holidays of a year, in date order.
    """
    return holiday_service.list_holidays(year or date.today().year)


@router.get("/lookup", response_model=HolidayLookupResponse)
def lookup_holiday(
    *,
    day: date = Query(..., alias="date", description="Date to look up"),
    holiday_service: HolidayService = Depends(get_holiday_service),
):
    """
    Which holiday, if any, falls on a date.
    """
    key = holiday_service.holiday_for_date(day)
    return HolidayLookupResponse(
        date=day,
        key=key,
        label=holiday_service.label_for_key(key) if key else None,
    )


@router.get("/{key}", response_model=HolidayResponse)
def resolve_holiday(
    *,
    key: str = Path(..., description="Holiday key, e.g. 'thanksgiving'"),
    year: Optional[int] = Query(None, ge=1583, le=9999, description="Target year"),
    today: Optional[date] = Query(None, description="Reference date, defaults to today"),
    holiday_service: HolidayService = Depends(get_holiday_service),
):
    """
    Resolve a holiday to a date.

    Without a year, or for the current year, a holiday that has already
    passed resolves to next year's date.
    """
    resolved = holiday_service.resolve(key, year=year, today=today)
    return HolidayResponse(key=key, label=holiday_service.label_for_key(key), date=resolved)


@router.post("/{key}/seed", response_model=ScheduleCreate)
def seed_holiday_schedule(
    *,
    key: str = Path(..., description="Holiday key"),
    today: Optional[date] = Query(None, description="Reference date, defaults to today"),
    start_time: Optional[str] = Query(None, description="Wall-clock time HH:MM"),
    holiday_service: HolidayService = Depends(get_holiday_service),
):
    """
    Draft (not saved) a one-time schedule on the next occurrence of a holiday.
    """
    return holiday_service.seed_schedule(key, today=today, start_time=start_time)
