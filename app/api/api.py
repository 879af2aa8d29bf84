# app/api/api.py

from fastapi import APIRouter

from app.api.endpoints import (
    groups,
    holidays,
    occurrences,
    schedules,
)

api_router = APIRouter()

api_router.include_router(groups.router, prefix="/groups", tags=["Groups"])
api_router.include_router(schedules.router, prefix="/schedules", tags=["Schedules"])
api_router.include_router(occurrences.router, prefix="/occurrences", tags=["Occurrences"])
api_router.include_router(
    holidays.router,
    prefix="/holidays",
    tags=["Holidays"],
    responses={404: {"description": "Unknown holiday"}},
)
