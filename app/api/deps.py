# app/api/deps.py
"""
FastAPI dependencies for ContactHub.

Provides dependency functions for database sessions and service injection
for API routes.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

# Database session provider
from app.db.session import get_db

# --- Services ---
from app.services.group_service import GroupService
from app.services.holiday_service import HolidayService
from app.services.occurrence_service import OccurrenceService
from app.services.schedule_service import ScheduleService

logger = logging.getLogger(__name__)


# --- Database Session Dependency ---
# get_db is imported from app.db.session

# --- Service Dependencies ---
def get_group_service(db: Session = Depends(get_db)) -> GroupService:
    return GroupService(db)


def get_schedule_service(db: Session = Depends(get_db)) -> ScheduleService:
    return ScheduleService(db)


def get_occurrence_service(db: Session = Depends(get_db)) -> OccurrenceService:
    return OccurrenceService(db)


def get_holiday_service() -> HolidayService:
    return HolidayService()
