# app/api/endpoints/occurrences.py
"""
Upcoming occurrence endpoints for ContactHub.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_occurrence_service
from app.core.config import settings
from app.schemas.occurrence import OccurrenceResponse
from app.services.occurrence_service import OccurrenceService

router = APIRouter()


@router.get("/upcoming", response_model=List[OccurrenceResponse])
def list_upcoming_occurrences(
    *,
    limit: int = Query(
        settings.UPCOMING_DEFAULT_LIMIT,
        ge=1,
        le=settings.UPCOMING_MAX_LIMIT,
        description="Maximum number of occurrences",
    ),
    now: Optional[datetime] = Query(None, description="Reference time, defaults to now"),
    timezone: Optional[str] = Query(None, description="Viewer's IANA timezone"),
    occurrence_service: OccurrenceService = Depends(get_occurrence_service),
):
    """
    Next occurrences across all enabled schedules of enabled groups.

    Ordered by time; schedules firing at the same instant are ordered by
    schedule ID.
    """
    return occurrence_service.upcoming(limit=limit, now=now, display_timezone=timezone)
