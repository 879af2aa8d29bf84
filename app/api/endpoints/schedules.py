# app/api/endpoints/schedules.py
"""
Schedule API endpoints for ContactHub.

This module provides endpoints for reading, updating and deleting
schedules, previewing unsaved definitions, listing the next occurrences
of a schedule and editing occurrences.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status

from app.api.deps import get_occurrence_service, get_schedule_service
from app.schemas.occurrence import (
    OccurrenceEditRequest,
    OccurrenceEditResult,
    OccurrenceResponse,
)
from app.schemas.schedule import ScheduleDefinition, ScheduleResponse, ScheduleUpdate
from app.services.occurrence_service import OccurrenceService
from app.services.schedule_service import ScheduleService, schedule_to_response

router = APIRouter()


@router.post("/preview", response_model=List[OccurrenceResponse])
def preview_schedule(
    *,
    definition: ScheduleDefinition,
    count: int = Query(5, ge=1, le=100, description="Number of occurrences"),
    now: Optional[datetime] = Query(None, description="Reference time, defaults to now"),
    owner_timezone: Optional[str] = Query(None, description="Fallback IANA timezone"),
    occurrence_service: OccurrenceService = Depends(get_occurrence_service),
):
    """
    Live preview of the next occurrences of an unsaved schedule.

    Degenerate definitions are not rejected here; they simply preview
    no occurrences.
    """
    return occurrence_service.preview(
        definition, count=count, now=now, owner_timezone=owner_timezone
    )


@router.get("/{schedule_id}", response_model=ScheduleResponse)
def get_schedule(
    *,
    schedule_id: str = Path(..., description="The ID of the schedule to retrieve"),
    schedule_service: ScheduleService = Depends(get_schedule_service),
):
    """
    Get a schedule by ID.
    """
    return schedule_to_response(schedule_service.get_entity_or_404(schedule_id))


@router.patch("/{schedule_id}", response_model=ScheduleResponse)
def update_schedule(
    *,
    schedule_id: str = Path(..., description="The ID of the schedule to update"),
    schedule_in: ScheduleUpdate,
    schedule_service: ScheduleService = Depends(get_schedule_service),
):
    """
    Update a schedule. The merged result is validated as a whole.
    """
    schedule = schedule_service.update_schedule(schedule_id, schedule_in)
    return schedule_to_response(schedule)


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule(
    *,
    schedule_id: str = Path(..., description="The ID of the schedule to delete"),
    schedule_service: ScheduleService = Depends(get_schedule_service),
):
    """
    Delete a schedule.
    """
    schedule_service.delete_schedule(schedule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{schedule_id}/occurrences", response_model=List[OccurrenceResponse])
def list_schedule_occurrences(
    *,
    schedule_id: str = Path(..., description="The ID of the schedule"),
    count: int = Query(5, ge=1, le=100, description="Number of occurrences"),
    now: Optional[datetime] = Query(None, description="Reference time, defaults to now"),
    occurrence_service: OccurrenceService = Depends(get_occurrence_service),
):
    """
    Next occurrences of a stored schedule.
    """
    return occurrence_service.schedule_occurrences(schedule_id, count=count, now=now)


@router.post("/{schedule_id}/occurrences/edit", response_model=OccurrenceEditResult)
def edit_schedule_occurrence(
    *,
    schedule_id: str = Path(..., description="The ID of the schedule"),
    edit_in: OccurrenceEditRequest,
    occurrence_service: OccurrenceService = Depends(get_occurrence_service),
):
    """
    Edit one occurrence (scope=this) or the series from it on (scope=following).

    Returns:
        The edited schedule and, for a split series, the new schedule
    """
    return occurrence_service.edit_occurrence(schedule_id, edit_in)
