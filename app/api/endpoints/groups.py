# app/api/endpoints/groups.py
"""
Group API endpoints for ContactHub.

This module provides endpoints for managing contact groups and for
creating and listing the schedules that belong to a group.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status

from app.api.deps import get_group_service, get_schedule_service
from app.schemas.group import GroupCreate, GroupResponse, GroupUpdate
from app.schemas.schedule import ScheduleCreate, ScheduleResponse
from app.services.group_service import GroupService
from app.services.schedule_service import ScheduleService, schedule_to_response

router = APIRouter()


@router.get("/", response_model=List[GroupResponse])
def list_groups(
    *,
    group_service: GroupService = Depends(get_group_service),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of records to return"),
    enabled: Optional[bool] = Query(None, description="Filter by enabled status"),
):
    """
    List groups with optional filtering and pagination.
    """
    return group_service.list_groups(skip=skip, limit=limit, enabled=enabled)


@router.post("/", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
def create_group(
    *,
    group_in: GroupCreate,
    group_service: GroupService = Depends(get_group_service),
):
    """
    Create a new group.

    Args:
        group_in: Group data for creation
        group_service: Group service

    Returns:
        Created group
    """
    return group_service.create_group(group_in)


@router.get("/{group_id}", response_model=GroupResponse)
def get_group(
    *,
    group_id: str = Path(..., description="The ID of the group to retrieve"),
    group_service: GroupService = Depends(get_group_service),
):
    """
    Get a group by ID.

    Raises:
        HTTPException: If the group doesn't exist
    """
    group = group_service.get_by_id(group_id)
    if not group:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Group with ID {group_id} not found",
        )
    return group


@router.patch("/{group_id}", response_model=GroupResponse)
def update_group(
    *,
    group_id: str = Path(..., description="The ID of the group to update"),
    group_in: GroupUpdate,
    group_service: GroupService = Depends(get_group_service),
):
    """
    Update a group.
    """
    return group_service.update_group(group_id, group_in)


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_group(
    *,
    group_id: str = Path(..., description="The ID of the group to delete"),
    group_service: GroupService = Depends(get_group_service),
):
    """
    Delete a group together with its schedules.
    """
    group_service.delete_group(group_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{group_id}/schedules", response_model=List[ScheduleResponse])
def list_group_schedules(
    *,
    group_id: str = Path(..., description="The ID of the group"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    schedule_service: ScheduleService = Depends(get_schedule_service),
):
    """
    List the schedules of a group, earliest start date first.
    """
    schedules = schedule_service.list_group_schedules(group_id, skip=skip, limit=limit)
    return [schedule_to_response(s) for s in schedules]


@router.post(
    "/{group_id}/schedules",
    response_model=ScheduleResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_group_schedule(
    *,
    group_id: str = Path(..., description="The ID of the group"),
    schedule_in: ScheduleCreate,
    schedule_service: ScheduleService = Depends(get_schedule_service),
):
    """
    Create a schedule for a group.

    Args:
        group_id: ID of the owning group
        schedule_in: Schedule definition
        schedule_service: Schedule service

    Returns:
        Created schedule with its summary
    """
    schedule = schedule_service.create_schedule(group_id, schedule_in)
    return schedule_to_response(schedule)
