# app/services/schedule_service.py
"""
Service layer for message schedules.

Owns save-time validation: the recurrence engine is lenient and simply
yields nothing for degenerate definitions, so anything a user could save
by mistake is rejected here with a field-level error.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from app.core.events import (
    global_event_bus,
    ScheduleCreated,
    ScheduleDeleted,
    ScheduleUpdated,
)
from app.core.exceptions import EntityNotFoundException, ValidationException
from app.db.models.enums import FrequencyType, ScheduleType
from app.db.models.schedule import Schedule
from app.repositories.group_repository import GroupRepository
from app.repositories.schedule_repository import ScheduleRepository
from app.schemas.schedule import (
    ScheduleCreate,
    ScheduleDefinition,
    ScheduleResponse,
    ScheduleUpdate,
)
from app.services.base_service import BaseService
from app.services import timezone_service
from app.services.recurrence_service import as_definition

logger = logging.getLogger(__name__)


def validate_definition(definition: ScheduleDefinition) -> None:
    """
    Reject schedule definitions that could never fire as intended.

    Raises:
        InvalidTimezoneException: If the timezone is not an IANA zone
        ValidationException: With per-field messages for everything else
    """
    if definition.timezone:
        timezone_service.get_zone(definition.timezone)

    errors: Dict[str, List[str]] = {}

    if definition.start_time is not None and not timezone_service.is_valid_time(
        definition.start_time
    ):
        errors.setdefault("start_time", []).append("Time must be HH:MM in 24 hour format")

    if definition.type == ScheduleType.RECURRING:
        if definition.end_date is not None and definition.end_date < definition.start_date:
            errors.setdefault("end_date", []).append(
                "End date must be on or after the start date"
            )

        frequency = definition.frequency
        if frequency is None:
            errors.setdefault("frequency", []).append(
                "Recurring schedules need a frequency"
            )
        elif frequency.type == FrequencyType.WEEKLY and not frequency.days_of_week:
            errors.setdefault("frequency.days_of_week", []).append(
                "Weekly schedules need at least one day of the week"
            )
        elif frequency.type == FrequencyType.MONTHLY and not frequency.days_of_month:
            errors.setdefault("frequency.days_of_month", []).append(
                "Monthly schedules need at least one day of the month"
            )

    if errors:
        message = "; ".join(m for messages in errors.values() for m in messages)
        raise ValidationException(message, errors)


def definition_to_columns(definition: ScheduleDefinition) -> Dict[str, Any]:
    """Column values of a definition, with JSON columns in JSON form."""
    return {
        "type": definition.type.value,
        "name": definition.name,
        "start_date": definition.start_date,
        "start_time": definition.start_time,
        "end_date": definition.end_date,
        "frequency": (
            definition.frequency.model_dump(mode="json") if definition.frequency else None
        ),
        "exceptions": sorted({d.isoformat() for d in definition.exceptions}),
        "overrides": [o.model_dump(mode="json") for o in definition.overrides],
        "enabled": definition.enabled,
        "timezone": definition.timezone,
        "message": definition.message,
        "channels": [c.value for c in definition.channels],
    }


def schedule_to_response(schedule: Schedule) -> ScheduleResponse:
    """Response model of a schedule with its human readable summary."""
    response = ScheduleResponse.model_validate(schedule, from_attributes=True)
    response.summary = timezone_service.format_schedule(response)
    return response


class ScheduleService(BaseService[Schedule]):
    """
    Service for managing schedules.

    Publishes ScheduleCreated, ScheduleUpdated and ScheduleDeleted events.
    """

    def __init__(
        self,
        session: Session,
        repository: Optional[ScheduleRepository] = None,
        group_repository: Optional[GroupRepository] = None,
        event_bus=None,
    ):
        super().__init__(
            session,
            repository=repository or ScheduleRepository(session),
            event_bus=event_bus or global_event_bus,
        )
        self.group_repository = group_repository or GroupRepository(session)

    def _create_created_event(self, schedule: Schedule) -> ScheduleCreated:
        return ScheduleCreated(
            schedule_id=schedule.id, group_id=schedule.group_id, schedule_type=schedule.type
        )

    def _create_updated_event(self, schedule: Schedule, changes: Dict[str, Any]) -> ScheduleUpdated:
        return ScheduleUpdated(
            schedule_id=schedule.id, group_id=schedule.group_id, changes={"fields": sorted(changes)}
        )

    def _create_deleted_event(self, schedule: Schedule) -> ScheduleDeleted:
        return ScheduleDeleted(schedule_id=schedule.id, group_id=schedule.group_id)

    def list_group_schedules(self, group_id: str, skip: int = 0, limit: int = 100) -> List[Schedule]:
        """
        List the schedules of a group.

        Raises:
            EntityNotFoundException: If the group does not exist
        """
        if not self.group_repository.get_by_id(group_id):
            raise EntityNotFoundException("Group", group_id)
        return self.repository.list_by_group(group_id, skip=skip, limit=limit)

    def create_schedule(self, group_id: str, data: ScheduleCreate) -> Schedule:
        """
        Validate and store a new schedule for a group.

        Args:
            group_id: ID of the owning group
            data: Schedule payload

        Returns:
            The stored schedule

        Raises:
            EntityNotFoundException: If the group does not exist
            ValidationException: If the definition is invalid
            InvalidTimezoneException: If the timezone is unknown
        """
        if not self.group_repository.get_by_id(group_id):
            raise EntityNotFoundException("Group", group_id)

        definition = ScheduleDefinition(**data.model_dump(), group_id=group_id)
        validate_definition(definition)

        columns = definition_to_columns(definition)
        columns["group_id"] = group_id
        schedule = self._create_internal(columns)
        self._log_operation("create", "Schedule", schedule.id, {"group_id": group_id})
        return schedule

    def update_schedule(self, schedule_id: str, data: ScheduleUpdate) -> Schedule:
        """
        Apply a partial update to a schedule.

        The merged definition is validated as a whole, so an update that
        only moves start_date past end_date is rejected too.

        Raises:
            EntityNotFoundException: If the schedule does not exist
            ValidationException: If the merged definition is invalid
        """
        schedule = self.get_entity_or_404(schedule_id)
        changes = data.model_dump(exclude_unset=True)

        merged = as_definition(schedule).model_dump()
        merged.update(changes)
        try:
            definition = ScheduleDefinition.model_validate(merged)
        except PydanticValidationError as e:
            errors = {}
            for error in e.errors():
                field = ".".join(str(part) for part in error["loc"])
                errors.setdefault(field, []).append(error["msg"])
            raise ValidationException("Invalid schedule update", errors)
        return self.save_definition(schedule, definition, changed=list(changes))

    def save_definition(
        self, schedule: Schedule, definition: ScheduleDefinition, changed: Optional[List[str]] = None
    ) -> Schedule:
        """
        Validate a definition and write it over an existing schedule.

        Args:
            schedule: Stored schedule to overwrite
            definition: New definition
            changed: Names of the changed fields, for the update event

        Returns:
            The updated schedule
        """
        validate_definition(definition)
        columns = definition_to_columns(definition)
        if changed is not None:
            columns = {k: v for k, v in columns.items() if k in changed}

        updated = self._update_internal(schedule.id, columns)
        self._log_operation("update", "Schedule", schedule.id, {"fields": sorted(columns)})
        return updated

    def delete_schedule(self, schedule_id: str) -> None:
        """
        Delete a schedule.

        Raises:
            EntityNotFoundException: If the schedule does not exist
        """
        self.get_entity_or_404(schedule_id)
        self._delete_internal(schedule_id)
        self._log_operation("delete", "Schedule", schedule_id)

    def create_from_definition(self, group_id: str, definition: ScheduleDefinition) -> Schedule:
        """Store a definition as a new schedule of a group."""
        validate_definition(definition)
        columns = definition_to_columns(definition)
        columns["group_id"] = group_id
        schedule = self._create_internal(columns)
        self._log_operation("create", "Schedule", schedule.id, {"group_id": group_id})
        return schedule
