# app/services/occurrence_service.py
"""
Occurrence aggregation and editing for ContactHub.

Merges the next occurrences of many schedules into one "upcoming" list for
the dashboard, and applies user edits to single occurrences or to the rest
of a series.
"""

import logging
from datetime import datetime, date, timedelta, timezone
from typing import List, NamedTuple, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.events import global_event_bus, OccurrenceEdited
from app.core.exceptions import BusinessRuleException, EntityNotFoundException
from app.db.models.enums import FrequencyType, OccurrenceEditScope, ScheduleType
from app.db.models.schedule import Schedule
from app.repositories.schedule_repository import ScheduleRepository
from app.schemas.occurrence import (
    OccurrenceEditRequest,
    OccurrenceEditResult,
    OccurrenceResponse,
)
from app.schemas.schedule import OccurrenceOverride, ScheduleDefinition
from app.services import timezone_service
from app.services.recurrence_service import Fire, RecurrenceService, as_definition
from app.services.schedule_service import ScheduleService, schedule_to_response

logger = logging.getLogger(__name__)


class TaggedSchedule(NamedTuple):
    """A schedule definition with the group information shown next to it."""

    definition: ScheduleDefinition
    group_id: Optional[str] = None
    group_name: Optional[str] = None
    owner_timezone: Optional[str] = None
    default_message: Optional[str] = None


def tag_schedule(schedule: Schedule) -> TaggedSchedule:
    """Build a TaggedSchedule from a stored schedule and its group."""
    group = schedule.group
    return TaggedSchedule(
        definition=as_definition(schedule),
        group_id=schedule.group_id,
        group_name=group.name if group else None,
        owner_timezone=group.owner_timezone if group else None,
        default_message=group.default_message if group else None,
    )


def aggregate_occurrences(
    schedules: List[TaggedSchedule],
    limit: int,
    now: datetime,
    recurrence: Optional[RecurrenceService] = None,
    display_timezone: Optional[str] = None,
) -> List[OccurrenceResponse]:
    """
    Merge the next occurrences of several schedules.

    Each schedule contributes at most limit occurrences; the merged list is
    ordered by instant, ties broken by schedule ID, and cut to limit.

    Args:
        schedules: Schedules to merge, already filtered to enabled groups
        limit: Maximum number of occurrences returned
        now: Reference instant
        recurrence: Engine to use, a default one if omitted
        display_timezone: Zone to project into instead of each schedule's own

    Returns:
        Decorated occurrences in non-decreasing instant order
    """
    if limit <= 0:
        return []

    recurrence = recurrence or RecurrenceService()
    now = timezone_service.ensure_aware(now)

    merged = []
    for tagged in schedules:
        fires = recurrence.next_fires(
            tagged.definition, now, limit, tz=tagged.owner_timezone
        )
        merged.extend((fire, tagged) for fire in fires)

    merged.sort(key=lambda item: (item[0].instant, item[1].definition.id or ""))

    results = []
    for fire, tagged in merged[:limit]:
        definition = tagged.definition
        zone = display_timezone or timezone_service.resolve_timezone(
            definition.timezone, tagged.owner_timezone
        )
        projection = timezone_service.to_local(fire.instant, zone)
        results.append(
            OccurrenceResponse(
                schedule_id=definition.id,
                group_id=tagged.group_id,
                group_name=tagged.group_name,
                schedule_name=definition.name or timezone_service.format_schedule(definition),
                instant=fire.instant,
                local_date=projection.date_string,
                local_time=projection.time_string,
                timezone=zone,
                label=timezone_service.relative_label(fire.instant, now, zone),
                message=fire.message or tagged.default_message,
            )
        )
    return results


def _shift_frequency(definition: ScheduleDefinition, old: date, new: date):
    """
    Move the weekday or day-of-month of a series along with an edited occurrence.

    Daily and yearly rules are anchored on start_date and need no change.
    """
    frequency = definition.frequency
    if frequency is None or old == new:
        return frequency

    if frequency.type == FrequencyType.WEEKLY:
        delta = (new - old).days
        days = sorted({(d + delta) % 7 for d in frequency.days_of_week})
        return frequency.model_copy(update={"days_of_week": days})

    if frequency.type == FrequencyType.MONTHLY and old.day != new.day:
        days = sorted(
            {new.day if d == old.day else d for d in frequency.days_of_month}
        )
        return frequency.model_copy(update={"days_of_month": days})

    if frequency.type == FrequencyType.YEARLY and frequency.months_of_year and old.month != new.month:
        months = sorted(
            {new.month if m == old.month else m for m in frequency.months_of_year}
        )
        return frequency.model_copy(update={"months_of_year": months})

    return frequency


class OccurrenceService:
    """
    Service for reading and editing occurrences of stored schedules.

    Occurrences are never stored; they are recomputed from the schedules on
    every call.
    """

    def __init__(
        self,
        session: Session,
        recurrence: Optional[RecurrenceService] = None,
        schedule_service: Optional[ScheduleService] = None,
        event_bus=None,
    ):
        self.session = session
        self.recurrence = recurrence or RecurrenceService()
        self.schedule_repository = ScheduleRepository(session)
        self.schedule_service = schedule_service or ScheduleService(session)
        self.event_bus = event_bus or global_event_bus

    def _get_schedule(self, schedule_id: str) -> Schedule:
        schedule = self.schedule_repository.get_by_id(schedule_id)
        if not schedule:
            raise EntityNotFoundException("Schedule", schedule_id)
        return schedule

    def upcoming(
        self,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
        display_timezone: Optional[str] = None,
    ) -> List[OccurrenceResponse]:
        """
        Next occurrences across all enabled schedules of enabled groups.

        Args:
            limit: Maximum number of occurrences, UPCOMING_DEFAULT_LIMIT if omitted
            now: Reference instant, the current time if omitted
            display_timezone: Viewer's zone for dates, times and labels

        Returns:
            Merged occurrences, earliest first
        """
        if display_timezone:
            timezone_service.get_zone(display_timezone)
        if limit is None:
            limit = settings.UPCOMING_DEFAULT_LIMIT
        limit = min(limit, settings.UPCOMING_MAX_LIMIT)
        now = now or datetime.now(timezone.utc)

        schedules = [tag_schedule(s) for s in self.schedule_repository.list_active()]
        return aggregate_occurrences(
            schedules, limit, now, self.recurrence, display_timezone
        )

    def schedule_occurrences(
        self, schedule_id: str, count: int = 5, now: Optional[datetime] = None
    ) -> List[OccurrenceResponse]:
        """
        Next occurrences of one stored schedule.

        Disabled schedules and schedules of disabled groups yield nothing.

        Raises:
            EntityNotFoundException: If the schedule does not exist
        """
        schedule = self._get_schedule(schedule_id)
        if schedule.group is not None and not schedule.group.enabled:
            return []
        now = now or datetime.now(timezone.utc)
        return aggregate_occurrences([tag_schedule(schedule)], count, now, self.recurrence)

    def preview(
        self,
        definition: ScheduleDefinition,
        count: int = 5,
        now: Optional[datetime] = None,
        owner_timezone: Optional[str] = None,
    ) -> List[OccurrenceResponse]:
        """Next occurrences of an unsaved definition."""
        if definition.timezone:
            timezone_service.get_zone(definition.timezone)
        now = now or datetime.now(timezone.utc)
        tagged = TaggedSchedule(definition=definition, owner_timezone=owner_timezone)
        return aggregate_occurrences([tagged], count, now, self.recurrence)

    def edit_occurrence(
        self, schedule_id: str, request: OccurrenceEditRequest
    ) -> OccurrenceEditResult:
        """
        Edit one occurrence of a schedule, or the series from it onwards.

        The new date and time are read in the schedule's effective zone.
        scope=this records an override for the single occurrence and leaves
        the series untouched. scope=following ends the series the day before
        the occurrence and starts a new schedule at the new date. One-time
        schedules are rewritten in place whatever the scope.

        Args:
            schedule_id: ID of the schedule
            request: The edit

        Returns:
            The edited schedule and, for a split series, the new schedule

        Raises:
            EntityNotFoundException: If the schedule does not exist
            BusinessRuleException: If the occurrence does not exist or the
                occurrence or its replacement is not in the future
        """
        schedule = self._get_schedule(schedule_id)
        owner_timezone = schedule.group.owner_timezone if schedule.group else None
        definition = as_definition(schedule)
        zone = timezone_service.resolve_timezone(definition.timezone, owner_timezone)
        now = timezone_service.ensure_aware(request.now or datetime.now(timezone.utc))

        fire = self._find_occurrence(definition, request, zone, owner_timezone)
        if fire is None:
            raise BusinessRuleException(
                f"Schedule has no occurrence on {request.occurrence_date.isoformat()}",
                "occurrence_exists",
            )
        if fire.instant <= now:
            raise BusinessRuleException(
                "Only future occurrences can be edited", "future_occurrence"
            )

        new_instant = timezone_service.to_instant(
            request.new_date.isoformat(), request.new_time, zone
        )
        if new_instant <= now:
            raise BusinessRuleException(
                "The new date and time must be in the future", "future_occurrence"
            )

        new_schedule = None
        if definition.type == ScheduleType.ONE_TIME:
            updated = definition.model_copy(
                update={
                    "start_date": request.new_date,
                    "start_time": request.new_time,
                    "message": request.message if request.message is not None else definition.message,
                }
            )
            schedule = self.schedule_service.save_definition(
                schedule, updated, changed=["start_date", "start_time", "message"]
            )
        elif request.scope == OccurrenceEditScope.THIS:
            schedule = self._override_one(schedule, definition, fire, request)
        else:
            schedule, new_schedule = self._split_series(schedule, definition, request)

        self.event_bus.publish(
            OccurrenceEdited(
                schedule_id=schedule.id,
                original_date=request.occurrence_date,
                new_date=request.new_date,
                scope=request.scope.value,
                new_schedule_id=new_schedule.id if new_schedule else None,
            )
        )
        logger.info(
            f"Edited occurrence {request.occurrence_date} of schedule {schedule.id} "
            f"(scope={request.scope.value})"
        )

        return OccurrenceEditResult(
            scope=request.scope,
            schedule=schedule_to_response(schedule),
            new_schedule=schedule_to_response(new_schedule) if new_schedule else None,
        )

    def _find_occurrence(self, definition, request, zone, owner_timezone) -> Optional[Fire]:
        """The fire being edited; occurrence_time picks among fires sharing a date."""
        fires = self.recurrence.fires_for_day(
            definition, request.occurrence_date, owner_timezone
        )
        if request.occurrence_time is None:
            return fires[0] if fires else None

        timezone_service.parse_time(request.occurrence_time)
        for fire in fires:
            if timezone_service.to_local(fire.instant, zone).time_string == request.occurrence_time:
                return fire
        return None

    def _override_one(self, schedule, definition, fire, request) -> Schedule:
        overrides = list(definition.overrides)
        original_date = request.occurrence_date
        if fire.is_override:
            # Editing an already moved occurrence keeps its original date
            for existing in overrides:
                if existing.new_date == request.occurrence_date:
                    original_date = existing.original_date
                    overrides.remove(existing)
                    break

        overrides.append(
            OccurrenceOverride(
                original_date=original_date,
                new_date=request.new_date,
                new_time=request.new_time,
                message=request.message,
            )
        )
        updated = definition.model_copy(update={"overrides": overrides})
        return self.schedule_service.save_definition(schedule, updated, changed=["overrides"])

    def _split_series(self, schedule, definition, request):
        occurrence_date = request.occurrence_date
        frequency = _shift_frequency(definition, occurrence_date, request.new_date)
        message = request.message if request.message is not None else definition.message

        if occurrence_date <= definition.start_date:
            # Editing from the first occurrence rewrites the whole series
            updated = definition.model_copy(
                update={
                    "start_date": request.new_date,
                    "start_time": request.new_time,
                    "message": message,
                    "frequency": frequency,
                }
            )
            schedule = self.schedule_service.save_definition(
                schedule, updated, changed=["start_date", "start_time", "message", "frequency"]
            )
            return schedule, None

        head = definition.model_copy(
            update={
                "end_date": occurrence_date - timedelta(days=1),
                "overrides": [o for o in definition.overrides if o.original_date < occurrence_date],
            }
        )
        tail = definition.model_copy(
            update={
                "id": None,
                "start_date": request.new_date,
                "start_time": request.new_time,
                "message": message,
                "frequency": frequency,
                "exceptions": [d for d in definition.exceptions if d >= request.new_date],
                "overrides": [o for o in definition.overrides if o.original_date > occurrence_date],
            }
        )

        with self.schedule_service.transaction():
            schedule = self.schedule_service.save_definition(
                schedule, head, changed=["end_date", "overrides"]
            )
            new_schedule = self.schedule_service.create_from_definition(
                schedule.group_id, tail
            )
        return schedule, new_schedule
