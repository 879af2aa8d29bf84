# app/services/dispatch_service.py
"""
Dispatch of due schedules for ContactHub.

A periodic job calls DispatchService.run(). Each run finds the schedules
due on their local "today" whose fire time has passed, claims a durable
per-schedule per-day marker, composes the message and hands it to the
compose-and-send collaborator, one worker thread per group. The previous
local day is looked at too, so a fire later than the last run of a day is
caught up by the first run of the next one.

Idempotency rests on the dispatch_records table: a (schedule_id, fire_date)
row in state fired or skipped is never sent again, a fresh in_flight row
belongs to another run, and failed, released or stale rows are retried.
Delivery is at least once: a send that outlives its timeout is recorded as
failed and sent again by a later run even if it completed in the end.
"""

import logging
import re
import threading
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.events import global_event_bus, ScheduleDispatched, ScheduleDispatchFailed
from app.core.exceptions import DeliveryTimeoutException
from app.db.models.enums import DispatchState
from app.db.models.schedule import DispatchRecord, Schedule
from app.repositories.dispatch_record_repository import DispatchRecordRepository
from app.repositories.schedule_repository import ScheduleRepository
from app.schemas.dispatch import DeliveryReport
from app.services import timezone_service
from app.services.recurrence_service import Fire, RecurrenceService, as_definition

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")

# How often the run loop checks on groups that are still sending
_POLL_SECONDS = 0.05


class MessageSender(Protocol):
    """The compose-and-send collaborator."""

    def send(self, group_id: str, message_text: str, channels: List[str]) -> DeliveryReport:
        ...


class LoggingMessageSender:
    """
    Sender used when no delivery integration is configured.

    Logs the message and reports no recipients.
    """

    def send(self, group_id: str, message_text: str, channels: List[str]) -> DeliveryReport:
        logger.info(f"Message for group {group_id} via {channels or 'default channels'}: {message_text}")
        return DeliveryReport(group_id=group_id, recipients=[])


class TemplateMessageComposer:
    """Fills {{name}} placeholders; unknown placeholders are left as they are."""

    def compose(self, template: Optional[str], variables: Dict[str, Any]) -> str:
        if not template:
            return ""

        def replace(match):
            value = variables.get(match.group(1))
            return match.group(0) if value is None else str(value)

        return _PLACEHOLDER.sub(replace, template)




@dataclass
class DispatchSummary:
    """Counters of one dispatch run."""

    started_at: datetime
    considered: int = 0
    pending: int = 0
    already_handled: int = 0
    fired: int = 0
    skipped: int = 0
    failed: int = 0
    deferred: int = 0
    failed_groups: List[str] = field(default_factory=list)

    def add_failed_group(self, group_id: str) -> None:
        self.failed += 1
        if group_id not in self.failed_groups:
            self.failed_groups.append(group_id)

    def __str__(self) -> str:
        return (
            f"considered={self.considered} pending={self.pending} "
            f"already_handled={self.already_handled} fired={self.fired} "
            f"skipped={self.skipped} failed={self.failed} deferred={self.deferred}"
        )


@dataclass
class _Delivery:
    schedule_id: str
    group_id: str
    fire_date: date
    record: DispatchRecord
    message: str
    channels: List[str]

    @property
    def key(self) -> Tuple[str, date]:
        return self.schedule_id, self.fire_date


def _naive_utc(instant: datetime) -> datetime:
    return instant.astimezone(timezone.utc).replace(tzinfo=None)


class DispatchService:
    """
    Fires due schedules through a MessageSender.

    Runs in one process are serialised by a non-blocking lock; a run that
    finds the lock taken returns immediately.

    Each group's send timeout starts when its worker begins sending. Groups
    that never got a worker because every worker is held by a hung send are
    released and left for the next run.
    """

    _run_lock = threading.Lock()

    def __init__(
        self,
        session_factory: Callable[[], Session],
        sender: MessageSender,
        composer: Optional[TemplateMessageComposer] = None,
        recurrence: Optional[RecurrenceService] = None,
        event_bus=None,
        send_timeout: Optional[float] = None,
        claim_ttl_seconds: Optional[int] = None,
        max_workers: Optional[int] = None,
        catchup_minutes: Optional[int] = None,
    ):
        """
        Initialize the dispatch service.

        Args:
            session_factory: Callable returning a new database session
            sender: The compose-and-send collaborator
            composer: Template composer for messages
            recurrence: Recurrence engine
            event_bus: Bus for ScheduleDispatched and ScheduleDispatchFailed
            send_timeout: Seconds allowed for one group's send step
            claim_ttl_seconds: Age after which an in_flight marker is stale
            max_workers: Size of the send thread pool
            catchup_minutes: How late a previous day's fire may still be sent
        """
        self.session_factory = session_factory
        self.sender = sender
        self.composer = composer or TemplateMessageComposer()
        self.recurrence = recurrence or RecurrenceService()
        self.event_bus = event_bus or global_event_bus
        self.send_timeout = send_timeout or settings.DISPATCH_SEND_TIMEOUT_SECONDS
        self.claim_ttl = timedelta(
            seconds=claim_ttl_seconds or settings.DISPATCH_CLAIM_TTL_SECONDS
        )
        self.max_workers = max_workers or settings.DISPATCH_MAX_WORKERS
        # Never shorter than two ticks, or a late fire could fall between them
        self.catchup = timedelta(
            minutes=max(
                catchup_minutes or settings.DISPATCH_CATCHUP_MINUTES,
                2 * settings.DISPATCH_INTERVAL_MINUTES,
            )
        )

    def run(self, now: Optional[datetime] = None) -> Optional[DispatchSummary]:
        """
        Dispatch everything due at now.

        Args:
            now: Reference instant, the current time if omitted

        Returns:
            Summary of the run, or None if another run was in progress
        """
        if not self._run_lock.acquire(blocking=False):
            logger.info("Dispatch run already in progress, skipping")
            return None

        try:
            now = timezone_service.ensure_aware(now or datetime.now(timezone.utc))
            summary = self._run(now)
        finally:
            self._run_lock.release()

        logger.info(f"Dispatch run finished: {summary}")
        return summary

    def _run(self, now: datetime) -> DispatchSummary:
        summary = DispatchSummary(started_at=now)
        session = self.session_factory()
        try:
            records = DispatchRecordRepository(session)
            schedules = ScheduleRepository(session).list_active()
            deliveries: List[_Delivery] = []

            for schedule in schedules:
                summary.considered += 1
                schedule_id, group_id = schedule.id, schedule.group_id
                try:
                    deliveries.extend(self._prepare(schedule, records, now, summary))
                except Exception as e:
                    session.rollback()
                    summary.add_failed_group(group_id)
                    logger.error(
                        f"Preparing schedule {schedule_id} for dispatch failed: {e}",
                        exc_info=True,
                    )

            if deliveries:
                self._send_all(deliveries, records, summary)
        finally:
            session.close()
        return summary

    def _prepare(
        self,
        schedule: Schedule,
        records: DispatchRecordRepository,
        now: datetime,
        summary: DispatchSummary,
    ) -> List[_Delivery]:
        """Decide which of yesterday's and today's fires go out now and claim them."""
        group = schedule.group
        definition = as_definition(schedule)
        zone = timezone_service.resolve_timezone(definition.timezone, group.owner_timezone)
        today = timezone_service.local_date(now, zone)

        deliveries = []
        for day in (today - timedelta(days=1), today):
            fire = self.recurrence.fire_for_day(definition, day, group.owner_timezone)
            if fire is None:
                continue
            if fire.instant > now:
                summary.pending += 1
                continue

            existing = records.get_for_day(schedule.id, day)
            if day < today and existing is None and fire.instant < now - self.catchup:
                continue

            record = self._claim(records, schedule, day, now, existing)
            if record is None:
                if day == today:
                    summary.already_handled += 1
                continue

            delivery = self._compose(schedule, definition, fire, record, records, now, summary)
            if delivery is not None:
                deliveries.append(delivery)
        return deliveries

    def _compose(
        self,
        schedule: Schedule,
        definition,
        fire: Fire,
        record: DispatchRecord,
        records: DispatchRecordRepository,
        now: datetime,
        summary: DispatchSummary,
    ) -> Optional[_Delivery]:
        group = schedule.group
        message = self.composer.compose(
            fire.message or group.default_message,
            {
                "groupName": group.name,
                "scheduleName": definition.name
                or timezone_service.format_schedule(definition),
                "date": fire.fire_date.isoformat(),
            },
        )
        if not message.strip():
            records.mark(
                record, DispatchState.SKIPPED, _naive_utc(now), error="No message to send"
            )
            summary.skipped += 1
            logger.warning(
                f"Schedule {schedule.id} has no message for {fire.fire_date}, skipped"
            )
            return None

        return _Delivery(
            schedule_id=schedule.id,
            group_id=schedule.group_id,
            fire_date=fire.fire_date,
            record=record,
            message=message,
            channels=[c.value for c in definition.channels],
        )

    def _claim(
        self,
        records: DispatchRecordRepository,
        schedule: Schedule,
        day: date,
        now: datetime,
        existing: Optional[DispatchRecord],
    ) -> Optional[DispatchRecord]:
        """
        Claim the (schedule, day) marker.

        Returns:
            The claimed record, or None when the day is already handled or
            owned by another run
        """
        claimed_at = _naive_utc(now)
        if existing is None:
            return records.insert_claim(schedule.id, schedule.group_id, day, claimed_at)

        if existing.state in (DispatchState.FIRED.value, DispatchState.SKIPPED.value):
            return None
        if (
            existing.state == DispatchState.IN_FLIGHT.value
            and existing.claimed_at is not None
            and existing.claimed_at > claimed_at - self.claim_ttl
        ):
            return None

        logger.info(
            f"Retrying schedule {schedule.id} for {day} "
            f"(state={existing.state}, attempts={existing.attempts})"
        )
        return existing if records.reclaim(existing, claimed_at) else None

    def _send_group(
        self,
        group_id: str,
        items: List[_Delivery],
        results: Dict[Tuple[str, date], Any],
        started: Dict[str, float],
    ) -> None:
        """Worker: send each due message of one group. Never touches the database."""
        started[group_id] = time.monotonic()
        for item in items:
            try:
                report = self.sender.send(group_id, item.message, item.channels)
                if not isinstance(report, DeliveryReport):
                    report = DeliveryReport.model_validate(report)
                results[item.key] = report
            except Exception as e:
                results[item.key] = e

    def _send_all(
        self,
        deliveries: List[_Delivery],
        records: DispatchRecordRepository,
        summary: DispatchSummary,
    ) -> None:
        by_group: Dict[str, List[_Delivery]] = {}
        for delivery in deliveries:
            by_group.setdefault(delivery.group_id, []).append(delivery)

        executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="dispatch"
        )
        try:
            started: Dict[str, float] = {}
            pending = {}
            for group_id, items in by_group.items():
                results: Dict[Tuple[str, date], Any] = {}
                future = executor.submit(self._send_group, group_id, items, results, started)
                pending[group_id] = (future, items, results)

            abandoned = []
            while pending:
                wait(
                    [future for future, _, _ in pending.values()],
                    timeout=_POLL_SECONDS,
                    return_when=FIRST_COMPLETED,
                )
                clock = time.monotonic()
                for group_id, (future, items, results) in list(pending.items()):
                    if future.done():
                        del pending[group_id]
                        self._record_group(items, results, records, summary)
                    elif group_id in started and clock - started[group_id] >= self.send_timeout:
                        del pending[group_id]
                        abandoned.append(future)
                        logger.error(
                            f"Sending for group {group_id} timed out after {self.send_timeout}s"
                        )
                        # Copy: the abandoned worker may still be writing
                        self._record_group(items, dict(results), records, summary)

                if sum(1 for f in abandoned if not f.done()) >= self.max_workers:
                    for group_id, (future, items, _) in list(pending.items()):
                        if future.cancel():
                            del pending[group_id]
                            self._defer(group_id, items, records, summary)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _defer(
        self,
        group_id: str,
        items: List[_Delivery],
        records: DispatchRecordRepository,
        summary: DispatchSummary,
    ) -> None:
        logger.warning(
            f"No free worker for group {group_id}, leaving {len(items)} message(s) for the next run"
        )
        for item in items:
            records.release(item.record)
            summary.deferred += 1

    def _record_group(
        self,
        items: List[_Delivery],
        outcome: Dict[Tuple[str, date], Any],
        records: DispatchRecordRepository,
        summary: DispatchSummary,
    ) -> None:
        for item in items:
            self._record(item, outcome.get(item.key), records, summary)

    def _record(
        self,
        item: _Delivery,
        result: Any,
        records: DispatchRecordRepository,
        summary: DispatchSummary,
    ) -> None:
        completed_at = _naive_utc(datetime.now(timezone.utc))

        if isinstance(result, DeliveryReport):
            delivery = result.model_dump(mode="json")
            records.mark(item.record, DispatchState.FIRED, completed_at, delivery=delivery)
            summary.fired += 1
            self.event_bus.publish(
                ScheduleDispatched(
                    schedule_id=item.schedule_id,
                    group_id=item.group_id,
                    fire_date=item.fire_date,
                    delivery=delivery,
                )
            )
            return

        if result is None:
            error = DeliveryTimeoutException(item.group_id, self.send_timeout).message
        else:
            error = f"{type(result).__name__}: {result}"
            logger.error(
                f"Sending schedule {item.schedule_id} for group {item.group_id} failed: {error}",
                exc_info=result,
            )

        records.mark(item.record, DispatchState.FAILED, completed_at, error=error)
        summary.add_failed_group(item.group_id)
        self.event_bus.publish(
            ScheduleDispatchFailed(
                schedule_id=item.schedule_id,
                group_id=item.group_id,
                fire_date=item.fire_date,
                error=error,
            )
        )
