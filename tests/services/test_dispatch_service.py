# tests/services/test_dispatch_service.py
import threading
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.core.events import ScheduleDispatched, ScheduleDispatchFailed
from app.core.exceptions import ExternalServiceException
from app.db.models.enums import DispatchState
from app.db.models.schedule import DispatchRecord
from app.repositories.dispatch_record_repository import DispatchRecordRepository
from app.schemas.dispatch import DeliveryReport, RecipientDelivery
from app.services.dispatch_service import DispatchService, TemplateMessageComposer
from tests.helpers import utc

DAILY = {"type": "daily", "interval": 1}
FIRE_DAY = date(2024, 1, 10)
AFTER_FIRE = utc(2024, 1, 10, 9, 5)


class RecordingSender:
    """Sender double that records calls and can fail for chosen groups."""

    def __init__(self, failing=(), blocking=()):
        self.calls = []
        self.failing = set(failing)
        self.blocking = set(blocking)
        self.release = threading.Event()

    def send(self, group_id, message_text, channels):
        self.calls.append((group_id, message_text, channels))
        if group_id in self.blocking:
            self.release.wait(5)
        if group_id in self.failing:
            raise ExternalServiceException("sms-gateway", "gateway unavailable")
        return DeliveryReport(
            group_id=group_id,
            recipients=[RecipientDelivery(recipient_id="c1", channel="sms", status="sent")],
        )


@pytest.fixture
def sender():
    sender = RecordingSender()
    yield sender
    sender.release.set()


@pytest.fixture
def dispatcher(session_factory, sender, event_bus):
    return DispatchService(session_factory, sender, event_bus=event_bus, send_timeout=2)


def record_for(db_session, schedule_id, day=FIRE_DAY):
    db_session.expire_all()
    return DispatchRecordRepository(db_session).get_for_day(schedule_id, day)


def test_composer_fills_known_placeholders():
    composer = TemplateMessageComposer()

    text = composer.compose(
        "Hi {{groupName}}, {{scheduleName}} on {{date}} {{unknown}}",
        {"groupName": "Family", "scheduleName": "Call", "date": "2024-01-10"},
    )

    assert text == "Hi Family, Call on 2024-01-10 {{unknown}}"
    assert composer.compose(None, {}) == ""


def test_due_schedule_fires_once(db_session, dispatcher, sender, make_group, make_schedule, event_bus):
    dispatched = []
    event_bus.subscribe(ScheduleDispatched, dispatched.append)
    group = make_group("Family", default_message="Hi {{groupName}}")
    schedule = make_schedule(group, frequency=DAILY, channels=["sms"])

    summary = dispatcher.run(AFTER_FIRE)

    assert summary.fired == 1
    assert sender.calls == [(group.id, "Hi Family", ["sms"])]
    record = record_for(db_session, schedule.id)
    assert record.state == DispatchState.FIRED.value
    assert record.attempts == 1
    assert record.delivery["recipients"][0]["status"] == "sent"
    assert dispatched[0].schedule_id == schedule.id
    assert dispatched[0].fire_date == FIRE_DAY

    second = dispatcher.run(AFTER_FIRE + timedelta(minutes=15))

    assert second.fired == 0
    assert second.already_handled == 1
    assert len(sender.calls) == 1


def test_schedule_not_yet_due_is_pending(db_session, dispatcher, sender, make_group, make_schedule):
    schedule = make_schedule(make_group(default_message="Hi"), frequency=DAILY)

    summary = dispatcher.run(utc(2024, 1, 10, 8))

    assert summary.pending == 1
    assert sender.calls == []
    assert record_for(db_session, schedule.id) is None


def test_schedule_message_wins_over_group_default(dispatcher, sender, make_group, make_schedule):
    group = make_group(default_message="Default")
    make_schedule(group, name="Standup", frequency=DAILY, message="{{scheduleName}} at {{date}}")

    dispatcher.run(AFTER_FIRE)

    assert sender.calls[0][1] == "Standup at 2024-01-10"


def test_failing_group_does_not_stop_others(db_session, session_factory, event_bus, make_group, make_schedule):
    broken = make_group("Broken", default_message="Hi")
    healthy = make_group("Healthy", default_message="Hi")
    broken_schedule = make_schedule(broken, frequency=DAILY)
    healthy_schedule = make_schedule(healthy, frequency=DAILY)
    failures = []
    event_bus.subscribe(ScheduleDispatchFailed, failures.append)
    sender = RecordingSender(failing=[broken.id])
    dispatcher = DispatchService(session_factory, sender, event_bus=event_bus, send_timeout=2)

    summary = dispatcher.run(AFTER_FIRE)

    assert summary.fired == 1
    assert summary.failed == 1
    assert summary.failed_groups == [broken.id]
    failed = record_for(db_session, broken_schedule.id)
    assert failed.state == DispatchState.FAILED.value
    assert "gateway unavailable" in failed.error
    assert record_for(db_session, healthy_schedule.id).state == DispatchState.FIRED.value
    assert failures[0].schedule_id == broken_schedule.id


def test_failed_record_is_retried(db_session, session_factory, make_group, make_schedule):
    group = make_group(default_message="Hi")
    schedule = make_schedule(group, frequency=DAILY)
    sender = RecordingSender(failing=[group.id])
    dispatcher = DispatchService(session_factory, sender, send_timeout=2)
    dispatcher.run(AFTER_FIRE)

    sender.failing.clear()
    summary = dispatcher.run(AFTER_FIRE + timedelta(minutes=15))

    assert summary.fired == 1
    record = record_for(db_session, schedule.id)
    assert record.state == DispatchState.FIRED.value
    assert record.attempts == 2
    assert record.error is None


def test_timed_out_send_is_failed_and_sent_again(db_session, session_factory, make_group, make_schedule):
    slow = make_group("Slow", default_message="Hi")
    fast = make_group("Fast", default_message="Hi")
    slow_schedule = make_schedule(slow, frequency=DAILY)
    fast_schedule = make_schedule(fast, frequency=DAILY)
    sender = RecordingSender(blocking=[slow.id])
    dispatcher = DispatchService(session_factory, sender, send_timeout=0.2)

    try:
        summary = dispatcher.run(AFTER_FIRE)
    finally:
        sender.release.set()

    assert summary.failed == 1
    assert summary.fired == 1
    slow_record = record_for(db_session, slow_schedule.id)
    assert slow_record.state == DispatchState.FAILED.value
    assert "timed out" in slow_record.error
    assert record_for(db_session, fast_schedule.id).state == DispatchState.FIRED.value

    second = dispatcher.run(AFTER_FIRE + timedelta(minutes=15))

    # Delivery is at least once: the timed out send goes out again
    assert second.fired == 1
    assert [call[0] for call in sender.calls].count(slow.id) == 2
    assert record_for(db_session, slow_schedule.id).attempts == 2


def test_empty_message_is_skipped_once(db_session, dispatcher, sender, make_group, make_schedule):
    schedule = make_schedule(make_group(), frequency=DAILY)

    first = dispatcher.run(AFTER_FIRE)
    second = dispatcher.run(AFTER_FIRE + timedelta(minutes=15))

    assert first.skipped == 1
    assert second.skipped == 0
    assert second.already_handled == 1
    assert sender.calls == []
    assert record_for(db_session, schedule.id).state == DispatchState.SKIPPED.value


def test_disabled_group_is_not_considered(dispatcher, sender, make_group, make_schedule):
    make_schedule(make_group(enabled=False, default_message="Hi"), frequency=DAILY)

    summary = dispatcher.run(AFTER_FIRE)

    assert summary.considered == 0
    assert sender.calls == []


def test_fresh_in_flight_record_is_left_alone(db_session, dispatcher, sender, make_group, make_schedule):
    schedule = make_schedule(make_group(default_message="Hi"), frequency=DAILY)
    db_session.add(
        DispatchRecord(
            schedule_id=schedule.id,
            group_id=schedule.group_id,
            fire_date=FIRE_DAY,
            state=DispatchState.IN_FLIGHT.value,
            claimed_at=datetime(2024, 1, 10, 9, 4),
        )
    )
    db_session.commit()

    summary = dispatcher.run(AFTER_FIRE)

    assert summary.already_handled == 1
    assert sender.calls == []


def test_stale_in_flight_record_is_reclaimed(db_session, dispatcher, sender, make_group, make_schedule):
    schedule = make_schedule(make_group(default_message="Hi"), frequency=DAILY)
    db_session.add(
        DispatchRecord(
            schedule_id=schedule.id,
            group_id=schedule.group_id,
            fire_date=FIRE_DAY,
            state=DispatchState.IN_FLIGHT.value,
            claimed_at=datetime(2024, 1, 10, 7, 0),
        )
    )
    db_session.commit()

    summary = dispatcher.run(AFTER_FIRE)

    assert summary.fired == 1
    record = record_for(db_session, schedule.id)
    assert record.state == DispatchState.FIRED.value
    assert record.attempts == 2


def test_fire_day_follows_schedule_timezone(db_session, dispatcher, sender, make_group, make_schedule):
    schedule = make_schedule(
        make_group(default_message="Hi"), frequency=DAILY, timezone="America/Los_Angeles"
    )

    early = dispatcher.run(utc(2024, 1, 10, 16))
    # 01:00 UTC on January 11 is still the afternoon of January 10 in Los Angeles
    due = dispatcher.run(utc(2024, 1, 11, 1))

    assert early.pending == 1
    assert due.fired == 1
    assert record_for(db_session, schedule.id, date(2024, 1, 10)) is not None


def test_concurrent_run_is_skipped(dispatcher):
    assert DispatchService._run_lock.acquire(blocking=False)
    try:
        assert dispatcher.run(AFTER_FIRE) is None
    finally:
        DispatchService._run_lock.release()


def test_fire_after_last_run_of_the_day_goes_out_after_midnight(
    db_session, dispatcher, sender, make_group, make_schedule
):
    schedule = make_schedule(make_group(default_message="Hi"), frequency=DAILY, start_time="23:50")

    before = dispatcher.run(utc(2024, 1, 10, 23, 45))
    after_midnight = dispatcher.run(utc(2024, 1, 11, 0, 0))
    later = dispatcher.run(utc(2024, 1, 11, 0, 15))

    assert before.pending == 1
    assert before.fired == 0
    assert after_midnight.fired == 1
    assert later.fired == 0
    assert len(sender.calls) == 1
    assert record_for(db_session, schedule.id, date(2024, 1, 10)).state == DispatchState.FIRED.value
    assert record_for(db_session, schedule.id, date(2024, 1, 11)) is None


def test_late_failure_is_retried_on_the_next_day(db_session, session_factory, make_group, make_schedule):
    group = make_group(default_message="Hi")
    schedule = make_schedule(group, frequency=DAILY, start_time="23:50")
    sender = RecordingSender(failing=[group.id])
    dispatcher = DispatchService(session_factory, sender, send_timeout=2)

    first = dispatcher.run(utc(2024, 1, 10, 23, 55))
    sender.failing.clear()
    retry = dispatcher.run(utc(2024, 1, 11, 3, 0))

    assert first.failed == 1
    assert retry.fired == 1
    record = record_for(db_session, schedule.id, date(2024, 1, 10))
    assert record.state == DispatchState.FIRED.value
    assert record.attempts == 2


def test_day_missed_long_ago_is_not_sent(dispatcher, sender, make_group, make_schedule):
    make_schedule(make_group(default_message="Hi"), frequency=DAILY, start_time="10:00")

    # January 9 fired at 10:00, far outside the catch-up window
    summary = dispatcher.run(utc(2024, 1, 10, 9, 30))

    assert summary.pending == 1
    assert sender.calls == []


def test_queued_group_behind_hung_group_is_deferred(db_session, session_factory, make_group, make_schedule):
    hung = make_group("Hung", default_message="Hi")
    healthy = make_group("Healthy", default_message="Hi")
    hung_schedule = make_schedule(hung, id="00000000-0000-0000-0000-000000000001", frequency=DAILY)
    healthy_schedule = make_schedule(
        healthy, id="00000000-0000-0000-0000-000000000002", frequency=DAILY
    )
    sender = RecordingSender(blocking=[hung.id])
    dispatcher = DispatchService(session_factory, sender, send_timeout=0.3, max_workers=1)

    try:
        summary = dispatcher.run(AFTER_FIRE)
    finally:
        sender.release.set()

    assert summary.failed == 1
    assert summary.failed_groups == [hung.id]
    assert summary.deferred == 1
    assert [call[0] for call in sender.calls] == [hung.id]
    released = record_for(db_session, healthy_schedule.id)
    assert released.state == DispatchState.IN_FLIGHT.value
    assert released.claimed_at is None

    second = dispatcher.run(AFTER_FIRE + timedelta(minutes=15))

    assert second.fired == 2
    assert record_for(db_session, healthy_schedule.id).state == DispatchState.FIRED.value
    assert record_for(db_session, healthy_schedule.id).attempts == 1
    assert record_for(db_session, hung_schedule.id).state == DispatchState.FIRED.value


def test_claim_error_does_not_stop_other_schedules(
    db_session, session_factory, make_group, make_schedule, monkeypatch
):
    broken = make_group("Broken", default_message="Hi")
    healthy = make_group("Healthy", default_message="Hi")
    broken_id = make_schedule(broken, frequency=DAILY).id
    healthy_schedule = make_schedule(healthy, frequency=DAILY)
    insert_claim = DispatchRecordRepository.insert_claim

    def locked_insert_claim(self, schedule_id, *args):
        if schedule_id == broken_id:
            raise OperationalError("INSERT INTO dispatch_records", {}, Exception("database is locked"))
        return insert_claim(self, schedule_id, *args)

    monkeypatch.setattr(DispatchRecordRepository, "insert_claim", locked_insert_claim)
    sender = RecordingSender()
    dispatcher = DispatchService(session_factory, sender, send_timeout=2)

    summary = dispatcher.run(AFTER_FIRE)

    assert summary.considered == 2
    assert summary.fired == 1
    assert summary.failed == 1
    assert summary.failed_groups == [broken.id]
    assert record_for(db_session, broken_id) is None
    assert record_for(db_session, healthy_schedule.id).state == DispatchState.FIRED.value
