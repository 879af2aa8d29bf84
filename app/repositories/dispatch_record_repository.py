# app/repositories/dispatch_record_repository.py
"""
Repository for dispatch records, the per-schedule per-day fire markers.
"""

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.repositories.base_repository import BaseRepository
from app.db.models.enums import DispatchState
from app.db.models.schedule import DispatchRecord


class DispatchRecordRepository(BaseRepository[DispatchRecord]):
    """Repository for dispatch record entities."""

    def __init__(self, session: Session):
        """
        Initialize the DispatchRecordRepository.

        Args:
            session: SQLAlchemy database session
        """
        super().__init__(session, DispatchRecord)

    def get_for_day(self, schedule_id: str, fire_date: date) -> Optional[DispatchRecord]:
        """
        Get the marker of a schedule for one local day.

        Args:
            schedule_id: ID of the schedule
            fire_date: Local calendar day

        Returns:
            The record if one exists, None while the day is still pending
        """
        stmt = select(DispatchRecord).where(
            DispatchRecord.schedule_id == schedule_id,
            DispatchRecord.fire_date == fire_date,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_for_schedule(self, schedule_id: str, limit: int = 100) -> List[DispatchRecord]:
        """List the markers of a schedule, most recent day first."""
        stmt = (
            select(DispatchRecord)
            .where(DispatchRecord.schedule_id == schedule_id)
            .order_by(DispatchRecord.fire_date.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars().all())

    def insert_claim(
        self, schedule_id: str, group_id: str, fire_date: date, claimed_at: datetime
    ) -> Optional[DispatchRecord]:
        """
        Insert a new in-flight marker for (schedule_id, fire_date).

        The claim is committed on its own so that other processes see it.
        Losing the race against another process rolls the session back.

        Returns:
            The new record, or None if a marker for that day already exists
        """
        record = DispatchRecord(
            schedule_id=schedule_id,
            group_id=group_id,
            fire_date=fire_date,
            state=DispatchState.IN_FLIGHT.value,
            attempts=1,
            claimed_at=claimed_at,
        )
        self.session.add(record)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            return None
        return record

    def reclaim(self, record: DispatchRecord, claimed_at: datetime) -> bool:
        """
        Take over a failed or stale in-flight marker.

        The update only applies if the attempt counter is unchanged, so two
        processes cannot both take the same marker.

        Returns:
            True if this caller now owns the marker
        """
        stmt = (
            update(DispatchRecord)
            .where(
                DispatchRecord.id == record.id,
                DispatchRecord.attempts == record.attempts,
            )
            .values(
                state=DispatchState.IN_FLIGHT.value,
                attempts=record.attempts + 1,
                claimed_at=claimed_at,
                completed_at=None,
                error=None,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        self.session.commit()
        if result.rowcount != 1:
            return False
        self.session.refresh(record)
        return True

    def release(self, record: DispatchRecord) -> bool:
        """
        Give back a claim whose send was never attempted.

        The marker returns to the attempt count it had before the claim and
        loses its claim time, so the next run takes it over at once.

        Returns:
            True if the marker was still owned by this caller
        """
        stmt = (
            update(DispatchRecord)
            .where(
                DispatchRecord.id == record.id,
                DispatchRecord.attempts == record.attempts,
            )
            .values(attempts=record.attempts - 1, claimed_at=None)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        self.session.commit()
        if result.rowcount != 1:
            return False
        self.session.refresh(record)
        return True

    def mark(
        self,
        record: DispatchRecord,
        state: DispatchState,
        completed_at: datetime,
        error: Optional[str] = None,
        delivery: Optional[dict] = None,
    ) -> DispatchRecord:
        """Record the outcome of a claimed marker and commit it."""
        record.state = state.value
        record.completed_at = completed_at
        record.error = error
        record.delivery = delivery
        self.session.commit()
        return record
