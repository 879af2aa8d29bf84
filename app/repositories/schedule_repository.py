# app/repositories/schedule_repository.py
"""
Repository for message schedules.

Besides plain CRUD this exposes the "active schedules" query used by the
upcoming-occurrences view and the dispatch job.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from app.repositories.base_repository import BaseRepository
from app.db.models.schedule import Group, Schedule


class ScheduleRepository(BaseRepository[Schedule]):
    """Repository for schedule entities."""

    def __init__(self, session: Session):
        """
        Initialize the ScheduleRepository.

        Args:
            session: SQLAlchemy database session
        """
        super().__init__(session, Schedule)

    def get_by_id(self, id: str) -> Optional[Schedule]:
        """Get a schedule with its group eagerly loaded."""
        stmt = (
            select(Schedule)
            .options(joinedload(Schedule.group))
            .where(Schedule.id == id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_by_group(
        self, group_id: str, skip: int = 0, limit: int = 100
    ) -> List[Schedule]:
        """
        List the schedules of one group, oldest start date first.

        Args:
            group_id: ID of the owning group
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            List of schedules of the group
        """
        stmt = (
            select(Schedule)
            .where(Schedule.group_id == group_id)
            .order_by(Schedule.start_date, Schedule.id)
            .offset(skip)
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars().all())

    def list_active(self, group_id: Optional[str] = None) -> List[Schedule]:
        """
        List enabled schedules that belong to enabled groups.

        Args:
            group_id: Optional group to restrict the result to

        Returns:
            Schedules with their group loaded, ordered by ID
        """
        stmt = (
            select(Schedule)
            .join(Group, Schedule.group_id == Group.id)
            .options(joinedload(Schedule.group))
            .where(Schedule.enabled.is_(True), Group.enabled.is_(True))
        )
        if group_id is not None:
            stmt = stmt.where(Schedule.group_id == group_id)

        stmt = stmt.order_by(Schedule.id)
        return list(self.session.execute(stmt).scalars().all())
