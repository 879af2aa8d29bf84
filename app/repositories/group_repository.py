# app/repositories/group_repository.py
"""
Repository for contact groups.
"""

from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.repositories.base_repository import BaseRepository
from app.db.models.schedule import Group


class GroupRepository(BaseRepository[Group]):
    """Repository for group entities."""

    def __init__(self, session: Session):
        """
        Initialize the GroupRepository.

        Args:
            session: SQLAlchemy database session
        """
        super().__init__(session, Group)

    def list(self, skip: int = 0, limit: int = 100, **filters) -> List[Group]:
        """
        List groups ordered by name.

        Args:
            skip: Number of records to skip
            limit: Maximum number of records to return
            **filters: Additional filter criteria

        Returns:
            List of matching groups
        """
        stmt = select(Group)
        for key, value in filters.items():
            if hasattr(Group, key):
                stmt = stmt.where(getattr(Group, key) == value)

        stmt = stmt.order_by(Group.name, Group.id).offset(skip).limit(limit)
        return list(self.session.execute(stmt).scalars().all())
