# app/services/group_service.py
"""
Service layer for contact groups.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.db.models.schedule import Group
from app.repositories.group_repository import GroupRepository
from app.schemas.group import GroupCreate, GroupUpdate
from app.services.base_service import BaseService
from app.services import timezone_service

logger = logging.getLogger(__name__)


class GroupService(BaseService[Group]):
    """Service for creating, updating and removing groups."""

    def __init__(self, session: Session, repository: Optional[GroupRepository] = None):
        super().__init__(session, repository=repository or GroupRepository(session))

    def _check_timezone(self, owner_timezone: Optional[str]) -> None:
        if owner_timezone:
            # Raises InvalidTimezoneException for unknown names
            timezone_service.get_zone(owner_timezone)

    def create_group(self, data: GroupCreate) -> Group:
        """
        Create a new group.

        Raises:
            InvalidTimezoneException: If owner_timezone is not an IANA zone
        """
        self._check_timezone(data.owner_timezone)
        group = self._create_internal(data.model_dump())
        self._log_operation("create", "Group", group.id)
        return group

    def update_group(self, group_id: str, data: GroupUpdate) -> Group:
        """
        Update a group.

        Raises:
            EntityNotFoundException: If the group does not exist
            InvalidTimezoneException: If owner_timezone is not an IANA zone
        """
        self.get_entity_or_404(group_id)
        changes = data.model_dump(exclude_unset=True)
        self._check_timezone(changes.get("owner_timezone"))
        group = self._update_internal(group_id, changes)
        self._log_operation("update", "Group", group_id, {"fields": list(changes)})
        return group

    def delete_group(self, group_id: str) -> None:
        """
        Delete a group and, through the cascade, its schedules.

        Raises:
            EntityNotFoundException: If the group does not exist
        """
        self.get_entity_or_404(group_id)
        self._delete_internal(group_id)
        self._log_operation("delete", "Group", group_id)

    def list_groups(self, skip: int = 0, limit: int = 100, enabled: Optional[bool] = None) -> List[Group]:
        filters = {} if enabled is None else {"enabled": enabled}
        return self.list(skip=skip, limit=limit, **filters)
