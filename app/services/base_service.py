# File: app/services/base_service.py

from typing import TypeVar, Generic, List, Optional, Type, Dict, Any
from contextlib import contextmanager
from sqlalchemy.orm import Session
import logging
from datetime import datetime

from app.core.exceptions import ContactHubException, EntityNotFoundException
from app.repositories.base_repository import BaseRepository

T = TypeVar("T")
logger = logging.getLogger(__name__)


class BaseService(Generic[T]):
    """
    Base service for all ContactHub services.

    Provides common functionality including:
    - Transaction management
    - Error handling and standardization
    - Logging
    - Basic CRUD operations
    - Event publishing
    """

    def __init__(
            self,
            session: Session,
            repository_class: Optional[Type[BaseRepository]] = None,
            repository: Optional[BaseRepository] = None,
            event_bus=None,
    ):
        """
        Initialize service with dependencies.

        Args:
            session: Database session for persistence operations
            repository_class: Repository class to instantiate (optional if repository is provided)
            repository: Repository instance (optional if repository_class is provided)
            event_bus: Optional event bus for publishing domain events
        """
        self.session = session

        # Allow either repository instance or class to be provided
        if repository is not None:
            self.repository = repository
        elif repository_class is not None:
            self.repository = repository_class(session)
        else:
            # Subclasses may initialize repository directly
            self.repository = None

        self.event_bus = event_bus
        self._in_transaction = False

    @contextmanager
    def transaction(self):
        """
        Provide a transactional scope around operations.

        Nested scopes join the outermost one, which alone commits.

        Yields:
            None

        Raises:
            Exception: Any exception that occurs during transaction execution
        """
        if self._in_transaction:
            yield
            return

        self._in_transaction = True
        try:
            yield
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            if isinstance(e, ContactHubException):
                logger.info(f"Transaction rolled back: {e.message}")
            else:
                logger.error(f"Transaction failed: {str(e)}", exc_info=True)

            # Transform database errors to domain exceptions if needed
            transformed = self._transform_error(e)
            if transformed:
                raise transformed from e
            raise
        finally:
            self._in_transaction = False

    def get_by_id(self, id: str) -> Optional[T]:
        """
        Get entity by ID.

        Args:
            id: Entity ID to retrieve

        Returns:
            Entity if found, None otherwise
        """
        return self.repository.get_by_id(id)

    def list(self, skip: int = 0, limit: int = 100, **filters) -> List[T]:
        """
        List entities with pagination and filtering.

        Args:
            skip: Number of records to skip
            limit: Maximum number of records to return
            **filters: Additional filters to apply

        Returns:
            List of entities matching the criteria
        """
        return self.repository.list(skip=skip, limit=limit, **filters)

    def _create_internal(self, data: Dict[str, Any]) -> T:
        """
        Create an entity and publish its creation event.

        Args:
            data: Dictionary of entity data

        Returns:
            Created entity
        """
        with self.transaction():
            entity = self.repository.create(data)

            # Publish creation event if event bus exists
            if self.event_bus and hasattr(self, "_create_created_event"):
                event = self._create_created_event(entity)
                if event:
                    self.event_bus.publish(event)

            return entity

    def _update_internal(self, id: str, data: Dict[str, Any]) -> Optional[T]:
        """
        Update an entity and publish its update event.

        Args:
            id: Entity ID to update
            data: Dictionary of entity data to update

        Returns:
            Updated entity if found, None otherwise
        """
        with self.transaction():
            entity = self.repository.update(id, data)
            if not entity:
                return None

            # Publish update event if event bus exists
            if self.event_bus and hasattr(self, "_create_updated_event"):
                event = self._create_updated_event(entity, data)
                if event:
                    self.event_bus.publish(event)

            return entity

    def _delete_internal(self, id: str) -> bool:
        """
        Delete an entity and publish its deletion event.

        Args:
            id: Entity ID to delete

        Returns:
            True if entity was deleted, False otherwise
        """
        with self.transaction():
            # Get the entity before deletion for event creation
            entity = self.repository.get_by_id(id) if self.event_bus else None

            result = self.repository.delete(id)
            if not result:
                return False

            # Publish deletion event if event bus exists
            if self.event_bus and entity and hasattr(self, "_create_deleted_event"):
                event = self._create_deleted_event(entity)
                if event:
                    self.event_bus.publish(event)

            return True

    def get_entity_or_404(self, id: str) -> T:
        """
        Get an entity by ID or raise EntityNotFoundException.

        Args:
            id: Entity ID to retrieve

        Returns:
            Entity if found

        Raises:
            EntityNotFoundException: If entity is not found
        """
        entity = self.get_by_id(id)
        if not entity:
            entity_name = self.repository.model.__name__ if self.repository else "Entity"
            raise EntityNotFoundException(entity_name, id)
        return entity

    def _log_operation(
            self,
            operation: str,
            entity_type: str,
            entity_id: Any = None,
            details: Dict[str, Any] = None,
    ) -> None:
        """
        Log an operation for auditing purposes.

        Args:
            operation: Operation name (create, update, delete, etc.)
            entity_type: Type of entity being operated on
            entity_id: Optional entity ID
            details: Optional operation details
        """
        log_data = {
            "operation": operation,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "timestamp": datetime.now().isoformat(),
            "details": details,
        }

        logger.info(f"{operation.upper()} {entity_type} {entity_id}", extra=log_data)

    def _transform_error(self, error: Exception) -> Optional[ContactHubException]:
        """
        Transform generic exceptions to specific domain exceptions.

        Override this method in service subclasses to handle
        specific error cases.

        Args:
            error: The original exception

        Returns:
            Transformed domain exception, or None to re-raise original
        """
        return None
