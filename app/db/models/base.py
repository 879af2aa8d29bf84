# File: app/db/models/base.py
"""
Base models and mixins for ContactHub.

This module provides the foundation for all database models, including:
- Base SQLAlchemy model class
- Common mixins for shared functionality (timestamps)
- Model validation error type
"""

from datetime import datetime, date, timezone
from typing import Any, Dict
import uuid

from sqlalchemy import Column, String, DateTime, MetaData
from sqlalchemy.orm import declarative_base

# Create the SQLAlchemy base
Base = declarative_base(metadata=MetaData())


def generate_uuid() -> str:
    return str(uuid.uuid4())


class ModelValidationError(ValueError):
    """
    Exception raised for model validation errors.

    Attributes:
        model: The model instance that failed validation
        field: The field that failed validation
        message: Explanation of the error
    """

    def __init__(self, model: Any, field: str, message: str):
        self.model = model
        self.field = field
        self.message = message
        super().__init__(
            f"Validation error in {model.__class__.__name__}.{field}: {message}"
        )


class TimestampMixin:
    """
    Mixin providing automatic timestamp functionality.

    Adds created_at and updated_at timestamps that are automatically
    maintained when records are created or updated.
    """

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class AbstractBase(Base):
    """
    Abstract base class for all model entities.

    Attributes:
        id: Primary key (UUID string)
    """

    __abstract__ = True

    id = Column(String(36), primary_key=True, default=generate_uuid)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the model instance to a dictionary.

        Returns:
            Dictionary representation of the model instance
        """
        result = {}
        for column in self.__table__.columns:
            value = getattr(self, column.name)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            result[column.name] = value
        return result
