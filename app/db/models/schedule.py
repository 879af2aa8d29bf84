# app/db/models/schedule.py
"""
Database models for contact groups and their message schedules.

This module defines the SQLAlchemy models for groups, schedules and the
per-schedule per-day dispatch records used to make sending idempotent.
"""

import re

from sqlalchemy import (
    Column,
    String,
    DateTime,
    Boolean,
    Integer,
    ForeignKey,
    Date,
    Text,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship, validates

from app.db.models.base import AbstractBase, TimestampMixin, ModelValidationError
from app.db.models.enums import DispatchState, ScheduleType

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class Group(AbstractBase, TimestampMixin):
    """
    Model for contact groups.

    A group owns its schedules; deleting a group deletes them too.
    """

    __tablename__ = "groups"

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    enabled = Column(Boolean, default=True, nullable=False)
    owner_timezone = Column(String(64), nullable=True)
    default_message = Column(Text, nullable=True)

    # Relationships
    schedules = relationship(
        "Schedule",
        back_populates="group",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Schedule(AbstractBase, TimestampMixin):
    """
    Model for message schedules.

    Defines when a group should be contacted: once, or on a recurring
    frequency anchored at start_date.
    """

    __tablename__ = "schedules"

    group_id = Column(
        String(36), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String(20), nullable=False, default=ScheduleType.ONE_TIME.value)
    name = Column(String(200), nullable=True)
    start_date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=True)
    end_date = Column(Date, nullable=True)
    frequency = Column(JSON, nullable=True)  # {"type": "weekly", "interval": 1, ...}
    exceptions = Column(JSON, nullable=False, default=list)  # ["2024-12-25", ...]
    overrides = Column(JSON, nullable=False, default=list)
    enabled = Column(Boolean, default=True, nullable=False)
    timezone = Column(String(64), nullable=True)
    message = Column(Text, nullable=True)
    channels = Column(JSON, nullable=False, default=list)

    # Relationships
    group = relationship("Group", back_populates="schedules")
    dispatch_records = relationship(
        "DispatchRecord",
        back_populates="schedule",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @validates("type")
    def validate_type(self, key, value):
        """Validate schedule type value."""
        valid_types = [t.value for t in ScheduleType]
        if value not in valid_types:
            raise ModelValidationError(
                self, key, f"Invalid schedule type: {value}. Must be one of {valid_types}"
            )
        return value

    @validates("start_time")
    def validate_start_time(self, key, value):
        """Validate HH:MM wall-clock time."""
        if value is not None and not _TIME_PATTERN.match(value):
            raise ModelValidationError(self, key, f"Invalid time: {value}. Expected HH:MM")
        return value


class DispatchRecord(AbstractBase, TimestampMixin):
    """
    Durable marker of a schedule's fire on one local calendar day.

    No row means the day is still pending for that schedule.
    """

    __tablename__ = "dispatch_records"
    __table_args__ = (
        UniqueConstraint("schedule_id", "fire_date", name="uq_dispatch_schedule_day"),
    )

    schedule_id = Column(
        String(36), ForeignKey("schedules.id", ondelete="CASCADE"), nullable=False
    )
    group_id = Column(String(36), nullable=False)
    fire_date = Column(Date, nullable=False)
    state = Column(String(20), nullable=False, default=DispatchState.IN_FLIGHT.value)
    attempts = Column(Integer, nullable=False, default=1)
    claimed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    error = Column(Text, nullable=True)
    delivery = Column(JSON, nullable=True)

    # Relationships
    schedule = relationship("Schedule", back_populates="dispatch_records")

    @validates("state")
    def validate_state(self, key, value):
        """Validate dispatch state value."""
        valid_states = [s.value for s in DispatchState if s != DispatchState.PENDING]
        if value not in valid_states:
            raise ModelValidationError(
                self, key, f"Invalid state: {value}. Must be one of {valid_states}"
            )
        return value
