"""
Initializes the models package for SQLAlchemy declarative base.

This file imports all model classes and enums into the `app.db.models`
namespace so that SQLAlchemy's metadata is populated with all table
definitions when `Base.metadata.create_all()` is called.
"""

from app.db.models.base import Base
from app.db.models.enums import (
    ScheduleType,
    FrequencyType,
    OccurrenceEditScope,
    DispatchState,
    DeliveryChannel,
    DeliveryStatus,
)
from app.db.models.schedule import Group, Schedule, DispatchRecord

__all__ = [
    "Base",
    "ScheduleType",
    "FrequencyType",
    "OccurrenceEditScope",
    "DispatchState",
    "DeliveryChannel",
    "DeliveryStatus",
    "Group",
    "Schedule",
    "DispatchRecord",
]
