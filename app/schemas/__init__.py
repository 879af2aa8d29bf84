# File: app/schemas/__init__.py
"""
Schemas package for the ContactHub API.

This module exports Pydantic models used for request validation,
response serialization, and data transfer throughout the application.
"""

from .dispatch import DeliveryReport, RecipientDelivery
from .group import GroupBase, GroupCreate, GroupResponse, GroupUpdate
from .holiday import HolidayLookupResponse, HolidayResponse
from .occurrence import OccurrenceEditRequest, OccurrenceEditResult, OccurrenceResponse
from .schedule import (
    Frequency,
    OccurrenceOverride,
    ScheduleBase,
    ScheduleCreate,
    ScheduleDefinition,
    ScheduleResponse,
    ScheduleUpdate,
)

# Required for proper IDE imports and type hints
__all__ = [
    # Groups
    'GroupBase', 'GroupCreate', 'GroupUpdate', 'GroupResponse',

    # Schedules
    'Frequency', 'OccurrenceOverride', 'ScheduleBase', 'ScheduleCreate',
    'ScheduleUpdate', 'ScheduleDefinition', 'ScheduleResponse',

    # Occurrences
    'OccurrenceResponse', 'OccurrenceEditRequest', 'OccurrenceEditResult',

    # Holidays
    'HolidayResponse', 'HolidayLookupResponse',

    # Delivery
    'DeliveryReport', 'RecipientDelivery',
]
