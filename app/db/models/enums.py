# File: app/db/models/enums.py
"""
Enumeration definitions for ContactHub models and schemas.
"""

from enum import Enum


class ScheduleType(str, Enum):
    """How often a schedule fires."""

    ONE_TIME = "one-time"
    RECURRING = "recurring"


class FrequencyType(str, Enum):
    """Stride of a recurring schedule."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class OccurrenceEditScope(str, Enum):
    """Reach of an occurrence edit: one occurrence, or it and all later ones."""

    THIS = "this"
    FOLLOWING = "following"


class DispatchState(str, Enum):
    """
    Per-schedule state for one local calendar day.

    PENDING is never stored; it is the absence of a dispatch record.
    """

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    FIRED = "fired"
    SKIPPED = "skipped"
    FAILED = "failed"


class DeliveryChannel(str, Enum):
    SMS = "sms"
    EMAIL = "email"


class DeliveryStatus(str, Enum):
    """Per-recipient per-channel outcome reported by the sender."""

    SENT = "sent"
    FAILED = "failed"
    NOT_SENT = "not_sent"
