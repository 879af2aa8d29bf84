# app/schemas/dispatch.py
"""
Delivery report schemas exchanged with the compose-and-send collaborator.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from app.db.models.enums import DeliveryChannel, DeliveryStatus


class RecipientDelivery(BaseModel):
    """Status of one recipient on one channel."""

    recipient_id: str
    channel: DeliveryChannel
    status: DeliveryStatus
    error: Optional[str] = None


class DeliveryReport(BaseModel):
    """Per-recipient outcome of sending a group's message."""

    group_id: str
    recipients: List[RecipientDelivery] = Field(default_factory=list)

    @property
    def sent_count(self) -> int:
        return sum(1 for r in self.recipients if r.status == DeliveryStatus.SENT)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.recipients if r.status == DeliveryStatus.FAILED)
