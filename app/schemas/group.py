# app/schemas/group.py
"""
Group schemas for the ContactHub API.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class GroupBase(BaseModel):
    """Base schema for group data."""

    name: str = Field(..., min_length=1, max_length=200, description="Group name")
    description: Optional[str] = Field(None, description="Group description")
    enabled: bool = Field(True, description="Disabled groups never fire")
    owner_timezone: Optional[str] = Field(
        None, description="IANA timezone of the owner, used when a schedule has none"
    )
    default_message: Optional[str] = Field(
        None, description="Message used when a schedule has no message of its own"
    )


class GroupCreate(GroupBase):
    """Schema for creating a new group."""

    pass


class GroupUpdate(BaseModel):
    """Schema for updating group information."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    enabled: Optional[bool] = None
    owner_timezone: Optional[str] = None
    default_message: Optional[str] = None


class GroupResponse(GroupBase):
    """Schema for group responses."""

    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
