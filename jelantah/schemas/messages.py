"""Pydantic schemas for pickup message threads."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from jelantah.schemas.base import BaseCreateSchema, BaseResponseSchema


class MessageCreate(BaseCreateSchema):
    """Send a message to another participant of the pickup."""
    receiver_id: UUID
    content: str = Field(..., min_length=1, max_length=2000)


class UserSummary(BaseResponseSchema):
    id: UUID
    name: str
    role: str


class MessageResponse(BaseResponseSchema):
    """Response schema for Message."""
    id: UUID
    pickup_id: UUID
    sender: UserSummary
    receiver: UserSummary
    content: str
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime


class MessageThreadResponse(BaseModel):
    """All messages of one pickup, oldest first."""
    pickup_id: UUID
    items: List[MessageResponse]
    total: int
    marked_read: int = 0
