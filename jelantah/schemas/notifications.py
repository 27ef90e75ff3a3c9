"""Pydantic schemas for in-app notifications."""
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel

from jelantah.schemas.base import BaseResponseSchema


class NotificationResponse(BaseResponseSchema):
    """Response schema for Notification."""
    id: UUID
    user_id: UUID
    notification_type: str
    title: str
    message: str
    related_id: Optional[UUID] = None
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    """Response for listing notifications."""
    items: List[NotificationResponse]
    total: int
    unread_count: int
    skip: int = 0
    limit: int = 50


class MarkAllReadResponse(BaseModel):
    updated: int
