"""Database models for in-app notifications."""
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, Index

from jelantah.database import Base
from jelantah.db_types import UUIDType


class NotificationType(str, Enum):
    """Types of notifications."""
    # Pickups
    PICKUP_REQUEST = "PICKUP_REQUEST"
    PICKUP_ASSIGNED = "PICKUP_ASSIGNED"
    PICKUP_COMPLETED = "PICKUP_COMPLETED"
    PICKUP_CANCELLED = "PICKUP_CANCELLED"

    # Finance
    COMMISSION_EARNED = "COMMISSION_EARNED"
    COMMISSION_PAID = "COMMISSION_PAID"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    PAYMENT_DUE = "PAYMENT_DUE"


class Notification(Base):
    """
    Notification model - fire-and-forget event record for one user.
    """
    __tablename__ = "notifications"

    id = Column(UUIDType, primary_key=True, default=uuid4)

    # Recipient
    user_id = Column(UUIDType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    notification_type = Column(String(50), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)

    # Pickup, bill or commission that triggered it
    related_id = Column(UUIDType)

    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        Index('ix_notifications_user_unread', 'user_id', 'is_read'),
    )
