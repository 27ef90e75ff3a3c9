"""Messages exchanged between the people working on one pickup."""
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jelantah.database import Base
from jelantah.db_types import UUIDType

if TYPE_CHECKING:
    from jelantah.models.user import User


class Message(Base):
    """
    One message in a pickup's thread.

    ``is_read`` is from the receiver's point of view and flips when the
    receiver opens the thread.
    """
    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    pickup_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("pickups.id", ondelete="CASCADE"),
        nullable=False
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    receiver_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    content: Mapped[str] = mapped_column(Text, nullable=False)

    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    sender: Mapped["User"] = relationship("User", foreign_keys=[sender_id], lazy="raise")
    receiver: Mapped["User"] = relationship("User", foreign_keys=[receiver_id], lazy="raise")

    __table_args__ = (
        Index("ix_messages_pickup_created", "pickup_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, pickup_id={self.pickup_id})>"
