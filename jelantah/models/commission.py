"""Courier and affiliate commissions earned on completed pickups."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jelantah.database import Base
from jelantah.db_types import UUIDType, MoneyType

if TYPE_CHECKING:
    from jelantah.models.pickup import Pickup


class CommissionType(str, Enum):
    """Commission type enumeration."""
    COURIER = "COURIER"       # Courier who collected the oil
    AFFILIATE = "AFFILIATE"   # User who referred the customer


class CommissionStatus(str, Enum):
    """Commission payout status."""
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class Commission(Base):
    """At most one commission of each type per pickup."""
    __tablename__ = "commissions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    pickup_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("pickups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    commission_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CommissionStatus.PENDING.value,
        index=True
    )

    paid_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_proof: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    pickup: Mapped["Pickup"] = relationship("Pickup", back_populates="commissions")

    __table_args__ = (
        UniqueConstraint("pickup_id", "commission_type", name="uq_commission_pickup_type"),
    )

    def __repr__(self) -> str:
        return f"<Commission(type='{self.commission_type}', amount={self.amount}, status='{self.status}')>"
