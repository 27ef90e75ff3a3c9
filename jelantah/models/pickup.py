"""Used-cooking-oil pickup requests."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jelantah.database import Base
from jelantah.db_types import UUIDType, MoneyType, VolumeType

if TYPE_CHECKING:
    from jelantah.models.user import User
    from jelantah.models.billing import Bill
    from jelantah.models.commission import Commission


class PickupStatus(str, Enum):
    """Pickup lifecycle status."""
    PENDING = "PENDING"           # Waiting for a courier
    ASSIGNED = "ASSIGNED"         # Courier accepted
    IN_PROGRESS = "IN_PROGRESS"   # Courier on site / collecting
    COMPLETED = "COMPLETED"       # Terminal
    CANCELLED = "CANCELLED"       # Terminal


class Pickup(Base):
    """
    A pickup request owned by a customer.

    Money fields exist twice: ``estimated_*`` are computed from ``volume`` at
    creation and never change afterwards; ``price_per_liter``, ``total_price``,
    ``courier_fee`` and ``affiliate_fee`` start equal to the estimate and are
    recomputed from ``actual_volume`` when the courier completes the pickup.
    """
    __tablename__ = "pickups"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    courier_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    warehouse_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PickupStatus.PENDING.value,
        index=True
    )

    scheduled_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    actual_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Volumes (liters)
    volume: Mapped[Decimal] = mapped_column(VolumeType, nullable=False)
    actual_volume: Mapped[Optional[Decimal]] = mapped_column(VolumeType, nullable=True)

    # Estimate at creation
    estimated_price_per_liter: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))
    estimated_total_price: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))
    estimated_courier_fee: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))
    estimated_affiliate_fee: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))

    # Final settlement (recomputed at completion)
    price_per_liter: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))
    total_price: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))
    courier_fee: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))
    affiliate_fee: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))

    # Courier proof and payout details
    photo_proof: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    bank_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    account_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    account_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

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

    # Relationships
    customer: Mapped["User"] = relationship("User", foreign_keys=[customer_id], lazy="raise")
    bills: Mapped[List["Bill"]] = relationship("Bill", back_populates="pickup", lazy="raise")
    commissions: Mapped[List["Commission"]] = relationship(
        "Commission", back_populates="pickup", lazy="raise"
    )

    __table_args__ = (
        Index("ix_pickups_status_courier", "status", "courier_id"),
    )

    def __repr__(self) -> str:
        return f"<Pickup(id={self.id}, status='{self.status}')>"
