"""Customer bills created when a pickup is completed."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jelantah.database import Base
from jelantah.db_types import UUIDType, MoneyType

if TYPE_CHECKING:
    from jelantah.models.pickup import Pickup


class BillStatus(str, Enum):
    """Bill status enumeration."""
    UNPAID = "UNPAID"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    OVERDUE = "OVERDUE"


class Bill(Base):
    """
    What the customer owes for one completed pickup.

    Created exactly once per pickup, at completion. Only the payment
    confirmation action (PAID / CANCELLED) and the overdue job change it.
    """
    __tablename__ = "bills"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    pickup_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("pickups.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    invoice_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BillStatus.UNPAID.value,
        index=True
    )

    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
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

    pickup: Mapped["Pickup"] = relationship("Pickup", back_populates="bills")

    def __repr__(self) -> str:
        return f"<Bill(invoice_number='{self.invoice_number}', status='{self.status}')>"
