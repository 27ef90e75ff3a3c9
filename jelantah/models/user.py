import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column

from jelantah.database import Base
from jelantah.db_types import UUIDType


class UserRole(str, Enum):
    """Actor roles known to the platform."""
    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"
    COURIER = "COURIER"
    WAREHOUSE = "WAREHOUSE"


class User(Base):
    """
    Platform user.

    A single role per user. Customers may have been referred by another user
    (``referred_by_id``); that referrer earns an affiliate commission on each
    completed pickup of the customer.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Basic info
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.CUSTOMER.value,
        index=True
    )

    # Referral program
    referral_code: Mapped[Optional[str]] = mapped_column(String(30), unique=True, nullable=True)
    referred_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Timestamps
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

    def has_role(self, *roles: UserRole) -> bool:
        """Check if user has one of the given roles."""
        return self.role in {r.value for r in roles}

    def __repr__(self) -> str:
        return f"<User(email='{self.email}', role='{self.role}')>"
