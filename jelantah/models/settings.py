"""Pricing and commission configuration (single row)."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from jelantah.database import Base
from jelantah.db_types import MoneyType, VolumeType

SETTINGS_ROW_ID = 1


class PricingSettings(Base):
    """
    Admin-editable pricing configuration.

    Three volume tiers, each [min, max] liters with a rate per liter; tier 3
    has no upper bound ("200+"). Created lazily with these defaults on first
    read and never deleted. The row is pinned to ``SETTINGS_ROW_ID``.
    """
    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False, default=SETTINGS_ROW_ID)

    # Tiered pricing (Rp per liter)
    price_tier1_min: Mapped[Decimal] = mapped_column(VolumeType, default=Decimal("1"), nullable=False)
    price_tier1_max: Mapped[Decimal] = mapped_column(VolumeType, default=Decimal("99"), nullable=False)
    price_tier1_rate: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("6500"), nullable=False)

    price_tier2_min: Mapped[Decimal] = mapped_column(VolumeType, default=Decimal("100"), nullable=False)
    price_tier2_max: Mapped[Decimal] = mapped_column(VolumeType, default=Decimal("199"), nullable=False)
    price_tier2_rate: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("7000"), nullable=False)

    price_tier3_min: Mapped[Decimal] = mapped_column(VolumeType, default=Decimal("200"), nullable=False)
    price_tier3_rate: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("7500"), nullable=False)

    # Payouts
    courier_commission_per_liter: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("500"), nullable=False
    )
    courier_daily_salary: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("100000"), nullable=False
    )
    affiliate_commission_per_liter: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("200"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=True
    )

    __table_args__ = (
        CheckConstraint(f"id = {SETTINGS_ROW_ID}", name="ck_settings_singleton"),
    )

    def __repr__(self) -> str:
        return f"<PricingSettings(id={self.id})>"
