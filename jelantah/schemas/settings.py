"""Pydantic schemas for pricing settings."""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from jelantah.schemas.base import BaseResponseSchema, BaseUpdateSchema


class SettingsResponse(BaseResponseSchema):
    """Current pricing tiers and commission rates."""
    id: int
    price_tier1_min: Decimal
    price_tier1_max: Decimal
    price_tier1_rate: Decimal
    price_tier2_min: Decimal
    price_tier2_max: Decimal
    price_tier2_rate: Decimal
    price_tier3_min: Decimal
    price_tier3_rate: Decimal
    courier_commission_per_liter: Decimal
    courier_daily_salary: Decimal
    affiliate_commission_per_liter: Decimal
    updated_at: Optional[datetime] = None


class SettingsUpdate(BaseUpdateSchema):
    """Partial update; omitted fields keep their current value."""
    price_tier1_min: Optional[Decimal] = Field(None, ge=0)
    price_tier1_max: Optional[Decimal] = Field(None, ge=0)
    price_tier1_rate: Optional[Decimal] = Field(None, ge=0)
    price_tier2_min: Optional[Decimal] = Field(None, ge=0)
    price_tier2_max: Optional[Decimal] = Field(None, ge=0)
    price_tier2_rate: Optional[Decimal] = Field(None, ge=0)
    price_tier3_min: Optional[Decimal] = Field(None, ge=0)
    price_tier3_rate: Optional[Decimal] = Field(None, ge=0)
    courier_commission_per_liter: Optional[Decimal] = Field(None, ge=0)
    courier_daily_salary: Optional[Decimal] = Field(None, ge=0)
    affiliate_commission_per_liter: Optional[Decimal] = Field(None, ge=0)
