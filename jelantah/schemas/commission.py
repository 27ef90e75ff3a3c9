"""Pydantic schemas for courier and affiliate commissions."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from jelantah.schemas.base import BaseResponseSchema, BaseUpdateSchema


class CommissionResponse(BaseResponseSchema):
    """Response schema for Commission."""
    id: UUID
    pickup_id: UUID
    user_id: UUID
    commission_type: str
    amount: Decimal
    status: str
    paid_date: Optional[datetime] = None
    payment_proof: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CommissionTotals(BaseModel):
    pending: Decimal = Decimal("0")
    paid: Decimal = Decimal("0")
    total: Decimal = Decimal("0")


class CommissionListResponse(BaseModel):
    items: List[CommissionResponse]
    total: int
    totals: CommissionTotals
    skip: int = 0
    limit: int = 50


class CommissionStatusUpdate(BaseUpdateSchema):
    """Mark a commission PAID (proof required) or CANCELLED."""
    status: Literal["PAID", "CANCELLED"]
    payment_proof: Optional[str] = Field(None, max_length=500)
