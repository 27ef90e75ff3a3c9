"""Pydantic schemas for customer bills."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from jelantah.schemas.base import BaseResponseSchema, BaseUpdateSchema


class BillResponse(BaseResponseSchema):
    """Response schema for Bill."""
    id: UUID
    pickup_id: UUID
    user_id: UUID
    invoice_number: str
    amount: Decimal
    status: str
    due_date: datetime
    paid_date: Optional[datetime] = None
    payment_proof: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class BillListResponse(BaseModel):
    items: List[BillResponse]
    total: int
    skip: int = 0
    limit: int = 50


class BillStatusUpdate(BaseUpdateSchema):
    """Confirm payment (PAID, proof required) or cancel a bill."""
    status: Literal["PAID", "CANCELLED"]
    payment_proof: Optional[str] = Field(None, max_length=500)
