"""Pydantic schemas for pickups."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field

from jelantah.models.pickup import PickupStatus
from jelantah.schemas.base import BaseCreateSchema, BaseResponseSchema, BaseUpdateSchema
from jelantah.schemas.billing import BillResponse
from jelantah.schemas.commission import CommissionResponse


class PickupCreate(BaseCreateSchema):
    """
    Schema for creating a pickup.

    ``customer_id`` is only honoured for admins creating on behalf of a
    customer; customers always create for themselves.
    """
    volume: Decimal = Field(..., gt=0, description="Estimated volume in liters")
    scheduled_date: datetime
    notes: Optional[str] = None
    customer_id: Optional[UUID] = None


class PickupProofUpdate(BaseUpdateSchema):
    """Courier upload of proof, measured volume and payout account."""
    photo_proof: Optional[str] = Field(None, min_length=1, max_length=500)
    actual_volume: Optional[Decimal] = Field(None, gt=0)
    bank_name: Optional[str] = Field(None, min_length=1, max_length=100)
    account_name: Optional[str] = Field(None, min_length=1, max_length=200)
    account_number: Optional[str] = Field(None, min_length=1, max_length=50)


class PickupStatusUpdate(BaseUpdateSchema):
    """Generic status change, dispatched to the matching lifecycle action."""
    status: PickupStatus


class PickupResponse(BaseResponseSchema):
    """Response schema for Pickup."""
    id: UUID
    customer_id: UUID
    courier_id: Optional[UUID] = None
    warehouse_id: Optional[UUID] = None
    status: str

    scheduled_date: datetime
    actual_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    volume: Decimal
    actual_volume: Optional[Decimal] = None

    estimated_price_per_liter: Decimal
    estimated_total_price: Decimal
    estimated_courier_fee: Decimal
    estimated_affiliate_fee: Decimal

    price_per_liter: Decimal
    total_price: Decimal
    courier_fee: Decimal
    affiliate_fee: Decimal

    photo_proof: Optional[str] = None
    bank_name: Optional[str] = None
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    notes: Optional[str] = None

    created_at: datetime
    updated_at: datetime


class PickupDetailResponse(PickupResponse):
    """Pickup with the bill and commissions created at completion."""
    bills: List[BillResponse] = []
    commissions: List[CommissionResponse] = []


class PickupListResponse(BaseModel):
    items: List[PickupResponse]
    total: int
    skip: int = 0
    limit: int = 50


class AllowedTransition(BaseModel):
    action: str
    label: str
    target_status: str


class PickupTransitionsResponse(BaseModel):
    """Actions the current user may take on a pickup right now."""
    pickup_id: UUID
    status: str
    is_terminal: bool
    allowed: List[AllowedTransition]
