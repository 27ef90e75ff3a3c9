"""API endpoints for customer bills."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query

from jelantah.api.deps import DB, CurrentUser
from jelantah.models.billing import BillStatus
from jelantah.schemas.billing import BillListResponse, BillResponse, BillStatusUpdate
from jelantah.services.billing_service import BillService

router = APIRouter()


@router.get("", response_model=BillListResponse)
async def list_bills(
    db: DB,
    current_user: CurrentUser,
    status_filter: Optional[BillStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
):
    """Customers see their own bills; admin and warehouse see all."""
    items, total = await BillService(db).list_bills(current_user, status=status_filter, skip=skip, limit=limit)
    return BillListResponse(
        items=[BillResponse.model_validate(b) for b in items],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/{bill_id}", response_model=BillResponse)
async def get_bill(bill_id: UUID, db: DB, current_user: CurrentUser):
    return await BillService(db).get_bill_for_user(bill_id, current_user)


@router.patch("/{bill_id}", response_model=BillResponse)
async def update_bill_status(
    bill_id: UUID,
    data: BillStatusUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """Confirm payment (PAID, proof required) or cancel. Admin / warehouse only."""
    return await BillService(db).update_status(bill_id, current_user, data)
