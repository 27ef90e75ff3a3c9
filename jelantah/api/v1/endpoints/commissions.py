"""API endpoints for courier and affiliate commissions."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query

from jelantah.api.deps import DB, CurrentUser
from jelantah.models.commission import CommissionStatus, CommissionType
from jelantah.schemas.commission import (
    CommissionListResponse,
    CommissionResponse,
    CommissionStatusUpdate,
    CommissionTotals,
)
from jelantah.services.commission_service import CommissionService

router = APIRouter()


@router.get("", response_model=CommissionListResponse)
async def list_commissions(
    db: DB,
    current_user: CurrentUser,
    status_filter: Optional[CommissionStatus] = Query(None, alias="status"),
    commission_type: Optional[CommissionType] = Query(None, alias="type"),
    user_id: Optional[UUID] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
):
    """Own commissions, or everyone's for admin / warehouse. Includes totals."""
    items, total, totals = await CommissionService(db).list_commissions(
        current_user,
        status=status_filter,
        commission_type=commission_type,
        user_id=user_id,
        skip=skip,
        limit=limit,
    )
    return CommissionListResponse(
        items=[CommissionResponse.model_validate(c) for c in items],
        total=total,
        totals=CommissionTotals(**totals),
        skip=skip,
        limit=limit,
    )


@router.patch("/{commission_id}", response_model=CommissionResponse)
async def update_commission_status(
    commission_id: UUID,
    data: CommissionStatusUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """Mark a commission PAID (proof required) or CANCELLED. Admin / warehouse only."""
    return await CommissionService(db).update_status(commission_id, current_user, data)
