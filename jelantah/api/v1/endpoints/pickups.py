"""API endpoints for the pickup lifecycle."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from jelantah.api.deps import DB, CurrentUser
from jelantah.models.pickup import PickupStatus
from jelantah.schemas.pickup import (
    AllowedTransition,
    PickupCreate,
    PickupDetailResponse,
    PickupListResponse,
    PickupProofUpdate,
    PickupResponse,
    PickupStatusUpdate,
    PickupTransitionsResponse,
)
from jelantah.services.pickup_service import PickupService
from jelantah.services.pickup_state_machine import is_terminal

router = APIRouter()


@router.get("", response_model=PickupListResponse)
async def list_pickups(
    db: DB,
    current_user: CurrentUser,
    status_filter: Optional[PickupStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
):
    """List pickups visible to the current user, newest first."""
    service = PickupService(db)
    items, total = await service.list_pickups(current_user, status=status_filter, skip=skip, limit=limit)
    return PickupListResponse(
        items=[PickupResponse.model_validate(p) for p in items],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=PickupResponse, status_code=status.HTTP_201_CREATED)
async def create_pickup(data: PickupCreate, db: DB, current_user: CurrentUser):
    """Create a pickup request (customer for self, admin on behalf of a customer)."""
    service = PickupService(db)
    return await service.create_pickup(current_user, data)


@router.get("/{pickup_id}", response_model=PickupDetailResponse)
async def get_pickup(pickup_id: UUID, db: DB, current_user: CurrentUser):
    """Get a pickup with its bill and commissions."""
    service = PickupService(db)
    return await service.get_pickup_for_user(pickup_id, current_user, with_ledger=True)


@router.get("/{pickup_id}/transitions", response_model=PickupTransitionsResponse)
async def get_pickup_transitions(pickup_id: UUID, db: DB, current_user: CurrentUser):
    """Actions the current user may attempt on this pickup."""
    service = PickupService(db)
    pickup = await service.get_pickup_for_user(pickup_id, current_user)
    return PickupTransitionsResponse(
        pickup_id=pickup.id,
        status=pickup.status,
        is_terminal=is_terminal(pickup.status),
        allowed=[
            AllowedTransition(action=t.action.value, label=t.label, target_status=t.target)
            for t in service.allowed_transitions(pickup, current_user)
        ],
    )


@router.post("/{pickup_id}/accept", response_model=PickupResponse)
async def accept_pickup(pickup_id: UUID, db: DB, current_user: CurrentUser):
    """Courier accepts a PENDING pickup."""
    return await PickupService(db).accept_pickup(pickup_id, current_user)


@router.post("/{pickup_id}/start", response_model=PickupResponse)
async def start_pickup(pickup_id: UUID, db: DB, current_user: CurrentUser):
    """Assigned courier starts the pickup."""
    return await PickupService(db).start_pickup(pickup_id, current_user)


@router.patch("/{pickup_id}/proof", response_model=PickupResponse)
async def update_pickup_proof(
    pickup_id: UUID,
    data: PickupProofUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """Assigned courier uploads photo proof, actual volume and bank details."""
    return await PickupService(db).update_proof(pickup_id, current_user, data)


@router.post("/{pickup_id}/complete", response_model=PickupDetailResponse)
async def complete_pickup(pickup_id: UUID, db: DB, current_user: CurrentUser):
    """Assigned courier completes the pickup; creates the bill and commissions."""
    service = PickupService(db)
    pickup = await service.complete_pickup(pickup_id, current_user)
    return await service.get_pickup(pickup.id, with_ledger=True)


@router.post("/{pickup_id}/cancel", response_model=PickupResponse)
async def cancel_pickup(pickup_id: UUID, db: DB, current_user: CurrentUser):
    """Owning customer or admin cancels a PENDING pickup."""
    return await PickupService(db).cancel_pickup(pickup_id, current_user)


@router.patch("/{pickup_id}", response_model=PickupDetailResponse)
async def update_pickup_status(
    pickup_id: UUID,
    data: PickupStatusUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Change status by target value.

    The (role, target status) pair selects the lifecycle action, e.g. a
    COURIER asking for COMPLETED runs the completion with billing while a
    WAREHOUSE user asking for COMPLETED runs the legacy warehouse path.
    """
    service = PickupService(db)
    pickup = await service.apply_status(pickup_id, current_user, data.status)
    return await service.get_pickup(pickup.id, with_ledger=True)
