"""API endpoints for the current user's notifications."""
from uuid import UUID

from fastapi import APIRouter, Query

from jelantah.api.deps import DB, CurrentUser
from jelantah.schemas.notifications import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
)
from jelantah.services.notification_service import NotificationService

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def get_my_notifications(
    db: DB,
    current_user: CurrentUser,
    unread_only: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
):
    """Get current user's notifications, newest first."""
    items, total, unread_count = await NotificationService(db).list_for_user(
        current_user.id, unread_only=unread_only, skip=skip, limit=limit
    )
    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in items],
        total=total,
        unread_count=unread_count,
        skip=skip,
        limit=limit,
    )


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(db: DB, current_user: CurrentUser):
    """Mark all notifications as read for current user."""
    updated = await NotificationService(db).mark_all_read(current_user.id)
    return MarkAllReadResponse(updated=updated)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(notification_id: UUID, db: DB, current_user: CurrentUser):
    """Mark one notification as read. Other users' notifications are not found."""
    return await NotificationService(db).mark_read(notification_id, current_user.id)
