"""API endpoints for a pickup's message thread."""
from uuid import UUID

from fastapi import APIRouter, status

from jelantah.api.deps import DB, CurrentUser
from jelantah.schemas.messages import MessageCreate, MessageResponse, MessageThreadResponse
from jelantah.services.message_service import MessageService

router = APIRouter()


@router.get("/{pickup_id}/messages", response_model=MessageThreadResponse)
async def get_pickup_messages(pickup_id: UUID, db: DB, current_user: CurrentUser):
    """Messages of one pickup, oldest first. Marks the caller's received messages read."""
    items, marked = await MessageService(db).list_thread(pickup_id, current_user)
    return MessageThreadResponse(
        pickup_id=pickup_id,
        items=[MessageResponse.model_validate(m) for m in items],
        total=len(items),
        marked_read=marked,
    )


@router.post(
    "/{pickup_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_pickup_message(pickup_id: UUID, data: MessageCreate, db: DB, current_user: CurrentUser):
    """Send a message to another participant of the pickup."""
    return await MessageService(db).send(pickup_id, current_user, data)
