"""
Pickup Message Service

Each pickup has one message thread. Only the pickup's customer, its
courier, the warehouse that received it and admins can read or post.
Opening the thread marks the reader's received messages as read.
"""
import logging
from datetime import datetime, timezone
from typing import List, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from jelantah.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from jelantah.models.message import Message
from jelantah.models.pickup import Pickup
from jelantah.models.user import User, UserRole
from jelantah.schemas.messages import MessageCreate
from jelantah.services.pickup_service import PickupService

logger = logging.getLogger(__name__)


def is_participant(pickup: Pickup, user: User) -> bool:
    """Admins, or the customer, courier or warehouse recorded on the pickup."""
    if user.role == UserRole.ADMIN.value:
        return True
    return user.id in (pickup.customer_id, pickup.courier_id, pickup.warehouse_id)


class MessageService:
    """Reads and writes pickup message threads."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_pickup_for_participant(self, pickup_id: UUID, actor: User) -> Pickup:
        pickup = await PickupService(self.db).get_pickup(pickup_id)
        if not is_participant(pickup, actor):
            raise PermissionDeniedError("You do not have access to this pickup's messages")
        return pickup

    async def list_thread(self, pickup_id: UUID, actor: User) -> Tuple[List[Message], int]:
        """
        Return (messages oldest first, number newly marked read).

        Messages addressed to ``actor`` are marked read before the thread is
        loaded, so the returned rows already show them as read.
        """
        await self._get_pickup_for_participant(pickup_id, actor)

        result = await self.db.execute(
            update(Message)
            .where(
                Message.pickup_id == pickup_id,
                Message.receiver_id == actor.id,
                Message.is_read == False,  # noqa: E712
            )
            .values(is_read=True, read_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        marked = result.rowcount or 0
        await self.db.commit()
        if marked:
            logger.debug(f"Marked {marked} messages read on pickup {pickup_id} for user {actor.id}")

        messages = await self.db.execute(
            select(Message)
            .where(Message.pickup_id == pickup_id)
            .options(selectinload(Message.sender), selectinload(Message.receiver))
            .order_by(Message.created_at.asc())
            .execution_options(populate_existing=True)
        )
        return list(messages.scalars().all()), marked

    async def send(self, pickup_id: UUID, actor: User, data: MessageCreate) -> Message:
        pickup = await self._get_pickup_for_participant(pickup_id, actor)

        if data.receiver_id == actor.id:
            raise ValidationError("Cannot send a message to yourself")

        receiver = (
            await self.db.execute(select(User).where(User.id == data.receiver_id))
        ).scalar_one_or_none()
        if receiver is None:
            raise NotFoundError("Receiver not found")
        if not is_participant(pickup, receiver):
            raise ValidationError("Receiver is not part of this pickup")

        content = data.content.strip()
        if not content:
            raise ValidationError("Message content must not be blank")

        message = Message(
            pickup_id=pickup.id,
            sender_id=actor.id,
            receiver_id=receiver.id,
            content=content,
        )
        self.db.add(message)
        await self.db.commit()

        logger.info(f"Message {message.id} on pickup {pickup.id} from {actor.role} {actor.id} to {receiver.id}")

        result = await self.db.execute(
            select(Message)
            .where(Message.id == message.id)
            .options(selectinload(Message.sender), selectinload(Message.receiver))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
