"""
In-app Notification Service

Notifications are rows in the ``notifications`` table. The ``notify_*``
helpers only add rows to the caller's session; they are committed together
with the business change that triggered them. Nothing here reads a
notification back to decide business logic.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from jelantah.core.exceptions import NotFoundError
from jelantah.models.billing import Bill
from jelantah.models.commission import Commission, CommissionType
from jelantah.models.notifications import Notification, NotificationType
from jelantah.models.pickup import Pickup


logger = logging.getLogger(__name__)


# (title, message) templates
NOTIFICATION_TEMPLATES: Dict[NotificationType, Tuple[str, str]] = {
    NotificationType.PICKUP_REQUEST: (
        "Pickup request created",
        "Your pickup request for {volume} L scheduled on {scheduled_date} has been created. "
        "Estimated payout: Rp {total_price}.",
    ),
    NotificationType.PICKUP_ASSIGNED: (
        "Courier assigned",
        "Courier {courier_name} will collect your pickup scheduled on {scheduled_date}.",
    ),
    NotificationType.PICKUP_COMPLETED: (
        "Pickup completed",
        "Your pickup of {volume} L is complete. Invoice {invoice_number}: Rp {amount}.",
    ),
    NotificationType.PICKUP_CANCELLED: (
        "Pickup cancelled",
        "Your pickup scheduled on {scheduled_date} has been cancelled.",
    ),
    NotificationType.COMMISSION_EARNED: (
        "Commission earned",
        "You earned a {commission_type} commission of Rp {amount} for {volume} L of oil.",
    ),
    NotificationType.COMMISSION_PAID: (
        "Commission paid",
        "Your {commission_type} commission of Rp {amount} has been paid.",
    ),
    NotificationType.PAYMENT_RECEIVED: (
        "Payment received",
        "Payment for invoice {invoice_number} (Rp {amount}) has been confirmed.",
    ),
    NotificationType.PAYMENT_DUE: (
        "Bill overdue",
        "Invoice {invoice_number} (Rp {amount}) was due on {due_date} and is now overdue.",
    ),
}

COURIER_ASSIGNED_TEMPLATE = (
    "New pickup assigned",
    "You accepted a pickup of {volume} L scheduled on {scheduled_date}.",
)


def format_amount(amount: Decimal) -> str:
    """Rupiah style grouping: 1050000 -> 1.050.000"""
    return f"{int(Decimal(amount)):,}".replace(",", ".")


def _format_date(value: Optional[datetime]) -> str:
    return value.strftime("%d %b %Y") if value else "-"


class NotificationService:
    """Creates and reads in-app notifications."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def add(
        self,
        user_id: UUID,
        notification_type: NotificationType,
        related_id: Optional[UUID] = None,
        template: Optional[Tuple[str, str]] = None,
        **template_data: Any,
    ) -> Notification:
        """Add a notification to the current session (not committed)."""
        title, message = template or NOTIFICATION_TEMPLATES[notification_type]
        notification = Notification(
            user_id=user_id,
            notification_type=notification_type.value,
            title=title,
            message=message.format(**template_data),
            related_id=related_id,
        )
        self.db.add(notification)
        logger.debug(f"Queued {notification_type.value} notification for user {user_id}")
        return notification

    # ==================== Pickup events ====================

    def notify_pickup_created(self, pickup: Pickup) -> Notification:
        return self.add(
            pickup.customer_id,
            NotificationType.PICKUP_REQUEST,
            related_id=pickup.id,
            volume=pickup.volume,
            scheduled_date=_format_date(pickup.scheduled_date),
            total_price=format_amount(pickup.estimated_total_price),
        )

    def notify_pickup_assigned(self, pickup: Pickup, courier_id: UUID, courier_name: str) -> List[Notification]:
        """Both the customer and the accepting courier are told."""
        scheduled_date = _format_date(pickup.scheduled_date)
        return [
            self.add(
                pickup.customer_id,
                NotificationType.PICKUP_ASSIGNED,
                related_id=pickup.id,
                courier_name=courier_name,
                scheduled_date=scheduled_date,
            ),
            self.add(
                courier_id,
                NotificationType.PICKUP_ASSIGNED,
                related_id=pickup.id,
                template=COURIER_ASSIGNED_TEMPLATE,
                volume=pickup.volume,
                scheduled_date=scheduled_date,
            ),
        ]

    def notify_pickup_cancelled(self, pickup: Pickup) -> Notification:
        return self.add(
            pickup.customer_id,
            NotificationType.PICKUP_CANCELLED,
            related_id=pickup.id,
            scheduled_date=_format_date(pickup.scheduled_date),
        )

    def notify_pickup_completed(self, bill: Bill, volume: Decimal) -> Notification:
        return self.add(
            bill.user_id,
            NotificationType.PICKUP_COMPLETED,
            related_id=bill.pickup_id,
            volume=volume,
            invoice_number=bill.invoice_number,
            amount=format_amount(bill.amount),
        )

    def notify_commission_earned(self, commission: Commission, volume: Decimal) -> Notification:
        return self.add(
            commission.user_id,
            NotificationType.COMMISSION_EARNED,
            related_id=commission.pickup_id,
            commission_type=_commission_label(commission),
            amount=format_amount(commission.amount),
            volume=volume,
        )

    # ==================== Finance events ====================

    def notify_payment_received(self, bill: Bill) -> Notification:
        return self.add(
            bill.user_id,
            NotificationType.PAYMENT_RECEIVED,
            related_id=bill.id,
            invoice_number=bill.invoice_number,
            amount=format_amount(bill.amount),
        )

    def notify_payment_due(self, bill: Bill) -> Notification:
        return self.add(
            bill.user_id,
            NotificationType.PAYMENT_DUE,
            related_id=bill.id,
            invoice_number=bill.invoice_number,
            amount=format_amount(bill.amount),
            due_date=_format_date(bill.due_date),
        )

    def notify_commission_paid(self, commission: Commission) -> Notification:
        return self.add(
            commission.user_id,
            NotificationType.COMMISSION_PAID,
            related_id=commission.id,
            commission_type=_commission_label(commission),
            amount=format_amount(commission.amount),
        )

    # ==================== Inbox ====================

    async def list_for_user(
        self,
        user_id: UUID,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Notification], int, int]:
        """Return (items, total, unread_count) for one user, newest first."""
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read == False)  # noqa: E712

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        unread_query = select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.is_read == False,  # noqa: E712
        )
        unread_count = (await self.db.execute(unread_query)).scalar() or 0

        query = query.order_by(Notification.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total, unread_count

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        result = await self.db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError("Notification not found")

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(timezone.utc)
            await self.db.commit()
            await self.db.refresh(notification)

        return notification

    async def mark_all_read(self, user_id: UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
            .values(is_read=True, read_at=datetime.now(timezone.utc))
        )
        await self.db.commit()
        return result.rowcount or 0


def _commission_label(commission: Commission) -> str:
    if commission.commission_type == CommissionType.AFFILIATE.value:
        return "referral"
    return "courier"
