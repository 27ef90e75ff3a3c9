"""
Bill Service

Bills are created by pickup completion only. This service lists them and
applies the payment confirmation action (PAID with proof, or CANCELLED).
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from jelantah.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from jelantah.models.billing import Bill, BillStatus
from jelantah.models.user import User, UserRole
from jelantah.schemas.billing import BillStatusUpdate
from jelantah.services.email_service import EmailService, get_email_service, send_payment_received_notification
from jelantah.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

FINANCE_ROLES = (UserRole.ADMIN.value, UserRole.WAREHOUSE.value)
OPEN_BILL_STATUSES = (BillStatus.UNPAID.value, BillStatus.OVERDUE.value)


class BillService:
    """Service for customer bills."""

    def __init__(self, db: AsyncSession, email_service: Optional[EmailService] = None):
        self.db = db
        self.email_service = email_service or get_email_service()
        self.notifications = NotificationService(db)

    async def list_bills(
        self,
        actor: User,
        status: Optional[BillStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Bill], int]:
        """Customers see their own bills; admin and warehouse see all."""
        query = select(Bill)

        if actor.role == UserRole.CUSTOMER.value:
            query = query.where(Bill.user_id == actor.id)
        elif actor.role not in FINANCE_ROLES:
            raise PermissionDeniedError(f"Role {actor.role} cannot view bills")

        if status:
            query = query.where(Bill.status == status.value)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(Bill.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def get_bill(self, bill_id: UUID) -> Bill:
        result = await self.db.execute(
            select(Bill).where(Bill.id == bill_id).execution_options(populate_existing=True)
        )
        bill = result.scalar_one_or_none()
        if not bill:
            raise NotFoundError("Bill not found")
        return bill

    async def get_bill_for_user(self, bill_id: UUID, actor: User) -> Bill:
        bill = await self.get_bill(bill_id)
        if actor.role in FINANCE_ROLES:
            return bill
        if actor.role == UserRole.CUSTOMER.value and bill.user_id == actor.id:
            return bill
        raise PermissionDeniedError("You do not have access to this bill")

    async def update_status(self, bill_id: UUID, actor: User, data: BillStatusUpdate) -> Bill:
        """
        Confirm payment or cancel an open (UNPAID / OVERDUE) bill.

        PAID requires a payment proof reference. The customer is notified
        in-app in the same transaction and by email after commit.
        """
        if actor.role not in FINANCE_ROLES:
            raise PermissionDeniedError(
                "Only admin or warehouse can update bills",
                reason="ROLE_NOT_ALLOWED",
            )

        bill = await self.get_bill(bill_id)

        if bill.status not in OPEN_BILL_STATUSES:
            raise InvalidStateError(
                f"Bill in '{bill.status}' status cannot be modified",
                reason="BILL_CLOSED",
            )

        values = {"status": data.status}
        if data.status == BillStatus.PAID.value:
            if not data.payment_proof:
                raise ValidationError("payment_proof is required to mark a bill as paid")
            values["payment_proof"] = data.payment_proof
            values["paid_date"] = datetime.now(timezone.utc)

        result = await self.db.execute(
            update(Bill)
            .where(Bill.id == bill.id, Bill.status.in_(OPEN_BILL_STATUSES))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError("Bill was modified by another request", reason="CONCURRENT_UPDATE")

        if data.status == BillStatus.PAID.value:
            self.notifications.notify_payment_received(bill)

        await self.db.commit()
        await self.db.refresh(bill)

        logger.info(f"Bill {bill.invoice_number} marked {bill.status} by {actor.role} {actor.id}")

        if bill.status == BillStatus.PAID.value:
            await self._send_payment_email(bill)

        return bill

    async def _send_payment_email(self, bill: Bill) -> None:
        try:
            customer = (
                await self.db.execute(select(User).where(User.id == bill.user_id))
            ).scalar_one_or_none()
            if customer is None:
                return
            await send_payment_received_notification(
                self.email_service,
                customer.email,
                customer.name,
                bill.invoice_number,
                bill.amount,
                bill.paid_date,
            )
        except Exception:
            logger.exception(f"Payment email for bill {bill.invoice_number} failed")
