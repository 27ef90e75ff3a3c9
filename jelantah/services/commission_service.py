"""
Commission Service

Commissions are created by pickup completion only. This service lists them
(with pending / paid totals) and applies the payout action.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
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
from jelantah.models.commission import Commission, CommissionStatus, CommissionType
from jelantah.models.user import User, UserRole
from jelantah.schemas.commission import CommissionStatusUpdate
from jelantah.services.email_service import EmailService, get_email_service, send_commission_paid_notification
from jelantah.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

FINANCE_ROLES = (UserRole.ADMIN.value, UserRole.WAREHOUSE.value)


class CommissionService:
    """Service for courier and affiliate commissions."""

    def __init__(self, db: AsyncSession, email_service: Optional[EmailService] = None):
        self.db = db
        self.email_service = email_service or get_email_service()
        self.notifications = NotificationService(db)

    async def list_commissions(
        self,
        actor: User,
        status: Optional[CommissionStatus] = None,
        commission_type: Optional[CommissionType] = None,
        user_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Commission], int, Dict[str, Decimal]]:
        """
        Admin and warehouse see everything (optionally for one ``user_id``);
        everyone else only sees commissions paid to them.

        Returns (items, total, totals) where totals sums amounts by status
        over the whole filtered set, not just the returned page.
        """
        query = select(Commission)

        if actor.role in FINANCE_ROLES:
            if user_id:
                query = query.where(Commission.user_id == user_id)
        else:
            query = query.where(Commission.user_id == actor.id)

        if status:
            query = query.where(Commission.status == status.value)
        if commission_type:
            query = query.where(Commission.commission_type == commission_type.value)

        filtered = query.subquery()
        count_query = select(func.count()).select_from(filtered)
        total = (await self.db.execute(count_query)).scalar() or 0

        sums_query = select(filtered.c.status, func.sum(filtered.c.amount)).group_by(filtered.c.status)
        sums = {row[0]: Decimal(str(row[1] or 0)) for row in (await self.db.execute(sums_query)).all()}
        totals = {
            "pending": sums.get(CommissionStatus.PENDING.value, Decimal("0")),
            "paid": sums.get(CommissionStatus.PAID.value, Decimal("0")),
        }
        totals["total"] = totals["pending"] + totals["paid"]

        query = query.order_by(Commission.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total, totals

    async def get_commission(self, commission_id: UUID) -> Commission:
        result = await self.db.execute(
            select(Commission)
            .where(Commission.id == commission_id)
            .execution_options(populate_existing=True)
        )
        commission = result.scalar_one_or_none()
        if not commission:
            raise NotFoundError("Commission not found")
        return commission

    async def update_status(
        self,
        commission_id: UUID,
        actor: User,
        data: CommissionStatusUpdate,
    ) -> Commission:
        """PENDING -> PAID (proof required) or PENDING -> CANCELLED."""
        if actor.role not in FINANCE_ROLES:
            raise PermissionDeniedError(
                "Only admin or warehouse can update commissions",
                reason="ROLE_NOT_ALLOWED",
            )

        commission = await self.get_commission(commission_id)

        if commission.status != CommissionStatus.PENDING.value:
            raise InvalidStateError(
                f"Commission in '{commission.status}' status cannot be modified",
                reason="COMMISSION_CLOSED",
            )

        values = {"status": data.status}
        if data.status == CommissionStatus.PAID.value:
            if not data.payment_proof:
                raise ValidationError("payment_proof is required to mark a commission as paid")
            values["payment_proof"] = data.payment_proof
            values["paid_date"] = datetime.now(timezone.utc)

        result = await self.db.execute(
            update(Commission)
            .where(Commission.id == commission.id, Commission.status == CommissionStatus.PENDING.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError("Commission was modified by another request", reason="CONCURRENT_UPDATE")

        if data.status == CommissionStatus.PAID.value:
            self.notifications.notify_commission_paid(commission)

        await self.db.commit()
        await self.db.refresh(commission)

        logger.info(
            f"{commission.commission_type} commission {commission.id} marked {commission.status} "
            f"by {actor.role} {actor.id}"
        )

        if commission.status == CommissionStatus.PAID.value:
            await self._send_paid_email(commission)

        return commission

    async def _send_paid_email(self, commission: Commission) -> None:
        try:
            recipient = (
                await self.db.execute(select(User).where(User.id == commission.user_id))
            ).scalar_one_or_none()
            if recipient is None:
                return
            await send_commission_paid_notification(
                self.email_service,
                recipient.email,
                recipient.name,
                commission.commission_type,
                commission.amount,
                commission.paid_date,
            )
        except Exception:
            logger.exception(f"Commission email for {commission.id} failed")
