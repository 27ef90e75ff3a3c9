"""
Dashboard Service

Headline counts and sums for the current user, shaped by role. Every figure
is computed with one aggregate query per table; nothing is cached.
"""
import logging
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jelantah.core.exceptions import PermissionDeniedError
from jelantah.models.billing import Bill, BillStatus
from jelantah.models.commission import Commission, CommissionStatus
from jelantah.models.pickup import Pickup, PickupStatus
from jelantah.models.user import User, UserRole
from jelantah.services.billing_service import OPEN_BILL_STATUSES

logger = logging.getLogger(__name__)

ACTIVE_PICKUP_STATUSES = (PickupStatus.ASSIGNED.value, PickupStatus.IN_PROGRESS.value)


def _amount(value) -> Decimal:
    return Decimal(str(value or 0))


class DashboardService:
    """Per-role dashboard statistics."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_stats(self, actor: User) -> Dict[str, Any]:
        handlers = {
            UserRole.ADMIN.value: self._admin_stats,
            UserRole.CUSTOMER.value: self._customer_stats,
            UserRole.COURIER.value: self._courier_stats,
            UserRole.WAREHOUSE.value: self._warehouse_stats,
        }
        handler = handlers.get(actor.role)
        if handler is None:
            raise PermissionDeniedError(f"No dashboard for role {actor.role}")

        logger.debug(f"Computing {actor.role} dashboard for user {actor.id}")
        stats = await handler(actor)
        stats["role"] = actor.role
        return stats

    async def _admin_stats(self, actor: User) -> Dict[str, Any]:
        total_users = (await self.db.execute(select(func.count(User.id)))).scalar() or 0

        pickups = (
            await self.db.execute(
                select(
                    func.count(Pickup.id).label("total"),
                    func.count(Pickup.id).filter(Pickup.status == PickupStatus.PENDING.value).label("pending"),
                )
            )
        ).one()

        bills = (
            await self.db.execute(
                select(
                    func.sum(Bill.amount).filter(Bill.status == BillStatus.PAID.value).label("revenue"),
                    func.count(Bill.id).filter(Bill.status.in_(OPEN_BILL_STATUSES)).label("unpaid"),
                    func.count(Bill.id).filter(Bill.status == BillStatus.OVERDUE.value).label("overdue"),
                )
            )
        ).one()

        return {
            "total_users": total_users,
            "total_pickups": pickups.total or 0,
            "pending_pickups": pickups.pending or 0,
            "total_revenue": _amount(bills.revenue),
            "unpaid_bills": bills.unpaid or 0,
            "overdue_bills": bills.overdue or 0,
        }

    async def _customer_stats(self, actor: User) -> Dict[str, Any]:
        pickups = (
            await self.db.execute(
                select(
                    func.count(Pickup.id).label("total"),
                    func.count(Pickup.id).filter(Pickup.status == PickupStatus.PENDING.value).label("pending"),
                    func.count(Pickup.id).filter(Pickup.status == PickupStatus.COMPLETED.value).label("completed"),
                ).where(Pickup.customer_id == actor.id)
            )
        ).one()

        bills = (
            await self.db.execute(
                select(
                    func.sum(Bill.amount).filter(Bill.status == BillStatus.PAID.value).label("spent"),
                    func.count(Bill.id).filter(Bill.status.in_(OPEN_BILL_STATUSES)).label("unpaid"),
                ).where(Bill.user_id == actor.id)
            )
        ).one()

        return {
            "my_pickups": pickups.total or 0,
            "pending_pickups": pickups.pending or 0,
            "completed_pickups": pickups.completed or 0,
            "total_spent": _amount(bills.spent),
            "unpaid_bills": bills.unpaid or 0,
        }

    async def _courier_stats(self, actor: User) -> Dict[str, Any]:
        pickups = (
            await self.db.execute(
                select(
                    func.count(Pickup.id).filter(Pickup.status.in_(ACTIVE_PICKUP_STATUSES)).label("assigned"),
                    func.count(Pickup.id).filter(Pickup.status == PickupStatus.COMPLETED.value).label("completed"),
                ).where(Pickup.courier_id == actor.id)
            )
        ).one()

        commissions = (
            await self.db.execute(
                select(
                    func.sum(Commission.amount)
                    .filter(Commission.status == CommissionStatus.PAID.value)
                    .label("earned"),
                    func.count(Commission.id)
                    .filter(Commission.status == CommissionStatus.PENDING.value)
                    .label("pending"),
                ).where(Commission.user_id == actor.id)
            )
        ).one()

        return {
            "assigned_pickups": pickups.assigned or 0,
            "completed_pickups": pickups.completed or 0,
            "total_earnings": _amount(commissions.earned),
            "pending_commissions": commissions.pending or 0,
        }

    async def _warehouse_stats(self, actor: User) -> Dict[str, Any]:
        received = (
            await self.db.execute(
                select(
                    func.count(Pickup.id).label("received"),
                    func.sum(func.coalesce(Pickup.actual_volume, Pickup.volume))
                    .filter(Pickup.status == PickupStatus.COMPLETED.value)
                    .label("volume"),
                ).where(Pickup.warehouse_id == actor.id)
            )
        ).one()

        return {
            "received_pickups": received.received or 0,
            "total_volume": _amount(received.volume),
        }
