"""
Overdue Bills Job.

Moves UNPAID bills whose due date has passed to OVERDUE and notifies the
customer once (PAYMENT_DUE). Bills already OVERDUE are not touched again.

Triggers:
- Interval job (via APScheduler), see ``jelantah.jobs.scheduler``
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jelantah.models.billing import Bill, BillStatus
from jelantah.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


async def run_overdue_bills_job(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Main overdue job.

    Returns:
        Summary of bills moved to OVERDUE
    """
    now = now or datetime.now(timezone.utc)
    logger.info("Starting overdue bills job...")

    results = {
        "started_at": now.isoformat(),
        "overdue_bills": 0,
        "total_overdue_amount": Decimal("0"),
        "notifications_created": 0,
    }

    result = await db.execute(
        select(Bill).where(
            Bill.status == BillStatus.UNPAID.value,
            Bill.due_date < now,
        )
    )
    bills = list(result.scalars().all())

    notifications = NotificationService(db)

    for bill in bills:
        # Skip bills paid or cancelled since the select
        updated = await db.execute(
            update(Bill)
            .where(Bill.id == bill.id, Bill.status == BillStatus.UNPAID.value)
            .values(status=BillStatus.OVERDUE.value)
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount != 1:
            continue

        notifications.notify_payment_due(bill)
        results["overdue_bills"] += 1
        results["notifications_created"] += 1
        results["total_overdue_amount"] += Decimal(str(bill.amount))

    await db.commit()

    logger.info(
        f"Overdue bills job completed: {results['overdue_bills']} bill(s), "
        f"total {results['total_overdue_amount']}"
    )
    return results
