from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from jelantah.jobs.overdue_bills import run_overdue_bills_job
from jelantah.models import Bill, BillStatus, Notification, NotificationType
from jelantah.schemas.billing import BillStatusUpdate
from jelantah.services.billing_service import BillService
from jelantah.services.pickup_service import PickupService


@pytest.fixture
def completed_bill(db, users, in_progress_pickup):
    async def _make(customer, volume="150"):
        pickup = await in_progress_pickup(customer, users.courier, volume, volume)
        await PickupService(db).complete_pickup(pickup.id, users.courier)
        return (await db.execute(select(Bill).where(Bill.pickup_id == pickup.id))).scalar_one()

    return _make


async def payment_due_count(db, user_id) -> int:
    return (
        await db.execute(
            select(func.count()).select_from(Notification).where(
                Notification.user_id == user_id,
                Notification.notification_type == NotificationType.PAYMENT_DUE.value,
            )
        )
    ).scalar()


async def bill_status(db, bill_id) -> str:
    return (
        await db.execute(
            select(Bill).where(Bill.id == bill_id).execution_options(populate_existing=True)
        )
    ).scalar_one().status


async def test_bills_not_yet_due_are_untouched(db, users, completed_bill):
    bill = await completed_bill(users.customer)

    summary = await run_overdue_bills_job(db)

    assert summary["overdue_bills"] == 0
    assert await bill_status(db, bill.id) == BillStatus.UNPAID.value


async def test_past_due_bill_becomes_overdue_once(db, users, completed_bill):
    bill = await completed_bill(users.customer, "50")
    later = datetime.now(timezone.utc) + timedelta(days=8)

    summary = await run_overdue_bills_job(db, now=later)

    assert summary["overdue_bills"] == 1
    assert summary["notifications_created"] == 1
    assert summary["total_overdue_amount"] == Decimal("325000")
    assert await bill_status(db, bill.id) == BillStatus.OVERDUE.value
    assert await payment_due_count(db, users.customer.id) == 1

    summary = await run_overdue_bills_job(db, now=later + timedelta(hours=1))

    assert summary["overdue_bills"] == 0
    assert await payment_due_count(db, users.customer.id) == 1


async def test_paid_bills_never_go_overdue(db, users, completed_bill):
    bill = await completed_bill(users.customer)
    await BillService(db).update_status(
        bill.id, users.admin, BillStatusUpdate(status="PAID", payment_proof="transfer.jpg")
    )

    summary = await run_overdue_bills_job(db, now=datetime.now(timezone.utc) + timedelta(days=30))

    assert summary["overdue_bills"] == 0
    assert await bill_status(db, bill.id) == BillStatus.PAID.value


async def test_overdue_bill_can_still_be_paid(db, users, completed_bill):
    bill = await completed_bill(users.customer)
    await run_overdue_bills_job(db, now=datetime.now(timezone.utc) + timedelta(days=8))

    bill = await BillService(db).update_status(
        bill.id, users.warehouse, BillStatusUpdate(status="PAID", payment_proof="late-transfer.jpg")
    )

    assert bill.status == BillStatus.PAID.value
