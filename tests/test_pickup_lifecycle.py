import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from jelantah.config import settings
from jelantah.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from jelantah.models import (
    Bill,
    BillStatus,
    Commission,
    CommissionStatus,
    CommissionType,
    Notification,
    NotificationType,
    Pickup,
    PickupStatus,
    User,
)
from jelantah.schemas.pickup import PickupCreate, PickupProofUpdate
from jelantah.services.notification_service import NotificationService
from jelantah.services.pickup_service import PickupService
from jelantah.services.settings_service import SettingsService


def as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def count(db, model, *conditions) -> int:
    return (await db.execute(select(func.count()).select_from(model).where(*conditions))).scalar()


async def notifications_for(db, user_id):
    result = await db.execute(
        select(Notification.notification_type).where(Notification.user_id == user_id)
    )
    return sorted(result.scalars().all())


# ==================== Create ====================

async def test_customer_creates_pickup_with_estimate(db, users, create_pickup):
    pickup = await create_pickup(users.referred_customer, "150")

    assert pickup.status == PickupStatus.PENDING.value
    assert pickup.customer_id == users.referred_customer.id
    assert pickup.courier_id is None
    assert Decimal(pickup.estimated_price_per_liter) == Decimal("7000")
    assert Decimal(pickup.estimated_total_price) == Decimal("1050000")
    assert Decimal(pickup.estimated_courier_fee) == Decimal("75000")
    assert Decimal(pickup.estimated_affiliate_fee) == Decimal("30000")

    assert await notifications_for(db, users.referred_customer.id) == [NotificationType.PICKUP_REQUEST.value]


async def test_estimate_has_no_affiliate_fee_without_referrer(users, create_pickup):
    pickup = await create_pickup(users.customer, "50")

    assert Decimal(pickup.estimated_total_price) == Decimal("325000")
    assert Decimal(pickup.estimated_affiliate_fee) == Decimal("0")


async def test_customer_cannot_create_for_someone_else(db, users, tomorrow):
    data = PickupCreate(volume=Decimal("10"), scheduled_date=tomorrow, customer_id=users.referrer.id)
    with pytest.raises(PermissionDeniedError):
        await PickupService(db).create_pickup(users.customer, data)


async def test_courier_cannot_create_pickup(db, users, tomorrow):
    data = PickupCreate(volume=Decimal("10"), scheduled_date=tomorrow)
    with pytest.raises(PermissionDeniedError):
        await PickupService(db).create_pickup(users.courier, data)


async def test_admin_creates_for_customer(users, create_pickup):
    pickup = await create_pickup(users.referred_customer, "100", actor=users.admin)

    assert pickup.customer_id == users.referred_customer.id
    assert Decimal(pickup.estimated_total_price) == Decimal("700000")
    assert Decimal(pickup.estimated_affiliate_fee) == Decimal("20000")


async def test_admin_must_name_a_customer(db, users, tomorrow):
    service = PickupService(db)

    with pytest.raises(ValidationError):
        await service.create_pickup(users.admin, PickupCreate(volume=Decimal("10"), scheduled_date=tomorrow))

    with pytest.raises(ValidationError):
        await service.create_pickup(
            users.admin,
            PickupCreate(volume=Decimal("10"), scheduled_date=tomorrow, customer_id=users.courier.id),
        )


# ==================== Accept / start ====================

async def test_accept_assigns_courier_and_notifies_both(db, users, create_pickup):
    pickup = await create_pickup(users.customer)

    pickup = await PickupService(db).accept_pickup(pickup.id, users.courier)

    assert pickup.status == PickupStatus.ASSIGNED.value
    assert pickup.courier_id == users.courier.id
    assert NotificationType.PICKUP_ASSIGNED.value in await notifications_for(db, users.customer.id)
    assert await notifications_for(db, users.courier.id) == [NotificationType.PICKUP_ASSIGNED.value]


async def test_second_courier_gets_conflict(db, users, create_pickup):
    service = PickupService(db)
    pickup = await create_pickup(users.customer)
    await service.accept_pickup(pickup.id, users.courier)

    with pytest.raises(ConflictError):
        await service.accept_pickup(pickup.id, users.other_courier)

    with pytest.raises(InvalidStateError):
        await service.accept_pickup(pickup.id, users.courier)


async def test_concurrent_accept_has_one_winner(session_factory, users, create_pickup):
    pickup = await create_pickup(users.customer)
    courier_ids = [users.courier.id, users.other_courier.id]

    async def accept(courier_id):
        async with session_factory() as session:
            courier = await session.get(User, courier_id)
            try:
                await PickupService(session).accept_pickup(pickup.id, courier)
                return courier_id
            except ConflictError:
                return None

    results = await asyncio.gather(*(accept(cid) for cid in courier_ids))
    winners = [r for r in results if r is not None]
    assert len(winners) == 1

    async with session_factory() as session:
        stored = await session.get(Pickup, pickup.id)
        assert stored.status == PickupStatus.ASSIGNED.value
        assert stored.courier_id == winners[0]


async def test_only_couriers_accept(db, users, create_pickup):
    pickup = await create_pickup(users.customer)
    with pytest.raises(PermissionDeniedError):
        await PickupService(db).accept_pickup(pickup.id, users.customer)


async def test_start_by_other_courier_is_forbidden(db, users, create_pickup):
    service = PickupService(db)
    pickup = await create_pickup(users.customer)
    await service.accept_pickup(pickup.id, users.courier)

    with pytest.raises(PermissionDeniedError):
        await service.start_pickup(pickup.id, users.other_courier)

    pickup = await service.start_pickup(pickup.id, users.courier)
    assert pickup.status == PickupStatus.IN_PROGRESS.value
    assert pickup.actual_date is not None


async def test_start_pending_pickup_is_forbidden_for_unassigned_courier(db, users, create_pickup):
    pickup = await create_pickup(users.customer)
    with pytest.raises(PermissionDeniedError):
        await PickupService(db).start_pickup(pickup.id, users.courier)


async def test_unknown_pickup(db, users):
    from uuid import uuid4

    with pytest.raises(NotFoundError):
        await PickupService(db).accept_pickup(uuid4(), users.courier)


# ==================== Proof ====================

async def test_proof_requires_in_progress(db, users, create_pickup):
    service = PickupService(db)
    pickup = await create_pickup(users.customer)
    await service.accept_pickup(pickup.id, users.courier)

    with pytest.raises(InvalidStateError):
        await service.update_proof(pickup.id, users.courier, PickupProofUpdate(photo_proof="p.jpg"))


async def test_proof_requires_some_field(db, users, in_progress_pickup):
    pickup = await in_progress_pickup(users.customer, users.courier, with_proof=False)
    with pytest.raises(ValidationError):
        await PickupService(db).update_proof(pickup.id, users.courier, PickupProofUpdate())


async def test_bank_details_are_all_or_nothing(db, users, in_progress_pickup):
    service = PickupService(db)
    pickup = await in_progress_pickup(users.customer, users.courier, with_proof=False)

    with pytest.raises(ValidationError):
        await service.update_proof(pickup.id, users.courier, PickupProofUpdate(bank_name="BCA"))

    pickup = await service.update_proof(
        pickup.id,
        users.courier,
        PickupProofUpdate(bank_name="BCA", account_name="Budi", account_number="111"),
    )
    assert pickup.bank_name == "BCA"

    # Once complete, a single field may be corrected
    pickup = await service.update_proof(pickup.id, users.courier, PickupProofUpdate(account_number="222"))
    assert pickup.account_number == "222"
    assert pickup.account_name == "Budi"


async def test_proof_by_other_courier_is_forbidden(db, users, in_progress_pickup):
    pickup = await in_progress_pickup(users.customer, users.courier, with_proof=False)
    with pytest.raises(PermissionDeniedError):
        await PickupService(db).update_proof(
            pickup.id, users.other_courier, PickupProofUpdate(photo_proof="p.jpg")
        )


# ==================== Complete ====================

async def test_completion_creates_bill_and_commissions(db, users, in_progress_pickup):
    pickup = await in_progress_pickup(users.referred_customer, users.courier, "150", "150")

    before = datetime.now(timezone.utc)
    pickup = await PickupService(db).complete_pickup(pickup.id, users.courier)

    assert pickup.status == PickupStatus.COMPLETED.value
    assert pickup.completed_at is not None
    assert Decimal(pickup.price_per_liter) == Decimal("7000")
    assert Decimal(pickup.total_price) == Decimal("1050000")
    assert Decimal(pickup.courier_fee) == Decimal("75000")
    assert Decimal(pickup.affiliate_fee) == Decimal("30000")

    bill = (await db.execute(select(Bill).where(Bill.pickup_id == pickup.id))).scalar_one()
    assert bill.user_id == users.referred_customer.id
    assert bill.status == BillStatus.UNPAID.value
    assert Decimal(bill.amount) == Decimal("1050000")
    assert bill.invoice_number.startswith("INV-")
    due = as_utc(bill.due_date)
    assert before + timedelta(days=7) - timedelta(minutes=1) <= due <= datetime.now(timezone.utc) + timedelta(days=7)

    commissions = {
        c.commission_type: c
        for c in (await db.execute(select(Commission).where(Commission.pickup_id == pickup.id))).scalars()
    }
    assert set(commissions) == {CommissionType.COURIER.value, CommissionType.AFFILIATE.value}

    courier_commission = commissions[CommissionType.COURIER.value]
    assert courier_commission.user_id == users.courier.id
    assert Decimal(courier_commission.amount) == Decimal("75000")
    assert courier_commission.status == CommissionStatus.PENDING.value

    affiliate_commission = commissions[CommissionType.AFFILIATE.value]
    assert affiliate_commission.user_id == users.referrer.id
    assert Decimal(affiliate_commission.amount) == Decimal("30000")

    assert NotificationType.PICKUP_COMPLETED.value in await notifications_for(db, users.referred_customer.id)
    assert NotificationType.COMMISSION_EARNED.value in await notifications_for(db, users.courier.id)
    assert await notifications_for(db, users.referrer.id) == [NotificationType.COMMISSION_EARNED.value]


async def test_completion_without_referrer_has_no_affiliate_commission(db, users, in_progress_pickup):
    pickup = await in_progress_pickup(users.customer, users.courier, "50", "50")
    pickup = await PickupService(db).complete_pickup(pickup.id, users.courier)

    assert Decimal(pickup.affiliate_fee) == Decimal("0")
    assert await count(db, Commission, Commission.pickup_id == pickup.id) == 1
    assert await count(
        db, Commission,
        Commission.pickup_id == pickup.id,
        Commission.commission_type == CommissionType.AFFILIATE.value,
    ) == 0


async def test_completion_prices_actual_volume(db, users, in_progress_pickup):
    pickup = await in_progress_pickup(users.customer, users.courier, volume="150", actual_volume="200")
    pickup = await PickupService(db).complete_pickup(pickup.id, users.courier)

    assert Decimal(pickup.estimated_total_price) == Decimal("1050000")
    assert Decimal(pickup.price_per_liter) == Decimal("7500")
    assert Decimal(pickup.total_price) == Decimal("1500000")
    assert Decimal(pickup.courier_fee) == Decimal("100000")


async def test_completion_uses_rates_in_force_at_completion(db, users, in_progress_pickup):
    pickup = await in_progress_pickup(users.referred_customer, users.courier, "150", "150")

    await SettingsService(db).update({
        "price_tier2_rate": Decimal("8000"),
        "courier_commission_per_liter": Decimal("600"),
        "affiliate_commission_per_liter": Decimal("250"),
    })
    pickup = await PickupService(db).complete_pickup(pickup.id, users.courier)

    assert Decimal(pickup.price_per_liter) == Decimal("8000")
    assert Decimal(pickup.total_price) == Decimal("1200000")
    assert Decimal(pickup.courier_fee) == Decimal("90000")
    assert Decimal(pickup.affiliate_fee) == Decimal("37500")

    # Estimates keep the rates quoted at creation
    assert Decimal(pickup.estimated_price_per_liter) == Decimal("7000")
    assert Decimal(pickup.estimated_total_price) == Decimal("1050000")
    assert Decimal(pickup.estimated_courier_fee) == Decimal("75000")
    assert Decimal(pickup.estimated_affiliate_fee) == Decimal("30000")

    commissions = {
        c.commission_type: Decimal(c.amount)
        for c in (await db.execute(select(Commission).where(Commission.pickup_id == pickup.id))).scalars()
    }
    assert commissions == {
        CommissionType.COURIER.value: Decimal("90000"),
        CommissionType.AFFILIATE.value: Decimal("37500"),
    }
    bill = (await db.execute(select(Bill).where(Bill.pickup_id == pickup.id))).scalar_one()
    assert Decimal(bill.amount) == Decimal("1200000")


async def test_completion_is_not_repeatable(db, users, in_progress_pickup):
    service = PickupService(db)
    pickup = await in_progress_pickup(users.referred_customer, users.courier)
    await service.complete_pickup(pickup.id, users.courier)

    with pytest.raises(InvalidStateError) as exc_info:
        await service.complete_pickup(pickup.id, users.courier)
    assert "terminal" in exc_info.value.message

    assert await count(db, Bill, Bill.pickup_id == pickup.id) == 1
    assert await count(db, Commission, Commission.pickup_id == pickup.id) == 2


async def test_completion_requires_proof(db, users, in_progress_pickup):
    service = PickupService(db)
    pickup = await in_progress_pickup(users.customer, users.courier, with_proof=False)

    with pytest.raises(InvalidStateError) as exc_info:
        await service.complete_pickup(pickup.id, users.courier)
    assert exc_info.value.reason == "PROOF_REQUIRED"

    await service.update_proof(pickup.id, users.courier, PickupProofUpdate(photo_proof="p.jpg"))
    with pytest.raises(InvalidStateError):
        await service.complete_pickup(pickup.id, users.courier)

    assert await count(db, Bill) == 0


async def test_completion_by_other_courier_is_forbidden(db, users, in_progress_pickup):
    pickup = await in_progress_pickup(users.customer, users.courier)
    with pytest.raises(PermissionDeniedError):
        await PickupService(db).complete_pickup(pickup.id, users.other_courier)


async def test_completion_failure_rolls_back_everything(db, users, in_progress_pickup, monkeypatch):
    pickup = await in_progress_pickup(users.referred_customer, users.courier)
    pickup_id = pickup.id
    courier = users.courier

    def boom(self, commission, volume):
        raise RuntimeError("notification store unavailable")

    monkeypatch.setattr(NotificationService, "notify_commission_earned", boom)

    with pytest.raises(RuntimeError):
        await PickupService(db).complete_pickup(pickup_id, courier)

    stored = (
        await db.execute(
            select(Pickup).where(Pickup.id == pickup_id).execution_options(populate_existing=True)
        )
    ).scalar_one()
    assert stored.status == PickupStatus.IN_PROGRESS.value
    assert stored.completed_at is None
    assert await count(db, Bill) == 0
    assert await count(db, Commission) == 0


# ==================== Cancel ====================

async def test_customer_cancels_own_pending_pickup(db, users, create_pickup):
    pickup = await create_pickup(users.customer)
    pickup = await PickupService(db).cancel_pickup(pickup.id, users.customer)

    assert pickup.status == PickupStatus.CANCELLED.value
    assert NotificationType.PICKUP_CANCELLED.value in await notifications_for(db, users.customer.id)


async def test_cancel_rules(db, users, create_pickup):
    service = PickupService(db)
    pickup = await create_pickup(users.customer)

    with pytest.raises(PermissionDeniedError):
        await service.cancel_pickup(pickup.id, users.referrer)
    with pytest.raises(PermissionDeniedError):
        await service.cancel_pickup(pickup.id, users.courier)

    await service.accept_pickup(pickup.id, users.courier)
    with pytest.raises(InvalidStateError):
        await service.cancel_pickup(pickup.id, users.customer)


async def test_admin_cancels_any_pending_pickup(db, users, create_pickup):
    pickup = await create_pickup(users.customer)
    pickup = await PickupService(db).cancel_pickup(pickup.id, users.admin)
    assert pickup.status == PickupStatus.CANCELLED.value

    with pytest.raises(InvalidStateError):
        await PickupService(db).accept_pickup(pickup.id, users.courier)


# ==================== Legacy warehouse completion ====================

async def test_warehouse_completion_has_no_side_effects(db, users, create_pickup, monkeypatch):
    monkeypatch.setattr(settings, "LEGACY_WAREHOUSE_COMPLETION_ENABLED", True)
    pickup = await create_pickup(users.referred_customer)

    pickup = await PickupService(db).warehouse_complete(pickup.id, users.warehouse)

    assert pickup.status == PickupStatus.COMPLETED.value
    assert pickup.warehouse_id == users.warehouse.id
    assert await count(db, Bill) == 0
    assert await count(db, Commission) == 0
    assert await notifications_for(db, users.referrer.id) == []


async def test_warehouse_completion_disabled(db, users, in_progress_pickup, monkeypatch):
    monkeypatch.setattr(settings, "LEGACY_WAREHOUSE_COMPLETION_ENABLED", False)
    pickup = await in_progress_pickup(users.customer, users.courier)

    with pytest.raises(PermissionDeniedError) as exc_info:
        await PickupService(db).warehouse_complete(pickup.id, users.warehouse)
    assert exc_info.value.reason == "WAREHOUSE_COMPLETION_DISABLED"

    transitions = PickupService(db).allowed_transitions(pickup, users.warehouse)
    assert transitions == []


# ==================== Generic status dispatch ====================

async def test_apply_status_routes_by_role(db, users, create_pickup, monkeypatch):
    monkeypatch.setattr(settings, "LEGACY_WAREHOUSE_COMPLETION_ENABLED", True)
    service = PickupService(db)
    pickup = await create_pickup(users.customer)

    pickup = await service.apply_status(pickup.id, users.courier, PickupStatus.ASSIGNED)
    assert pickup.courier_id == users.courier.id

    pickup = await service.apply_status(pickup.id, users.courier, PickupStatus.IN_PROGRESS)
    assert pickup.status == PickupStatus.IN_PROGRESS.value

    pickup = await service.apply_status(pickup.id, users.warehouse, PickupStatus.COMPLETED)
    assert pickup.warehouse_id == users.warehouse.id
    assert await count(db, Bill) == 0


async def test_apply_status_courier_completion_requires_proof(db, users, in_progress_pickup):
    pickup = await in_progress_pickup(users.customer, users.courier, with_proof=False)
    with pytest.raises(InvalidStateError):
        await PickupService(db).apply_status(pickup.id, users.courier, PickupStatus.COMPLETED)


async def test_apply_status_rejects_pending_for_everyone(db, users, create_pickup):
    pickup = await create_pickup(users.customer)
    with pytest.raises(PermissionDeniedError):
        await PickupService(db).apply_status(pickup.id, users.admin, PickupStatus.PENDING)


# ==================== Listing ====================

async def test_list_visibility(db, users, create_pickup):
    service = PickupService(db)
    open_pickup = await create_pickup(users.customer)
    taken = await create_pickup(users.referred_customer)
    await service.accept_pickup(taken.id, users.other_courier)

    items, total = await service.list_pickups(users.customer)
    assert total == 1 and items[0].id == open_pickup.id

    items, total = await service.list_pickups(users.courier)
    assert [p.id for p in items] == [open_pickup.id]

    items, total = await service.list_pickups(users.other_courier)
    assert {p.id for p in items} == {open_pickup.id, taken.id}

    items, total = await service.list_pickups(users.admin, status=PickupStatus.ASSIGNED)
    assert [p.id for p in items] == [taken.id]

    with pytest.raises(PermissionDeniedError):
        await service.get_pickup_for_user(taken.id, users.courier)
