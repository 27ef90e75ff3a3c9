"""
Pickup Lifecycle Service

Every status change is a conditional UPDATE keyed on the status the action
expects (and, where relevant, the courier). Zero matched rows means another
request changed the pickup first and is reported as ConflictError.

Completion by the assigned courier is the only place that writes money: the
final pickup prices, the bill, the courier commission, the affiliate
commission (when the customer was referred) and the notifications are
committed in one transaction.
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from jelantah.config import settings
from jelantah.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from jelantah.models.billing import Bill, BillStatus
from jelantah.models.commission import Commission, CommissionStatus, CommissionType
from jelantah.models.pickup import Pickup, PickupStatus
from jelantah.models.user import User, UserRole
from jelantah.schemas.pickup import PickupCreate, PickupProofUpdate
from jelantah.services.notification_service import NotificationService
from jelantah.services.pickup_state_machine import (
    PickupAction,
    Transition,
    check_ownership,
    get_allowed_transitions,
    get_transition,
    resolve_transition,
    validate_transition,
)
from jelantah.services.pricing_service import PricingEngine, to_currency
from jelantah.services.settings_service import SettingsCache

logger = logging.getLogger(__name__)

BANK_FIELDS = ("bank_name", "account_name", "account_number")
PROOF_FIELDS = ("photo_proof", "actual_volume") + BANK_FIELDS


def generate_invoice_number(pickup_id: UUID, now: datetime) -> str:
    """INV-<epoch millis>-<6 hex chars of the pickup id>"""
    return f"INV-{int(now.timestamp() * 1000)}-{pickup_id.hex[:6].upper()}"


class PickupService:
    """Service for the pickup lifecycle."""

    def __init__(self, db: AsyncSession, settings_cache: Optional[SettingsCache] = None):
        self.db = db
        self.settings_cache = settings_cache
        self.notifications = NotificationService(db)

    # ==================== Reads ====================

    async def get_pickup(self, pickup_id: UUID, with_ledger: bool = False) -> Pickup:
        query = select(Pickup).where(Pickup.id == pickup_id).execution_options(populate_existing=True)
        if with_ledger:
            query = query.options(
                selectinload(Pickup.bills),
                selectinload(Pickup.commissions),
            )

        result = await self.db.execute(query)
        pickup = result.scalar_one_or_none()
        if not pickup:
            raise NotFoundError("Pickup not found")
        return pickup

    async def get_pickup_for_user(self, pickup_id: UUID, actor: User, with_ledger: bool = False) -> Pickup:
        pickup = await self.get_pickup(pickup_id, with_ledger=with_ledger)
        if not self.can_view(pickup, actor):
            raise PermissionDeniedError("You do not have access to this pickup")
        return pickup

    @staticmethod
    def can_view(pickup: Pickup, actor: User) -> bool:
        if actor.role in (UserRole.ADMIN.value, UserRole.WAREHOUSE.value):
            return True
        if actor.role == UserRole.CUSTOMER.value:
            return pickup.customer_id == actor.id
        if actor.role == UserRole.COURIER.value:
            return pickup.courier_id == actor.id or (
                pickup.status == PickupStatus.PENDING.value and pickup.courier_id is None
            )
        return False

    async def list_pickups(
        self,
        actor: User,
        status: Optional[PickupStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Pickup], int]:
        """Pickups visible to ``actor``, newest first."""
        query = select(Pickup)

        if actor.role == UserRole.CUSTOMER.value:
            query = query.where(Pickup.customer_id == actor.id)
        elif actor.role == UserRole.COURIER.value:
            query = query.where(
                or_(
                    Pickup.courier_id == actor.id,
                    and_(
                        Pickup.status == PickupStatus.PENDING.value,
                        Pickup.courier_id.is_(None),
                    ),
                )
            )
        elif actor.role == UserRole.WAREHOUSE.value:
            query = query.where(
                Pickup.status.in_([PickupStatus.IN_PROGRESS.value, PickupStatus.COMPLETED.value])
            )

        if status:
            query = query.where(Pickup.status == status.value)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(Pickup.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    def allowed_transitions(self, pickup: Pickup, actor: User) -> List[Transition]:
        """Transitions ``actor`` could request now (proof preconditions not checked)."""
        allowed = []
        for transition in get_allowed_transitions(
            pickup.status,
            actor.role,
            include_legacy=settings.LEGACY_WAREHOUSE_COMPLETION_ENABLED,
        ):
            try:
                check_ownership(transition, pickup, actor)
            except PermissionDeniedError:
                continue
            allowed.append(transition)
        return allowed

    # ==================== Create ====================

    async def create_pickup(self, actor: User, data: PickupCreate) -> Pickup:
        """Customer creates for themselves; admin creates for ``data.customer_id``."""
        if actor.role == UserRole.CUSTOMER.value:
            if data.customer_id and data.customer_id != actor.id:
                raise PermissionDeniedError("Customers can only create pickups for themselves")
            customer = actor
        elif actor.role == UserRole.ADMIN.value:
            if not data.customer_id:
                raise ValidationError("customer_id is required when an admin creates a pickup")
            customer = await self._get_user(data.customer_id)
            if customer.role != UserRole.CUSTOMER.value:
                raise ValidationError("Pickups can only be created for customers")
        else:
            raise PermissionDeniedError(
                f"Role {actor.role} cannot create pickups",
                reason="ROLE_NOT_ALLOWED",
            )

        engine = await PricingEngine.load(self.db, self.settings_cache)
        quote = engine.quote(data.volume)

        price_per_liter = to_currency(quote.price_per_liter)
        total_price = to_currency(quote.total_price)
        courier_fee = to_currency(quote.courier_commission)
        affiliate_fee = to_currency(quote.affiliate_commission) if customer.referred_by_id else Decimal("0")

        pickup = Pickup(
            customer_id=customer.id,
            status=PickupStatus.PENDING.value,
            scheduled_date=data.scheduled_date,
            volume=data.volume,
            notes=data.notes,
            estimated_price_per_liter=price_per_liter,
            estimated_total_price=total_price,
            estimated_courier_fee=courier_fee,
            estimated_affiliate_fee=affiliate_fee,
            price_per_liter=price_per_liter,
            total_price=total_price,
            courier_fee=courier_fee,
            affiliate_fee=affiliate_fee,
        )
        self.db.add(pickup)
        await self.db.flush()

        self.notifications.notify_pickup_created(pickup)

        await self.db.commit()
        await self.db.refresh(pickup)

        logger.info(
            f"Pickup {pickup.id} created for customer {customer.id} "
            f"({data.volume} L, estimate {total_price})"
        )
        return pickup

    # ==================== Courier actions ====================

    async def accept_pickup(self, pickup_id: UUID, actor: User) -> Pickup:
        """PENDING -> ASSIGNED. Only one of several racing couriers wins."""
        pickup = await self.get_pickup(pickup_id)
        transition = get_transition(PickupAction.ACCEPT)

        if actor.role in transition.roles and pickup.status in (
            PickupStatus.ASSIGNED.value,
            PickupStatus.IN_PROGRESS.value,
        ):
            if pickup.courier_id == actor.id:
                raise InvalidStateError("You have already accepted this pickup", reason="ALREADY_ACCEPTED")
            raise ConflictError("Pickup already taken by another courier", reason="ALREADY_TAKEN")

        validate_transition(transition, pickup, actor)

        await self._guarded_update(
            pickup,
            PickupStatus.PENDING.value,
            {"courier_id": actor.id, "status": transition.target},
            Pickup.courier_id.is_(None),
            conflict_message="Pickup already taken by another courier",
        )
        self.notifications.notify_pickup_assigned(pickup, actor.id, actor.name)

        await self.db.commit()
        await self.db.refresh(pickup)

        logger.info(f"Pickup {pickup.id} accepted by courier {actor.id}")
        return pickup

    async def start_pickup(self, pickup_id: UUID, actor: User) -> Pickup:
        """ASSIGNED -> IN_PROGRESS by the assigned courier."""
        pickup = await self.get_pickup(pickup_id)
        transition = get_transition(PickupAction.START)
        validate_transition(transition, pickup, actor)

        await self._guarded_update(
            pickup,
            PickupStatus.ASSIGNED.value,
            {"status": transition.target, "actual_date": datetime.now(timezone.utc)},
            Pickup.courier_id == actor.id,
        )

        await self.db.commit()
        await self.db.refresh(pickup)

        logger.info(f"Pickup {pickup.id} started by courier {actor.id}")
        return pickup

    async def update_proof(self, pickup_id: UUID, actor: User, data: PickupProofUpdate) -> Pickup:
        """
        Record photo proof, measured volume and payout account while IN_PROGRESS.

        Bank fields are all-or-nothing once any of them is given: after the
        update the pickup must have all three.
        """
        pickup = await self.get_pickup(pickup_id)
        transition = get_transition(PickupAction.UPDATE_PROOF)
        validate_transition(transition, pickup, actor)

        values: Dict[str, Any] = {
            k: v for k, v in data.model_dump(exclude_unset=True).items()
            if k in PROOF_FIELDS and v is not None
        }
        if not values:
            raise ValidationError("Provide at least one of: " + ", ".join(PROOF_FIELDS))

        if any(k in values for k in BANK_FIELDS):
            merged = {k: values.get(k, getattr(pickup, k)) for k in BANK_FIELDS}
            missing = [k for k, v in merged.items() if not v]
            if missing:
                raise ValidationError(
                    "Bank details must be complete; missing: " + ", ".join(missing)
                )

        await self._guarded_update(
            pickup,
            PickupStatus.IN_PROGRESS.value,
            values,
            Pickup.courier_id == actor.id,
        )

        await self.db.commit()
        await self.db.refresh(pickup)

        logger.info(f"Pickup {pickup.id} proof updated: {sorted(values.keys())}")
        return pickup

    async def complete_pickup(self, pickup_id: UUID, actor: User) -> Pickup:
        """
        IN_PROGRESS -> COMPLETED by the assigned courier.

        Prices are recomputed from ``actual_volume`` against one settings
        snapshot. The bill, commissions and notifications are written in the
        same transaction as the status change; a repeated call finds the
        pickup COMPLETED and fails without writing anything.
        """
        pickup = await self.get_pickup(pickup_id)
        transition = get_transition(PickupAction.COMPLETE)
        validate_transition(transition, pickup, actor)

        if not pickup.photo_proof or pickup.actual_volume is None:
            raise InvalidStateError(
                "Upload photo proof and actual volume before completing the pickup",
                reason="PROOF_REQUIRED",
            )

        customer = await self._get_user(pickup.customer_id)
        engine = await PricingEngine.load(self.db, self.settings_cache)

        volume = Decimal(str(pickup.actual_volume))
        quote = engine.quote(volume)
        price_per_liter = to_currency(quote.price_per_liter)
        total_price = to_currency(quote.total_price)
        courier_fee = to_currency(quote.courier_commission)
        affiliate_fee = to_currency(quote.affiliate_commission) if customer.referred_by_id else Decimal("0")

        now = datetime.now(timezone.utc)

        try:
            await self._guarded_update(
                pickup,
                PickupStatus.IN_PROGRESS.value,
                {
                    "status": transition.target,
                    "completed_at": now,
                    "price_per_liter": price_per_liter,
                    "total_price": total_price,
                    "courier_fee": courier_fee,
                    "affiliate_fee": affiliate_fee,
                },
                Pickup.courier_id == actor.id,
            )

            bill = Bill(
                pickup_id=pickup.id,
                user_id=customer.id,
                invoice_number=generate_invoice_number(pickup.id, now),
                amount=total_price,
                status=BillStatus.UNPAID.value,
                due_date=now + timedelta(days=settings.BILL_DUE_DAYS),
            )
            self.db.add(bill)

            courier_commission = Commission(
                pickup_id=pickup.id,
                user_id=actor.id,
                commission_type=CommissionType.COURIER.value,
                amount=courier_fee,
                status=CommissionStatus.PENDING.value,
            )
            self.db.add(courier_commission)

            self.notifications.notify_pickup_completed(bill, volume)
            self.notifications.notify_commission_earned(courier_commission, volume)

            if customer.referred_by_id:
                affiliate_commission = Commission(
                    pickup_id=pickup.id,
                    user_id=customer.referred_by_id,
                    commission_type=CommissionType.AFFILIATE.value,
                    amount=affiliate_fee,
                    status=CommissionStatus.PENDING.value,
                )
                self.db.add(affiliate_commission)
                self.notifications.notify_commission_earned(affiliate_commission, volume)

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(pickup)

        logger.info(
            f"Pickup {pickup.id} completed by courier {actor.id}: {volume} L, "
            f"total {total_price}, courier fee {courier_fee}, affiliate fee {affiliate_fee}"
        )
        return pickup

    # ==================== Warehouse / customer actions ====================

    async def warehouse_complete(self, pickup_id: UUID, actor: User) -> Pickup:
        """
        Legacy warehouse closing of a pickup.

        Marks the pickup COMPLETED and records the warehouse user. Creates no
        bill, commission or notification.
        """
        if not settings.LEGACY_WAREHOUSE_COMPLETION_ENABLED:
            raise PermissionDeniedError(
                "Warehouse completion is disabled; the assigned courier must complete the pickup",
                reason="WAREHOUSE_COMPLETION_DISABLED",
            )

        pickup = await self.get_pickup(pickup_id)
        transition = get_transition(PickupAction.WAREHOUSE_COMPLETE)
        validate_transition(transition, pickup, actor)

        await self._guarded_update(
            pickup,
            pickup.status,
            {
                "status": transition.target,
                "warehouse_id": actor.id,
                "completed_at": datetime.now(timezone.utc),
            },
        )

        await self.db.commit()
        await self.db.refresh(pickup)

        logger.warning(f"Pickup {pickup.id} completed by warehouse user {actor.id} without settlement")
        return pickup

    async def cancel_pickup(self, pickup_id: UUID, actor: User) -> Pickup:
        """PENDING -> CANCELLED by the owning customer or an admin."""
        pickup = await self.get_pickup(pickup_id)
        transition = get_transition(PickupAction.CANCEL)
        validate_transition(transition, pickup, actor)

        await self._guarded_update(
            pickup,
            PickupStatus.PENDING.value,
            {"status": transition.target},
        )
        self.notifications.notify_pickup_cancelled(pickup)

        await self.db.commit()
        await self.db.refresh(pickup)

        logger.info(f"Pickup {pickup.id} cancelled by {actor.role} {actor.id}")
        return pickup

    async def apply_status(self, pickup_id: UUID, actor: User, new_status: PickupStatus) -> Pickup:
        """Dispatch a generic status change to the lifecycle action it stands for."""
        pickup = await self.get_pickup(pickup_id)
        transition = resolve_transition(pickup.status, actor.role, new_status.value)

        handlers = {
            PickupAction.ACCEPT: self.accept_pickup,
            PickupAction.START: self.start_pickup,
            PickupAction.COMPLETE: self.complete_pickup,
            PickupAction.WAREHOUSE_COMPLETE: self.warehouse_complete,
            PickupAction.CANCEL: self.cancel_pickup,
        }
        return await handlers[transition.action](pickup_id, actor)

    # ==================== Helpers ====================

    async def _get_user(self, user_id: UUID) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if not user:
            raise NotFoundError("User not found")
        return user

    async def _guarded_update(
        self,
        pickup: Pickup,
        expected_status: str,
        values: Dict[str, Any],
        *conditions,
        conflict_message: str = "Pickup was modified by another request",
    ) -> None:
        """UPDATE pickups ... WHERE id = :id AND status = :expected_status [AND conditions]"""
        stmt = (
            update(Pickup)
            .where(Pickup.id == pickup.id, Pickup.status == expected_status, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            logger.info(f"Conditional update on pickup {pickup.id} matched no row (expected {expected_status})")
            raise ConflictError(conflict_message, reason="CONCURRENT_UPDATE")
