"""
Pickup State Machine

Every pickup status change goes through this table. Each entry names the
action, the statuses it may start from, the status it ends in, the roles that
may perform it and which ownership guard applies.

    PENDING --accept(courier)--> ASSIGNED --start(courier)--> IN_PROGRESS
    IN_PROGRESS --complete(assigned courier, proof present)--> COMPLETED
    PENDING --cancel(owning customer | admin)--> CANCELLED
    PENDING/ASSIGNED/IN_PROGRESS --warehouse complete (legacy)--> COMPLETED

COMPLETED and CANCELLED are terminal.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional

from jelantah.core.exceptions import InvalidStateError, PermissionDeniedError
from jelantah.models.pickup import Pickup, PickupStatus
from jelantah.models.user import User, UserRole

logger = logging.getLogger(__name__)


# =============================================================================
# ACTIONS
# =============================================================================

class PickupAction(str, Enum):
    ACCEPT = "ACCEPT"
    START = "START"
    UPDATE_PROOF = "UPDATE_PROOF"
    COMPLETE = "COMPLETE"
    WAREHOUSE_COMPLETE = "WAREHOUSE_COMPLETE"
    CANCEL = "CANCEL"


class Ownership(str, Enum):
    NONE = "NONE"
    ASSIGNED_COURIER = "ASSIGNED_COURIER"   # pickup.courier_id == actor.id
    OWNING_CUSTOMER = "OWNING_CUSTOMER"     # pickup.customer_id == actor.id (admins bypass)


@dataclass(frozen=True)
class Transition:
    action: PickupAction
    sources: FrozenSet[str]
    target: str
    roles: FrozenSet[str]
    ownership: Ownership
    label: str
    legacy: bool = False


# =============================================================================
# TRANSITION RULES
# =============================================================================

PICKUP_TRANSITIONS: List[Transition] = [
    Transition(
        action=PickupAction.ACCEPT,
        sources=frozenset({PickupStatus.PENDING.value}),
        target=PickupStatus.ASSIGNED.value,
        roles=frozenset({UserRole.COURIER.value}),
        ownership=Ownership.NONE,
        label="Accept pickup",
    ),
    Transition(
        action=PickupAction.START,
        sources=frozenset({PickupStatus.ASSIGNED.value}),
        target=PickupStatus.IN_PROGRESS.value,
        roles=frozenset({UserRole.COURIER.value}),
        ownership=Ownership.ASSIGNED_COURIER,
        label="Start pickup",
    ),
    Transition(
        action=PickupAction.UPDATE_PROOF,
        sources=frozenset({PickupStatus.IN_PROGRESS.value}),
        target=PickupStatus.IN_PROGRESS.value,
        roles=frozenset({UserRole.COURIER.value}),
        ownership=Ownership.ASSIGNED_COURIER,
        label="Upload proof",
    ),
    Transition(
        action=PickupAction.COMPLETE,
        sources=frozenset({PickupStatus.IN_PROGRESS.value}),
        target=PickupStatus.COMPLETED.value,
        roles=frozenset({UserRole.COURIER.value}),
        ownership=Ownership.ASSIGNED_COURIER,
        label="Complete pickup",
    ),
    Transition(
        action=PickupAction.CANCEL,
        sources=frozenset({PickupStatus.PENDING.value}),
        target=PickupStatus.CANCELLED.value,
        roles=frozenset({UserRole.CUSTOMER.value, UserRole.ADMIN.value}),
        ownership=Ownership.OWNING_CUSTOMER,
        label="Cancel pickup",
    ),
    Transition(
        action=PickupAction.WAREHOUSE_COMPLETE,
        sources=frozenset({
            PickupStatus.PENDING.value,
            PickupStatus.ASSIGNED.value,
            PickupStatus.IN_PROGRESS.value,
        }),
        target=PickupStatus.COMPLETED.value,
        roles=frozenset({UserRole.WAREHOUSE.value}),
        ownership=Ownership.NONE,
        label="Receive at warehouse",
        legacy=True,
    ),
]

TERMINAL_STATUSES = frozenset({PickupStatus.COMPLETED.value, PickupStatus.CANCELLED.value})

_BY_ACTION = {t.action: t for t in PICKUP_TRANSITIONS}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_transition(action: PickupAction) -> Transition:
    return _BY_ACTION[action]


def is_terminal(status: str) -> bool:
    """Is this a terminal (final) state?"""
    return status in TERMINAL_STATUSES


def get_allowed_transitions(
    current_status: str,
    role: Optional[str] = None,
    include_legacy: bool = True,
) -> List[Transition]:
    """Transitions available from current_status, optionally limited to one role."""
    return [
        t for t in PICKUP_TRANSITIONS
        if current_status in t.sources
        and (role is None or role in t.roles)
        and (include_legacy or not t.legacy)
    ]


def resolve_transition(current_status: str, role: str, new_status: str) -> Transition:
    """
    Find the action a role means when it asks for ``new_status``.

    Raises PermissionDeniedError when the role has no action reaching
    ``new_status``. Whether the action is legal from ``current_status`` is
    checked later by ``validate_transition``.
    """
    candidates = [
        t for t in PICKUP_TRANSITIONS
        if t.target == new_status
        and role in t.roles
        and t.action != PickupAction.UPDATE_PROOF
    ]
    if not candidates:
        raise PermissionDeniedError(
            f"Role {role} cannot move a pickup to {new_status}",
            reason="ROLE_NOT_ALLOWED",
        )

    for transition in candidates:
        if current_status in transition.sources:
            return transition
    return candidates[0]


def check_ownership(transition: Transition, pickup: Pickup, actor: User) -> None:
    if transition.ownership == Ownership.ASSIGNED_COURIER:
        if pickup.courier_id != actor.id:
            raise PermissionDeniedError(
                "Pickup is not assigned to you",
                reason="NOT_ASSIGNED_COURIER",
            )
    elif transition.ownership == Ownership.OWNING_CUSTOMER:
        if actor.role != UserRole.ADMIN.value and pickup.customer_id != actor.id:
            raise PermissionDeniedError(
                "Pickup belongs to another customer",
                reason="NOT_OWNER",
            )


def validate_transition(transition: Transition, pickup: Pickup, actor: User) -> None:
    """
    Check role, ownership and source status for ``transition``, in that order.

    Raises PermissionDeniedError or InvalidStateError. Preconditions that are
    not about status (proof present, feature flags) are the caller's job.
    """
    if actor.role not in transition.roles:
        logger.warning(f"{transition.action.value} on pickup {pickup.id} rejected: role {actor.role}")
        raise PermissionDeniedError(
            f"Role {actor.role} cannot {transition.label.lower()}",
            reason="ROLE_NOT_ALLOWED",
        )

    try:
        check_ownership(transition, pickup, actor)
    except PermissionDeniedError:
        logger.warning(f"{transition.action.value} on pickup {pickup.id} rejected: not owned by {actor.id}")
        raise

    if pickup.status not in transition.sources:
        logger.warning(
            f"{transition.action.value} on pickup {pickup.id} rejected: status {pickup.status}"
        )
        raise InvalidStateError(
            _state_message(pickup.status, transition.target),
            reason="INVALID_TRANSITION",
        )


def _state_message(current_status: str, new_status: str) -> str:
    if is_terminal(current_status):
        return f"Pickup in '{current_status}' status cannot be modified. This is a terminal state."
    return f"Cannot change pickup from '{current_status}' to '{new_status}'"
