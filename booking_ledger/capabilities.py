from __future__ import annotations

from .models import ROLE_BUSINESS, ROLE_CUSTOMER, Actor, Decision, ReservationRecord

ACTION_CONFIRM = "confirm"
ACTION_COMPLETE = "complete"
ACTION_CANCEL = "cancel"
ACTION_DELETE = "delete"
ACTION_VIEW = "view"

# Which owner may perform each action.
_ALLOWED_OWNERS: dict[str, frozenset[str]] = {
    ACTION_CONFIRM: frozenset({ROLE_BUSINESS}),
    ACTION_COMPLETE: frozenset({ROLE_BUSINESS}),
    ACTION_CANCEL: frozenset({ROLE_BUSINESS, ROLE_CUSTOMER}),
    ACTION_DELETE: frozenset({ROLE_CUSTOMER}),
    ACTION_VIEW: frozenset({ROLE_BUSINESS, ROLE_CUSTOMER}),
}


def owns(actor: Actor, reservation: ReservationRecord, owner_id: str | None = None) -> bool:
    """True when the actor is the reservation's customer or acts for its business."""
    if actor.role == ROLE_CUSTOMER:
        return actor.actor_id == reservation.customer_id
    if actor.role == ROLE_BUSINESS:
        return actor.actor_id == reservation.business_id or (owner_id is not None and actor.actor_id == owner_id)
    return False


def check_capability(
    actor: Actor,
    action: str,
    reservation: ReservationRecord,
    owner_id: str | None = None,
) -> Decision:
    allowed_roles = _ALLOWED_OWNERS.get(action)
    if allowed_roles is None:
        return Decision(False, f"unknown action '{action}'")

    if not owns(actor, reservation, owner_id):
        return Decision(False, f"{actor.role} '{actor.actor_id}' does not own reservation {reservation.reservation_id}")

    if actor.role not in allowed_roles:
        return Decision(False, f"a {actor.role} cannot {action} a reservation")

    return Decision(True, f"{actor.role} owner may {action}")
