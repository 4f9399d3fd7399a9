"""Reservation status state machine."""

from __future__ import annotations

from datetime import datetime
import logging

from .capabilities import (
    ACTION_CANCEL,
    ACTION_COMPLETE,
    ACTION_CONFIRM,
    ACTION_DELETE,
    ACTION_VIEW,
    check_capability,
)
from .directory import BusinessDirectory
from .errors import AuthorizationError, InvalidStateTransitionError, NotFoundError, ValidationError
from .models import (
    ALL_STATUSES,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_PENDING,
    Actor,
    ReservationRecord,
)
from .yaml_store import ReservationYamlRepository

logger = logging.getLogger(__name__)

RESERVATION_TRANSITIONS = {
    STATUS_PENDING: {STATUS_CONFIRMED, STATUS_CANCELLED},
    STATUS_CONFIRMED: {STATUS_COMPLETED, STATUS_CANCELLED},
    STATUS_COMPLETED: set(),
    STATUS_CANCELLED: set(),
}

_ACTION_FOR_TARGET = {
    STATUS_CONFIRMED: ACTION_CONFIRM,
    STATUS_COMPLETED: ACTION_COMPLETE,
    STATUS_CANCELLED: ACTION_CANCEL,
}


def assert_reservation_transition(current: str, target: str) -> None:
    allowed = RESERVATION_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidStateTransitionError(current, target)


class LifecycleManager:
    def __init__(
        self,
        repository: ReservationYamlRepository,
        directory: BusinessDirectory,
        enforce_completion_clock: bool = True,
    ) -> None:
        self.repository = repository
        self.directory = directory
        self.enforce_completion_clock = enforce_completion_clock

    def transition(
        self,
        reservation_id: str,
        actor: Actor,
        target_status: str,
        now: datetime | None = None,
    ) -> ReservationRecord:
        effective_now = now or datetime.now()
        if target_status not in ALL_STATUSES:
            raise ValidationError(f"Unknown reservation status '{target_status}'")

        current = self._require(reservation_id)
        action = _ACTION_FOR_TARGET.get(target_status)
        if action is None:
            # Nothing may move a reservation back to pending; report it against the current state.
            self._authorize(actor, ACTION_CANCEL, current)
            raise InvalidStateTransitionError(current.status, target_status)

        self._authorize(actor, action, current)
        assert_reservation_transition(current.status, target_status)

        if target_status == STATUS_COMPLETED and self.enforce_completion_clock:
            if effective_now < current.window.start:
                raise InvalidStateTransitionError(
                    current.status,
                    target_status,
                    "A reservation cannot be completed before its appointment starts.",
                )

        updated = self.repository.update(
            reservation_id,
            {"status": target_status},
            now=effective_now,
            expected_status=current.status,
        )
        logger.info(
            "Reservation %s moved %s -> %s by %s %s",
            reservation_id,
            current.status,
            target_status,
            actor.role,
            actor.actor_id,
        )
        return updated

    def confirm(self, reservation_id: str, actor: Actor, now: datetime | None = None) -> ReservationRecord:
        return self.transition(reservation_id, actor, STATUS_CONFIRMED, now=now)

    def complete(self, reservation_id: str, actor: Actor, now: datetime | None = None) -> ReservationRecord:
        return self.transition(reservation_id, actor, STATUS_COMPLETED, now=now)

    def cancel(self, reservation_id: str, actor: Actor, now: datetime | None = None) -> ReservationRecord:
        return self.transition(reservation_id, actor, STATUS_CANCELLED, now=now)

    def view(self, reservation_id: str, actor: Actor) -> ReservationRecord:
        current = self._require(reservation_id)
        self._authorize(actor, ACTION_VIEW, current)
        return current

    def delete(self, reservation_id: str, actor: Actor, now: datetime | None = None) -> ReservationRecord:
        current = self._require(reservation_id)
        self._authorize(actor, ACTION_DELETE, current)
        return self.repository.delete(reservation_id, actor.actor_id, now=now)

    def _require(self, reservation_id: str) -> ReservationRecord:
        record = self.repository.get(reservation_id)
        if record is None:
            raise NotFoundError(reservation_id)
        return record

    def _authorize(self, actor: Actor, action: str, reservation: ReservationRecord) -> None:
        profile = self.directory.get(reservation.business_id)
        decision = check_capability(actor, action, reservation, profile.owner_id if profile else None)
        if not decision.allowed:
            logger.info("Denied %s on %s: %s", action, reservation.reservation_id, decision.reason)
            raise AuthorizationError(f"You don't have permission to {action} this reservation.", decision.reason)
