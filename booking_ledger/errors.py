from __future__ import annotations

from typing import Iterable


class BookingError(Exception):
    """Base class for every failure the ledger reports to its callers."""

    code = "booking_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, object]:
        return {"error": self.code, "message": self.message}


class ValidationError(BookingError, ValueError):
    code = "validation_error"


class SlotConflictError(BookingError):
    """Requested interval overlaps an active reservation of the same business and day."""

    code = "slot_conflict"

    def __init__(
        self,
        message: str,
        conflicting_ids: Iterable[str] = (),
        alternatives: Iterable[str] = (),
    ) -> None:
        super().__init__(message)
        self.conflicting_ids = list(conflicting_ids)
        self.alternatives = list(alternatives)

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        payload["conflicting_ids"] = self.conflicting_ids
        payload["alternatives"] = self.alternatives
        return payload


class AuthorizationError(BookingError):
    code = "not_authorized"

    def __init__(self, message: str, reason: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason or message


class InvalidStateError(BookingError):
    code = "invalid_state"

    def __init__(self, message: str, current_status: str) -> None:
        super().__init__(message)
        self.current_status = current_status

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        payload["current_status"] = self.current_status
        return payload


class InvalidStateTransitionError(InvalidStateError):
    code = "invalid_transition"

    def __init__(self, current_status: str, target_status: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Invalid reservation transition: {current_status} -> {target_status}",
            current_status,
        )
        self.target_status = target_status

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        payload["target_status"] = self.target_status
        return payload


class NotFoundError(BookingError):
    code = "not_found"

    def __init__(self, reservation_id: str) -> None:
        super().__init__(f"Reservation '{reservation_id}' not found")
        self.reservation_id = reservation_id


class ReservationStorageError(BookingError, RuntimeError):
    """Transient failure of the backing store. Safe to retry with backoff."""

    code = "storage_unavailable"
