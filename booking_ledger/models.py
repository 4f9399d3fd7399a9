from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .booking import TimeWindow
from .errors import ValidationError

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

ALL_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_COMPLETED, STATUS_CANCELLED)
ACTIVE_STATUSES = frozenset({STATUS_PENDING, STATUS_CONFIRMED})
TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_CANCELLED})

ROLE_CUSTOMER = "customer"
ROLE_BUSINESS = "business"
ACTOR_ROLES = (ROLE_CUSTOMER, ROLE_BUSINESS)

DEFAULT_DURATION_MINUTES = 30

_OPTIONAL_FIELDS = (
    "service_id",
    "notes",
    "customer_name",
    "customer_email",
    "customer_phone",
    "idempotency_key",
)


@dataclass(frozen=True)
class ReservationRecord:
    reservation_id: str
    business_id: str
    customer_id: str
    date: str
    time: str
    duration_minutes: int
    status: str
    created_at: datetime
    updated_at: datetime
    service_id: str | None = None
    notes: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    idempotency_key: str | None = None

    @property
    def window(self) -> TimeWindow:
        return TimeWindow.from_clock(self.date, self.time, self.duration_minutes)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "reservation_id": self.reservation_id,
            "business_id": self.business_id,
            "customer_id": self.customer_id,
            "date": self.date,
            "time": self.time,
            "duration_minutes": self.duration_minutes,
            "status": self.status,
            "created_at": self.created_at.isoformat(timespec="seconds"),
            "updated_at": self.updated_at.isoformat(timespec="seconds"),
        }
        for name in _OPTIONAL_FIELDS:
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        return payload

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ReservationRecord":
        optional = {name: (str(data[name]) if data.get(name) is not None else None) for name in _OPTIONAL_FIELDS}
        return ReservationRecord(
            reservation_id=str(data["reservation_id"]),
            business_id=str(data["business_id"]),
            customer_id=str(data["customer_id"]),
            date=str(data["date"]),
            time=str(data["time"]),
            duration_minutes=int(data["duration_minutes"]),
            status=str(data["status"]),
            created_at=datetime.fromisoformat(str(data["created_at"])),
            updated_at=datetime.fromisoformat(str(data["updated_at"])),
            **optional,
        )


@dataclass(frozen=True)
class Actor:
    actor_id: str
    role: str

    def __post_init__(self) -> None:
        if not self.actor_id or not str(self.actor_id).strip():
            raise ValidationError("actor_id must not be empty")
        if self.role not in ACTOR_ROLES:
            raise ValidationError(f"actor role must be one of {', '.join(ACTOR_ROLES)}")


@dataclass(frozen=True)
class BookingRequest:
    business_id: str
    customer_id: str
    date: str
    time: str
    service_id: str | None = None
    notes: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    idempotency_key: str | None = None

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "BookingRequest":
        def _text(name: str) -> str | None:
            value = data.get(name)
            if value is None:
                return None
            value = str(value).strip()
            return value or None

        return BookingRequest(
            business_id=_text("business_id") or "",
            customer_id=_text("customer_id") or "",
            date=_text("date") or "",
            time=_text("time") or "",
            service_id=_text("service_id"),
            notes=_text("notes"),
            customer_name=_text("customer_name"),
            customer_email=_text("customer_email"),
            customer_phone=_text("customer_phone"),
            idempotency_key=_text("idempotency_key"),
        )

    def to_fields(self) -> dict[str, Any]:
        return {name: value for name, value in self.__dict__.items() if value is not None}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allowed
