from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable

from .booking import parse_date
from .conflicts import ConflictResolver
from .directory import BusinessDirectory
from .lifecycle import LifecycleManager
from .models import (
    STATUS_CONFIRMED,
    STATUS_PENDING,
    Actor,
    BookingRequest,
    ReservationRecord,
)
from .slots import DEFAULT_SLOT_GRANULARITY_MINUTES, free_slots, slots_for_date
from .yaml_store import ReservationYamlRepository


class BookingLedger:
    """Entry point that wires the store, resolver and lifecycle manager together.

    Every call takes the acting user explicitly; the ledger keeps no session state.
    """

    def __init__(
        self,
        repository: ReservationYamlRepository,
        directory: BusinessDirectory,
        now_provider: Callable[[], datetime] | None = None,
        granularity_minutes: int = DEFAULT_SLOT_GRANULARITY_MINUTES,
        enforce_completion_clock: bool = True,
    ) -> None:
        self.repository = repository
        self.directory = directory
        self.clock: Callable[[], datetime] = now_provider or datetime.now
        self.granularity_minutes = granularity_minutes
        self.resolver = ConflictResolver(repository, directory, granularity_minutes)
        self.lifecycle = LifecycleManager(repository, directory, enforce_completion_clock)

    @classmethod
    def from_paths(
        cls,
        data_dir: str | Path = "data",
        business_file: str | Path | None = None,
        now_provider: Callable[[], datetime] | None = None,
    ) -> "BookingLedger":
        data_dir = Path(data_dir)
        directory = BusinessDirectory.from_yaml(business_file or data_dir / "businesses.yaml")
        return cls(ReservationYamlRepository(data_dir), directory, now_provider=now_provider)

    def create_reservation(
        self,
        request: BookingRequest | dict[str, Any],
        now: datetime | None = None,
    ) -> ReservationRecord:
        if isinstance(request, dict):
            request = BookingRequest.from_dict(request)
        return self.resolver.admit(request, now=now or self.clock())

    def get_reservation(self, reservation_id: str, actor_id: str, actor_role: str) -> ReservationRecord:
        return self.lifecycle.view(reservation_id, Actor(actor_id, actor_role))

    def list_by_business(
        self,
        business_id: str,
        status: str | Iterable[str] | None = None,
    ) -> list[ReservationRecord]:
        return self.repository.list_by_business(business_id, status)

    def list_by_customer(self, customer_id: str) -> list[ReservationRecord]:
        return self.repository.list_by_customer(customer_id)

    def transition_status(
        self,
        reservation_id: str,
        actor_id: str,
        actor_role: str,
        target_status: str,
        now: datetime | None = None,
    ) -> ReservationRecord:
        actor = Actor(actor_id, actor_role)
        return self.lifecycle.transition(reservation_id, actor, target_status, now=now or self.clock())

    def delete_reservation(
        self,
        reservation_id: str,
        actor_id: str,
        actor_role: str = "customer",
        now: datetime | None = None,
    ) -> ReservationRecord:
        actor = Actor(actor_id, actor_role)
        return self.lifecycle.delete(reservation_id, actor, now=now or self.clock())

    def available_slots(self, business_id: str, day: str, service_id: str | None = None) -> list[str]:
        profile = self.directory.require(business_id)
        duration = self.resolver.duration_for(profile, service_id)
        day = parse_date(day).isoformat()
        candidates = slots_for_date(profile, day, duration, self.granularity_minutes)
        active = self.repository.list_active_for_day(business_id, day)
        return free_slots(day, candidates, duration, [record.window for record in active])

    def business_summary(self, business_id: str, on_date: str | None = None) -> dict[str, Any]:
        """Dashboard counts: bookings on ``on_date`` plus totals per status."""
        self.directory.require(business_id)
        day = parse_date(on_date).isoformat() if on_date else self.clock().date().isoformat()
        records = self.repository.list_by_business(business_id)
        by_status: dict[str, int] = {}
        for record in records:
            by_status[record.status] = by_status.get(record.status, 0) + 1
        return {
            "business_id": business_id,
            "date": day,
            "today": sum(1 for record in records if record.date == day and record.is_active),
            "pending": by_status.get(STATUS_PENDING, 0),
            "confirmed": by_status.get(STATUS_CONFIRMED, 0),
            "total": len(records),
            "by_status": by_status,
        }

