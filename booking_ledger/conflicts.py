from __future__ import annotations

from datetime import datetime
import logging

from .booking import TimeWindow, has_time_overlap, parse_date
from .directory import BusinessDirectory, BusinessProfile
from .errors import SlotConflictError, ValidationError
from .models import DEFAULT_DURATION_MINUTES, STATUS_PENDING, BookingRequest, ReservationRecord
from .slots import DEFAULT_SLOT_GRANULARITY_MINUTES, fits_operating_hours, free_slots, slots_for_date
from .yaml_store import ReservationYamlRepository

logger = logging.getLogger(__name__)


class ConflictResolver:
    """Admission control for new reservations.

    The availability check and the write happen while holding the store's
    admission lock for the business day, so two requests for overlapping
    intervals cannot both pass the check. Nothing is cached between calls.
    """

    def __init__(
        self,
        repository: ReservationYamlRepository,
        directory: BusinessDirectory,
        granularity_minutes: int = DEFAULT_SLOT_GRANULARITY_MINUTES,
    ) -> None:
        self.repository = repository
        self.directory = directory
        self.granularity_minutes = granularity_minutes

    def duration_for(self, profile: BusinessProfile, service_id: str | None) -> int:
        if service_id is None:
            return DEFAULT_DURATION_MINUTES
        return profile.service(service_id).duration_minutes

    def admit(self, request: BookingRequest, now: datetime | None = None) -> ReservationRecord:
        effective_now = now or datetime.now()
        profile, window, duration = self._validate(request, effective_now)
        day = window.start.date().isoformat()

        with self.repository.admission_lock(request.business_id, day):
            if request.idempotency_key:
                existing = self.repository.find_by_idempotency_key(request.customer_id, request.idempotency_key)
                if existing is not None:
                    _check_same_request(existing, request, window)
                    logger.info(
                        "Returning reservation %s for repeated idempotency key %s",
                        existing.reservation_id,
                        request.idempotency_key,
                    )
                    return existing

            active = self.repository.list_active_for_day(request.business_id, day)
            conflicting = [
                record
                for record in active
                if has_time_overlap(window.start, window.end, record.window.start, record.window.end)
            ]
            if conflicting:
                alternatives = free_slots(
                    day,
                    slots_for_date(profile, day, duration, self.granularity_minutes),
                    duration,
                    [record.window for record in active],
                )
                logger.info(
                    "Rejected %s %s-%s for business %s: overlaps %s",
                    day,
                    window.start.strftime("%H:%M"),
                    window.end.strftime("%H:%M"),
                    request.business_id,
                    ", ".join(record.reservation_id for record in conflicting),
                )
                raise SlotConflictError(
                    "The requested slot is no longer available.",
                    conflicting_ids=[record.reservation_id for record in conflicting],
                    alternatives=alternatives,
                )

            fields = request.to_fields()
            fields["date"] = day
            fields["duration_minutes"] = duration
            fields["status"] = STATUS_PENDING
            return self.repository.create(fields, now=effective_now)

    def _validate(self, request: BookingRequest, now: datetime) -> tuple[BusinessProfile, TimeWindow, int]:
        missing = [
            name
            for name in ("business_id", "customer_id", "date", "time")
            if not str(getattr(request, name) or "").strip()
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        profile = self.directory.require(request.business_id)
        duration = self.duration_for(profile, request.service_id)
        window = TimeWindow.from_clock(request.date, request.time, duration)

        hours = profile.hours_for(parse_date(request.date))
        if hours is None:
            raise ValidationError(f"{profile.name} is closed on {request.date}.")
        if not fits_operating_hours(hours, window):
            raise ValidationError(
                f"Reservation must fit within operating hours ({hours.open}-{hours.close})."
            )
        if window.start < now:
            raise ValidationError("Reservation start time cannot be in the past.")
        return profile, window, duration


def _check_same_request(existing: ReservationRecord, request: BookingRequest, window: TimeWindow) -> None:
    """A reused idempotency key must describe the reservation it first admitted."""
    same = (
        existing.business_id == request.business_id
        and existing.date == window.start.date().isoformat()
        and existing.time == window.start.strftime("%H:%M")
        and existing.service_id == request.service_id
    )
    if not same:
        raise ValidationError(
            f"Idempotency key '{request.idempotency_key}' was already used for reservation "
            f"{existing.reservation_id} with different details."
        )
