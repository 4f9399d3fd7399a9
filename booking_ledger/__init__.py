from .booking import TimeWindow, has_time_overlap, can_reserve
from .capabilities import check_capability
from .conflicts import ConflictResolver
from .directory import BusinessDirectory, BusinessProfile, DayHours, Service
from .errors import (
	AuthorizationError,
	BookingError,
	InvalidStateError,
	InvalidStateTransitionError,
	NotFoundError,
	ReservationStorageError,
	SlotConflictError,
	ValidationError,
)
from .ledger import BookingLedger
from .lifecycle import LifecycleManager
from .models import Actor, BookingRequest, Decision, ReservationRecord
from .slots import fits_operating_hours, free_slots, generate_slots, slots_for_date
from .yaml_store import ReservationYamlRepository

__all__ = [
	"TimeWindow",
	"has_time_overlap",
	"can_reserve",
	"check_capability",
	"ConflictResolver",
	"BusinessDirectory",
	"BusinessProfile",
	"DayHours",
	"Service",
	"AuthorizationError",
	"BookingError",
	"InvalidStateError",
	"InvalidStateTransitionError",
	"NotFoundError",
	"ReservationStorageError",
	"SlotConflictError",
	"ValidationError",
	"BookingLedger",
	"LifecycleManager",
	"Actor",
	"BookingRequest",
	"Decision",
	"ReservationRecord",
	"fits_operating_hours",
	"free_slots",
	"generate_slots",
	"slots_for_date",
	"ReservationYamlRepository",
]
