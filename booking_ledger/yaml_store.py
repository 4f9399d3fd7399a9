from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Iterator
import logging
import shutil
import threading
import weakref
from uuid import uuid4

import yaml

from .booking import format_clock, parse_clock, parse_date
from .errors import (
    AuthorizationError,
    InvalidStateError,
    InvalidStateTransitionError,
    NotFoundError,
    ReservationStorageError,
    ValidationError,
)
from .models import (
    ACTIVE_STATUSES,
    ALL_STATUSES,
    DEFAULT_DURATION_MINUTES,
    STATUS_CANCELLED,
    STATUS_PENDING,
    ReservationRecord,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("business_id", "customer_id", "date", "time")
IMMUTABLE_FIELDS = frozenset({"reservation_id", "business_id", "customer_id", "created_at"})
STORE_MANAGED_FIELDS = frozenset({"reservation_id", "created_at", "updated_at"})
WRITABLE_FIELDS = frozenset(
    {
        "business_id",
        "customer_id",
        "date",
        "time",
        "duration_minutes",
        "status",
        "service_id",
        "notes",
        "customer_name",
        "customer_email",
        "customer_phone",
        "idempotency_key",
    }
)
DELETABLE_STATUSES = frozenset({STATUS_PENDING, STATUS_CANCELLED})

_REGISTRY_GUARD = threading.Lock()
_FILE_LOCKS: dict[str, threading.RLock] = {}
# Entries disappear once no caller holds or waits on the lock.
_ADMISSION_LOCKS: weakref.WeakValueDictionary[tuple[str, str, str], threading.Lock] = weakref.WeakValueDictionary()


def _file_lock_for(base_dir: Path) -> threading.RLock:
    key = str(base_dir.resolve())
    with _REGISTRY_GUARD:
        lock = _FILE_LOCKS.get(key)
        if lock is None:
            lock = _FILE_LOCKS[key] = threading.RLock()
        return lock


def _admission_lock_for(base_dir: Path, business_id: str, day: str) -> threading.Lock:
    key = (str(base_dir.resolve()), business_id, day)
    with _REGISTRY_GUARD:
        lock = _ADMISSION_LOCKS.get(key)
        if lock is None:
            lock = _ADMISSION_LOCKS[key] = threading.Lock()
        return lock


class ReservationYamlRepository:
    """Reservation records kept in ``reservations.yaml`` with an append-only event log.

    Every read-modify-write of the data files runs under a lock shared by all
    repositories pointing at the same directory, so records written by one are
    visible to the next read of another.
    """

    def __init__(self, base_dir: str | Path = "data") -> None:
        self.base_dir = Path(base_dir)
        self.reservations_file = self.base_dir / "reservations.yaml"
        self.log_file = self.base_dir / "reservation_events.yaml"
        self._ensure_files()
        self._lock = _file_lock_for(self.base_dir)

    def _ensure_files(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        for path in (self.reservations_file, self.log_file):
            if not path.exists():
                path.write_text("[]\n", encoding="utf-8")

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            path.write_text("[]\n", encoding="utf-8")
            return []
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            return self._handle_unreadable(path, error)

        if payload is None:
            return []
        if not isinstance(payload, list):
            return self._handle_unreadable(path, ValueError("top-level YAML is not a list"))

        sanitized: list[dict[str, Any]] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict):
                sanitized.append(row)
            else:
                logger.warning("Skipping row %d of %s: row is not a mapping", index, path.name)
        return sanitized

    def _handle_unreadable(self, path: Path, error: Exception) -> list[dict[str, Any]]:
        # Resetting the reservation file would silently free every booked slot.
        if path == self.reservations_file:
            raise ReservationStorageError(f"Reservation file is unreadable: {path}") from error
        return self._recover_corrupted_yaml(path, error)

    def _write_yaml_list(self, path: Path, rows: list[dict[str, Any]]) -> None:
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_text(yaml.safe_dump(rows, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(path)
        except OSError as error:
            raise ReservationStorageError(f"Failed to write YAML file: {path}") from error
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _recover_corrupted_yaml(self, path: Path, error: Exception) -> list[dict[str, Any]]:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            if path.exists():
                shutil.copy2(path, backup_path)
        except OSError:
            logger.warning("Could not back up corrupted file %s", path)

        logger.warning("Recovered corrupted %s (%s); backup at %s", path.name, error, backup_path.name)
        rows = [
            {
                "event_time": datetime.now().isoformat(timespec="seconds"),
                "event_type": "YAML_RECOVERED",
                "payload": {"file": str(path.name), "backup": str(backup_path.name), "reason": str(error)},
            }
        ]
        self._write_yaml_list(path, rows)
        return rows

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        """Append to the event log. Runs after the data file is committed; a failed write is logged, not raised."""
        timestamp = (event_time or datetime.now()).isoformat(timespec="seconds")
        with self._lock:
            try:
                events = self._read_yaml_list(self.log_file)
                events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
                self._write_yaml_list(self.log_file, events)
            except ReservationStorageError as error:
                logger.warning("Event %s was not written to %s: %s", event_type, self.log_file.name, error)

    def get_events(self) -> list[dict[str, Any]]:
        with self._lock:
            return self._read_yaml_list(self.log_file)

    def _load_records(self) -> list[ReservationRecord]:
        rows = self._read_yaml_list(self.reservations_file)
        try:
            return [ReservationRecord.from_dict(row) for row in rows]
        except (KeyError, TypeError, ValueError) as error:
            raise ReservationStorageError(f"Reservation file has a malformed record: {error}") from error

    @contextmanager
    def admission_lock(self, business_id: str, day: str) -> Iterator[None]:
        """Hold the exclusive admission lock for one business day."""
        lock = _admission_lock_for(self.base_dir, business_id, day)
        with lock:
            yield

    def create(self, fields: dict[str, Any], now: datetime | None = None) -> ReservationRecord:
        effective_now = now or datetime.now()
        supplied = sorted(STORE_MANAGED_FIELDS.intersection(fields))
        if supplied:
            raise ValidationError(f"Fields are assigned by the store and cannot be supplied: {', '.join(supplied)}")

        missing = [name for name in REQUIRED_FIELDS if not str(fields.get(name) or "").strip()]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        unknown = sorted(set(fields) - WRITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown reservation fields: {', '.join(unknown)}")

        values = _normalize_fields(
            {
                "duration_minutes": DEFAULT_DURATION_MINUTES,
                "status": STATUS_PENDING,
                **{name: value for name, value in fields.items() if value is not None},
            }
        )
        record = ReservationRecord(
            reservation_id=str(uuid4()),
            created_at=effective_now,
            updated_at=effective_now,
            **values,
        )

        with self._lock:
            rows = self._read_yaml_list(self.reservations_file)
            rows.append(record.to_dict())
            self._write_yaml_list(self.reservations_file, rows)
            self._log_event(
                "RESERVATION_CREATED",
                {
                    "reservation_id": record.reservation_id,
                    "business_id": record.business_id,
                    "customer_id": record.customer_id,
                    "date": record.date,
                    "time": record.time,
                    "duration_minutes": record.duration_minutes,
                    "status": record.status,
                },
                effective_now,
            )
        return record

    def get(self, reservation_id: str) -> ReservationRecord | None:
        with self._lock:
            records = self._load_records()
        for record in records:
            if record.reservation_id == reservation_id:
                return record
        return None

    def list_by_business(
        self,
        business_id: str,
        status: str | Iterable[str] | None = None,
    ) -> list[ReservationRecord]:
        wanted = _status_filter(status)
        with self._lock:
            records = self._load_records()
        matches = [
            record
            for record in records
            if record.business_id == business_id and (wanted is None or record.status in wanted)
        ]
        matches.sort(key=lambda record: (record.date, record.time, record.created_at))
        return matches

    def list_by_customer(self, customer_id: str) -> list[ReservationRecord]:
        with self._lock:
            records = self._load_records()
        matches = [record for record in records if record.customer_id == customer_id]
        matches.sort(key=lambda record: (record.date, record.time), reverse=True)
        return matches

    def list_active_for_day(self, business_id: str, day: str) -> list[ReservationRecord]:
        day = parse_date(day).isoformat()
        return [record for record in self.list_by_business(business_id, ACTIVE_STATUSES) if record.date == day]

    def find_by_idempotency_key(self, customer_id: str, idempotency_key: str) -> ReservationRecord | None:
        for record in self.list_by_customer(customer_id):
            if record.idempotency_key == idempotency_key:
                return record
        return None

    def update(
        self,
        reservation_id: str,
        changes: dict[str, Any],
        now: datetime | None = None,
        expected_status: str | None = None,
    ) -> ReservationRecord:
        effective_now = now or datetime.now()
        immutable = sorted(IMMUTABLE_FIELDS.intersection(changes))
        if immutable:
            raise ValidationError(f"Fields cannot be changed after creation: {', '.join(immutable)}")
        if "updated_at" in changes:
            raise ValidationError("updated_at is assigned by the store")
        unknown = sorted(set(changes) - WRITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown reservation fields: {', '.join(unknown)}")

        with self._lock:
            rows = self._read_yaml_list(self.reservations_file)
            found_index = -1
            for index, row in enumerate(rows):
                if str(row.get("reservation_id")) == reservation_id:
                    found_index = index
                    break

            if found_index < 0:
                raise NotFoundError(reservation_id)

            current = ReservationRecord.from_dict(rows[found_index])
            target_status = str(changes.get("status", current.status))
            if expected_status is not None and current.status != expected_status:
                raise InvalidStateTransitionError(
                    current.status,
                    target_status,
                    f"Reservation changed concurrently: expected {expected_status}, found {current.status}",
                )

            merged = {name: getattr(current, name) for name in WRITABLE_FIELDS}
            merged.update(changes)
            values = _normalize_fields(merged)
            updated = ReservationRecord(
                reservation_id=current.reservation_id,
                created_at=current.created_at,
                updated_at=max(effective_now, current.created_at),
                **values,
            )
            rows[found_index] = updated.to_dict()
            self._write_yaml_list(self.reservations_file, rows)
            self._log_event(
                "RESERVATION_UPDATED",
                {
                    "reservation_id": reservation_id,
                    "changes": sorted(changes),
                    "from_status": current.status,
                    "status": updated.status,
                },
                effective_now,
            )
        return updated

    def delete(
        self,
        reservation_id: str,
        requesting_customer_id: str,
        now: datetime | None = None,
    ) -> ReservationRecord:
        effective_now = now or datetime.now()
        with self._lock:
            rows = self._read_yaml_list(self.reservations_file)
            remaining: list[dict[str, Any]] = []
            removed: ReservationRecord | None = None
            for row in rows:
                if removed is None and str(row.get("reservation_id")) == reservation_id:
                    removed = ReservationRecord.from_dict(row)
                else:
                    remaining.append(row)

            if removed is None:
                raise NotFoundError(reservation_id)
            if removed.customer_id != requesting_customer_id:
                raise AuthorizationError(
                    "Only the customer who made the reservation can delete it.",
                    reason="not_reservation_customer",
                )
            if removed.status not in DELETABLE_STATUSES:
                raise InvalidStateError(
                    f"A {removed.status} reservation cannot be deleted; cancel it instead.",
                    removed.status,
                )

            self._write_yaml_list(self.reservations_file, remaining)
            self._log_event("RESERVATION_DELETED", removed.to_dict(), effective_now)
        return removed


def _normalize_fields(values: dict[str, Any]) -> dict[str, Any]:
    normalized = dict(values)
    for name in REQUIRED_FIELDS:
        normalized[name] = str(normalized[name]).strip()
    normalized["date"] = parse_date(normalized["date"]).isoformat()
    normalized["time"] = format_clock(parse_clock(normalized["time"]))

    try:
        duration = int(normalized["duration_minutes"])
    except (TypeError, ValueError) as error:
        raise ValidationError("duration_minutes must be an integer") from error
    if duration <= 0:
        raise ValidationError("duration_minutes must be greater than zero")
    normalized["duration_minutes"] = duration

    status = str(normalized["status"])
    if status not in ALL_STATUSES:
        raise ValidationError(f"Unknown reservation status '{status}'")
    normalized["status"] = status
    return normalized


def _status_filter(status: str | Iterable[str] | None) -> frozenset[str] | None:
    if status is None:
        return None
    wanted = frozenset({status}) if isinstance(status, str) else frozenset(status)
    unknown = sorted(wanted - set(ALL_STATUSES))
    if unknown:
        raise ValidationError(f"Unknown reservation status filter: {', '.join(unknown)}")
    return wanted
