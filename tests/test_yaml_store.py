import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from booking_ledger import (
    AuthorizationError,
    InvalidStateError,
    InvalidStateTransitionError,
    NotFoundError,
    ReservationStorageError,
    ReservationYamlRepository,
    ValidationError,
)
from booking_ledger import yaml_store


def _fields(**overrides):
    fields = {
        "business_id": "salon-1",
        "customer_id": "cust-1",
        "date": "2026-03-02",
        "time": "10:00",
    }
    fields.update(overrides)
    return fields


class TestReservationYamlRepository(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._temp_dir.name) / "data"
        self.repo = ReservationYamlRepository(self.data_dir)
        self.now = datetime(2026, 3, 1, 12, 0)

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def test_create_assigns_id_timestamps_and_defaults(self) -> None:
        created = self.repo.create(_fields(time="9:30", notes="first visit"), now=self.now)

        self.assertTrue(created.reservation_id)
        self.assertEqual(created.created_at, self.now)
        self.assertEqual(created.updated_at, self.now)
        self.assertEqual(created.status, "pending")
        self.assertEqual(created.duration_minutes, 30)
        self.assertEqual(created.time, "09:30")
        self.assertEqual(self.repo.get(created.reservation_id), created)

    def test_create_rejects_missing_fields(self) -> None:
        with self.assertRaises(ValidationError) as context:
            self.repo.create({"business_id": "salon-1", "date": "2026-03-02"}, now=self.now)

        self.assertIn("customer_id", str(context.exception))
        self.assertIn("time", str(context.exception))
        self.assertEqual(self.repo.list_by_business("salon-1"), [])

    def test_create_rejects_store_managed_fields(self) -> None:
        with self.assertRaises(ValidationError):
            self.repo.create(_fields(created_at="2020-01-01T00:00:00"), now=self.now)
        with self.assertRaises(ValidationError):
            self.repo.create(_fields(status="archived"), now=self.now)

    def test_record_survives_a_fresh_repository(self) -> None:
        created = self.repo.create(_fields(customer_name="Ana"), now=self.now)

        reopened = ReservationYamlRepository(self.data_dir)

        self.assertEqual(reopened.get(created.reservation_id), created)

    def test_list_by_business_orders_by_date_then_time_and_filters_status(self) -> None:
        late = self.repo.create(_fields(time="15:00"), now=self.now)
        early = self.repo.create(_fields(time="09:00"), now=self.now)
        next_day = self.repo.create(_fields(date="2026-03-03", time="08:00", status="confirmed"), now=self.now)
        self.repo.create(_fields(business_id="other"), now=self.now)

        ordered = self.repo.list_by_business("salon-1")
        self.assertEqual(
            [record.reservation_id for record in ordered],
            [early.reservation_id, late.reservation_id, next_day.reservation_id],
        )

        confirmed = self.repo.list_by_business("salon-1", status="confirmed")
        self.assertEqual([record.reservation_id for record in confirmed], [next_day.reservation_id])

        with self.assertRaises(ValidationError):
            self.repo.list_by_business("salon-1", status="archived")

    def test_list_by_customer_is_most_recent_first(self) -> None:
        older = self.repo.create(_fields(date="2026-03-02"), now=self.now)
        newer = self.repo.create(_fields(date="2026-03-09"), now=self.now)
        self.repo.create(_fields(customer_id="cust-2"), now=self.now)

        records = self.repo.list_by_customer("cust-1")

        self.assertEqual([record.reservation_id for record in records], [newer.reservation_id, older.reservation_id])

    def test_update_merges_fields_and_bumps_updated_at(self) -> None:
        created = self.repo.create(_fields(), now=self.now)
        later = datetime(2026, 3, 1, 13, 0)

        updated = self.repo.update(created.reservation_id, {"notes": "bring photos"}, now=later)

        self.assertEqual(updated.notes, "bring photos")
        self.assertEqual(updated.created_at, self.now)
        self.assertEqual(updated.updated_at, later)
        self.assertEqual(self.repo.get(created.reservation_id), updated)

    def test_update_never_moves_updated_at_before_created_at(self) -> None:
        created = self.repo.create(_fields(), now=self.now)

        updated = self.repo.update(created.reservation_id, {"notes": "x"}, now=datetime(2026, 2, 1, 0, 0))

        self.assertLessEqual(updated.created_at, updated.updated_at)

    def test_update_rejects_immutable_fields_and_unknown_ids(self) -> None:
        created = self.repo.create(_fields(), now=self.now)

        with self.assertRaises(ValidationError):
            self.repo.update(created.reservation_id, {"business_id": "other"}, now=self.now)
        with self.assertRaises(ValidationError):
            self.repo.update(created.reservation_id, {"customer_id": "cust-9"}, now=self.now)
        with self.assertRaises(NotFoundError):
            self.repo.update("missing", {"notes": "x"}, now=self.now)

    def test_conditional_update_fails_when_status_changed(self) -> None:
        created = self.repo.create(_fields(), now=self.now)
        self.repo.update(created.reservation_id, {"status": "cancelled"}, now=self.now, expected_status="pending")

        with self.assertRaises(InvalidStateTransitionError) as context:
            self.repo.update(created.reservation_id, {"status": "confirmed"}, now=self.now, expected_status="pending")

        self.assertEqual(context.exception.current_status, "cancelled")
        self.assertEqual(self.repo.get(created.reservation_id).status, "cancelled")

    def test_delete_rules(self) -> None:
        pending = self.repo.create(_fields(time="09:00"), now=self.now)
        confirmed = self.repo.create(_fields(time="10:00", status="confirmed"), now=self.now)

        with self.assertRaises(AuthorizationError):
            self.repo.delete(pending.reservation_id, "cust-2", now=self.now)
        with self.assertRaises(InvalidStateError):
            self.repo.delete(confirmed.reservation_id, "cust-1", now=self.now)
        with self.assertRaises(NotFoundError):
            self.repo.delete("missing", "cust-1", now=self.now)

        deleted = self.repo.delete(pending.reservation_id, "cust-1", now=self.now)

        self.assertEqual(deleted.reservation_id, pending.reservation_id)
        self.assertIsNone(self.repo.get(pending.reservation_id))
        self.assertIsNotNone(self.repo.get(confirmed.reservation_id))

    def test_list_active_for_day_excludes_cancelled_and_completed(self) -> None:
        active = self.repo.create(_fields(time="09:00"), now=self.now)
        self.repo.create(_fields(time="10:00", status="cancelled"), now=self.now)
        self.repo.create(_fields(time="11:00", status="completed"), now=self.now)
        self.repo.create(_fields(date="2026-03-03"), now=self.now)

        records = self.repo.list_active_for_day("salon-1", "2026-03-02")

        self.assertEqual([record.reservation_id for record in records], [active.reservation_id])

    def test_logs_create_update_delete_events(self) -> None:
        created = self.repo.create(_fields(), now=self.now)
        self.repo.update(created.reservation_id, {"status": "cancelled"}, now=self.now)
        self.repo.delete(created.reservation_id, "cust-1", now=self.now)

        event_types = [event["event_type"] for event in self.repo.get_events()]

        self.assertEqual(event_types, ["RESERVATION_CREATED", "RESERVATION_UPDATED", "RESERVATION_DELETED"])

    def test_corrupted_event_log_is_backed_up_and_reset(self) -> None:
        self.repo.log_file.write_text("{not: [valid", encoding="utf-8")

        self.repo.create(_fields(), now=self.now)

        event_types = [event["event_type"] for event in self.repo.get_events()]
        self.assertEqual(event_types, ["YAML_RECOVERED", "RESERVATION_CREATED"])
        backups = list(self.data_dir.glob("reservation_events.corrupt.*.yaml"))
        self.assertEqual(len(backups), 1)

    def test_unwritable_event_log_does_not_fail_committed_mutations(self) -> None:
        self.repo.log_file.unlink()
        self.repo.log_file.mkdir()

        created = self.repo.create(_fields(), now=self.now)
        self.assertEqual(self.repo.get(created.reservation_id), created)

        updated = self.repo.update(created.reservation_id, {"status": "cancelled"}, now=self.now)
        self.assertEqual(self.repo.get(created.reservation_id).status, "cancelled")

        self.repo.delete(updated.reservation_id, "cust-1", now=self.now)
        self.assertIsNone(self.repo.get(created.reservation_id))

    def test_admission_locks_are_released_from_the_registry(self) -> None:
        def registered() -> list:
            return [key for key in yaml_store._ADMISSION_LOCKS.keys() if key[1:] == ("salon-1", "2026-03-02")]

        with self.repo.admission_lock("salon-1", "2026-03-02"):
            self.assertEqual(len(registered()), 1)

        self.assertEqual(registered(), [])

    def test_corrupted_reservation_file_raises_storage_error(self) -> None:
        self.repo.reservations_file.write_text("{not: [valid", encoding="utf-8")

        with self.assertRaises(ReservationStorageError):
            self.repo.list_by_business("salon-1")
        with self.assertRaises(ReservationStorageError):
            self.repo.create(_fields(), now=self.now)


if __name__ == "__main__":
    unittest.main()
