import tempfile
import unittest
from datetime import datetime
from pathlib import Path

import yaml

from helpers import MONDAY, NOW, SALON

from booking_ledger.web_app import create_app


class TestWebApp(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._temp_dir.name) / "data"
        self.data_dir.mkdir(parents=True)
        (self.data_dir / "businesses.yaml").write_text(
            yaml.safe_dump({"businesses": [SALON]}, allow_unicode=True, sort_keys=False),
            encoding="utf-8",
        )
        self.now = NOW
        app = create_app(self.data_dir, now_provider=lambda: self.now)
        self.client = app.test_client()

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def _book(self, time: str, customer_id: str = "cust-1", **extra):
        payload = {"business_id": "salon-1", "customer_id": customer_id, "date": MONDAY, "time": time}
        payload.update(extra)
        return self.client.post("/api/reservations", json=payload)

    def _transition(self, reservation_id: str, actor_id: str, actor_role: str, target_status: str):
        return self.client.post(
            f"/api/reservations/{reservation_id}/status",
            json={"actor_id": actor_id, "actor_role": actor_role, "target_status": target_status},
        )

    def test_create_reservation_returns_created_record(self) -> None:
        response = self._book("10:00", service_id="color", customer_name="Ana")

        self.assertEqual(response.status_code, 201)
        payload = response.get_json()
        self.assertTrue(payload["ok"])
        reservation = payload["reservation"]
        self.assertEqual(reservation["status"], "pending")
        self.assertEqual(reservation["duration_minutes"], 90)
        self.assertEqual(reservation["end_time"], "11:30")
        self.assertEqual(reservation["customer_name"], "Ana")
        self.assertEqual(response.headers["Access-Control-Allow-Origin"], "*")

    def test_conflict_returns_409_with_alternatives(self) -> None:
        self._book("10:00")

        response = self._book("10:00", customer_id="cust-2")

        self.assertEqual(response.status_code, 409)
        payload = response.get_json()
        self.assertFalse(payload["ok"])
        self.assertEqual(payload["error"], "slot_conflict")
        self.assertIn("10:30", payload["alternatives"])

    def test_invalid_payload_returns_400(self) -> None:
        missing = self.client.post("/api/reservations", json={"business_id": "salon-1"})
        self.assertEqual(missing.status_code, 400)
        self.assertFalse(missing.get_json()["ok"])

        not_a_mapping = self.client.post("/api/reservations", json=["salon-1"])
        self.assertEqual(not_a_mapping.status_code, 400)

    def test_status_flow_and_permissions(self) -> None:
        reservation_id = self._book("10:00").get_json()["reservation"]["reservation_id"]

        forbidden = self._transition(reservation_id, "cust-1", "customer", "confirmed")
        self.assertEqual(forbidden.status_code, 403)

        confirmed = self._transition(reservation_id, "owner-7", "business", "confirmed")
        self.assertEqual(confirmed.status_code, 200)
        self.assertEqual(confirmed.get_json()["reservation"]["status"], "confirmed")

        early = self._transition(reservation_id, "salon-1", "business", "completed")
        self.assertEqual(early.status_code, 409)
        self.assertEqual(early.get_json()["current_status"], "confirmed")

        self.now = datetime(2026, 3, 2, 10, 45)
        completed = self._transition(reservation_id, "salon-1", "business", "completed")
        self.assertEqual(completed.status_code, 200)

        reopened = self._transition(reservation_id, "salon-1", "business", "cancelled")
        self.assertEqual(reopened.status_code, 409)

        missing = self._transition("missing", "salon-1", "business", "confirmed")
        self.assertEqual(missing.status_code, 404)

    def test_get_reservation_requires_an_owning_actor(self) -> None:
        reservation_id = self._book("10:00").get_json()["reservation"]["reservation_id"]

        owned = self.client.get(f"/api/reservations/{reservation_id}?actor_id=cust-1&actor_role=customer")
        self.assertEqual(owned.status_code, 200)
        self.assertEqual(owned.get_json()["reservation"]["reservation_id"], reservation_id)

        stranger = self.client.get(f"/api/reservations/{reservation_id}?actor_id=cust-2&actor_role=customer")
        self.assertEqual(stranger.status_code, 403)

        anonymous = self.client.get(f"/api/reservations/{reservation_id}")
        self.assertEqual(anonymous.status_code, 400)

    def test_listing_endpoints(self) -> None:
        self._book("11:00")
        first_id = self._book("09:00").get_json()["reservation"]["reservation_id"]
        self._book("12:00", customer_id="cust-2")
        self._transition(first_id, "salon-1", "business", "confirmed")

        business = self.client.get("/api/businesses/salon-1/reservations?status=all").get_json()
        self.assertEqual([row["time"] for row in business["reservations"]], ["09:00", "11:00", "12:00"])

        confirmed = self.client.get("/api/businesses/salon-1/reservations?status=confirmed").get_json()
        self.assertEqual([row["reservation_id"] for row in confirmed["reservations"]], [first_id])

        bad_status = self.client.get("/api/businesses/salon-1/reservations?status=archived")
        self.assertEqual(bad_status.status_code, 400)

        customer = self.client.get("/api/customers/cust-1/reservations").get_json()
        self.assertEqual(len(customer["reservations"]), 2)

    def test_delete_endpoint(self) -> None:
        reservation_id = self._book("10:00").get_json()["reservation"]["reservation_id"]

        forbidden = self.client.post(f"/api/reservations/{reservation_id}/delete", json={"actor_id": "cust-2"})
        self.assertEqual(forbidden.status_code, 403)

        deleted = self.client.post(f"/api/reservations/{reservation_id}/delete", json={"actor_id": "cust-1"})
        self.assertEqual(deleted.status_code, 200)

        listed = self.client.get("/api/customers/cust-1/reservations").get_json()
        self.assertEqual(listed["reservations"], [])

    def test_slots_and_summary(self) -> None:
        self._book("10:00")

        slots = self.client.get(f"/api/businesses/salon-1/slots?date={MONDAY}").get_json()
        self.assertEqual(len(slots["slots"]), 15)
        self.assertNotIn("10:00", slots["slots"])

        missing_date = self.client.get("/api/businesses/salon-1/slots")
        self.assertEqual(missing_date.status_code, 400)

        summary = self.client.get(f"/api/businesses/salon-1/summary?date={MONDAY}").get_json()
        self.assertTrue(summary["ok"])
        self.assertEqual(summary["today"], 1)
        self.assertEqual(summary["pending"], 1)

        unknown = self.client.get("/api/businesses/nobody/summary")
        self.assertEqual(unknown.status_code, 400)


if __name__ == "__main__":
    unittest.main()
