from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from flask import Flask, jsonify, request

from .errors import (
    AuthorizationError,
    BookingError,
    InvalidStateError,
    NotFoundError,
    ReservationStorageError,
    SlotConflictError,
    ValidationError,
)
from .ledger import BookingLedger
from .models import ReservationRecord

_STATUS_CODES: list[tuple[type[BookingError], int]] = [
    (ValidationError, 400),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (SlotConflictError, 409),
    (InvalidStateError, 409),
    (ReservationStorageError, 503),
]


def create_app(
    data_dir: str | Path = "data",
    business_file: str | Path | None = None,
    now_provider: Callable[[], datetime] | None = None,
) -> Flask:
    app = Flask(__name__)
    ledger = BookingLedger.from_paths(data_dir, business_file, now_provider=now_provider)
    app.config["BOOKING_LEDGER"] = ledger

    def _serialize(record: ReservationRecord) -> dict[str, Any]:
        payload = record.to_dict()
        window = record.window
        payload["end_time"] = window.end.strftime("%H:%M")
        return payload

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.post("/api/reservations")
    def create_reservation() -> Any:
        payload = _json_payload()
        try:
            created = ledger.create_reservation(payload)
        except BookingError as error:
            return _error_response(error)
        return jsonify({"ok": True, "reservation": _serialize(created)}), 201

    @app.get("/api/reservations/<reservation_id>")
    def get_reservation(reservation_id: str) -> Any:
        try:
            record = ledger.get_reservation(
                reservation_id,
                _require_text(request.args, "actor_id"),
                _require_text(request.args, "actor_role"),
            )
        except BookingError as error:
            return _error_response(error)
        return jsonify({"ok": True, "reservation": _serialize(record)})

    @app.get("/api/businesses/<business_id>/reservations")
    def list_business_reservations(business_id: str) -> Any:
        status = request.args.get("status")
        if status == "all":
            status = None
        try:
            records = ledger.list_by_business(business_id, status)
        except BookingError as error:
            return _error_response(error)
        return jsonify({"ok": True, "reservations": [_serialize(record) for record in records]})

    @app.get("/api/customers/<customer_id>/reservations")
    def list_customer_reservations(customer_id: str) -> Any:
        try:
            records = ledger.list_by_customer(customer_id)
        except BookingError as error:
            return _error_response(error)
        return jsonify({"ok": True, "reservations": [_serialize(record) for record in records]})

    @app.post("/api/reservations/<reservation_id>/status")
    def transition_reservation(reservation_id: str) -> Any:
        payload = _json_payload()
        try:
            updated = ledger.transition_status(
                reservation_id,
                _require_text(payload, "actor_id"),
                _require_text(payload, "actor_role"),
                _require_text(payload, "target_status"),
            )
        except BookingError as error:
            return _error_response(error)
        return jsonify({"ok": True, "reservation": _serialize(updated)})

    @app.post("/api/reservations/<reservation_id>/delete")
    def delete_reservation(reservation_id: str) -> Any:
        payload = _json_payload()
        try:
            deleted = ledger.delete_reservation(
                reservation_id,
                _require_text(payload, "actor_id"),
                str(payload.get("actor_role") or "customer"),
            )
        except BookingError as error:
            return _error_response(error)
        return jsonify({"ok": True, "reservation": _serialize(deleted)})

    @app.get("/api/businesses/<business_id>/slots")
    def list_slots(business_id: str) -> Any:
        try:
            day = _require_text(request.args, "date")
            service_id = request.args.get("service_id") or None
            slots = ledger.available_slots(business_id, day, service_id)
        except BookingError as error:
            return _error_response(error)
        return jsonify({"ok": True, "business_id": business_id, "date": day, "slots": slots})

    @app.get("/api/businesses/<business_id>/summary")
    def business_summary(business_id: str) -> Any:
        try:
            summary = ledger.business_summary(business_id, request.args.get("date") or None)
        except BookingError as error:
            return _error_response(error)
        return jsonify({"ok": True, **summary})

    return app


def _json_payload() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _require_text(source: Any, name: str) -> str:
    value = str(source.get(name) or "").strip()
    if not value:
        raise ValidationError(f"{name} is required")
    return value


def _error_response(error: BookingError) -> tuple[Any, int]:
    status_code = 500
    for error_type, code in _STATUS_CODES:
        if isinstance(error, error_type):
            status_code = code
            break
    return jsonify({"ok": False, **error.to_dict()}), status_code


if __name__ == "__main__":
    app = create_app()
    app.run(host="127.0.0.1", port=5000, debug=False)
