from __future__ import annotations

import os
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from booking_ledger import BookingError, BookingLedger

mcp = FastMCP(
    "Booking Ledger MCP Server",
    instructions="Expose business slots and reservation lifecycle operations from the booking_ledger project.",
    json_response=True,
)

DATA_DIR = Path(os.environ.get("BOOKING_LEDGER_DATA_DIR") or Path(__file__).parent / "data")
LEDGER = BookingLedger.from_paths(DATA_DIR)


@mcp.resource("booking://businesses")
async def list_businesses() -> list[dict]:
    """List the businesses that accept reservations, with hours and services."""
    return [profile.to_dict() for profile in LEDGER.directory.all()]


@mcp.tool()
def list_available_slots(business_id: str, date: str, service_id: str | None = None) -> dict:
    """Return free start times (HH:MM) for a business on a date."""
    try:
        return {"ok": True, "slots": LEDGER.available_slots(business_id, date, service_id)}
    except BookingError as error:
        return {"ok": False, **error.to_dict()}


@mcp.tool()
def create_reservation(
    business_id: str,
    customer_id: str,
    date: str,
    time: str,
    service_id: str | None = None,
    notes: str | None = None,
    idempotency_key: str | None = None,
) -> dict:
    """Book a slot. The reservation starts out pending until the business confirms it."""
    try:
        created = LEDGER.create_reservation(
            {
                "business_id": business_id,
                "customer_id": customer_id,
                "date": date,
                "time": time,
                "service_id": service_id,
                "notes": notes,
                "idempotency_key": idempotency_key,
            }
        )
    except BookingError as error:
        return {"ok": False, **error.to_dict()}
    return {"ok": True, "reservation": created.to_dict()}


@mcp.tool()
def list_business_reservations(business_id: str, status: str | None = None) -> dict:
    """Return a business's reservations ordered by date and time."""
    try:
        records = LEDGER.list_by_business(business_id, status)
    except BookingError as error:
        return {"ok": False, **error.to_dict()}
    return {"ok": True, "reservations": [record.to_dict() for record in records]}


@mcp.tool()
def list_customer_reservations(customer_id: str) -> dict:
    """Return a customer's reservations, most recent first."""
    try:
        records = LEDGER.list_by_customer(customer_id)
    except BookingError as error:
        return {"ok": False, **error.to_dict()}
    return {"ok": True, "reservations": [record.to_dict() for record in records]}


@mcp.tool()
def transition_reservation(reservation_id: str, actor_id: str, actor_role: str, target_status: str) -> dict:
    """Confirm, complete or cancel a reservation on behalf of the given actor."""
    try:
        updated = LEDGER.transition_status(reservation_id, actor_id, actor_role, target_status)
    except BookingError as error:
        return {"ok": False, **error.to_dict()}
    return {"ok": True, "reservation": updated.to_dict()}


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
