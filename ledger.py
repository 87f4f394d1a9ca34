"""
Slot ledger: the only code allowed to change a class's booked_slots.

Every operation runs as a single store transaction that reads everything it
needs first and only then writes. The decision of what to write lives in the
pure plan_* functions; the public functions fetch the snapshots inside the
transaction and hand the plan back to it.
"""
import logging
from typing import Any, Dict, List, Optional

from databases_sql import Transaction, Write, run_transaction
from errors import ExhaustedError, InvalidTransitionError, NotFoundError
from lifecycle import BookingStatus, StatusLike, as_status, check_transition, is_occupying, releases_slot
from utils import generate_id, utc_now_iso

logger = logging.getLogger(__name__)

CONTACT_FIELDS = ("first_name", "last_name", "email", "phone", "notes")


def _release_slot(class_id: str, class_doc: Optional[Dict[str, Any]]) -> List[Write]:
    # Never drive the counter below zero; a vanished class has nothing to release.
    if class_doc is None or class_doc["booked_slots"] <= 0:
        return []
    return [Write("update", "classes", class_id, {"booked_slots": class_doc["booked_slots"] - 1})]


def plan_create_booking(
    class_id: str,
    class_doc: Optional[Dict[str, Any]],
    details: Dict[str, Any],
    booking_id: str,
    created_at: str,
    status: StatusLike = BookingStatus.CONFIRMED,
) -> List[Write]:
    if class_doc is None:
        raise NotFoundError("Class not found. Please select another class.")
    if class_doc["booked_slots"] >= class_doc["capacity"]:
        raise ExhaustedError("This class is now fully booked. Please select another.")

    booking = {field: details.get(field) for field in CONTACT_FIELDS}
    booking.update({
        "class_id": class_id,
        "class_title": class_doc["title"],
        "instructor_id": class_doc["instructor_id"],
        "class_date": class_doc["date"],
        "class_start_time": class_doc["start_time"],
        "class_end_time": class_doc["end_time"],
        "status": as_status(status),
        "created_at": created_at,
    })
    return [
        Write("update", "classes", class_id, {"booked_slots": class_doc["booked_slots"] + 1}),
        Write("set", "bookings", booking_id, booking),
    ]


def plan_status_change(
    booking_id: str,
    booking_doc: Optional[Dict[str, Any]],
    new_status: StatusLike,
    class_id: Optional[str],
    class_doc: Optional[Dict[str, Any]],
) -> List[Write]:
    if booking_doc is None:
        raise NotFoundError("Booking not found.")
    old_status = booking_doc["status"]
    check_transition(old_status, new_status)

    writes = [Write("update", "bookings", booking_id, {"status": as_status(new_status)})]
    if class_id and releases_slot(old_status, new_status):
        writes += _release_slot(class_id, class_doc)
    return writes


def plan_delete_booking(
    booking_id: str,
    booking_doc: Optional[Dict[str, Any]],
    class_id: Optional[str],
    class_doc: Optional[Dict[str, Any]],
) -> List[Write]:
    if booking_doc is None:
        raise NotFoundError("Booking not found.")

    writes = [Write("delete", "bookings", booking_id)]
    if class_id and is_occupying(booking_doc["status"]):
        writes += _release_slot(class_id, class_doc)
    return writes


def _read_booking_and_class(tx: Transaction, booking_id: str, class_id: Optional[str]):
    booking_doc = tx.get("bookings", booking_id)
    if booking_doc is not None and not class_id:
        class_id = booking_doc["class_id"]
    class_doc = tx.get("classes", class_id) if class_id else None
    return booking_doc, class_id, class_doc


def create_booking(
    class_id: str,
    details: Dict[str, Any],
    initial_status: StatusLike = BookingStatus.CONFIRMED,
) -> str:
    """Book one slot of a class and return the new booking id.

    The capacity check is repeated inside the transaction; whatever the caller
    saw in the availability list may already be stale.
    """
    initial_status = as_status(initial_status)
    if not is_occupying(initial_status):
        raise InvalidTransitionError(f"A booking cannot start as {initial_status.value}")

    booking_id = generate_id("bkg")
    created_at = utc_now_iso()

    def work(tx: Transaction):
        class_doc = tx.get("classes", class_id)
        tx.write_all(plan_create_booking(class_id, class_doc, details, booking_id, created_at, initial_status))
        return booking_id

    run_transaction(work)
    logger.info("Booking %s created for class %s (%s)", booking_id, class_id, initial_status.value)
    return booking_id


def transition_status(booking_id: str, new_status: StatusLike, class_id: Optional[str] = None) -> None:
    """Move a booking to new_status, giving its slot back on the first cancellation.

    Cancelling an already cancelled booking rewrites the status and releases nothing.
    Without class_id the booking's own class is used, so a cancellation still
    releases its slot. Older admin tools skipped the release in that case and
    let the counter drift from the live bookings.
    """
    new_status = as_status(new_status)

    def work(tx: Transaction):
        booking_doc, cid, class_doc = _read_booking_and_class(tx, booking_id, class_id)
        tx.write_all(plan_status_change(booking_id, booking_doc, new_status, cid, class_doc))

    run_transaction(work)
    logger.info("Booking %s status set to %s", booking_id, new_status.value)


def delete_booking(booking_id: str, class_id: Optional[str] = None) -> None:
    def work(tx: Transaction):
        booking_doc, cid, class_doc = _read_booking_and_class(tx, booking_id, class_id)
        tx.write_all(plan_delete_booking(booking_id, booking_doc, cid, class_doc))

    run_transaction(work)
    logger.info("Booking %s deleted", booking_id)
