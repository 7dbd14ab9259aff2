# eventbook/core/services.py
"""
Booking writes that must be atomic.

Each operation runs in its own session and transaction: the steps either
all commit or the transaction is aborted, and the session is always ended.
Creating a booking re-reads the event inside the transaction, which closes
the race a plain pre-insert check cannot (event deleted in between).
"""

import logging
from typing import Callable, TypeVar

from pymongo.client_session import ClientSession
from pymongo.errors import DuplicateKeyError, PyMongoError

from .bookings import BookingDocument, conflict_from
from .documents import to_object_id, utcnow
from .errors import DataLayerError, EventReferenceError, NotFoundError, TransactionError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_in_transaction(dbclient, action: str, callback: Callable[[ClientSession], T]) -> T:
    """
    Run ``callback(session)`` inside a transaction and return its result.

    The driver's with_transaction commits on success and aborts when the
    callback raises. Duplicate keys surface as ConflictError, other driver
    failures as TransactionError("Failed to <action> booking: ...").
    """
    with dbclient.start_session() as session:
        try:
            return session.with_transaction(callback)
        except DataLayerError as exc:
            logger.warning(f"Transaction aborted ({action} booking): {exc.message}")
            raise
        except DuplicateKeyError as exc:
            logger.warning(f"Transaction aborted ({action} booking): duplicate key")
            raise conflict_from(exc) from exc
        except PyMongoError as exc:
            logger.error(f"Transaction failed ({action} booking): {exc}")
            raise TransactionError(f"Failed to {action} booking: {exc}") from exc


def create_booking_with_transaction(dbclient, event_id, email: str) -> BookingDocument:
    """
    Create a booking, verifying the event exists in the same transaction.

    Raises:
        ValidationError: malformed event id or email.
        EventReferenceError: the event does not exist.
        ConflictError: this email already booked this event.
        TransactionError: any other database failure.
    """
    booking = BookingDocument.parse({"eventId": event_id, "email": email})

    def _create(session: ClientSession) -> BookingDocument:
        event = dbclient.events.find_one({"_id": booking.event_id}, {"_id": 1}, session=session)
        if event is None:
            raise EventReferenceError(booking.event_id)

        booking.created_at = booking.updated_at = utcnow()
        result = dbclient.bookings.insert_one(booking.to_document(), session=session)
        booking.id = result.inserted_id
        return booking

    created = run_in_transaction(dbclient, "create", _create)
    logger.info(
        "Booking created",
        extra={"booking_id": created.id, "event_id": created.event_id},
    )
    return created


def update_booking_with_transaction(dbclient, booking_id, new_email: str) -> BookingDocument:
    oid = to_object_id(booking_id, "bookingId", "booking")

    def _update(session: ClientSession) -> BookingDocument:
        doc = dbclient.bookings.find_one({"_id": oid}, session=session)
        if doc is None:
            raise NotFoundError("Booking", booking_id)

        booking = BookingDocument.parse({**doc, "email": new_email})
        booking.updated_at = utcnow()
        dbclient.bookings.update_one(
            {"_id": oid},
            {"$set": {"email": booking.email, "updatedAt": booking.updated_at}},
            session=session,
        )
        return booking

    updated = run_in_transaction(dbclient, "update", _update)
    logger.info("Booking updated", extra={"booking_id": oid})
    return updated


def delete_booking_with_transaction(dbclient, booking_id) -> bool:
    """Delete a booking. Returns False when there was nothing to delete."""
    oid = to_object_id(booking_id, "bookingId", "booking")

    def _delete(session: ClientSession) -> bool:
        result = dbclient.bookings.delete_one({"_id": oid}, session=session)
        return result.deleted_count == 1

    deleted = run_in_transaction(dbclient, "delete", _delete)
    logger.info(f"Booking delete: removed={deleted}", extra={"booking_id": oid})
    return deleted
