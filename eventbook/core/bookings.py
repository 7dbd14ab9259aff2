# eventbook/core/bookings.py
"""
Booking documents and the plain (non-transactional) helpers.

Only format is validated here. Whether the referenced event exists is
checked inside the transactional operations in services.py; use those
whenever integrity matters.
"""

import logging
import re
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import Field, field_validator
from pymongo import ASCENDING, DESCENDING, IndexModel
from pymongo.errors import DuplicateKeyError

from .documents import MongoDocument, duplicate_index_name, to_object_id, utcnow
from .errors import ConflictError

logger = logging.getLogger(__name__)

BOOKING_UNIQUE_INDEX = "uniq_event_email"

BOOKING_INDEXES = [
    IndexModel([("eventId", ASCENDING)]),
    IndexModel([("eventId", ASCENDING), ("createdAt", DESCENDING)]),
    IndexModel([("email", ASCENDING)]),
    IndexModel(
        [("eventId", ASCENDING), ("email", ASCENDING)],
        unique=True,
        name=BOOKING_UNIQUE_INDEX,
    ),
]

# RFC 5322 style address check
EMAIL_RE = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class BookingDocument(MongoDocument):
    event_id: ObjectId | None = Field(default=None, alias="eventId")
    email: str | None = None

    @field_validator("event_id", mode="before")
    @classmethod
    def _check_event_id(cls, value: Any) -> Any:
        if value is None or value == "":
            raise ValueError("Event ID is required")
        if isinstance(value, ObjectId):
            return value
        try:
            return ObjectId(value)
        except (InvalidId, TypeError):
            raise ValueError("Invalid event ID format") from None

    @field_validator("email", mode="before")
    @classmethod
    def _check_email(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = normalize_email(value)
        if value is None or value == "":
            raise ValueError("Email is required")
        if not isinstance(value, str) or not EMAIL_RE.match(value):
            raise ValueError("Please provide a valid email address")
        return value


def conflict_from(exc: DuplicateKeyError) -> ConflictError:
    return ConflictError(
        "This email has already booked this event",
        index_name=duplicate_index_name(exc) or BOOKING_UNIQUE_INDEX,
    )


def create_booking(dbclient, event_id, email: str) -> BookingDocument:
    """
    Insert a booking without checking that the event exists.

    Prefer services.create_booking_with_transaction; this path cannot see
    an event being deleted concurrently.
    """
    booking = BookingDocument.parse({"eventId": event_id, "email": email})
    booking.created_at = booking.updated_at = utcnow()
    try:
        result = dbclient.bookings.insert_one(booking.to_document())
    except DuplicateKeyError as exc:
        raise conflict_from(exc) from exc
    booking.id = result.inserted_id
    return booking


def get_booking(dbclient, booking_id) -> BookingDocument | None:
    doc = dbclient.bookings.find_one({"_id": to_object_id(booking_id, "id", "booking")})
    return BookingDocument.model_validate(doc) if doc else None


def list_bookings_for_event(dbclient, event_id, limit: int = 200) -> list[BookingDocument]:
    oid = to_object_id(event_id, "eventId", "event")
    cursor = dbclient.bookings.find({"eventId": oid}).sort("createdAt", DESCENDING).limit(limit)
    return [BookingDocument.model_validate(doc) for doc in cursor]


def count_bookings_for_event(dbclient, event_id) -> int:
    return dbclient.bookings.count_documents({"eventId": to_object_id(event_id, "eventId", "event")})
