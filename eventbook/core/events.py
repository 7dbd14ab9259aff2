# eventbook/core/events.py
"""
Event documents: schema, slug generation and the plain (non-transactional)
create/read/update/delete helpers.
"""

import logging
from typing import Any, Mapping

from bson import ObjectId
from pydantic import ValidationInfo, field_validator
from pymongo import ASCENDING, DESCENDING, IndexModel
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from .documents import MongoDocument, duplicate_index_name, to_object_id, utcnow
from .errors import NotFoundError, SlugGenerationError, ValidationError
from .normalizers import normalize_date, normalize_time, slugify

logger = logging.getLogger(__name__)

EVENT_MODES = ("online", "offline", "hybrid")
MAX_SLUG_ATTEMPTS = 100
SLUG_INDEX = "uniq_slug"

EVENT_INDEXES = [
    IndexModel([("slug", ASCENDING)], unique=True, name=SLUG_INDEX),
    IndexModel([("date", ASCENDING), ("mode", ASCENDING)]),
]

REQUIRED_MESSAGES = {
    "title": "Title is required",
    "description": "Description is required",
    "overview": "Overview is required",
    "image": "Image URL is required",
    "venue": "Venue is required",
    "location": "Location is required",
    "date": "Date is required",
    "time": "Time is required",
    "mode": "Mode is required",
    "audience": "Audience is required",
    "agenda": "Agenda is required",
    "organizer": "Organizer is required",
    "tags": "Tags are required",
}

# field -> (label, limit)
MAX_LENGTHS = {
    "title": ("Title", 100),
    "description": ("Description", 1000),
    "overview": ("Overview", 500),
}

# Fields a caller may set; slug and timestamps are derived
EDITABLE_FIELDS = tuple(REQUIRED_MESSAGES)


class EventDocument(MongoDocument):
    title: str | None = None
    slug: str | None = None
    description: str | None = None
    overview: str | None = None
    image: str | None = None
    venue: str | None = None
    location: str | None = None
    date: str | None = None
    time: str | None = None
    mode: str | None = None
    audience: str | None = None
    agenda: list[str] | None = None
    organizer: str | None = None
    tags: list[str] | None = None

    @field_validator(
        "title", "description", "overview", "image", "venue",
        "location", "audience", "organizer", mode="before",
    )
    @classmethod
    def _trimmed_required(cls, value: Any, info: ValidationInfo) -> Any:
        if isinstance(value, str):
            value = value.strip()
        if value is None or value == "":
            raise ValueError(REQUIRED_MESSAGES[info.field_name])
        if info.field_name in MAX_LENGTHS and isinstance(value, str):
            label, limit = MAX_LENGTHS[info.field_name]
            if len(value) > limit:
                raise ValueError(f"{label} cannot exceed {limit} characters")
        return value

    @field_validator("date", "time", mode="before")
    @classmethod
    def _required(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None or value == "":
            raise ValueError(REQUIRED_MESSAGES[info.field_name])
        return value

    @field_validator("mode", mode="before")
    @classmethod
    def _check_mode(cls, value: Any) -> Any:
        if value is None or value == "":
            raise ValueError(REQUIRED_MESSAGES["mode"])
        if value not in EVENT_MODES:
            raise ValueError("Mode must be either online, offline, or hybrid")
        return value

    @field_validator("agenda", "tags", mode="before")
    @classmethod
    def _non_empty_list(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            raise ValueError(REQUIRED_MESSAGES[info.field_name])
        if isinstance(value, (list, tuple)) and not value:
            item = "agenda item" if info.field_name == "agenda" else "tag"
            raise ValueError(f"At least one {item} is required")
        return value

    @field_validator("slug")
    @classmethod
    def _lower_slug(cls, value: str | None) -> str | None:
        return value.strip().lower() if value is not None else None


def unique_slug(collection: Collection, title: str, exclude_id: ObjectId | None = None) -> str:
    """
    Slug for ``title`` that no other event holds.

    Tries the base slug, then base-1, base-2, ... up to MAX_SLUG_ATTEMPTS
    lookups. ``exclude_id`` is the event being renamed, so it never collides
    with itself. This is check-then-act; the unique index is the real guard.
    """
    base_slug = slugify(title)
    if not base_slug:
        raise ValidationError.for_field("title", "Title must contain at least one letter or digit")

    slug = base_slug
    counter = 1
    for _attempt in range(MAX_SLUG_ATTEMPTS):
        query: dict[str, Any] = {"slug": slug}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        try:
            existing = collection.find_one(query, {"_id": 1})
        except PyMongoError as exc:
            raise SlugGenerationError(f"Failed to generate unique slug: {exc}") from exc

        if existing is None:
            return slug

        logger.debug(f"Slug collision on '{slug}'", extra={"slug": slug})
        slug = f"{base_slug}-{counter}"
        counter += 1

    logger.warning(
        f"Unable to generate unique slug after {MAX_SLUG_ATTEMPTS} attempts",
        extra={"slug": base_slug},
    )
    raise SlugGenerationError(f"Unable to generate unique slug after {MAX_SLUG_ATTEMPTS} attempts")


def _slug_taken(exc: DuplicateKeyError, slug: str | None) -> SlugGenerationError:
    index_name = duplicate_index_name(exc)
    logger.warning(f"Unique index {index_name} rejected slug '{slug}'", extra={"slug": slug})
    return SlugGenerationError(f"Slug '{slug}' was taken by another event, please retry")


def create_event(dbclient, data: Mapping[str, Any]) -> EventDocument:
    event = EventDocument.parse({k: v for k, v in data.items() if k in EDITABLE_FIELDS})
    event.slug = unique_slug(dbclient.events, event.title)
    event.date = normalize_date(event.date)
    event.time = normalize_time(event.time)
    event.created_at = event.updated_at = utcnow()

    try:
        result = dbclient.events.insert_one(event.to_document())
    except DuplicateKeyError as exc:
        raise _slug_taken(exc, event.slug) from exc

    event.id = result.inserted_id
    logger.info("Event created", extra={"event_id": event.id, "slug": event.slug})
    return event


def update_event(dbclient, event_id, changes: Mapping[str, Any]) -> EventDocument:
    """
    Apply ``changes`` to an event and persist only what actually changed.

    The slug is regenerated only when the title changes; date and time are
    renormalized only when they change.
    """
    oid = to_object_id(event_id, "id", "event")
    current = dbclient.events.find_one({"_id": oid})
    if current is None:
        raise NotFoundError("Event", event_id)

    updates = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
    event = EventDocument.parse({**current, **updates})
    changed = {f for f in EDITABLE_FIELDS if getattr(event, f) != current.get(f)}
    if not changed:
        return event

    if "title" in changed:
        event.slug = unique_slug(dbclient.events, event.title, exclude_id=oid)
        changed.add("slug")
    if "date" in changed:
        event.date = normalize_date(event.date)
    if "time" in changed:
        event.time = normalize_time(event.time)
    event.updated_at = utcnow()

    doc = event.to_document()
    fields = {f: doc[f] for f in changed}
    fields["updatedAt"] = doc["updatedAt"]
    try:
        result = dbclient.events.update_one({"_id": oid}, {"$set": fields})
    except DuplicateKeyError as exc:
        raise _slug_taken(exc, event.slug) from exc
    if result.matched_count == 0:
        raise NotFoundError("Event", event_id)

    logger.info(f"Event updated: {sorted(changed)}", extra={"event_id": oid})
    return event


def get_event(dbclient, event_id) -> EventDocument | None:
    doc = dbclient.events.find_one({"_id": to_object_id(event_id, "id", "event")})
    return EventDocument.model_validate(doc) if doc else None


def get_event_by_slug(dbclient, slug: str) -> EventDocument | None:
    doc = dbclient.events.find_one({"slug": slug.strip().lower()})
    return EventDocument.model_validate(doc) if doc else None


def list_events(dbclient, mode: str | None = None, limit: int = 200) -> list[EventDocument]:
    """Newest first, optionally filtered by mode."""
    filt = {"mode": mode} if mode else {}
    cursor = dbclient.events.find(filt).sort("createdAt", DESCENDING).limit(limit)
    return [EventDocument.model_validate(doc) for doc in cursor]


def delete_event(dbclient, event_id) -> bool:
    # Hard delete; bookings are not cascaded
    result = dbclient.events.delete_one({"_id": to_object_id(event_id, "id", "event")})
    return result.deleted_count == 1
