# eventbook/core/documents.py
"""
Shared base for the pydantic models that describe stored documents.

Models use snake_case attributes with the camelCase Mongo field names as
aliases, so ``model_dump(by_alias=True)`` is exactly what gets written.
"""

import re
from datetime import datetime, timezone
from typing import Any, Mapping

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import DuplicateKeyError

from .errors import ValidationError

_DUP_INDEX_RE = re.compile(r"index: (\S+) dup key")


def utcnow() -> datetime:
    # BSON dates have millisecond precision; truncate so returned models match stored ones
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def to_object_id(value: Any, field: str, label: str) -> ObjectId:
    """Parse an identifier, raising ValidationError("Invalid <label> ID format") on failure."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError) as exc:
        raise ValidationError.for_field(field, f"Invalid {label} ID format") from exc


def duplicate_index_name(exc: DuplicateKeyError) -> str | None:
    details = exc.details or {}
    match = _DUP_INDEX_RE.search(details.get("errmsg") or str(exc))
    return match.group(1) if match else None


def from_pydantic_error(exc: PydanticValidationError, model: type[BaseModel]) -> ValidationError:
    """Collapse pydantic's error list into one message per stored field name."""
    errors: dict[str, str] = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err["loc"] else "document"
        # pydantic reports defaults by attribute name and inputs by alias
        if field in model.model_fields:
            field = model.model_fields[field].alias or field
        if err["type"] == "value_error":
            # our validators raise ValueError with the user-facing message
            message = str(err["ctx"]["error"])
        else:
            message = err["msg"]
        errors.setdefault(field, message)
    return ValidationError(errors)


class MongoDocument(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        validate_default=True,
        extra="ignore",
    )

    id: ObjectId | None = Field(default=None, alias="_id")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    @classmethod
    def parse(cls, data: Mapping[str, Any]):
        try:
            return cls.model_validate(dict(data))
        except PydanticValidationError as exc:
            raise from_pydantic_error(exc, cls) from None

    def to_document(self) -> dict[str, Any]:
        doc = self.model_dump(by_alias=True)
        if doc.get("_id") is None:
            doc.pop("_id", None)
        return doc
