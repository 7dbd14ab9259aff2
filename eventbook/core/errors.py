# eventbook/core/errors.py
"""Error types raised by the data layer."""

from enum import Enum


class ErrorCode(Enum):
    CONFIGURATION = "CONFIGURATION"
    VALIDATION = "VALIDATION"
    EVENT_REFERENCE = "EVENT_REFERENCE"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    SLUG_GENERATION = "SLUG_GENERATION"
    TRANSACTION = "TRANSACTION"


class DataLayerError(Exception):
    """Base error with a code and a message that is safe to show to users."""

    code = ErrorCode.TRANSACTION

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ConfigurationError(DataLayerError):
    """Required configuration is missing. Fatal at startup."""

    code = ErrorCode.CONFIGURATION


class ValidationError(DataLayerError):
    """One or more fields failed validation.

    ``errors`` maps each failing field to its message, e.g.
    ``{"title": "Title is required"}``.
    """

    code = ErrorCode.VALIDATION

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__("; ".join(self.errors.values()))

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls({field: message})


class EventReferenceError(DataLayerError):
    """A booking points at an event that does not exist."""

    code = ErrorCode.EVENT_REFERENCE

    def __init__(self, event_id) -> None:
        super().__init__(f"Event with ID {event_id} does not exist")
        self.event_id = event_id


class NotFoundError(DataLayerError):
    code = ErrorCode.NOT_FOUND

    def __init__(self, kind: str, ident) -> None:
        super().__init__(f"{kind} with ID {ident} does not exist")
        self.kind = kind
        self.ident = ident


class ConflictError(DataLayerError):
    """A uniqueness constraint rejected the write."""

    code = ErrorCode.CONFLICT

    def __init__(self, message: str, index_name: str | None = None) -> None:
        super().__init__(message)
        self.index_name = index_name


class SlugGenerationError(DataLayerError):
    code = ErrorCode.SLUG_GENERATION


class TransactionError(DataLayerError):
    """A transactional operation failed for a reason other than the above."""

    code = ErrorCode.TRANSACTION
