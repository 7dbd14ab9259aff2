# eventbook/core/normalizers.py
# Pure helpers that turn user input into the canonical stored form.
import re
from datetime import datetime, timezone

from dateutil.parser import ParserError, parse as parse_datetime

from .errors import ValidationError

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?:\s*(AM|PM))?$", re.IGNORECASE)

INVALID_DATE = "Invalid date format"
INVALID_TIME_FORMAT = "Invalid time format. Use HH:MM or HH:MM AM/PM"
INVALID_TIME_VALUES = "Invalid time values"

# Missing month or day in partial input ("2024", "February 2024") become January / the 1st
PARTIAL_DATE_DEFAULT = datetime(2000, 1, 1)


def slugify(title: str) -> str:
    """URL-friendly form of a title: lowercase ascii letters, digits and single hyphens."""
    slug = title.lower().strip()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)  # drop special characters
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def normalize_date(value: str) -> str:
    """
    Return the date as YYYY-MM-DD.

    Canonical input is checked for calendar validity (2024-02-30 is rejected);
    anything else goes through dateutil. Timezone-aware input is converted to
    UTC before the date part is taken.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError.for_field("date", INVALID_DATE)
    value = value.strip()

    if ISO_DATE_RE.match(value):
        try:
            datetime.strptime(value, "%Y-%m-%d")
        except ValueError as exc:
            raise ValidationError.for_field("date", INVALID_DATE) from exc
        return value

    try:
        parsed = parse_datetime(value, default=PARTIAL_DATE_DEFAULT)
    except (ParserError, ValueError, OverflowError) as exc:
        raise ValidationError.for_field("date", INVALID_DATE) from exc

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date().isoformat()


def normalize_time(value: str) -> str:
    """
    Return the time as zero-padded 24-hour HH:MM.

    Accepts H:MM / HH:MM and the same followed by AM or PM (any case).
    With a meridiem the hour must be 1-12, so "13:00 AM" is rejected.
    """
    if not isinstance(value, str):
        raise ValidationError.for_field("time", INVALID_TIME_FORMAT)
    match = TIME_RE.match(value.strip())
    if not match:
        raise ValidationError.for_field("time", INVALID_TIME_FORMAT)

    hours = int(match.group(1))
    minutes = int(match.group(2))
    period = match.group(3)

    if period:
        if not 1 <= hours <= 12:
            raise ValidationError.for_field("time", INVALID_TIME_VALUES)
        period = period.upper()
        if period == "PM" and hours != 12:
            hours += 12
        elif period == "AM" and hours == 12:
            hours = 0

    if hours > 23 or minutes > 59:
        raise ValidationError.for_field("time", INVALID_TIME_VALUES)

    return f"{hours:02d}:{minutes:02d}"
