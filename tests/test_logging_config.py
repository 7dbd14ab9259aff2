"""Tests for the JSON log formatter."""

import json
import logging

from bson import ObjectId

from eventbook.core.logging_config import JSONFormatter


def _record(**extra):
    record = logging.LogRecord("eventbook.core.services", logging.INFO, __file__, 1, "Booking created", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formats_basic_fields():
    data = json.loads(JSONFormatter().format(_record()))
    assert data["level"] == "INFO"
    assert data["logger"] == "eventbook.core.services"
    assert data["message"] == "Booking created"
    assert "timestamp" in data


def test_includes_known_extra_fields_as_strings():
    booking_id = ObjectId()
    data = json.loads(JSONFormatter().format(_record(booking_id=booking_id, unrelated="x")))
    assert data["booking_id"] == str(booking_id)
    assert "unrelated" not in data
