# eventbook/core/logging_config.py
"""Structured JSON logging for the data layer."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .config import Settings, get_settings

# Extra attributes copied from log records into the JSON line when present
EXTRA_FIELDS = ("event_id", "booking_id", "slug")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = str(getattr(record, field))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def configure_logging(settings: Settings | None = None) -> None:
    """
    Install the JSON formatter on the root logger.

    Reads LOG_LEVEL from settings (default: INFO) and writes to stderr.
    Calling it again replaces the previous handlers.
    """
    settings = settings or get_settings()
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(JSONFormatter())
    root_logger.addHandler(console_handler)

    # pymongo is chatty at DEBUG (heartbeats, topology changes)
    logging.getLogger("pymongo").setLevel(max(log_level, logging.WARNING))

    root_logger.info(f"Logging configured: level={settings.LOG_LEVEL}, format=JSON")
