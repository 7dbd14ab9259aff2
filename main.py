# main.py (project root)
# Startup check: validate config, open the shared connection, create indexes.
import logging
import sys

from pymongo.errors import PyMongoError

from eventbook.core.config import get_settings, require_mongodb_uri
from eventbook.core.db_client import close_connection, connect
from eventbook.core.errors import ConfigurationError
from eventbook.core.logging_config import configure_logging

logger = logging.getLogger("eventbook")


def main():
    settings = get_settings()
    configure_logging(settings)

    try:
        require_mongodb_uri(settings)
    except ConfigurationError as exc:
        logger.error(exc.message)
        return 1

    try:
        db = connect()
    except PyMongoError as exc:
        logger.error(f"Could not connect to MongoDB: {exc}")
        return 2

    try:
        logger.info(f"Collections: {', '.join(sorted(db.list_collections())) or '(none)'}")
    finally:
        close_connection()
    return 0


if __name__ == "__main__":
    sys.exit(main())
