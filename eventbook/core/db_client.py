# eventbook/core/db_client.py
import logging
import threading
from concurrent.futures import Future

from pymongo import MongoClient

from .bookings import BOOKING_INDEXES
from .config import Settings, get_settings, require_mongodb_uri
from .events import EVENT_INDEXES

logger = logging.getLogger(__name__)


class DBClient:
    def __init__(self, uri, dbname, server_selection_timeout_ms=5000):
        self.client = MongoClient(uri, serverSelectionTimeoutMS=server_selection_timeout_ms, tz_aware=True)
        self.db = self.client[dbname]

    @property
    def events(self):
        return self.db["events"]

    @property
    def bookings(self):
        return self.db["bookings"]

    def ping(self):
        return self.client.admin.command("ping")

    def list_collections(self):
        return self.db.list_collection_names()

    def start_session(self):
        return self.client.start_session()

    def ensure_indexes(self):
        self.events.create_indexes(EVENT_INDEXES)
        self.bookings.create_indexes(BOOKING_INDEXES)
        logger.info("Indexes ensured for events and bookings")

    def close(self):
        self.client.close()


class ConnectionManager:
    """
    Hands out one shared DBClient per process.

    The first caller opens the connection; callers arriving while that
    attempt is in flight wait on the same Future and get the same client
    (or the same exception). A failed attempt is forgotten so the next
    call starts fresh.
    """

    def __init__(self, settings: Settings | None = None, client_factory=DBClient):
        self._settings = settings
        self._client_factory = client_factory
        self._lock = threading.Lock()
        self._client: DBClient | None = None
        self._pending: Future | None = None

    def get_connection(self) -> DBClient:
        client = self._client
        if client is not None:
            logger.debug("Reusing cached MongoDB connection")
            return client

        with self._lock:
            if self._client is not None:
                return self._client
            pending = self._pending
            owner = pending is None
            if owner:
                pending = self._pending = Future()

        if not owner:
            logger.debug("Waiting for in-flight MongoDB connection attempt")
            return pending.result()

        try:
            client = self._open()
        except BaseException as exc:
            with self._lock:
                self._pending = None
            pending.set_exception(exc)
            raise

        with self._lock:
            self._client = client
            self._pending = None
        pending.set_result(client)
        return client

    def _open(self) -> DBClient:
        settings = self._settings or get_settings()
        uri = require_mongodb_uri(settings)
        client = self._client_factory(
            uri,
            settings.MONGODB_DB_NAME,
            server_selection_timeout_ms=settings.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
        )
        try:
            client.ping()
            client.ensure_indexes()
        except Exception:
            logger.error("MongoDB connection failed", exc_info=True)
            client.close()
            raise
        logger.info(f"Connected to MongoDB database '{settings.MONGODB_DB_NAME}'")
        return client

    def close(self) -> None:
        """Close the shared client at process shutdown; the next call reconnects."""
        with self._lock:
            client, self._client = self._client, None
        if client is not None:
            client.close()


# Reuse the manager across importlib.reload so a reload never opens a second client
_manager = globals().get("_manager") or ConnectionManager()


def connect() -> DBClient:
    return _manager.get_connection()


def close_connection() -> None:
    _manager.close()
