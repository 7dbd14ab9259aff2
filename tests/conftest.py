"""
Test configuration and fixtures.

The data layer is exercised against an in-memory stand-in for the small
slice of the pymongo API it uses: collections with unique indexes, and
sessions whose transactions record undo steps so an abort really rolls
writes back.
"""

import copy
import threading
from types import SimpleNamespace

import pytest
from bson import ObjectId
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from eventbook.core import db_client as db_client_module
from eventbook.core.db_client import DBClient


# ============================================================================
# In-memory MongoDB stand-in
# ============================================================================


def _matches(doc, filt):
    for key, cond in (filt or {}).items():
        if isinstance(cond, dict) and "$ne" in cond:
            if doc.get(key) == cond["$ne"]:
                return False
        elif doc.get(key) != cond:
            return False
    return True


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key, direction=ASCENDING):
        self._docs.sort(key=lambda d: d.get(key), reverse=direction != ASCENDING)
        return self

    def limit(self, n):
        self._docs = self._docs[:n]
        return self

    def __iter__(self):
        return iter(self._docs)


class FakeCollection:
    def __init__(self, name, lock):
        self.name = name
        self._lock = lock
        self._docs = {}
        self.unique_indexes = {"_id_": ("_id",)}
        self.index_names = ["_id_"]

    def create_indexes(self, models):
        names = []
        for model in models:
            spec = model.document
            keys = tuple(spec["key"].keys())
            if spec.get("unique"):
                self.unique_indexes[spec["name"]] = keys
            self.index_names.append(spec["name"])
            names.append(spec["name"])
        return names

    def _check_unique(self, doc, own_id=None):
        for name, keys in self.unique_indexes.items():
            value = tuple(doc.get(k) for k in keys)
            for other in self._docs.values():
                if other["_id"] == own_id:
                    continue
                if tuple(other.get(k) for k in keys) == value:
                    message = (
                        f"E11000 duplicate key error collection: test.{self.name} "
                        f"index: {name} dup key: {value}"
                    )
                    raise DuplicateKeyError(
                        message, 11000, {"errmsg": message, "keyPattern": dict.fromkeys(keys, 1)}
                    )

    def insert_one(self, doc, session=None):
        with self._lock:
            doc = copy.deepcopy(doc)
            doc.setdefault("_id", ObjectId())
            self._check_unique(doc)
            self._docs[doc["_id"]] = doc
            if session is not None:
                session.record(lambda: self._docs.pop(doc["_id"], None))
            return SimpleNamespace(inserted_id=doc["_id"], acknowledged=True)

    def find_one(self, filter=None, projection=None, session=None):
        with self._lock:
            for doc in self._docs.values():
                if _matches(doc, filter):
                    if projection:
                        return {k: doc[k] for k in projection if k in doc}
                    return copy.deepcopy(doc)
            return None

    def find(self, filter=None, session=None):
        with self._lock:
            return FakeCursor([copy.deepcopy(d) for d in self._docs.values() if _matches(d, filter)])

    def count_documents(self, filter, session=None):
        with self._lock:
            return sum(1 for d in self._docs.values() if _matches(d, filter))

    def update_one(self, filter, update, session=None):
        with self._lock:
            for key, doc in self._docs.items():
                if _matches(doc, filter):
                    updated = {**doc, **update.get("$set", {})}
                    self._check_unique(updated, own_id=key)
                    self._docs[key] = updated
                    if session is not None:
                        session.record(lambda k=key, old=doc: self._docs.__setitem__(k, old))
                    return SimpleNamespace(matched_count=1, modified_count=1)
            return SimpleNamespace(matched_count=0, modified_count=0)

    def delete_one(self, filter, session=None):
        with self._lock:
            for key, doc in list(self._docs.items()):
                if _matches(doc, filter):
                    del self._docs[key]
                    if session is not None:
                        session.record(lambda k=key, old=doc: self._docs.__setitem__(k, old))
                    return SimpleNamespace(deleted_count=1)
            return SimpleNamespace(deleted_count=0)


class FakeSession:
    def __init__(self, client):
        self._client = client
        self._undo = []
        self.in_transaction = False
        self.ended = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.end_session()

    def record(self, undo):
        if self.in_transaction:
            self._undo.append(undo)

    def start_transaction(self):
        self.in_transaction = True
        self._undo = []

    def commit_transaction(self):
        self.in_transaction = False
        self._undo = []
        self._client.commits += 1

    def abort_transaction(self):
        with self._client.lock:
            for undo in reversed(self._undo):
                undo()
        self._undo = []
        self.in_transaction = False
        self._client.aborts += 1

    def with_transaction(self, callback):
        self.start_transaction()
        try:
            result = callback(self)
        except Exception:
            self.abort_transaction()
            raise
        self.commit_transaction()
        return result

    def end_session(self):
        if self.in_transaction:
            self.abort_transaction()
        if not self.ended:
            self.ended = True
            self._client.ended_sessions += 1


class FakeDatabase:
    def __init__(self, lock):
        self._lock = lock
        self._collections = {}

    def __getitem__(self, name):
        if name not in self._collections:
            self._collections[name] = FakeCollection(name, self._lock)
        return self._collections[name]

    def list_collection_names(self):
        return list(self._collections)


class FakeMongoClient:
    def __init__(self, uri, **kwargs):
        self.uri = uri
        self.kwargs = kwargs
        self.lock = threading.RLock()
        self._databases = {}
        self.admin = SimpleNamespace(command=lambda name: {"ok": 1.0})
        self.commits = 0
        self.aborts = 0
        self.ended_sessions = 0
        self.closed = False

    def __getitem__(self, name):
        if name not in self._databases:
            self._databases[name] = FakeDatabase(self.lock)
        return self._databases[name]

    def start_session(self):
        return FakeSession(self)

    def close(self):
        self.closed = True


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def dbclient(monkeypatch):
    """DBClient backed by the in-memory stand-in, with indexes created."""
    monkeypatch.setattr(db_client_module, "MongoClient", FakeMongoClient)
    client = DBClient("mongodb://localhost:27017", "eventbook_test")
    client.ensure_indexes()
    return client


@pytest.fixture
def event_data():
    return {
        "title": "PyCon Berlin 2025",
        "description": "Three days of talks and sprints.",
        "overview": "The yearly Python conference.",
        "image": "https://example.com/pycon.png",
        "venue": "BCC",
        "location": "Berlin, Germany",
        "date": "2025-04-23",
        "time": "9:00 AM",
        "mode": "hybrid",
        "audience": "Developers",
        "agenda": ["Keynote", "Talks", "Sprints"],
        "organizer": "Python Software Verband",
        "tags": ["python", "conference"],
    }
