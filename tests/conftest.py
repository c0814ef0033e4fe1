"""In-memory stand-ins for MongoDB, the geocoder HTTP session and the platform position source."""
import copy
from types import SimpleNamespace

import pytest
import requests
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import PyMongoError

from database import OrderStore


def _matches(doc, filter_dict):
    return all(doc.get(key) == value for key, value in (filter_dict or {}).items())


class FakeCursor:
    def __init__(self, docs):
        self.docs = docs

    def sort(self, key_or_list, direction=None):
        keys = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction or 1)]
        for key, order in reversed(keys):
            self.docs.sort(key=lambda d: d.get(key), reverse=order < 0)
        return self

    def limit(self, n):
        self.docs = self.docs[:n]
        return self

    def __iter__(self):
        return iter(self.docs)


class FakeCollection:
    def __init__(self):
        self.docs = []
        self.indexes = []
        self.fail_inserts = False

    def insert_one(self, doc, session=None):
        if self.fail_inserts:
            raise PyMongoError("insert rejected")
        doc.setdefault("_id", ObjectId())
        stored = copy.deepcopy(doc)
        if session is not None and session.in_transaction:
            session.pending.append((self, stored))
        else:
            self.docs.append(stored)
        return SimpleNamespace(inserted_id=doc["_id"])

    def find(self, filter_dict=None, projection=None):
        found = [copy.deepcopy(d) for d in self.docs if _matches(d, filter_dict)]
        if projection:
            keep = {k for k, v in projection.items() if v} | {"_id"}
            found = [{k: v for k, v in d.items() if k in keep} for d in found]
        return FakeCursor(found)

    def find_one(self, filter_dict=None):
        return next(iter(self.find(filter_dict)), None)

    def update_one(self, filter_dict, update):
        for doc in self.docs:
            if _matches(doc, filter_dict):
                doc.update(update.get("$set", {}))
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    def count_documents(self, filter_dict):
        return len([d for d in self.docs if _matches(d, filter_dict)])

    def create_index(self, keys):
        self.indexes.append(keys)
        return "_".join(f"{k}_{v}" for k, v in keys)


class FakeSession:
    def __init__(self):
        self.in_transaction = False
        self.pending = []
        self.committed = False
        self.aborted = False
        self.ended = False

    def start_transaction(self):
        self.in_transaction = True

    def commit_transaction(self):
        for collection, doc in self.pending:
            collection.docs.append(doc)
        self.pending = []
        self.in_transaction = False
        self.committed = True

    def abort_transaction(self):
        self.pending = []
        self.in_transaction = False
        self.aborted = True

    def end_session(self):
        self.ended = True


class FakeDatabase:
    name = "food_test"

    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())

    def list_collection_names(self):
        return list(self.collections)


class FakeMongoClient:
    def __init__(self):
        self.db = FakeDatabase()
        self.sessions = []

    def start_session(self):
        session = FakeSession()
        self.sessions.append(session)
        return session


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self.payload = payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.payload is None:
            raise ValueError("No JSON body")
        return self.payload


class FakeHTTPSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response


class PendingRequest:
    def __init__(self, on_success, on_error, options):
        self.on_success = on_success
        self.on_error = on_error
        self.options = options

    def succeed(self, position):
        self.on_success(position)

    def fail(self, error):
        self.on_error(error)


class FakePositionSource:
    """Records every request; tests complete them in any order"""

    def __init__(self):
        self.requests = []
        self.watches = {}
        self.cleared = []
        self._next_watch = 1

    def get_current_position(self, on_success, on_error, options):
        self.requests.append(PendingRequest(on_success, on_error, options))

    def watch_position(self, on_success, on_error, options):
        watch_id = self._next_watch
        self._next_watch += 1
        self.watches[watch_id] = PendingRequest(on_success, on_error, options)
        return watch_id

    def clear_watch(self, watch_id):
        self.cleared.append(watch_id)


@pytest.fixture
def mongo_client():
    return FakeMongoClient()


@pytest.fixture
def store(mongo_client):
    return OrderStore(mongo_client, mongo_client.db)


@pytest.fixture
def resolver_calls():
    return []


@pytest.fixture
def fake_resolver(resolver_calls):
    def resolve(lat, lng):
        resolver_calls.append((lat, lng))
        return f"Street near {lat:.3f}, {lng:.3f}"
    return resolve


@pytest.fixture
def api(store):
    from main import app, get_resolver, get_store

    class StaticResolver:
        def resolve(self, lat, lng):
            return "10 Tahrir St, Cairo, Egypt"

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_resolver] = StaticResolver
    yield TestClient(app)
    app.dependency_overrides.clear()
