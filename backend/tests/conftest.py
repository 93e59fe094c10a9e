"""
Pytest configuration and shared fixtures.

Settings are read at import time, so the Supabase credentials must be in
the environment before anything from ``notekeeper`` is imported. The
fakes below stand in for the document store, the live change feed and
blob storage so the suite runs without network access.
"""

import os

_test_env = {
    "APP_SUPABASE_URL": "http://localhost:54321",
    "APP_SUPABASE_ANON_KEY": "test-anon-key",
    "APP_SUPABASE_SERVICE_ROLE_KEY": "test-service-role-key",
}
for _key, _value in _test_env.items():
    os.environ.setdefault(_key, _value)

# ---------------------------------------------------------------------------
# Imports (safe now that env vars are set)
# ---------------------------------------------------------------------------
import copy  # noqa: E402
import itertools  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402

from notekeeper.core.errors import StoreError  # noqa: E402
from notekeeper.core.models.note import Note  # noqa: E402
from notekeeper.core.models.topic import NO_TOPIC, VOICE_NOTES, Topic  # noqa: E402
from notekeeper.core.repositories.blob_storage import BlobStorage  # noqa: E402
from notekeeper.core.repositories.document_store import Collection, DocumentStore  # noqa: E402
from notekeeper.core.repositories.live_query import LiveQuery, Subscription  # noqa: E402

USER_ID = "user-1"
OTHER_USER_ID = "user-2"
BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store; pushes to every attached live query after each write.

    ``failures`` maps ``(operation, collection)`` or
    ``(operation, collection, record_id)`` to the StoreError to raise.
    """

    def __init__(self) -> None:
        self.tables: dict[Collection, dict[str, dict[str, Any]]] = {c: {} for c in Collection}
        self.failures: dict[tuple, StoreError] = {}
        self.calls: list[tuple] = []
        self.feeds: list[FakeLiveQuery] = []
        self._ids = itertools.count(1)

    def seed(self, collection: Collection, row: dict[str, Any]) -> str:
        row = dict(row)
        row.setdefault("id", f"{collection.value}-{next(self._ids)}")
        self.tables[collection][row["id"]] = row
        return row["id"]

    def _check(self, operation: str, collection: Collection, record_id: str | None = None) -> None:
        self.calls.append((operation, collection, record_id))
        err = self.failures.get((operation, collection, record_id)) or self.failures.get((operation, collection))
        if err is not None:
            raise err

    async def _notify(self, collection: Collection, user_id: str | None) -> None:
        if user_id is None:
            return
        for feed in list(self.feeds):
            await feed.push(collection, user_id)

    async def create(self, collection, record):
        self._check("create", collection)
        record_id = f"{collection.value}-{next(self._ids)}"
        self.tables[collection][record_id] = {**copy.deepcopy(dict(record)), "id": record_id}
        await self._notify(collection, record.get("user_id"))
        return record_id

    async def update(self, collection, record_id, changes):
        self._check("update", collection, record_id)
        row = self.tables[collection].get(record_id)
        if row is None:
            raise StoreError(f"No {collection.value} record {record_id}", transient=False)
        row.update(copy.deepcopy(dict(changes)))
        await self._notify(collection, row.get("user_id"))

    async def delete(self, collection, record_id):
        self._check("delete", collection, record_id)
        row = self.tables[collection].pop(record_id, None)
        await self._notify(collection, row.get("user_id") if row else None)

    async def get(self, collection, record_id):
        self._check("get", collection, record_id)
        row = self.tables[collection].get(record_id)
        return copy.deepcopy(row) if row else None

    async def fetch_all(self, collection, user_id, where=None):
        self._check("fetch_all", collection)
        return [
            copy.deepcopy(row)
            for row in self.tables[collection].values()
            if row.get("user_id") == user_id
            and all(row.get(k) == v for k, v in (where or {}).items())
        ]

    def rows(self, collection: Collection, user_id: str = USER_ID) -> list[dict[str, Any]]:
        return [r for r in self.tables[collection].values() if r.get("user_id") == user_id]


class FakeSubscription(Subscription):
    def __init__(self, live: "FakeLiveQuery", collection, user_id, on_snapshot, on_error) -> None:
        self.live = live
        self.collection = collection
        self.user_id = user_id
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.sequence = 0
        self.active = True
        self.unsubscribe_calls = 0

    async def deliver(self, rows: list[dict[str, Any]], sequence: int | None = None) -> None:
        if sequence is None:
            self.sequence += 1
            sequence = self.sequence
        result = self.on_snapshot(copy.deepcopy(rows), sequence)
        if result is not None:
            await result

    async def unsubscribe(self) -> None:
        self.unsubscribe_calls += 1
        self.active = False


class FakeLiveQuery(LiveQuery):
    """Delivers full snapshots from the backing store, or by hand."""

    def __init__(self, store: InMemoryDocumentStore | None = None, *, initial_snapshot: bool = True) -> None:
        self.store = store
        if store is not None:
            store.feeds.append(self)
        self.initial_snapshot = initial_snapshot
        self.subscriptions: list[FakeSubscription] = []
        self.subscribe_failures: dict[Collection, StoreError] = {}

    async def subscribe(self, collection, user_id, on_snapshot, on_error):
        err = self.subscribe_failures.get(collection)
        if err is not None:
            raise err
        sub = FakeSubscription(self, collection, user_id, on_snapshot, on_error)
        self.subscriptions.append(sub)
        if self.initial_snapshot and self.store is not None:
            await sub.deliver(self.store.rows(collection, user_id))
        return sub

    def active(self, collection: Collection) -> list[FakeSubscription]:
        return [s for s in self.subscriptions if s.active and s.collection is collection]

    def latest(self, collection: Collection) -> FakeSubscription:
        return [s for s in self.subscriptions if s.collection is collection][-1]

    async def push(self, collection: Collection, user_id: str) -> None:
        if self.store is None:
            return
        for sub in self.active(collection):
            if sub.user_id == user_id:
                await sub.deliver(self.store.rows(collection, user_id))


class InMemoryBlobStorage(BlobStorage):
    BASE_URL = "https://blobs.test/object/public/note-media/"

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.fail_upload: StoreError | None = None
        self.fail_delete: StoreError | None = None

    async def upload(self, path, data, content_type):
        if self.fail_upload is not None:
            raise self.fail_upload
        self.objects[path] = data
        return self.BASE_URL + path

    async def delete(self, path):
        if self.fail_delete is not None:
            raise self.fail_delete
        self.objects.pop(path, None)

    def path_for_url(self, url):
        if not url.startswith(self.BASE_URL):
            return None
        return url[len(self.BASE_URL):]


def make_note(**overrides: Any) -> Note:
    data: dict[str, Any] = {
        "id": "note-1",
        "user_id": USER_ID,
        "topic_id": "topic-no",
        "title": "Groceries",
        "content": "",
        "created_at": BASE_TIME,
        "updated_at": BASE_TIME,
    }
    data.update(overrides)
    return Note.model_validate(data)


def make_topic(**overrides: Any) -> Topic:
    data: dict[str, Any] = {"id": "topic-1", "user_id": USER_ID, "name": "Work"}
    data.update(overrides)
    return Topic.model_validate(data)


def default_topic_rows(user_id: str = USER_ID) -> list[dict[str, Any]]:
    return [
        {"id": "topic-no", "user_id": user_id, "name": NO_TOPIC, "is_default": True, "order": 1000, "color": "bg-gray-200"},
        {"id": "topic-voice", "user_id": user_id, "name": VOICE_NOTES, "is_default": True, "order": 1001, "color": "bg-purple-200"},
    ]


def minutes(n: int) -> datetime:
    return BASE_TIME + timedelta(minutes=n)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def seeded_store(store: InMemoryDocumentStore) -> InMemoryDocumentStore:
    """Store holding the two default topics for USER_ID."""
    for row in default_topic_rows():
        store.seed(Collection.TOPICS, row)
    return store


@pytest.fixture
def blobs() -> InMemoryBlobStorage:
    return InMemoryBlobStorage()
