"""
Supabase Adapter Tests

The Supabase clients are replaced with mocks; these tests cover error
classification, row serialization, paging and the realtime refresh loop.
"""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from postgrest.exceptions import APIError

from notekeeper.core.errors import StoreError
from notekeeper.core.repositories.document_store import Collection
from notekeeper.core.repositories.implementations.supabase.blob_storage import SupabaseBlobStorage
from notekeeper.core.repositories.implementations.supabase.document_store import (
    SupabaseDocumentStore,
    classify_error,
    table_for,
    to_row,
)
from notekeeper.core.repositories.implementations.supabase.live_query import SupabaseLiveQuery


def test_classify_error():
    assert classify_error(APIError({"message": "timeout", "code": "57014"})).transient
    assert classify_error(APIError({"message": "schema cache", "code": "PGRST002"})).transient
    assert not classify_error(APIError({"message": "denied", "code": "42501"})).transient
    assert classify_error(httpx.ConnectError("down")).transient
    assert not classify_error(RuntimeError("odd")).transient

    original = StoreError("already classified", transient=True)
    assert classify_error(original) is original


def test_to_row_serializes_datetimes():
    when = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
    assert to_row({"updated_at": when, "title": "x"}) == {"updated_at": when.isoformat(), "title": "x"}


def test_table_names():
    assert table_for(Collection.NOTES) == "notes"
    assert table_for(Collection.TOPICS) == "topics"


def test_blob_path_for_url():
    storage = SupabaseBlobStorage(MagicMock(), bucket="note-media")
    url = "https://proj.supabase.co/storage/v1/object/public/note-media/u/n/abc-pic.png?"
    assert storage.path_for_url(url) == "u/n/abc-pic.png"
    assert storage.path_for_url("https://elsewhere.test/pic.png") is None


@pytest.mark.asyncio
async def test_create_returns_store_id_and_strips_id():
    client = MagicMock()
    insert = client.table.return_value.insert
    insert.return_value.execute.return_value = MagicMock(data=[{"id": 17}])
    store = SupabaseDocumentStore(client)

    record_id = await store.create(Collection.NOTES, {"id": "ignored", "title": "t"})

    assert record_id == "17"
    insert.assert_called_once_with({"title": "t"})


@pytest.mark.asyncio
async def test_update_never_rewrites_owner_or_id():
    client = MagicMock()
    store = SupabaseDocumentStore(client)

    await store.update(Collection.NOTES, "n1", {"id": "x", "user_id": "y", "pinned": True})

    client.table.return_value.update.assert_called_once_with({"pinned": True})
    client.table.return_value.update.return_value.eq.assert_called_once_with("id", "n1")


@pytest.mark.asyncio
async def test_fetch_all_pages_until_short_page():
    client = MagicMock()
    ranged = client.table.return_value.select.return_value.eq.return_value.order.return_value.range
    ranged.return_value.execute.side_effect = [
        MagicMock(data=[{"id": "1"}, {"id": "2"}]),
        MagicMock(data=[{"id": "3"}]),
    ]
    store = SupabaseDocumentStore(client)
    store.PAGE_SIZE = 2

    rows = await store.fetch_all(Collection.NOTES, "u1")

    assert [r["id"] for r in rows] == ["1", "2", "3"]
    assert [c.args for c in ranged.call_args_list] == [(0, 1), (2, 3)]


@pytest.mark.asyncio
async def test_store_errors_are_classified():
    client = MagicMock()
    client.table.return_value.delete.return_value.eq.return_value.execute.side_effect = APIError(
        {"message": "denied", "code": "42501"}
    )
    store = SupabaseDocumentStore(client)

    with pytest.raises(StoreError) as excinfo:
        await store.delete(Collection.NOTES, "n1")
    assert not excinfo.value.transient


def _realtime_client(rows):
    client = MagicMock()
    channel = MagicMock()
    channel.subscribe = AsyncMock()
    client.channel.return_value = channel
    client.remove_channel = AsyncMock()
    client.table.return_value.select.return_value.eq.return_value.execute = AsyncMock(
        side_effect=lambda: MagicMock(data=list(rows))
    )
    return client, channel


@pytest.mark.asyncio
async def test_live_query_delivers_numbered_snapshots():
    rows = [{"id": "n1"}]
    client, channel = _realtime_client(rows)
    live = SupabaseLiveQuery(AsyncMock(return_value=client))
    snapshots = []
    errors = []

    sub = await live.subscribe(Collection.NOTES, "u1", lambda r, seq: snapshots.append((r, seq)), errors.append)
    assert snapshots == [([{"id": "n1"}], 1)]
    assert channel.on_postgres_changes.call_args.kwargs["filter"] == "user_id=eq.u1"

    rows.append({"id": "n2"})
    on_change = channel.on_postgres_changes.call_args.kwargs["callback"]
    on_change({"eventType": "INSERT"})
    for _ in range(5):
        await asyncio.sleep(0)
    assert snapshots[-1] == ([{"id": "n1"}, {"id": "n2"}], 2)

    on_status = channel.subscribe.call_args.args[0]
    on_status("CHANNEL_ERROR")
    for _ in range(5):
        await asyncio.sleep(0)
    assert len(errors) == 1
    assert errors[0].transient

    await sub.unsubscribe()
    await sub.unsubscribe()
    client.remove_channel.assert_awaited_once_with(channel)

    on_change({"eventType": "UPDATE"})
    for _ in range(5):
        await asyncio.sleep(0)
    assert len(snapshots) == 2


@pytest.mark.asyncio
async def test_live_query_subscribe_failure_raises_store_error():
    live = SupabaseLiveQuery(AsyncMock(side_effect=httpx.ConnectError("down")))
    with pytest.raises(StoreError) as excinfo:
        await live.subscribe(Collection.TOPICS, "u1", lambda r, s: None, lambda e: None)
    assert excinfo.value.transient


@pytest.mark.asyncio
async def test_live_query_removes_channel_when_subscribe_fails():
    client, channel = _realtime_client([])
    channel.subscribe.side_effect = httpx.ConnectError("socket closed")
    live = SupabaseLiveQuery(AsyncMock(return_value=client))

    with pytest.raises(StoreError) as excinfo:
        await live.subscribe(Collection.NOTES, "u1", lambda r, s: None, lambda e: None)

    assert excinfo.value.transient
    client.remove_channel.assert_awaited_once_with(channel)
