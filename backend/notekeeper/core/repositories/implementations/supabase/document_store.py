from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx
from postgrest.exceptions import APIError

from notekeeper.config import settings
from notekeeper.core.errors import StoreError
from notekeeper.core.repositories.document_store import Collection, DocumentStore
from notekeeper.utils.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from supabase import Client

# PostgREST codes that mean "try again": connection/schema-cache trouble and
# statement timeouts
_TRANSIENT_CODES = {"PGRST000", "PGRST001", "PGRST002", "57014", "40001", "40P01"}


def table_for(collection: Collection) -> str:
    return {
        Collection.NOTES: settings.notes_table,
        Collection.TOPICS: settings.topics_table,
        Collection.CALENDAR_EVENTS: settings.calendar_events_table,
    }[collection]


def to_row(record: Mapping[str, Any]) -> dict[str, Any]:
    """Make a record JSON-serializable for PostgREST."""
    row: dict[str, Any] = {}
    for key, value in record.items():
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Collection):
            value = value.value
        row[key] = value
    return row


def classify_error(err: Exception) -> StoreError:
    """Translate a client exception into a transient or permanent StoreError."""
    if isinstance(err, StoreError):
        return err
    if isinstance(err, APIError):
        code = str(getattr(err, "code", "") or "")
        transient = code in _TRANSIENT_CODES or code.startswith("5")
        return StoreError(f"Store rejected request ({code or 'unknown'}): {err.message}", transient=transient)
    if isinstance(err, httpx.TransportError):
        return StoreError(f"Store unreachable: {type(err).__name__}", transient=True)
    return StoreError(f"Unexpected store failure: {err}", transient=False)


class SupabaseDocumentStore(DocumentStore):
    """Supabase implementation of the DocumentStore.

    Uses Supabase's PostgREST client for CRUD against one table per
    collection. Every table has an ``id`` uuid primary key with a database
    default and a ``user_id`` owner column.
    """

    PAGE_SIZE = 1000

    def __init__(self, client: Client) -> None:
        self._client: Client = client

    async def create(self, collection: Collection, record: Mapping[str, Any]) -> str:
        row = to_row(record)
        row.pop("id", None)
        resp = await self._run(
            lambda: self._client.table(table_for(collection))
            .insert(row)
            .execute()
        )
        created = self._first(resp.data)
        record_id = created.get("id")
        if not record_id:
            raise StoreError(f"Insert into {collection.value} returned no id", transient=False)
        return str(record_id)

    async def update(self, collection: Collection, record_id: str, changes: Mapping[str, Any]) -> None:
        # id and owner are never rewritten
        sanitized = {k: v for k, v in to_row(changes).items() if k not in {"id", "user_id", "created_at"}}
        if not sanitized:
            return
        await self._run(
            lambda: self._client.table(table_for(collection))
            .update(sanitized)
            .eq("id", record_id)
            .execute()
        )

    async def delete(self, collection: Collection, record_id: str) -> None:
        await self._run(
            lambda: self._client.table(table_for(collection))
            .delete()
            .eq("id", record_id)
            .execute()
        )

    async def get(self, collection: Collection, record_id: str) -> dict[str, Any] | None:
        resp = await self._run(
            lambda: self._client.table(table_for(collection))
            .select("*")
            .eq("id", record_id)
            .limit(1)
            .execute()
        )
        items = resp.data or []
        return items[0] if items else None

    async def fetch_all(
        self,
        collection: Collection,
        user_id: str,
        where: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            def _fetch_page(start: int = offset) -> Any:
                q = self._client.table(table_for(collection)).select("*").eq("user_id", user_id)
                for column, value in (where or {}).items():
                    q = q.eq(column, value)
                return q.order("id").range(start, start + self.PAGE_SIZE - 1).execute()

            resp = await self._run(_fetch_page)
            page: list[dict[str, Any]] = resp.data or []
            rows.extend(page)
            if len(page) < self.PAGE_SIZE:
                break
            offset += self.PAGE_SIZE
        return rows

    @staticmethod
    async def _run(func: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(func)
        except (APIError, httpx.TransportError) as err:
            store_err = classify_error(err)
            logger.warning("Store request failed (%s): %s", store_err.kind, store_err)
            raise store_err from err

    @staticmethod
    def _first(data: Any) -> dict[str, Any]:
        if isinstance(data, list) and data:
            return data[0]
        if isinstance(data, dict):
            return data
        return {}
