from __future__ import annotations

import asyncio
import inspect
import itertools
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from notekeeper.core.errors import StoreError
from notekeeper.core.repositories.implementations.supabase.document_store import (
    classify_error,
    table_for,
)
from notekeeper.core.repositories.live_query import LiveQuery, Subscription
from notekeeper.utils.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from supabase import AsyncClient

    from notekeeper.core.repositories.document_store import Collection
    from notekeeper.core.repositories.live_query import ErrorCallback, SnapshotCallback

_FAILED_STATES = {"CHANNEL_ERROR", "TIMED_OUT"}


async def _deliver(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class SupabaseSubscription(Subscription):
    """One realtime channel watching a user's rows in one table.

    Every change event triggers a full re-fetch of the user's rows, which is
    delivered as a new sequence-numbered snapshot.
    """

    def __init__(
        self,
        client: AsyncClient,
        table: str,
        user_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> None:
        self._client = client
        self._table = table
        self._user_id = user_id
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._sequence = itertools.count(1)
        self._tasks: set[asyncio.Task] = set()
        self._channel: Any = None
        self._closed = False

    async def start(self) -> None:
        channel = self._client.channel(f"{self._table}:{self._user_id}:{uuid4().hex[:8]}")
        channel.on_postgres_changes(
            "*",
            schema="public",
            table=self._table,
            filter=f"user_id=eq.{self._user_id}",
            callback=self._on_change,
        )
        self._channel = channel
        try:
            await channel.subscribe(self._on_status)
            await self._refresh()
        except Exception:
            # The caller never gets a handle, so nobody else can release it
            await self.unsubscribe()
            raise

    def _on_change(self, payload: dict[str, Any]) -> None:
        if self._closed:
            return
        logger.debug(
            "Change on %s",
            self._table,
            extra={"user_id": self._user_id, "event": payload.get("eventType") if isinstance(payload, dict) else None},
        )
        self._spawn(self._refresh())

    def _on_status(self, status: Any, err: Exception | None = None) -> None:
        state = str(getattr(status, "value", status))
        if state in _FAILED_STATES and not self._closed:
            failure = StoreError(f"Realtime channel for {self._table} {state.lower()}", transient=True)
            if err is not None:
                failure.__cause__ = err
            self._spawn(_deliver(self._on_error, failure))

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _refresh(self) -> None:
        # Numbered at fetch start so a slow, older fetch loses to a newer one
        sequence = next(self._sequence)
        try:
            resp = await (
                self._client.table(self._table)
                .select("*")
                .eq("user_id", self._user_id)
                .execute()
            )
        except Exception as err:
            if self._closed:
                return
            await _deliver(self._on_error, classify_error(err))
            return
        if self._closed:
            return
        await _deliver(self._on_snapshot, list(resp.data or []), sequence)

    async def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        for task in list(self._tasks):
            task.cancel()
        if self._channel is not None:
            try:
                await self._client.remove_channel(self._channel)
            except Exception as err:  # pragma: no cover - network errors
                logger.warning("Failed to remove realtime channel for %s: %s", self._table, err)


class SupabaseLiveQuery(LiveQuery):
    """Realtime change feed over Supabase ``postgres_changes``."""

    def __init__(self, client_factory: Callable[[], Awaitable[AsyncClient]]) -> None:
        self._client_factory = client_factory
        self._client: AsyncClient | None = None
        self._lock = asyncio.Lock()

    async def _get_client(self) -> AsyncClient:
        async with self._lock:
            if self._client is None:
                self._client = await self._client_factory()
            return self._client

    async def subscribe(
        self,
        collection: Collection,
        user_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        try:
            client = await self._get_client()
            subscription = SupabaseSubscription(
                client, table_for(collection), user_id, on_snapshot, on_error
            )
            await subscription.start()
        except StoreError:
            raise
        except Exception as err:
            raise classify_error(err) from err
        return subscription
