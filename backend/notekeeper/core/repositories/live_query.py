from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from notekeeper.core.repositories.document_store import Collection

    # Full snapshot of the collection plus a per-subscription sequence number
    SnapshotCallback = Callable[[list[dict[str, Any]], int], Awaitable[None] | None]
    ErrorCallback = Callable[[Exception], Awaitable[None] | None]


class Subscription(ABC):
    """Handle returned by ``LiveQuery.subscribe``."""

    @abstractmethod
    async def unsubscribe(self) -> None:  # pragma: no cover - interface only
        """Stop further callbacks. Calling it twice is a no-op."""


class LiveQuery(ABC):
    """Push-based change feed over a user's records.

    Whenever any record in the watched set changes, the implementation
    invokes ``on_snapshot`` with the complete current set. Sequence numbers
    increase with each delivery so consumers can drop stale snapshots.
    """

    @abstractmethod
    async def subscribe(
        self,
        collection: Collection,
        user_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:  # pragma: no cover - interface only
        """Start watching and return a handle; raise ``StoreError`` if that fails."""
