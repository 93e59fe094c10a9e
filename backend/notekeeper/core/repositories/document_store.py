from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping


class Collection(str, Enum):
    """Logical collections the core reads and writes."""

    NOTES = "notes"
    TOPICS = "topics"
    CALENDAR_EVENTS = "calendar_events"


class DocumentStore(ABC):
    """Abstract document store used by the mutation gateway.

    Records are plain dicts keyed by column name; ids are opaque strings
    assigned by the store. Implementations perform network I/O, expose async
    methods, and raise ``StoreError`` on failure.
    """

    @abstractmethod
    async def create(self, collection: Collection, record: Mapping[str, Any]) -> str:  # pragma: no cover - interface only
        """Insert a record and return its store-assigned id."""

    @abstractmethod
    async def update(self, collection: Collection, record_id: str, changes: Mapping[str, Any]) -> None:  # pragma: no cover
        """Apply a partial update to a single record in one request."""

    @abstractmethod
    async def delete(self, collection: Collection, record_id: str) -> None:  # pragma: no cover
        """Remove a record permanently."""

    @abstractmethod
    async def get(self, collection: Collection, record_id: str) -> dict[str, Any] | None:  # pragma: no cover
        """Fetch a record by id, or None if missing."""

    @abstractmethod
    async def fetch_all(
        self,
        collection: Collection,
        user_id: str,
        where: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:  # pragma: no cover
        """Return every record owned by ``user_id`` matching the equality filters."""
