from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from notekeeper.core.services.note_gateway import MutationGateway
from notekeeper.core.services.sync_service import NoteSyncService
from notekeeper.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from notekeeper.core.repositories.blob_storage import BlobStorage
    from notekeeper.core.repositories.document_store import DocumentStore
    from notekeeper.core.repositories.live_query import LiveQuery

logger = get_logger(__name__)


class NoteSession:
    """One signed-in user's sync core wired to a mutation gateway."""

    def __init__(
        self,
        user_id: str,
        store: DocumentStore,
        live_query: LiveQuery,
        blobs: BlobStorage | None = None,
    ) -> None:
        self.user_id = user_id
        self.sync = NoteSyncService(user_id, live_query)
        self.gateway = MutationGateway(store, blobs=blobs, sync=self.sync)
        self.sync.provision_defaults = self.gateway.provision_default_topics

    async def start(self) -> None:
        await self.sync.start()

    async def close(self) -> None:
        await self.sync.close()


class SessionRegistry:
    """Per-user sessions, started on first use and closed on sign-out."""

    def __init__(self, session_factory: Callable[[str], NoteSession]) -> None:
        self._session_factory = session_factory
        self._sessions: dict[str, NoteSession] = {}
        self._lock = asyncio.Lock()

    async def get(self, user_id: str) -> NoteSession:
        async with self._lock:
            session = self._sessions.get(user_id)
            if session is None or session.sync.closed:
                session = self._session_factory(user_id)
                self._sessions[user_id] = session
                logger.info("Starting sync session", extra={"user_id": user_id})
                await session.start()
            return session

    async def close(self, user_id: str) -> bool:
        async with self._lock:
            session = self._sessions.pop(user_id, None)
        if session is None:
            return False
        await session.close()
        return True

    async def close_all(self) -> None:
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        await asyncio.gather(*(s.close() for s in sessions), return_exceptions=True)
        logger.info("Closed %d sync sessions", len(sessions))

    def __len__(self) -> int:
        return len(self._sessions)
