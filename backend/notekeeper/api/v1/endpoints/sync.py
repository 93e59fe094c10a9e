from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse

from notekeeper.api.v1.schemas.note import NoteRead
from notekeeper.api.v1.schemas.sync import SyncSnapshotRead, SyncStateRead
from notekeeper.api.v1.schemas.topic import TopicRead
from notekeeper.core.schemas.auth import AuthUser  # noqa: TCH001
from notekeeper.core.schemas.sync import SyncSnapshot  # noqa: TCH001
from notekeeper.core.services.session import SessionRegistry  # noqa: TCH001
from notekeeper.core.services.sync_service import NoteSyncService  # noqa: TCH001
from notekeeper.dependencies import get_current_user, get_session_registry, get_sync
from notekeeper.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

# Seconds between keep-alive comments on an idle stream
KEEPALIVE_INTERVAL = 15.0


def _state(snapshot: SyncSnapshot) -> SyncStateRead:
    return SyncStateRead(
        version=snapshot.version,
        notes_state=snapshot.notes_state,
        topics_state=snapshot.topics_state,
        live=snapshot.is_live,
        retryable=snapshot.retryable,
        error=snapshot.error,
    )


def _full(snapshot: SyncSnapshot) -> SyncSnapshotRead:
    return SyncSnapshotRead(
        **_state(snapshot).model_dump(),
        notes=[NoteRead.model_validate(n) for n in snapshot.notes],
        topics=[TopicRead.model_validate(t) for t in snapshot.topics],
    )


@router.get("/state", response_model=SyncStateRead)
async def get_sync_state(sync: NoteSyncService = Depends(get_sync)):
    """Subscription status of both feeds; ``retryable`` drives the Retry button."""
    return _state(sync.snapshot())


@router.post("/retry", response_model=SyncStateRead)
async def retry_sync(sync: NoteSyncService = Depends(get_sync)):
    await sync.retry()
    return _state(sync.snapshot())


@router.get("/stream")
async def stream_snapshots(sync: NoteSyncService = Depends(get_sync)):
    """Push every new snapshot to the client via SSE.

    The current snapshot is sent first; slow consumers only ever see the
    latest one.
    """
    queue: asyncio.Queue[SyncSnapshot] = asyncio.Queue(maxsize=1)

    def on_snapshot(snapshot: SyncSnapshot) -> None:
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(snapshot)

    remove = sync.add_listener(on_snapshot)
    on_snapshot(sync.snapshot())

    async def event_iterator():
        try:
            while not sync.closed:
                try:
                    snapshot = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_INTERVAL)
                except TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield "event: snapshot\n"
                yield f"data: {_full(snapshot).model_dump_json()}\n\n"
            yield "event: closed\n"
            yield "data: {}\n\n"
        finally:
            remove()

    return StreamingResponse(
        event_iterator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def end_sync_session(
    current_user: AuthUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Sign-out: release both subscriptions for the caller."""
    closed = await registry.close(current_user.id)
    logger.info("Sync session ended", extra={"user_id": current_user.id, "was_open": closed})
    return None
