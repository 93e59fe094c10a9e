from __future__ import annotations

from notekeeper.api.v1.schemas.note import NoteRead  # noqa: TCH001
from notekeeper.api.v1.schemas.topic import TopicRead  # noqa: TCH001
from notekeeper.core.models.base import AppBaseModel
from notekeeper.core.schemas.sync import SubscriptionState  # noqa: TCH001


class SyncStateRead(AppBaseModel):
    version: int
    notes_state: SubscriptionState
    topics_state: SubscriptionState
    live: bool
    retryable: bool
    error: str | None = None


class SyncSnapshotRead(SyncStateRead):
    notes: list[NoteRead]
    topics: list[TopicRead]
