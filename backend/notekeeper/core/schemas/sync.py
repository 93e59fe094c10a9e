from __future__ import annotations

from enum import Enum

from pydantic import ConfigDict, Field

from notekeeper.core.models.base import AppBaseModel
from notekeeper.core.models.note import Note  # noqa: TCH001
from notekeeper.core.models.topic import Topic  # noqa: TCH001


class SubscriptionState(str, Enum):
    """Lifecycle of one live collection subscription."""

    IDLE = "idle"
    SUBSCRIBING = "subscribing"
    LIVE = "live"
    ERROR = "error"
    CLOSED = "closed"


class SyncSnapshot(AppBaseModel):
    """Read-only view of a user's notes and topics at one point in time."""

    model_config = ConfigDict(frozen=True)

    version: int = 0
    notes: tuple[Note, ...] = ()
    topics: tuple[Topic, ...] = ()
    notes_state: SubscriptionState = SubscriptionState.IDLE
    topics_state: SubscriptionState = SubscriptionState.IDLE
    error: str | None = Field(default=None, description="User-facing message while a feed is failing")

    @property
    def retryable(self) -> bool:
        return SubscriptionState.ERROR in (self.notes_state, self.topics_state)

    @property
    def is_live(self) -> bool:
        return self.notes_state is SubscriptionState.LIVE and self.topics_state is SubscriptionState.LIVE
