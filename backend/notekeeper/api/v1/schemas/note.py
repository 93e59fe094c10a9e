from __future__ import annotations

from datetime import datetime  # noqa: TCH003

from pydantic import Field

from notekeeper.core.models.base import AppBaseModel


class NoteCreate(AppBaseModel):
    topic_id: str | None = Field(
        default="all",
        description='Selected topic; "all" or omitted files the note under "No Topic"',
    )
    title: str | None = Field(default=None, max_length=255, description="Note title")
    content: str = Field(default="", description="Rich-text body (HTML markup)")
    event_date: datetime | None = None


class NoteTitleUpdate(AppBaseModel):
    title: str | None = Field(default=None, max_length=255)


class NoteContentUpdate(AppBaseModel):
    content: str = Field(..., description="Full replacement body; tags are recomputed from it")


class NoteTopicUpdate(AppBaseModel):
    topic_id: str = Field(..., min_length=1)


class NoteEventDateUpdate(AppBaseModel):
    event_date: datetime | None = Field(default=None, description="Null clears the date")


class NoteMediaRemove(AppBaseModel):
    url: str = Field(..., min_length=1)


class NoteRead(AppBaseModel):
    id: str
    user_id: str
    topic_id: str
    title: str
    content: str
    tags: list[str]
    completed: bool
    pinned: bool
    archived: bool
    is_voice_note: bool
    event_date: datetime | None
    media: list[str]
    created_at: datetime
    updated_at: datetime


class NoteListRead(AppBaseModel):
    """One rendered list: pinned first, then normal, then archived."""

    topic_id: str
    tag: str | None
    pinned: list[NoteRead]
    normal: list[NoteRead]
    archived: list[NoteRead]
