from __future__ import annotations

from pydantic import Field

from notekeeper.core.models.base import AppBaseModel


class TopicCreate(AppBaseModel):
    name: str | None = Field(default=None, max_length=100)
    description: str = Field(default="", max_length=500)
    parent_id: str | None = None


class TopicUpdate(AppBaseModel):
    name: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=500)


class TopicRead(AppBaseModel):
    id: str
    name: str
    description: str
    color: str
    is_default: bool
    order: int
    parent_id: str | None = None
    depth: int = 0


class TopicMove(AppBaseModel):
    parent_id: str | None = None


class TopicDeletionRead(AppBaseModel):
    topic_id: str
    deleted: bool
    fallback_topic_id: str | None
    reassigned: list[str]
    failed: list[str]
    reparented: list[str]
    failed_subtopics: list[str]
