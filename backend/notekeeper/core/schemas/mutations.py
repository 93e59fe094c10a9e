from __future__ import annotations

from pydantic import Field

from notekeeper.core.models.base import AppBaseModel


class TopicDeletionResult(AppBaseModel):
    """Outcome of deleting a topic and moving its notes and subtopics.

    The topic is only deleted once every note and subtopic has moved, so
    ``deleted`` is False whenever ``failed`` or ``failed_subtopics`` is
    non-empty.
    """

    topic_id: str
    deleted: bool = False
    fallback_topic_id: str | None = None
    reassigned: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    reparented: list[str] = Field(default_factory=list)
    failed_subtopics: list[str] = Field(default_factory=list)
