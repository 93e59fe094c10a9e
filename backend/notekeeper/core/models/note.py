from __future__ import annotations

from datetime import datetime  # noqa: TCH003
from typing import Any

from pydantic import ConfigDict, Field, field_validator, model_validator

from notekeeper.utils.logging import get_logger

from .base import TimestampedModel

logger = get_logger(__name__)

DEFAULT_NOTE_TITLE = "New Note"

# Bumped whenever the stored record shape changes; see models/migrations.py
CURRENT_SCHEMA_VERSION = 2


class Note(TimestampedModel):
    """Note domain model.

    Instances are frozen; the mutation gateway derives new versions with
    ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Store-assigned note identifier")
    user_id: str = Field(..., min_length=1, description="Owner of the note")
    topic_id: str = Field(..., description="Topic the note belongs to")

    title: str = Field(default=DEFAULT_NOTE_TITLE, description="Note title")
    content: str = Field(default="", description="Rich-text body (HTML markup)")

    # Derived from content; never edited directly
    tags: list[str] = Field(default_factory=list, description="Hashtags found in content")

    completed: bool = False
    pinned: bool = False
    archived: bool = False
    is_voice_note: bool = False

    event_date: datetime | None = Field(default=None, description="Calendar date for the note")
    media: list[str] = Field(default_factory=list, description="Attached media URLs")

    schema_version: int = CURRENT_SCHEMA_VERSION

    @model_validator(mode="before")
    @classmethod
    def normalize_record(cls, data: Any) -> Any:
        """Normalize blank titles and resolve a pinned+archived conflict.

        Pinned wins when a record arrives with both flags set.
        """
        if not isinstance(data, dict):
            return data
        data = dict(data)

        title = data.get("title")
        if title is None or not str(title).strip():
            data["title"] = DEFAULT_NOTE_TITLE

        if data.get("content") is None:
            data["content"] = ""

        if data.get("pinned") and data.get("archived"):
            logger.warning(
                "Note is both pinned and archived; keeping pinned",
                extra={"note_id": data.get("id")},
            )
            data["archived"] = False
        return data

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str]) -> list[str]:
        """De-duplicate tags, keeping first-occurrence order."""
        normalized: list[str] = []
        for tag in v:
            cleaned = tag.strip().lstrip("#") if isinstance(tag, str) else ""
            if cleaned and cleaned not in normalized:
                normalized.append(cleaned)
        return normalized

    @field_validator("media")
    @classmethod
    def validate_media(cls, v: list[str]) -> list[str]:
        return [url for url in v if isinstance(url, str) and url]
