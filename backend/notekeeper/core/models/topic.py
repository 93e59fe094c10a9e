from __future__ import annotations

from typing import Any, NamedTuple

from pydantic import ConfigDict, Field, model_validator

from .base import AppBaseModel

DEFAULT_TOPIC_NAME = "New Topic"
NO_TOPIC = "No Topic"
VOICE_NOTES = "Voice Notes"

TOPIC_COLORS = (
    "bg-red-200",
    "bg-blue-200",
    "bg-green-200",
    "bg-yellow-200",
    "bg-purple-200",
    "bg-pink-200",
)


class DefaultTopicTemplate(NamedTuple):
    name: str
    order: int
    color: str


# Provisioned for every user on first login; cannot be renamed or deleted
REQUIRED_DEFAULT_TOPICS: tuple[DefaultTopicTemplate, ...] = (
    DefaultTopicTemplate(NO_TOPIC, 1000, "bg-gray-200"),
    DefaultTopicTemplate(VOICE_NOTES, 1001, "bg-purple-200"),
)


class Topic(AppBaseModel):
    """Topic domain model (called "category" in older records).

    ``parent_id`` nests a topic under another one; root topics have None.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    name: str = Field(default=DEFAULT_TOPIC_NAME, min_length=1)
    description: str = ""
    color: str = "bg-gray-200"
    is_default: bool = False
    order: int = 0
    parent_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def normalize_record(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        name = data.get("name")
        if name is None or not str(name).strip():
            data["name"] = DEFAULT_TOPIC_NAME
        else:
            data["name"] = str(name).strip()
        if data.get("description") is None:
            data["description"] = ""
        if data.get("color") is None:
            data.pop("color", None)
        if not data.get("parent_id"):
            data["parent_id"] = None
        return data
