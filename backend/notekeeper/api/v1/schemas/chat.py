from __future__ import annotations

from pydantic import Field

from notekeeper.core.models.base import AppBaseModel
from notekeeper.core.services.content_parser import PromptKind  # noqa: TCH001


class PromptRequest(AppBaseModel):
    """Note text to scan for an embedded AI prompt."""

    text: str = Field(..., description="Plain text of the note being edited")
    last_key: str | None = Field(
        default=None,
        description="Key of the prompt fired last; the same prompt is not sent twice",
    )


class PromptResponse(AppBaseModel):
    triggered: bool
    kind: PromptKind | None = None
    prompt: str | None = None
    key: str | None = None
    response: str | None = None
    text: str | None = Field(default=None, description="Note text with the prompt replaced by the answer")
