from __future__ import annotations

from datetime import datetime  # noqa: TCH003

from pydantic import ConfigDict, Field, model_validator

from .base import AppBaseModel


class CalendarEvent(AppBaseModel):
    """Calendar read model.

    Either derived from a note's ``event_date`` (``note_id`` set) or a
    standalone entry stored in its own table.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    start: datetime
    end: datetime
    note_id: str | None = Field(default=None, description="Backing note, if any")

    @model_validator(mode="after")
    def validate_range(self) -> CalendarEvent:
        if self.end < self.start:
            raise ValueError("Event end must not precede its start")
        return self
