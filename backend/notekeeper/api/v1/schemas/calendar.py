from __future__ import annotations

from datetime import datetime  # noqa: TCH003

from pydantic import Field, model_validator

from notekeeper.core.models.base import AppBaseModel


class CalendarEventCreate(AppBaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    start: datetime
    end: datetime

    @model_validator(mode="after")
    def validate_range(self) -> CalendarEventCreate:
        if self.end < self.start:
            raise ValueError("Event end must not precede its start")
        return self


class CalendarEventRead(AppBaseModel):
    id: str
    title: str
    start: datetime
    end: datetime
    note_id: str | None = None
