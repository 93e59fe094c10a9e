from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from notekeeper.core.models.base import utcnow
from notekeeper.core.models.migrations import migrate_note_record, migrate_topic_record
from notekeeper.core.models.note import Note
from notekeeper.core.models.topic import Topic
from notekeeper.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = get_logger(__name__)

_ID_FIELDS = ("id", "user_id", "topic_id", "parent_id")

# Anything larger is an epoch in milliseconds
_MS_THRESHOLD = 100_000_000_000


def coerce_timestamp(value: Any) -> datetime | None:
    """Best-effort conversion of a stored timestamp to an aware datetime.

    Accepts datetimes, ISO-8601 strings, epoch seconds or milliseconds and
    ``{"seconds": ..., "nanoseconds": ...}`` maps. Returns None when the
    value is missing or unusable.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=UTC)
        if isinstance(value, int | float):
            seconds = value / 1000 if abs(value) >= _MS_THRESHOLD else value
            return datetime.fromtimestamp(seconds, UTC)
        if isinstance(value, str):
            parsed = datetime.fromisoformat(value.strip())
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
        if isinstance(value, dict):
            seconds = value.get("seconds", value.get("_seconds"))
            if seconds is None:
                return None
            nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
            return datetime.fromtimestamp(float(seconds) + float(nanos) / 1e9, UTC)
    except (ValueError, TypeError, OverflowError, OSError):
        return None
    return None


def _stringify_ids(record: dict[str, Any]) -> None:
    for field in _ID_FIELDS:
        value = record.get(field)
        if value is not None and not isinstance(value, str):
            record[field] = str(value)


def ingest_note(raw: dict[str, Any], now: datetime | None = None) -> Note | None:
    """Map one raw row to a Note, or None if it cannot be salvaged."""
    now = now or utcnow()
    record = migrate_note_record(raw)
    _stringify_ids(record)

    for field in ("created_at", "updated_at"):
        original = record.get(field)
        ts = coerce_timestamp(original)
        if ts is None:
            if original is not None:
                logger.warning(
                    "Malformed %s on note; defaulting to now",
                    field,
                    extra={"note_id": record.get("id"), "value": repr(original)[:50]},
                )
            ts = now
        record[field] = ts

    if record.get("event_date") is not None:
        event_date = coerce_timestamp(record["event_date"])
        if event_date is None:
            logger.warning("Dropping malformed event_date on note", extra={"note_id": record.get("id")})
        record["event_date"] = event_date

    try:
        return Note.model_validate(record)
    except ValidationError as err:
        logger.warning(
            "Skipping unreadable note record",
            extra={"note_id": record.get("id"), "error_count": err.error_count()},
        )
        return None


def ingest_topic(raw: dict[str, Any]) -> Topic | None:
    record = migrate_topic_record(raw)
    _stringify_ids(record)
    try:
        return Topic.model_validate(record)
    except ValidationError as err:
        logger.warning(
            "Skipping unreadable topic record",
            extra={"topic_id": record.get("id"), "error_count": err.error_count()},
        )
        return None


def ingest_notes(rows: Iterable[dict[str, Any]], now: datetime | None = None) -> list[Note]:
    """Map a snapshot of rows; a bad row never drops the others."""
    now = now or utcnow()
    notes: list[Note] = []
    for row in rows:
        note = ingest_note(row, now) if isinstance(row, dict) else None
        if note is not None:
            notes.append(note)
    return notes


def ingest_topics(rows: Iterable[dict[str, Any]]) -> list[Topic]:
    topics: list[Topic] = []
    for row in rows:
        topic = ingest_topic(row) if isinstance(row, dict) else None
        if topic is not None:
            topics.append(topic)
    return topics
