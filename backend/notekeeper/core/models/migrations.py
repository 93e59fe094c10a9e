"""Upgrade raw store records to the current schema before validation.

Version history:

- v0: records from the "categories" era; notes reference ``category_id``
  (or ``categoryId``) and topics have no default/order fields.
- v1: ``topic_id`` introduced; camelCase keys still common, pin/archive
  flags and media absent on older notes.
- v2 (current): snake_case keys, every boolean flag and ``media`` present.

Unknown keys are dropped rather than rejected so that a column added by a
newer client never breaks ingestion on an older one.
"""

from __future__ import annotations

from typing import Any

from notekeeper.utils.logging import get_logger

from .note import CURRENT_SCHEMA_VERSION

logger = get_logger(__name__)

_CAMEL_TO_SNAKE = {
    "userId": "user_id",
    "topicId": "topic_id",
    "categoryId": "category_id",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "eventDate": "event_date",
    "isVoiceNote": "is_voice_note",
    "isDefault": "is_default",
    "parentId": "parent_id",
    "schemaVersion": "schema_version",
}

NOTE_FIELDS = frozenset({
    "id",
    "user_id",
    "topic_id",
    "title",
    "content",
    "tags",
    "completed",
    "pinned",
    "archived",
    "is_voice_note",
    "event_date",
    "media",
    "created_at",
    "updated_at",
    "schema_version",
})

TOPIC_FIELDS = frozenset({
    "id",
    "user_id",
    "name",
    "description",
    "color",
    "is_default",
    "order",
    "parent_id",
})


def _snake_case_keys(raw: dict[str, Any]) -> dict[str, Any]:
    record: dict[str, Any] = {}
    for key, value in raw.items():
        snake = _CAMEL_TO_SNAKE.get(key, key)
        # An explicit snake_case column beats its legacy camelCase twin
        if snake in record and key != snake:
            continue
        record[snake] = value
    return record


def _drop_unknown(record: dict[str, Any], allowed: frozenset[str], kind: str) -> dict[str, Any]:
    unknown = set(record) - allowed
    if unknown:
        logger.debug("Dropping unknown %s fields: %s", kind, sorted(unknown))
    return {k: v for k, v in record.items() if k in allowed}


def migrate_note_record(raw: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``raw`` shaped like a current-version note row."""
    record = _snake_case_keys(raw)
    version = record.get("schema_version")
    if not isinstance(version, int):
        version = 1 if "topic_id" in record else 0

    if version < 1:
        category_id = record.pop("category_id", None)
        if record.get("topic_id") is None and category_id is not None:
            record["topic_id"] = category_id

    if version < 2:
        for flag in ("completed", "pinned", "archived", "is_voice_note"):
            if record.get(flag) is None:
                record[flag] = False
        if record.get("media") is None:
            record["media"] = []

    if record.get("tags") is None:
        record["tags"] = []
    if record.get("topic_id") is None:
        record["topic_id"] = ""

    record["schema_version"] = CURRENT_SCHEMA_VERSION
    return _drop_unknown(record, NOTE_FIELDS, "note")


def migrate_topic_record(raw: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``raw`` shaped like a current topic row."""
    record = _snake_case_keys(raw)
    if record.get("is_default") is None:
        record["is_default"] = False
    if record.get("order") is None:
        record["order"] = 0
    if not record.get("parent_id"):
        record["parent_id"] = None
    return _drop_unknown(record, TOPIC_FIELDS, "topic")
