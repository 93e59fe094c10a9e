"""
Record Migration Unit Tests
"""

from notekeeper.core.models.migrations import migrate_note_record, migrate_topic_record
from notekeeper.core.models.note import CURRENT_SCHEMA_VERSION


def test_v0_category_becomes_topic():
    record = migrate_note_record({"id": "n", "user_id": "u", "category_id": "c"})
    assert record["topic_id"] == "c"
    assert "category_id" not in record
    assert record["schema_version"] == CURRENT_SCHEMA_VERSION


def test_v1_backfills_flags_and_media():
    record = migrate_note_record({"id": "n", "user_id": "u", "topicId": "t", "isVoiceNote": True})
    assert record["topic_id"] == "t"
    assert record["is_voice_note"] is True
    assert record["pinned"] is False
    assert record["archived"] is False
    assert record["completed"] is False
    assert record["media"] == []
    assert record["tags"] == []


def test_current_version_is_left_alone():
    raw = {
        "id": "n",
        "user_id": "u",
        "topic_id": "t",
        "pinned": True,
        "media": ["https://x/y.png"],
        "schema_version": CURRENT_SCHEMA_VERSION,
    }
    record = migrate_note_record(raw)
    assert record["pinned"] is True
    assert record["media"] == ["https://x/y.png"]


def test_snake_case_beats_camel_case_twin():
    record = migrate_note_record({"id": "n", "user_id": "u", "topic_id": "new", "topicId": "old"})
    assert record["topic_id"] == "new"


def test_unknown_keys_are_dropped():
    record = migrate_note_record({"id": "n", "user_id": "u", "topic_id": "t", "embedding": [0.1]})
    assert "embedding" not in record
    topic = migrate_topic_record({"id": "t", "user_id": "u", "name": "x", "legacy": 1})
    assert "legacy" not in topic


def test_topic_defaults():
    topic = migrate_topic_record({"id": "t", "userId": "u", "name": "Work"})
    assert topic == {"id": "t", "user_id": "u", "name": "Work", "is_default": False, "order": 0, "parent_id": None}


def test_legacy_subcategory_keeps_its_parent():
    topic = migrate_topic_record({"id": "c2", "userId": "u", "name": "Sprint", "parentId": "c1"})
    assert topic["parent_id"] == "c1"
    assert migrate_topic_record({"id": "c3", "user_id": "u", "parentId": ""})["parent_id"] is None


def test_input_is_not_mutated():
    raw = {"id": "n", "userId": "u", "categoryId": "c"}
    migrate_note_record(raw)
    assert raw == {"id": "n", "userId": "u", "categoryId": "c"}
