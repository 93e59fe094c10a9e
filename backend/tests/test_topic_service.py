"""
Topic Hierarchy Unit Tests
"""

from conftest import make_topic

from notekeeper.core.models.topic import NO_TOPIC, VOICE_NOTES
from notekeeper.core.services.topic_service import (
    can_delete,
    can_move,
    can_rename,
    descendant_ids,
    missing_default_topics,
    resolve_default_topic_id,
    resolve_topic_hint,
    sort_topics,
    topic_depths,
)


def _defaults():
    return [
        make_topic(id="voice", name=VOICE_NOTES, is_default=True, order=1001),
        make_topic(id="none", name=NO_TOPIC, is_default=True, order=1000),
    ]


def test_sort_puts_user_topics_alphabetically_then_defaults():
    topics = [*_defaults(), make_topic(id="z", name="zebra"), make_topic(id="a", name="Apple")]
    assert [t.id for t in sort_topics(topics)] == ["a", "z", "none", "voice"]


def test_sort_two_user_topics_and_no_topic():
    topics = [
        make_topic(id="1", name="Z"),
        make_topic(id="2", name="A"),
        make_topic(id="3", name=NO_TOPIC, is_default=True, order=1000),
    ]
    assert [t.name for t in sort_topics(topics)] == ["A", "Z", NO_TOPIC]


def test_sort_is_case_insensitive():
    topics = [make_topic(id="1", name="beta"), make_topic(id="2", name="Alpha"), make_topic(id="3", name="gamma")]
    assert [t.name for t in sort_topics(topics)] == ["Alpha", "beta", "gamma"]


def test_sort_collates_accented_names():
    topics = [make_topic(id="z", name="zebra"), make_topic(id="e", name="Éclair"), make_topic(id="a", name="apple")]
    assert [t.name for t in sort_topics(topics)] == ["apple", "Éclair", "zebra"]


def test_sort_places_subtopics_under_their_parent():
    topics = [
        *_defaults(),
        make_topic(id="w", name="Work"),
        make_topic(id="h", name="Home"),
        make_topic(id="s2", name="Sprint 2", parent_id="w"),
        make_topic(id="s1", name="Sprint 1", parent_id="w"),
        make_topic(id="r", name="Retro", parent_id="s1"),
        make_topic(id="g", name="Garden", parent_id="h"),
    ]
    assert [t.id for t in sort_topics(topics)] == ["h", "g", "w", "s1", "r", "s2", "none", "voice"]
    assert topic_depths(topics) == {"voice": 0, "none": 0, "w": 0, "h": 0, "s2": 1, "s1": 1, "r": 2, "g": 1}
    assert descendant_ids(topics, "w") == {"s1", "s2", "r"}
    assert descendant_ids(topics, "r") == set()


def test_sort_survives_missing_parents_and_cycles():
    topics = [
        make_topic(id="o", name="Orphan", parent_id="gone"),
        make_topic(id="a", name="A", parent_id="b"),
        make_topic(id="b", name="B", parent_id="a"),
    ]
    assert [t.id for t in sort_topics(topics)] == ["o", "a", "b"]
    assert topic_depths(topics) == {"o": 0, "a": 1, "b": 1}
    assert descendant_ids(topics, "a") == {"b"}


def test_sort_accepts_any_iterable():
    assert [t.id for t in sort_topics(iter(_defaults()))] == ["none", "voice"]


def test_default_topics_are_protected():
    default, user = _defaults()[1], make_topic()
    assert not can_rename(default)
    assert not can_delete(default)
    assert not can_move(default)
    assert can_rename(user)
    assert can_delete(user)
    assert can_move(user)


def test_resolve_default_requires_default_flag():
    topics = [make_topic(id="fake", name=NO_TOPIC), *_defaults()]
    assert resolve_default_topic_id(topics, NO_TOPIC) == "none"
    assert resolve_default_topic_id([], NO_TOPIC) is None


def test_missing_default_topics():
    assert [s.name for s in missing_default_topics([])] == [NO_TOPIC, VOICE_NOTES]
    assert missing_default_topics(_defaults()) == []
    only_no_topic = [t for t in _defaults() if t.name == NO_TOPIC]
    assert [s.name for s in missing_default_topics(only_no_topic)] == [VOICE_NOTES]


def test_topic_hint_all_maps_to_no_topic():
    topics = [*_defaults(), make_topic(id="w", name="Work")]
    assert resolve_topic_hint(topics, "all") == "none"
    assert resolve_topic_hint(topics, None) == "none"
    assert resolve_topic_hint(topics, "w") == "w"
    assert resolve_topic_hint(topics, "missing") is None
