"""
Derived View Engine Unit Tests
"""

from datetime import timedelta

from conftest import BASE_TIME, make_note, make_topic, minutes

from notekeeper.core.models.calendar import CalendarEvent
from notekeeper.core.services.view_engine import (
    build_note_view,
    calendar_events,
    collect_all_tags,
    filter_by_tag,
    filter_by_topic,
    group_by_topic,
    partition_by_status,
    sort_by_recency,
    upcoming_dated,
)


def test_filter_by_topic_all_keeps_everything():
    notes = [make_note(id="a", topic_id="t1"), make_note(id="b", topic_id="t2")]
    assert filter_by_topic(notes, "all") == notes
    assert filter_by_topic(notes, None) == notes
    assert [n.id for n in filter_by_topic(notes, "t2")] == ["b"]


def test_filter_by_tag_is_exact_membership():
    notes = [
        make_note(id="a", tags=["work"]),
        make_note(id="b", tags=["workout"]),
        make_note(id="c"),
    ]
    assert [n.id for n in filter_by_tag(notes, "work")] == ["a"]
    assert filter_by_tag(notes, None) == notes


def test_partition_is_exhaustive_and_pinned_wins():
    notes = [
        make_note(id="p", pinned=True),
        make_note(id="n"),
        make_note(id="a", archived=True),
        make_note(id="both", pinned=True, archived=True),
    ]
    pinned, normal, archived = partition_by_status(notes)
    assert [n.id for n in pinned] == ["p", "both"]
    assert [n.id for n in normal] == ["n"]
    assert [n.id for n in archived] == ["a"]
    assert len(pinned) + len(normal) + len(archived) == len(notes)


def test_sort_by_recency_newest_first_and_stable():
    notes = [
        make_note(id="old", updated_at=minutes(1)),
        make_note(id="tie-1", updated_at=minutes(5)),
        make_note(id="new", updated_at=minutes(9)),
        make_note(id="tie-2", updated_at=minutes(5)),
    ]
    assert [n.id for n in sort_by_recency(notes)] == ["new", "tie-1", "tie-2", "old"]


def test_sort_does_not_mutate_input():
    notes = [make_note(id="a", updated_at=minutes(1)), make_note(id="b", updated_at=minutes(2))]
    sort_by_recency(notes)
    assert [n.id for n in notes] == ["a", "b"]


def test_collect_all_tags_is_union():
    notes = [make_note(tags=["a", "b"]), make_note(tags=["b", "c"]), make_note()]
    assert collect_all_tags(notes) == {"a", "b", "c"}
    assert collect_all_tags([]) == set()


def test_upcoming_dated_uses_body_marker():
    notes = [
        make_note(id="due", content="<p>Pay rent [01/04]</p>"),
        make_note(id="plain", content="<p>No date</p>"),
    ]
    assert [n.id for n in upcoming_dated(notes)] == ["due"]


def test_group_by_topic_orders_keys_and_falls_back_to_no_topic():
    topics = [
        make_topic(id="no", name="No Topic", is_default=True, order=1000),
        make_topic(id="w", name="Work"),
        make_topic(id="h", name="home"),
    ]
    notes = [
        make_note(id="1", topic_id="w"),
        make_note(id="2", topic_id="gone"),
        make_note(id="3", topic_id="h"),
    ]
    groups = group_by_topic(notes, topics)
    assert list(groups) == ["h", "w", "no"]
    assert [n.id for n in groups["no"]] == ["2"]
    assert [n.id for n in groups["w"]] == ["1"]


def test_calendar_events_merge_standalone_and_dated_notes():
    standalone = [CalendarEvent(id="e1", title="Dentist", start=BASE_TIME, end=BASE_TIME + timedelta(hours=1))]
    notes = [make_note(id="n1", title="Launch", event_date=BASE_TIME), make_note(id="n2")]
    events = calendar_events(notes, standalone)
    assert [e.id for e in events] == ["e1", "n1"]
    assert events[1].note_id == "n1"
    assert events[1].title == "Launch"


def test_build_note_view_filters_sorts_and_partitions():
    notes = [
        make_note(id="a", topic_id="t1", tags=["x"], updated_at=minutes(1)),
        make_note(id="b", topic_id="t1", tags=["x"], updated_at=minutes(3), pinned=True),
        make_note(id="c", topic_id="t1", tags=["x"], updated_at=minutes(2)),
        make_note(id="d", topic_id="t2", tags=["x"], updated_at=minutes(4)),
        make_note(id="e", topic_id="t1", tags=["y"], updated_at=minutes(5), archived=True),
    ]
    view = build_note_view(notes, "t1", "x")
    assert [n.id for n in view.pinned] == ["b"]
    assert [n.id for n in view.normal] == ["c", "a"]
    assert view.archived == []

    everything = build_note_view(notes)
    assert [n.id for n in everything.archived] == ["e"]
    assert [n.id for n in everything.normal] == ["d", "c", "a"]


def test_empty_inputs():
    view = build_note_view([])
    assert (view.pinned, view.normal, view.archived) == ([], [], [])
    assert group_by_topic([], []) == {}
    assert calendar_events([]) == []
