"""Read-only projections over the note snapshot.

All functions are pure: they never mutate their input and return empty
results for empty input.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

from notekeeper.core.models.calendar import CalendarEvent
from notekeeper.core.models.topic import NO_TOPIC
from notekeeper.core.services.content_parser import extract_due_date_marker, html_to_text
from notekeeper.core.services.topic_service import (
    ALL_TOPICS,
    resolve_default_topic_id,
    sort_topics,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from notekeeper.core.models.note import Note
    from notekeeper.core.models.topic import Topic


class StatusPartition(NamedTuple):
    pinned: list[Note]
    normal: list[Note]
    archived: list[Note]


class NoteListView(NamedTuple):
    topic_id: str
    tag: str | None
    pinned: list[Note]
    normal: list[Note]
    archived: list[Note]


def filter_by_topic(notes: Iterable[Note], topic_id: str | None) -> list[Note]:
    if topic_id is None or topic_id == ALL_TOPICS:
        return list(notes)
    return [n for n in notes if n.topic_id == topic_id]


def filter_by_tag(notes: Iterable[Note], tag: str | None) -> list[Note]:
    if tag is None:
        return list(notes)
    return [n for n in notes if tag in n.tags]


def partition_by_status(notes: Iterable[Note]) -> StatusPartition:
    pinned: list[Note] = []
    normal: list[Note] = []
    archived: list[Note] = []
    for note in notes:
        if note.pinned:
            pinned.append(note)
        elif note.archived:
            archived.append(note)
        else:
            normal.append(note)
    return StatusPartition(pinned, normal, archived)


def sort_by_recency(notes: Iterable[Note]) -> list[Note]:
    """Newest ``updated_at`` first; equal timestamps keep input order."""
    # sorted() stays stable with reverse=True
    return sorted(notes, key=lambda n: n.updated_at, reverse=True)


def collect_all_tags(notes: Iterable[Note]) -> set[str]:
    tags: set[str] = set()
    for note in notes:
        tags.update(note.tags)
    return tags


def upcoming_dated(notes: Iterable[Note]) -> list[Note]:
    """Notes carrying a ``[DD/MM]`` due-date marker in their body."""
    return [n for n in notes if extract_due_date_marker(html_to_text(n.content)) is not None]


def group_by_topic(notes: Iterable[Note], topics: Sequence[Topic]) -> dict[str, list[Note]]:
    """Bucket notes by topic id, keys in display order.

    Notes pointing at an unknown topic land in "No Topic" when it exists.
    """
    groups: dict[str, list[Note]] = {t.id: [] for t in sort_topics(topics)}
    fallback = resolve_default_topic_id(topics, NO_TOPIC)
    for note in notes:
        if note.topic_id in groups:
            groups[note.topic_id].append(note)
        elif fallback is not None:
            groups[fallback].append(note)
    return groups


def calendar_events(
    notes: Iterable[Note],
    standalone: Iterable[CalendarEvent] = (),
) -> list[CalendarEvent]:
    """Standalone events followed by one event per dated note."""
    events = list(standalone)
    for note in notes:
        if note.event_date is None:
            continue
        events.append(
            CalendarEvent(
                id=note.id,
                title=note.title,
                start=note.event_date,
                end=note.event_date,
                note_id=note.id,
            )
        )
    return events


def build_note_view(
    notes: Iterable[Note],
    topic_id: str = ALL_TOPICS,
    tag: str | None = None,
) -> NoteListView:
    """Compose the per-render projection: filter, sort, then partition."""
    selected = filter_by_tag(filter_by_topic(notes, topic_id), tag)
    partition = partition_by_status(sort_by_recency(selected))
    return NoteListView(topic_id, tag, partition.pinned, partition.normal, partition.archived)
