from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

from pyuca import Collator

from notekeeper.core.models.topic import NO_TOPIC, REQUIRED_DEFAULT_TOPICS, DefaultTopicTemplate

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from notekeeper.core.models.topic import Topic

ALL_TOPICS = "all"


@lru_cache(maxsize=1)
def _collator() -> Collator:
    # Loads the DUCET table once per process
    return Collator()


def _name_key(topic: Topic) -> tuple[tuple[int, ...], str]:
    # Unicode collation over the casefolded name; the raw name breaks ties
    return (_collator().sort_key(topic.name.casefold()), topic.name)


def sort_topics(topics: Iterable[Topic]) -> list[Topic]:
    """Order topics for display as a flattened tree.

    Root user topics come first, alphabetically; default topics follow,
    ordered by their ``order`` field. Every topic is followed by its
    subtopics, alphabetically and depth first. A topic whose parent is
    missing is shown as a root.
    """
    topics = list(topics)
    by_id = {t.id: t for t in topics}
    children: dict[str, list[Topic]] = {}
    roots: list[Topic] = []
    for topic in topics:
        if topic.parent_id in by_id and topic.parent_id != topic.id:
            children.setdefault(topic.parent_id, []).append(topic)
        else:
            roots.append(topic)

    ordered: list[Topic] = []
    seen: set[str] = set()

    def walk(topic: Topic) -> None:
        if topic.id in seen:
            return
        seen.add(topic.id)
        ordered.append(topic)
        for child in sorted(children.get(topic.id, ()), key=_name_key):
            walk(child)

    user_roots = sorted((t for t in roots if not t.is_default), key=_name_key)
    default_roots = sorted((t for t in roots if t.is_default), key=lambda t: t.order)
    for topic in user_roots + default_roots:
        walk(topic)
    # Topics caught in a parent cycle hang off no root
    for topic in sorted((t for t in topics if t.id not in seen), key=_name_key):
        walk(topic)
    return ordered


def topic_depths(topics: Iterable[Topic]) -> dict[str, int]:
    """Nesting depth per topic id; roots are 0."""
    by_id = {t.id: t for t in topics}
    depths: dict[str, int] = {}
    for topic in by_id.values():
        depth, visited, current = 0, {topic.id}, topic
        while current.parent_id in by_id and current.parent_id not in visited:
            visited.add(current.parent_id)
            current = by_id[current.parent_id]
            depth += 1
        depths[topic.id] = depth
    return depths


def descendant_ids(topics: Iterable[Topic], topic_id: str) -> set[str]:
    """Ids of every topic nested, at any depth, under ``topic_id``."""
    children: dict[str, list[str]] = {}
    for topic in topics:
        if topic.parent_id:
            children.setdefault(topic.parent_id, []).append(topic.id)
    found: set[str] = set()
    pending = list(children.get(topic_id, ()))
    while pending:
        child = pending.pop()
        if child in found or child == topic_id:
            continue
        found.add(child)
        pending.extend(children.get(child, ()))
    return found


def can_rename(topic: Topic) -> bool:
    return not topic.is_default


def can_delete(topic: Topic) -> bool:
    return not topic.is_default


def can_move(topic: Topic) -> bool:
    return not topic.is_default


def resolve_default_topic_id(topics: Iterable[Topic], name: str) -> str | None:
    """Id of the default topic called exactly ``name``, or None."""
    for topic in topics:
        if topic.is_default and topic.name == name:
            return topic.id
    return None


def missing_default_topics(topics: Sequence[Topic]) -> list[DefaultTopicTemplate]:
    """Required default topics not present in ``topics``."""
    return [
        template for template in REQUIRED_DEFAULT_TOPICS
        if resolve_default_topic_id(topics, template.name) is None
    ]


def resolve_topic_hint(topics: Sequence[Topic], hint: str | None) -> str | None:
    """Map a UI topic selection to the topic a new note should land in.

    The "all" view has no topic of its own, so new notes go to "No Topic".
    """
    if not hint or hint == ALL_TOPICS:
        return resolve_default_topic_id(topics, NO_TOPIC)
    for topic in topics:
        if topic.id == hint:
            return topic.id
    return None
