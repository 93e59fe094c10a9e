from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any

from notekeeper.core.errors import StoreError
from notekeeper.core.models.base import utcnow
from notekeeper.core.repositories.document_store import Collection
from notekeeper.core.schemas.sync import SubscriptionState, SyncSnapshot
from notekeeper.core.services.ingest import ingest_notes, ingest_topics
from notekeeper.core.services.topic_service import missing_default_topics
from notekeeper.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import datetime

    from notekeeper.core.models.note import Note
    from notekeeper.core.models.topic import DefaultTopicTemplate, Topic
    from notekeeper.core.repositories.live_query import LiveQuery, Subscription

    SnapshotListener = Callable[[SyncSnapshot], None]
    DefaultsProvisioner = Callable[[str, list[DefaultTopicTemplate]], Awaitable[Any]]

logger = get_logger(__name__)

FEED_ERROR_MESSAGE = "Lost connection to your notes. Retry to reconnect."

_WATCHED = (Collection.NOTES, Collection.TOPICS)


@dataclass
class _Feed:
    state: SubscriptionState = SubscriptionState.IDLE
    subscription: Subscription | None = None
    generation: int = 0
    last_sequence: int = 0
    error: str | None = None


@dataclass(frozen=True)
class StagedWrite:
    """Undo record for one optimistic change."""

    collection: Collection
    entity_id: str
    previous: Any
    previously_deleted: bool
    previous_ack: int | None = None
    value: Any = None


class NoteSyncService:
    """Keep an in-memory snapshot of one user's notes and topics.

    Each collection runs ``IDLE -> SUBSCRIBING -> LIVE -> (ERROR | CLOSED)``.
    Every delivery from the live query replaces the collection wholesale;
    stale deliveries (older sequence numbers) are dropped. Writes staged by
    the mutation gateway stay visible until a snapshot catches up with them,
    so a newer snapshot never hides a write the UI already showed.
    """

    def __init__(
        self,
        user_id: str,
        live_query: LiveQuery,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.user_id = user_id
        self._live_query = live_query
        self._clock = clock
        self._feeds: dict[Collection, _Feed] = {c: _Feed() for c in _WATCHED}

        self._notes: list[Note] = []
        self._topics: list[Topic] = []
        self._pending_notes: dict[str, Note] = {}
        self._pending_note_deletions: set[str] = set()
        self._pending_topics: dict[str, Topic] = {}
        self._pending_topic_deletions: set[str] = set()
        # Feed sequence at which a staged topic write was confirmed by the store
        self._topic_acks: dict[str, int] = {}

        self._listeners: list[SnapshotListener] = []
        self._version = 0
        self._closed = False

        self.provision_defaults: DefaultsProvisioner | None = None
        self._requested_defaults: set[str] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe every collection that is not already live."""
        if self._closed:
            raise RuntimeError("Sync service is closed")
        for collection in _WATCHED:
            if self._feeds[collection].state in (SubscriptionState.IDLE, SubscriptionState.ERROR):
                await self._subscribe(collection)

    async def retry(self) -> None:
        """Re-enter SUBSCRIBING for every failed collection."""
        if self._closed:
            raise RuntimeError("Sync service is closed")
        for collection in _WATCHED:
            feed = self._feeds[collection]
            if feed.state is SubscriptionState.ERROR:
                await self._release(collection)
                await self._subscribe(collection)

    async def close(self) -> None:
        """Release both subscriptions. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await asyncio.gather(*(self._release(c) for c in _WATCHED))
        for feed in self._feeds.values():
            feed.state = SubscriptionState.CLOSED
        self._publish()
        self._listeners.clear()
        logger.info("Sync closed", extra={"user_id": self.user_id})

    async def _subscribe(self, collection: Collection) -> None:
        feed = self._feeds[collection]
        feed.generation += 1
        feed.last_sequence = 0
        feed.error = None
        feed.state = SubscriptionState.SUBSCRIBING
        if collection is Collection.TOPICS:
            # Sequences restart with the new subscription
            self._topic_acks = dict.fromkeys(self._topic_acks, 0)
        self._publish()

        generation = feed.generation
        try:
            subscription = await self._live_query.subscribe(
                collection,
                self.user_id,
                partial(self._on_snapshot, collection, generation),
                partial(self._on_error, collection, generation),
            )
        except StoreError as err:
            self._fail(collection, err)
            return
        if self._closed or generation != feed.generation:
            await subscription.unsubscribe()
            return
        feed.subscription = subscription

    async def _release(self, collection: Collection) -> None:
        feed = self._feeds[collection]
        subscription, feed.subscription = feed.subscription, None
        feed.generation += 1
        if subscription is None:
            return
        try:
            await subscription.unsubscribe()
        except Exception as err:
            logger.warning("Failed to unsubscribe %s feed: %s", collection.value, err)

    # ------------------------------------------------------------------
    # Feed callbacks
    # ------------------------------------------------------------------

    async def _on_snapshot(
        self,
        collection: Collection,
        generation: int,
        rows: list[dict[str, Any]],
        sequence: int,
    ) -> None:
        feed = self._feeds[collection]
        if self._closed or generation != feed.generation:
            return
        if sequence <= feed.last_sequence:
            logger.debug("Dropping stale %s snapshot %d", collection.value, sequence)
            return
        feed.last_sequence = sequence

        topics: list[Topic] | None = None
        if collection is Collection.NOTES:
            self._apply_notes(ingest_notes(rows, self._clock()))
        else:
            topics = ingest_topics(rows)
            self._apply_topics(topics, sequence)

        feed.state = SubscriptionState.LIVE
        feed.error = None
        self._publish()

        if topics is not None:
            await self._ensure_defaults()

    def _on_error(self, collection: Collection, generation: int, err: Exception) -> None:
        if self._closed or generation != self._feeds[collection].generation:
            return
        self._fail(collection, err)

    def _fail(self, collection: Collection, err: Exception) -> None:
        feed = self._feeds[collection]
        feed.state = SubscriptionState.ERROR
        feed.error = FEED_ERROR_MESSAGE
        kind = err.kind if isinstance(err, StoreError) else "unexpected"
        logger.error(
            "%s feed failed (%s): %s",
            collection.value,
            kind,
            err,
            extra={"user_id": self.user_id},
        )
        self._publish()

    async def _ensure_defaults(self) -> None:
        if self.provision_defaults is None:
            return
        missing = [
            template for template in missing_default_topics(self.topics())
            if template.name not in self._requested_defaults
        ]
        if not missing:
            return
        names = {template.name for template in missing}
        self._requested_defaults |= names
        logger.info("Provisioning default topics %s", sorted(names), extra={"user_id": self.user_id})
        try:
            await self.provision_defaults(self.user_id, missing)
        except Exception as err:
            # Allow the next snapshot to try again
            self._requested_defaults -= names
            logger.error("Default topic provisioning failed: %s", err, extra={"user_id": self.user_id})

    # ------------------------------------------------------------------
    # Reconciliation with staged writes
    # ------------------------------------------------------------------

    def _apply_notes(self, notes: list[Note]) -> None:
        incoming = {n.id: n for n in notes}
        for note_id, staged in list(self._pending_notes.items()):
            current = incoming.get(note_id)
            if current is not None and current.updated_at >= staged.updated_at:
                del self._pending_notes[note_id]
        self._pending_note_deletions &= incoming.keys()
        self._notes = notes

    def _apply_topics(self, topics: list[Topic], sequence: int) -> None:
        # Topics carry no timestamp: a staged topic clears once the feed shows
        # it, or once any snapshot newer than the store's confirmation arrives
        incoming = {t.id: t for t in topics}
        for topic_id, staged in list(self._pending_topics.items()):
            ack = self._topic_acks.get(topic_id)
            if incoming.get(topic_id) == staged or (ack is not None and sequence > ack):
                del self._pending_topics[topic_id]
                self._topic_acks.pop(topic_id, None)
        self._pending_topic_deletions &= incoming.keys()
        self._topics = topics

    def stage_note(self, note: Note) -> StagedWrite:
        staged = StagedWrite(
            Collection.NOTES,
            note.id,
            self._pending_notes.get(note.id),
            note.id in self._pending_note_deletions,
        )
        self._pending_notes[note.id] = note
        self._pending_note_deletions.discard(note.id)
        self._publish()
        return staged

    def stage_note_deletion(self, note_id: str) -> StagedWrite:
        staged = StagedWrite(
            Collection.NOTES,
            note_id,
            self._pending_notes.pop(note_id, None),
            note_id in self._pending_note_deletions,
        )
        self._pending_note_deletions.add(note_id)
        self._publish()
        return staged

    def stage_topic(self, topic: Topic) -> StagedWrite:
        staged = StagedWrite(
            Collection.TOPICS,
            topic.id,
            self._pending_topics.get(topic.id),
            topic.id in self._pending_topic_deletions,
            self._topic_acks.pop(topic.id, None),
            topic,
        )
        self._pending_topics[topic.id] = topic
        self._pending_topic_deletions.discard(topic.id)
        self._publish()
        return staged

    def stage_topic_deletion(self, topic_id: str) -> StagedWrite:
        staged = StagedWrite(
            Collection.TOPICS,
            topic_id,
            self._pending_topics.pop(topic_id, None),
            topic_id in self._pending_topic_deletions,
            self._topic_acks.pop(topic_id, None),
        )
        self._pending_topic_deletions.add(topic_id)
        self._publish()
        return staged

    def rollback(self, staged: StagedWrite) -> None:
        """Undo an optimistic change whose write failed."""
        if staged.collection is Collection.NOTES:
            pending, deletions = self._pending_notes, self._pending_note_deletions
        else:
            pending, deletions = self._pending_topics, self._pending_topic_deletions
            if staged.previous_ack is None:
                self._topic_acks.pop(staged.entity_id, None)
            else:
                self._topic_acks[staged.entity_id] = staged.previous_ack

        if staged.previous is None:
            pending.pop(staged.entity_id, None)
        else:
            pending[staged.entity_id] = staged.previous
        if staged.previously_deleted:
            deletions.add(staged.entity_id)
        else:
            deletions.discard(staged.entity_id)
        self._publish()

    def acknowledge(self, staged: StagedWrite) -> None:
        """Record that the store accepted a staged topic write.

        From the next snapshot on, the feed is authoritative for that topic
        even if it no longer matches what was staged.
        """
        if staged.collection is not Collection.TOPICS or staged.value is None:
            return
        if self._pending_topics.get(staged.entity_id) is staged.value:
            self._topic_acks[staged.entity_id] = self._feeds[Collection.TOPICS].last_sequence

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def notes(self) -> list[Note]:
        return self._merge(self._notes, self._pending_notes, self._pending_note_deletions)

    def topics(self) -> list[Topic]:
        return self._merge(self._topics, self._pending_topics, self._pending_topic_deletions)

    @staticmethod
    def _merge(confirmed: list, pending: dict[str, Any], deletions: set[str]) -> list:
        merged = []
        seen: set[str] = set()
        for entity in confirmed:
            seen.add(entity.id)
            if entity.id in deletions:
                continue
            merged.append(pending.get(entity.id, entity))
        merged.extend(e for eid, e in pending.items() if eid not in seen and eid not in deletions)
        return merged

    def get_note(self, note_id: str) -> Note | None:
        return next((n for n in self.notes() if n.id == note_id), None)

    def get_topic(self, topic_id: str) -> Topic | None:
        return next((t for t in self.topics() if t.id == topic_id), None)

    def state(self, collection: Collection) -> SubscriptionState:
        return self._feeds[collection].state

    @property
    def is_live(self) -> bool:
        return all(f.state is SubscriptionState.LIVE for f in self._feeds.values())

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> SyncSnapshot:
        errors = [f.error for f in self._feeds.values() if f.error]
        return SyncSnapshot(
            version=self._version,
            notes=tuple(self.notes()),
            topics=tuple(self.topics()),
            notes_state=self._feeds[Collection.NOTES].state,
            topics_state=self._feeds[Collection.TOPICS].state,
            error=errors[0] if errors else None,
        )

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call ``listener`` with every new snapshot; returns a remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _publish(self) -> None:
        self._version += 1
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener failed", extra={"user_id": self.user_id})
