from __future__ import annotations

import asyncio
import html
import random
import re
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from notekeeper.core.errors import StoreError, TopicHierarchyError, TopicNotFoundError
from notekeeper.core.models.base import utcnow
from notekeeper.core.models.calendar import CalendarEvent
from notekeeper.core.models.note import CURRENT_SCHEMA_VERSION, DEFAULT_NOTE_TITLE, Note
from notekeeper.core.models.topic import (
    DEFAULT_TOPIC_NAME,
    NO_TOPIC,
    REQUIRED_DEFAULT_TOPICS,
    TOPIC_COLORS,
    VOICE_NOTES,
    Topic,
)
from notekeeper.core.repositories.document_store import Collection
from notekeeper.core.schemas.mutations import TopicDeletionResult
from notekeeper.core.schemas.sync import SubscriptionState
from notekeeper.core.services.content_parser import html_to_text, ordered_tags
from notekeeper.core.services.ingest import coerce_timestamp, ingest_note, ingest_notes, ingest_topic, ingest_topics
from notekeeper.core.services.topic_service import (
    ALL_TOPICS,
    can_delete,
    can_move,
    can_rename,
    descendant_ids,
    missing_default_topics,
    resolve_default_topic_id,
    resolve_topic_hint,
)
from notekeeper.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import datetime

    from notekeeper.core.models.topic import DefaultTopicTemplate
    from notekeeper.core.repositories.blob_storage import BlobStorage
    from notekeeper.core.repositories.document_store import DocumentStore
    from notekeeper.core.services.sync_service import NoteSyncService, StagedWrite

logger = get_logger(__name__)

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")


class MutationGateway:
    """Single writer to the document store.

    Applies the note/topic invariants before writing: tags follow content,
    pinned and archived are exclusive, every note points at an existing
    topic. When a sync service is attached, successful writes are staged
    optimistically and failed ones rolled back.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        blobs: BlobStorage | None = None,
        sync: NoteSyncService | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._blobs = blobs
        self._sync = sync
        self._clock = clock

    # ------------------------------------------------------------------
    # Reads (snapshot first, store fallback)
    # ------------------------------------------------------------------

    def _live_sync(self, user_id: str, collection: Collection) -> NoteSyncService | None:
        sync = self._sync
        if sync is None or sync.user_id != user_id or sync.state(collection) is not SubscriptionState.LIVE:
            return None
        return sync

    async def list_topics(self, user_id: str) -> list[Topic]:
        sync = self._live_sync(user_id, Collection.TOPICS)
        if sync is not None:
            return sync.topics()
        return ingest_topics(await self._store.fetch_all(Collection.TOPICS, user_id))

    async def list_notes(self, user_id: str) -> list[Note]:
        sync = self._live_sync(user_id, Collection.NOTES)
        if sync is not None:
            return sync.notes()
        return ingest_notes(await self._store.fetch_all(Collection.NOTES, user_id), self._clock())

    async def get_note(self, user_id: str, note_id: str) -> Note | None:
        """Return the note if it exists and belongs to the user; otherwise None."""
        sync = self._live_sync(user_id, Collection.NOTES)
        if sync is not None:
            note = sync.get_note(note_id)
        else:
            row = await self._store.get(Collection.NOTES, note_id)
            note = ingest_note(row, self._clock()) if row else None
        if note and note.user_id == user_id:
            return note
        return None

    async def get_topic(self, user_id: str, topic_id: str) -> Topic | None:
        sync = self._live_sync(user_id, Collection.TOPICS)
        if sync is not None:
            topic = sync.get_topic(topic_id)
        else:
            row = await self._store.get(Collection.TOPICS, topic_id)
            topic = ingest_topic(row) if row else None
        if topic and topic.user_id == user_id:
            return topic
        return None

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    async def create_note(
        self,
        user_id: str,
        topic_hint: str | None = ALL_TOPICS,
        *,
        title: str | None = None,
        content: str = "",
        event_date: datetime | None = None,
    ) -> Note:
        """Create a note in the hinted topic ("all" means "No Topic")."""
        topics = await self.list_topics(user_id)
        topic_id = resolve_topic_hint(topics, topic_hint)
        if topic_id is None:
            if topic_hint not in (None, "", ALL_TOPICS):
                raise TopicNotFoundError(f"Topic {topic_hint} does not exist")
            topic_id = await self._default_topic_id(user_id, topics, NO_TOPIC)
        return await self._insert_note(
            user_id,
            topic_id,
            title=title,
            content=content,
            event_date=event_date,
        )

    async def create_voice_note(self, user_id: str, transcript: str) -> Note:
        """Store a transcription as a new note in "Voice Notes"."""
        topics = await self.list_topics(user_id)
        topic_id = await self._default_topic_id(user_id, topics, VOICE_NOTES)
        now = self._clock()
        content = "".join(
            f"<p>{html.escape(line)}</p>" for line in transcript.strip().splitlines() if line.strip()
        )
        return await self._insert_note(
            user_id,
            topic_id,
            title=f"Voice Note {now:%Y-%m-%d %H:%M}",
            content=content,
            is_voice_note=True,
        )

    async def _insert_note(
        self,
        user_id: str,
        topic_id: str,
        *,
        title: str | None,
        content: str,
        event_date: datetime | None = None,
        is_voice_note: bool = False,
    ) -> Note:
        now = self._clock()
        record: dict[str, Any] = {
            "user_id": user_id,
            "topic_id": topic_id,
            "title": _normalize_title(title),
            "content": content,
            "tags": ordered_tags(html_to_text(content)),
            "completed": False,
            "pinned": False,
            "archived": False,
            "is_voice_note": is_voice_note,
            "event_date": event_date,
            "media": [],
            "created_at": now,
            "updated_at": now,
            "schema_version": CURRENT_SCHEMA_VERSION,
        }
        try:
            note_id = await self._store.create(Collection.NOTES, record)
        except StoreError as err:
            self._log_failure("create note", None, err)
            raise
        note = Note.model_validate({**record, "id": note_id})
        self._stage(user_id, lambda sync: sync.stage_note(note))
        logger.info("Note created", extra={"note_id": note.id, "user_id": user_id, "topic_id": topic_id})
        return note

    async def update_note_content(self, note: Note, content: str) -> Note:
        """Replace the body; tags are recomputed from its plain text."""
        content = content or ""
        return await self._write_note(
            note,
            {"content": content, "tags": ordered_tags(html_to_text(content))},
        )

    async def rename_note(self, note: Note, title: str | None) -> Note:
        return await self._write_note(note, {"title": _normalize_title(title)})

    async def toggle_pin(self, note: Note) -> Note:
        pinned = not note.pinned
        # One write carrying both flags
        return await self._write_note(note, {"pinned": pinned, "archived": False if pinned else note.archived})

    async def toggle_archive(self, note: Note) -> Note:
        archived = not note.archived
        return await self._write_note(note, {"archived": archived, "pinned": False if archived else note.pinned})

    async def toggle_completed(self, note: Note) -> Note:
        return await self._write_note(note, {"completed": not note.completed})

    async def set_event_date(self, note: Note, when: datetime | None) -> Note:
        """Attach the note to a calendar day, or detach it with None."""
        return await self._write_note(note, {"event_date": coerce_timestamp(when) if when else None})

    async def move_note_to_topic(self, note: Note, topic_id: str) -> Note:
        if topic_id == note.topic_id:
            return note
        topics = await self.list_topics(note.user_id)
        if not any(t.id == topic_id for t in topics):
            raise TopicNotFoundError(f"Topic {topic_id} does not exist")
        return await self._write_note(note, {"topic_id": topic_id})

    async def delete_note(self, note: Note) -> None:
        """Hard-delete a note. Confirmation is the caller's job."""
        staged = self._stage(note.user_id, lambda sync: sync.stage_note_deletion(note.id))
        try:
            await self._store.delete(Collection.NOTES, note.id)
        except StoreError as err:
            self._rollback(staged)
            self._log_failure("delete note", note.id, err)
            raise
        logger.info("Note deleted", extra={"note_id": note.id, "user_id": note.user_id})

    async def add_media(self, note: Note, filename: str, data: bytes, content_type: str) -> Note:
        blobs = self._require_blobs()
        safe_name = _UNSAFE_FILENAME.sub("_", filename or "upload").strip("_") or "upload"
        path = f"{note.user_id}/{note.id}/{uuid4().hex[:12]}-{safe_name}"
        try:
            url = await blobs.upload(path, data, content_type)
        except StoreError as err:
            self._log_failure("upload media", note.id, err)
            raise
        try:
            return await self._write_note(note, {"media": [*note.media, url]})
        except StoreError:
            await self._delete_blob(path, note.id)
            raise

    async def remove_media(self, note: Note, url: str) -> Note:
        """Detach ``url`` from the note, then delete the blob behind it."""
        if url not in note.media:
            return note
        blobs = self._require_blobs()
        updated = await self._write_note(note, {"media": [m for m in note.media if m != url]})
        path = blobs.path_for_url(url)
        if path:
            await self._delete_blob(path, note.id)
        return updated

    async def _write_note(self, note: Note, changes: dict[str, Any]) -> Note:
        # updated_at always comes from the write path
        changes = {**changes, "updated_at": self._clock()}
        updated = note.model_copy(update=changes)
        staged = self._stage(note.user_id, lambda sync: sync.stage_note(updated))
        try:
            await self._store.update(Collection.NOTES, note.id, changes)
        except StoreError as err:
            self._rollback(staged)
            self._log_failure("update note", note.id, err)
            raise
        return updated

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------

    async def add_topic(
        self,
        user_id: str,
        name: str = DEFAULT_TOPIC_NAME,
        description: str = "",
        color: str | None = None,
        parent_id: str | None = None,
    ) -> Topic:
        if parent_id:
            await self._require_parent(user_id, parent_id)
        record = {
            "user_id": user_id,
            "name": (name or "").strip() or DEFAULT_TOPIC_NAME,
            "description": description or "",
            "color": color or random.choice(TOPIC_COLORS),
            "is_default": False,
            "order": 0,
            "parent_id": parent_id or None,
        }
        return await self._insert_topic(record)

    async def rename_topic(self, topic: Topic, name: str | None, description: str | None = None) -> Topic | None:
        """Rename a user topic. Default topics are left alone (returns None)."""
        if not can_rename(topic):
            logger.info("Ignoring rename of default topic", extra={"topic_id": topic.id})
            return None
        changes: dict[str, Any] = {}
        new_name = (name or "").strip()
        if new_name and new_name != topic.name:
            changes["name"] = new_name
        if description is not None and description != topic.description:
            changes["description"] = description
        if not changes:
            return topic
        return await self._write_topic(topic, changes, "rename topic")

    async def move_topic(self, topic: Topic, parent_id: str | None) -> Topic | None:
        """Nest a user topic under ``parent_id``, or make it a root with None.

        Default topics stay where they are (returns None). Moving a topic
        under itself or one of its own subtopics raises TopicHierarchyError.
        """
        if not can_move(topic):
            logger.info("Ignoring move of default topic", extra={"topic_id": topic.id})
            return None
        parent_id = parent_id or None
        if parent_id == topic.parent_id:
            return topic
        if parent_id is not None:
            if parent_id == topic.id:
                raise TopicHierarchyError("A topic cannot be nested under itself")
            await self._require_parent(topic.user_id, parent_id)
            if parent_id in descendant_ids(await self.list_topics(topic.user_id), topic.id):
                raise TopicHierarchyError("A topic cannot be nested under one of its subtopics")
        return await self._write_topic(topic, {"parent_id": parent_id}, "move topic")

    async def delete_topic(self, topic: Topic) -> TopicDeletionResult:
        """Delete a user topic after moving its notes to "No Topic".

        Notes are reassigned with one write each, concurrently; subtopics
        move up to the deleted topic's parent the same way. Failures are
        logged per item; if anything could not be moved the topic is kept
        so that no note or subtopic ever points at a missing topic.
        """
        if not can_delete(topic):
            logger.info("Ignoring delete of default topic", extra={"topic_id": topic.id})
            return TopicDeletionResult(topic_id=topic.id)

        user_id = topic.user_id
        topics = await self.list_topics(user_id)
        fallback_id = await self._default_topic_id(user_id, topics, NO_TOPIC)
        children = [t for t in topics if t.parent_id == topic.id and t.id != topic.id]

        rows = await self._store.fetch_all(Collection.NOTES, user_id, where={"topic_id": topic.id})
        notes = ingest_notes(rows, self._clock())
        outcomes = await asyncio.gather(
            *(self._write_note(note, {"topic_id": fallback_id}) for note in notes),
            *(self._write_topic(child, {"parent_id": topic.parent_id}, "reparent topic") for child in children),
            return_exceptions=True,
        )

        result = TopicDeletionResult(topic_id=topic.id, fallback_topic_id=fallback_id)
        for note, outcome in zip(notes, outcomes[:len(notes)], strict=True):
            if isinstance(outcome, BaseException):
                result.failed.append(note.id)
                logger.error(
                    "Could not reassign note %s from topic %s: %s",
                    note.id,
                    topic.id,
                    outcome,
                    extra={"user_id": user_id},
                )
            else:
                result.reassigned.append(note.id)
        for child, outcome in zip(children, outcomes[len(notes):], strict=True):
            if isinstance(outcome, BaseException):
                result.failed_subtopics.append(child.id)
                logger.error(
                    "Could not move subtopic %s out of topic %s: %s",
                    child.id,
                    topic.id,
                    outcome,
                    extra={"user_id": user_id},
                )
            else:
                result.reparented.append(child.id)

        if result.failed or result.failed_subtopics:
            logger.error(
                "Topic %s kept: %d of %d notes and %d of %d subtopics could not be moved",
                topic.id,
                len(result.failed),
                len(notes),
                len(result.failed_subtopics),
                len(children),
                extra={"user_id": user_id},
            )
            return result

        staged = self._stage(user_id, lambda sync: sync.stage_topic_deletion(topic.id))
        try:
            await self._store.delete(Collection.TOPICS, topic.id)
        except StoreError as err:
            self._rollback(staged)
            self._log_failure("delete topic", topic.id, err)
            raise
        result.deleted = True
        logger.info(
            "Topic deleted",
            extra={
                "topic_id": topic.id,
                "user_id": user_id,
                "reassigned": len(result.reassigned),
                "reparented": len(result.reparented),
            },
        )
        return result

    async def ensure_default_topics(self, user_id: str, topics: Sequence[Topic] | None = None) -> list[Topic]:
        """Create whichever required default topics the user is missing."""
        if topics is None:
            topics = await self.list_topics(user_id)
        return await self.provision_default_topics(user_id, missing_default_topics(topics))

    async def provision_default_topics(self, user_id: str, templates: Sequence[DefaultTopicTemplate]) -> list[Topic]:
        created: list[Topic] = []
        for template in templates:
            record = {
                "user_id": user_id,
                "name": template.name,
                "description": "",
                "color": template.color,
                "is_default": True,
                "order": template.order,
            }
            created.append(await self._insert_topic(record))
        return created

    async def _default_topic_id(self, user_id: str, topics: Sequence[Topic], name: str) -> str:
        topic_id = resolve_default_topic_id(topics, name)
        if topic_id is not None:
            return topic_id
        template = next(s for s in REQUIRED_DEFAULT_TOPICS if s.name == name)
        created = await self.provision_default_topics(user_id, [template])
        return created[0].id

    async def _write_topic(self, topic: Topic, changes: dict[str, Any], action: str) -> Topic:
        updated = topic.model_copy(update=changes)
        staged = self._stage(topic.user_id, lambda sync: sync.stage_topic(updated))
        try:
            await self._store.update(Collection.TOPICS, topic.id, changes)
        except StoreError as err:
            self._rollback(staged)
            self._log_failure(action, topic.id, err)
            raise
        self._acknowledge(staged)
        return updated

    async def _require_parent(self, user_id: str, parent_id: str) -> Topic:
        parent = await self.get_topic(user_id, parent_id)
        if parent is None:
            raise TopicNotFoundError(f"Topic {parent_id} not found")
        if parent.is_default:
            raise TopicHierarchyError(f"{parent.name} cannot hold subtopics")
        return parent

    async def _insert_topic(self, record: dict[str, Any]) -> Topic:
        try:
            topic_id = await self._store.create(Collection.TOPICS, record)
        except StoreError as err:
            self._log_failure("create topic", None, err)
            raise
        topic = Topic.model_validate({**record, "id": topic_id})
        self._acknowledge(self._stage(topic.user_id, lambda sync: sync.stage_topic(topic)))
        logger.info("Topic created", extra={"topic_id": topic.id, "user_id": topic.user_id, "default": topic.is_default})
        return topic

    # ------------------------------------------------------------------
    # Standalone calendar events
    # ------------------------------------------------------------------

    async def list_calendar_events(self, user_id: str) -> list[CalendarEvent]:
        rows = await self._store.fetch_all(Collection.CALENDAR_EVENTS, user_id)
        events: list[CalendarEvent] = []
        for row in rows:
            start = coerce_timestamp(row.get("start"))
            end = coerce_timestamp(row.get("end")) or start
            if start is None or end is None or end < start:
                logger.warning("Skipping malformed calendar event", extra={"event_id": row.get("id")})
                continue
            events.append(CalendarEvent(id=str(row.get("id")), title=row.get("title") or "", start=start, end=end))
        return events

    async def add_calendar_event(self, user_id: str, title: str, start: datetime, end: datetime) -> CalendarEvent:
        start = coerce_timestamp(start)
        end = coerce_timestamp(end)
        if start is None or end is None or end < start:
            raise ValueError("Event end must not precede its start")
        record = {"user_id": user_id, "title": (title or "").strip(), "start": start, "end": end}
        try:
            event_id = await self._store.create(Collection.CALENDAR_EVENTS, record)
        except StoreError as err:
            self._log_failure("create calendar event", None, err)
            raise
        return CalendarEvent(id=event_id, title=record["title"], start=start, end=end)

    async def delete_calendar_event(self, user_id: str, event_id: str) -> bool:
        row = await self._store.get(Collection.CALENDAR_EVENTS, event_id)
        if not row or str(row.get("user_id")) != user_id:
            return False
        try:
            await self._store.delete(Collection.CALENDAR_EVENTS, event_id)
        except StoreError as err:
            self._log_failure("delete calendar event", event_id, err)
            raise
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _stage(self, user_id: str, action: Callable[[NoteSyncService], StagedWrite]) -> StagedWrite | None:
        if self._sync is None or self._sync.user_id != user_id or self._sync.closed:
            return None
        return action(self._sync)

    def _rollback(self, staged: StagedWrite | None) -> None:
        if staged is not None and self._sync is not None:
            self._sync.rollback(staged)

    def _acknowledge(self, staged: StagedWrite | None) -> None:
        if staged is not None and self._sync is not None:
            self._sync.acknowledge(staged)

    def _require_blobs(self) -> BlobStorage:
        if self._blobs is None:
            raise RuntimeError("Media storage is not configured")
        return self._blobs

    async def _delete_blob(self, path: str, note_id: str) -> None:
        try:
            await self._require_blobs().delete(path)
        except StoreError as err:
            # The note no longer references it; an orphaned blob is tolerable
            self._log_failure("delete media blob", note_id, err)

    @staticmethod
    def _log_failure(action: str, entity_id: str | None, err: StoreError) -> None:
        level = logger.warning if err.transient else logger.error
        level(
            "Failed to %s (%s): %s",
            action,
            err.kind,
            err,
            extra={"entity_id": entity_id, "transient": err.transient},
        )


def _normalize_title(title: str | None) -> str:
    return (title or "").strip() or DEFAULT_NOTE_TITLE
