from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from notekeeper.api.v1.schemas.note import (
    NoteContentUpdate,
    NoteCreate,
    NoteEventDateUpdate,
    NoteListRead,
    NoteMediaRemove,
    NoteRead,
    NoteTitleUpdate,
    NoteTopicUpdate,
)
from notekeeper.config import settings
from notekeeper.core.errors import NoteNotFoundError
from notekeeper.core.models.note import Note  # noqa: TCH001
from notekeeper.core.schemas.auth import AuthUser  # noqa: TCH001
from notekeeper.core.services.note_gateway import MutationGateway  # noqa: TCH001
from notekeeper.core.services.topic_service import ALL_TOPICS
from notekeeper.core.services.view_engine import build_note_view
from notekeeper.dependencies import get_current_user, get_gateway

router = APIRouter()


async def _require_note(gateway: MutationGateway, user_id: str, note_id: str) -> Note:
    note = await gateway.get_note(user_id, note_id)
    if note is None:
        raise NoteNotFoundError("Note not found")
    return note


@router.get("/", response_model=NoteListRead)
async def list_notes(
    topic_id: str = ALL_TOPICS,
    tag: str | None = None,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    """Notes for the selected topic and tag, newest first, split by status."""
    notes = await gateway.list_notes(current_user.id)
    view = build_note_view(notes, topic_id, tag or None)
    return NoteListRead(
        topic_id=view.topic_id,
        tag=view.tag,
        pinned=[NoteRead.model_validate(n) for n in view.pinned],
        normal=[NoteRead.model_validate(n) for n in view.normal],
        archived=[NoteRead.model_validate(n) for n in view.archived],
    )


@router.post("/", response_model=NoteRead, status_code=status.HTTP_201_CREATED)
async def create_note(
    payload: NoteCreate,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    note = await gateway.create_note(
        current_user.id,
        payload.topic_id,
        title=payload.title,
        content=payload.content,
        event_date=payload.event_date,
    )
    return NoteRead.model_validate(note)


@router.get("/{note_id}", response_model=NoteRead)
async def get_note(
    note_id: str,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    return NoteRead.model_validate(await _require_note(gateway, current_user.id, note_id))


@router.patch("/{note_id}", response_model=NoteRead)
async def rename_note(
    note_id: str,
    payload: NoteTitleUpdate,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    note = await _require_note(gateway, current_user.id, note_id)
    return NoteRead.model_validate(await gateway.rename_note(note, payload.title))


@router.put("/{note_id}/content", response_model=NoteRead)
async def update_note_content(
    note_id: str,
    payload: NoteContentUpdate,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    """Replace the body; the response carries the recomputed tags."""
    note = await _require_note(gateway, current_user.id, note_id)
    return NoteRead.model_validate(await gateway.update_note_content(note, payload.content))


@router.post("/{note_id}/pin", response_model=NoteRead)
async def toggle_pin(
    note_id: str,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    note = await _require_note(gateway, current_user.id, note_id)
    return NoteRead.model_validate(await gateway.toggle_pin(note))


@router.post("/{note_id}/archive", response_model=NoteRead)
async def toggle_archive(
    note_id: str,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    note = await _require_note(gateway, current_user.id, note_id)
    return NoteRead.model_validate(await gateway.toggle_archive(note))


@router.post("/{note_id}/complete", response_model=NoteRead)
async def toggle_completed(
    note_id: str,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    note = await _require_note(gateway, current_user.id, note_id)
    return NoteRead.model_validate(await gateway.toggle_completed(note))


@router.put("/{note_id}/topic", response_model=NoteRead)
async def move_note(
    note_id: str,
    payload: NoteTopicUpdate,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    note = await _require_note(gateway, current_user.id, note_id)
    return NoteRead.model_validate(await gateway.move_note_to_topic(note, payload.topic_id))


@router.put("/{note_id}/event-date", response_model=NoteRead)
async def set_event_date(
    note_id: str,
    payload: NoteEventDateUpdate,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    note = await _require_note(gateway, current_user.id, note_id)
    return NoteRead.model_validate(await gateway.set_event_date(note, payload.event_date))


@router.post("/{note_id}/media", response_model=NoteRead, status_code=status.HTTP_201_CREATED)
async def upload_media(
    note_id: str,
    file: UploadFile = File(...),
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    note = await _require_note(gateway, current_user.id, note_id)
    data = await file.read()
    if not data:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Empty upload")
    if len(data) > settings.max_media_bytes:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File is too large")
    updated = await gateway.add_media(
        note,
        file.filename or "upload",
        data,
        file.content_type or "application/octet-stream",
    )
    return NoteRead.model_validate(updated)


@router.delete("/{note_id}/media", response_model=NoteRead)
async def remove_media(
    note_id: str,
    payload: NoteMediaRemove,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    note = await _require_note(gateway, current_user.id, note_id)
    return NoteRead.model_validate(await gateway.remove_media(note, payload.url))


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    note_id: str,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    note = await _require_note(gateway, current_user.id, note_id)
    await gateway.delete_note(note)
    return None
