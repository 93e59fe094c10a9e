from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from notekeeper.api.v1.schemas.note import NoteRead
from notekeeper.config import settings
from notekeeper.core.schemas.auth import AuthUser  # noqa: TCH001
from notekeeper.core.services.note_gateway import MutationGateway  # noqa: TCH001
from notekeeper.core.services.transcription_service import TranscriptionService  # noqa: TCH001
from notekeeper.dependencies import get_current_user, get_gateway, get_transcription_service

router = APIRouter()


@router.post("/transcribe", response_model=NoteRead, status_code=status.HTTP_201_CREATED)
async def transcribe_recording(
    audio: UploadFile = File(...),
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
    transcription: TranscriptionService = Depends(get_transcription_service),
):
    """Transcribe a recording and file it as a note under "Voice Notes"."""
    data = await audio.read()
    if len(data) > settings.max_audio_bytes:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="Recording is too large")
    try:
        transcript = await transcription.transcribe(
            data,
            filename=audio.filename or "recording.webm",
            content_type=audio.content_type or "audio/webm",
        )
    except ValueError as err:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(err)) from err
    note = await gateway.create_voice_note(current_user.id, transcript)
    return NoteRead.model_validate(note)
