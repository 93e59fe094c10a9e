from __future__ import annotations

from fastapi import APIRouter, Depends

from notekeeper.api.v1.schemas.note import NoteRead
from notekeeper.core.schemas.auth import AuthUser  # noqa: TCH001
from notekeeper.core.services.note_gateway import MutationGateway  # noqa: TCH001
from notekeeper.core.services.view_engine import collect_all_tags, sort_by_recency, upcoming_dated
from notekeeper.dependencies import get_current_user, get_gateway

router = APIRouter()


@router.get("/tags", response_model=list[str])
async def list_tags(
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
) -> list[str]:
    """Every tag used across the user's notes, for the tag filter."""
    notes = await gateway.list_notes(current_user.id)
    return sorted(collect_all_tags(notes))


@router.get("/upcoming", response_model=list[NoteRead])
async def list_upcoming(
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    """Notes whose body carries a ``[DD/MM]`` due date."""
    notes = await gateway.list_notes(current_user.id)
    return [NoteRead.model_validate(n) for n in sort_by_recency(upcoming_dated(notes))]
