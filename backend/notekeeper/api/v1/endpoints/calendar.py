from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from notekeeper.api.v1.schemas.calendar import CalendarEventCreate, CalendarEventRead
from notekeeper.core.schemas.auth import AuthUser  # noqa: TCH001
from notekeeper.core.services.note_gateway import MutationGateway  # noqa: TCH001
from notekeeper.core.services.view_engine import calendar_events
from notekeeper.dependencies import get_current_user, get_gateway

router = APIRouter()


@router.get("/events", response_model=list[CalendarEventRead])
async def list_events(
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    """Standalone events plus one event per note with an event date."""
    standalone = await gateway.list_calendar_events(current_user.id)
    notes = await gateway.list_notes(current_user.id)
    return [CalendarEventRead.model_validate(e) for e in calendar_events(notes, standalone)]


@router.post("/events", response_model=CalendarEventRead, status_code=status.HTTP_201_CREATED)
async def create_event(
    payload: CalendarEventCreate,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    event = await gateway.add_calendar_event(current_user.id, payload.title, payload.start, payload.end)
    return CalendarEventRead.model_validate(event)


@router.delete("/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(
    event_id: str,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    if not await gateway.delete_calendar_event(current_user.id, event_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return None
