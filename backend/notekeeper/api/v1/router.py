from __future__ import annotations

from fastapi import APIRouter

from .endpoints import calendar, chat, health, metadata, notes, sync, topics, voice

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(sync.router, prefix="/sync", tags=["sync"])
api_router.include_router(topics.router, prefix="/topics", tags=["topics"])
api_router.include_router(notes.router, prefix="/notes", tags=["notes"])
api_router.include_router(metadata.router, prefix="/metadata", tags=["metadata"])
api_router.include_router(calendar.router, prefix="/calendar", tags=["calendar"])
api_router.include_router(voice.router, prefix="/voice", tags=["voice"])
api_router.include_router(chat.router, prefix="/chat", tags=["chat"])
