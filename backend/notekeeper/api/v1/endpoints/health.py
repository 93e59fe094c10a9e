from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends

from notekeeper.config import settings
from notekeeper.core.services.session import SessionRegistry  # noqa: TCH001
from notekeeper.db.base import create_request_supabase_client
from notekeeper.dependencies import get_session_registry

router = APIRouter()


async def _check_database() -> str:
    try:
        client = create_request_supabase_client()
        await asyncio.to_thread(lambda: client.table(settings.notes_table).select("id").limit(1).execute())
    except Exception as e:
        return f"error: {e}"
    return "connected"


@router.get("/")
async def health_check():
    """Liveness check."""
    return {"status": "healthy", "service": "notekeeper-api", "version": "0.1.0"}


@router.get("/ready")
async def readiness_check(registry: SessionRegistry = Depends(get_session_registry)):
    """Readiness check: database reachability plus open sync sessions."""
    return {
        "status": "ready",
        "database": await _check_database(),
        "active_sessions": len(registry),
        "api_prefix": settings.api_prefix,
    }
