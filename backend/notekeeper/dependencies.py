from __future__ import annotations

import asyncio
from functools import lru_cache
from typing import TYPE_CHECKING

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from notekeeper.core.repositories.implementations.supabase.blob_storage import SupabaseBlobStorage
from notekeeper.core.repositories.implementations.supabase.document_store import (
    SupabaseDocumentStore,
)
from notekeeper.core.repositories.implementations.supabase.live_query import SupabaseLiveQuery
from notekeeper.core.schemas.auth import AuthUser
from notekeeper.core.services.ai_chat_service import AIChatService
from notekeeper.core.services.session import NoteSession, SessionRegistry
from notekeeper.core.services.transcription_service import TranscriptionService
from notekeeper.db.base import (
    create_realtime_client,
    create_request_supabase_client,
    get_supabase_admin_client,
)
from notekeeper.utils.logging import get_logger

logger = get_logger(__name__)

http_bearer = HTTPBearer(auto_error=False)

if TYPE_CHECKING:
    from notekeeper.core.services.note_gateway import MutationGateway
    from notekeeper.core.services.sync_service import NoteSyncService


@lru_cache(maxsize=1)
def get_live_query() -> SupabaseLiveQuery:
    """Process-wide realtime feed; one websocket shared by every session."""
    return SupabaseLiveQuery(create_realtime_client)


def build_supabase_session(user_id: str) -> NoteSession:
    """Wire a user's session to the Supabase store, feed and bucket."""
    client = get_supabase_admin_client()
    return NoteSession(
        user_id,
        SupabaseDocumentStore(client),
        get_live_query(),
        SupabaseBlobStorage(client),
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(http_bearer),
) -> AuthUser:
    """Resolve the bearer token to a Supabase user; every failure is a 401."""
    if not credentials:
        raise _unauthorized("Authentication required")
    jwt = credentials.credentials
    if not jwt or jwt.count(".") != 2:
        raise _unauthorized("Invalid token format")

    supabase = create_request_supabase_client(jwt)
    try:
        resp = await asyncio.to_thread(supabase.auth.get_user, jwt)
    except Exception as err:
        reason = str(err).lower()
        logger.warning("Token rejected by Supabase: %s", type(err).__name__, extra={"reason": reason[:100]})
        expired = "invalid" in reason or "expired" in reason
        raise _unauthorized("Token is invalid or expired" if expired else "Authentication failed") from err

    user = getattr(resp, "user", None)
    if user is None or not getattr(user, "id", None):
        raise _unauthorized("Invalid user data")
    return AuthUser(id=str(user.id), email=getattr(user, "email", None), role=getattr(user, "role", None))


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


async def get_session(
    current_user: AuthUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> NoteSession:
    """The caller's sync session, started on first request after sign-in."""
    return await registry.get(current_user.id)


def get_sync(session: NoteSession = Depends(get_session)) -> NoteSyncService:
    return session.sync


def get_gateway(session: NoteSession = Depends(get_session)) -> MutationGateway:
    return session.gateway


@lru_cache(maxsize=1)
def get_transcription_service() -> TranscriptionService:
    return TranscriptionService()


@lru_cache(maxsize=1)
def get_ai_chat_service() -> AIChatService:
    return AIChatService.from_settings()
