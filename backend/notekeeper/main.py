from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .api.errors import register_exception_handlers
from .api.v1.router import api_router
from .config import settings
from .core.services.session import SessionRegistry
from .dependencies import build_supabase_session
from .utils.logging import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from .core.services.session import NoteSession

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    # Realtime channels must be released while the loop is still running
    logger.info("Shutting down %d sync session(s)", len(app.state.sessions))
    await app.state.sessions.close_all()


def _install_middleware(app: FastAPI) -> None:
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_hosts)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=settings.cors_origin_regex,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Authorization", "Content-Type", "Last-Event-ID"],
        expose_headers=["Retry-After"],
        max_age=600,
    )


def create_app(session_factory: Callable[[str], NoteSession] | None = None) -> FastAPI:
    """Build the API. ``session_factory`` replaces the Supabase-backed sessions in tests."""
    setup_logging()

    app = FastAPI(
        title="Notekeeper API",
        debug=settings.debug,
        version="0.1.0",
        root_path=settings.root_path or "",
        lifespan=lifespan,
    )
    app.state.sessions = SessionRegistry(session_factory or build_supabase_session)

    _install_middleware(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()
