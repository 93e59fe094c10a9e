from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import status
from fastapi.responses import JSONResponse

from notekeeper.core.errors import (
    ExternalServiceError,
    NoteNotFoundError,
    ServiceTimeoutError,
    StoreError,
    TopicHierarchyError,
    TopicNotFoundError,
)
from notekeeper.utils.logging import get_logger

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = get_logger(__name__)

GENERIC_FAILURE = "Something went wrong. Please reload and try again."


async def _not_found(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


async def _unprocessable(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": str(exc)})


async def _store_error(request: Request, exc: StoreError) -> JSONResponse:
    if exc.transient:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Could not reach your notes. Please try again.", "retryable": True},
            headers={"Retry-After": "2"},
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Your change could not be saved.", "retryable": False},
    )


async def _external_service_error(request: Request, exc: ExternalServiceError) -> JSONResponse:
    code = status.HTTP_504_GATEWAY_TIMEOUT if isinstance(exc, ServiceTimeoutError) else status.HTTP_502_BAD_GATEWAY
    return JSONResponse(
        status_code=code,
        content={"detail": exc.user_message, "service": exc.service, "error": type(exc).__name__},
    )


async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": GENERIC_FAILURE},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Top-level error boundary: nothing escapes as a bare stack trace."""
    app.add_exception_handler(TopicNotFoundError, _not_found)
    app.add_exception_handler(NoteNotFoundError, _not_found)
    app.add_exception_handler(TopicHierarchyError, _unprocessable)
    app.add_exception_handler(StoreError, _store_error)
    app.add_exception_handler(ExternalServiceError, _external_service_error)
    app.add_exception_handler(Exception, _unhandled)
