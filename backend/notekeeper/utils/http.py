from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import httpx

from notekeeper.core.errors import (
    ExternalServiceError,
    ServiceConnectionError,
    ServiceHTTPError,
    ServiceTimeoutError,
)
from notekeeper.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = get_logger(__name__)


@asynccontextmanager
async def service_client(client: httpx.AsyncClient | None, timeout: float) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the injected client, or a short-lived one with ``timeout``."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=timeout) as owned:
        yield owned


async def post_to_service(
    client: httpx.AsyncClient,
    url: str,
    *,
    service: str,
    timeout: float,
    **kwargs: Any,
) -> dict[str, Any]:
    """POST to a remote service and return its JSON body.

    Timeouts, error statuses and connectivity loss become distinct
    ``ExternalServiceError`` subclasses so callers can word them for users.
    """
    try:
        response = await client.post(url, timeout=timeout, **kwargs)
        response.raise_for_status()
    except httpx.TimeoutException as err:
        logger.warning("%s timed out after %ss", service, timeout)
        raise ServiceTimeoutError(service) from err
    except httpx.HTTPStatusError as err:
        logger.error("%s responded with %s: %s", service, err.response.status_code, err.response.text[:200])
        raise ServiceHTTPError(service, err.response.status_code) from err
    except httpx.TransportError as err:
        logger.warning("%s unreachable (%s): %s", service, type(err).__name__, err)
        raise ServiceConnectionError(service) from err

    try:
        data = response.json()
    except ValueError as err:
        raise ExternalServiceError(service, "The server sent an unreadable response.") from err
    if not isinstance(data, dict):
        raise ExternalServiceError(service, "The server sent an unreadable response.")
    return data
