from __future__ import annotations

from functools import lru_cache

from supabase import AsyncClient, Client, acreate_client, create_client
from supabase.lib.client_options import AsyncClientOptions, ClientOptions

from notekeeper.config import settings
from notekeeper.utils.logging import get_logger

logger = get_logger(__name__)


def _required(name: str) -> str:
    value = getattr(settings, name)
    if not value:
        raise RuntimeError(f"{name} is required to reach Supabase")
    return value


@lru_cache(maxsize=1)
def get_supabase_admin_client() -> Client:
    """Cached service-role client behind the document store and media bucket.

    Row level security is bypassed, so every query issued through it is
    filtered on an explicit ``user_id``.
    """
    logger.debug("Initializing Supabase admin client")
    return create_client(
        settings.supabase_url,
        _required("supabase_service_role_key"),
        options=ClientOptions(auto_refresh_token=False, persist_session=False),
    )


async def create_realtime_client() -> AsyncClient:
    """Open the async client used for realtime channels.

    Only the async client speaks realtime; one instance is shared by every
    live subscription in the process.
    """
    logger.debug("Opening Supabase realtime client")
    return await acreate_client(
        settings.supabase_url,
        _required("supabase_service_role_key"),
        options=AsyncClientOptions(auto_refresh_token=False, persist_session=False),
    )


def create_request_supabase_client(bearer_token: str | None = None) -> Client:
    """Anon-key client for a single request (JWT checks, readiness check)."""
    client = create_client(
        settings.supabase_url,
        _required("supabase_anon_key"),
        options=ClientOptions(auto_refresh_token=False, persist_session=False),
    )
    if bearer_token:
        client.postgrest.auth(bearer_token)
    return client
