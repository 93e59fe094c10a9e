from __future__ import annotations

from functools import lru_cache

from openai import AsyncOpenAI

from notekeeper.config import settings
from notekeeper.utils.logging import get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_openai_client() -> AsyncOpenAI:
    """Shared OpenAI client for the direct "openai" prompt provider.

    Only built when ``APP_OPENAI_API_KEY`` is set; without it that provider
    goes through the HTTP proxy instead.
    """
    if not settings.openai_api_key:
        raise RuntimeError("APP_OPENAI_API_KEY is not configured")
    logger.debug("Initializing OpenAI client (timeout=%ss)", settings.ai_chat_timeout)
    return AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.ai_chat_timeout)
