from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import openai

from notekeeper.config import settings
from notekeeper.core.errors import (
    ExternalServiceError,
    ServiceConnectionError,
    ServiceHTTPError,
    ServiceTimeoutError,
)
from notekeeper.core.models.base import AppBaseModel
from notekeeper.core.services.content_parser import PromptKind, PromptTrigger, replace_prompt_span
from notekeeper.utils.http import post_to_service, service_client
from notekeeper.utils.logging import get_logger
from notekeeper.utils.openai_client import get_openai_client

if TYPE_CHECKING:
    import httpx
    from openai import AsyncOpenAI

    from notekeeper.core.services.content_parser import PromptSpan

logger = get_logger(__name__)


def format_prompt(span: PromptSpan) -> str:
    """Prompt sent to a provider: the request first, the note so far as context."""
    return f"User asked / ordered: {span.prompt}\n{span.preceding_text}"


class PromptCompletion(AppBaseModel):
    kind: PromptKind
    prompt: str
    key: str
    response: str
    text: str


class ChatProvider(ABC):
    """One AI backend reachable through a prompt delimiter."""

    name: str

    @abstractmethod
    async def complete(self, prompt: str) -> str:  # pragma: no cover - interface only
        """Return the provider's answer to ``prompt``."""


class HttpChatProvider(ChatProvider):
    """Proxy backend speaking ``POST /api/chat {"prompt"} -> {"response"}``."""

    def __init__(
        self,
        name: str,
        base_url: str,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.name = name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout or settings.ai_chat_timeout
        self._client = client

    async def complete(self, prompt: str) -> str:
        logger.info("Sending prompt to %s (%d chars)", self.name, len(prompt))
        async with service_client(self._client, self._timeout) as client:
            data = await post_to_service(
                client,
                f"{self._base_url}/api/chat",
                service=self.name,
                timeout=self._timeout,
                json={"prompt": prompt},
            )
        response = data.get("response")
        if not isinstance(response, str):
            raise ExternalServiceError(self.name, "The server sent an unreadable response.")
        return response


class OpenAIChatProvider(ChatProvider):
    """Talk to OpenAI directly with the Responses API."""

    name = PromptKind.OPENAI.value

    def __init__(self, client: AsyncOpenAI, model: str | None = None) -> None:
        self._client = client
        self._model = model or settings.openai_chat_model

    async def complete(self, prompt: str) -> str:
        logger.info("Sending prompt to OpenAI model %s (%d chars)", self._model, len(prompt))
        try:
            response = await self._client.responses.create(model=self._model, input=prompt)
        except openai.APITimeoutError as err:
            raise ServiceTimeoutError(self.name) from err
        except openai.APIConnectionError as err:
            raise ServiceConnectionError(self.name) from err
        except openai.APIStatusError as err:
            logger.error("OpenAI responded with %s: %s", err.status_code, err.message)
            raise ServiceHTTPError(self.name, err.status_code) from err
        return response.output_text


class AIChatService:
    """Answer the prompt a user embedded in their note."""

    def __init__(self, providers: dict[PromptKind, ChatProvider]) -> None:
        self._providers = providers

    @classmethod
    def from_settings(cls) -> AIChatService:
        providers: dict[PromptKind, ChatProvider] = {
            PromptKind.OPENAI: HttpChatProvider(PromptKind.OPENAI.value, settings.openai_chat_url),
            PromptKind.ANTHROPIC: HttpChatProvider(PromptKind.ANTHROPIC.value, settings.anthropic_chat_url),
            PromptKind.PERPLEXITY: HttpChatProvider(PromptKind.PERPLEXITY.value, settings.perplexity_chat_url),
        }
        if settings.openai_api_key:
            providers[PromptKind.OPENAI] = OpenAIChatProvider(get_openai_client())
        return cls(providers)

    async def complete(self, text: str, last_key: str | None = None) -> PromptCompletion | None:
        """Run the actionable prompt in ``text`` unless it already ran.

        ``last_key`` is the key of the prompt the caller fired last; the same
        prompt is not sent twice while the user keeps typing.
        """
        trigger = PromptTrigger()
        trigger.last_key = last_key
        span = trigger.feed(text)
        if span is None:
            return None

        provider = self._providers.get(span.kind)
        if provider is None:
            raise ExternalServiceError(span.kind.value, "This AI provider is not configured.")

        response = await provider.complete(format_prompt(span))
        return PromptCompletion(
            kind=span.kind,
            prompt=span.prompt,
            key=span.key,
            response=response,
            text=replace_prompt_span(text, span, response),
        )
