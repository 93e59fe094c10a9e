from __future__ import annotations

from fastapi import APIRouter, Depends

from notekeeper.api.v1.schemas.chat import PromptRequest, PromptResponse
from notekeeper.core.schemas.auth import AuthUser  # noqa: TCH001
from notekeeper.core.services.ai_chat_service import AIChatService  # noqa: TCH001
from notekeeper.dependencies import get_ai_chat_service, get_current_user
from notekeeper.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/prompt", response_model=PromptResponse)
async def complete_prompt(
    payload: PromptRequest,
    current_user: AuthUser = Depends(get_current_user),
    chat: AIChatService = Depends(get_ai_chat_service),
):
    """Answer the last complete prompt span in the note text.

    Returns ``triggered: false`` when there is nothing new to send.
    """
    completion = await chat.complete(payload.text, payload.last_key)
    if completion is None:
        return PromptResponse(triggered=False)
    logger.info("Prompt answered", extra={"user_id": current_user.id, "provider": completion.kind.value})
    return PromptResponse(triggered=True, **completion.model_dump())
