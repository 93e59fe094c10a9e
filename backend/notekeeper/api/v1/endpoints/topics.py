from __future__ import annotations

from fastapi import APIRouter, Depends, status

from notekeeper.api.v1.schemas.topic import TopicCreate, TopicDeletionRead, TopicMove, TopicRead, TopicUpdate
from notekeeper.core.errors import TopicNotFoundError
from notekeeper.core.models.topic import Topic  # noqa: TCH001
from notekeeper.core.schemas.auth import AuthUser  # noqa: TCH001
from notekeeper.core.services.note_gateway import MutationGateway  # noqa: TCH001
from notekeeper.core.services.topic_service import sort_topics, topic_depths
from notekeeper.dependencies import get_current_user, get_gateway

router = APIRouter()


async def _require_topic(gateway: MutationGateway, user_id: str, topic_id: str) -> Topic:
    topic = await gateway.get_topic(user_id, topic_id)
    if topic is None:
        raise TopicNotFoundError("Topic not found")
    return topic


@router.get("/", response_model=list[TopicRead])
async def list_topics(
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    """User topics alphabetically, then the default topics; subtopics follow their parent."""
    topics = await gateway.list_topics(current_user.id)
    depths = topic_depths(topics)
    return [
        TopicRead.model_validate(t).model_copy(update={"depth": depths.get(t.id, 0)})
        for t in sort_topics(topics)
    ]


@router.post("/", response_model=TopicRead, status_code=status.HTTP_201_CREATED)
async def create_topic(
    payload: TopicCreate,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    topic = await gateway.add_topic(
        current_user.id, payload.name, payload.description, parent_id=payload.parent_id
    )
    return TopicRead.model_validate(topic)


@router.patch("/{topic_id}", response_model=TopicRead)
async def update_topic(
    topic_id: str,
    payload: TopicUpdate,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    """Rename a user topic; default topics come back unchanged."""
    topic = await _require_topic(gateway, current_user.id, topic_id)
    updated = await gateway.rename_topic(topic, payload.name, payload.description)
    return TopicRead.model_validate(updated or topic)


@router.put("/{topic_id}/parent", response_model=TopicRead)
async def move_topic(
    topic_id: str,
    payload: TopicMove,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    """Nest a topic under another one, or make it a root with ``parent_id: null``."""
    topic = await _require_topic(gateway, current_user.id, topic_id)
    moved = await gateway.move_topic(topic, payload.parent_id)
    return TopicRead.model_validate(moved or topic)


@router.delete("/{topic_id}", response_model=TopicDeletionRead)
async def delete_topic(
    topic_id: str,
    current_user: AuthUser = Depends(get_current_user),
    gateway: MutationGateway = Depends(get_gateway),
):
    """Move the topic's notes to "No Topic" and its subtopics up a level, then delete it.

    The topic survives when anything could not be moved; the response
    lists those under ``failed`` and ``failed_subtopics``. Default topics are never
    deleted (``deleted: false``).
    """
    topic = await _require_topic(gateway, current_user.id, topic_id)
    result = await gateway.delete_topic(topic)
    return TopicDeletionRead.model_validate(result)
