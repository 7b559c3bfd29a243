"""Conversation creation and lookup routes."""

from fastapi import APIRouter, Depends, Path

from driftchat.dependencies import get_store
from driftchat.routers.errors import http_error
from driftchat.schemas.common import ApiResponse
from driftchat.schemas.conversation import ConversationCreateRequest, ConversationRead
from driftchat.services.entity_store import EntityStore
from driftchat.services.errors import RelayError

router = APIRouter(prefix="/api/conversations")


@router.post("", response_model=ApiResponse[ConversationRead], status_code=201)
def create_conversation(
    payload: ConversationCreateRequest,
    store: EntityStore = Depends(get_store),
) -> ApiResponse[ConversationRead]:
    """Open a hidden conversation under a live link."""

    try:
        conversation = store.create_conversation(payload.link_id)
    except RelayError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=ConversationRead.model_validate(conversation))


@router.get("/{conversation_id}", response_model=ApiResponse[ConversationRead])
def get_conversation(
    conversation_id: str = Path(..., min_length=1),
    store: EntityStore = Depends(get_store),
) -> ApiResponse[ConversationRead]:
    try:
        conversation = store.get_conversation(conversation_id)
    except RelayError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=ConversationRead.model_validate(conversation))
