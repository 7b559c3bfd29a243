"""Link creation and lookup routes."""

from fastapi import APIRouter, Depends, Path

from driftchat.dependencies import get_store
from driftchat.routers.errors import http_error
from driftchat.schemas.common import ApiResponse
from driftchat.schemas.conversation import ConversationRead
from driftchat.schemas.link import LinkCreated, LinkRead, LinkVerification
from driftchat.services.entity_store import EntityStore
from driftchat.services.errors import LinkNotFoundError, RelayError

router = APIRouter(prefix="/api/links")


@router.post("", response_model=ApiResponse[LinkCreated], status_code=201)
def create_link(store: EntityStore = Depends(get_store)) -> ApiResponse[LinkCreated]:
    """Create a shareable link and return its creator token."""

    try:
        link = store.create_link()
    except RelayError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=LinkCreated(link_id=link.id, creator_token=link.creator_id))


@router.get("/{link_id}", response_model=ApiResponse[LinkRead])
def get_link(
    link_id: str = Path(..., min_length=1),
    store: EntityStore = Depends(get_store),
) -> ApiResponse[LinkRead]:
    try:
        link = store.get_link(link_id)
    except RelayError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=LinkRead.model_validate(link))


@router.get("/{link_id}/verify", response_model=ApiResponse[LinkVerification])
def verify_link(
    link_id: str = Path(..., min_length=1),
    store: EntityStore = Depends(get_store),
) -> ApiResponse[LinkVerification]:
    """Report whether a link can still be used; never 404s."""

    try:
        link = store.get_link(link_id)
    except LinkNotFoundError:
        return ApiResponse(data=LinkVerification(exists=False))
    return ApiResponse(data=LinkVerification(exists=True, link=LinkRead.model_validate(link)))


@router.get("/{link_id}/conversations", response_model=ApiResponse[list[ConversationRead]])
def list_link_conversations(
    link_id: str = Path(..., min_length=1),
    store: EntityStore = Depends(get_store),
) -> ApiResponse[list[ConversationRead]]:
    """List the link's visible conversations in the order they appeared."""

    try:
        conversations = store.list_visible_conversations(link_id)
    except RelayError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=[ConversationRead.model_validate(c) for c in conversations])
