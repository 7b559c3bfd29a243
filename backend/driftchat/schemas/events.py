"""Realtime event frames exchanged over the session socket.

Every frame is ``{"event": <name>, "data": {...}}``. Outbound frames form a
discriminated union on ``event`` so each kind has one fixed payload shape.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from driftchat.schemas.common import CamelModel
from driftchat.schemas.conversation import ConversationRead, MessageRead


class InboundFrame(BaseModel):
    """Raw frame received from a session before payload validation."""

    event: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Inbound payloads
# ---------------------------------------------------------------------------


class JoinConversationPayload(CamelModel):
    conv_id: str = Field(min_length=1)
    is_creator: bool = False


class JoinLinkPayload(CamelModel):
    link_id: str = Field(min_length=1)


class SendMessagePayload(CamelModel):
    conv_id: str = Field(min_length=1)
    text: str
    is_creator: bool = False


class TypingPayload(CamelModel):
    conv_id: str = Field(min_length=1)
    is_creator: bool = False


class StopTypingPayload(CamelModel):
    conv_id: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Outbound payloads
# ---------------------------------------------------------------------------


class MessagesPayload(CamelModel):
    messages: list[MessageRead]


class ConversationsPayload(CamelModel):
    conversations: list[ConversationRead]


class NewMessagePayload(CamelModel):
    conv_id: str
    message: MessageRead


class ConversationPayload(CamelModel):
    conversation: ConversationRead


class UserTypingPayload(CamelModel):
    is_creator: bool


class EmptyPayload(CamelModel):
    pass


class ErrorPayload(CamelModel):
    message: str


class LoadMessagesEvent(CamelModel):
    event: Literal["load-messages"] = "load-messages"
    data: MessagesPayload


class LoadConversationsEvent(CamelModel):
    event: Literal["load-conversations"] = "load-conversations"
    data: ConversationsPayload


class NewMessageEvent(CamelModel):
    event: Literal["new-message"] = "new-message"
    data: NewMessagePayload


class NewConversationEvent(CamelModel):
    event: Literal["new-conversation"] = "new-conversation"
    data: ConversationPayload


class ConversationUpdatedEvent(CamelModel):
    event: Literal["conversation-updated"] = "conversation-updated"
    data: ConversationPayload


class UserTypingEvent(CamelModel):
    event: Literal["user-typing"] = "user-typing"
    data: UserTypingPayload


class UserStopTypingEvent(CamelModel):
    event: Literal["user-stop-typing"] = "user-stop-typing"
    data: EmptyPayload = Field(default_factory=EmptyPayload)


class ErrorEvent(CamelModel):
    event: Literal["error"] = "error"
    data: ErrorPayload


OutboundEvent = Annotated[
    Union[
        LoadMessagesEvent,
        LoadConversationsEvent,
        NewMessageEvent,
        NewConversationEvent,
        ConversationUpdatedEvent,
        UserTypingEvent,
        UserStopTypingEvent,
        ErrorEvent,
    ],
    Field(discriminator="event"),
]


def error_event(message: str) -> ErrorEvent:
    return ErrorEvent(data=ErrorPayload(message=message))


def to_wire(event: BaseModel) -> dict[str, Any]:
    """JSON-ready dict for one outbound frame."""

    return event.model_dump(mode="json", by_alias=True)
