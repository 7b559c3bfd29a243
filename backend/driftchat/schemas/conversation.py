"""Conversation and message schemas."""

from datetime import datetime
from typing import Literal

from pydantic import Field

from driftchat.schemas.common import CamelModel


class MessageRead(CamelModel):
    """Serialized chat line; ``id`` is the key clients deduplicate on."""

    id: str
    text: str
    author_role: Literal["creator", "anonymous"]
    sent_at: datetime


class ConversationRead(CamelModel):
    """Serialized conversation with its currently retained messages."""

    id: str
    link_id: str
    anonymous_session_id: str
    created_at: datetime
    last_message_at: datetime
    visible: bool
    messages: list[MessageRead]


class ConversationCreateRequest(CamelModel):
    link_id: str = Field(min_length=1)
