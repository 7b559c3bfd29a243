"""In-memory records owned by the entity store."""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Literal

AuthorRole = Literal["creator", "anonymous"]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    text: str
    author_role: AuthorRole
    sent_at: datetime


@dataclass(slots=True)
class Conversation:
    id: str
    link_id: str
    anonymous_session_id: str
    created_at: datetime
    last_message_at: datetime
    visible: bool = False
    messages: list[Message] = field(default_factory=list)

    def snapshot(self, messages: list[Message] | None = None) -> Conversation:
        """Detached copy safe to hand to sessions and HTTP callers."""

        return replace(self, messages=list(self.messages if messages is None else messages))


@dataclass(slots=True)
class Link:
    id: str
    creator_id: str
    created_at: datetime
    conversation_ids: list[str] = field(default_factory=list)

    def snapshot(self) -> Link:
        return replace(self, conversation_ids=list(self.conversation_ids))


def epoch_millis(instant: datetime) -> int:
    return (instant - _EPOCH) // timedelta(milliseconds=1)


def new_link_id() -> str:
    return f"link_{secrets.token_hex(6)}"


def new_creator_id(now: datetime) -> str:
    return f"creator_{epoch_millis(now)}_{secrets.token_hex(6)}"


def new_conversation_id(now: datetime) -> str:
    return f"conv_{epoch_millis(now)}_{secrets.token_hex(6)}"


def new_anonymous_id(now: datetime) -> str:
    return f"anon_{epoch_millis(now)}_{secrets.token_hex(6)}"


def new_message_id(sent_at: datetime) -> str:
    # Zero-padded millis keep lexical order equal to arrival order.
    return f"msg_{epoch_millis(sent_at):013d}_{secrets.token_hex(4)}"
