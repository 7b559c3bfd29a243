"""Authoritative in-memory store for links, conversations and messages.

Every public method is synchronous and never awaits: on the event loop each
call completes before any other session event or sweep step runs, so checking
for the first message and appending to the link's conversation list happen as
one step.

When a durable backend is plugged in, each mutation is written to it before
memory is touched, so a failed write leaves the store unchanged.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from driftchat.services.entities import (
    AuthorRole,
    Conversation,
    Link,
    Message,
    new_anonymous_id,
    new_conversation_id,
    new_creator_id,
    new_link_id,
    new_message_id,
)
from driftchat.services.errors import (
    ConversationNotFoundError,
    LinkExpiredError,
    LinkNotFoundError,
    MessageValidationError,
)
from driftchat.services.store_backend import StoreBackend
from driftchat.services.ttl import Clock, TtlPolicy, link_expired, message_expired, utc_now

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGE_LENGTH = 2000


class EntityStore:
    """Owns every Link, Conversation and Message record."""

    def __init__(
        self,
        policy: TtlPolicy | None = None,
        *,
        clock: Clock = utc_now,
        backend: StoreBackend | None = None,
        max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
    ) -> None:
        self.policy = policy or TtlPolicy()
        self.clock = clock
        self.backend = backend
        self.max_message_length = max_message_length
        self._links: dict[str, Link] = {}
        self._conversations: dict[str, Conversation] = {}
        self._conversations_by_link: dict[str, set[str]] = defaultdict(set)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def hydrate(self) -> int:
        """Rebuild memory from the durable backend; returns loaded link count."""

        if self.backend is None:
            return 0
        links, conversations = self.backend.load()
        self._links.clear()
        self._conversations.clear()
        self._conversations_by_link.clear()
        for link in links:
            self._links[link.id] = link
        for conversation in conversations:
            self._conversations[conversation.id] = conversation
            self._conversations_by_link[conversation.link_id].add(conversation.id)
        logger.info(
            "relay.store_hydrated links=%d conversations=%d",
            len(self._links),
            len(self._conversations),
        )
        return len(self._links)

    def stats(self) -> dict[str, int]:
        return {
            "links": len(self._links),
            "conversations": len(self._conversations),
            "messages": sum(len(conv.messages) for conv in self._conversations.values()),
        }

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def create_link(self) -> Link:
        now = self.clock()
        link_id = new_link_id()
        while link_id in self._links:
            link_id = new_link_id()
        link = Link(id=link_id, creator_id=new_creator_id(now), created_at=now)
        if self.backend is not None:
            self.backend.save_link(link)
        self._links[link.id] = link
        logger.info("relay.link_created link_id=%s", link.id)
        return link.snapshot()

    def get_link(self, link_id: str) -> Link:
        return self._live_link(link_id).snapshot()

    def verify_link(self, link_id: str) -> bool:
        try:
            self._live_link(link_id)
        except LinkNotFoundError:
            return False
        return True

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def create_conversation(self, link_id: str) -> Conversation:
        link = self._live_link(link_id)
        now = self.clock()
        conversation_id = new_conversation_id(now)
        while conversation_id in self._conversations:
            conversation_id = new_conversation_id(now)
        conversation = Conversation(
            id=conversation_id,
            link_id=link.id,
            anonymous_session_id=new_anonymous_id(now),
            created_at=now,
            last_message_at=now,
        )
        if self.backend is not None:
            self.backend.save_conversation(conversation)
        self._conversations[conversation.id] = conversation
        self._conversations_by_link[link.id].add(conversation.id)
        logger.info("relay.conversation_created conversation_id=%s link_id=%s", conversation.id, link.id)
        return conversation.snapshot()

    def get_conversation(self, conversation_id: str) -> Conversation:
        conversation = self._live_conversation(conversation_id)
        return self._filtered_snapshot(conversation)

    def list_visible_conversations(self, link_id: str) -> list[Conversation]:
        link = self._live_link(link_id)
        return [
            self._filtered_snapshot(self._conversations[conversation_id])
            for conversation_id in link.conversation_ids
            if conversation_id in self._conversations
        ]

    def append_message(
        self,
        conversation_id: str,
        text: str,
        author_role: AuthorRole,
    ) -> tuple[Message, bool]:
        """Append one message; the flag is True when this send promoted the conversation."""

        cleaned = self._validate_text(text)
        conversation = self._live_conversation(conversation_id)
        link = self._links[conversation.link_id]

        now = self.clock()
        message = Message(
            id=new_message_id(now),
            text=cleaned,
            author_role=author_role,
            sent_at=now,
        )
        promoted = not conversation.visible
        if self.backend is not None:
            self.backend.append_message(conversation.id, message, promoted=promoted)

        conversation.messages.append(message)
        conversation.last_message_at = now
        if promoted:
            conversation.visible = True
            if conversation.id not in link.conversation_ids:
                link.conversation_ids.append(conversation.id)
            logger.info(
                "relay.conversation_promoted conversation_id=%s link_id=%s",
                conversation.id,
                link.id,
            )
        return message, promoted

    # ------------------------------------------------------------------
    # Sweep primitives (used by the garbage collector)
    # ------------------------------------------------------------------

    def link_ids(self) -> list[str]:
        return list(self._links)

    def peek_link(self, link_id: str) -> Link | None:
        """Unchecked snapshot, including links past their TTL."""

        link = self._links.get(link_id)
        return link.snapshot() if link is not None else None

    def peek_conversation(self, conversation_id: str) -> Conversation | None:
        """Unfiltered snapshot, including messages past their TTL."""

        conversation = self._conversations.get(conversation_id)
        return conversation.snapshot() if conversation is not None else None

    def conversation_ids_for_link(self, link_id: str) -> list[str]:
        return sorted(self._conversations_by_link.get(link_id, ()))

    def orphaned_conversation_ids(self) -> list[str]:
        """Conversations whose link record no longer exists."""

        return [
            conversation.id
            for conversation in self._conversations.values()
            if conversation.link_id not in self._links
        ]

    def delete_link(self, link_id: str) -> list[str]:
        """Delete a link and every conversation under it; returns removed conversation ids."""

        if link_id not in self._links:
            return []
        conversation_ids = self.conversation_ids_for_link(link_id)
        if self.backend is not None:
            self.backend.delete_links([link_id])
        for conversation_id in conversation_ids:
            self._conversations.pop(conversation_id, None)
        self._conversations_by_link.pop(link_id, None)
        del self._links[link_id]
        return conversation_ids

    def delete_conversation(self, conversation_id: str) -> bool:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return False
        if self.backend is not None:
            self.backend.delete_conversations([conversation_id])
        del self._conversations[conversation_id]
        siblings = self._conversations_by_link.get(conversation.link_id)
        if siblings is not None:
            siblings.discard(conversation_id)
            if not siblings:
                del self._conversations_by_link[conversation.link_id]
        link = self._links.get(conversation.link_id)
        if link is not None and conversation_id in link.conversation_ids:
            link.conversation_ids.remove(conversation_id)
        return True

    def prune_messages(self, conversation_id: str) -> int:
        """Drop messages past the message TTL; returns how many were removed.

        ``last_message_at`` and ``visible`` are left as they were.
        """

        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return 0
        now = self.clock()
        expired = [m for m in conversation.messages if message_expired(self.policy, m.sent_at, now)]
        if not expired:
            return 0
        if self.backend is not None:
            self.backend.delete_messages([m.id for m in expired])
        expired_ids = {m.id for m in expired}
        conversation.messages = [m for m in conversation.messages if m.id not in expired_ids]
        return len(expired)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _live_link(self, link_id: str) -> Link:
        link = self._links.get(link_id)
        if link is None:
            raise LinkNotFoundError(link_id)
        if link_expired(self.policy, link.created_at, self.clock()):
            raise LinkExpiredError(link_id)
        return link

    def _live_conversation(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        link = self._links.get(conversation.link_id)
        if link is None:
            raise ConversationNotFoundError(conversation_id)
        if link_expired(self.policy, link.created_at, self.clock()):
            raise LinkExpiredError(link.id)
        return conversation

    def _filtered_snapshot(self, conversation: Conversation) -> Conversation:
        now = self.clock()
        return conversation.snapshot(
            [m for m in conversation.messages if not message_expired(self.policy, m.sent_at, now)]
        )

    def _validate_text(self, text: str) -> str:
        cleaned = (text or "").strip()
        if not cleaned:
            raise MessageValidationError("Message text cannot be empty.")
        if len(cleaned) > self.max_message_length:
            raise MessageValidationError(
                f"Message text exceeds {self.max_message_length} characters."
            )
        return cleaned
