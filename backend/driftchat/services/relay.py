"""Room membership and event fan-out to live sessions.

Two room kinds exist: a conversation room (creator and visitor sessions of one
thread) and a link room (creator dashboards for one link). The membership
table is owned here; join and leave are its only mutators.

Delivery is fire-and-forget. Each session owns a bounded queue drained by its
transport writer; a full queue drops its oldest event rather than blocking the
mutation that produced the new one.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from typing import Iterable, Literal, NamedTuple

from driftchat.schemas.conversation import ConversationRead, MessageRead
from driftchat.schemas.events import (
    ConversationPayload,
    ConversationsPayload,
    ConversationUpdatedEvent,
    LoadConversationsEvent,
    LoadMessagesEvent,
    MessagesPayload,
    NewConversationEvent,
    NewMessageEvent,
    NewMessagePayload,
    OutboundEvent,
    UserStopTypingEvent,
    UserTypingEvent,
    UserTypingPayload,
    error_event,
)
from driftchat.services.entities import Conversation, Message
from driftchat.services.entity_store import EntityStore

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 100


class Room(NamedTuple):
    kind: Literal["conversation", "link"]
    key: str


def conversation_room(conversation_id: str) -> Room:
    return Room("conversation", conversation_id)


def link_room(link_id: str) -> Room:
    return Room("link", link_id)


class RelaySession:
    """One connected client as seen by the relay."""

    def __init__(self, session_id: str | None = None, *, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.id = session_id or f"sess_{uuid.uuid4().hex}"
        self.queue: asyncio.Queue[OutboundEvent] = asyncio.Queue(maxsize=queue_size)
        self.closed = False
        self.dropped = 0

    def __repr__(self) -> str:
        return f"RelaySession({self.id!r})"

    def deliver(self, event: OutboundEvent) -> bool:
        """Enqueue without waiting; returns False when the session is closed."""

        if self.closed:
            return False
        if self.queue.full():
            try:
                dropped = self.queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            else:
                self.dropped += 1
                logger.warning(
                    "relay.session_queue_full session_id=%s dropped_event=%s",
                    self.id,
                    dropped.event,
                )
        self.queue.put_nowait(event)
        return True

    async def next_event(self) -> OutboundEvent:
        return await self.queue.get()

    def drain(self) -> list[OutboundEvent]:
        """Pop every queued event without waiting."""

        events: list[OutboundEvent] = []
        while not self.queue.empty():
            events.append(self.queue.get_nowait())
        return events

    def close(self) -> None:
        self.closed = True


class RelayEngine:
    """Translate store mutations into events for interested sessions."""

    def __init__(self, store: EntityStore) -> None:
        self._store = store
        self._rooms: dict[Room, set[RelaySession]] = defaultdict(set)
        self._memberships: dict[RelaySession, set[Room]] = defaultdict(set)

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def join_conversation_room(self, session: RelaySession, conversation_id: str) -> Conversation:
        """Join, then catch the session up with the retained messages.

        Raises the store's not-found errors before any membership is added.
        """

        conversation = self._store.get_conversation(conversation_id)
        self._join(session, conversation_room(conversation.id))
        session.deliver(
            LoadMessagesEvent(data=MessagesPayload(messages=[_message_read(m) for m in conversation.messages]))
        )
        return conversation

    def join_link_room(self, session: RelaySession, link_id: str) -> list[Conversation]:
        conversations = self._store.list_visible_conversations(link_id)
        self._join(session, link_room(link_id))
        session.deliver(
            LoadConversationsEvent(
                data=ConversationsPayload(conversations=[_conversation_read(c) for c in conversations])
            )
        )
        return conversations

    def leave(self, session: RelaySession, room: Room) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(session)
            if not members:
                del self._rooms[room]
        rooms = self._memberships.get(session)
        if rooms is not None:
            rooms.discard(room)
            if not rooms:
                del self._memberships[session]

    def leave_all(self, session: RelaySession) -> int:
        """Drop every membership of a disconnecting session."""

        rooms = list(self._memberships.get(session, ()))
        for room in rooms:
            self.leave(session, room)
        return len(rooms)

    def members(self, room: Room) -> set[RelaySession]:
        return set(self._rooms.get(room, ()))

    def rooms_of(self, session: RelaySession) -> set[Room]:
        return set(self._memberships.get(session, ()))

    def stats(self) -> dict[str, int]:
        return {"rooms": len(self._rooms), "sessions": len(self._memberships)}

    # ------------------------------------------------------------------
    # Broadcasts
    # ------------------------------------------------------------------

    def broadcast_new_message(self, conversation_id: str, message: Message) -> int:
        """Deliver to every member, the sender included; clients dedup on message id."""

        event = NewMessageEvent(data=NewMessagePayload(conv_id=conversation_id, message=_message_read(message)))
        return self._emit(conversation_room(conversation_id), event)

    def broadcast_conversation_updated(self, link_id: str, conversation: Conversation) -> int:
        event = ConversationUpdatedEvent(data=ConversationPayload(conversation=_conversation_read(conversation)))
        return self._emit(link_room(link_id), event)

    def broadcast_new_conversation(self, link_id: str, conversation: Conversation) -> int:
        event = NewConversationEvent(data=ConversationPayload(conversation=_conversation_read(conversation)))
        return self._emit(link_room(link_id), event)

    def notify_typing(self, sender: RelaySession, conversation_id: str, is_creator: bool) -> int:
        event = UserTypingEvent(data=UserTypingPayload(is_creator=is_creator))
        return self._emit(conversation_room(conversation_id), event, exclude=sender)

    def notify_stop_typing(self, sender: RelaySession, conversation_id: str) -> int:
        return self._emit(conversation_room(conversation_id), UserStopTypingEvent(), exclude=sender)

    # ------------------------------------------------------------------
    # Eviction (garbage collector side effect)
    # ------------------------------------------------------------------

    def evict_rooms(
        self,
        *,
        link_ids: Iterable[str] = (),
        conversation_ids: Iterable[str] = (),
        message: str = "Chat link has expired",
    ) -> int:
        """Tell members their target is gone, then tear the rooms down."""

        notice = error_event(message)
        evicted = 0
        rooms = [link_room(link_id) for link_id in link_ids]
        rooms.extend(conversation_room(conversation_id) for conversation_id in conversation_ids)
        for room in rooms:
            members = self._rooms.pop(room, None)
            if not members:
                continue
            for session in members:
                session.deliver(notice)
                session_rooms = self._memberships.get(session)
                if session_rooms is not None:
                    session_rooms.discard(room)
                    if not session_rooms:
                        del self._memberships[session]
            evicted += 1
        if evicted:
            logger.info("relay.rooms_evicted count=%d", evicted)
        return evicted

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _join(self, session: RelaySession, room: Room) -> None:
        self._rooms[room].add(session)
        self._memberships[session].add(room)

    def _emit(self, room: Room, event: OutboundEvent, *, exclude: RelaySession | None = None) -> int:
        delivered = 0
        for session in list(self._rooms.get(room, ())):
            if session is exclude:
                continue
            if session.deliver(event):
                delivered += 1
        return delivered


def _message_read(message: Message) -> MessageRead:
    return MessageRead.model_validate(message)


def _conversation_read(conversation: Conversation) -> ConversationRead:
    return ConversationRead.model_validate(conversation)
