"""Session gateway: dispatch inbound realtime events to the relay."""

from __future__ import annotations

import logging
from typing import Any, Callable

from pydantic import BaseModel, ValidationError

from driftchat.schemas.events import (
    InboundFrame,
    JoinConversationPayload,
    JoinLinkPayload,
    SendMessagePayload,
    StopTypingPayload,
    TypingPayload,
    error_event,
)
from driftchat.services.entity_store import EntityStore
from driftchat.services.errors import RelayError, TransientStoreError
from driftchat.services.relay import RelayEngine, RelaySession

logger = logging.getLogger(__name__)


class SessionGateway:
    """Bind one transport connection's events to store reads/writes and broadcasts.

    Handlers are synchronous: a whole event, from validation to the last
    broadcast, runs without yielding to the event loop.
    """

    def __init__(self, store: EntityStore, relay: RelayEngine) -> None:
        self._store = store
        self._relay = relay
        self._handlers: dict[str, tuple[type[BaseModel] | None, Callable[[RelaySession, Any], None]]] = {
            "join-conversation": (JoinConversationPayload, self._join_conversation),
            "join-link": (JoinLinkPayload, self._join_link),
            "send-message": (SendMessagePayload, self._send_message),
            "typing": (TypingPayload, self._typing),
            "stop-typing": (StopTypingPayload, self._stop_typing),
            "disconnect": (None, self._disconnect),
        }

    def handle_raw(self, session: RelaySession, raw: str | bytes) -> None:
        """Decode one JSON frame from the wire and dispatch it."""

        try:
            frame = InboundFrame.model_validate_json(raw)
        except ValidationError:
            session.deliver(error_event("Malformed event frame"))
            return
        self.handle(session, frame.event, frame.data)

    def handle(self, session: RelaySession, event: str, data: dict[str, Any] | None = None) -> None:
        entry = self._handlers.get(event)
        if entry is None:
            session.deliver(error_event(f"Unknown event: {event}"))
            return
        payload_model, handler = entry
        try:
            payload = payload_model.model_validate(data or {}) if payload_model is not None else None
        except ValidationError:
            logger.debug("relay.invalid_payload session_id=%s event=%s", session.id, event)
            session.deliver(error_event(f"Invalid payload for {event}"))
            return

        try:
            handler(session, payload)
        except TransientStoreError:
            logger.exception("relay.store_unavailable session_id=%s event=%s", session.id, event)
            session.deliver(error_event(f"Failed to handle {event}"))
        except RelayError as exc:
            logger.info("relay.event_rejected session_id=%s event=%s reason=%s", session.id, event, exc)
            session.deliver(error_event(str(exc)))

    def _join_conversation(self, session: RelaySession, payload: JoinConversationPayload) -> None:
        self._relay.join_conversation_room(session, payload.conv_id)

    def _join_link(self, session: RelaySession, payload: JoinLinkPayload) -> None:
        self._relay.join_link_room(session, payload.link_id)

    def _send_message(self, session: RelaySession, payload: SendMessagePayload) -> None:
        author_role = "creator" if payload.is_creator else "anonymous"
        message, promoted = self._store.append_message(payload.conv_id, payload.text, author_role)
        self._relay.broadcast_new_message(payload.conv_id, message)

        conversation = self._store.get_conversation(payload.conv_id)
        if promoted:
            self._relay.broadcast_new_conversation(conversation.link_id, conversation)
        self._relay.broadcast_conversation_updated(conversation.link_id, conversation)

    def _typing(self, session: RelaySession, payload: TypingPayload) -> None:
        self._relay.notify_typing(session, payload.conv_id, payload.is_creator)

    def _stop_typing(self, session: RelaySession, payload: StopTypingPayload) -> None:
        self._relay.notify_stop_typing(session, payload.conv_id)

    def _disconnect(self, session: RelaySession, _: None) -> None:
        left = self._relay.leave_all(session)
        session.close()
        logger.debug("relay.session_disconnected session_id=%s rooms=%d", session.id, left)
