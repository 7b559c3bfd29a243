"""Durable write-through backends for the entity store."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from driftchat.db.session import build_engine, build_session_factory
from driftchat.models.base import Base
from driftchat.models.conversation import ConversationRow
from driftchat.models.link import LinkRow
from driftchat.models.message import MessageRow
from driftchat.services.entities import Conversation, Link, Message
from driftchat.services.errors import TransientStoreError

logger = logging.getLogger(__name__)


class StoreBackend(Protocol):
    """Persistence collaborator; every write either completes or raises."""

    def load(self) -> tuple[list[Link], list[Conversation]]:
        """Return every stored link and conversation, messages included."""

    def save_link(self, link: Link) -> None: ...

    def save_conversation(self, conversation: Conversation) -> None: ...

    def append_message(self, conversation_id: str, message: Message, *, promoted: bool) -> None: ...

    def delete_links(self, link_ids: list[str]) -> None: ...

    def delete_conversations(self, conversation_ids: list[str]) -> None: ...

    def delete_messages(self, message_ids: list[str]) -> None: ...


class SqlAlchemyStoreBackend:
    """Mirror store mutations into a relational database."""

    def __init__(self, session_factory: sessionmaker[Session], *, retries: int = 1) -> None:
        self._session_factory = session_factory
        self._retries = retries

    @classmethod
    def from_url(cls, database_url: str, *, create_schema: bool = False) -> SqlAlchemyStoreBackend:
        engine = build_engine(database_url)
        if create_schema:
            Base.metadata.create_all(engine)
        return cls(build_session_factory(engine))

    def load(self) -> tuple[list[Link], list[Conversation]]:
        try:
            with self._session_factory() as db:
                link_rows = list(db.scalars(select(LinkRow).order_by(LinkRow.created_at.asc(), LinkRow.id.asc())))
                conversation_rows = list(
                    db.scalars(
                        select(ConversationRow).order_by(
                            ConversationRow.promotion_order.asc(),
                            ConversationRow.promoted_at.asc(),
                            ConversationRow.created_at.asc(),
                            ConversationRow.id.asc(),
                        )
                    )
                )
                message_rows = list(
                    db.scalars(select(MessageRow).order_by(MessageRow.sequence.asc(), MessageRow.sent_at.asc()))
                )
        except SQLAlchemyError as exc:
            raise TransientStoreError("Failed to load relay state") from exc

        messages_by_conversation: dict[str, list[Message]] = defaultdict(list)
        for row in message_rows:
            messages_by_conversation[row.conversation_id].append(
                Message(
                    id=row.id,
                    text=row.text,
                    author_role="creator" if row.author_role == "creator" else "anonymous",
                    sent_at=_as_utc(row.sent_at),
                )
            )

        links = {
            row.id: Link(id=row.id, creator_id=row.creator_id, created_at=_as_utc(row.created_at))
            for row in link_rows
        }
        conversations: list[Conversation] = []
        for row in conversation_rows:
            conversation = Conversation(
                id=row.id,
                link_id=row.link_id,
                anonymous_session_id=row.anonymous_session_id,
                created_at=_as_utc(row.created_at),
                last_message_at=_as_utc(row.last_message_at),
                visible=row.promoted_at is not None,
                messages=messages_by_conversation.get(row.id, []),
            )
            conversations.append(conversation)
            link = links.get(row.link_id)
            if link is not None and conversation.visible:
                link.conversation_ids.append(conversation.id)
        return list(links.values()), conversations

    def save_link(self, link: Link) -> None:
        self._write(
            "save_link",
            lambda db: db.add(LinkRow(id=link.id, creator_id=link.creator_id, created_at=link.created_at)),
        )

    def save_conversation(self, conversation: Conversation) -> None:
        self._write(
            "save_conversation",
            lambda db: db.add(
                ConversationRow(
                    id=conversation.id,
                    link_id=conversation.link_id,
                    anonymous_session_id=conversation.anonymous_session_id,
                    created_at=conversation.created_at,
                    last_message_at=conversation.last_message_at,
                    promoted_at=None,
                )
            ),
        )

    def append_message(self, conversation_id: str, message: Message, *, promoted: bool) -> None:
        def operation(db: Session) -> None:
            sequence = db.scalar(
                select(func.coalesce(func.max(MessageRow.sequence), 0)).where(
                    MessageRow.conversation_id == conversation_id
                )
            )
            db.add(
                MessageRow(
                    id=message.id,
                    conversation_id=conversation_id,
                    text=message.text,
                    author_role=message.author_role,
                    sent_at=message.sent_at,
                    sequence=sequence + 1,
                )
            )
            values: dict[str, object] = {"last_message_at": message.sent_at}
            if promoted:
                link_id = select(ConversationRow.link_id).where(ConversationRow.id == conversation_id)
                promotions = db.scalar(
                    select(func.coalesce(func.max(ConversationRow.promotion_order), 0)).where(
                        ConversationRow.link_id == link_id.scalar_subquery()
                    )
                )
                values["promoted_at"] = message.sent_at
                values["promotion_order"] = promotions + 1
            db.execute(update(ConversationRow).where(ConversationRow.id == conversation_id).values(**values))

        self._write("append_message", operation)

    def delete_links(self, link_ids: list[str]) -> None:
        if not link_ids:
            return

        def operation(db: Session) -> None:
            conversation_ids = select(ConversationRow.id).where(ConversationRow.link_id.in_(link_ids))
            db.execute(delete(MessageRow).where(MessageRow.conversation_id.in_(conversation_ids)))
            db.execute(delete(ConversationRow).where(ConversationRow.link_id.in_(link_ids)))
            db.execute(delete(LinkRow).where(LinkRow.id.in_(link_ids)))

        self._write("delete_links", operation)

    def delete_conversations(self, conversation_ids: list[str]) -> None:
        if not conversation_ids:
            return

        def operation(db: Session) -> None:
            db.execute(delete(MessageRow).where(MessageRow.conversation_id.in_(conversation_ids)))
            db.execute(delete(ConversationRow).where(ConversationRow.id.in_(conversation_ids)))

        self._write("delete_conversations", operation)

    def delete_messages(self, message_ids: list[str]) -> None:
        if not message_ids:
            return
        self._write(
            "delete_messages",
            lambda db: db.execute(delete(MessageRow).where(MessageRow.id.in_(message_ids))),
        )

    def _write(self, operation_name: str, operation: Callable[[Session], object]) -> None:
        last_error: SQLAlchemyError | None = None
        for attempt in range(self._retries + 1):
            try:
                with self._session_factory() as db, db.begin():
                    operation(db)
                return
            except SQLAlchemyError as exc:
                last_error = exc
                logger.warning(
                    "relay.store_write_failed operation=%s attempt=%d error=%s",
                    operation_name,
                    attempt + 1,
                    exc.__class__.__name__,
                )
        raise TransientStoreError("Storage is temporarily unavailable") from last_error


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on round-trip.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
