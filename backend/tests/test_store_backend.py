"""Tests for the SQLAlchemy write-through backend."""

from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from driftchat.models.base import Base
from driftchat.models.conversation import ConversationRow
from driftchat.models.link import LinkRow
from driftchat.models.message import MessageRow
from driftchat.services.entities import Message
from driftchat.services.entity_store import EntityStore
from driftchat.services.errors import TransientStoreError
from driftchat.services.garbage_collector import GarbageCollector
from driftchat.services.store_backend import SqlAlchemyStoreBackend
from driftchat.services.ttl import TtlPolicy


class _FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class _FailingAppendBackend(SqlAlchemyStoreBackend):
    def append_message(self, conversation_id: str, message: Message, *, promoted: bool) -> None:
        raise TransientStoreError("Storage is temporarily unavailable")


class SqlAlchemyStoreBackendTests(unittest.IsolatedAsyncioTestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autoflush=False, autocommit=False, future=True)
        Base.metadata.create_all(cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        Base.metadata.drop_all(cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        with self.SessionLocal() as db:
            db.execute(delete(MessageRow))
            db.execute(delete(ConversationRow))
            db.execute(delete(LinkRow))
            db.commit()
        self.clock = _FakeClock()
        self.backend = SqlAlchemyStoreBackend(self.SessionLocal)
        self.store = EntityStore(TtlPolicy(), clock=self.clock, backend=self.backend)

    def _count(self, model: type) -> int:
        with self.SessionLocal() as db:
            return db.scalar(select(func.count()).select_from(model))

    def test_mutations_are_written_through(self) -> None:
        link = self.store.create_link()
        conversation = self.store.create_conversation(link.id)
        self.store.append_message(conversation.id, "hi", "anonymous")

        self.assertEqual(self._count(LinkRow), 1)
        self.assertEqual(self._count(ConversationRow), 1)
        self.assertEqual(self._count(MessageRow), 1)
        with self.SessionLocal() as db:
            row = db.get(ConversationRow, conversation.id)
            self.assertIsNotNone(row.promoted_at)

    def test_hydrate_restores_visibility_and_order(self) -> None:
        link = self.store.create_link()
        hidden = self.store.create_conversation(link.id)
        later = self.store.create_conversation(link.id)
        earlier = self.store.create_conversation(link.id)
        self.store.append_message(earlier.id, "one", "anonymous")
        self.clock.advance(seconds=1)
        self.store.append_message(later.id, "two", "anonymous")
        self.clock.advance(seconds=1)
        self.store.append_message(earlier.id, "three", "creator")

        restored = EntityStore(TtlPolicy(), clock=self.clock, backend=self.backend)
        self.assertEqual(restored.hydrate(), 1)

        self.assertEqual(restored.get_link(link.id).conversation_ids, [earlier.id, later.id])
        self.assertFalse(restored.get_conversation(hidden.id).visible)
        thread = restored.get_conversation(earlier.id)
        self.assertEqual([m.text for m in thread.messages], ["one", "three"])
        self.assertEqual(thread.messages[-1].author_role, "creator")
        self.assertEqual(thread.messages[-1].sent_at, self.clock.now)
        self.assertEqual(restored.stats(), self.store.stats())

    def test_hydrate_keeps_arrival_order_within_one_millisecond(self) -> None:
        link = self.store.create_link()
        conversations = [self.store.create_conversation(link.id) for _ in range(4)]
        texts = ["a", "b", "c", "d", "e", "f"]
        for text in texts:
            self.store.append_message(conversations[0].id, text, "anonymous")
        for conversation in reversed(conversations[1:]):
            self.store.append_message(conversation.id, "hello", "anonymous")
        expected_order = [conversations[0].id] + [c.id for c in reversed(conversations[1:])]

        restored = EntityStore(TtlPolicy(), clock=self.clock, backend=self.backend)
        restored.hydrate()

        thread = restored.get_conversation(conversations[0].id)
        self.assertEqual([m.text for m in thread.messages], texts)
        self.assertEqual(restored.get_link(link.id).conversation_ids, expected_order)
        with self.SessionLocal() as db:
            sequences = list(
                db.scalars(
                    select(MessageRow.sequence)
                    .where(MessageRow.conversation_id == conversations[0].id)
                    .order_by(MessageRow.sequence)
                )
            )
        self.assertEqual(sequences, [1, 2, 3, 4, 5, 6])

    def test_sequence_continues_after_pruned_messages(self) -> None:
        store = EntityStore(TtlPolicy(link_ttl=None), clock=self.clock, backend=self.backend)
        link = store.create_link()
        conversation = store.create_conversation(link.id)
        store.append_message(conversation.id, "old", "anonymous")
        self.clock.advance(hours=5)
        store.append_message(conversation.id, "kept", "anonymous")
        self.clock.advance(hours=19, seconds=1)
        self.assertEqual(store.prune_messages(conversation.id), 1)
        store.append_message(conversation.id, "first", "creator")
        store.append_message(conversation.id, "second", "anonymous")

        restored = EntityStore(TtlPolicy(link_ttl=None), clock=self.clock, backend=self.backend)
        restored.hydrate()

        thread = restored.peek_conversation(conversation.id)
        self.assertEqual([m.text for m in thread.messages], ["kept", "first", "second"])

    async def test_sweep_deletes_durable_rows(self) -> None:
        expired = self.store.create_link()
        self.store.create_conversation(expired.id)
        self.clock.advance(hours=5)
        live = self.store.create_link()
        conversation = self.store.create_conversation(live.id)
        self.store.append_message(conversation.id, "keep", "anonymous")

        self.clock.advance(hours=1, minutes=1)
        await GarbageCollector(self.store).sweep()

        self.assertEqual(self._count(LinkRow), 1)
        self.assertEqual(self._count(ConversationRow), 1)
        self.assertEqual(self._count(MessageRow), 1)

    def test_failed_write_leaves_memory_untouched(self) -> None:
        link = self.store.create_link()
        conversation = self.store.create_conversation(link.id)
        self.store.backend = _FailingAppendBackend(self.SessionLocal)

        with self.assertRaises(TransientStoreError):
            self.store.append_message(conversation.id, "hi", "anonymous")

        snapshot = self.store.get_conversation(conversation.id)
        self.assertFalse(snapshot.visible)
        self.assertEqual(snapshot.messages, [])
        self.assertEqual(self.store.get_link(link.id).conversation_ids, [])

    def test_database_errors_surface_as_transient(self) -> None:
        link = self.store.create_link()

        with self.assertLogs("driftchat.services.store_backend", level="WARNING") as logs:
            with self.assertRaises(TransientStoreError):
                self.backend.save_link(self.store.get_link(link.id))

        self.assertEqual(len(logs.output), 2)
        self.assertEqual(self.store.stats()["links"], 1)


if __name__ == "__main__":
    unittest.main()
