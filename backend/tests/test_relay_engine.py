"""Tests for room membership and fan-out."""

from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from driftchat.schemas.events import error_event, to_wire
from driftchat.services.entity_store import EntityStore
from driftchat.services.errors import ConversationNotFoundError
from driftchat.services.relay import RelayEngine, RelaySession, conversation_room, link_room
from driftchat.services.ttl import TtlPolicy


class _FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RelayEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = _FakeClock()
        self.store = EntityStore(TtlPolicy(link_ttl=None), clock=self.clock)
        self.relay = RelayEngine(self.store)
        self.link = self.store.create_link()
        self.conversation = self.store.create_conversation(self.link.id)

    def test_join_conversation_delivers_catch_up_to_joiner_only(self) -> None:
        self.store.append_message(self.conversation.id, "old", "anonymous")
        self.clock.advance(hours=24, seconds=1)
        self.store.append_message(self.conversation.id, "fresh", "creator")
        bystander = RelaySession()
        self.relay.join_conversation_room(bystander, self.conversation.id)
        bystander.drain()

        joiner = RelaySession()
        self.relay.join_conversation_room(joiner, self.conversation.id)

        events = joiner.drain()
        self.assertEqual([e.event for e in events], ["load-messages"])
        self.assertEqual([m.text for m in events[0].data.messages], ["fresh"])
        self.assertEqual(bystander.drain(), [])
        self.assertEqual(self.relay.members(conversation_room(self.conversation.id)), {bystander, joiner})

    def test_join_missing_conversation_adds_no_membership(self) -> None:
        session = RelaySession()

        with self.assertRaises(ConversationNotFoundError):
            self.relay.join_conversation_room(session, "conv_missing")

        self.assertEqual(self.relay.rooms_of(session), set())
        self.assertEqual(session.drain(), [])

    def test_join_link_delivers_visible_conversations(self) -> None:
        self.store.create_conversation(self.link.id)
        self.store.append_message(self.conversation.id, "hi", "anonymous")
        dashboard = RelaySession()

        self.relay.join_link_room(dashboard, self.link.id)

        (event,) = dashboard.drain()
        self.assertEqual(event.event, "load-conversations")
        self.assertEqual([c.id for c in event.data.conversations], [self.conversation.id])

    def test_new_message_reaches_sender_too(self) -> None:
        sender = RelaySession()
        receiver = RelaySession()
        for session in (sender, receiver):
            self.relay.join_conversation_room(session, self.conversation.id)
            session.drain()
        message, _ = self.store.append_message(self.conversation.id, "hi", "anonymous")

        delivered = self.relay.broadcast_new_message(self.conversation.id, message)

        self.assertEqual(delivered, 2)
        for session in (sender, receiver):
            (event,) = session.drain()
            self.assertEqual(event.data.message.id, message.id)
            self.assertEqual(event.data.conv_id, self.conversation.id)

    def test_typing_excludes_sender(self) -> None:
        typist = RelaySession()
        watcher = RelaySession()
        for session in (typist, watcher):
            self.relay.join_conversation_room(session, self.conversation.id)
            session.drain()

        self.relay.notify_typing(typist, self.conversation.id, is_creator=True)
        self.relay.notify_stop_typing(typist, self.conversation.id)

        self.assertEqual(typist.drain(), [])
        events = watcher.drain()
        self.assertEqual([e.event for e in events], ["user-typing", "user-stop-typing"])
        self.assertTrue(events[0].data.is_creator)

    def test_leave_all_removes_every_membership(self) -> None:
        session = RelaySession()
        self.relay.join_conversation_room(session, self.conversation.id)
        self.relay.join_link_room(session, self.link.id)

        self.assertEqual(self.relay.leave_all(session), 2)

        self.assertEqual(self.relay.rooms_of(session), set())
        self.assertEqual(self.relay.members(link_room(self.link.id)), set())
        self.assertEqual(self.relay.stats(), {"rooms": 0, "sessions": 0})
        self.assertTrue(self.store.verify_link(self.link.id))

    def test_full_queue_drops_oldest_event(self) -> None:
        session = RelaySession(queue_size=2)

        for text in ("one", "two", "three"):
            session.deliver(error_event(text))

        self.assertEqual([e.data.message for e in session.drain()], ["two", "three"])
        self.assertEqual(session.dropped, 1)

    def test_closed_session_ignores_delivery(self) -> None:
        session = RelaySession()
        session.close()

        self.assertFalse(session.deliver(error_event("late")))
        self.assertEqual(session.drain(), [])

    def test_wire_format_uses_camel_case(self) -> None:
        message, _ = self.store.append_message(self.conversation.id, "hi", "anonymous")
        watcher = RelaySession()
        self.relay.join_conversation_room(watcher, self.conversation.id)
        watcher.drain()

        self.relay.broadcast_new_message(self.conversation.id, message)

        frame = to_wire(watcher.drain()[0])
        self.assertEqual(frame["event"], "new-message")
        self.assertEqual(frame["data"]["convId"], self.conversation.id)
        self.assertEqual(frame["data"]["message"]["authorRole"], "anonymous")
        self.assertIn("sentAt", frame["data"]["message"])


if __name__ == "__main__":
    unittest.main()
