"""Periodic TTL sweep over the entity store."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from time import perf_counter
from typing import Iterable

from driftchat.services.entity_store import EntityStore
from driftchat.services.relay import RelayEngine
from driftchat.services.ttl import abandoned_conversation, link_expired, stale_conversation

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SweepReport:
    links_deleted: int = 0
    conversations_deleted: int = 0
    messages_deleted: int = 0

    @property
    def total(self) -> int:
        return self.links_deleted + self.conversations_deleted + self.messages_deleted


class GarbageCollector:
    """Reclaim expired links, messages and empty conversations.

    A sweep handles one link (with its conversations) per step and yields to
    the event loop between steps. Steps are idempotent, so a sweep interrupted
    by an error converges on the next run.
    """

    def __init__(
        self,
        store: EntityStore,
        *,
        relay: RelayEngine | None = None,
        interval_seconds: float = 3600.0,
    ) -> None:
        self._store = store
        self._relay = relay
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    async def sweep(self) -> SweepReport:
        """Run one full pass; errors propagate to the caller."""

        report = SweepReport()
        started = perf_counter()

        for conversation_id in self._store.orphaned_conversation_ids():
            if self._store.delete_conversation(conversation_id):
                report.conversations_deleted += 1
                self._evict(conversation_ids=[conversation_id], message="Chat link has expired")

        for link_id in self._store.link_ids():
            self._sweep_link(link_id, report)
            await asyncio.sleep(0)

        if report.total:
            logger.info(
                "relay.sweep_completed links=%d conversations=%d messages=%d total_ms=%.2f",
                report.links_deleted,
                report.conversations_deleted,
                report.messages_deleted,
                (perf_counter() - started) * 1000.0,
            )
        return report

    async def sweep_safely(self) -> SweepReport | None:
        """Sweep, logging instead of raising; used by the timer loop."""

        try:
            return await self.sweep()
        except Exception:
            logger.exception("relay.sweep_failed")
            return None

    async def run_forever(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.sweep_safely()

    def start(self) -> asyncio.Task[None]:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="driftchat-sweeper")
            logger.info("relay.sweeper_started interval_s=%.0f", self.interval_seconds)
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("relay.sweeper_stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _sweep_link(self, link_id: str, report: SweepReport) -> None:
        store = self._store
        link = store.peek_link(link_id)
        if link is None:
            return
        now = store.clock()

        if link_expired(store.policy, link.created_at, now):
            removed = store.delete_link(link_id)
            report.links_deleted += 1
            report.conversations_deleted += len(removed)
            self._evict(link_ids=[link_id], conversation_ids=removed, message="Chat link has expired")
            return

        for conversation_id in store.conversation_ids_for_link(link_id):
            report.messages_deleted += store.prune_messages(conversation_id)
            conversation = store.peek_conversation(conversation_id)
            if conversation is None or conversation.messages:
                continue
            if conversation.visible:
                doomed = stale_conversation(store.policy, conversation.last_message_at, now)
            else:
                doomed = abandoned_conversation(store.policy, conversation.created_at, now)
            if doomed and store.delete_conversation(conversation_id):
                report.conversations_deleted += 1
                self._evict(conversation_ids=[conversation_id], message="Conversation has expired")

    def _evict(self, *, link_ids: Iterable[str] = (), conversation_ids: Iterable[str] = (), message: str) -> None:
        if self._relay is not None:
            self._relay.evict_rooms(link_ids=link_ids, conversation_ids=conversation_ids, message=message)
