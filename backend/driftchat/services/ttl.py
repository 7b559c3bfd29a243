"""Expiry windows and the clock used to evaluate them."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from driftchat.config import Settings

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default wall clock."""

    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class TtlPolicy:
    """Retention windows for links, messages and conversations.

    ``link_ttl`` and ``conversation_retention`` may be ``None``, meaning the
    corresponding records never age out on their own. ``conversation_retention``
    runs from the last message and is longer than ``message_ttl``, so a promoted
    conversation outlives its messages for a while before it is deleted.
    """

    link_ttl: timedelta | None = timedelta(hours=6)
    message_ttl: timedelta = timedelta(hours=24)
    empty_conversation_grace: timedelta = timedelta(hours=1)
    conversation_retention: timedelta | None = timedelta(days=7)

    @classmethod
    def from_settings(cls, settings: Settings) -> TtlPolicy:
        return cls(
            link_ttl=_seconds(settings.link_ttl_seconds),
            message_ttl=timedelta(seconds=settings.message_ttl_seconds),
            empty_conversation_grace=timedelta(seconds=settings.empty_conversation_grace_seconds),
            conversation_retention=_seconds(settings.conversation_retention_seconds),
        )


def link_expired(policy: TtlPolicy, created_at: datetime, now: datetime) -> bool:
    if policy.link_ttl is None:
        return False
    return now - created_at > policy.link_ttl


def message_expired(policy: TtlPolicy, sent_at: datetime, now: datetime) -> bool:
    return now - sent_at > policy.message_ttl


def abandoned_conversation(policy: TtlPolicy, created_at: datetime, now: datetime) -> bool:
    """True for a never-promoted conversation past the empty grace period."""

    return now - created_at > policy.empty_conversation_grace


def stale_conversation(policy: TtlPolicy, last_message_at: datetime, now: datetime) -> bool:
    """True for a promoted, now-empty conversation past the retention window."""

    if policy.conversation_retention is None:
        return False
    return now - last_message_at > policy.conversation_retention


def _seconds(value: int | None) -> timedelta | None:
    if value is None:
        return None
    return timedelta(seconds=value)
