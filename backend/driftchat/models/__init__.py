"""ORM models package exports."""

from driftchat.models.conversation import ConversationRow
from driftchat.models.link import LinkRow
from driftchat.models.message import MessageRow

__all__ = [
    "LinkRow",
    "ConversationRow",
    "MessageRow",
]
