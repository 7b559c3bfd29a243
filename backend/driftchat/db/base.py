"""SQLAlchemy metadata registry import for Alembic."""

from driftchat.models import ConversationRow, LinkRow, MessageRow
from driftchat.models.base import Base

__all__ = ["Base", "LinkRow", "ConversationRow", "MessageRow"]
