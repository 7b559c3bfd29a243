"""Conversation ORM model."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from driftchat.models.base import Base, CreatedAtMixin


class ConversationRow(Base, CreatedAtMixin):
    """Durable copy of one visitor thread.

    ``promoted_at`` and ``promotion_order`` are set once, on the first message.
    ``promotion_order`` counts promotions within the link and orders its
    visible conversations when the store is rebuilt.
    """

    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    link_id: Mapped[str] = mapped_column(
        ForeignKey("links.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    anonymous_session_id: Mapped[str] = mapped_column(String(64), nullable=False)
    last_message_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    promoted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    promotion_order: Mapped[int | None] = mapped_column(Integer, nullable=True)
