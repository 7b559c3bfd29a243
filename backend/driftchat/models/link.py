"""Link ORM model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from driftchat.models.base import Base, CreatedAtMixin


class LinkRow(Base, CreatedAtMixin):
    """Durable copy of a shareable link."""

    __tablename__ = "links"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    creator_id: Mapped[str] = mapped_column(String(64), nullable=False)
