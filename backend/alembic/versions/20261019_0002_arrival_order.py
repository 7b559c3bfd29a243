"""add message arrival sequence and conversation promotion order

Revision ID: 20261019_0002
Revises: 20261018_0001
Create Date: 2026-10-19 00:00:02
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_0002"
down_revision: str | None = "20261018_0001"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.add_column("messages", sa.Column("sequence", sa.Integer(), nullable=True))
    op.add_column("conversations", sa.Column("promotion_order", sa.Integer(), nullable=True))

    op.execute(
        """
        UPDATE messages SET sequence = (
            SELECT COUNT(*) FROM messages AS earlier
            WHERE earlier.conversation_id = messages.conversation_id
              AND (earlier.sent_at < messages.sent_at
                   OR (earlier.sent_at = messages.sent_at AND earlier.id <= messages.id))
        )
        """
    )
    op.execute(
        """
        UPDATE conversations SET promotion_order = (
            SELECT COUNT(*) FROM conversations AS earlier
            WHERE earlier.link_id = conversations.link_id
              AND earlier.promoted_at IS NOT NULL
              AND (earlier.promoted_at < conversations.promoted_at
                   OR (earlier.promoted_at = conversations.promoted_at AND earlier.id <= conversations.id))
        )
        WHERE promoted_at IS NOT NULL
        """
    )

    op.alter_column("messages", "sequence", existing_type=sa.Integer(), nullable=False)


def downgrade() -> None:
    op.drop_column("conversations", "promotion_order")
    op.drop_column("messages", "sequence")
