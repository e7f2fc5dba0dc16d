"""Create outbox entries

Revision ID: 3f9c1a2b7d4e
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f9c1a2b7d4e"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the outbox table and the indexes the publisher queries rely on."""
    op.create_table(
        "outbox_entries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("event_id", sa.String(36), nullable=False),
        sa.Column("aggregate_type", sa.String(100), nullable=False),
        sa.Column("aggregate_id", sa.String(255), nullable=False),
        sa.Column("event_type", sa.String(255), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="PENDING"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.String(), nullable=True),
        sa.Column("locked_by", sa.String(255), nullable=True),
        sa.Column("locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("event_id"),
    )

    # Publisher claim query: PENDING entries oldest first
    op.create_index("ix_outbox_entries_status_created_at", "outbox_entries", ["status", "created_at"])
    op.create_index("ix_outbox_entries_aggregate", "outbox_entries", ["aggregate_type", "aggregate_id", "created_at"])
    op.create_index("ix_outbox_entries_event_type", "outbox_entries", ["event_type"])


def downgrade() -> None:
    op.drop_index("ix_outbox_entries_event_type", table_name="outbox_entries")
    op.drop_index("ix_outbox_entries_aggregate", table_name="outbox_entries")
    op.drop_index("ix_outbox_entries_status_created_at", table_name="outbox_entries")
    op.drop_table("outbox_entries")
