"""add members and event participants

Revision ID: 20240215_add_members
Revises: 20240101_create_events
Create Date: 2024-02-15
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision: str = "20240215_add_members"
down_revision: Union[str, Sequence[str], None] = "20240101_create_events"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    tables = set(inspect(bind).get_table_names())

    # Create only if missing (dev databases may come from create_all)
    if "members" not in tables:
        op.create_table(
            "members",
            sa.Column("id", sa.String(length=32), primary_key=True),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("part", sa.String(length=120), nullable=True),
            sa.Column("contact", sa.String(length=255), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )
    if "event_participants" not in tables:
        op.create_table(
            "event_participants",
            sa.Column("id", sa.String(length=32), primary_key=True),
            sa.Column("event_id", sa.String(length=32), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
            sa.Column("member_id", sa.String(length=32), sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint("event_id", "member_id", name="uq_event_participant"),
        )
        op.create_index("ix_event_participants_event_id", "event_participants", ["event_id"])
        op.create_index("ix_event_participants_member_id", "event_participants", ["member_id"])


def downgrade() -> None:
    bind = op.get_bind()
    tables = set(inspect(bind).get_table_names())

    # Drop only if present
    if "event_participants" in tables:
        op.drop_table("event_participants")
    if "members" in tables:
        op.drop_table("members")
