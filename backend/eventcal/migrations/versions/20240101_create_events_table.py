"""create events table

Revision ID: 20240101_create_events
Revises:
Create Date: 2024-01-01
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision: str = "20240101_create_events"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    if "events" in set(inspect(bind).get_table_names()):
        # built by create_all before Alembic took over; indexes came with it
        return

    op.create_table(
        "events",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.String(length=2000), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("color", sa.String(length=32), nullable=False, server_default="#1A73E8"),
        sa.Column("category", sa.String(length=64), nullable=False, server_default="rehearsal"),
        sa.Column("start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end",   sa.DateTime(timezone=True), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default="Asia/Seoul"),
        # JSON text: {"weekdays": [...], "interval": n, "count": n, "until": iso}
        sa.Column("recurrence_rule", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_events_start", "events", ["start"])
    op.create_index("ix_events_category", "events", ["category"])


def downgrade() -> None:
    op.drop_index("ix_events_category", table_name="events")
    op.drop_index("ix_events_start", table_name="events")
    op.drop_table("events")
