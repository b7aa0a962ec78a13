"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "missions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=200), nullable=False, unique=True),
        sa.Column("brief", sa.Text, nullable=False),
        sa.Column("objective", sa.Text),
        sa.Column("opening", sa.Text),
        sa.Column("mission_prompt", sa.Text),
        sa.Column("mission_type", sa.String(length=40)),
    )

    op.create_table(
        "sessions",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("mission_id", sa.Integer, sa.ForeignKey("missions.id")),
        sa.Column("actions_remaining", sa.Integer, nullable=False, server_default="10"),
        sa.Column("stats_json", postgresql.JSONB),
        sa.Column("state_json", postgresql.JSONB),
    )

    op.create_table(
        "turns",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("session_id", sa.String(length=64), sa.ForeignKey("sessions.id"), nullable=False),
        sa.Column("idx", sa.Integer, nullable=False),
        sa.Column("player_input", sa.String(length=50), nullable=False),
        sa.Column("narrative", sa.Text),
        sa.Column("summary_json", postgresql.JSONB),
        sa.Column("debug_json", postgresql.JSONB),
        sa.UniqueConstraint("session_id", "idx", name="uq_turns_session_idx"),
    )


def downgrade() -> None:
    op.drop_table("turns")
    op.drop_table("sessions")
    op.drop_table("missions")
