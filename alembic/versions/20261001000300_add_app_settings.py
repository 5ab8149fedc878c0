"""add polling settings

Revision ID: 20261001000300
Revises: 20261001000200
Create Date: 2026-10-01 00:03:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261001000300"
down_revision = "20261001000200"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "app_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("live_poll_seconds", sa.Integer(), nullable=False, server_default="20"),
        sa.Column("idle_poll_seconds", sa.Integer(), nullable=False, server_default="21600"),
        sa.Column("update_dwell_seconds", sa.Integer(), nullable=False, server_default="30"),
        sa.Column(
            "stats_refresh_enabled",
            sa.Boolean(),
            nullable=False,
            server_default=sa.true(),
        ),
        sa.Column("updated_at_utc", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("app_settings")
