"""add team snapshots

Revision ID: 20261001000200
Revises: 20261001000100
Create Date: 2026-10-01 00:02:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261001000200"
down_revision = "20261001000100"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "team_snapshots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("provider", sa.String(), nullable=False),
        sa.Column("league", sa.String(), nullable=False),
        sa.Column("team_id", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("abbreviation", sa.String(), nullable=True),
        sa.Column("color", sa.String(), nullable=False),
        sa.Column("alternate_color", sa.String(), nullable=True),
        sa.Column("logo", sa.String(), nullable=True),
        sa.Column("record_summary", sa.String(), nullable=True),
        sa.Column("standing_summary", sa.String(), nullable=True),
        sa.Column("refreshed_at_utc", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider", "league", "team_id", name="uq_team_snapshots_team"),
    )
    op.create_index(op.f("ix_team_snapshots_id"), "team_snapshots", ["id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_team_snapshots_id"), table_name="team_snapshots")
    op.drop_table("team_snapshots")
