"""Initial schema — ranked_songs

Revision ID: 0001
Revises: —
Create Date: 2026-10-19 00:00:00
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ranking_band = sa.Enum("love", "fine", "dislike", name="ranking_band")


def upgrade() -> None:
    # ── ranked_songs ──────────────────────────────────────────────────────────
    op.create_table(
        "ranked_songs",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("artist", sa.String(500), nullable=False),
        sa.Column("band", ranking_band, nullable=False),
        sa.Column("score", sa.Float, nullable=False),
        # Dense 0-based index into the full ranked list
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column("attributes", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("position", name="uq_ranked_songs_position"),
        sa.CheckConstraint("position >= 0", name="chk_position_non_negative"),
        sa.CheckConstraint("score >= 1.0 AND score <= 10.0", name="chk_score_1_10"),
    )
    op.create_index("ix_ranked_songs_title", "ranked_songs", ["title"])


def downgrade() -> None:
    op.drop_index("ix_ranked_songs_title", table_name="ranked_songs")
    op.drop_table("ranked_songs")
    ranking_band.drop(op.get_bind(), checkfirst=True)
