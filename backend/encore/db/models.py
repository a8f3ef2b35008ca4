"""
SQLAlchemy ORM models.

The ranked list is stored as one row per song with an explicit integer
position. Rows are rewritten as a whole after every committed mutation, so
position is dense (0..n-1) and unique.

Portable column types (Uuid, JSON) keep the schema usable on SQLite for local
runs and Postgres in production.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase

from encore.services.ranking_math import Band


# ── Base ──────────────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    pass


# ── Timestamp helper ──────────────────────────────────────────────────────────

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Models ────────────────────────────────────────────────────────────────────

class RankedSong(Base):
    """
    A song in the user's ranked list.

    position    — 0-based index in the full list (Love prefix, then Fine,
                  then Dislike).
    score       — 1.0–10.0, interpolated inside the band's range.
    attributes  — opaque catalog payload (album, artwork_url, catalog_id…).
    """
    __tablename__ = "ranked_songs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(500), nullable=False, index=True)
    artist = Column(String(500), nullable=False)
    band = Column(
        SAEnum(
            Band,
            name="ranking_band",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
    )
    score = Column(Float, nullable=False)
    position = Column(Integer, nullable=False)
    attributes = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("position", name="uq_ranked_songs_position"),
        CheckConstraint("position >= 0", name="chk_position_non_negative"),
        CheckConstraint("score >= 1.0 AND score <= 10.0", name="chk_score_1_10"),
    )

    def __repr__(self) -> str:
        return (
            f"<RankedSong id={self.id} title={self.title!r} "
            f"band={self.band} pos={self.position} score={self.score}>"
        )
