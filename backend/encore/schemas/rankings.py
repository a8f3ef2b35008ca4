"""
Ranking request/response schemas.
"""
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from encore.services.insertion_session import ComparisonAnswer, SessionState, SessionView
from encore.services.ranked_list import RankedItem
from encore.services.ranking_engine import RankedEntry
from encore.services.ranking_math import Band


def _clean_text(value: str, field_name: str) -> str:
    cleaned = " ".join(value.strip().split())
    if not cleaned:
        raise ValueError(f"{field_name} cannot be empty")
    if len(cleaned) > 500:
        raise ValueError(f"{field_name} cannot exceed 500 characters")
    return cleaned


class BeginRankingRequest(BaseModel):
    """Payload for POST /rankings/sessions."""

    id: UUID | None = None
    title: str
    artist: str
    attributes: dict[str, Any] = Field(default_factory=dict)

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str) -> str:
        return _clean_text(value, "title")

    @field_validator("artist")
    @classmethod
    def validate_artist(cls, value: str) -> str:
        return _clean_text(value, "artist")

    def to_item(self) -> RankedItem:
        item = RankedItem(title=self.title, artist=self.artist, attributes=dict(self.attributes))
        if self.id is not None:
            item.id = self.id
        return item


class SentimentRequest(BaseModel):
    """Payload for POST /rankings/sessions/{session_id}/sentiment."""

    band: Band


class ComparisonRequest(BaseModel):
    """Payload for POST /rankings/sessions/{session_id}/answer."""

    answer: ComparisonAnswer


class ChangeBandRequest(BaseModel):
    """Payload for PATCH /rankings/{item_id}/band."""

    band: Band


class RankedItemResponse(BaseModel):
    """A song as seen by the ranking core."""

    id: UUID
    title: str
    artist: str
    band: Band | None
    score: float
    attributes: dict[str, Any]

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_item(cls, item: RankedItem) -> "RankedItemResponse":
        return cls.model_validate(item)


class RankingListItem(BaseModel):
    """Single row in the ranked-list response."""

    rank: int
    id: UUID
    title: str
    artist: str
    band: Band
    score: float
    attributes: dict[str, Any]

    @classmethod
    def from_entry(cls, entry: RankedEntry) -> "RankingListItem":
        return cls(
            rank=entry.rank,
            id=entry.item.id,
            title=entry.item.title,
            artist=entry.item.artist,
            band=entry.item.band,
            score=entry.score,
            attributes=entry.item.attributes,
        )


class SessionResponse(BaseModel):
    """
    State of a ranking session.

    probe is set only while state == "comparing"; insertion_index only once
    the candidate has been placed.
    """

    session_id: UUID
    state: SessionState
    candidate: RankedItemResponse
    band: Band | None
    probe: RankedItemResponse | None
    probe_index: int | None
    comparisons: int
    insertion_index: int | None
    is_rerank: bool

    @classmethod
    def from_view(cls, view: SessionView) -> "SessionResponse":
        return cls(
            session_id=view.session_id,
            state=view.state,
            candidate=RankedItemResponse.from_item(view.candidate),
            band=view.band,
            probe=RankedItemResponse.from_item(view.probe) if view.probe is not None else None,
            probe_index=view.probe_index,
            comparisons=view.comparisons,
            insertion_index=view.insertion_index,
            is_rerank=view.is_rerank,
        )
