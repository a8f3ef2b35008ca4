"""
Catalog request/response schemas.
"""
from typing import Any, Literal

from pydantic import BaseModel, Field


class SearchMeta(BaseModel):
    """Metadata returned by /catalog/search."""

    count: int
    source: Literal["itunes"]


class CatalogSong(BaseModel):
    """One song candidate resolved by the catalog."""

    catalog_id: str
    title: str
    artist: str
    album: str | None = None
    artwork_url: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)


class CatalogSearchResponse(BaseModel):
    """Response envelope for /catalog/search."""

    items: list[CatalogSong]
    meta: SearchMeta
