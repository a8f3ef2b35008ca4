"""
Catalog API — /catalog
───────────────────────
Endpoints:
  GET  /catalog/search   — Look up songs to rank (iTunes Search API)
"""
from fastapi import APIRouter, HTTPException, Query, status

from encore.schemas.catalog import CatalogSearchResponse, CatalogSong, SearchMeta
from encore.services.catalog_client import (
    CatalogConfigError,
    CatalogService,
    CatalogUpstreamError,
)

router = APIRouter()


def _error(code: str, message: str) -> dict:
    """Standard error envelope."""
    return {"error": {"code": code, "message": message}}


# ── Routes ────────────────────────────────────────────────────────────────────

@router.get("/search", response_model=CatalogSearchResponse)
async def search_catalog(
    q: str = Query(..., min_length=1, description="Search query"),
    limit: int = Query(25, ge=1, le=50),
) -> CatalogSearchResponse:
    """Resolve song candidates (title, artist, artwork) for a query."""
    try:
        service = CatalogService()
        results = await service.search_songs(q, limit=limit)
    except CatalogConfigError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=_error("CATALOG_DISABLED", str(exc)),
        ) from exc
    except CatalogUpstreamError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=_error("CATALOG_UPSTREAM", str(exc)),
        ) from exc

    items = [CatalogSong(**song) for song in results]
    return CatalogSearchResponse(
        items=items,
        meta=SearchMeta(count=len(items), source="itunes"),
    )
