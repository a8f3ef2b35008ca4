"""
Catalog Client
──────────────
Wraps the iTunes Search API to resolve song candidates for ranking.

Flow:
  1. User types a query.
  2. /catalog/search calls CatalogService.search_songs().
  3. The client picks a result and starts a ranking session with it.

The ranking core never interprets the payload beyond title and artist;
album, artwork and catalog ids travel in `attributes`.
"""
import httpx

from encore.core.config import settings
from encore.core.logging import setup_logger

logger = setup_logger(__name__)

# Artwork URLs come back sized 100x100; this size is what the UI renders
ARTWORK_SIZE = "600x600"


class CatalogConfigError(Exception):
    """Raised when the catalog client has no base URL configured."""


class CatalogUpstreamError(Exception):
    """Raised for non-recoverable catalog request/response errors."""


class CatalogService:
    """
    Thin async wrapper around the iTunes Search API.
    Uses httpx for HTTP — non-blocking in async FastAPI context.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        country: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url if base_url is not None else settings.CATALOG_BASE_URL).rstrip("/")
        if not self.base_url:
            raise CatalogConfigError(
                "CATALOG_BASE_URL is not set. "
                "Add it to your .env file or pass it explicitly."
            )
        self.country = country or settings.CATALOG_COUNTRY
        self.timeout = timeout or settings.CATALOG_TIMEOUT_SECONDS
        self._transport = transport

    async def search_songs(self, query: str, limit: int | None = None) -> list[dict]:
        """
        Search the catalog for songs matching *query*.

        Returns a list of dicts shaped like:
        [
          {
            "catalog_id": "1440857781",
            "title": "Hey Jude",
            "artist": "The Beatles",
            "album": "The Beatles 1967-1970",
            "artwork_url": "https://is1-ssl.mzstatic.com/.../600x600bb.jpg",
            "attributes": {
              "album": "...",
              "artwork_url": "...",
              "catalog_id": "1440857781",
              "genre": "Rock",
              "release_year": 1968,
              "source": "itunes"
            }
          },
          ...
        ]
        """
        cleaned_query = " ".join(query.split())
        if not cleaned_query:
            return []

        params = {
            "term": cleaned_query,
            "media": "music",
            "entity": "song",
            "country": self.country,
            "limit": limit or settings.CATALOG_RESULT_LIMIT,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(f"{self.base_url}/search", params=params)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning("catalog search failed with status %s", exc.response.status_code)
            raise CatalogUpstreamError(
                f"Catalog search failed with status {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("catalog search request failed: %s", exc)
            raise CatalogUpstreamError("Catalog search request failed") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise CatalogUpstreamError("Catalog returned a non-JSON body") from exc

        mapped: list[dict] = []
        for raw in payload.get("results", []):
            song = self._map_search_item(raw)
            if song is not None:
                mapped.append(song)
        return mapped

    def _format_artwork_url(self, url: str | None) -> str | None:
        """Swap the thumbnail size in an artwork URL for ARTWORK_SIZE."""
        if not url:
            return None
        return url.replace("100x100", ARTWORK_SIZE)

    def _map_search_item(self, raw: dict) -> dict | None:
        """Normalize one /search result row; non-song rows are skipped."""
        if raw.get("kind") not in (None, "song"):
            return None
        track_id = raw.get("trackId")
        title = raw.get("trackName")
        artist = raw.get("artistName")
        if not track_id or not title or not artist:
            return None

        release_date = raw.get("releaseDate")
        release_year = (
            int(release_date[:4])
            if isinstance(release_date, str) and release_date[:4].isdigit()
            else None
        )
        artwork_url = self._format_artwork_url(raw.get("artworkUrl100"))

        attributes = {
            "album": raw.get("collectionName"),
            "artwork_url": artwork_url,
            "catalog_id": str(track_id),
            "genre": raw.get("primaryGenreName"),
            "release_year": release_year,
            "preview_url": raw.get("previewUrl"),
            "source": "itunes",
        }

        return {
            "catalog_id": str(track_id),
            "title": title,
            "artist": artist,
            "album": raw.get("collectionName"),
            "artwork_url": artwork_url,
            "attributes": attributes,
        }
