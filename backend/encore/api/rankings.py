"""
Rankings API — /rankings
──────────────────────────
Endpoints:
  GET    /rankings                               — Full ranked list
  DELETE /rankings/{item_id}                     — Remove a song (204)
  PATCH  /rankings/{item_id}/band                — Change a song's sentiment
  POST   /rankings/sessions                      — Start ranking a song (201)
  GET    /rankings/sessions/current              — Pending session, if any
  POST   /rankings/sessions/{session_id}/sentiment — Choose Love / Fine / Dislike
  POST   /rankings/sessions/{session_id}/answer  — Answer one comparison
  DELETE /rankings/sessions/{session_id}         — Cancel (204, idempotent)
"""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from encore.deps.engine import get_engine
from encore.schemas.rankings import (
    BeginRankingRequest,
    ChangeBandRequest,
    ComparisonRequest,
    RankedItemResponse,
    RankingListItem,
    SentimentRequest,
    SessionResponse,
)
from encore.services.insertion_session import InvalidSessionStateError
from encore.services.ranking_engine import (
    ConcurrentSessionError,
    InvalidAnswerError,
    InvariantViolationError,
    ItemNotFoundError,
    NoActiveSessionError,
    RankingEngine,
    SessionHandle,
)
from encore.services.ranking_math import Band

router = APIRouter()


def _error(code: str, message: str) -> dict:
    """Standard error envelope."""
    return {"error": {"code": code, "message": message}}


def _session_errors(exc: Exception) -> HTTPException:
    """Map session-flow errors onto HTTP responses."""
    if isinstance(exc, InvariantViolationError):
        return _invariant_error(exc)
    if isinstance(exc, NoActiveSessionError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=_error("NO_ACTIVE_SESSION", str(exc)),
        )
    if isinstance(exc, InvalidAnswerError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_error("INVALID_ANSWER", str(exc)),
        )
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=_error("INVALID_SESSION_STATE", str(exc)),
    )


def _invariant_error(exc: InvariantViolationError) -> HTTPException:
    """The change was kept and published; the list needs attention."""
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=_error("INVARIANT_VIOLATION", str(exc)),
    )


# ── Ranked list ───────────────────────────────────────────────────────────────


@router.get("", response_model=list[RankingListItem])
def get_rankings(
    band: Band | None = Query(None, description="Only return songs in this band"),
    engine: RankingEngine = Depends(get_engine),
) -> list[RankingListItem]:
    """
    Return the ranked list, Love first, then Fine, then Dislike.
    rank is the 1-based position in the full list, also when filtering.
    """
    entries = engine.list_rankings()
    if band is not None:
        entries = tuple(entry for entry in entries if entry.item.band == band)
    return [RankingListItem.from_entry(entry) for entry in entries]


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_ranking_endpoint(
    item_id: UUID,
    engine: RankingEngine = Depends(get_engine),
) -> None:
    """Remove a song from the ranked list."""
    try:
        removed = engine.remove(item_id)
    except ConcurrentSessionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=_error("SESSION_IN_PROGRESS", str(exc)),
        ) from exc
    except InvariantViolationError as exc:
        raise _invariant_error(exc) from exc

    if removed is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=_error("RANKING_NOT_FOUND", f"Song {item_id} is not ranked"),
        )


@router.patch("/{item_id}/band", response_model=RankedItemResponse)
def change_band_endpoint(
    item_id: UUID,
    payload: ChangeBandRequest,
    engine: RankingEngine = Depends(get_engine),
) -> RankedItemResponse:
    """
    Change the sentiment of an already ranked song.

    The song keeps its order relative to the other songs it lands among;
    every band is rescored.
    """
    try:
        item = engine.change_band(item_id, payload.band)
    except ItemNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=_error("RANKING_NOT_FOUND", str(exc)),
        ) from exc
    except ConcurrentSessionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=_error("SESSION_IN_PROGRESS", str(exc)),
        ) from exc
    except InvariantViolationError as exc:
        raise _invariant_error(exc) from exc
    return RankedItemResponse.from_item(item)


# ── Sessions ──────────────────────────────────────────────────────────────────


@router.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
)
def begin_ranking_endpoint(
    payload: BeginRankingRequest,
    engine: RankingEngine = Depends(get_engine),
) -> SessionResponse:
    """
    Start ranking a song. Only one session may be open at a time.

    A song that is already ranked (same id, or same title and artist) is
    re-ranked from scratch.
    """
    try:
        engine.begin_ranking(payload.to_item())
    except ConcurrentSessionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=_error("SESSION_IN_PROGRESS", str(exc)),
        ) from exc

    view = engine.current_session()
    if view is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_error("INTERNAL", "Failed to load the new session"),
        )
    return SessionResponse.from_view(view)


@router.get("/sessions/current", response_model=SessionResponse)
def get_current_session(engine: RankingEngine = Depends(get_engine)) -> SessionResponse:
    """Return the pending session so a client can re-render its prompt."""
    view = engine.current_session()
    if view is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=_error("NO_ACTIVE_SESSION", "No ranking session is in progress"),
        )
    return SessionResponse.from_view(view)


@router.post("/sessions/{session_id}/sentiment", response_model=SessionResponse)
def supply_sentiment_endpoint(
    session_id: UUID,
    payload: SentimentRequest,
    engine: RankingEngine = Depends(get_engine),
) -> SessionResponse:
    """Choose the band. Returns the first comparison, or the placed song."""
    try:
        view = engine.supply_sentiment(SessionHandle(session_id), payload.band)
    except (
        NoActiveSessionError,
        InvalidAnswerError,
        InvalidSessionStateError,
        InvariantViolationError,
    ) as exc:
        raise _session_errors(exc) from exc
    return SessionResponse.from_view(view)


@router.post("/sessions/{session_id}/answer", response_model=SessionResponse)
def answer_comparison_endpoint(
    session_id: UUID,
    payload: ComparisonRequest,
    engine: RankingEngine = Depends(get_engine),
) -> SessionResponse:
    """Answer "is the candidate better than the probe?"."""
    try:
        view = engine.answer_comparison(SessionHandle(session_id), payload.answer)
    except (
        NoActiveSessionError,
        InvalidAnswerError,
        InvalidSessionStateError,
        InvariantViolationError,
    ) as exc:
        raise _session_errors(exc) from exc
    return SessionResponse.from_view(view)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def cancel_session_endpoint(
    session_id: UUID,
    engine: RankingEngine = Depends(get_engine),
) -> None:
    """Cancel a session. Cancelling an unknown or finished session is a no-op."""
    engine.cancel(SessionHandle(session_id))
