"""
Ranking engine dependency — shared across the ranking endpoints.

The engine is created once at startup (see encore.main.lifespan) and kept on
app.state; routes never build their own.

Usage in any route:
    from encore.deps.engine import get_engine
    from encore.services.ranking_engine import RankingEngine

    @router.get("/rankings")
    def rankings(engine: RankingEngine = Depends(get_engine)):
        ...
"""
from fastapi import HTTPException, Request, status

from encore.services.ranking_engine import RankingEngine


def get_engine(request: Request) -> RankingEngine:
    """Return the application's RankingEngine; 503 until startup has finished."""
    engine = getattr(request.app.state, "ranking_engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": {"code": "ENGINE_UNAVAILABLE", "message": "Ranking engine is not ready"}},
        )
    return engine
