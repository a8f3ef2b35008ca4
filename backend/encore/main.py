"""
Encore API — FastAPI application entry point.

Routers are registered here. Each service lives in encore/api/.

Startup builds the single RankingEngine, seeds it from the database and
subscribes the persistence writer; shutdown drains pending writes.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from encore.api import catalog, rankings
from encore.core.config import settings
from encore.core.logging import setup_logger
from encore.db.models import Base
from encore.db.session import SessionLocal, engine
from encore.services.ranking_engine import RankingEngine
from encore.services.ranking_store import PersistenceWriter, RankingStore

logger = setup_logger(__name__)

APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)

    ranking_engine = RankingEngine(fail_fast=settings.fail_fast_invariants)
    writer = PersistenceWriter(
        SessionLocal,
        attempts=settings.PERSIST_WRITE_ATTEMPTS,
        retry_delay=settings.PERSIST_RETRY_DELAY_SECONDS,
    )
    # Subscribe before loading so a repaired list is written back
    ranking_engine.subscribe(writer)

    db = SessionLocal()
    try:
        ranking_engine.load(RankingStore.load_items(db))
    finally:
        db.close()

    app.state.ranking_engine = ranking_engine
    logger.info("Encore API started (%s)", settings.APP_ENV)
    try:
        yield
    finally:
        app.state.ranking_engine = None
        writer.close()
        logger.info("Encore API stopped")


app = FastAPI(
    title="Encore API",
    description="Backend for the Encore personal song ranking app.",
    version=APP_VERSION,
    docs_url="/docs" if settings.ENABLE_DOCS else None,
    redoc_url="/redoc" if settings.ENABLE_DOCS else None,
    lifespan=lifespan,
)

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(rankings.router, prefix="/rankings", tags=["rankings"])
app.include_router(catalog.router,  prefix="/catalog",  tags=["catalog"])


# ── Health check ──────────────────────────────────────────────────────────────
@app.get("/health", tags=["system"])
def health_check() -> dict:
    """Liveness probe. Returns 200 when the server is up."""
    return {"status": "ok", "version": APP_VERSION, "env": settings.APP_ENV}
