"""
SQLAlchemy engine + session factory.

SessionLocal is used by the persistence writer, which opens one short-lived
session per write on its own worker thread.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from encore.core.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # Writes happen on a worker thread, not the thread that opened the pool
        return {"connect_args": {"check_same_thread": False}}
    return {
        # Health-check connections before handing them to the app
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
    }


engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    **_engine_kwargs(settings.DATABASE_URL),
)

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,  # Avoid lazy-load errors after commit
)
