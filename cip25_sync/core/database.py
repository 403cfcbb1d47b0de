"""
Database configuration and session management.
"""
import os
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def _engine_kwargs(url: str) -> dict:
    """Pool settings for the configured backend."""
    kwargs = {
        "pool_pre_ping": True,  # Verify connections before using
        "echo": os.getenv("SQL_ECHO", "false").lower() == "true",
    }
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(poolclass=QueuePool, pool_size=2, max_overflow=2)
    if url.startswith("mysql"):
        # Metadata regularly carries emoji and non-BMP characters
        kwargs.setdefault("connect_args", {})["charset"] = "utf8mb4"
    return kwargs


def get_engine(url: Optional[str] = None) -> Engine:
    """Get or create the database engine."""
    global _engine, _SessionLocal

    if _engine is None:
        from cip25_sync.core.config import settings
        database_url = url or settings.DATABASE_URL
        _engine = create_engine(database_url, **_engine_kwargs(database_url))
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)

    return _engine


def SessionLocal() -> Session:
    """Open a new session bound to the shared engine."""
    get_engine()
    return _SessionLocal()


def init_db(engine: Optional[Engine] = None):
    """Create the cip25 table if it does not exist."""
    from cip25_sync.models.models import Base
    Base.metadata.create_all(bind=engine or get_engine(), checkfirst=True)


def dispose_engine():
    """Close pooled connections and forget the engine."""
    global _engine, _SessionLocal

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
