"""Database engine & session utilities.

The DB helper is deliberately minimal: sync engine + classic session maker.
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dayta.config import settings
from dayta.db.base import Base

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Engine & session factory
# ---------------------------------------------------------------------------


def _engine_kwargs(url: str) -> dict:
    """SQLite needs cross-thread access; in-memory SQLite needs a single shared connection."""
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
        kwargs["poolclass"] = StaticPool
    return kwargs


logger.info("Creating database engine for %s", settings.DATABASE_URL.split('@')[-1])
engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    future=True,
    **_engine_kwargs(settings.DATABASE_URL),
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def create_tables() -> None:
    """Create all tables if they do not yet exist. Harmless when they do."""
    from dayta import models  # noqa: F401 - registers every mapped class

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")


def get_db():
    """Yields a database session and ensures it's closed after use."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        logger.debug("DB session closed")
