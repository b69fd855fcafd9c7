# backend/fxrates/database.py
"""
Engine and session factory for the rate store and currency registry.

Services never share a session: RateStore and CurrencyService receive
SessionLocal itself and open one short-lived session per operation, so
they are safe to call from the aggregator's worker threads and from the
refresh scheduler.

PostgreSQL in production (QueuePool, sized via DB_POOL_* settings).
SQLite for tests and local runs; an in-memory database is held on a single
shared connection so every session sees the same tables.
"""

import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from .config import settings

logger = logging.getLogger(__name__)


def _create_engine() -> Engine:
    if settings.is_sqlite:
        logger.info("Configuring SQLite database")
        # Refresh and scheduler threads use the same connection
        return create_engine(
            settings.database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=settings.debug,
        )

    logger.info(
        f"Configuring PostgreSQL database pool: "
        f"size={settings.db_pool_size}, "
        f"max_overflow={settings.db_pool_max_overflow}, "
        f"recycle={settings.db_pool_recycle}s"
    )
    return create_engine(
        settings.database_url,
        poolclass=QueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_pool_max_overflow,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_timeout=30,
        echo=settings.debug,
    )


engine = _create_engine()

# expire_on_commit=False: rows are converted to plain dataclasses after commit
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def check_database_health() -> dict:
    """
    Run SELECT 1 against the rate database.

    Returns:
        {"status": "healthy", "database": ..., "pool": ...} or
        {"status": "unhealthy", "error": ...}
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}

    return {
        "status": "healthy",
        "database": "sqlite" if settings.is_sqlite else "postgresql",
        "pool": engine.pool.status(),
    }
