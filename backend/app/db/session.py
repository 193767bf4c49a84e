"""
Database Session Management

This module handles the database connection lifecycle.

Key Concepts:
--------------
1. Engine: SQLAlchemy's interface to the embedded SQLite database
2. Session factory: produces AsyncSession objects bound to the engine
3. Async Operations: aiosqlite runs SQLite calls off the event loop

Architecture Flow:
------------------
Runtime Start → create_engine() → init_db() (SELECT 1 + create tables)
↓
ContentStore operation → session from factory → commit/rollback → close
↓
Runtime Shutdown → close_db() → engine disposed

Unlike a server database there is exactly one writer process, so the
engine is created by whoever owns the store (the FastAPI runtime or a Celery
task) rather than once at import time.
"""

from pathlib import Path
from typing import Any, Optional

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


# ================================
# Database Engine Configuration
# ================================

def get_engine_config(database_url: str) -> dict[str, Any]:
    """
    Engine options for an SQLite URL.

    In-memory databases live inside a single connection, so they need a
    StaticPool to be shared by every session. File databases use the
    default pool.
    """
    config: dict[str, Any] = {
        "echo": settings.DB_ECHO,
    }

    url = make_url(database_url)
    if url.database in (None, "", ":memory:"):
        config.update({
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        })

    return config


def _ensure_database_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(database_url)
    if url.database and url.database != ":memory:":
        Path(url.database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    """WAL journaling and foreign keys on every new connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Create the async database engine.

    Args:
        database_url: SQLAlchemy URL; defaults to settings.DATABASE_URL.
            Must use the aiosqlite driver, e.g.
            ``sqlite+aiosqlite:///./cazzmachine.db``

    Returns:
        AsyncEngine: The database engine instance
    """
    database_url = database_url or settings.DATABASE_URL
    _ensure_database_directory(database_url)

    engine_config = get_engine_config(database_url)
    engine = create_async_engine(database_url, **engine_config)
    event.listen(engine.sync_engine, "connect", _set_sqlite_pragmas)

    logger.info(
        "database_engine_created",
        driver="aiosqlite",
        database=make_url(database_url).database,
    )

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Build the session factory for an engine.

    expire_on_commit=False keeps loaded items usable after the store
    operation that produced them has committed and closed its session.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


# ================================
# Lifecycle Functions
# ================================

async def init_db(engine: AsyncEngine) -> None:
    """
    Verify the connection and create missing tables.

    Alembic migrations describe the same schema for upgrades; create_all is
    idempotent (CREATE TABLE IF NOT EXISTS) so a fresh install works without
    running them.
    """
    logger.info("initializing_database")

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))

        logger.info("database_connection_successful")

        # Import models so every table is registered on Base.metadata
        from app.db.base import Base
        import app.models  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("database_tables_created")

    except Exception as e:
        logger.error(
            "database_initialization_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise


async def close_db(engine: AsyncEngine) -> None:
    """Dispose of the engine and close all connections."""
    logger.info("closing_database_connections")

    try:
        await engine.dispose()
        logger.info("database_connections_closed")

    except Exception as e:
        logger.error(
            "database_closure_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        # Don't raise - we're shutting down anyway


async def check_db_health(engine: AsyncEngine) -> bool:
    """
    Check if the database is healthy and responsive.

    Returns:
        bool: True if database is healthy, False otherwise
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    except Exception as e:
        logger.error(
            "database_health_check_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return False
