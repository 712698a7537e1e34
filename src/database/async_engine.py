"""Async engine lifecycle.

One ``AsyncEngine`` per process, created on first use. Its bounded pool is
the only resource shared between concurrent requests: a checkout that waits
longer than ``pool_timeout`` raises ``sqlalchemy.exc.TimeoutError``, which
the resilient executor retries.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from config.database import DatabaseSettings, get_database_settings

if TYPE_CHECKING:
    from database.store import Store

logger = logging.getLogger(__name__)

_async_engine: Optional[AsyncEngine] = None


def create_engine(settings: Optional[DatabaseSettings] = None) -> AsyncEngine:
    """
    Build an engine for the configured driver.

    SQLite gets a fresh connection per checkout (``NullPool``); server
    databases get a queue pool sized from settings.
    """
    settings = settings or get_database_settings()

    if settings.is_sqlite:
        engine = create_async_engine(
            settings.async_url,
            echo=settings.echo_sql,
            poolclass=NullPool,
            connect_args=settings.get_connect_args(),
        )
    else:
        engine = create_async_engine(
            settings.async_url,
            echo=settings.echo_sql,
            poolclass=AsyncAdaptedQueuePool,
            connect_args=settings.get_connect_args(),
            **settings.pool_options(),
        )

    if settings.is_sqlite:
        event.listen(engine.sync_engine, "connect", _configure_sqlite_connection)

    logger.info(
        "Database engine created",
        extra={"extra_data": {
            "url": settings.safe_url,
            "pool_size": None if settings.is_sqlite else settings.pool_size,
        }},
    )
    return engine


def _configure_sqlite_connection(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    # SQLite ignores operations.parceiro_id -> partners.id unless enabled per connection
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def get_async_engine(settings: Optional[DatabaseSettings] = None) -> AsyncEngine:
    """Process-wide engine. ``settings`` only matter on the first call."""
    global _async_engine

    if _async_engine is None:
        _async_engine = create_engine(settings)
    return _async_engine


def get_store(settings: Optional[DatabaseSettings] = None) -> "Store":
    """Store bound to the process-wide engine."""
    from database.store import Store

    return Store(get_async_engine(settings))


async def check_database_connection(engine: Optional[AsyncEngine] = None) -> bool:
    """Run ``SELECT 1``; False when the database cannot be reached."""
    engine = engine or get_async_engine()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
    return True


async def init_database(engine: Optional[AsyncEngine] = None) -> None:
    """Create the tables that do not exist yet."""
    from database.models import Base

    engine = engine or get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")


async def close_database() -> None:
    """Dispose the process-wide engine and its pooled connections."""
    global _async_engine

    if _async_engine is not None:
        await _async_engine.dispose()
        _async_engine = None
        logger.info("Database engine closed")
