"""
Database connection management and session handling.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
    AsyncEngine,
)

from .config import get_settings
from .models.base import Base
from .cache import init_cache, close_cache

logger = logging.getLogger(__name__)

# Global engine and session factory
engine: AsyncEngine | None = None
async_session_factory: async_sessionmaker[AsyncSession] | None = None

# PostgreSQL SQLSTATEs for transactions aborted by contention
TRANSIENT_SQLSTATES = {"40001", "40P01", "55P03"}


def _configure_sqlite(sqlite_engine: AsyncEngine) -> None:
    """
    Make every SQLite transaction ``BEGIN IMMEDIATE``.

    pysqlite defers BEGIN until the first write, which lets two transactions
    read the same seats before either takes the write lock. Taking the lock at
    BEGIN serialises writers, which is what row locks give us on PostgreSQL.
    """

    @event.listens_for(sqlite_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Stop the driver from emitting its own BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(sqlite_engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_database_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create and configure the database engine for the configured backend."""
    settings = get_settings()
    url = make_url(database_url or settings.database_url)

    if url.get_backend_name() == "sqlite":
        sqlite_engine = create_async_engine(
            url,
            echo=settings.debug,
            connect_args={"timeout": settings.database_busy_timeout_seconds},
        )
        _configure_sqlite(sqlite_engine)
        return sqlite_engine

    return create_async_engine(
        url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=settings.debug,
        connect_args={
            "server_settings": {
                "application_name": "seat_reservation_engine",
            }
        }
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session factory for database sessions."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=True,
    )


def is_transient_error(exc: BaseException) -> bool:
    """True for deadlocks, serialization failures and SQLite lock timeouts."""
    if not isinstance(exc, DBAPIError):
        return False

    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in TRANSIENT_SQLSTATES:
        return True

    return isinstance(exc, OperationalError) and "database is locked" in str(orig)


async def create_tables(target: AsyncEngine) -> None:
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_database(database_url: Optional[str] = None, create_schema: bool = True) -> None:
    """Initialize database connection, create tables and connect the cache."""
    global engine, async_session_factory

    logger.info("Initializing database connection...")

    engine = create_database_engine(database_url)
    async_session_factory = create_session_factory(engine)

    if create_schema:
        await create_tables(engine)

    await init_cache()

    logger.info("Database and cache initialized successfully")


async def close_database() -> None:
    """Close database connections."""
    global engine, async_session_factory

    if engine:
        logger.info("Closing database connections...")
        await engine.dispose()
        logger.info("Database connections closed")
    engine = None
    async_session_factory = None

    await close_cache()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the initialised session factory."""
    if async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return async_session_factory


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Get a database session with automatic commit/rollback.

    Usage:
        async with get_db_session() as session:
            result = await session.execute(query)
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
