"""
Database Module
===============
Async SQLAlchemy engine, session factory and declarative base shared by
the SQL-backed verification store and identity binder.
"""

from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Optional
from sqlalchemy import DateTime, event
from sqlalchemy.ext.asyncio import (
    create_async_engine as sa_create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator
from contextlib import asynccontextmanager
import structlog

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC datetime column.

    Backends without native timezone support (SQLite) hand back naive
    values; those are read as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("Naive datetime passed to a UTC column")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def _begin_immediate(engine: AsyncEngine) -> None:
    """
    Start SQLite transactions with BEGIN IMMEDIATE.

    The driver otherwise begins deferred transactions, and two of them that
    read before writing can deadlock on the lock upgrade. Taking the write
    lock up front makes concurrent writers queue on the busy timeout.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_async_engine(
    database_url: str,
    pool_pre_ping: bool = True,
    echo: bool = False,
    **engine_kwargs: Any,
) -> AsyncEngine:
    """
    Create and configure the async database engine.

    Call this once during application startup.

    Args:
        database_url: Async connection string (postgresql+asyncpg://..., sqlite+aiosqlite://...)
        pool_pre_ping: Enable connection health checks (default: True)
        echo: Log SQL statements (default: False)
        **engine_kwargs: Passed through to SQLAlchemy (pool_size, poolclass, ...)

    Returns:
        Configured AsyncEngine instance
    """
    engine = sa_create_async_engine(
        database_url,
        pool_pre_ping=pool_pre_ping,
        echo=echo,
        **engine_kwargs,
    )
    if engine.dialect.name == "sqlite":
        _begin_immediate(engine)
    logger.info("Database engine initialized", dialect=engine.dialect.name)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Build the session factory for an engine.

    Usage:
        factory = create_session_factory(engine)
        async with factory() as session:
            ...
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables for the registered models if they do not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def transaction(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for one unit of work.

    Commits on success and rolls back on exception.

    Usage:
        async with transaction(factory) as db:
            result = await db.execute(...)
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def close_engine(engine: AsyncEngine) -> None:
    """Close the database engine. Call during application shutdown."""
    await engine.dispose()
    logger.info("Database engine closed")
