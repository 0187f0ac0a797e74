"""
Database engine and session management.

Nothing here is global: the engine is built from Settings and owned by the
store that uses it.
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import tt.models  # noqa: F401  populates SQLModel.metadata
from tt.core.config import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine (connection pool) for the configured database."""
    url = settings.dsn
    kwargs: dict = {"echo": settings.debug, "future": True}

    if url.startswith("sqlite"):
        engine = create_async_engine(url, **kwargs)
        _enable_sqlite_foreign_keys(engine)
        return engine

    return create_async_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=True,
        **kwargs,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    # SQLite ignores ON DELETE CASCADE unless asked per connection.
    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


async def init_db(engine: AsyncEngine, drop: bool = False) -> None:
    """Create all tables, dropping them first if asked. Use with care."""
    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)
