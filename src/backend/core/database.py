"""
Database configuration.

The async engine and session factory are built from DatabaseSettings during
application startup and stored on `app.state`; nothing here holds a
module-level connection pool.
"""

import logging
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.exc import PendingRollbackError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from core.config import DatabaseSettings

logger = logging.getLogger(__name__)


def create_engine_from_settings(db_settings: DatabaseSettings) -> AsyncEngine:
    """
    Create the async engine.

    SQLite gets a StaticPool so an in-memory database survives across
    sessions; server databases get the configured connection pool.
    """
    if db_settings.is_sqlite:
        return create_async_engine(
            db_settings.url,
            echo=db_settings.echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_async_engine(
        db_settings.url,
        echo=db_settings.echo,
        pool_pre_ping=True,
        pool_size=db_settings.pool_size,
        max_overflow=db_settings.max_overflow,
        pool_timeout=db_settings.pool_timeout,
        pool_recycle=db_settings.pool_recycle,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory bound to `engine`."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Ticket objects are returned after commit
        autoflush=False,
    )


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Commits whatever is still pending when the request finishes and rolls
    back if the handler raised.
    """
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            if session.in_transaction():
                try:
                    await session.commit()
                except PendingRollbackError:
                    await session.rollback()
                    raise
        except Exception:
            await session.rollback()
            raise


async def init_db(engine: AsyncEngine) -> None:
    """
    Create all tables that do not exist yet.
    Should be called on application startup.
    """
    # Import models so they register on SQLModel.metadata
    import db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables ensured")


async def ping_database(engine: AsyncEngine) -> bool:
    """Run a trivial query; used by the health endpoint."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True


async def close_db(engine: AsyncEngine) -> None:
    """
    Close database connections.
    Should be called on application shutdown.
    """
    await engine.dispose()
