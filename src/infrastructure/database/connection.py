# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Async engine and session lifecycle for the messaging database.

PostgreSQL (asyncpg) in deployments. SQLite URLs (aiosqlite) are accepted
for local development and tests, without the pool sizing options.

Example:
    await init_database(settings)

    async with get_session() as session:
        messages = (await session.execute(select(Message))).scalars().all()

    await close_database()
"""

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

if TYPE_CHECKING:
    from src.core.config.settings import DatabaseSettings, Settings

_engine: Optional[AsyncEngine] = None
_sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None

POOL_RECYCLE_SECONDS = 1800


class DatabaseError(Exception):
    """Storage failure surfaced to the API layer.

    Attributes:
        message: What was being attempted.
        original_error: Driver or SQLAlchemy error, when there is one.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error is None:
            return self.message
        return f"{self.message}: {self.original_error}"


def _engine_options(db: "DatabaseSettings") -> dict[str, Any]:
    options: dict[str, Any] = {"echo": db.echo}
    if not db.url.startswith("sqlite"):
        options.update(
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_pre_ping=True,
            pool_recycle=POOL_RECYCLE_SECONDS,
        )
    return options


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory shared by the app and the tests.

    Objects stay usable after commit and nothing is flushed implicitly,
    so the services decide when rows hit the database.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_database(settings: "Settings") -> None:
    """Create the engine and session factory. Called once at startup.

    Raises:
        DatabaseError: If the engine cannot be created.
    """
    global _engine, _sessionmaker

    try:
        _engine = create_async_engine(settings.database.url, **_engine_options(settings.database))
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to initialize database connection", e) from e
    _sessionmaker = create_sessionmaker(_engine)


async def close_database() -> None:
    """Dispose of the pool. Safe to call when never initialized."""
    global _engine, _sessionmaker

    engine, _engine, _sessionmaker = _engine, None, None
    if engine is not None:
        await engine.dispose()


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Return the session factory.

    Raises:
        DatabaseError: If init_database() has not run.
    """
    if _sessionmaker is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return _sessionmaker


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """Yield a session that commits on success and rolls back on error.

    SQLAlchemy errors are re-raised as DatabaseError; any other exception
    propagates unchanged after the rollback.
    """
    async with get_sessionmaker()() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise DatabaseError("Database operation failed", e) from e
        except BaseException:
            await session.rollback()
            raise


async def check_database_connection() -> bool:
    """Run ``SELECT 1``. False when uninitialized or unreachable."""
    if _engine is None:
        return False
    try:
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return False
    return True
