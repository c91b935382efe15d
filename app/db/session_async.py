# app/db/session_async.py
"""Async engine and session factory shared by the API, Celery tasks and seed scripts."""

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TypeVar

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.core.config import settings

T = TypeVar("T")

# aiosqlite connections are not shared across event loops; SQLite gets no pool.
_engine_kwargs: dict = {"pool_pre_ping": True}
if settings.ASYNC_DATABASE_URL.startswith("sqlite"):
    _engine_kwargs = {"poolclass": NullPool}

async_engine: AsyncEngine = create_async_engine(
    settings.ASYNC_DATABASE_URL,
    **_engine_kwargs,
)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    expire_on_commit=False,
    autoflush=False,
)


async def get_async_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency that yields an AsyncSession."""
    async with AsyncSessionLocal() as session:
        yield session


async def run_in_transaction(
    operation: Callable[[AsyncSession], Awaitable[T]],
) -> T:
    """Run `operation` on a fresh session and commit it; any error rolls the whole unit back."""
    async with AsyncSessionLocal() as session:
        try:
            result = await operation(session)
            await session.commit()
            return result
        except Exception:
            await session.rollback()
            raise
