"""
Async Database Session Management
SQLAlchemy 2.0 async engine, session factory and the unit-of-work helper
every workflow runs inside.
"""
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import Depends
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tradiehub.core.config import settings


def build_engine(url: str, **overrides: Any) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases."""
    options: dict[str, Any] = {"echo": settings.db_echo, "pool_pre_ping": True}
    if not url.startswith("sqlite") and "poolclass" not in overrides:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=3600,
        )
    options.update(overrides)
    return create_async_engine(url, **options)


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine: AsyncEngine = build_engine(settings.database_url)
async_session_maker = build_session_maker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that yields an async database session.
    Commits whatever the request left pending; rolls back on error.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a block as one transaction.

    Everything flushed inside the block is committed together, or rolled
    back together if the block raises.
    """
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise


# Type alias for dependency injection
AsyncSessionDep = Annotated[AsyncSession, Depends(get_db)]


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all tables (development and tests; production uses migrations)."""
    from tradiehub.core.models import Base
    import tradiehub.modules  # noqa: F401  registers every model on Base.metadata

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
