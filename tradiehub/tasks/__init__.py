"""
Background Tasks

Each task runs its coroutine with asyncio.run, so sessions come from an
engine created for that run rather than the web process's pool.
"""
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import NullPool

from tradiehub.core.config import settings
from tradiehub.core.database import build_engine, build_session_maker


@asynccontextmanager
async def task_session() -> AsyncIterator[AsyncSession]:
    engine = build_engine(settings.database_url, poolclass=NullPool)
    try:
        async with build_session_maker(engine)() as session:
            yield session
    finally:
        await engine.dispose()
