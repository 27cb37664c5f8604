"""
Quote Background Tasks
"""
import asyncio

from tradiehub.tasks import task_session
from tradiehub.worker import celery_app


@celery_app.task(name="tradiehub.tasks.quotes.expire_overdue_quotes")
def expire_overdue_quotes() -> dict:
    """Mark sent or viewed quotes past their validity date as expired."""
    from tradiehub.modules.quotes.service import QuoteService

    async def _expire() -> dict:
        async with task_session() as session:
            expired = await QuoteService(session).expire_overdue_quotes()
        return {"status": "completed", "expired": expired}

    return asyncio.run(_expire())
