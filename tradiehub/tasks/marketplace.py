"""
Marketplace Background Tasks
"""
import asyncio

from tradiehub.tasks import task_session
from tradiehub.worker import celery_app


@celery_app.task(name="tradiehub.tasks.marketplace.process_expired_jobs")
def process_expired_jobs() -> dict:
    """
    Expire marketplace jobs past their expiry date and notify their owners.
    Runs via Celery Beat every expiry_sweep_interval_seconds.
    """
    from tradiehub.modules.marketplace.service import MarketplaceService
    from tradiehub.modules.notifications.service import RedisNotifier

    async def _sweep() -> dict:
        notifier = RedisNotifier()
        try:
            async with task_session() as session:
                expired = await MarketplaceService(session, notifier=notifier).process_expired_jobs()
        finally:
            await notifier.close()
        return {"status": "completed", "expired": [str(job_id) for job_id in expired]}

    return asyncio.run(_sweep())
