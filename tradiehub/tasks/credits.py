"""
Credit Background Tasks
"""
import asyncio
import uuid

from tradiehub.core.logging import get_logger
from tradiehub.tasks import task_session
from tradiehub.worker import celery_app

logger = get_logger(__name__)


@celery_app.task(name="tradiehub.tasks.credits.run_auto_topup")
def run_auto_topup(user_id: str) -> dict:
    """
    Buy the user's configured topup if their balance is still below the trigger.
    Queued after a deduction leaves the balance under the trigger.
    """
    from tradiehub.core.database import atomic
    from tradiehub.modules.credits.service import CreditLedger
    from tradiehub.modules.credits.topup import CreditPurchaser

    async def _topup() -> dict:
        purchaser = CreditPurchaser()
        try:
            async with task_session() as session:
                async with atomic(session):
                    balance = await CreditLedger(session).execute_auto_topup(uuid.UUID(user_id), purchaser)
        finally:
            await purchaser.close()

        if balance is None:
            return {"status": "skipped", "user_id": user_id}
        logger.info("Auto-topup completed", user_id=user_id, balance=str(balance.current_balance))
        return {"status": "completed", "user_id": user_id, "balance": str(balance.current_balance)}

    return asyncio.run(_topup())
