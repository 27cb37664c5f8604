"""
Credits Module - FastAPI Dependencies
"""
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tradiehub.core.database import get_db
from tradiehub.modules.credits.service import CreditLedger
from tradiehub.modules.credits.topup import CeleryTopupScheduler, TopupScheduler


async def get_credit_ledger(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CreditLedger:
    return CreditLedger(db)


def get_topup_scheduler() -> TopupScheduler:
    return CeleryTopupScheduler()


# Type aliases
CreditLedgerDep = Annotated[CreditLedger, Depends(get_credit_ledger)]
TopupSchedulerDep = Annotated[TopupScheduler, Depends(get_topup_scheduler)]
