"""
Marketplace Module - FastAPI Dependencies
"""
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tradiehub.core.database import get_db
from tradiehub.modules.credits.dependencies import TopupSchedulerDep
from tradiehub.modules.marketplace.service import MarketplaceService
from tradiehub.modules.marketplace.stats import MarketplaceStatsService
from tradiehub.modules.notifications.dependencies import NotifierDep


async def get_marketplace_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: NotifierDep,
    topup_scheduler: TopupSchedulerDep,
) -> MarketplaceService:
    """Get MarketplaceService wired with the notifier and auto-topup scheduler."""
    return MarketplaceService(db, notifier=notifier, topup_scheduler=topup_scheduler)


async def get_stats_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MarketplaceStatsService:
    return MarketplaceStatsService(db)


# Type aliases
MarketplaceServiceDep = Annotated[MarketplaceService, Depends(get_marketplace_service)]
StatsServiceDep = Annotated[MarketplaceStatsService, Depends(get_stats_service)]
