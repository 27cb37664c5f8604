"""
Marketplace Module - Tradie and Client Statistics

Read-modify-write updates that run inside the workflow transaction; the
row is locked (FOR UPDATE where the database supports it) while it changes.
"""
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tradiehub.core.models import as_utc, utc_now
from tradiehub.modules.analytics.service import (
    ApplicationMetrics,
    ClientHiringSummary,
    application_metrics,
    client_hiring_summary,
    hours_between,
    percentage,
    quantize,
    running_mean,
    safe_ratio,
)
from tradiehub.modules.marketplace.models import (
    ClientMarketplaceStats,
    JobApplication,
    MarketplaceJob,
    MarketplaceJobAssignment,
    TradieMarketplaceStats,
)

ZERO = Decimal("0")


class MarketplaceStatsService:
    """Maintains TradieMarketplaceStats and ClientMarketplaceStats."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self._clock = clock

    async def _tradie_stats(self, tradie_id: UUID, lock: bool = True) -> TradieMarketplaceStats:
        stmt = select(TradieMarketplaceStats).where(TradieMarketplaceStats.tradie_id == tradie_id)
        result = await self.db.execute(stmt.with_for_update() if lock else stmt)
        stats = result.scalar_one_or_none()
        if stats is None:
            stats = TradieMarketplaceStats(
                tradie_id=tradie_id,
                total_applications=0,
                successful_applications=0,
                total_credits_spent=ZERO,
                conversion_rate=ZERO,
                quoted_applications=0,
            )
            self.db.add(stats)
            await self.db.flush()
        return stats

    async def _client_stats(self, client_id: UUID, lock: bool = True) -> ClientMarketplaceStats:
        stmt = select(ClientMarketplaceStats).where(ClientMarketplaceStats.client_id == client_id)
        result = await self.db.execute(stmt.with_for_update() if lock else stmt)
        stats = result.scalar_one_or_none()
        if stats is None:
            stats = ClientMarketplaceStats(
                client_id=client_id,
                total_jobs_posted=0,
                total_applications_received=0,
                total_hires_made=0,
                average_applications_per_job=ZERO,
            )
            self.db.add(stats)
            await self.db.flush()
        return stats

    @staticmethod
    def _refresh_client_average(stats: ClientMarketplaceStats) -> None:
        stats.average_applications_per_job = quantize(
            safe_ratio(stats.total_applications_received, stats.total_jobs_posted)
        )

    # ============== Updates ==============

    async def record_job_posted(self, client_id: UUID) -> None:
        stats = await self._client_stats(client_id)
        stats.total_jobs_posted += 1
        stats.last_job_posted_at = self._clock()
        self._refresh_client_average(stats)
        await self.db.flush()

    async def record_application(
        self,
        tradie_id: UUID,
        client_id: UUID,
        credits_used: Decimal,
        custom_quote: Decimal | None,
    ) -> None:
        tradie = await self._tradie_stats(tradie_id)
        tradie.total_applications += 1
        tradie.total_credits_spent += credits_used
        if custom_quote is not None:
            tradie.average_quote = running_mean(tradie.average_quote, tradie.quoted_applications, custom_quote)
            tradie.quoted_applications += 1
        tradie.conversion_rate = percentage(tradie.successful_applications, tradie.total_applications)
        tradie.last_application_at = self._clock()

        client = await self._client_stats(client_id)
        client.total_applications_received += 1
        self._refresh_client_average(client)
        await self.db.flush()

    async def record_withdrawal(
        self,
        tradie_id: UUID,
        client_id: UUID,
        refunded: Decimal | None,
    ) -> None:
        """Refunded credits no longer count as spent; the client loses the application."""
        if refunded:
            tradie = await self._tradie_stats(tradie_id)
            tradie.total_credits_spent = max(tradie.total_credits_spent - refunded, ZERO)

        client = await self._client_stats(client_id)
        client.total_applications_received = max(client.total_applications_received - 1, 0)
        self._refresh_client_average(client)
        await self.db.flush()

    async def record_refund(self, tradie_id: UUID, refunded: Decimal) -> None:
        tradie = await self._tradie_stats(tradie_id)
        tradie.total_credits_spent = max(tradie.total_credits_spent - refunded, ZERO)
        await self.db.flush()

    async def record_hire(self, tradie_id: UUID, client_id: UUID, job_posted_at: datetime) -> None:
        now = self._clock()

        tradie = await self._tradie_stats(tradie_id)
        tradie.successful_applications += 1
        tradie.conversion_rate = percentage(tradie.successful_applications, tradie.total_applications)

        client = await self._client_stats(client_id)
        hire_hours = hours_between(as_utc(job_posted_at), now)
        client.average_hire_time_hours = running_mean(
            client.average_hire_time_hours, client.total_hires_made, hire_hours,
        )
        client.total_hires_made += 1
        await self.db.flush()

    # ============== Reads ==============

    async def get_tradie_stats(self, tradie_id: UUID) -> TradieMarketplaceStats:
        return await self._tradie_stats(tradie_id, lock=False)

    async def get_client_stats(self, client_id: UUID) -> ClientMarketplaceStats:
        return await self._client_stats(client_id, lock=False)

    # ============== Rollups ==============

    async def application_metrics(self, tradie_id: UUID) -> ApplicationMetrics:
        """Status distribution and spend across every application the tradie made."""
        result = await self.db.execute(
            select(JobApplication).where(JobApplication.tradie_id == tradie_id)
        )
        return application_metrics(result.scalars().all())

    async def hiring_summary(self, client_id: UUID) -> ClientHiringSummary:
        jobs = (await self.db.execute(
            select(MarketplaceJob).where(MarketplaceJob.client_id == client_id)
        )).scalars().all()
        assignments = (await self.db.execute(
            select(MarketplaceJobAssignment)
            .join(MarketplaceJob, MarketplaceJob.id == MarketplaceJobAssignment.marketplace_job_id)
            .where(MarketplaceJob.client_id == client_id)
        )).scalars().all()
        return client_hiring_summary(jobs, assignments)
