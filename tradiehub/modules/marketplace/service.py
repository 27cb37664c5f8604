"""
Marketplace Module - Service Layer

Job posting, applications and tradie selection. Each state-changing
operation runs as one transaction (`atomic`); status changes are
conditional UPDATEs so a concurrent writer makes the loser fail with a
conflict instead of silently overwriting. Notifications and auto-topup
scheduling happen after commit.
"""
import math
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tradiehub.core.config import Settings, settings
from tradiehub.core.database import atomic
from tradiehub.core.exceptions import (
    ConflictError,
    DuplicateApplicationError,
    ForbiddenError,
    InsufficientCreditsError,
    InvalidSelectionError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from tradiehub.core.logging import get_logger
from tradiehub.core.metrics import record_application, record_expired_jobs, record_selection
from tradiehub.core.models import as_utc, utc_now
from tradiehub.modules.credits.models import CreditTransactionType
from tradiehub.modules.credits.service import CreditLedger
from tradiehub.modules.credits.topup import TopupScheduler
from tradiehub.modules.jobs.service import JobService
from tradiehub.modules.marketplace.models import (
    ACTIVE_APPLICATION_STATUSES,
    APPLICATION_STATUS_MACHINE,
    MARKETPLACE_JOB_STATUS_MACHINE,
    SELECTABLE_JOB_STATUSES,
    ApplicationStatus,
    JobApplication,
    MarketplaceJob,
    MarketplaceJobAssignment,
    MarketplaceJobStatus,
    UrgencyLevel,
)
from tradiehub.modules.marketplace.pricing import CreditCost, PricingTable, calculate_credit_cost
from tradiehub.modules.marketplace.schemas import (
    JobApplicationCreate,
    JobSearchParams,
    JobSortOption,
    MarketplaceJobCreate,
    SelectTradieRequest,
)
from tradiehub.modules.marketplace.stats import MarketplaceStatsService
from tradiehub.modules.notifications.service import MarketplaceEvent, NotificationDispatcher, Notifier

logger = get_logger(__name__)

TITLE_LENGTH = (5, 200)
DESCRIPTION_LENGTH = (20, 2000)
LOCATION_LENGTH = (3, 100)
BUDGET_RANGE = (Decimal("50"), Decimal("1000000"))

URGENCY_RANK = {
    UrgencyLevel.URGENT.value: 0,
    UrgencyLevel.HIGH.value: 1,
    UrgencyLevel.MEDIUM.value: 2,
    UrgencyLevel.LOW.value: 3,
}


def _length_error(field: str, value: str, bounds: tuple[int, int]) -> dict[str, str] | None:
    low, high = bounds
    if not low <= len(value.strip()) <= high:
        return {"field": field, "message": f"must be between {low} and {high} characters", "code": "length"}
    return None


def _review_path(application: JobApplication, final: ApplicationStatus) -> tuple[ApplicationStatus, ...]:
    """Submitted applications pass through under_review before a client decision."""
    if application.status == ApplicationStatus.SUBMITTED.value:
        return ApplicationStatus.UNDER_REVIEW, final
    return (final,)


class MarketplaceService:
    """Marketplace jobs, applications and tradie selection."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: Notifier,
        topup_scheduler: TopupScheduler | None = None,
        ledger: CreditLedger | None = None,
        pricing: PricingTable | None = None,
        clock: Callable[[], datetime] = utc_now,
        app_settings: Settings = settings,
    ):
        self.db = db
        self.notifier = notifier
        self.topup_scheduler = topup_scheduler
        self.settings = app_settings
        self.ledger = ledger or CreditLedger(db, clock=clock, app_settings=app_settings)
        self.pricing = pricing or PricingTable.from_settings(app_settings)
        self.stats = MarketplaceStatsService(db, clock=clock)
        self.work_orders = JobService(db, clock=clock)
        self._clock = clock

    # ============== Loading ==============

    async def _find_job(self, job_id: uuid.UUID) -> MarketplaceJob | None:
        result = await self.db.execute(
            select(MarketplaceJob)
            .where(MarketplaceJob.id == job_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _load_job(self, job_id: uuid.UUID) -> MarketplaceJob:
        job = await self._find_job(job_id)
        if not job:
            raise NotFoundError("MarketplaceJob", job_id)
        return job

    async def _find_application(self, application_id: uuid.UUID) -> JobApplication | None:
        result = await self.db.execute(
            select(JobApplication)
            .where(JobApplication.id == application_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _load_application(self, application_id: uuid.UUID) -> JobApplication:
        application = await self._find_application(application_id)
        if not application:
            raise NotFoundError("JobApplication", application_id)
        return application

    async def _find_active_application(self, job_id: uuid.UUID, tradie_id: uuid.UUID) -> JobApplication | None:
        result = await self.db.execute(
            select(JobApplication).where(
                JobApplication.marketplace_job_id == job_id,
                JobApplication.tradie_id == tradie_id,
                JobApplication.status != ApplicationStatus.WITHDRAWN.value,
            )
        )
        return result.scalars().first()

    async def _active_applications(
        self,
        job_id: uuid.UUID,
        exclude: uuid.UUID | None = None,
    ) -> list[JobApplication]:
        query = select(JobApplication).where(
            JobApplication.marketplace_job_id == job_id,
            JobApplication.status.in_(ACTIVE_APPLICATION_STATUSES),
        )
        if exclude is not None:
            query = query.where(JobApplication.id != exclude)
        result = await self.db.execute(query.order_by(JobApplication.application_timestamp))
        return list(result.scalars().all())

    # ============== Guarded transitions ==============

    async def _transition_job(
        self,
        job: MarketplaceJob,
        target: MarketplaceJobStatus,
        conflict_message: str,
        **values: Any,
    ) -> None:
        """Move a job only if nobody changed it since it was read (version check)."""
        MARKETPLACE_JOB_STATUS_MACHINE.validate(job.status, target)
        result = await self.db.execute(
            update(MarketplaceJob)
            .where(
                MarketplaceJob.id == job.id,
                MarketplaceJob.version == job.version,
                MarketplaceJob.status == job.status,
            )
            .values(status=target.value, version=MarketplaceJob.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(conflict_message, code="JOB_CONFLICT", details={"marketplace_job_id": str(job.id)})
        await self.db.refresh(job)

    async def _transition_application(
        self,
        application: JobApplication,
        *path: ApplicationStatus,
        **values: Any,
    ) -> None:
        """Validate every hop of `path`, then write the final status if the row is unchanged."""
        target = APPLICATION_STATUS_MACHINE.validate_path(application.status, *path)
        result = await self.db.execute(
            update(JobApplication)
            .where(
                JobApplication.id == application.id,
                JobApplication.status == application.status,
            )
            .values(status=target.value, status_changed_at=self._clock(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(
                "Application was modified concurrently",
                code="APPLICATION_CONFLICT",
                details={"application_id": str(application.id)},
            )
        await self.db.refresh(application)

    async def _refund_application(self, application: JobApplication, description: str) -> Decimal | None:
        """Refund an application's credits at most once."""
        if application.credits_refunded or application.credits_used <= 0:
            return None
        result = await self.db.execute(
            update(JobApplication)
            .where(JobApplication.id == application.id, JobApplication.credits_refunded.is_(False))
            .values(credits_refunded=True)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None
        await self.ledger.refund(
            application.tradie_id,
            application.credits_used,
            reference=f"application:{application.id}",
            description=description,
        )
        await self.db.refresh(application)
        return application.credits_used

    async def _after_deduction(self, tradie_id: uuid.UUID) -> None:
        """Hand the tradie to auto-topup if their balance fell below the trigger."""
        if self.topup_scheduler is None:
            return
        try:
            if await self.ledger.is_auto_topup_due(tradie_id):
                self.topup_scheduler.schedule(tradie_id)
        except SQLAlchemyError:
            logger.exception("Auto-topup evaluation failed", tradie_id=str(tradie_id))

    # ============== Jobs ==============

    def _validate_job(self, data: MarketplaceJobCreate, now: datetime) -> list[dict[str, str]]:
        errors = [
            error
            for error in (
                _length_error("title", data.title, TITLE_LENGTH),
                _length_error("description", data.description, DESCRIPTION_LENGTH),
                _length_error("location", data.location, LOCATION_LENGTH),
            )
            if error
        ]
        low, high = BUDGET_RANGE
        if not low <= data.estimated_budget <= high:
            errors.append({
                "field": "estimated_budget",
                "message": f"must be between {low} and {high}",
                "code": "range",
            })
        if as_utc(data.date_required) <= now:
            errors.append({"field": "date_required", "message": "must be in the future", "code": "value_error"})
        return errors

    async def create_job(self, client_id: uuid.UUID, data: MarketplaceJobCreate) -> MarketplaceJob:
        """
        Post a marketplace job.

        Raises:
            ValidationError: one entry per failing field
        """
        now = self._clock()
        errors = self._validate_job(data, now)
        if errors:
            raise ValidationError("Invalid job details", errors=errors)

        dispatcher = NotificationDispatcher(self.notifier)
        async with atomic(self.db):
            job = MarketplaceJob(
                client_id=client_id,
                title=data.title.strip(),
                description=data.description.strip(),
                job_type=data.job_type.value,
                location=data.location.strip(),
                estimated_budget=data.estimated_budget,
                date_required=data.date_required,
                urgency_level=data.urgency_level.value,
                status=MarketplaceJobStatus.AVAILABLE.value,
                application_count=0,
                version=1,
                expires_at=now + timedelta(days=self.settings.job_expiry_days),
                created_at=now,
                updated_at=now,
            )
            self.db.add(job)
            await self.db.flush()
            await self.stats.record_job_posted(client_id)

            dispatcher.add(MarketplaceEvent.NEW_JOB_POSTED, {
                "marketplace_job_id": str(job.id),
                "client_id": str(client_id),
                "job_type": job.job_type,
                "urgency_level": job.urgency_level,
                "location": job.location,
            })

        logger.info(
            "Marketplace job created",
            marketplace_job_id=str(job.id),
            client_id=str(client_id),
            job_type=job.job_type,
            urgency_level=job.urgency_level,
        )
        await dispatcher.flush()
        return job

    async def get_job(self, job_id: uuid.UUID) -> MarketplaceJob:
        return await self._load_job(job_id)

    async def get_job_credit_cost(self, job_id: uuid.UUID) -> tuple[MarketplaceJob, CreditCost]:
        job = await self._load_job(job_id)
        return job, calculate_credit_cost(job.job_type, job.urgency_level, self.pricing)

    async def search_jobs(
        self,
        params: JobSearchParams,
        tradie_id: uuid.UUID | None = None,
    ) -> tuple[list[MarketplaceJob], int]:
        """Browse jobs that are open for applications."""
        now = self._clock()
        conditions = [
            MarketplaceJob.status == MarketplaceJobStatus.AVAILABLE.value,
            MarketplaceJob.expires_at > now,
        ]

        if params.query:
            pattern = f"%{params.query.strip().lower()}%"
            conditions.append(or_(
                func.lower(MarketplaceJob.title).like(pattern),
                func.lower(MarketplaceJob.description).like(pattern),
            ))
        if params.job_type:
            conditions.append(MarketplaceJob.job_type == params.job_type.value)
        if params.location:
            conditions.append(func.lower(MarketplaceJob.location).like(f"%{params.location.strip().lower()}%"))
        if params.urgency_level:
            conditions.append(MarketplaceJob.urgency_level == params.urgency_level.value)
        if params.min_budget is not None:
            conditions.append(MarketplaceJob.estimated_budget >= params.min_budget)
        if params.max_budget is not None:
            conditions.append(MarketplaceJob.estimated_budget <= params.max_budget)
        if params.exclude_applied and tradie_id is not None:
            applied = select(JobApplication.marketplace_job_id).where(
                JobApplication.tradie_id == tradie_id,
                JobApplication.status != ApplicationStatus.WITHDRAWN.value,
            )
            conditions.append(MarketplaceJob.id.not_in(applied))

        total_result = await self.db.execute(select(func.count(MarketplaceJob.id)).where(*conditions))
        total = total_result.scalar() or 0

        ordering = {
            JobSortOption.DATE_POSTED: (MarketplaceJob.created_at.desc(),),
            JobSortOption.BUDGET_DESC: (MarketplaceJob.estimated_budget.desc(), MarketplaceJob.created_at.desc()),
            JobSortOption.BUDGET_ASC: (MarketplaceJob.estimated_budget.asc(), MarketplaceJob.created_at.desc()),
            JobSortOption.URGENCY: (
                case(URGENCY_RANK, value=MarketplaceJob.urgency_level, else_=len(URGENCY_RANK)),
                MarketplaceJob.created_at.desc(),
            ),
            JobSortOption.APPLICATION_COUNT: (
                MarketplaceJob.application_count.asc(),
                MarketplaceJob.created_at.desc(),
            ),
        }[params.sort_by]

        query = (
            select(MarketplaceJob)
            .where(*conditions)
            .order_by(*ordering)
            .offset((params.page - 1) * params.page_size)
            .limit(params.page_size)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def list_job_applications(self, client_id: uuid.UUID, job_id: uuid.UUID) -> list[JobApplication]:
        """Applications on a job, visible to the job owner only."""
        job = await self._load_job(job_id)
        if job.client_id != client_id:
            raise ForbiddenError("Only the job owner can view its applications")
        result = await self.db.execute(
            select(JobApplication)
            .where(JobApplication.marketplace_job_id == job_id)
            .order_by(JobApplication.application_timestamp)
        )
        return list(result.scalars().all())

    async def update_job_status(
        self,
        client_id: uuid.UUID,
        job_id: uuid.UUID,
        requested: MarketplaceJobStatus,
        reason: str | None = None,
    ) -> MarketplaceJob:
        """
        Owner-driven job status change.

        Cancelling rejects and refunds every live application; completing
        pays the selected tradie a bonus of floor(budget / divisor) credits.
        Assignment only happens through select_tradie.
        """
        if requested == MarketplaceJobStatus.ASSIGNED:
            raise InvalidStateError(
                "Jobs are assigned by selecting a tradie",
                code="SELECTION_REQUIRED",
                details={"marketplace_job_id": str(job_id)},
            )

        now = self._clock()
        dispatcher = NotificationDispatcher(self.notifier)
        bonus_awarded = Decimal("0")

        async with atomic(self.db):
            job = await self._load_job(job_id)
            if job.client_id != client_id:
                raise ForbiddenError("Only the job owner can change its status")

            previous = job.status
            MARKETPLACE_JOB_STATUS_MACHINE.validate(job.status_at(now), requested)

            values: dict[str, Any] = {}
            if requested == MarketplaceJobStatus.CANCELLED:
                values["cancellation_reason"] = reason
            elif requested == MarketplaceJobStatus.COMPLETED:
                values["completed_at"] = now

            await self._transition_job(job, requested, "Job was modified concurrently", **values)

            if requested == MarketplaceJobStatus.CANCELLED:
                for application in await self._active_applications(job.id):
                    await self._transition_application(
                        application, *_review_path(application, ApplicationStatus.REJECTED),
                    )
                    if self.settings.refund_on_job_cancellation:
                        refunded = await self._refund_application(application, "Refund for cancelled job")
                        if refunded:
                            await self.stats.record_refund(application.tradie_id, refunded)
                    dispatcher.add(MarketplaceEvent.JOB_CANCELLED, {
                        "marketplace_job_id": str(job.id),
                        "tradie_id": str(application.tradie_id),
                        "application_id": str(application.id),
                        "reason": reason,
                    })

            elif requested == MarketplaceJobStatus.COMPLETED:
                bonus_awarded = await self._award_completion_bonus(job)

        logger.info(
            "Marketplace job status updated",
            marketplace_job_id=str(job.id),
            previous=previous,
            status=job.status,
            bonus=str(bonus_awarded) if bonus_awarded else None,
        )
        await dispatcher.flush()
        return job

    async def _award_completion_bonus(self, job: MarketplaceJob) -> Decimal:
        result = await self.db.execute(
            select(MarketplaceJobAssignment).where(MarketplaceJobAssignment.marketplace_job_id == job.id)
        )
        assignment = result.scalar_one_or_none()
        if assignment is None:
            return Decimal("0")

        bonus = Decimal(math.floor(job.estimated_budget / self.settings.completion_bonus_budget_divisor))
        if bonus <= 0:
            return Decimal("0")

        await self.ledger.add_credits(
            assignment.selected_tradie_id,
            bonus,
            source=CreditTransactionType.BONUS,
            reference=f"job:{job.id}",
            description="Job completion bonus",
        )
        return bonus

    async def process_expired_jobs(self) -> list[uuid.UUID]:
        """
        Move available jobs past expires_at to expired.

        Each row is its own conditional UPDATE, so jobs that changed status
        meanwhile are skipped and one failing row does not stop the sweep.
        Running it again immediately returns an empty list.
        """
        now = self._clock()
        result = await self.db.execute(
            select(MarketplaceJob.id, MarketplaceJob.client_id).where(
                MarketplaceJob.status == MarketplaceJobStatus.AVAILABLE.value,
                MarketplaceJob.expires_at < now,
            )
        )
        candidates = result.all()
        await self.db.commit()

        dispatcher = NotificationDispatcher(self.notifier)
        expired: list[uuid.UUID] = []
        for job_id, client_id in candidates:
            try:
                async with atomic(self.db):
                    updated = await self.db.execute(
                        update(MarketplaceJob)
                        .where(
                            MarketplaceJob.id == job_id,
                            MarketplaceJob.status == MarketplaceJobStatus.AVAILABLE.value,
                            MarketplaceJob.expires_at < now,
                        )
                        .values(status=MarketplaceJobStatus.EXPIRED.value, version=MarketplaceJob.version + 1)
                        .execution_options(synchronize_session=False)
                    )
            except SQLAlchemyError:
                logger.exception("Failed to expire marketplace job", marketplace_job_id=str(job_id))
                continue

            if updated.rowcount == 1:
                expired.append(job_id)
                dispatcher.add(MarketplaceEvent.JOB_EXPIRED, {
                    "marketplace_job_id": str(job_id),
                    "client_id": str(client_id),
                })

        record_expired_jobs(len(expired))
        logger.info("Expired job sweep finished", candidates=len(candidates), expired=len(expired))
        await dispatcher.flush()
        return expired

    # ============== Applications ==============

    async def submit_application(self, tradie_id: uuid.UUID, data: JobApplicationCreate) -> JobApplication:
        """
        Apply to a job, paying its credit cost.

        The deduction, the application row and the job's application count
        commit together. A concurrent duplicate is stopped by the partial
        unique index and reported as a duplicate after rollback.

        Raises:
            NotFoundError: job does not exist
            InvalidStateError: job closed, expired or full
            DuplicateApplicationError: tradie already has a live application
            InsufficientCreditsError: balance below the credit cost
        """
        now = self._clock()
        job_id = data.marketplace_job_id
        dispatcher = NotificationDispatcher(self.notifier)

        try:
            async with atomic(self.db):
                job = await self._load_job(job_id)
                if job.status_at(now) != MarketplaceJobStatus.AVAILABLE.value:
                    raise InvalidStateError(
                        f"Job is not accepting applications (status: {job.status_at(now)})",
                        code="JOB_NOT_AVAILABLE",
                        details={"marketplace_job_id": str(job_id)},
                    )
                if job.client_id == tradie_id:
                    raise ForbiddenError("You cannot apply to your own job")
                if job.application_count >= self.settings.max_applications_per_job:
                    raise InvalidStateError(
                        "Job has reached the maximum number of applications",
                        code="APPLICATION_LIMIT_REACHED",
                        details={"max_applications": self.settings.max_applications_per_job},
                    )
                if await self._find_active_application(job_id, tradie_id):
                    raise DuplicateApplicationError(job_id, tradie_id)

                cost = calculate_credit_cost(job.job_type, job.urgency_level, self.pricing)
                sufficiency = await self.ledger.check_sufficiency(tradie_id, cost.credits)
                if not sufficiency.sufficient:
                    raise InsufficientCreditsError(required=cost.credits, available=sufficiency.current_balance)

                application_id = uuid.uuid4()
                await self.ledger.deduct(
                    tradie_id,
                    cost.credits,
                    reference=f"application:{application_id}",
                    description=f"Application to job {job_id}",
                )

                application = JobApplication(
                    id=application_id,
                    marketplace_job_id=job_id,
                    tradie_id=tradie_id,
                    custom_quote=data.custom_quote,
                    proposed_timeline=data.proposed_timeline,
                    approach_description=data.approach_description,
                    materials_list=data.materials_list,
                    availability_dates=[d.isoformat() for d in data.availability_dates or []] or None,
                    credits_used=cost.credits,
                    credits_refunded=False,
                    status=ApplicationStatus.SUBMITTED.value,
                    application_timestamp=now,
                    created_at=now,
                    updated_at=now,
                )
                self.db.add(application)
                await self.db.flush()

                counted = await self.db.execute(
                    update(MarketplaceJob)
                    .where(
                        MarketplaceJob.id == job_id,
                        MarketplaceJob.status == MarketplaceJobStatus.AVAILABLE.value,
                        MarketplaceJob.expires_at > now,
                        MarketplaceJob.application_count < self.settings.max_applications_per_job,
                    )
                    .values(
                        application_count=MarketplaceJob.application_count + 1,
                        version=MarketplaceJob.version + 1,
                    )
                    .execution_options(synchronize_session=False)
                )
                if counted.rowcount != 1:
                    raise InvalidStateError(
                        "Job stopped accepting applications",
                        code="JOB_NOT_AVAILABLE",
                        details={"marketplace_job_id": str(job_id)},
                    )

                await self.stats.record_application(tradie_id, job.client_id, cost.credits, data.custom_quote)

                dispatcher.add(MarketplaceEvent.APPLICATION_RECEIVED, {
                    "marketplace_job_id": str(job_id),
                    "application_id": str(application_id),
                    "client_id": str(job.client_id),
                    "tradie_id": str(tradie_id),
                })
        except IntegrityError as exc:
            raise DuplicateApplicationError(job_id, tradie_id) from exc
        except InsufficientCreditsError as exc:
            dispatcher.discard()
            dispatcher.add(MarketplaceEvent.INSUFFICIENT_CREDITS, {
                "tradie_id": str(tradie_id),
                "marketplace_job_id": str(job_id),
                "required": str(exc.required),
                "available": str(exc.available),
                "shortfall": str(exc.shortfall),
            })
            await dispatcher.flush()
            raise

        record_application(job.job_type, job.urgency_level, cost.credits)
        logger.info(
            "Application submitted",
            application_id=str(application_id),
            marketplace_job_id=str(job_id),
            tradie_id=str(tradie_id),
            credits_used=str(cost.credits),
        )
        await dispatcher.flush()
        await self._after_deduction(tradie_id)
        return application

    async def get_application(self, user_id: uuid.UUID, application_id: uuid.UUID) -> JobApplication:
        """Visible to the applying tradie and the job owner."""
        application = await self._load_application(application_id)
        if application.tradie_id == user_id:
            return application
        job = await self._load_job(application.marketplace_job_id)
        if job.client_id != user_id:
            raise ForbiddenError("Not your application")
        return application

    async def list_tradie_applications(
        self,
        tradie_id: uuid.UUID,
        status: ApplicationStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[JobApplication], int]:
        query = select(JobApplication).where(JobApplication.tradie_id == tradie_id)
        count_query = select(func.count(JobApplication.id)).where(JobApplication.tradie_id == tradie_id)
        if status:
            query = query.where(JobApplication.status == status.value)
            count_query = count_query.where(JobApplication.status == status.value)

        total_result = await self.db.execute(count_query)
        total = total_result.scalar() or 0

        query = query.order_by(JobApplication.application_timestamp.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def withdraw_application(
        self,
        tradie_id: uuid.UUID,
        application_id: uuid.UUID,
        reason: str | None = None,
    ) -> JobApplication:
        """
        Withdraw a live application.

        Credits are refunded once when refund_on_withdrawal is set, and the
        job's application count goes back down.
        """
        dispatcher = NotificationDispatcher(self.notifier)

        async with atomic(self.db):
            application = await self._load_application(application_id)
            if application.tradie_id != tradie_id:
                raise ForbiddenError("Only the applying tradie can withdraw an application")

            await self._transition_application(
                application, ApplicationStatus.WITHDRAWN, withdrawal_reason=reason,
            )

            job = await self._load_job(application.marketplace_job_id)
            await self.db.execute(
                update(MarketplaceJob)
                .where(MarketplaceJob.id == job.id, MarketplaceJob.application_count > 0)
                .values(
                    application_count=MarketplaceJob.application_count - 1,
                    version=MarketplaceJob.version + 1,
                )
                .execution_options(synchronize_session=False)
            )

            refunded = None
            if self.settings.refund_on_withdrawal:
                refunded = await self._refund_application(application, "Refund for withdrawn application")
            await self.stats.record_withdrawal(tradie_id, job.client_id, refunded)

            dispatcher.add(MarketplaceEvent.APPLICATION_WITHDRAWN, {
                "marketplace_job_id": str(job.id),
                "application_id": str(application.id),
                "client_id": str(job.client_id),
                "tradie_id": str(tradie_id),
                "reason": reason,
            })

        logger.info(
            "Application withdrawn",
            application_id=str(application_id),
            tradie_id=str(tradie_id),
            refunded=str(refunded) if refunded else None,
        )
        await dispatcher.flush()
        return application

    async def update_application_status(
        self,
        user_id: uuid.UUID,
        application_id: uuid.UUID,
        requested: ApplicationStatus,
        reason: str | None = None,
    ) -> JobApplication:
        """
        Status change requested over the API.

        The job owner may move an application to under_review or rejected,
        the applying tradie may withdraw it. Selection has its own workflow.
        """
        if requested == ApplicationStatus.WITHDRAWN:
            return await self.withdraw_application(user_id, application_id, reason)
        if requested == ApplicationStatus.SELECTED:
            raise InvalidStateError(
                "Applications are selected through tradie selection",
                code="SELECTION_REQUIRED",
                details={"application_id": str(application_id)},
            )

        dispatcher = NotificationDispatcher(self.notifier)
        async with atomic(self.db):
            application = await self._load_application(application_id)
            job = await self._load_job(application.marketplace_job_id)
            if job.client_id != user_id:
                raise ForbiddenError("Only the job owner can review applications")

            previous = application.status
            if requested == ApplicationStatus.REJECTED:
                path = _review_path(application, requested)
            else:
                path = (requested,)
            await self._transition_application(application, *path)

            if requested == ApplicationStatus.REJECTED:
                dispatcher.add(MarketplaceEvent.APPLICATION_REJECTED, {
                    "marketplace_job_id": str(job.id),
                    "application_id": str(application.id),
                    "tradie_id": str(application.tradie_id),
                    "reason": reason,
                })

        logger.info(
            "Application status updated",
            application_id=str(application_id),
            previous=previous,
            status=application.status,
        )
        await dispatcher.flush()
        return application

    # ============== Selection ==============

    async def select_tradie(
        self,
        client_id: uuid.UUID,
        data: SelectTradieRequest,
    ) -> tuple[MarketplaceJobAssignment, list[uuid.UUID]]:
        """
        Client confirms one application.

        In a single transaction: the job moves to assigned (version-checked),
        the chosen application to selected and every other live application
        to rejected, the assignment and a work order are created and both
        parties' stats are updated. A client racing another selection gets
        "Job is no longer available for selection".

        Returns:
            (assignment, ids of the applications rejected by this selection)
        """
        now = self._clock()
        job_id = data.marketplace_job_id
        dispatcher = NotificationDispatcher(self.notifier)

        try:
            async with atomic(self.db):
                job = await self._load_job(job_id)
                if job.client_id != client_id:
                    raise ForbiddenError("Only the job owner can select a tradie")
                if job.status_at(now) not in SELECTABLE_JOB_STATUSES:
                    raise InvalidStateError(
                        f"Job is not open for selection (status: {job.status_at(now)})",
                        code="JOB_NOT_SELECTABLE",
                        details={"marketplace_job_id": str(job_id)},
                    )

                application = await self._find_application(data.application_id)
                if application is None or application.marketplace_job_id != job_id:
                    raise InvalidSelectionError("Application does not belong to this job", data.application_id)
                if application.status not in ACTIVE_APPLICATION_STATUSES:
                    raise InvalidSelectionError(
                        f"Application cannot be selected (status: {application.status})",
                        data.application_id,
                    )

                job_posted_at = job.created_at
                await self._transition_job(
                    job, MarketplaceJobStatus.ASSIGNED, "Job is no longer available for selection",
                )
                await self._transition_application(
                    application, *_review_path(application, ApplicationStatus.SELECTED),
                )

                rejected = await self._active_applications(job_id, exclude=application.id)
                for sibling in rejected:
                    await self._transition_application(
                        sibling, *_review_path(sibling, ApplicationStatus.REJECTED),
                    )

                work_order = await self.work_orders.open_for_assignment(
                    tradie_id=application.tradie_id,
                    client_id=client_id,
                    marketplace_job_id=job_id,
                    title=job.title,
                    description=job.description,
                    job_type=job.job_type,
                    priority=job.urgency_level,
                    scheduled_start=data.project_start_date,
                )

                assignment = MarketplaceJobAssignment(
                    marketplace_job_id=job_id,
                    selected_tradie_id=application.tradie_id,
                    selected_application_id=application.id,
                    selection_reason=data.selection_reason,
                    negotiated_quote=data.negotiated_quote,
                    project_start_date=data.project_start_date,
                    assignment_timestamp=now,
                    work_order_id=work_order.id,
                    created_at=now,
                    updated_at=now,
                )
                self.db.add(assignment)
                await self.db.flush()

                await self.stats.record_hire(application.tradie_id, client_id, job_posted_at)

                dispatcher.add(MarketplaceEvent.APPLICATION_SELECTED, {
                    "marketplace_job_id": str(job_id),
                    "application_id": str(application.id),
                    "tradie_id": str(application.tradie_id),
                })
                for sibling in rejected:
                    dispatcher.add(MarketplaceEvent.APPLICATION_REJECTED, {
                        "marketplace_job_id": str(job_id),
                        "application_id": str(sibling.id),
                        "tradie_id": str(sibling.tradie_id),
                    })
                dispatcher.add(MarketplaceEvent.JOB_ASSIGNED, {
                    "marketplace_job_id": str(job_id),
                    "client_id": str(client_id),
                    "tradie_id": str(application.tradie_id),
                    "work_order_id": str(work_order.id),
                })
        except IntegrityError as exc:
            raise ConflictError(
                "Job is no longer available for selection",
                code="JOB_CONFLICT",
                details={"marketplace_job_id": str(job_id)},
            ) from exc

        rejected_ids = [sibling.id for sibling in rejected]
        record_selection(job.job_type)
        logger.info(
            "Tradie selected",
            marketplace_job_id=str(job_id),
            application_id=str(assignment.selected_application_id),
            tradie_id=str(assignment.selected_tradie_id),
            rejected=len(rejected_ids),
        )
        await dispatcher.flush()
        return assignment, rejected_ids
