"""
Jobs Module - Service Layer
"""
from collections.abc import Callable
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradiehub.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from tradiehub.core.logging import get_logger
from tradiehub.core.models import utc_now
from tradiehub.modules.jobs.models import JOB_STATUS_MACHINE, Job, JobPriority, JobStatus
from tradiehub.modules.jobs.schemas import JobCreate

logger = get_logger(__name__)


class JobService:
    """Service for managing internal work orders."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self._clock = clock

    async def create_job(self, tradie_id: UUID, data: JobCreate) -> Job:
        """Open a work order for a tradie."""
        if data.scheduled_start and data.scheduled_end and data.scheduled_end < data.scheduled_start:
            raise ValidationError(
                "Scheduled end is before scheduled start",
                errors=[{"field": "scheduled_end", "message": "must not precede scheduled_start", "code": "value_error"}],
            )

        job = Job(
            tradie_id=tradie_id,
            client_id=data.client_id,
            title=data.title,
            description=data.description,
            job_type=data.job_type,
            priority=data.priority.value,
            status=JobStatus.PENDING.value,
            scheduled_start=data.scheduled_start,
            scheduled_end=data.scheduled_end,
        )
        self.db.add(job)
        await self.db.flush()

        logger.info("Work order created", job_id=str(job.id), tradie_id=str(tradie_id))
        return job

    async def open_for_assignment(
        self,
        tradie_id: UUID,
        client_id: UUID,
        marketplace_job_id: UUID,
        title: str,
        description: str | None,
        job_type: str,
        priority: str,
        scheduled_start: datetime | None = None,
    ) -> Job:
        """Work order created inside the tradie-selection transaction."""
        job = Job(
            tradie_id=tradie_id,
            client_id=client_id,
            marketplace_job_id=marketplace_job_id,
            title=title,
            description=description,
            job_type=job_type,
            priority=JobPriority(priority).value,
            status=JobStatus.PENDING.value,
            scheduled_start=scheduled_start,
        )
        self.db.add(job)
        await self.db.flush()
        return job

    async def get_by_id(self, job_id: UUID) -> Job | None:
        """Get job by ID."""
        result = await self.db.execute(select(Job).where(Job.id == job_id))
        return result.scalar_one_or_none()

    async def get_job(self, tradie_id: UUID, job_id: UUID) -> Job:
        job = await self.get_by_id(job_id)
        if not job:
            raise NotFoundError("Job", job_id)
        if job.tradie_id != tradie_id:
            raise ForbiddenError("Not your job")
        return job

    async def list_jobs(
        self,
        tradie_id: UUID,
        status: JobStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Job], int]:
        """Get work orders for a tradie."""
        query = select(Job).where(Job.tradie_id == tradie_id)
        count_query = select(func.count(Job.id)).where(Job.tradie_id == tradie_id)

        if status:
            query = query.where(Job.status == status.value)
            count_query = count_query.where(Job.status == status.value)

        total_result = await self.db.execute(count_query)
        total = total_result.scalar() or 0

        query = query.order_by(Job.created_at.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def update_job_status(self, tradie_id: UUID, job_id: UUID, requested: JobStatus) -> Job:
        """Move a work order along its status graph; only the owning tradie may."""
        job = await self.get_job(tradie_id, job_id)
        previous = job.status

        new_status = JOB_STATUS_MACHINE.validate(job.status, requested)
        job.status = new_status.value
        if new_status == JobStatus.COMPLETED:
            job.completed_at = self._clock()

        await self.db.flush()
        logger.info("Work order status updated", job_id=str(job.id), previous=previous, status=job.status)
        return job
