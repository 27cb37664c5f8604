"""
Jobs Module - API Routes
"""
from uuid import UUID

from fastapi import APIRouter, Query, status

from tradiehub.modules.auth.dependencies import TradieCaller
from tradiehub.modules.jobs.dependencies import JobServiceDep
from tradiehub.modules.jobs.models import JobStatus
from tradiehub.modules.jobs.schemas import JobCreate, JobListResponse, JobResponse, JobStatusUpdate

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
async def create_job(
    data: JobCreate,
    caller: TradieCaller,
    service: JobServiceDep,
) -> JobResponse:
    """Open a work order."""
    job = await service.create_job(caller.user_id, data)
    return JobResponse.model_validate(job)


@router.get("", response_model=JobListResponse)
async def list_jobs(
    caller: TradieCaller,
    service: JobServiceDep,
    status_filter: JobStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> JobListResponse:
    """List the caller's work orders."""
    jobs, total = await service.list_jobs(caller.user_id, status_filter, page, page_size)
    return JobListResponse(
        jobs=[JobResponse.model_validate(j) for j in jobs],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: UUID,
    caller: TradieCaller,
    service: JobServiceDep,
) -> JobResponse:
    job = await service.get_job(caller.user_id, job_id)
    return JobResponse.model_validate(job)


@router.put("/{job_id}/status", response_model=JobResponse)
async def update_job_status(
    job_id: UUID,
    data: JobStatusUpdate,
    caller: TradieCaller,
    service: JobServiceDep,
) -> JobResponse:
    """Move a work order to a new status."""
    job = await service.update_job_status(caller.user_id, job_id, data.status)
    return JobResponse.model_validate(job)
