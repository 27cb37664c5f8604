"""
Marketplace Module - API Routes
"""
import math
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from tradiehub.modules.auth.dependencies import ClientCaller, CurrentCaller, TradieCaller
from tradiehub.modules.marketplace.dependencies import MarketplaceServiceDep, StatsServiceDep
from tradiehub.modules.marketplace.models import ApplicationStatus
from tradiehub.modules.marketplace.schemas import (
    ApplicationMetricsResponse,
    ApplicationStatusUpdate,
    AssignmentResponse,
    ClientStatsResponse,
    CreditCostResponse,
    HiringSummaryResponse,
    JobApplicationCreate,
    JobApplicationResponse,
    JobSearchParams,
    JobStatusUpdate,
    MarketplaceJobCreate,
    MarketplaceJobListResponse,
    MarketplaceJobResponse,
    SelectionResponse,
    SelectTradieRequest,
    TradieStatsResponse,
    WithdrawApplicationRequest,
)

router = APIRouter(prefix="/marketplace", tags=["marketplace"])


# === Jobs ===

@router.post("/jobs", response_model=MarketplaceJobResponse, status_code=status.HTTP_201_CREATED)
async def create_job(
    data: MarketplaceJobCreate,
    caller: ClientCaller,
    service: MarketplaceServiceDep,
) -> MarketplaceJobResponse:
    """Post a job to the marketplace."""
    job = await service.create_job(caller.user_id, data)
    return MarketplaceJobResponse.model_validate(job)


@router.get("/jobs", response_model=MarketplaceJobListResponse)
async def search_jobs(
    caller: CurrentCaller,
    service: MarketplaceServiceDep,
    params: JobSearchParams = Depends(),
) -> MarketplaceJobListResponse:
    """Browse jobs open for applications."""
    jobs, total = await service.search_jobs(params, tradie_id=caller.user_id)
    return MarketplaceJobListResponse(
        jobs=[MarketplaceJobResponse.model_validate(j) for j in jobs],
        total=total,
        page=params.page,
        page_size=params.page_size,
        total_pages=math.ceil(total / params.page_size) if total else 0,
    )


@router.get("/jobs/{job_id}", response_model=MarketplaceJobResponse)
async def get_job(
    job_id: UUID,
    caller: CurrentCaller,
    service: MarketplaceServiceDep,
) -> MarketplaceJobResponse:
    job = await service.get_job(job_id)
    return MarketplaceJobResponse.model_validate(job)


@router.get("/jobs/{job_id}/credit-cost", response_model=CreditCostResponse)
async def get_job_credit_cost(
    job_id: UUID,
    caller: CurrentCaller,
    service: MarketplaceServiceDep,
) -> CreditCostResponse:
    """Credits required to apply to a job, with the pricing breakdown."""
    job, cost = await service.get_job_credit_cost(job_id)
    return CreditCostResponse(
        marketplace_job_id=job.id,
        job_type=job.job_type,
        urgency_level=job.urgency_level,
        base_cost=cost.base_cost,
        urgency_multiplier=cost.urgency_multiplier,
        job_type_multiplier=cost.job_type_multiplier,
        credits_required=cost.credits,
    )


@router.put("/jobs/{job_id}/status", response_model=MarketplaceJobResponse)
async def update_job_status(
    job_id: UUID,
    data: JobStatusUpdate,
    caller: ClientCaller,
    service: MarketplaceServiceDep,
) -> MarketplaceJobResponse:
    """Change a job's status (owner only)."""
    job = await service.update_job_status(caller.user_id, job_id, data.status, data.reason)
    return MarketplaceJobResponse.model_validate(job)


@router.get("/jobs/{job_id}/applications", response_model=list[JobApplicationResponse])
async def list_job_applications(
    job_id: UUID,
    caller: ClientCaller,
    service: MarketplaceServiceDep,
) -> list[JobApplicationResponse]:
    applications = await service.list_job_applications(caller.user_id, job_id)
    return [JobApplicationResponse.model_validate(a) for a in applications]


# === Applications ===

@router.post("/applications", response_model=JobApplicationResponse, status_code=status.HTTP_201_CREATED)
async def submit_application(
    data: JobApplicationCreate,
    caller: TradieCaller,
    service: MarketplaceServiceDep,
) -> JobApplicationResponse:
    """Apply to a job; the job's credit cost is deducted."""
    application = await service.submit_application(caller.user_id, data)
    return JobApplicationResponse.model_validate(application)


@router.get("/applications/mine", response_model=list[JobApplicationResponse])
async def list_my_applications(
    caller: TradieCaller,
    service: MarketplaceServiceDep,
    status_filter: ApplicationStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> list[JobApplicationResponse]:
    applications, _ = await service.list_tradie_applications(caller.user_id, status_filter, page, page_size)
    return [JobApplicationResponse.model_validate(a) for a in applications]


@router.get("/applications/{application_id}", response_model=JobApplicationResponse)
async def get_application(
    application_id: UUID,
    caller: CurrentCaller,
    service: MarketplaceServiceDep,
) -> JobApplicationResponse:
    application = await service.get_application(caller.user_id, application_id)
    return JobApplicationResponse.model_validate(application)


@router.put("/applications/{application_id}/status", response_model=JobApplicationResponse)
async def update_application_status(
    application_id: UUID,
    data: ApplicationStatusUpdate,
    caller: CurrentCaller,
    service: MarketplaceServiceDep,
) -> JobApplicationResponse:
    """Review, reject or withdraw an application."""
    application = await service.update_application_status(
        caller.user_id, application_id, data.status, data.reason,
    )
    return JobApplicationResponse.model_validate(application)


@router.post("/applications/{application_id}/withdraw", response_model=JobApplicationResponse)
async def withdraw_application(
    application_id: UUID,
    caller: TradieCaller,
    service: MarketplaceServiceDep,
    data: WithdrawApplicationRequest | None = None,
) -> JobApplicationResponse:
    application = await service.withdraw_application(
        caller.user_id, application_id, data.reason if data else None,
    )
    return JobApplicationResponse.model_validate(application)


# === Selection ===

@router.post("/select-tradie", response_model=SelectionResponse)
async def select_tradie(
    data: SelectTradieRequest,
    caller: ClientCaller,
    service: MarketplaceServiceDep,
) -> SelectionResponse:
    """Confirm a tradie for a job."""
    assignment, rejected_ids = await service.select_tradie(caller.user_id, data)
    return SelectionResponse(
        assignment=AssignmentResponse.model_validate(assignment),
        rejected_application_ids=rejected_ids,
    )


# === Stats ===

@router.get("/stats/tradie", response_model=TradieStatsResponse)
async def get_tradie_stats(
    caller: TradieCaller,
    stats: StatsServiceDep,
) -> TradieStatsResponse:
    return TradieStatsResponse.model_validate(await stats.get_tradie_stats(caller.user_id))


@router.get("/stats/client", response_model=ClientStatsResponse)
async def get_client_stats(
    caller: ClientCaller,
    stats: StatsServiceDep,
) -> ClientStatsResponse:
    return ClientStatsResponse.model_validate(await stats.get_client_stats(caller.user_id))


@router.get("/analytics/applications", response_model=ApplicationMetricsResponse)
async def get_application_metrics(
    caller: TradieCaller,
    stats: StatsServiceDep,
) -> ApplicationMetricsResponse:
    """Conversion and credit spend across the caller's applications."""
    return ApplicationMetricsResponse.model_validate(await stats.application_metrics(caller.user_id))


@router.get("/analytics/hiring", response_model=HiringSummaryResponse)
async def get_hiring_summary(
    caller: ClientCaller,
    stats: StatsServiceDep,
) -> HiringSummaryResponse:
    return HiringSummaryResponse.model_validate(await stats.hiring_summary(caller.user_id))
