"""
Marketplace Module - Pydantic Schemas

Field lengths and budget bounds are checked in the service so violations
come back as one VALIDATION_ERROR with every failing field listed.
"""
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from tradiehub.modules.marketplace.models import (
    ApplicationStatus,
    JobType,
    MarketplaceJobStatus,
    UrgencyLevel,
)


# === Marketplace Job Schemas ===

class MarketplaceJobCreate(BaseModel):
    """Schema for posting a marketplace job."""
    title: str
    description: str
    job_type: JobType
    location: str
    estimated_budget: Decimal
    date_required: datetime
    urgency_level: UrgencyLevel = UrgencyLevel.MEDIUM


class MarketplaceJobResponse(BaseModel):
    """Marketplace job response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    title: str
    description: str
    job_type: JobType
    location: str
    estimated_budget: Decimal
    date_required: datetime
    urgency_level: UrgencyLevel
    status: MarketplaceJobStatus
    current_status: MarketplaceJobStatus
    application_count: int
    expires_at: datetime
    created_at: datetime
    updated_at: datetime


class JobSortOption(str, Enum):
    DATE_POSTED = "date_posted"
    BUDGET_DESC = "budget_desc"
    BUDGET_ASC = "budget_asc"
    URGENCY = "urgency"
    APPLICATION_COUNT = "application_count"


class JobSearchParams(BaseModel):
    """Filters for browsing available jobs."""
    query: str | None = None
    job_type: JobType | None = None
    location: str | None = None
    urgency_level: UrgencyLevel | None = None
    min_budget: Decimal | None = Field(None, ge=0)
    max_budget: Decimal | None = Field(None, ge=0)
    exclude_applied: bool = False
    sort_by: JobSortOption = JobSortOption.DATE_POSTED
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)


class MarketplaceJobListResponse(BaseModel):
    """List of marketplace jobs response."""
    jobs: list[MarketplaceJobResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class CreditCostResponse(BaseModel):
    marketplace_job_id: UUID
    job_type: JobType
    urgency_level: UrgencyLevel
    base_cost: Decimal
    urgency_multiplier: Decimal
    job_type_multiplier: Decimal
    credits_required: Decimal


class JobStatusUpdate(BaseModel):
    status: MarketplaceJobStatus
    reason: str | None = Field(None, max_length=1000)


# === Application Schemas ===

class JobApplicationCreate(BaseModel):
    """Schema for applying to a marketplace job."""
    marketplace_job_id: UUID
    custom_quote: Decimal | None = Field(None, ge=0, le=Decimal("1000000"))
    proposed_timeline: str | None = Field(None, max_length=200)
    approach_description: str | None = Field(None, max_length=5000)
    materials_list: list[str] | None = Field(None, max_length=100)
    availability_dates: list[date] | None = Field(None, max_length=60)


class JobApplicationResponse(BaseModel):
    """Job application response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    marketplace_job_id: UUID
    tradie_id: UUID
    custom_quote: Decimal | None
    proposed_timeline: str | None
    approach_description: str | None
    materials_list: list[str] | None
    availability_dates: list[date] | None
    credits_used: Decimal
    credits_refunded: bool
    status: ApplicationStatus
    application_timestamp: datetime
    status_changed_at: datetime | None
    withdrawal_reason: str | None


class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus
    reason: str | None = Field(None, max_length=1000)


class WithdrawApplicationRequest(BaseModel):
    reason: str | None = Field(None, max_length=1000)


# === Selection Schemas ===

class SelectTradieRequest(BaseModel):
    """Schema for a client confirming a tradie."""
    marketplace_job_id: UUID
    application_id: UUID
    selection_reason: str | None = Field(None, max_length=1000)
    negotiated_quote: Decimal | None = Field(None, ge=0)
    project_start_date: datetime | None = None


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    marketplace_job_id: UUID
    selected_tradie_id: UUID
    selected_application_id: UUID
    selection_reason: str | None
    negotiated_quote: Decimal | None
    project_start_date: datetime | None
    assignment_timestamp: datetime
    work_order_id: UUID | None


class SelectionResponse(BaseModel):
    assignment: AssignmentResponse
    rejected_application_ids: list[UUID]


# === Stats Schemas ===

class TradieStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tradie_id: UUID
    total_applications: int
    successful_applications: int
    total_credits_spent: Decimal
    conversion_rate: Decimal
    average_quote: Decimal | None
    last_application_at: datetime | None


class ClientStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    client_id: UUID
    total_jobs_posted: int
    total_applications_received: int
    total_hires_made: int
    average_applications_per_job: Decimal
    average_hire_time_hours: Decimal | None
    last_job_posted_at: datetime | None


# === Analytics Schemas ===

class ApplicationMetricsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_applications: int
    status_distribution: dict[str, int]
    conversion_rate: Decimal
    average_quote: Decimal | None
    credits_spent: Decimal


class HiringSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    jobs_posted: int
    hires_made: int
    hire_rate: Decimal
    average_applications_per_job: Decimal
    average_hire_time_hours: Decimal | None
