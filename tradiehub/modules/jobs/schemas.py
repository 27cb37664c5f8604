"""
Jobs Module - Pydantic Schemas
"""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from tradiehub.modules.jobs.models import JobPriority, JobStatus


class JobCreate(BaseModel):
    """Schema for opening a work order."""
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    client_id: UUID | None = None
    job_type: str | None = Field(None, max_length=30)
    priority: JobPriority = JobPriority.MEDIUM
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None


class JobStatusUpdate(BaseModel):
    status: JobStatus


class JobResponse(BaseModel):
    """Work order response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tradie_id: UUID
    client_id: UUID | None
    marketplace_job_id: UUID | None
    title: str
    description: str | None
    job_type: str | None
    priority: JobPriority
    status: JobStatus
    scheduled_start: datetime | None
    scheduled_end: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class JobListResponse(BaseModel):
    """List of work orders response."""
    jobs: list[JobResponse]
    total: int
    page: int
    page_size: int
