"""
Marketplace Module - Database Models
Posted jobs, tradie applications, selections and the per-user marketplace stats.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from tradiehub.core.models import Base, JSONType, as_utc, utc_now
from tradiehub.core.state_machine import StateMachine


class JobType(str, Enum):
    """Trade categories a marketplace job can be posted under."""
    ELECTRICAL = "electrical"
    PLUMBING = "plumbing"
    ROOFING = "roofing"
    HVAC = "hvac"
    CARPENTRY = "carpentry"
    PAINTING = "painting"
    LANDSCAPING = "landscaping"
    CLEANING = "cleaning"
    HANDYMAN = "handyman"
    GENERAL = "general"


class UrgencyLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class MarketplaceJobStatus(str, Enum):
    """Marketplace job status enumeration."""
    AVAILABLE = "available"
    IN_REVIEW = "in_review"
    ASSIGNED = "assigned"
    COMPLETED = "completed"
    EXPIRED = "expired"         # Set by the expiry sweep, never requested
    CANCELLED = "cancelled"


class ApplicationStatus(str, Enum):
    """Job application status enumeration."""
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    SELECTED = "selected"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


MARKETPLACE_JOB_STATUS_MACHINE: StateMachine[MarketplaceJobStatus] = StateMachine(
    "marketplace job",
    {
        MarketplaceJobStatus.AVAILABLE: {
            MarketplaceJobStatus.IN_REVIEW,
            MarketplaceJobStatus.ASSIGNED,
            MarketplaceJobStatus.CANCELLED,
        },
        MarketplaceJobStatus.IN_REVIEW: {
            MarketplaceJobStatus.ASSIGNED,
            MarketplaceJobStatus.AVAILABLE,
            MarketplaceJobStatus.CANCELLED,
        },
        MarketplaceJobStatus.ASSIGNED: {
            MarketplaceJobStatus.COMPLETED,
            MarketplaceJobStatus.CANCELLED,
        },
        MarketplaceJobStatus.COMPLETED: set(),
        MarketplaceJobStatus.EXPIRED: set(),
        MarketplaceJobStatus.CANCELLED: set(),
    },
)

APPLICATION_STATUS_MACHINE: StateMachine[ApplicationStatus] = StateMachine(
    "application",
    {
        ApplicationStatus.SUBMITTED: {ApplicationStatus.UNDER_REVIEW, ApplicationStatus.WITHDRAWN},
        ApplicationStatus.UNDER_REVIEW: {
            ApplicationStatus.SELECTED,
            ApplicationStatus.REJECTED,
            ApplicationStatus.WITHDRAWN,
        },
        ApplicationStatus.SELECTED: set(),
        ApplicationStatus.REJECTED: set(),
        ApplicationStatus.WITHDRAWN: set(),
    },
)

SELECTABLE_JOB_STATUSES = (MarketplaceJobStatus.AVAILABLE.value, MarketplaceJobStatus.IN_REVIEW.value)
ACTIVE_APPLICATION_STATUSES = (ApplicationStatus.SUBMITTED.value, ApplicationStatus.UNDER_REVIEW.value)


class MarketplaceJob(Base):
    """
    A job posted by a client for tradies to apply to.

    expires_at is fixed at creation. `version` is bumped by every status
    change and application, so concurrent selections conflict instead of
    overwriting each other.
    """
    __tablename__ = "marketplace_job"

    __table_args__ = (
        Index("ix_marketplace_job_status_expires", "status", "expires_at"),
        Index("ix_marketplace_job_client", "client_id"),
    )

    client_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    job_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    location: Mapped[str] = mapped_column(String(100), nullable=False)

    estimated_budget: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    date_required: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    urgency_level: Mapped[str] = mapped_column(
        String(20),
        default=UrgencyLevel.MEDIUM.value,
        nullable=False,
    )

    # Status
    status: Mapped[str] = mapped_column(
        String(20),
        default=MarketplaceJobStatus.AVAILABLE.value,
        nullable=False,
    )

    application_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Optimistic concurrency token
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def status_at(self, now: datetime) -> str:
        """Stored status, reported as `expired` once an available job passes expires_at."""
        if self.status == MarketplaceJobStatus.AVAILABLE.value and as_utc(self.expires_at) <= now:
            return MarketplaceJobStatus.EXPIRED.value
        return self.status

    @property
    def current_status(self) -> str:
        return self.status_at(utc_now())


class JobApplication(Base):
    """
    A tradie's bid on a marketplace job.
    credits_used is fixed at submission; credits_refunded guards against double refunds.
    """
    __tablename__ = "job_application"

    __table_args__ = (
        # One live application per tradie per job; withdrawn ones don't count
        Index(
            "uq_job_application_active",
            "marketplace_job_id",
            "tradie_id",
            unique=True,
            postgresql_where=text("status <> 'withdrawn'"),
            sqlite_where=text("status <> 'withdrawn'"),
        ),
        Index("ix_job_application_tradie", "tradie_id", "created_at"),
    )

    marketplace_job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("marketplace_job.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tradie_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)

    # Proposal
    custom_quote: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    proposed_timeline: Mapped[str | None] = mapped_column(String(200), nullable=True)
    approach_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    materials_list: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    availability_dates: Mapped[list | None] = mapped_column(JSONType, nullable=True)

    credits_used: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    credits_refunded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=ApplicationStatus.SUBMITTED.value,
        nullable=False,
        index=True,
    )

    application_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    status_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    withdrawal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)


class MarketplaceJobAssignment(Base):
    """Record of a client selecting a tradie; written once, never updated."""
    __tablename__ = "marketplace_job_assignment"

    marketplace_job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("marketplace_job.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    selected_tradie_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    selected_application_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("job_application.id"),
        nullable=False,
    )

    selection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    negotiated_quote: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    project_start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    assignment_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )

    # Work order opened for the selected tradie
    work_order_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)


class TradieMarketplaceStats(Base):
    """Running application statistics for one tradie."""
    __tablename__ = "tradie_marketplace_stats"

    tradie_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), unique=True, nullable=False)

    total_applications: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    successful_applications: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_credits_spent: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)

    # Percentage of applications that were selected
    conversion_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"), nullable=False)

    # Mean of custom quotes; quoted_applications is its sample size
    average_quote: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    quoted_applications: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    last_application_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ClientMarketplaceStats(Base):
    """Running hiring statistics for one client."""
    __tablename__ = "client_marketplace_stats"

    client_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), unique=True, nullable=False)

    total_jobs_posted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_applications_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_hires_made: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    average_applications_per_job: Mapped[Decimal] = mapped_column(
        Numeric(8, 2),
        default=Decimal("0"),
        nullable=False,
    )
    average_hire_time_hours: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    last_job_posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
