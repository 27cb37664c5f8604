"""
Jobs Module - Database Models
Internal work orders a tradie runs after winning (or directly booking) a job.
"""
import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tradiehub.core.models import Base
from tradiehub.core.state_machine import StateMachine


class JobStatus(str, Enum):
    """Work order status enumeration."""
    PENDING = "pending"
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class JobPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


JOB_STATUS_MACHINE: StateMachine[JobStatus] = StateMachine(
    "job",
    {
        JobStatus.PENDING: {JobStatus.ACTIVE, JobStatus.CANCELLED},
        JobStatus.ACTIVE: {JobStatus.COMPLETED, JobStatus.ON_HOLD, JobStatus.CANCELLED},
        JobStatus.ON_HOLD: {JobStatus.ACTIVE, JobStatus.CANCELLED},
        JobStatus.COMPLETED: set(),
        JobStatus.CANCELLED: set(),
    },
)


class Job(Base):
    """
    Work order.
    Opened with status pending; marketplace selections link back through marketplace_job_id.
    """
    __tablename__ = "job"

    __table_args__ = (
        Index("ix_job_tradie_status", "tradie_id", "status"),
    )

    tradie_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    client_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)

    marketplace_job_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("marketplace_job.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    job_type: Mapped[str | None] = mapped_column(String(30), nullable=True)

    priority: Mapped[str] = mapped_column(
        String(20),
        default=JobPriority.MEDIUM.value,
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=JobStatus.PENDING.value,
        nullable=False,
        index=True,
    )

    # Scheduling
    scheduled_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    scheduled_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
