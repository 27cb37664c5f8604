"""
Jobs Module - internal work orders.
"""
from tradiehub.modules.jobs.models import JOB_STATUS_MACHINE, Job, JobPriority, JobStatus
from tradiehub.modules.jobs.service import JobService

__all__ = ["Job", "JobStatus", "JobPriority", "JOB_STATUS_MACHINE", "JobService"]
