"""
Jobs Module - FastAPI Dependencies
"""
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tradiehub.core.database import get_db
from tradiehub.modules.jobs.service import JobService


async def get_job_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> JobService:
    return JobService(db)


JobServiceDep = Annotated[JobService, Depends(get_job_service)]
