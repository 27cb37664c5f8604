"""
Quotes Module - FastAPI Dependencies
"""
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tradiehub.core.database import get_db
from tradiehub.modules.quotes.service import QuoteService


async def get_quote_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> QuoteService:
    return QuoteService(db)


QuoteServiceDep = Annotated[QuoteService, Depends(get_quote_service)]
