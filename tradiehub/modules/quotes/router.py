"""
Quotes Module - API Routes
"""
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Query, status

from tradiehub.modules.auth.dependencies import CurrentCaller, TradieCaller
from tradiehub.modules.quotes.dependencies import QuoteServiceDep
from tradiehub.modules.quotes.models import QuoteStatus
from tradiehub.modules.quotes.schemas import (
    CalculatedItem,
    QuoteCalculateRequest,
    QuoteCalculationResponse,
    QuoteCreate,
    QuoteListResponse,
    QuoteResponse,
    QuoteStatusUpdate,
    QuoteSummaryResponse,
    QuoteUpdate,
)

router = APIRouter(prefix="/quotes", tags=["quotes"])


@router.post("/calculate", response_model=QuoteCalculationResponse)
async def calculate_quote(
    data: QuoteCalculateRequest,
    caller: CurrentCaller,
    service: QuoteServiceDep,
) -> QuoteCalculationResponse:
    """Preview quote totals without saving anything."""
    totals = service.calculate(data.items, data.gst_enabled)
    return QuoteCalculationResponse(
        items=[
            CalculatedItem(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item_total,
            )
            for item, item_total in zip(data.items, totals.item_totals)
        ],
        subtotal=totals.subtotal,
        gst_rate=service.settings.gst_rate if data.gst_enabled else Decimal("0"),
        gst_amount=totals.gst_amount,
        total_amount=totals.total_amount,
    )


@router.post("", response_model=QuoteResponse, status_code=status.HTTP_201_CREATED)
async def create_quote(
    data: QuoteCreate,
    caller: TradieCaller,
    service: QuoteServiceDep,
) -> QuoteResponse:
    """Create a draft quote."""
    quote = await service.create_quote(caller.user_id, data)
    return QuoteResponse.model_validate(quote)


@router.get("", response_model=QuoteListResponse)
async def list_quotes(
    caller: CurrentCaller,
    service: QuoteServiceDep,
    status_filter: QuoteStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> QuoteListResponse:
    """Quotes the caller issued or received."""
    quotes, total = await service.list_quotes(caller.user_id, status_filter, page, page_size)
    return QuoteListResponse(
        quotes=[QuoteResponse.model_validate(q) for q in quotes],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/analytics/summary", response_model=QuoteSummaryResponse)
async def get_quote_summary(
    caller: CurrentCaller,
    service: QuoteServiceDep,
) -> QuoteSummaryResponse:
    return QuoteSummaryResponse.model_validate(await service.get_summary(caller.user_id))


@router.get("/{quote_id}", response_model=QuoteResponse)
async def get_quote(
    quote_id: UUID,
    caller: CurrentCaller,
    service: QuoteServiceDep,
) -> QuoteResponse:
    quote = await service.get_quote(caller.user_id, quote_id)
    return QuoteResponse.model_validate(quote)


@router.put("/{quote_id}", response_model=QuoteResponse)
async def update_quote(
    quote_id: UUID,
    data: QuoteUpdate,
    caller: TradieCaller,
    service: QuoteServiceDep,
) -> QuoteResponse:
    """Edit a draft quote."""
    quote = await service.update_quote(caller.user_id, quote_id, data)
    return QuoteResponse.model_validate(quote)


@router.put("/{quote_id}/status", response_model=QuoteResponse)
async def update_quote_status(
    quote_id: UUID,
    data: QuoteStatusUpdate,
    caller: CurrentCaller,
    service: QuoteServiceDep,
) -> QuoteResponse:
    quote = await service.update_quote_status(caller.user_id, quote_id, data.status)
    return QuoteResponse.model_validate(quote)
