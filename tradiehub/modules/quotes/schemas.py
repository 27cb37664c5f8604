"""
Quotes Module - Pydantic Schemas (DTOs)
"""
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from tradiehub.modules.quotes.models import QuoteItemType, QuoteStatus


# ============== Item Schemas ==============

class QuoteItemInput(BaseModel):
    """One line of a quote; ranges are checked by the service."""
    item_type: QuoteItemType
    description: str = Field(..., max_length=500)
    quantity: Decimal
    unit: str = Field(default="each", max_length=20)
    unit_price: Decimal
    sort_order: int | None = None


class QuoteItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    item_type: QuoteItemType
    description: str
    quantity: Decimal
    unit: str
    unit_price: Decimal
    total_price: Decimal
    sort_order: int


# ============== Calculation Schemas ==============

class QuoteCalculateRequest(BaseModel):
    items: list[QuoteItemInput]
    gst_enabled: bool = True


class CalculatedItem(BaseModel):
    description: str
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal


class QuoteCalculationResponse(BaseModel):
    """Totals preview; nothing is stored."""
    items: list[CalculatedItem]
    subtotal: Decimal
    gst_rate: Decimal
    gst_amount: Decimal
    total_amount: Decimal


# ============== Quote Schemas ==============

class QuoteCreate(BaseModel):
    """Schema for creating a draft quote."""
    client_id: uuid.UUID
    job_id: uuid.UUID | None = None
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    notes: str | None = None
    gst_enabled: bool = True
    valid_until: datetime | None = None
    items: list[QuoteItemInput]


class QuoteUpdate(BaseModel):
    """Partial update; `items`, when given, replaces every existing line."""
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    notes: str | None = None
    gst_enabled: bool | None = None
    valid_until: datetime | None = None
    items: list[QuoteItemInput] | None = None


class QuoteStatusUpdate(BaseModel):
    status: QuoteStatus


class QuoteResponse(BaseModel):
    """Quote response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    quote_number: str
    tradie_id: uuid.UUID
    client_id: uuid.UUID
    job_id: uuid.UUID | None
    title: str
    description: str | None
    notes: str | None
    status: QuoteStatus
    subtotal: Decimal
    gst_enabled: bool
    gst_amount: Decimal
    total_amount: Decimal
    valid_until: datetime
    sent_at: datetime | None
    viewed_at: datetime | None
    responded_at: datetime | None
    items: list[QuoteItemResponse]
    created_at: datetime
    updated_at: datetime


class QuoteListResponse(BaseModel):
    quotes: list[QuoteResponse]
    total: int
    page: int
    page_size: int


class QuoteSummaryResponse(BaseModel):
    """Quote analytics for the caller."""
    model_config = ConfigDict(from_attributes=True)

    total_quotes: int
    accepted_quotes: int
    rejected_quotes: int
    pending_quotes: int
    acceptance_rate: Decimal
    average_quote_value: Decimal | None
    total_accepted_value: Decimal
    average_response_hours: Decimal | None
