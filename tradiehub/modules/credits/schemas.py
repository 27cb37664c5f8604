"""
Credits Module - Pydantic Schemas (DTOs)
"""
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from tradiehub.modules.credits.models import CreditTransactionType


# ============== Balance Schemas ==============

class CreditBalanceResponse(BaseModel):
    """Credit balance response schema."""
    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    current_balance: Decimal
    total_purchased: Decimal
    total_used: Decimal
    last_transaction_at: datetime | None = None


class SufficiencyCheckRequest(BaseModel):
    required: Decimal = Field(..., gt=0)


class SufficiencyCheckResponse(BaseModel):
    sufficient: bool
    current_balance: Decimal
    required: Decimal
    shortfall: Decimal


class TrialAwardResponse(BaseModel):
    awarded: bool
    balance: CreditBalanceResponse


# ============== Transaction Schemas ==============

class CreditTransactionResponse(BaseModel):
    """Credit journal entry."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    transaction_type: CreditTransactionType
    amount: Decimal
    balance_after: Decimal
    reference: str | None = None
    description: str | None = None
    created_at: datetime


# ============== Auto-topup Schemas ==============

class AutoTopupSettingsUpdate(BaseModel):
    """Schema for updating auto-topup preferences."""
    enabled: bool | None = None
    trigger_balance: Decimal | None = Field(None, ge=0)
    topup_credits: Decimal | None = Field(None, gt=0)
    payment_method_ref: str | None = Field(None, max_length=100)


class AutoTopupSettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    enabled: bool
    trigger_balance: Decimal
    topup_credits: Decimal
    payment_method_ref: str | None = None
    failure_count: int
    last_triggered_at: datetime | None = None
