"""
Credits Module - API Router
"""
from fastapi import APIRouter, Query

from tradiehub.modules.auth.dependencies import CurrentCaller
from tradiehub.modules.credits.dependencies import CreditLedgerDep
from tradiehub.modules.credits.schemas import (
    AutoTopupSettingsResponse,
    AutoTopupSettingsUpdate,
    CreditBalanceResponse,
    CreditTransactionResponse,
    SufficiencyCheckRequest,
    SufficiencyCheckResponse,
    TrialAwardResponse,
)

router = APIRouter(prefix="/credits", tags=["credits"])


@router.get("/balance", response_model=CreditBalanceResponse)
async def get_balance(
    caller: CurrentCaller,
    ledger: CreditLedgerDep,
) -> CreditBalanceResponse:
    """Get the caller's credit balance."""
    balance = await ledger.get_balance(caller.user_id)
    return CreditBalanceResponse.model_validate(balance)


@router.post("/check", response_model=SufficiencyCheckResponse)
async def check_credits(
    data: SufficiencyCheckRequest,
    caller: CurrentCaller,
    ledger: CreditLedgerDep,
) -> SufficiencyCheckResponse:
    """Check whether the caller can afford `required` credits."""
    result = await ledger.check_sufficiency(caller.user_id, data.required)
    return SufficiencyCheckResponse(
        sufficient=result.sufficient,
        current_balance=result.current_balance,
        required=result.required,
        shortfall=result.shortfall,
    )


@router.post("/award-trial", response_model=TrialAwardResponse)
async def award_trial(
    caller: CurrentCaller,
    ledger: CreditLedgerDep,
) -> TrialAwardResponse:
    """Seed trial credits (once per user)."""
    balance, awarded = await ledger.award_trial(caller.user_id)
    return TrialAwardResponse(
        awarded=awarded,
        balance=CreditBalanceResponse.model_validate(balance),
    )


@router.get("/transactions", response_model=list[CreditTransactionResponse])
async def list_transactions(
    caller: CurrentCaller,
    ledger: CreditLedgerDep,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> list[CreditTransactionResponse]:
    """List the caller's credit journal, newest first."""
    transactions = await ledger.list_transactions(caller.user_id, limit=limit, offset=offset)
    return [CreditTransactionResponse.model_validate(t) for t in transactions]


@router.get("/auto-topup", response_model=AutoTopupSettingsResponse)
async def get_auto_topup(
    caller: CurrentCaller,
    ledger: CreditLedgerDep,
) -> AutoTopupSettingsResponse:
    topup = await ledger.get_auto_topup_settings(caller.user_id)
    return AutoTopupSettingsResponse.model_validate(topup)


@router.put("/auto-topup", response_model=AutoTopupSettingsResponse)
async def update_auto_topup(
    data: AutoTopupSettingsUpdate,
    caller: CurrentCaller,
    ledger: CreditLedgerDep,
) -> AutoTopupSettingsResponse:
    """Update auto-topup preferences."""
    topup = await ledger.update_auto_topup_settings(caller.user_id, data)
    return AutoTopupSettingsResponse.model_validate(topup)
