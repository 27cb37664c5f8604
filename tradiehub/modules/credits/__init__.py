"""
Credits Module - balances, journal and auto-topup.
"""
from tradiehub.modules.credits.models import (
    AutoTopupSettings,
    CreditBalance,
    CreditTransaction,
    CreditTransactionType,
)
from tradiehub.modules.credits.service import CreditLedger, SufficiencyResult, should_auto_topup

__all__ = [
    "AutoTopupSettings",
    "CreditBalance",
    "CreditTransaction",
    "CreditTransactionType",
    "CreditLedger",
    "SufficiencyResult",
    "should_auto_topup",
]
