"""
Credits Module - Ledger Service

Every balance change is a single conditional UPDATE plus a journal row.
Methods only flush: they join the caller's transaction, so a deduction
and the application it pays for commit or roll back together.
"""
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tradiehub.core.config import Settings, settings
from tradiehub.core.exceptions import InsufficientCreditsError, TradieHubException, ValidationError
from tradiehub.core.logging import get_logger
from tradiehub.core.models import as_utc, utc_now
from tradiehub.modules.credits.models import (
    AutoTopupSettings,
    CreditBalance,
    CreditTransaction,
    CreditTransactionType,
)
from tradiehub.modules.credits.schemas import AutoTopupSettingsUpdate
from tradiehub.modules.credits.topup import CreditPurchaser

logger = get_logger(__name__)

ZERO = Decimal("0")

CREDITING_TYPES = frozenset({
    CreditTransactionType.TRIAL,
    CreditTransactionType.PURCHASE,
    CreditTransactionType.BONUS,
    CreditTransactionType.ADJUSTMENT,
})


@dataclass(frozen=True)
class SufficiencyResult:
    sufficient: bool
    current_balance: Decimal
    required: Decimal
    shortfall: Decimal


def should_auto_topup(
    topup: AutoTopupSettings | None,
    balance: Decimal,
    now: datetime,
    max_failures: int,
    cooldown: timedelta,
) -> bool:
    """True when an enabled auto-topup is below its trigger, healthy and out of cooldown."""
    if topup is None or not topup.enabled or not topup.payment_method_ref:
        return False
    if balance >= topup.trigger_balance:
        return False
    if topup.failure_count >= max_failures:
        return False
    last = as_utc(topup.last_triggered_at)
    return last is None or now - last >= cooldown


def _positive(amount: Decimal, field: str = "amount") -> Decimal:
    if amount <= ZERO:
        raise ValidationError(
            "Credit amount must be positive",
            errors=[{"field": field, "message": "must be greater than 0", "code": "value_error"}],
        )
    return amount


class CreditLedger:
    """Credit balance operations for marketplace users."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utc_now,
        app_settings: Settings = settings,
    ):
        self.db = db
        self._clock = clock
        self.settings = app_settings

    # ============== Balance ==============

    async def _find_balance(self, user_id: uuid.UUID, refresh: bool = False) -> CreditBalance | None:
        stmt = select(CreditBalance).where(CreditBalance.user_id == user_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_balance(self, user_id: uuid.UUID) -> CreditBalance:
        """Get the user's balance, creating an empty one on first access."""
        balance = await self._find_balance(user_id)
        if balance is None:
            balance = CreditBalance(
                user_id=user_id,
                current_balance=ZERO,
                total_purchased=ZERO,
                total_used=ZERO,
            )
            self.db.add(balance)
            await self.db.flush()
        return balance

    async def check_sufficiency(self, user_id: uuid.UUID, required: Decimal) -> SufficiencyResult:
        balance = await self._find_balance(user_id)
        current = balance.current_balance if balance else ZERO
        shortfall = max(required - current, ZERO)
        return SufficiencyResult(
            sufficient=shortfall == ZERO,
            current_balance=current,
            required=required,
            shortfall=shortfall,
        )

    # ============== Mutations ==============

    def _journal(
        self,
        user_id: uuid.UUID,
        transaction_type: CreditTransactionType,
        amount: Decimal,
        balance_after: Decimal,
        reference: str | None,
        description: str | None,
    ) -> CreditTransaction:
        entry = CreditTransaction(
            user_id=user_id,
            transaction_type=transaction_type.value,
            amount=amount,
            balance_after=balance_after,
            reference=reference,
            description=description,
        )
        self.db.add(entry)
        return entry

    async def deduct(
        self,
        user_id: uuid.UUID,
        amount: Decimal,
        reference: str | None = None,
        description: str | None = None,
    ) -> Decimal:
        """
        Spend credits.

        The sufficiency check and the decrement are one conditional UPDATE,
        so concurrent deductions cannot both pass on the same credits.

        Returns:
            The new current balance

        Raises:
            InsufficientCreditsError: balance below amount (nothing is changed)
        """
        _positive(amount)
        result = await self.db.execute(
            update(CreditBalance)
            .where(
                CreditBalance.user_id == user_id,
                CreditBalance.current_balance >= amount,
            )
            .values(
                current_balance=CreditBalance.current_balance - amount,
                total_used=CreditBalance.total_used + amount,
                last_transaction_at=self._clock(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            balance = await self._find_balance(user_id)
            available = balance.current_balance if balance else ZERO
            raise InsufficientCreditsError(required=amount, available=available)

        balance = await self._find_balance(user_id, refresh=True)
        self._journal(
            user_id, CreditTransactionType.USAGE, amount, balance.current_balance, reference, description,
        )
        await self.db.flush()

        logger.info(
            "Credits deducted",
            user_id=str(user_id),
            amount=str(amount),
            balance=str(balance.current_balance),
            reference=reference,
        )
        return balance.current_balance

    async def refund(
        self,
        user_id: uuid.UUID,
        amount: Decimal,
        reference: str | None = None,
        description: str | None = None,
    ) -> Decimal:
        """Return spent credits; reduces total_used so the balance still reconciles."""
        _positive(amount)
        await self.get_balance(user_id)
        await self.db.execute(
            update(CreditBalance)
            .where(CreditBalance.user_id == user_id)
            .values(
                current_balance=CreditBalance.current_balance + amount,
                total_used=CreditBalance.total_used - amount,
                last_transaction_at=self._clock(),
            )
            .execution_options(synchronize_session=False)
        )
        balance = await self._find_balance(user_id, refresh=True)
        self._journal(
            user_id, CreditTransactionType.REFUND, amount, balance.current_balance, reference, description,
        )
        await self.db.flush()

        logger.info(
            "Credits refunded",
            user_id=str(user_id),
            amount=str(amount),
            balance=str(balance.current_balance),
            reference=reference,
        )
        return balance.current_balance

    async def add_credits(
        self,
        user_id: uuid.UUID,
        amount: Decimal,
        source: CreditTransactionType = CreditTransactionType.PURCHASE,
        reference: str | None = None,
        description: str | None = None,
    ) -> CreditBalance:
        """Credit purchased, bonus, trial or adjustment credits."""
        if source not in CREDITING_TYPES:
            raise ValidationError(
                f"'{source.value}' cannot add credits",
                errors=[{"field": "source", "message": "not a crediting type", "code": "value_error"}],
            )
        _positive(amount)
        await self.get_balance(user_id)
        await self.db.execute(
            update(CreditBalance)
            .where(CreditBalance.user_id == user_id)
            .values(
                current_balance=CreditBalance.current_balance + amount,
                total_purchased=CreditBalance.total_purchased + amount,
                last_transaction_at=self._clock(),
            )
            .execution_options(synchronize_session=False)
        )
        balance = await self._find_balance(user_id, refresh=True)
        self._journal(user_id, source, amount, balance.current_balance, reference, description)
        await self.db.flush()

        logger.info(
            "Credits added",
            user_id=str(user_id),
            source=source.value,
            amount=str(amount),
            balance=str(balance.current_balance),
        )
        return balance

    async def award_trial(self, user_id: uuid.UUID) -> tuple[CreditBalance, bool]:
        """
        Seed trial credits once per user.

        Returns:
            (balance, awarded) where awarded is False if a trial was already granted
        """
        result = await self.db.execute(
            select(CreditTransaction.id)
            .where(
                CreditTransaction.user_id == user_id,
                CreditTransaction.transaction_type == CreditTransactionType.TRIAL.value,
            )
            .limit(1)
        )
        if result.scalar_one_or_none() is not None:
            return await self.get_balance(user_id), False

        balance = await self.add_credits(
            user_id,
            self.settings.trial_credits,
            source=CreditTransactionType.TRIAL,
            description="Trial credits",
        )
        return balance, True

    async def list_transactions(
        self,
        user_id: uuid.UUID,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[CreditTransaction]:
        result = await self.db.execute(
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)
            .order_by(CreditTransaction.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return result.scalars().all()

    # ============== Auto-topup ==============

    async def _find_auto_topup(self, user_id: uuid.UUID) -> AutoTopupSettings | None:
        result = await self.db.execute(
            select(AutoTopupSettings).where(AutoTopupSettings.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_auto_topup_settings(self, user_id: uuid.UUID) -> AutoTopupSettings:
        """Get auto-topup preferences (created disabled with defaults)."""
        topup = await self._find_auto_topup(user_id)
        if topup is None:
            topup = AutoTopupSettings(
                user_id=user_id,
                enabled=False,
                trigger_balance=self.settings.auto_topup_default_trigger,
                topup_credits=self.settings.auto_topup_default_credits,
                failure_count=0,
            )
            self.db.add(topup)
            await self.db.flush()
        return topup

    async def update_auto_topup_settings(
        self,
        user_id: uuid.UUID,
        data: AutoTopupSettingsUpdate,
    ) -> AutoTopupSettings:
        topup = await self.get_auto_topup_settings(user_id)

        update_data = data.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(topup, field, value)

        # Re-enabling clears the failure streak
        if update_data.get("enabled"):
            topup.failure_count = 0

        if topup.enabled and not topup.payment_method_ref:
            raise ValidationError(
                "Auto-topup requires a payment method",
                errors=[{"field": "payment_method_ref", "message": "required when enabled", "code": "missing"}],
            )

        await self.db.flush()
        logger.info("Auto-topup settings updated", user_id=str(user_id), enabled=topup.enabled)
        return topup

    async def is_auto_topup_due(self, user_id: uuid.UUID) -> bool:
        """Evaluate the trigger against the current balance (read only)."""
        topup = await self._find_auto_topup(user_id)
        if topup is None:
            return False
        balance = await self._find_balance(user_id)
        return should_auto_topup(
            topup,
            balance.current_balance if balance else ZERO,
            self._clock(),
            self.settings.auto_topup_max_failures,
            timedelta(minutes=self.settings.auto_topup_cooldown_minutes),
        )

    async def execute_auto_topup(
        self,
        user_id: uuid.UUID,
        purchaser: CreditPurchaser,
    ) -> CreditBalance | None:
        """
        Purchase and credit the configured topup if it is still due.

        Payment failures are counted; after auto_topup_max_failures the
        topup is disabled until the user re-enables it.
        """
        if not await self.is_auto_topup_due(user_id):
            logger.info("Auto-topup not due", user_id=str(user_id))
            return None

        topup = await self._find_auto_topup(user_id)
        topup.last_triggered_at = self._clock()

        try:
            transaction_id = await purchaser.purchase_credits(
                user_id, topup.topup_credits, topup.payment_method_ref,
            )
        except TradieHubException as exc:
            topup.failure_count += 1
            if topup.failure_count >= self.settings.auto_topup_max_failures:
                topup.enabled = False
            await self.db.flush()
            logger.warning(
                "Auto-topup purchase failed",
                user_id=str(user_id),
                failure_count=topup.failure_count,
                disabled=not topup.enabled,
                error=exc.message,
            )
            return None

        topup.failure_count = 0
        balance = await self.add_credits(
            user_id,
            topup.topup_credits,
            source=CreditTransactionType.PURCHASE,
            reference=transaction_id,
            description="Auto-topup",
        )
        logger.info("Auto-topup completed", user_id=str(user_id), transaction_id=transaction_id)
        return balance
