"""
Credit Ledger Tests.
"""
import uuid
from decimal import Decimal

import httpx
import pytest
from sqlalchemy import select

from tradiehub.core.exceptions import InsufficientCreditsError, ServiceUnavailableError, ValidationError
from tradiehub.modules.credits.models import CreditTransaction, CreditTransactionType
from tradiehub.modules.credits.schemas import AutoTopupSettingsUpdate
from tradiehub.modules.credits.topup import CreditPurchaser


class FakePurchaser:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[tuple[uuid.UUID, Decimal, str]] = []

    async def purchase_credits(self, user_id: uuid.UUID, amount: Decimal, payment_method_ref: str) -> str:
        self.calls.append((user_id, amount, payment_method_ref))
        if self.fail:
            raise ServiceUnavailableError("payments", "Credit purchase failed")
        return f"txn_{len(self.calls)}"


async def journal(db_session, user_id: uuid.UUID) -> list[CreditTransaction]:
    result = await db_session.execute(
        select(CreditTransaction).where(CreditTransaction.user_id == user_id)
    )
    return list(result.scalars().all())


class TestBalance:
    """Balance and sufficiency tests."""

    @pytest.mark.asyncio
    async def test_balance_created_empty(self, ledger, tradie_id):
        balance = await ledger.get_balance(tradie_id)

        assert balance.current_balance == Decimal("0")
        assert balance.total_purchased == Decimal("0")
        assert balance.total_used == Decimal("0")

    @pytest.mark.asyncio
    async def test_sufficiency_without_balance_row(self, ledger, tradie_id):
        result = await ledger.check_sufficiency(tradie_id, Decimal("3.60"))

        assert result.sufficient is False
        assert result.shortfall == Decimal("3.60")

    @pytest.mark.asyncio
    async def test_sufficiency_reports_shortfall(self, ledger, funded, tradie_id):
        await funded(tradie_id, "5")

        result = await ledger.check_sufficiency(tradie_id, Decimal("6"))
        assert result.sufficient is False
        assert result.shortfall == Decimal("1")

        result = await ledger.check_sufficiency(tradie_id, Decimal("5"))
        assert result.sufficient is True
        assert result.shortfall == Decimal("0")


class TestDeductAndRefund:
    """Deduction and refund tests."""

    @pytest.mark.asyncio
    async def test_deduct_updates_balance_and_journal(self, ledger, funded, db_session, tradie_id):
        await funded(tradie_id, "10")

        remaining = await ledger.deduct(tradie_id, Decimal("3.60"), reference="application:abc")
        await db_session.commit()

        assert remaining == Decimal("6.40")
        balance = await ledger.get_balance(tradie_id)
        assert balance.total_used == Decimal("3.60")

        usage = [t for t in await journal(db_session, tradie_id) if t.transaction_type == "usage"]
        assert len(usage) == 1
        assert usage[0].amount == Decimal("3.60")
        assert usage[0].balance_after == Decimal("6.40")
        assert usage[0].reference == "application:abc"

    @pytest.mark.asyncio
    async def test_deduct_more_than_balance_changes_nothing(self, ledger, funded, db_session, tradie_id):
        await funded(tradie_id, "5")

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await ledger.deduct(tradie_id, Decimal("6"))

        assert exc_info.value.shortfall == Decimal("1")
        assert exc_info.value.status_code == 402
        await db_session.rollback()

        balance = await ledger.get_balance(tradie_id)
        assert balance.current_balance == Decimal("5")
        assert all(t.transaction_type != "usage" for t in await journal(db_session, tradie_id))

    @pytest.mark.asyncio
    async def test_deduct_exact_balance(self, ledger, funded, tradie_id):
        await funded(tradie_id, "6")
        assert await ledger.deduct(tradie_id, Decimal("6")) == Decimal("0")

    @pytest.mark.asyncio
    async def test_deduct_rejects_non_positive(self, ledger, tradie_id):
        with pytest.raises(ValidationError):
            await ledger.deduct(tradie_id, Decimal("0"))

    @pytest.mark.asyncio
    async def test_refund_restores_balance(self, ledger, funded, tradie_id):
        await funded(tradie_id, "10")
        await ledger.deduct(tradie_id, Decimal("4"))

        assert await ledger.refund(tradie_id, Decimal("4")) == Decimal("10")
        balance = await ledger.get_balance(tradie_id)
        assert balance.total_used == Decimal("0")

    @pytest.mark.asyncio
    async def test_balance_reconciles(self, ledger, funded, tradie_id):
        await funded(tradie_id, "20")
        await ledger.deduct(tradie_id, Decimal("3.60"))
        await ledger.deduct(tradie_id, Decimal("6"))
        await ledger.refund(tradie_id, Decimal("3.60"))

        balance = await ledger.get_balance(tradie_id)
        assert balance.current_balance == balance.total_purchased - balance.total_used
        assert balance.current_balance == Decimal("14")


class TestAddCredits:

    @pytest.mark.asyncio
    async def test_bonus_counts_as_purchased(self, ledger, tradie_id):
        balance = await ledger.add_credits(tradie_id, Decimal("15"), source=CreditTransactionType.BONUS)

        assert balance.current_balance == Decimal("15")
        assert balance.total_purchased == Decimal("15")

    @pytest.mark.asyncio
    async def test_usage_is_not_a_crediting_type(self, ledger, tradie_id):
        with pytest.raises(ValidationError):
            await ledger.add_credits(tradie_id, Decimal("5"), source=CreditTransactionType.USAGE)


class TestTrialCredits:

    @pytest.mark.asyncio
    async def test_awarded_once(self, ledger, db_session, tradie_id):
        balance, awarded = await ledger.award_trial(tradie_id)
        await db_session.commit()
        assert awarded is True
        assert balance.current_balance == Decimal("10")

        balance, awarded = await ledger.award_trial(tradie_id)
        assert awarded is False
        assert balance.current_balance == Decimal("10")

    @pytest.mark.asyncio
    async def test_awarded_even_if_balance_exists(self, ledger, funded, tradie_id):
        await funded(tradie_id, "5")

        balance, awarded = await ledger.award_trial(tradie_id)
        assert awarded is True
        assert balance.current_balance == Decimal("15")


class TestAutoTopup:
    """Auto-topup settings and execution tests."""

    async def _enable(self, ledger, db_session, user_id, trigger="5", credits="25"):
        await ledger.update_auto_topup_settings(
            user_id,
            AutoTopupSettingsUpdate(
                enabled=True,
                trigger_balance=Decimal(trigger),
                topup_credits=Decimal(credits),
                payment_method_ref="pm_visa",
            ),
        )
        await db_session.commit()

    @pytest.mark.asyncio
    async def test_defaults_disabled(self, ledger, tradie_id):
        topup = await ledger.get_auto_topup_settings(tradie_id)

        assert topup.enabled is False
        assert topup.trigger_balance == Decimal("5")
        assert topup.topup_credits == Decimal("25")

    @pytest.mark.asyncio
    async def test_enabling_requires_payment_method(self, ledger, tradie_id):
        with pytest.raises(ValidationError):
            await ledger.update_auto_topup_settings(tradie_id, AutoTopupSettingsUpdate(enabled=True))

    @pytest.mark.asyncio
    async def test_due_below_trigger_only(self, ledger, funded, db_session, tradie_id):
        await funded(tradie_id, "6")
        await self._enable(ledger, db_session, tradie_id)
        assert await ledger.is_auto_topup_due(tradie_id) is False

        await ledger.deduct(tradie_id, Decimal("2"))
        assert await ledger.is_auto_topup_due(tradie_id) is True

    @pytest.mark.asyncio
    async def test_execute_credits_purchase(self, ledger, funded, db_session, tradie_id):
        await funded(tradie_id, "1")
        await self._enable(ledger, db_session, tradie_id)
        purchaser = FakePurchaser()

        balance = await ledger.execute_auto_topup(tradie_id, purchaser)

        assert purchaser.calls == [(tradie_id, Decimal("25"), "pm_visa")]
        assert balance.current_balance == Decimal("26")
        # Cooldown blocks an immediate second run
        assert await ledger.execute_auto_topup(tradie_id, purchaser) is None

    @pytest.mark.asyncio
    async def test_disabled_after_repeated_failures(self, ledger, funded, db_session, clock, tradie_id):
        await funded(tradie_id, "1")
        await self._enable(ledger, db_session, tradie_id)
        purchaser = FakePurchaser(fail=True)

        for _ in range(3):
            assert await ledger.execute_auto_topup(tradie_id, purchaser) is None
            clock.advance(minutes=61)

        topup = await ledger.get_auto_topup_settings(tradie_id)
        assert topup.failure_count == 3
        assert topup.enabled is False
        assert len(purchaser.calls) == 3
        assert (await ledger.get_balance(tradie_id)).current_balance == Decimal("1")


class TestCreditPurchaser:
    """Payment client tests against a mocked transport."""

    @pytest.mark.asyncio
    async def test_returns_transaction_id(self, tradie_id):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/credit-purchases"
            assert request.headers["Authorization"] == "Bearer secret"
            return httpx.Response(201, json={"transaction_id": "pay_123"})

        purchaser = CreditPurchaser("http://payments", "secret", transport=httpx.MockTransport(handler))
        try:
            assert await purchaser.purchase_credits(tradie_id, Decimal("25"), "pm_visa") == "pay_123"
        finally:
            await purchaser.close()

    @pytest.mark.asyncio
    async def test_declined_purchase_raises(self, tradie_id):
        transport = httpx.MockTransport(lambda request: httpx.Response(402, json={"error": "declined"}))
        purchaser = CreditPurchaser("http://payments", "secret", transport=transport)
        try:
            with pytest.raises(ServiceUnavailableError):
                await purchaser.purchase_credits(tradie_id, Decimal("25"), "pm_visa")
        finally:
            await purchaser.close()
