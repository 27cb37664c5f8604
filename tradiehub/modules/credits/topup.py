"""
Credit Purchasing and Auto-topup Scheduling

CreditPurchaser talks to the payment service over HTTP. TopupScheduler
hands users whose balance fell below their trigger to the background
worker; it is invoked after commit and never blocks a deduction.
"""
import uuid
from decimal import Decimal
from typing import Protocol

import httpx

from tradiehub.core.config import settings
from tradiehub.core.exceptions import ServiceUnavailableError
from tradiehub.core.logging import get_logger

logger = get_logger(__name__)


class CreditPurchaser:
    """
    Payment service client.

    Usage:
        purchaser = CreditPurchaser()
        transaction_id = await purchaser.purchase_credits(user_id, Decimal("25"), "pm_123")
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.payments_api_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.payments_api_key
        self.timeout = timeout or settings.payments_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def purchase_credits(
        self,
        user_id: uuid.UUID,
        amount: Decimal,
        payment_method_ref: str,
    ) -> str:
        """
        Charge the stored payment method for `amount` credits.

        Returns:
            Payment transaction id

        Raises:
            ServiceUnavailableError: payment service unreachable or declined
        """
        client = await self._get_client()
        try:
            response = await client.post(
                "/v1/credit-purchases",
                json={
                    "user_id": str(user_id),
                    "credits": str(amount),
                    "payment_method_ref": payment_method_ref,
                },
            )
            response.raise_for_status()
            transaction_id = response.json()["transaction_id"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error("Credit purchase failed", user_id=str(user_id), error=str(e))
            raise ServiceUnavailableError("payments", "Credit purchase failed") from e

        logger.info("Credits purchased", user_id=str(user_id), amount=str(amount), transaction_id=transaction_id)
        return str(transaction_id)


class TopupScheduler(Protocol):
    def schedule(self, user_id: uuid.UUID) -> None:
        ...


class CeleryTopupScheduler:
    """Enqueue the auto-topup task on the Celery broker."""

    def schedule(self, user_id: uuid.UUID) -> None:
        from tradiehub.tasks.credits import run_auto_topup

        try:
            run_auto_topup.delay(str(user_id))
        except Exception:
            logger.exception("Auto-topup enqueue failed", user_id=str(user_id))
