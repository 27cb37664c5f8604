"""
Quote Service Tests.
"""
import re
import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from tradiehub.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    ValidationError,
)
from tradiehub.modules.jobs.schemas import JobCreate
from tradiehub.modules.jobs.service import JobService
from tradiehub.modules.quotes.models import QuoteItemType, QuoteStatus
from tradiehub.modules.quotes.schemas import QuoteCreate, QuoteItemInput, QuoteUpdate
from tradiehub.modules.quotes.service import QuoteService


@pytest.fixture
def quotes(db_session, clock, app_settings) -> QuoteService:
    return QuoteService(db_session, clock=clock, app_settings=app_settings)


@pytest.fixture
def quote_data(client_id):
    def _quote_data(**overrides) -> QuoteCreate:
        values = {
            "client_id": client_id,
            "title": "Switchboard upgrade",
            "items": [
                QuoteItemInput(
                    item_type=QuoteItemType.LABOUR,
                    description="Electrician",
                    quantity=Decimal("4"),
                    unit="hour",
                    unit_price=Decimal("95"),
                ),
                QuoteItemInput(
                    item_type=QuoteItemType.MATERIAL,
                    description="RCD",
                    quantity=Decimal("2"),
                    unit_price=Decimal("37.25"),
                ),
            ],
        }
        values.update(overrides)
        return QuoteCreate(**values)

    return _quote_data


class TestCreateQuote:
    """Quote creation tests."""

    @pytest.mark.asyncio
    async def test_create_draft(self, quotes, quote_data, clock, tradie_id):
        quote = await quotes.create_quote(tradie_id, quote_data())

        assert re.fullmatch(r"QT\d{7}", quote.quote_number)
        assert quote.status == QuoteStatus.DRAFT.value
        assert quote.subtotal == Decimal("454.50")
        assert quote.gst_amount == Decimal("45.45")
        assert quote.total_amount == Decimal("499.95")
        assert quote.valid_until == clock.now + timedelta(days=30)
        assert [item.total_price for item in quote.items] == [Decimal("380.00"), Decimal("74.50")]
        assert [item.sort_order for item in quote.items] == [0, 1]

    @pytest.mark.asyncio
    async def test_without_gst(self, quotes, quote_data, tradie_id):
        quote = await quotes.create_quote(tradie_id, quote_data(gst_enabled=False))

        assert quote.gst_amount == Decimal("0.00")
        assert quote.total_amount == quote.subtotal

    @pytest.mark.asyncio
    async def test_invalid_items(self, quotes, quote_data, tradie_id):
        bad = QuoteItemInput(
            item_type=QuoteItemType.LABOUR,
            description=" ",
            quantity=Decimal("0"),
            unit_price=Decimal("10"),
        )
        with pytest.raises(ValidationError) as exc_info:
            await quotes.create_quote(tradie_id, quote_data(items=[bad]))

        fields = {error["field"] for error in exc_info.value.errors}
        assert fields == {"items.0.description", "items.0.quantity"}

    @pytest.mark.asyncio
    async def test_past_validity_rejected(self, quotes, quote_data, clock, tradie_id):
        with pytest.raises(ValidationError):
            await quotes.create_quote(tradie_id, quote_data(valid_until=clock.now - timedelta(days=1)))

    @pytest.mark.asyncio
    async def test_linked_job_must_belong_to_tradie(self, quotes, quote_data, db_session, tradie_id):
        work_order = await JobService(db_session).create_job(uuid.uuid4(), JobCreate(title="Someone else's job"))
        await db_session.commit()

        with pytest.raises(ForbiddenError):
            await quotes.create_quote(tradie_id, quote_data(job_id=work_order.id))

    @pytest.mark.asyncio
    async def test_linked_job(self, quotes, quote_data, db_session, tradie_id):
        work_order = await JobService(db_session).create_job(tradie_id, JobCreate(title="Rewire kitchen"))
        await db_session.commit()

        quote = await quotes.create_quote(tradie_id, quote_data(job_id=work_order.id))
        assert quote.job_id == work_order.id

    @pytest.mark.asyncio
    async def test_number_collisions_give_up(self, quotes, quote_data, monkeypatch, tradie_id):
        monkeypatch.setattr(quotes, "_generate_quote_number", lambda: "QT0000001")
        await quotes.create_quote(tradie_id, quote_data())

        with pytest.raises(ConflictError) as exc_info:
            await quotes.create_quote(tradie_id, quote_data())
        assert exc_info.value.code == "QUOTE_NUMBER_CONFLICT"

    @pytest.mark.asyncio
    async def test_other_integrity_errors_not_retried(self, quotes, quote_data, db_session, monkeypatch, tradie_id):
        flushes = []

        async def failing_flush(*args, **kwargs):
            flushes.append(1)
            raise IntegrityError(
                "INSERT INTO quote_item", {}, Exception("NOT NULL constraint failed: quote_item.description"),
            )

        monkeypatch.setattr(db_session, "flush", failing_flush)

        with pytest.raises(IntegrityError):
            await quotes.create_quote(tradie_id, quote_data())
        assert len(flushes) == 1


class TestUpdateQuote:

    @pytest.mark.asyncio
    async def test_items_replaced_and_totals_recomputed(self, quotes, quote_data, tradie_id):
        quote = await quotes.create_quote(tradie_id, quote_data())

        updated = await quotes.update_quote(tradie_id, quote.id, QuoteUpdate(
            title="Switchboard only",
            items=[QuoteItemInput(
                item_type=QuoteItemType.LABOUR,
                description="Electrician",
                quantity=Decimal("2.5"),
                unit="hour",
                unit_price=Decimal("100"),
            )],
        ))

        assert updated.title == "Switchboard only"
        assert len(updated.items) == 1
        assert updated.subtotal == Decimal("250.00")
        assert updated.total_amount == Decimal("275.00")

    @pytest.mark.asyncio
    async def test_toggle_gst_recomputes(self, quotes, quote_data, tradie_id):
        quote = await quotes.create_quote(tradie_id, quote_data())

        updated = await quotes.update_quote(tradie_id, quote.id, QuoteUpdate(gst_enabled=False))
        assert updated.total_amount == Decimal("454.50")

    @pytest.mark.asyncio
    async def test_sent_quote_not_editable(self, quotes, quote_data, tradie_id):
        quote = await quotes.create_quote(tradie_id, quote_data())
        await quotes.update_quote_status(tradie_id, quote.id, QuoteStatus.SENT)

        with pytest.raises(InvalidStateError) as exc_info:
            await quotes.update_quote(tradie_id, quote.id, QuoteUpdate(title="Too late"))
        assert exc_info.value.code == "QUOTE_NOT_EDITABLE"

    @pytest.mark.asyncio
    async def test_client_cannot_edit(self, quotes, quote_data, client_id, tradie_id):
        quote = await quotes.create_quote(tradie_id, quote_data())

        with pytest.raises(ForbiddenError):
            await quotes.update_quote(client_id, quote.id, QuoteUpdate(title="Cheaper please"))


class TestQuoteStatus:
    """Status workflow and permission tests."""

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, quotes, quote_data, clock, client_id, tradie_id):
        quote = await quotes.create_quote(tradie_id, quote_data())

        sent = await quotes.update_quote_status(tradie_id, quote.id, QuoteStatus.SENT)
        assert sent.status == QuoteStatus.SENT.value
        assert sent.sent_at is not None

        clock.advance(hours=1)
        viewed = await quotes.update_quote_status(client_id, quote.id, QuoteStatus.VIEWED)
        assert viewed.viewed_at is not None

        accepted = await quotes.update_quote_status(client_id, quote.id, QuoteStatus.ACCEPTED)
        assert accepted.status == QuoteStatus.ACCEPTED.value
        assert accepted.responded_at is not None

        with pytest.raises(InvalidTransitionError):
            await quotes.update_quote_status(tradie_id, quote.id, QuoteStatus.CANCELLED)

    @pytest.mark.asyncio
    async def test_roles(self, quotes, quote_data, client_id, tradie_id):
        quote_id = (await quotes.create_quote(tradie_id, quote_data())).id

        with pytest.raises(ForbiddenError):
            await quotes.update_quote_status(client_id, quote_id, QuoteStatus.SENT)

        await quotes.update_quote_status(tradie_id, quote_id, QuoteStatus.SENT)
        with pytest.raises(ForbiddenError):
            await quotes.update_quote_status(tradie_id, quote_id, QuoteStatus.ACCEPTED)
        with pytest.raises(ForbiddenError):
            await quotes.get_quote(uuid.uuid4(), quote_id)

    @pytest.mark.asyncio
    async def test_expiry_is_automatic(self, quotes, quote_data, tradie_id):
        quote = await quotes.create_quote(tradie_id, quote_data())
        await quotes.update_quote_status(tradie_id, quote.id, QuoteStatus.SENT)

        with pytest.raises(InvalidStateError) as exc_info:
            await quotes.update_quote_status(tradie_id, quote.id, QuoteStatus.EXPIRED)
        assert exc_info.value.code == "EXPIRY_IS_AUTOMATIC"

    @pytest.mark.asyncio
    async def test_cannot_send_or_accept_after_validity(self, quotes, quote_data, clock, client_id, tradie_id):
        late_id = (await quotes.create_quote(tradie_id, quote_data(valid_until=clock.now + timedelta(days=1)))).id
        sent_id = (await quotes.create_quote(tradie_id, quote_data(valid_until=clock.now + timedelta(days=1)))).id
        await quotes.update_quote_status(tradie_id, sent_id, QuoteStatus.SENT)
        clock.advance(days=2)

        with pytest.raises(InvalidStateError) as exc_info:
            await quotes.update_quote_status(tradie_id, late_id, QuoteStatus.SENT)
        assert exc_info.value.code == "QUOTE_EXPIRED"

        with pytest.raises(InvalidStateError) as exc_info:
            await quotes.update_quote_status(client_id, sent_id, QuoteStatus.ACCEPTED)
        assert exc_info.value.code == "QUOTE_EXPIRED"


class TestExpirySweep:

    @pytest.mark.asyncio
    async def test_only_open_quotes_expire(self, quotes, quote_data, clock, tradie_id):
        draft = await quotes.create_quote(tradie_id, quote_data())
        sent = await quotes.create_quote(tradie_id, quote_data())
        await quotes.update_quote_status(tradie_id, sent.id, QuoteStatus.SENT)
        clock.advance(days=31)

        assert await quotes.expire_overdue_quotes() == 1
        assert await quotes.expire_overdue_quotes() == 0

        assert (await quotes.get_quote(tradie_id, sent.id)).status == QuoteStatus.EXPIRED.value
        assert (await quotes.get_quote(tradie_id, draft.id)).status == QuoteStatus.DRAFT.value


class TestListAndSummary:

    @pytest.mark.asyncio
    async def test_listing_and_summary(self, quotes, quote_data, clock, client_id, tradie_id):
        accepted = await quotes.create_quote(tradie_id, quote_data())
        clock.advance(minutes=5)
        await quotes.create_quote(tradie_id, quote_data())

        await quotes.update_quote_status(tradie_id, accepted.id, QuoteStatus.SENT)
        clock.advance(hours=2)
        await quotes.update_quote_status(client_id, accepted.id, QuoteStatus.ACCEPTED)

        listed, total = await quotes.list_quotes(client_id)
        assert total == 2
        assert listed[-1].id == accepted.id

        drafts, total = await quotes.list_quotes(tradie_id, QuoteStatus.DRAFT)
        assert total == 1

        summary = await quotes.get_summary(tradie_id)
        assert summary.total_quotes == 2
        assert summary.accepted_quotes == 1
        assert summary.pending_quotes == 1
        assert summary.acceptance_rate == Decimal("50.00")
        assert summary.total_accepted_value == Decimal("499.95")
        assert summary.average_response_hours == Decimal("2.00")
