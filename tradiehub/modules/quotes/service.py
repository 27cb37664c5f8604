"""
Quotes Module - Service Layer

Quotes are created and updated with their items in one transaction and
the stored totals are always recomputed from the items.
"""
import secrets
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tradiehub.core.config import Settings, settings
from tradiehub.core.database import atomic
from tradiehub.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from tradiehub.core.logging import get_logger
from tradiehub.core.models import as_utc, utc_now
from tradiehub.modules.analytics import QuoteSummary, quote_summary
from tradiehub.modules.jobs.service import JobService
from tradiehub.modules.quotes.calculations import QuoteTotals, calculate_quote_totals, validate_quote_items
from tradiehub.modules.quotes.models import (
    OPEN_QUOTE_STATUSES,
    QUOTE_STATUS_MACHINE,
    Quote,
    QuoteItem,
    QuoteStatus,
)
from tradiehub.modules.quotes.schemas import QuoteCreate, QuoteItemInput, QuoteUpdate

logger = get_logger(__name__)

QUOTE_NUMBER_ATTEMPTS = 5

TRADIE_STATUSES = frozenset({QuoteStatus.SENT, QuoteStatus.CANCELLED})
CLIENT_STATUSES = frozenset({QuoteStatus.VIEWED, QuoteStatus.ACCEPTED, QuoteStatus.REJECTED})


def _is_quote_number_collision(exc: IntegrityError) -> bool:
    # PostgreSQL names the constraint (uq_quote_quote_number), SQLite names the column
    return "quote_number" in str(exc.orig)


class QuoteService:
    """Service for tradie quotes."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utc_now,
        app_settings: Settings = settings,
    ):
        self.db = db
        self.settings = app_settings
        self._clock = clock

    # ============== Calculation ==============

    def calculate(self, items: Sequence[QuoteItemInput], gst_enabled: bool) -> QuoteTotals:
        """Validate items and compute their totals."""
        errors = validate_quote_items(items, self.settings.max_items_per_quote)
        if errors:
            raise ValidationError("Invalid quote items", errors=errors)
        return calculate_quote_totals(items, gst_enabled, self.settings.gst_rate)

    def _build_items(self, items: Sequence[QuoteItemInput], totals: QuoteTotals) -> list[QuoteItem]:
        return [
            QuoteItem(
                item_type=item.item_type.value,
                description=item.description.strip(),
                quantity=item.quantity,
                unit=item.unit.strip(),
                unit_price=item.unit_price,
                total_price=item_total,
                sort_order=item.sort_order if item.sort_order is not None else index,
            )
            for index, (item, item_total) in enumerate(zip(items, totals.item_totals))
        ]

    def _generate_quote_number(self) -> str:
        """Prefix + last 4 digits of the epoch milliseconds + 3 random digits."""
        millis = int(self._clock().timestamp() * 1000)
        return f"{self.settings.quote_number_prefix}{millis % 10000:04d}{secrets.randbelow(1000):03d}"

    def _check_valid_until(self, valid_until: datetime, now: datetime) -> None:
        if as_utc(valid_until) <= now:
            raise ValidationError(
                "Quote validity must end in the future",
                errors=[{"field": "valid_until", "message": "must be in the future", "code": "value_error"}],
            )

    # ============== Loading ==============

    async def _find_quote(self, quote_id: uuid.UUID) -> Quote | None:
        result = await self.db.execute(
            select(Quote)
            .where(Quote.id == quote_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_quote(self, user_id: uuid.UUID, quote_id: uuid.UUID) -> Quote:
        """Get a quote visible to its tradie or its client."""
        quote = await self._find_quote(quote_id)
        if not quote:
            raise NotFoundError("Quote", quote_id)
        if user_id not in (quote.tradie_id, quote.client_id):
            raise ForbiddenError("Not your quote")
        return quote

    async def list_quotes(
        self,
        user_id: uuid.UUID,
        status: QuoteStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Quote], int]:
        """Quotes the caller issued or received, newest first."""
        visible = or_(Quote.tradie_id == user_id, Quote.client_id == user_id)
        query = select(Quote).where(visible)
        count_query = select(func.count(Quote.id)).where(visible)

        if status:
            query = query.where(Quote.status == status.value)
            count_query = count_query.where(Quote.status == status.value)

        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(Quote.created_at.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    # ============== Create / Update ==============

    async def create_quote(self, tradie_id: uuid.UUID, data: QuoteCreate) -> Quote:
        """
        Create a draft quote with its items.

        Raises:
            ValidationError: invalid items or validity date
            ConflictError: no free quote number after several attempts
        """
        now = self._clock()
        totals = self.calculate(data.items, data.gst_enabled)
        valid_until = data.valid_until or now + timedelta(days=self.settings.quote_valid_days)
        self._check_valid_until(valid_until, now)

        if data.job_id is not None:
            await JobService(self.db, clock=self._clock).get_job(tradie_id, data.job_id)

        for attempt in range(1, QUOTE_NUMBER_ATTEMPTS + 1):
            quote = Quote(
                tradie_id=tradie_id,
                client_id=data.client_id,
                job_id=data.job_id,
                quote_number=self._generate_quote_number(),
                title=data.title.strip(),
                description=data.description,
                notes=data.notes,
                status=QuoteStatus.DRAFT.value,
                subtotal=totals.subtotal,
                gst_enabled=data.gst_enabled,
                gst_amount=totals.gst_amount,
                total_amount=totals.total_amount,
                valid_until=valid_until,
                items=self._build_items(data.items, totals),
                created_at=now,
                updated_at=now,
            )
            try:
                async with atomic(self.db):
                    self.db.add(quote)
                    await self.db.flush()
            except IntegrityError as exc:
                if not _is_quote_number_collision(exc):
                    raise
                logger.warning("Quote number collision", attempt=attempt, tradie_id=str(tradie_id))
                continue

            logger.info(
                "Quote created",
                quote_id=str(quote.id),
                quote_number=quote.quote_number,
                tradie_id=str(tradie_id),
                total_amount=str(quote.total_amount),
            )
            return quote

        raise ConflictError("Could not allocate a quote number", code="QUOTE_NUMBER_CONFLICT")

    async def update_quote(self, tradie_id: uuid.UUID, quote_id: uuid.UUID, data: QuoteUpdate) -> Quote:
        """Edit a draft quote; new items replace the old ones and totals are recomputed."""
        async with atomic(self.db):
            quote = await self.get_quote(tradie_id, quote_id)
            if quote.tradie_id != tradie_id:
                raise ForbiddenError("Only the issuing tradie can edit a quote")
            if quote.status != QuoteStatus.DRAFT.value:
                raise InvalidStateError(
                    "Only draft quotes can be edited",
                    code="QUOTE_NOT_EDITABLE",
                    details={"quote_id": str(quote.id), "status": quote.status},
                )

            if data.title is not None:
                quote.title = data.title.strip()
            if data.description is not None:
                quote.description = data.description
            if data.notes is not None:
                quote.notes = data.notes
            if data.valid_until is not None:
                self._check_valid_until(data.valid_until, self._clock())
                quote.valid_until = data.valid_until
            if data.gst_enabled is not None:
                quote.gst_enabled = data.gst_enabled

            if data.items is not None:
                totals = self.calculate(data.items, quote.gst_enabled)
                quote.items = self._build_items(data.items, totals)
            else:
                totals = calculate_quote_totals(quote.items, quote.gst_enabled, self.settings.gst_rate)

            quote.subtotal = totals.subtotal
            quote.gst_amount = totals.gst_amount
            quote.total_amount = totals.total_amount
            await self.db.flush()

        logger.info("Quote updated", quote_id=str(quote_id), total_amount=str(totals.total_amount))
        return await self.get_quote(tradie_id, quote_id)

    # ============== Status ==============

    async def update_quote_status(self, user_id: uuid.UUID, quote_id: uuid.UUID, requested: QuoteStatus) -> Quote:
        """
        Move a quote along its status graph.

        The issuing tradie sends and cancels; the client views, accepts
        and rejects. Expiry only happens through the sweep.
        """
        async with atomic(self.db):
            quote = await self.get_quote(user_id, quote_id)
            now = self._clock()

            if requested in TRADIE_STATUSES and user_id != quote.tradie_id:
                raise ForbiddenError("Only the issuing tradie can change this status")
            if requested in CLIENT_STATUSES and user_id != quote.client_id:
                raise ForbiddenError("Only the client can change this status")
            if requested == QuoteStatus.EXPIRED:
                raise InvalidStateError("Quotes expire automatically", code="EXPIRY_IS_AUTOMATIC")

            new_status = QUOTE_STATUS_MACHINE.validate(quote.status, requested)
            if new_status in (QuoteStatus.SENT, QuoteStatus.ACCEPTED) and as_utc(quote.valid_until) <= now:
                raise InvalidStateError(
                    "Quote is past its validity date",
                    code="QUOTE_EXPIRED",
                    details={"quote_id": str(quote.id)},
                )

            values: dict[str, datetime | str] = {"status": new_status.value, "updated_at": now}
            if new_status == QuoteStatus.SENT:
                values["sent_at"] = now
            elif new_status == QuoteStatus.VIEWED:
                values["viewed_at"] = now
            elif new_status in (QuoteStatus.ACCEPTED, QuoteStatus.REJECTED):
                values["responded_at"] = now

            result = await self.db.execute(
                update(Quote)
                .where(Quote.id == quote.id, Quote.status == quote.status)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConflictError(
                    "Quote was modified concurrently",
                    code="QUOTE_CONFLICT",
                    details={"quote_id": str(quote.id)},
                )
            previous = quote.status

        logger.info("Quote status updated", quote_id=str(quote_id), previous=previous, status=new_status.value)
        return await self.get_quote(user_id, quote_id)

    async def expire_overdue_quotes(self) -> int:
        """Mark sent or viewed quotes past valid_until as expired."""
        now = self._clock()
        async with atomic(self.db):
            result = await self.db.execute(
                update(Quote)
                .where(Quote.status.in_(OPEN_QUOTE_STATUSES), Quote.valid_until < now)
                .values(status=QuoteStatus.EXPIRED.value, updated_at=now)
                .execution_options(synchronize_session=False)
            )
        expired = result.rowcount or 0
        logger.info("Quote expiry sweep finished", expired=expired)
        return expired

    # ============== Analytics ==============

    async def get_summary(self, user_id: uuid.UUID) -> QuoteSummary:
        result = await self.db.execute(
            select(Quote).where(or_(Quote.tradie_id == user_id, Quote.client_id == user_id))
        )
        return quote_summary(result.scalars().all())
