"""
Quotes Module - Database Models
Priced proposals from a tradie to a client, with their line items.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradiehub.core.models import Base
from tradiehub.core.state_machine import StateMachine


class QuoteStatus(str, Enum):
    """Quote status enumeration."""
    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class QuoteItemType(str, Enum):
    LABOUR = "labour"
    MATERIAL = "material"
    EQUIPMENT = "equipment"
    SUBCONTRACTOR = "subcontractor"
    PERMIT = "permit"
    TRAVEL = "travel"
    MARKUP = "markup"
    DISCOUNT = "discount"


QUOTE_STATUS_MACHINE: StateMachine[QuoteStatus] = StateMachine(
    "quote",
    {
        QuoteStatus.DRAFT: {QuoteStatus.SENT, QuoteStatus.CANCELLED},
        QuoteStatus.SENT: {
            QuoteStatus.VIEWED,
            QuoteStatus.ACCEPTED,
            QuoteStatus.REJECTED,
            QuoteStatus.EXPIRED,
            QuoteStatus.CANCELLED,
        },
        QuoteStatus.VIEWED: {
            QuoteStatus.ACCEPTED,
            QuoteStatus.REJECTED,
            QuoteStatus.EXPIRED,
            QuoteStatus.CANCELLED,
        },
        QuoteStatus.ACCEPTED: set(),
        QuoteStatus.REJECTED: set(),
        QuoteStatus.EXPIRED: set(),
        QuoteStatus.CANCELLED: set(),
    },
)

OPEN_QUOTE_STATUSES = (QuoteStatus.SENT.value, QuoteStatus.VIEWED.value)


class Quote(Base):
    """
    Quote model.
    total_amount = subtotal + gst_amount; subtotal is the sum of item totals.
    """
    __tablename__ = "quote"

    __table_args__ = (
        Index("ix_quote_tradie_status", "tradie_id", "status"),
        Index("ix_quote_client", "client_id"),
    )

    tradie_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    job_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("job.id", ondelete="SET NULL"),
        nullable=True,
    )

    quote_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=QuoteStatus.DRAFT.value,
        nullable=False,
    )

    # Amounts
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    gst_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    gst_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Lifecycle timestamps
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    viewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[list["QuoteItem"]] = relationship(
        "QuoteItem",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteItem.sort_order",
        lazy="selectin",
    )


class QuoteItem(Base):
    """Quote line; total_price = round(quantity x unit_price, 2)."""
    __tablename__ = "quote_item"

    quote_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("quote.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), default="each", nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    quote: Mapped["Quote"] = relationship("Quote", back_populates="items")
