"""
Credits Module - Database Models
Per-user credit balance, the transaction journal and auto-topup preferences.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, DateTime, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tradiehub.core.models import Base

CREDIT_AMOUNT = Numeric(12, 2)


class CreditTransactionType(str, Enum):
    """Credit journal entry type."""
    TRIAL = "trial"             # Registration seed
    PURCHASE = "purchase"       # Bought (manual or auto-topup)
    USAGE = "usage"             # Spent on a job application
    REFUND = "refund"           # Returned after withdrawal or cancellation
    BONUS = "bonus"             # Job completion reward
    ADJUSTMENT = "adjustment"   # Manual correction


class CreditBalance(Base):
    """
    Current spendable credits for one user.
    current_balance always equals total_purchased - total_used.
    """
    __tablename__ = "credit_balance"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        unique=True,
        nullable=False,
        index=True,
    )

    current_balance: Mapped[Decimal] = mapped_column(
        CREDIT_AMOUNT,
        default=Decimal("0"),
        nullable=False,
    )
    total_purchased: Mapped[Decimal] = mapped_column(
        CREDIT_AMOUNT,
        default=Decimal("0"),
        nullable=False,
    )
    total_used: Mapped[Decimal] = mapped_column(
        CREDIT_AMOUNT,
        default=Decimal("0"),
        nullable=False,
    )

    last_transaction_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )


class CreditTransaction(Base):
    """
    Credit journal.
    One row per balance change; amount is always positive, the type gives the sign.
    """
    __tablename__ = "credit_transaction"

    __table_args__ = (
        Index("ix_credit_transaction_user_created", "user_id", "created_at"),
        Index("ix_credit_transaction_reference", "reference"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)

    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)

    amount: Mapped[Decimal] = mapped_column(CREDIT_AMOUNT, nullable=False)

    # Balance after transaction
    balance_after: Mapped[Decimal] = mapped_column(CREDIT_AMOUNT, nullable=False)

    # Reference (application id, payment transaction id, ...)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class AutoTopupSettings(Base):
    """Automatic credit purchase when the balance drops below a trigger."""
    __tablename__ = "auto_topup_settings"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        unique=True,
        nullable=False,
    )

    enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    trigger_balance: Mapped[Decimal] = mapped_column(CREDIT_AMOUNT, nullable=False)
    topup_credits: Mapped[Decimal] = mapped_column(CREDIT_AMOUNT, nullable=False)

    # Opaque payment method handle owned by the payment service
    payment_method_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)

    failure_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_triggered_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
