"""
Analytics Module - Aggregations

Stateless functions over snapshots of records (ORM rows or any object
with the same attributes). Nothing here touches the database.
"""
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from tradiehub.core.models import as_utc

ZERO = Decimal("0")
CENT = Decimal("0.01")

PENDING_QUOTE_STATUSES = frozenset({"draft", "sent", "viewed"})


def _to_decimal(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _status(record: Any) -> str:
    status = record.status
    return getattr(status, "value", status)


def quantize(value: Decimal, places: Decimal = CENT) -> Decimal:
    return value.quantize(places, rounding=ROUND_HALF_UP)


def safe_ratio(numerator: Any, denominator: Any) -> Decimal:
    """numerator / denominator, or 0 when the denominator is 0."""
    denominator = _to_decimal(denominator)
    if denominator == ZERO:
        return ZERO
    return _to_decimal(numerator) / denominator


def percentage(part: Any, whole: Any) -> Decimal:
    """part / whole * 100 rounded to 2 places; 0 for an empty whole."""
    return quantize(safe_ratio(part, whole) * 100)


def mean_of(values: Iterable[Any]) -> Decimal | None:
    """Arithmetic mean over non-null values; None if there are none."""
    present = [_to_decimal(v) for v in values if v is not None]
    if not present:
        return None
    return quantize(sum(present, ZERO) / len(present))


def running_mean(current_mean: Any, count: int, new_value: Any) -> Decimal:
    """Fold one more value into a mean that already covers `count` values."""
    if count <= 0 or current_mean is None:
        return quantize(_to_decimal(new_value))
    total = _to_decimal(current_mean) * count + _to_decimal(new_value)
    return quantize(total / (count + 1))


def hours_between(start: datetime | None, end: datetime | None) -> Decimal | None:
    if start is None or end is None:
        return None
    start, end = as_utc(start), as_utc(end)
    return quantize(Decimal(str((end - start).total_seconds())) / 3600)


# ============== Quotes ==============

@dataclass(frozen=True)
class QuoteSummary:
    total_quotes: int
    accepted_quotes: int
    rejected_quotes: int
    pending_quotes: int
    acceptance_rate: Decimal
    average_quote_value: Decimal | None
    total_accepted_value: Decimal
    average_response_hours: Decimal | None


def quote_summary(quotes: Iterable[Any]) -> QuoteSummary:
    """
    Roll up quote records.

    acceptance_rate is a percentage of all quotes; averages skip quotes
    without a total or without a response.
    """
    quotes = list(quotes)
    statuses = Counter(_status(q) for q in quotes)
    accepted = [q for q in quotes if _status(q) == "accepted"]

    return QuoteSummary(
        total_quotes=len(quotes),
        accepted_quotes=statuses["accepted"],
        rejected_quotes=statuses["rejected"],
        pending_quotes=sum(statuses[s] for s in PENDING_QUOTE_STATUSES),
        acceptance_rate=percentage(statuses["accepted"], len(quotes)),
        average_quote_value=mean_of(q.total_amount for q in quotes),
        total_accepted_value=quantize(
            sum((_to_decimal(q.total_amount) for q in accepted if q.total_amount is not None), ZERO)
        ),
        average_response_hours=mean_of(
            hours_between(q.sent_at, q.responded_at) for q in quotes
        ),
    )


# ============== Applications ==============

@dataclass(frozen=True)
class ApplicationMetrics:
    total_applications: int
    status_distribution: dict[str, int] = field(default_factory=dict)
    conversion_rate: Decimal = ZERO
    average_quote: Decimal | None = None
    credits_spent: Decimal = ZERO


def application_metrics(applications: Iterable[Any]) -> ApplicationMetrics:
    """Conversion (selected / all) and spend over a tradie's applications."""
    applications = list(applications)
    distribution = Counter(_status(a) for a in applications)
    spent = sum(
        (_to_decimal(a.credits_used) for a in applications if not getattr(a, "credits_refunded", False)),
        ZERO,
    )
    return ApplicationMetrics(
        total_applications=len(applications),
        status_distribution=dict(distribution),
        conversion_rate=percentage(distribution["selected"], len(applications)),
        average_quote=mean_of(a.custom_quote for a in applications),
        credits_spent=quantize(spent),
    )


# ============== Clients ==============

@dataclass(frozen=True)
class ClientHiringSummary:
    jobs_posted: int
    hires_made: int
    hire_rate: Decimal
    average_applications_per_job: Decimal
    average_hire_time_hours: Decimal | None


def client_hiring_summary(jobs: Iterable[Any], assignments: Iterable[Any]) -> ClientHiringSummary:
    """
    Hiring rollup for one client.

    Hire time is measured from job creation to the assignment timestamp.
    """
    jobs = list(jobs)
    created = {job.id: job.created_at for job in jobs}
    assignments = [a for a in assignments if a.marketplace_job_id in created]

    return ClientHiringSummary(
        jobs_posted=len(jobs),
        hires_made=len(assignments),
        hire_rate=percentage(len(assignments), len(jobs)),
        average_applications_per_job=quantize(
            safe_ratio(sum(job.application_count for job in jobs), len(jobs))
        ),
        average_hire_time_hours=mean_of(
            hours_between(created[a.marketplace_job_id], a.assignment_timestamp) for a in assignments
        ),
    )
