"""
Analytics Aggregation Tests.
"""
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

from tradiehub.modules.analytics import (
    application_metrics,
    client_hiring_summary,
    hours_between,
    mean_of,
    percentage,
    quote_summary,
    running_mean,
    safe_ratio,
)

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def quote(status: str, total: str | None = None, sent_at=None, responded_at=None):
    return SimpleNamespace(
        status=status,
        total_amount=Decimal(total) if total is not None else None,
        sent_at=sent_at,
        responded_at=responded_at,
    )


def application(status: str, credits: str = "3.60", refunded: bool = False, custom_quote: str | None = None):
    return SimpleNamespace(
        status=status,
        credits_used=Decimal(credits),
        credits_refunded=refunded,
        custom_quote=Decimal(custom_quote) if custom_quote is not None else None,
    )


class TestHelpers:

    def test_safe_ratio_zero_denominator(self):
        assert safe_ratio(5, 0) == Decimal("0")

    def test_percentage(self):
        assert percentage(1, 3) == Decimal("33.33")
        assert percentage(0, 0) == Decimal("0.00")

    def test_mean_skips_none(self):
        assert mean_of([Decimal("10"), None, Decimal("20")]) == Decimal("15.00")

    def test_mean_of_nothing(self):
        assert mean_of([None, None]) is None
        assert mean_of([]) is None

    def test_running_mean(self):
        assert running_mean(None, 0, Decimal("100")) == Decimal("100.00")
        assert running_mean(Decimal("100"), 1, Decimal("200")) == Decimal("150.00")

    def test_hours_between_mixed_naive_and_aware(self):
        naive_start = T0.replace(tzinfo=None)
        assert hours_between(naive_start, T0 + timedelta(hours=2, minutes=30)) == Decimal("2.50")
        assert hours_between(None, T0) is None


class TestQuoteSummary:

    def test_no_quotes(self):
        summary = quote_summary([])

        assert summary.total_quotes == 0
        assert summary.acceptance_rate == Decimal("0.00")
        assert summary.average_quote_value is None
        assert summary.total_accepted_value == Decimal("0.00")

    def test_rollup(self):
        quotes = [
            quote("accepted", "110.00", T0, T0 + timedelta(hours=4)),
            quote("rejected", "220.00", T0, T0 + timedelta(hours=2)),
            quote("sent", "330.00", T0),
            quote("draft"),
        ]
        summary = quote_summary(quotes)

        assert summary.total_quotes == 4
        assert summary.accepted_quotes == 1
        assert summary.rejected_quotes == 1
        assert summary.pending_quotes == 2
        assert summary.acceptance_rate == Decimal("25.00")
        assert summary.average_quote_value == Decimal("220.00")
        assert summary.total_accepted_value == Decimal("110.00")
        assert summary.average_response_hours == Decimal("3.00")


class TestApplicationMetrics:

    def test_rollup(self):
        metrics = application_metrics([
            application("selected", custom_quote="500"),
            application("rejected", custom_quote="700"),
            application("withdrawn", refunded=True),
            application("submitted"),
        ])

        assert metrics.total_applications == 4
        assert metrics.status_distribution == {"selected": 1, "rejected": 1, "withdrawn": 1, "submitted": 1}
        assert metrics.conversion_rate == Decimal("25.00")
        assert metrics.average_quote == Decimal("600.00")
        assert metrics.credits_spent == Decimal("10.80")

    def test_empty(self):
        metrics = application_metrics([])
        assert metrics.conversion_rate == Decimal("0.00")
        assert metrics.average_quote is None


class TestClientHiringSummary:

    def test_rollup(self):
        job_a = SimpleNamespace(id=uuid.uuid4(), created_at=T0, application_count=3)
        job_b = SimpleNamespace(id=uuid.uuid4(), created_at=T0, application_count=1)
        assignment = SimpleNamespace(marketplace_job_id=job_a.id, assignment_timestamp=T0 + timedelta(hours=6))
        stray = SimpleNamespace(marketplace_job_id=uuid.uuid4(), assignment_timestamp=T0)

        summary = client_hiring_summary([job_a, job_b], [assignment, stray])

        assert summary.jobs_posted == 2
        assert summary.hires_made == 1
        assert summary.hire_rate == Decimal("50.00")
        assert summary.average_applications_per_job == Decimal("2.00")
        assert summary.average_hire_time_hours == Decimal("6.00")
