"""
Credit Cost Tests.
"""
from decimal import Decimal

import pytest

from tradiehub.core.config import Settings
from tradiehub.core.exceptions import ValidationError
from tradiehub.modules.marketplace.models import JobType, UrgencyLevel
from tradiehub.modules.marketplace.pricing import (
    JOB_TYPE_MULTIPLIERS,
    URGENCY_MULTIPLIERS,
    PricingTable,
    calculate_credit_cost,
    round_up,
)


@pytest.fixture
def table() -> PricingTable:
    return PricingTable.from_settings(Settings(_env_file=None))


class TestCalculateCreditCost:
    """calculate_credit_cost tests."""

    def test_multiplies_base_urgency_and_job_type(self, table):
        cost = calculate_credit_cost(JobType.ELECTRICAL, UrgencyLevel.URGENT, table)

        assert cost.base_cost == Decimal("2")
        assert cost.urgency_multiplier == Decimal("2.0")
        assert cost.job_type_multiplier == Decimal("1.5")
        assert cost.credits == Decimal("6.00")

    def test_accepts_plain_strings(self, table):
        cost = calculate_credit_cost("cleaning", "low", table)
        assert cost.credits == Decimal("1.60")

    def test_electrical_medium(self, table):
        assert calculate_credit_cost(JobType.ELECTRICAL, UrgencyLevel.MEDIUM, table).credits == Decimal("3.60")

    def test_every_combination_is_positive_and_rounded(self, table):
        for job_type in JobType:
            for urgency in UrgencyLevel:
                cost = calculate_credit_cost(job_type, urgency, table)
                assert cost.credits > 0
                assert cost.credits >= cost.raw_cost
                assert cost.credits == cost.credits.quantize(Decimal("0.01"))

    def test_same_inputs_same_cost(self, table):
        first = calculate_credit_cost(JobType.ROOFING, UrgencyLevel.HIGH, table)
        second = calculate_credit_cost(JobType.ROOFING, UrgencyLevel.HIGH, table)
        assert first == second

    def test_rounds_up_to_increment(self):
        table = PricingTable(
            base_cost=Decimal("1"),
            urgency_multipliers=URGENCY_MULTIPLIERS,
            job_type_multipliers=JOB_TYPE_MULTIPLIERS,
            rounding_increment=Decimal("1"),
        )
        # 1 x 1.2 x 1.5 = 1.8 -> 2
        cost = calculate_credit_cost(JobType.PLUMBING, UrgencyLevel.MEDIUM, table)
        assert cost.raw_cost == Decimal("1.80")
        assert cost.credits == Decimal("2")

    def test_unknown_job_type_rejected(self, table):
        with pytest.raises(ValidationError) as exc_info:
            calculate_credit_cost("demolition", UrgencyLevel.LOW, table)
        assert exc_info.value.errors[0]["field"] == "job_type"

    def test_unknown_urgency_and_job_type_both_reported(self, table):
        with pytest.raises(ValidationError) as exc_info:
            calculate_credit_cost("demolition", "whenever", table)
        assert {e["field"] for e in exc_info.value.errors} == {"job_type", "urgency_level"}


class TestPricingTable:
    """PricingTable tests."""

    def test_tables_are_read_only(self, table):
        with pytest.raises(TypeError):
            table.urgency_multipliers[UrgencyLevel.LOW] = Decimal("5")

    def test_caller_dict_is_copied(self):
        multipliers = dict(URGENCY_MULTIPLIERS)
        table = PricingTable(Decimal("2"), multipliers, JOB_TYPE_MULTIPLIERS)
        multipliers[UrgencyLevel.LOW] = Decimal("9")
        assert table.urgency_multipliers[UrgencyLevel.LOW] == Decimal("1.0")

    def test_rejects_non_positive_base_cost(self):
        with pytest.raises(ValueError):
            PricingTable(Decimal("0"), URGENCY_MULTIPLIERS, JOB_TYPE_MULTIPLIERS)

    def test_rejects_non_positive_multiplier(self):
        with pytest.raises(ValueError):
            PricingTable(
                Decimal("2"),
                {**URGENCY_MULTIPLIERS, UrgencyLevel.LOW: Decimal("0")},
                JOB_TYPE_MULTIPLIERS,
            )

    def test_from_settings_uses_configured_base_cost(self):
        table = PricingTable.from_settings(Settings(_env_file=None, base_application_cost=Decimal("5")))
        assert calculate_credit_cost(JobType.GENERAL, UrgencyLevel.LOW, table).credits == Decimal("5.00")


class TestRoundUp:

    def test_exact_multiple_unchanged(self):
        assert round_up(Decimal("3.60"), Decimal("0.01")) == Decimal("3.60")

    def test_fraction_rounds_up(self):
        assert round_up(Decimal("3.601"), Decimal("0.01")) == Decimal("3.61")
        assert round_up(Decimal("0.2"), Decimal("0.5")) == Decimal("0.5")
