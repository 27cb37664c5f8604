"""
Application Credit Pricing

    cost = base_cost x urgency multiplier x job type multiplier

computed exactly in Decimal, then rounded up to the configured increment.
The multiplier tables are read-only data passed in through PricingTable.
"""
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal
from types import MappingProxyType

from tradiehub.core.config import Settings, settings
from tradiehub.core.exceptions import ValidationError
from tradiehub.modules.marketplace.models import JobType, UrgencyLevel

URGENCY_MULTIPLIERS: Mapping[UrgencyLevel, Decimal] = MappingProxyType({
    UrgencyLevel.LOW: Decimal("1.0"),
    UrgencyLevel.MEDIUM: Decimal("1.2"),
    UrgencyLevel.HIGH: Decimal("1.5"),
    UrgencyLevel.URGENT: Decimal("2.0"),
})

JOB_TYPE_MULTIPLIERS: Mapping[JobType, Decimal] = MappingProxyType({
    JobType.ELECTRICAL: Decimal("1.5"),
    JobType.PLUMBING: Decimal("1.5"),
    JobType.ROOFING: Decimal("1.3"),
    JobType.HVAC: Decimal("1.3"),
    JobType.CARPENTRY: Decimal("1.2"),
    JobType.PAINTING: Decimal("1.0"),
    JobType.LANDSCAPING: Decimal("1.0"),
    JobType.CLEANING: Decimal("0.8"),
    JobType.HANDYMAN: Decimal("1.0"),
    JobType.GENERAL: Decimal("1.0"),
})


@dataclass(frozen=True)
class PricingTable:
    base_cost: Decimal
    urgency_multipliers: Mapping[UrgencyLevel, Decimal]
    job_type_multipliers: Mapping[JobType, Decimal]
    rounding_increment: Decimal = Decimal("0.01")

    def __post_init__(self):
        # Freeze caller-supplied dicts too
        object.__setattr__(self, "urgency_multipliers", MappingProxyType(dict(self.urgency_multipliers)))
        object.__setattr__(self, "job_type_multipliers", MappingProxyType(dict(self.job_type_multipliers)))

        if self.base_cost <= 0 or self.rounding_increment <= 0:
            raise ValueError("base_cost and rounding_increment must be positive")
        for name, table in (("urgency", self.urgency_multipliers), ("job type", self.job_type_multipliers)):
            if any(multiplier <= 0 for multiplier in table.values()):
                raise ValueError(f"{name} multipliers must be positive")

    @classmethod
    def from_settings(cls, app_settings: Settings = settings) -> "PricingTable":
        return cls(
            base_cost=app_settings.base_application_cost,
            urgency_multipliers=URGENCY_MULTIPLIERS,
            job_type_multipliers=JOB_TYPE_MULTIPLIERS,
            rounding_increment=app_settings.credit_rounding_increment,
        )


@dataclass(frozen=True)
class CreditCost:
    base_cost: Decimal
    urgency_multiplier: Decimal
    job_type_multiplier: Decimal
    raw_cost: Decimal
    credits: Decimal


def round_up(value: Decimal, increment: Decimal) -> Decimal:
    """Smallest multiple of `increment` that is >= value."""
    steps = (value / increment).to_integral_value(rounding=ROUND_CEILING)
    return (steps * increment).quantize(increment)


def calculate_credit_cost(
    job_type: JobType | str,
    urgency_level: UrgencyLevel | str,
    table: PricingTable,
) -> CreditCost:
    """
    Credits a tradie spends to apply to a job.

    Raises:
        ValidationError: unknown job type or urgency level
    """
    errors = []
    try:
        job_type = JobType(job_type)
    except ValueError:
        errors.append({"field": "job_type", "message": f"unknown job type '{job_type}'", "code": "enum"})
    try:
        urgency_level = UrgencyLevel(urgency_level)
    except ValueError:
        errors.append({"field": "urgency_level", "message": f"unknown urgency '{urgency_level}'", "code": "enum"})
    if errors:
        raise ValidationError("Cannot price application", errors=errors)

    urgency_multiplier = table.urgency_multipliers[urgency_level]
    job_type_multiplier = table.job_type_multipliers[job_type]
    raw_cost = table.base_cost * urgency_multiplier * job_type_multiplier

    return CreditCost(
        base_cost=table.base_cost,
        urgency_multiplier=urgency_multiplier,
        job_type_multiplier=job_type_multiplier,
        raw_cost=raw_cost,
        credits=round_up(raw_cost, table.rounding_increment),
    )
