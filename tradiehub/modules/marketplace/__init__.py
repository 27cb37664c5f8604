"""
Marketplace Module - job postings, applications, selection and stats.
"""
from tradiehub.modules.marketplace.models import (
    APPLICATION_STATUS_MACHINE,
    MARKETPLACE_JOB_STATUS_MACHINE,
    ApplicationStatus,
    ClientMarketplaceStats,
    JobApplication,
    JobType,
    MarketplaceJob,
    MarketplaceJobAssignment,
    MarketplaceJobStatus,
    TradieMarketplaceStats,
    UrgencyLevel,
)
from tradiehub.modules.marketplace.pricing import PricingTable, calculate_credit_cost
from tradiehub.modules.marketplace.service import MarketplaceService

__all__ = [
    "APPLICATION_STATUS_MACHINE",
    "MARKETPLACE_JOB_STATUS_MACHINE",
    "ApplicationStatus",
    "ClientMarketplaceStats",
    "JobApplication",
    "JobType",
    "MarketplaceJob",
    "MarketplaceJobAssignment",
    "MarketplaceJobStatus",
    "TradieMarketplaceStats",
    "UrgencyLevel",
    "PricingTable",
    "calculate_credit_cost",
    "MarketplaceService",
]
