from tradiehub.modules.analytics.service import (
    ApplicationMetrics,
    ClientHiringSummary,
    QuoteSummary,
    application_metrics,
    client_hiring_summary,
    hours_between,
    mean_of,
    percentage,
    quote_summary,
    running_mean,
    safe_ratio,
)

__all__ = [
    "ApplicationMetrics",
    "ClientHiringSummary",
    "QuoteSummary",
    "application_metrics",
    "client_hiring_summary",
    "hours_between",
    "mean_of",
    "percentage",
    "quote_summary",
    "running_mean",
    "safe_ratio",
]
