"""
Prometheus Metrics - Application Monitoring

Exposes metrics at /metrics endpoint for Prometheus scraping.
"""
import time
from decimal import Decimal

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response as StarletteResponse

from tradiehub.core.config import settings

# === Application Info ===
APP_INFO = Info("tradiehub_app", "TradieHub application info")
APP_INFO.info({
    "version": settings.app_version,
    "environment": settings.environment,
})

# === Request Metrics ===
REQUEST_COUNT = Counter(
    "tradiehub_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "tradiehub_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# === Business Metrics ===
APPLICATIONS_SUBMITTED = Counter(
    "tradiehub_applications_submitted_total",
    "Job applications submitted",
    ["job_type", "urgency_level"],
)

CREDITS_DEDUCTED = Counter(
    "tradiehub_credits_deducted_total",
    "Credits spent on applications",
)

TRADIES_SELECTED = Counter(
    "tradiehub_tradies_selected_total",
    "Tradies selected for marketplace jobs",
    ["job_type"],
)

JOBS_EXPIRED = Counter(
    "tradiehub_jobs_expired_total",
    "Marketplace jobs moved to expired by the sweep",
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect request metrics."""

    async def dispatch(self, request: Request, call_next) -> StarletteResponse:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        # Route template keeps label cardinality bounded (ids stay out)
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        REQUEST_COUNT.labels(
            method=method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()
        REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(duration)

        return response


# === Metrics Router ===
router = APIRouter(tags=["health"])


@router.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# === Helper Functions ===

def record_application(job_type: str, urgency_level: str, credits: Decimal) -> None:
    APPLICATIONS_SUBMITTED.labels(job_type=job_type, urgency_level=urgency_level).inc()
    CREDITS_DEDUCTED.inc(float(credits))


def record_selection(job_type: str) -> None:
    TRADIES_SELECTED.labels(job_type=job_type).inc()


def record_expired_jobs(count: int) -> None:
    if count:
        JOBS_EXPIRED.inc(count)
