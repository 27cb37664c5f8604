"""
Sentry Integration - Error Tracking

Only unexpected failures (5xx) are reported; expected domain errors
are filtered in before_send.
"""
import sentry_sdk
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.redis import RedisIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from tradiehub.core.config import settings
from tradiehub.core.logging import get_logger

logger = get_logger(__name__)

SENSITIVE_HEADERS = ("authorization", "cookie", "x-api-key")


def init_sentry() -> None:
    """Initialize Sentry SDK when a DSN is configured."""
    if not settings.sentry_dsn:
        logger.info("Sentry DSN not configured, skipping initialization")
        return

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"tradiehub@{settings.app_version}",
        traces_sample_rate=settings.sentry_traces_sample_rate,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            RedisIntegration(),
            CeleryIntegration(),
        ],
        send_default_pii=False,
        before_send=_before_send,
    )

    logger.info("Sentry initialized", environment=settings.environment)


def _before_send(event, hint):
    """Drop client errors and scrub credentials before an event leaves the process."""
    exc_info = hint.get("exc_info")
    if exc_info:
        _, exc_value, _ = exc_info
        status_code = getattr(exc_value, "status_code", None)
        if status_code is not None and 400 <= status_code < 500:
            return None

    headers = event.get("request", {}).get("headers")
    if headers:
        for header in SENSITIVE_HEADERS:
            if header in headers:
                headers[header] = "[FILTERED]"

    return event


def capture_exception(exc: BaseException) -> None:
    """Report an exception; a no-op when Sentry was never initialized."""
    sentry_sdk.capture_exception(exc)
