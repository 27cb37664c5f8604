"""
Structured Logging Configuration
structlog on top of stdlib logging: console output in development,
one JSON object per line everywhere else.
"""
import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from tradiehub.core.config import Settings, settings

NOISY_LOGGERS = ("uvicorn.access", "celery.worker.strategy", "redis", "httpx")


def _service_info(app_settings: Settings) -> Processor:
    """Stamp every event with the service identity."""

    def processor(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", "tradiehub")
        event_dict.setdefault("version", app_settings.app_version)
        return event_dict

    return processor


def configure_logging(app_settings: Settings | None = None) -> None:
    """Configure structured logging for the API process and Celery workers."""
    app_settings = app_settings or settings

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if app_settings.environment == "development":
        processors: list[Processor] = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
        ]
    else:
        processors = shared_processors + [
            _service_info(app_settings),
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if app_settings.debug else logging.INFO,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if app_settings.db_echo else logging.WARNING
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def bind_request_context(request_id: str, **kwargs: Any) -> None:
    """Bind request-scoped fields (request id, caller) to every log line of the request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **kwargs)


def bind_context(**kwargs: Any) -> None:
    """Bind extra context variables to the current logger context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all context variables."""
    structlog.contextvars.clear_contextvars()
