"""
TradieHub Backend - Main Application Entry Point
Application Factory Pattern with ORJSONResponse as the default response class.
"""
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from tradiehub.core.config import settings
from tradiehub.core.database import close_db
from tradiehub.core.exceptions import (
    TradieHubException,
    generic_exception_handler,
    http_exception_handler,
    tradiehub_exception_handler,
    validation_exception_handler,
)
from tradiehub.core.logging import bind_request_context, clear_context, configure_logging, get_logger
from tradiehub.core.metrics import MetricsMiddleware
from tradiehub.core.sentry import init_sentry

# Configure logging on module load
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info(
        "Starting TradieHub Backend",
        environment=settings.environment,
        debug=settings.debug,
    )

    yield

    logger.info("Shutting down TradieHub Backend")
    await close_db()


TAGS_METADATA = [
    {
        "name": "marketplace",
        "description": "Job postings, credit-priced applications and tradie selection.",
    },
    {
        "name": "credits",
        "description": "Credit balances, journal and auto-topup settings.",
    },
    {
        "name": "quotes",
        "description": "Quotes with line items and GST totals.",
    },
    {
        "name": "jobs",
        "description": "Internal work orders opened for selected tradies.",
    },
    {
        "name": "health",
        "description": "Liveness check and Prometheus metrics.",
    },
]


def create_application() -> FastAPI:
    """
    Application factory function.
    Creates and configures the FastAPI application.
    """
    app = FastAPI(
        title="TradieHub API",
        summary="Tradie marketplace - jobs, applications, credits and quotes",
        version=settings.app_version,
        openapi_url="/openapi.json",
        openapi_tags=TAGS_METADATA,
        docs_url="/docs",
        redoc_url="/redoc",
        default_response_class=ORJSONResponse,
        debug=settings.debug,
        lifespan=lifespan,
    )

    init_sentry()

    # Register exception handlers
    app.add_exception_handler(TradieHubException, tradiehub_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    if settings.prometheus_enabled:
        app.add_middleware(MetricsMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        """Tag every log line of a request with its request id."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        bind_request_context(request_id, method=request.method, path=request.url.path)
        try:
            response = await call_next(request)
        finally:
            clear_context()
        response.headers["X-Request-ID"] = request_id
        return response

    # Include routers from modules
    _include_routers(app)

    @app.get("/health", tags=["health"], response_class=ORJSONResponse)
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "tradiehub-backend"}

    @app.get("/", tags=["root"], response_class=ORJSONResponse)
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {
            "service": "TradieHub Backend",
            "version": settings.app_version,
            "docs": "/docs" if settings.debug else "disabled",
        }

    return app


def _include_routers(app: FastAPI) -> None:
    """
    Include all module routers.
    Each module has its own router with its own prefix under /api/v1.
    """
    from tradiehub.core.metrics import router as metrics_router
    from tradiehub.modules.credits.router import router as credits_router
    from tradiehub.modules.jobs.router import router as jobs_router
    from tradiehub.modules.marketplace.router import router as marketplace_router
    from tradiehub.modules.quotes.router import router as quotes_router

    api_v1_prefix = settings.api_v1_str

    routers = [
        (marketplace_router, "marketplace"),
        (credits_router, "credits"),
        (quotes_router, "quotes"),
        (jobs_router, "jobs"),
    ]

    for router, _ in routers:
        app.include_router(router, prefix=api_v1_prefix)

    # Metrics router at root level (no prefix)
    if settings.prometheus_enabled:
        app.include_router(metrics_router)

    logger.info(
        "Routers registered",
        modules=[name for _, name in routers],
        api_prefix=api_v1_prefix,
    )


# Create application instance
app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tradiehub.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )
