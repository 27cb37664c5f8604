"""
Global Exception Handling
Domain exceptions and the FastAPI handlers that map them to HTTP.

Services raise these exceptions and never touch HTTP concepts; the
handlers below are the only place an error kind becomes a status code.

Error Response Format:
{
    "error": {
        "code": "ERROR_CODE",
        "message": "Human readable message",
        "details": {},
        "request_id": "uuid",
        "timestamp": "ISO8601"
    }
}
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse

from tradiehub.core.logging import get_logger

logger = get_logger(__name__)


def _get_request_id(request: Request) -> str:
    """Get or generate request ID for tracing."""
    return request.headers.get("X-Request-ID") or getattr(
        request.state, "request_id", str(uuid.uuid4())
    )


class TradieHubException(Exception):
    """Base exception for TradieHub."""

    def __init__(
        self,
        message: str = "An error occurred",
        code: str = "INTERNAL_ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(TradieHubException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            message=f"{resource} with identifier '{identifier}' not found",
            code="NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "identifier": str(identifier)},
        )


class UnauthorizedError(TradieHubException):
    """Authentication required."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message,
            code="UNAUTHORIZED",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class ForbiddenError(TradieHubException):
    """Caller lacks ownership of the entity or the required role."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(
            message=message,
            code="FORBIDDEN",
            status_code=status.HTTP_403_FORBIDDEN,
        )


class ConflictError(TradieHubException):
    """Resource conflict."""

    def __init__(self, message: str = "Resource conflict", code: str = "CONFLICT", details: dict | None = None):
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
        )


class DuplicateApplicationError(ConflictError):
    """Tradie already holds an active application for the job."""

    def __init__(self, marketplace_job_id: Any, tradie_id: Any):
        super().__init__(
            message="You have already applied to this job",
            code="DUPLICATE_APPLICATION",
            details={
                "marketplace_job_id": str(marketplace_job_id),
                "tradie_id": str(tradie_id),
            },
        )


class InvalidStateError(TradieHubException):
    """Operation is illegal for the entity's current state."""

    def __init__(
        self,
        message: str,
        code: str = "INVALID_STATE",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


class InvalidTransitionError(InvalidStateError):
    """Requested status change is not an edge of the state machine."""

    def __init__(self, machine: str, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            message=f"Invalid {machine} status transition from '{current}' to '{requested}'",
            code="INVALID_TRANSITION",
            details={"machine": machine, "current": current, "requested": requested},
        )


class InvalidSelectionError(InvalidStateError):
    """Selected application cannot be selected for this job."""

    def __init__(self, message: str, application_id: Any):
        super().__init__(
            message=message,
            code="INVALID_SELECTION",
            details={"application_id": str(application_id)},
        )


class InsufficientCreditsError(TradieHubException):
    """Balance is below the required credit amount."""

    def __init__(self, required: Decimal, available: Decimal):
        self.required = required
        self.available = available
        self.shortfall = required - available
        super().__init__(
            message=f"Insufficient credits. Required: {required}, Available: {available}",
            code="INSUFFICIENT_CREDITS",
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            details={
                "required": str(required),
                "available": str(available),
                "shortfall": str(self.shortfall),
            },
        )


class ValidationError(TradieHubException):
    """Input constraint violation with field-level detail."""

    def __init__(self, message: str, errors: list[dict[str, str]] | None = None):
        self.errors = errors or []
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"validation_errors": self.errors},
        )


class ServiceUnavailableError(TradieHubException):
    """External service unavailable."""

    def __init__(self, service: str, message: str = "Service temporarily unavailable"):
        super().__init__(
            message=f"{service}: {message}",
            code="SERVICE_UNAVAILABLE",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"service": service},
        )


def _build_error_response(
    code: str,
    message: str,
    status_code: int,
    request: Request,
    details: dict | None = None,
) -> ORJSONResponse:
    """Build standardized error response."""
    request_id = _get_request_id(request)
    timestamp = datetime.now(timezone.utc).isoformat()

    return ORJSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": details or {},
                "request_id": request_id,
                "timestamp": timestamp,
                "path": str(request.url.path),
                "method": request.method,
            }
        },
        headers={"X-Request-ID": request_id},
    )


async def tradiehub_exception_handler(request: Request, exc: TradieHubException) -> ORJSONResponse:
    """Handler for domain exceptions."""
    logger.warning(
        "Application error",
        error_code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        path=str(request.url.path),
        method=request.method,
    )

    if exc.status_code >= 500:
        from tradiehub.core.sentry import capture_exception
        capture_exception(exc)

    return _build_error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        request=request,
        details=exc.details,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> ORJSONResponse:
    """Handler for HTTPException."""
    code_map = {
        400: "BAD_REQUEST",
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        422: "VALIDATION_ERROR",
        429: "RATE_LIMIT_EXCEEDED",
        500: "INTERNAL_ERROR",
        503: "SERVICE_UNAVAILABLE",
    }

    error_code = code_map.get(exc.status_code, "HTTP_ERROR")

    logger.warning(
        "HTTP error",
        error_code=error_code,
        status_code=exc.status_code,
        detail=exc.detail,
        path=str(request.url.path),
    )

    return _build_error_response(
        code=error_code,
        message=str(exc.detail),
        status_code=exc.status_code,
        request=request,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    """Handler for request body/query validation errors."""
    errors = exc.errors()
    details = {
        "validation_errors": [
            {
                "field": ".".join(str(loc) for loc in err.get("loc", [])),
                "message": err.get("msg", "Invalid value"),
                "code": err.get("type", "value_error"),
            }
            for err in errors
        ]
    }

    logger.warning(
        "Request validation error",
        path=str(request.url.path),
        errors=len(errors),
    )

    return _build_error_response(
        code="VALIDATION_ERROR",
        message=f"Validation failed: {len(errors)} error(s)",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        request=request,
        details=details,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    """Handler for unhandled exceptions."""
    request_id = _get_request_id(request)

    logger.exception(
        "Unhandled exception",
        path=str(request.url.path),
        method=request.method,
        error_type=type(exc).__name__,
    )

    from tradiehub.core.sentry import capture_exception
    capture_exception(exc)

    return _build_error_response(
        code="INTERNAL_ERROR",
        message="An unexpected error occurred. Please try again later.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        request=request,
        details={"error_id": request_id},
    )
