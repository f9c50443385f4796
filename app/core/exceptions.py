"""Application exceptions and FastAPI exception handlers.

Every handler renders RFC 7807 Problem Details.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError

from app.core.logging import get_logger
from app.core.problem_details import (
    ERROR_TYPES,
    ProblemDetailResponse,
    problem_response,
)

logger = get_logger(__name__)


# =============================================================================
# Exception Classes
# =============================================================================


class ResaleLedgerError(Exception):
    """Base exception for application errors.

    Each subclass maps to an RFC 7807 problem type URI and an HTTP status.
    """

    error_type_uri: str = ERROR_TYPES["INTERNAL_ERROR"]

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application error.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code.
            status_code: HTTP status code.
            details: Additional error context.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    @property
    def title(self) -> str:
        """RFC 7807 title - short summary of problem type."""
        return self.code.replace("_", " ").title()


class NotFoundError(ResaleLedgerError):
    """Requested resource (item, style, sale) does not exist."""

    error_type_uri: str = ERROR_TYPES["NOT_FOUND"]

    def __init__(
        self,
        message: str = "Resource not found",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code="NOT_FOUND", status_code=404, details=details)


class ValidationError(ResaleLedgerError):
    """Input failed domain validation."""

    error_type_uri: str = ERROR_TYPES["VALIDATION_ERROR"]

    def __init__(
        self,
        message: str = "Validation failed",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message, code="VALIDATION_ERROR", status_code=422, details=details
        )


class DatabaseError(ResaleLedgerError):
    """Database operation failed unexpectedly."""

    error_type_uri: str = ERROR_TYPES["DATABASE_ERROR"]

    def __init__(
        self,
        message: str = "Database operation failed",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message, code="DATABASE_ERROR", status_code=500, details=details
        )


class ConflictError(ResaleLedgerError):
    """Operation conflicts with existing state."""

    error_type_uri: str = ERROR_TYPES["CONFLICT"]

    def __init__(
        self,
        message: str = "Resource conflict",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code="CONFLICT", status_code=409, details=details)


class BadRequestError(ResaleLedgerError):
    """Request is malformed."""

    error_type_uri: str = ERROR_TYPES["BAD_REQUEST"]

    def __init__(
        self,
        message: str = "Bad request",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code="BAD_REQUEST", status_code=400, details=details)


class UnauthorizedError(ResaleLedgerError):
    """Caller could not be authenticated (e.g. bad webhook signature)."""

    error_type_uri: str = ERROR_TYPES["UNAUTHORIZED"]

    def __init__(
        self,
        message: str = "Unauthorized",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code="UNAUTHORIZED", status_code=401, details=details)


class ForbiddenError(ResaleLedgerError):
    """Caller does not own the resource."""

    error_type_uri: str = ERROR_TYPES["FORBIDDEN"]

    def __init__(
        self,
        message: str = "Forbidden",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code="FORBIDDEN", status_code=403, details=details)


class UpstreamServiceError(ResaleLedgerError):
    """A marketplace API (StockX, Alias) failed or rejected the call."""

    error_type_uri: str = ERROR_TYPES["UPSTREAM_ERROR"]

    def __init__(
        self,
        message: str = "Upstream service error",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message, code="UPSTREAM_ERROR", status_code=502, details=details
        )


# =============================================================================
# Exception Handlers (RFC 7807)
# =============================================================================


async def resale_ledger_exception_handler(
    _request: Request,
    exc: ResaleLedgerError,
) -> ProblemDetailResponse:
    """Handle ResaleLedgerError exceptions with RFC 7807 Problem Details.

    Args:
        _request: FastAPI request object.
        exc: The raised exception.

    Returns:
        RFC 7807 Problem Detail response.
    """
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "app.error_handled",
        error=exc.message,
        error_type=type(exc).__name__,
        error_code=exc.code,
        status_code=exc.status_code,
        details=exc.details,
    )

    return problem_response(
        status=exc.status_code,
        title=exc.title,
        detail=exc.message,
        error_code=exc.code,
        extensions=exc.details,
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> ProblemDetailResponse:
    """Convert request validation errors into a 422 with field-level ``errors``.

    Args:
        request: FastAPI request object.
        exc: Pydantic validation error.

    Returns:
        RFC 7807 Problem Detail response with field-level errors.
    """
    field_errors: list[dict[str, str]] = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field_path = ".".join(str(part) for part in loc if part != "body")
        field_errors.append(
            {
                "field": field_path,
                "message": str(error.get("msg", "Validation failed")),
                "type": str(error.get("type", "unknown")),
            }
        )

    logger.warning(
        "app.validation_error",
        error_count=len(field_errors),
        path=str(request.url.path),
        fields=[e["field"] for e in field_errors],
    )

    return problem_response(
        status=422,
        title="Validation Error",
        detail=f"Request validation failed with {len(field_errors)} error(s). "
        "Check the 'errors' field for details.",
        error_code="VALIDATION_ERROR",
        errors=field_errors,
    )


async def integrity_error_handler(
    request: Request,
    exc: IntegrityError,
) -> ProblemDetailResponse:
    """Render a constraint violation that escaped the service layer as 409.

    The constraint name is reported; the SQL and parameters are not.
    """
    # asyncpg raises the driver error as the cause of the DBAPI error
    constraint = getattr(getattr(exc.orig, "__cause__", None), "constraint_name", None)
    logger.warning(
        "app.integrity_error",
        path=str(request.url.path),
        constraint=constraint,
        error_type=type(exc.orig).__name__,
    )

    detail = "The request conflicts with existing data"
    if constraint:
        detail = f"{detail} (constraint {constraint})"
    return problem_response(
        status=409,
        title="Conflict",
        detail=detail,
        error_code="CONFLICT",
        extensions={"constraint": constraint},
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> ProblemDetailResponse:
    """Handle unexpected exceptions with a generic 500 problem.

    Args:
        request: FastAPI request object.
        exc: The raised exception.

    Returns:
        RFC 7807 Problem Detail response.
    """
    logger.error(
        "app.unhandled_error",
        error=str(exc),
        error_type=type(exc).__name__,
        path=str(request.url.path),
        exc_info=True,
    )

    return problem_response(
        status=500,
        title="Internal Server Error",
        detail="An unexpected error occurred. Please try again later or "
        "contact support with the request_id.",
        error_code="INTERNAL_ERROR",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.add_exception_handler(ResaleLedgerError, resale_ledger_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
