"""RFC 7807 Problem Details for HTTP APIs.

Every error leaving the API is rendered as ``application/problem+json`` so that
dashboards and sync scripts can branch on ``type``/``code`` instead of parsing
free-text messages.

Reference: https://datatracker.ietf.org/doc/html/rfc7807
"""

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from app.core.logging import request_id_ctx

# =============================================================================
# Error Type URIs
# =============================================================================

ERROR_TYPE_BASE = "/errors"

ERROR_TYPES = {
    "NOT_FOUND": f"{ERROR_TYPE_BASE}/not-found",
    "VALIDATION_ERROR": f"{ERROR_TYPE_BASE}/validation",
    "DATABASE_ERROR": f"{ERROR_TYPE_BASE}/database",
    "CONFLICT": f"{ERROR_TYPE_BASE}/conflict",
    "UNAUTHORIZED": f"{ERROR_TYPE_BASE}/unauthorized",
    "FORBIDDEN": f"{ERROR_TYPE_BASE}/forbidden",
    "RATE_LIMITED": f"{ERROR_TYPE_BASE}/rate-limited",
    "INTERNAL_ERROR": f"{ERROR_TYPE_BASE}/internal",
    "BAD_REQUEST": f"{ERROR_TYPE_BASE}/bad-request",
    "UPSTREAM_ERROR": f"{ERROR_TYPE_BASE}/upstream",
    "NOT_IMPLEMENTED": f"{ERROR_TYPE_BASE}/not-implemented",
}


class ProblemDetail(BaseModel):
    """RFC 7807 problem document.

    Attributes:
        type: URI identifying the error type.
        title: Short human-readable summary of the problem type.
        status: HTTP status code.
        detail: Explanation specific to this occurrence.
        instance: URI reference for this occurrence.
        errors: Field-level validation errors (422 extension).
        code: Machine-readable error code.
        request_id: Request correlation ID.
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(
        default="about:blank",
        description="URI reference identifying the problem type.",
    )
    title: str = Field(..., description="Short summary of the problem type.")
    status: int = Field(..., ge=400, le=599, description="HTTP status code.")
    detail: str | None = Field(None, description="Explanation specific to this occurrence.")
    instance: str | None = Field(None, description="URI reference for this occurrence.")
    errors: list[dict[str, Any]] | None = Field(
        None,
        description="Field-level validation errors, present on 422 responses.",
    )
    code: str | None = Field(None, description="Machine-readable error code.")
    request_id: str | None = Field(None, description="Request correlation ID.")


class ProblemDetailResponse(JSONResponse):
    """JSON response with the RFC 7807 media type."""

    media_type = "application/problem+json"


def problem_response(
    status: int,
    title: str,
    detail: str | None = None,
    error_code: str = "INTERNAL_ERROR",
    errors: list[dict[str, Any]] | None = None,
    extensions: dict[str, Any] | None = None,
) -> ProblemDetailResponse:
    """Build a problem+json response bound to the current request ID.

    Args:
        status: HTTP status code.
        title: Short problem summary.
        detail: Explanation for this occurrence.
        error_code: Machine-readable code; also selects the type URI.
        errors: Field-level validation errors.
        extensions: Extra members such as ``provider`` or ``style_id``.
            Standard members always win over an extension of the same name.

    Returns:
        Response with problem+json content type.
    """
    request_id = request_id_ctx.get()
    standard = {
        "type": ERROR_TYPES.get(error_code, f"{ERROR_TYPE_BASE}/{error_code.lower()}"),
        "title": title,
        "status": status,
        "detail": detail,
        "instance": f"/requests/{request_id}" if request_id else None,
        "errors": errors,
        "code": error_code,
        "request_id": request_id,
    }
    problem = ProblemDetail(**{**(extensions or {}), **standard})
    return ProblemDetailResponse(
        status_code=status,
        content=jsonable_encoder(problem.model_dump(exclude_none=True)),
    )
