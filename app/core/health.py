"""Liveness and readiness endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db
from app.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Service health.

    ``providers`` reports whether credentials for each marketplace are set; it
    does not call the marketplaces.
    """

    status: Literal["ok", "unhealthy"]
    service: str
    environment: str
    database: Literal["connected", "disconnected"] | None = None
    providers: dict[str, bool] = Field(default_factory=dict)


def _configured_providers() -> dict[str, bool]:
    settings = get_settings()
    return {
        "stockx": bool(
            settings.stockx_access_token
            or (settings.stockx_client_id and settings.stockx_client_secret)
        ),
        "alias": bool(settings.alias_pat),
    }


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness probe; never touches the database."""
    settings = get_settings()
    return HealthResponse(status="ok", service=settings.app_name, environment=settings.app_env)


@router.get(
    "/health/ready",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse, "description": "Database unreachable"}},
)
async def readiness_check(
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> HealthResponse:
    """Readiness probe: runs ``SELECT 1`` and reports provider configuration.

    Returns 503 when the database cannot be reached.
    """
    settings = get_settings()
    providers = _configured_providers()

    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(
            "health.database_disconnected",
            error=str(e),
            error_type=type(e).__name__,
        )
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="unhealthy",
            service=settings.app_name,
            environment=settings.app_env,
            database="disconnected",
            providers=providers,
        )

    logger.debug("health.ready", providers=providers)
    return HealthResponse(
        status="ok",
        service=settings.app_name,
        environment=settings.app_env,
        database="connected",
        providers=providers,
    )
