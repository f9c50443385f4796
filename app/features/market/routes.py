"""API routes for the style catalog and unified market data."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging import get_logger
from app.features.fx.schemas import Currency
from app.features.market import service
from app.features.market.schemas import (
    StyleCatalogResponse,
    StyleCatalogUpsert,
    UnifiedMarketResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/market", tags=["market"])


@router.get(
    "/{style_id}",
    response_model=UnifiedMarketResponse,
    summary="Get StockX and Alias market data for every size of a style",
    description="""
Returns one row per size with the latest stored StockX and Alias readings side
by side. Data comes from stored snapshots; use `POST /sync/styles/{style_id}` to
refresh it.

**Currencies:** StockX prices are in `currency` (defaults to the base currency).
Alias prices are always USD. Convert before comparing across providers.

**Ordering:** numeric sizes ascending, then non-numeric sizes such as `14W`.
""",
)
async def get_market(
    style_id: str,
    currency: Currency | None = Query(None, description="StockX quote currency"),
    db: AsyncSession = Depends(get_db),
) -> UnifiedMarketResponse:
    style, rows = await service.get_unified_market(db, style_id, stockx_currency=currency)
    return UnifiedMarketResponse(style=StyleCatalogResponse.model_validate(style), rows=rows)


@router.put(
    "/styles/{style_id}",
    response_model=StyleCatalogResponse,
    summary="Create or update a style",
)
async def put_style(
    style_id: str,
    payload: StyleCatalogUpsert,
    db: AsyncSession = Depends(get_db),
) -> StyleCatalogResponse:
    """Store a style and its marketplace ids. The style code is uppercased."""
    style = await service.upsert_style(db, style_id, payload)
    return StyleCatalogResponse.model_validate(style)
