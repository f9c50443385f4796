"""API routes for market pricing.

These endpoints are pure calculations over the posted data plus stored FX rates;
they never call marketplaces.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging import get_logger
from app.features.fx.service import get_fx_rates
from app.features.pricing.aggregate import aggregate_prices
from app.features.pricing.archvd import calculate_archvd_price_with_fees
from app.features.pricing.fees import calculate_net_proceeds
from app.features.pricing.schemas import (
    AggregatedPrice,
    AggregateRequest,
    ArchvdPriceWithFees,
    ArchvdRequest,
    FeesRequest,
    PlatformNetProceeds,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.post(
    "/aggregate",
    response_model=AggregatedPrice | None,
    summary="Reconcile quotes from several providers into one price",
    description="""
Uses the category's trusted provider when it quoted (confidence `high`).
Otherwise returns the median of all quotes, with confidence `medium` when the
quotes agree within the configured variance threshold and `low` when they do not.

Returns `null` when no quote has a positive price.
""",
)
async def aggregate(
    request: AggregateRequest,
    db: AsyncSession = Depends(get_db),
) -> AggregatedPrice | None:
    fx_rates = await get_fx_rates(db, request.user_currency)
    return aggregate_prices(request.quotes, request.category, fx_rates)


@router.post(
    "/archvd",
    response_model=ArchvdPriceWithFees | None,
    summary="Compute the ARCHVD price with fees and profit",
)
async def archvd(
    request: ArchvdRequest,
    db: AsyncSession = Depends(get_db),
) -> ArchvdPriceWithFees | None:
    """Lowest ask across StockX and Alias, net proceeds per platform and profit."""
    fx_rates = await get_fx_rates(db, request.user_currency)
    result = calculate_archvd_price_with_fees(
        request.market, request.cost, fx_rates, request.fee_profile
    )
    logger.info(
        "pricing.archvd_calculated",
        style_id=request.market.style_id,
        size=request.market.size,
        source=result.source if result else None,
        confidence=result.confidence if result else None,
    )
    return result


@router.post(
    "/fees",
    response_model=PlatformNetProceeds,
    summary="Calculate fees and net proceeds for a sale",
)
async def fees(
    request: FeesRequest,
    db: AsyncSession = Depends(get_db),
) -> PlatformNetProceeds:
    fx_rates = await get_fx_rates(db, request.user_currency)
    return calculate_net_proceeds(
        request.gross_price,
        request.platform,
        fx_rates,
        request.fee_profile,
        request.gross_price_currency,
    )
