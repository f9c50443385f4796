"""API routes for FX rates."""

import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging import get_logger
from app.features.fx import service
from app.features.fx.schemas import (
    Currency,
    FxConversionResponse,
    FxRateResponse,
    FxRateUpsert,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/fx", tags=["fx"])


@router.get(
    "/rate",
    response_model=FxConversionResponse,
    summary="Get the rate between two currencies on a date",
    description="""
Returns the multiplier converting `from_currency` amounts into `to_currency`,
using the most recent stored rates on or before `date`.

Same-currency pairs and dates before any stored rate return `1`.
""",
)
async def get_rate(
    date: datetime.date = Query(..., description="Transaction date (YYYY-MM-DD)"),
    from_currency: Currency = Query(..., description="Source currency"),
    to_currency: Currency = Query(..., description="Target currency"),
    db: AsyncSession = Depends(get_db),
) -> FxConversionResponse:
    rate = await service.fx_rate_for(db, date, from_currency, to_currency)
    return FxConversionResponse(
        date=date,
        from_currency=from_currency,
        to_currency=to_currency,
        rate=rate,
    )


@router.put(
    "/rates/{as_of}",
    response_model=FxRateResponse,
    summary="Store rates for a day",
)
async def put_rates(
    as_of: datetime.date,
    payload: FxRateUpsert,
    db: AsyncSession = Depends(get_db),
) -> FxRateResponse:
    """Insert or replace the rates for `as_of`; omitted values carry forward."""
    row = await service.upsert_fx_rate(
        db,
        as_of,
        gbp_per_usd=payload.gbp_per_usd,
        gbp_per_eur=payload.gbp_per_eur,
        source=payload.source,
        meta=payload.meta,
    )
    return FxRateResponse.model_validate(row)


@router.get(
    "/rates",
    response_model=list[FxRateResponse],
    summary="List recent rates",
)
async def list_rates(
    limit: int = Query(30, ge=1, le=365, description="Number of days to return"),
    db: AsyncSession = Depends(get_db),
) -> list[FxRateResponse]:
    rows = await service.list_fx_rates(db, limit=limit)
    return [FxRateResponse.model_validate(row) for row in rows]
