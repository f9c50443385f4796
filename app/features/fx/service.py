"""FX rate storage, lookup and conversion.

All pairs are computed through GBP: ``rate(from, to) = gbp_per(from) / gbp_per(to)``.
Lookups use the most recent row on or before the requested date so that a sale
on a weekend picks up Friday's rate.
"""

from __future__ import annotations

import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.logging import get_logger
from app.features.fx.models import FxAuditLog, FxRate
from app.features.fx.schemas import Currency, FxRates

logger = get_logger(__name__)

RATE_QUANTUM = Decimal("0.000001")
CENT = Decimal("0.01")

# Used when no rates are stored at all (pricing preview, fresh installs)
DEFAULT_FX_RATES: dict[tuple[str, str], float] = {
    ("GBP", "USD"): 1.27,
    ("USD", "GBP"): 0.79,
    ("GBP", "EUR"): 1.17,
    ("EUR", "GBP"): 0.85,
    ("USD", "EUR"): 0.92,
    ("EUR", "USD"): 1.09,
}


def default_fx_rates(user_currency: Currency = "GBP") -> FxRates:
    """Static rates for when the database has none.

    Args:
        user_currency: Currency to convert into.

    Returns:
        FxRates built from DEFAULT_FX_RATES.
    """

    def to_user(ccy: str) -> float:
        if ccy == user_currency:
            return 1.0
        return DEFAULT_FX_RATES[(ccy, user_currency)]

    return FxRates(
        gbp_to_user=to_user("GBP"),
        usd_to_user=to_user("USD"),
        eur_to_user=to_user("EUR"),
        user_currency=user_currency,
    )


def gbp_per_unit(currency: str, gbp_per_usd: Decimal, gbp_per_eur: Decimal) -> Decimal:
    """Pounds per one unit of ``currency``; unknown currencies count as 1."""
    if currency == "GBP":
        return Decimal(1)
    if currency == "USD":
        return gbp_per_usd
    if currency == "EUR":
        return gbp_per_eur
    return Decimal(1)


def cross_rate(
    from_currency: str,
    to_currency: str,
    gbp_per_usd: Decimal,
    gbp_per_eur: Decimal,
) -> Decimal:
    """Rate converting ``from_currency`` into ``to_currency`` via GBP."""
    if from_currency == to_currency:
        return Decimal(1)
    from_gbp = gbp_per_unit(from_currency, gbp_per_usd, gbp_per_eur)
    to_gbp = gbp_per_unit(to_currency, gbp_per_usd, gbp_per_eur)
    return (from_gbp / to_gbp).quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


async def get_rate_on_or_before(db: AsyncSession, day: datetime.date) -> FxRate | None:
    """Most recent stored rates with ``as_of <= day``."""
    stmt = select(FxRate).where(FxRate.as_of <= day).order_by(FxRate.as_of.desc()).limit(1)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def fx_rate_for(
    db: AsyncSession,
    day: datetime.date,
    from_currency: str,
    to_currency: str,
) -> Decimal:
    """Rate converting ``from_currency`` to ``to_currency`` on ``day``.

    Args:
        db: Async database session.
        day: Transaction date.
        from_currency: Source currency code.
        to_currency: Target currency code.

    Returns:
        Multiplier for from-currency amounts. 1 for identical currencies or
        when no rate on or before ``day`` exists.
    """
    if from_currency == to_currency:
        return Decimal(1)

    row = await get_rate_on_or_before(db, day)
    if row is None:
        logger.warning(
            "fx.rate_missing",
            date=day.isoformat(),
            from_currency=from_currency,
            to_currency=to_currency,
        )
        return Decimal(1)

    return cross_rate(from_currency, to_currency, row.gbp_per_usd, row.gbp_per_eur)


async def upsert_fx_rate(
    db: AsyncSession,
    as_of: datetime.date,
    gbp_per_usd: Decimal | None = None,
    gbp_per_eur: Decimal | None = None,
    source: str = "manual",
    meta: dict[str, Any] | None = None,
) -> FxRate:
    """Insert or update one day of rates.

    Missing values are taken from the row already stored for ``as_of``, then
    from the most recent earlier day, then from configured fallbacks.

    Args:
        db: Async database session.
        as_of: Rate date.
        gbp_per_usd: Pounds per dollar, if known.
        gbp_per_eur: Pounds per euro, if known.
        source: Rate provenance.
        meta: Free-form metadata.

    Returns:
        The stored FxRate row.
    """
    if gbp_per_usd is None or gbp_per_eur is None:
        # on-or-before covers both the same-day row and the previous day
        previous = await get_rate_on_or_before(db, as_of)
        settings = get_settings()
        if gbp_per_usd is None:
            gbp_per_usd = (
                previous.gbp_per_usd
                if previous is not None
                else Decimal(str(settings.fx_fallback_gbp_per_usd))
            )
        if gbp_per_eur is None:
            gbp_per_eur = (
                previous.gbp_per_eur
                if previous is not None
                else Decimal(str(settings.fx_fallback_gbp_per_eur))
            )

    values = {
        "as_of": as_of,
        "gbp_per_usd": gbp_per_usd,
        "gbp_per_eur": gbp_per_eur,
        "source": source,
        "meta": meta or {},
    }
    stmt = pg_insert(FxRate).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["as_of"],
        set_={
            "gbp_per_usd": stmt.excluded.gbp_per_usd,
            "gbp_per_eur": stmt.excluded.gbp_per_eur,
            "source": stmt.excluded.source,
            "meta": stmt.excluded.meta,
        },
    ).returning(FxRate)

    result = await db.execute(stmt, execution_options={"populate_existing": True})
    row = result.scalar_one()

    logger.info(
        "fx.rate_upserted",
        as_of=as_of.isoformat(),
        gbp_per_usd=str(gbp_per_usd),
        gbp_per_eur=str(gbp_per_eur),
        source=source,
    )
    return row


async def list_fx_rates(db: AsyncSession, limit: int = 30) -> list[FxRate]:
    """Most recent stored days, newest first."""
    stmt = select(FxRate).order_by(FxRate.as_of.desc()).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_fx_rates(
    db: AsyncSession,
    user_currency: Currency,
    day: datetime.date | None = None,
) -> FxRates:
    """Build pricing multipliers into ``user_currency`` from stored rates.

    Falls back to DEFAULT_FX_RATES when nothing is stored.
    """
    day = day or datetime.datetime.now(datetime.UTC).date()
    row = await get_rate_on_or_before(db, day)
    if row is None:
        return default_fx_rates(user_currency)

    def to_user(ccy: str) -> float:
        return float(cross_rate(ccy, user_currency, row.gbp_per_usd, row.gbp_per_eur))

    return FxRates(
        gbp_to_user=to_user("GBP"),
        usd_to_user=to_user("USD"),
        eur_to_user=to_user("EUR"),
        user_currency=user_currency,
        timestamp=datetime.datetime.combine(row.as_of, datetime.time(), tzinfo=datetime.UTC),
    )


async def record_fx_audit(
    db: AsyncSession,
    *,
    table_name: str,
    record_id: str,
    field_name: str,
    rate_date: datetime.date,
    from_currency: str,
    to_currency: str,
    rate: Decimal,
    original_amount: Decimal,
) -> FxAuditLog:
    """Persist which rate was applied to a stored amount."""
    entry = FxAuditLog(
        table_name=table_name,
        record_id=record_id,
        field_name=field_name,
        rate_date=rate_date,
        from_currency=from_currency,
        to_currency=to_currency,
        rate=rate,
        original_amount=original_amount,
        converted_amount=(original_amount * rate).quantize(CENT, rounding=ROUND_HALF_UP),
    )
    db.add(entry)
    await db.flush()
    return entry
