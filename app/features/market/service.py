"""Style catalog, market snapshots and provider market sync.

Snapshots keep one row per (provider, style, size, currency). A reading only
replaces the stored row when it is newer, so a slow worker cannot overwrite
fresher data.
"""

from __future__ import annotations

import datetime
import math
from collections.abc import Iterable, Sequence
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import exists, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.features.alias.client import AliasClient, get_alias_client
from app.features.market.models import MarketSnapshot, StyleCatalog
from app.features.market.schemas import (
    MarketSnapshotIn,
    Provider,
    StyleCatalogUpsert,
    StyleSyncResult,
    UnifiedMarketRow,
)
from app.features.pricing.schemas import ProviderMarketData
from app.features.sku.normalize import compact_sku
from app.features.sku.sizes import convert_to_uk, format_size_number
from app.features.stockx.client import StockxClient, get_stockx_client

logger = get_logger(__name__)

ALIAS_CURRENCY = "USD"
ALIAS_NEW_CONDITION = "PRODUCT_CONDITION_NEW"
ALIAS_GOOD_PACKAGING = "PACKAGING_CONDITION_GOOD_CONDITION"
CENTS = Decimal(100)
STYLE_METADATA_FIELDS = ("brand", "name", "colorway", "category")


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def normalize_style_id(style_id: str) -> str:
    """Uppercase and trim a style code."""
    return style_id.strip().upper()


# =============================================================================
# Style catalog
# =============================================================================


async def get_style(db: AsyncSession, style_id: str) -> StyleCatalog | None:
    return await db.get(StyleCatalog, normalize_style_id(style_id))


async def upsert_style(
    db: AsyncSession, style_id: str, payload: StyleCatalogUpsert
) -> StyleCatalog:
    """Create a style or update the fields present in ``payload``."""
    values = payload.model_dump(exclude_unset=True)
    stmt = pg_insert(StyleCatalog).values(style_id=normalize_style_id(style_id), **values)
    set_: dict[str, Any] = {key: stmt.excluded[key] for key in values}
    set_["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(index_elements=["style_id"], set_=set_).returning(
        StyleCatalog
    )

    result = await db.execute(stmt, execution_options={"populate_existing": True})
    style = result.scalar_one()
    logger.info("market.style_upserted", style_id=style.style_id, fields=sorted(values))
    return style


async def backfill_style_metadata(
    db: AsyncSession, style: StyleCatalog, metadata: dict[str, str | None]
) -> list[str]:
    """Fill empty style fields from provider metadata.

    Fields that already hold a value are never overwritten.

    Returns:
        Names of the fields that were filled.
    """
    filled: list[str] = []
    for field in STYLE_METADATA_FIELDS:
        value = metadata.get(field)
        if value and not getattr(style, field):
            setattr(style, field, value)
            filled.append(field)
    if filled:
        await db.flush()
        logger.info("market.style_backfilled", style_id=style.style_id, fields=filled)
    return filled


# =============================================================================
# Snapshots
# =============================================================================


async def upsert_market_snapshot(db: AsyncSession, snapshot: MarketSnapshotIn) -> bool:
    """Store a reading unless the stored one is at least as recent.

    Args:
        db: Async database session.
        snapshot: Provider reading.

    Returns:
        True when a row was inserted or replaced, False when skipped as stale.
    """
    values = snapshot.model_dump()
    values["style_id"] = normalize_style_id(snapshot.style_id)
    stmt = pg_insert(MarketSnapshot).values(**values)
    stmt = stmt.on_conflict_do_update(
        constraint="uq_market_snapshots_key",
        set_={
            "size_uk": stmt.excluded.size_uk,
            "lowest_ask": stmt.excluded.lowest_ask,
            "highest_bid": stmt.excluded.highest_bid,
            "last_sale": stmt.excluded.last_sale,
            "sales_72h": stmt.excluded.sales_72h,
            "sales_30d": stmt.excluded.sales_30d,
            "as_of": stmt.excluded.as_of,
            "meta": stmt.excluded.meta,
            "updated_at": func.now(),
        },
        where=MarketSnapshot.as_of < stmt.excluded.as_of,
    ).returning(MarketSnapshot.id)

    result = await db.execute(stmt)
    written = result.scalar_one_or_none() is not None
    if not written:
        logger.debug(
            "market.snapshot_stale",
            provider=snapshot.provider,
            style_id=values["style_id"],
            size=snapshot.size,
        )
    return written


async def get_latest_snapshots(
    db: AsyncSession,
    style_id: str,
    provider: Provider | None = None,
    currency: str | None = None,
) -> list[MarketSnapshot]:
    """Stored snapshots for a style, optionally narrowed by provider and currency."""
    stmt = select(MarketSnapshot).where(MarketSnapshot.style_id == normalize_style_id(style_id))
    if provider is not None:
        stmt = stmt.where(MarketSnapshot.provider == provider)
    if currency is not None:
        stmt = stmt.where(MarketSnapshot.currency == currency)
    result = await db.execute(stmt.order_by(MarketSnapshot.size))
    return list(result.scalars().all())


async def has_snapshots(db: AsyncSession, style_id: str, provider: Provider) -> bool:
    """Whether any market data was stored for this style and provider."""
    stmt = select(
        exists().where(
            MarketSnapshot.style_id == normalize_style_id(style_id),
            MarketSnapshot.provider == provider,
        )
    )
    result = await db.execute(stmt)
    return bool(result.scalar())


# =============================================================================
# Unified view
# =============================================================================


def size_numeric(size: str) -> float | None:
    try:
        value = float(size)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def size_key(size: str) -> str:
    """Join key for sizes: "10.0" and "10" are the same size."""
    numeric = size_numeric(size)
    if numeric is None:
        return size.strip().upper()
    return format_size_number(numeric)


def _as_float(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def _provider_data(row: MarketSnapshot) -> ProviderMarketData:
    return ProviderMarketData(
        lowest_ask=_as_float(row.lowest_ask),
        highest_bid=_as_float(row.highest_bid),
        currency=row.currency,  # type: ignore[arg-type]
        updated_at=row.as_of,
        status="available" if row.lowest_ask is not None else "no_listing",
        last_sale_price=_as_float(row.last_sale),
        sales_last_72h=row.sales_72h,
        sales_last_30d=row.sales_30d,
    )


def _sort_key(row: UnifiedMarketRow) -> tuple[int, float, str]:
    if row.size_numeric is None:
        return (1, 0.0, row.size)
    return (0, row.size_numeric, "")


def build_unified_market(
    stockx_rows: Iterable[MarketSnapshot],
    alias_rows: Iterable[MarketSnapshot],
) -> list[UnifiedMarketRow]:
    """Merge StockX and Alias snapshots into one row per size.

    Alias rows with no ask, bid or last sale are dropped. Rows are ordered by
    numeric size, with non-numeric sizes ("14W", "OS") last.

    Args:
        stockx_rows: StockX snapshots for one style and currency.
        alias_rows: Alias snapshots for the same style.

    Returns:
        Merged rows, one per size.
    """
    merged: dict[str, UnifiedMarketRow] = {}

    def row_for(snapshot: MarketSnapshot) -> UnifiedMarketRow:
        key = size_key(snapshot.size)
        if key not in merged:
            merged[key] = UnifiedMarketRow(
                size=snapshot.size,
                size_uk=snapshot.size_uk,
                size_numeric=size_numeric(snapshot.size),
                has_stockx=False,
                has_alias=False,
            )
        return merged[key]

    for snapshot in stockx_rows:
        row = row_for(snapshot)
        row.stockx = _provider_data(snapshot)
        row.has_stockx = True

    for snapshot in alias_rows:
        if snapshot.lowest_ask is None and snapshot.highest_bid is None and (
            snapshot.last_sale is None
        ):
            continue
        row = row_for(snapshot)
        row.alias = _provider_data(snapshot)
        row.has_alias = True

    return sorted(merged.values(), key=_sort_key)


async def get_unified_market(
    db: AsyncSession, style_id: str, stockx_currency: str | None = None
) -> tuple[StyleCatalog, list[UnifiedMarketRow]]:
    """Load a style and its unified market rows.

    Raises:
        NotFoundError: If the style is not in the catalog.
    """
    style = await get_style(db, style_id)
    if style is None:
        raise NotFoundError(
            f"Style not found: {normalize_style_id(style_id)}",
            details={"style_id": normalize_style_id(style_id)},
        )
    currency = stockx_currency or get_settings().base_currency
    stockx_rows = await get_latest_snapshots(db, style.style_id, "stockx", currency)
    alias_rows = await get_latest_snapshots(db, style.style_id, "alias")
    return style, build_unified_market(stockx_rows, alias_rows)


# =============================================================================
# Provider sync
# =============================================================================


def parse_price(value: Any) -> Decimal | None:
    """Provider price string to Decimal; empty, zero and junk become None."""
    if value is None or value == "":
        return None
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        return None
    return price if price > 0 else None


def parse_cents(value: Any) -> Decimal | None:
    """Alias cents string ("12500") to major units (125.00)."""
    cents = parse_price(value)
    return (cents / CENTS).quantize(Decimal("0.01")) if cents is not None else None


def _parse_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _pick_stockx_product(
    products: Sequence[dict[str, Any]], style_id: str
) -> dict[str, Any] | None:
    target = compact_sku(style_id)
    for product in products:
        if compact_sku(product.get("styleId")) == target:
            return product
    return products[0] if products else None


def _stockx_metadata(product: dict[str, Any]) -> dict[str, str | None]:
    attributes = product.get("productAttributes") or {}
    return {
        "brand": product.get("brand"),
        "name": product.get("title"),
        "colorway": attributes.get("colorway"),
        "category": product.get("productType"),
    }


async def sync_stockx_style(
    db: AsyncSession,
    style: StyleCatalog,
    client: StockxClient | None = None,
    currency: str | None = None,
) -> StyleSyncResult:
    """Pull StockX asks and bids for every size of a style.

    Resolves the StockX product by searching the style code when the style has
    no product id yet, and stores the resolved id.

    Args:
        db: Async database session.
        style: Style to refresh.
        client: StockX client (defaults to the app-level client).
        currency: Quote currency (defaults to the base currency).

    Returns:
        Counts of written and skipped snapshots plus product metadata.

    Raises:
        NotFoundError: If StockX has no product for the style code.
        StockxError: If the StockX API fails.
    """
    client = client or get_stockx_client()
    currency = currency or get_settings().base_currency

    metadata: dict[str, str | None] = {}
    product_id = style.stockx_product_id
    if not product_id:
        search = await client.search_catalog(style.style_id, page_size=10)
        product = _pick_stockx_product(search.get("products") or [], style.style_id)
        if product is None or not product.get("productId"):
            raise NotFoundError(
                f"No StockX product found for {style.style_id}",
                details={"style_id": style.style_id, "provider": "stockx"},
            )
        product_id = str(product["productId"])
        metadata = _stockx_metadata(product)
        style.stockx_product_id = product_id
        await db.flush()
        logger.info(
            "market.stockx_product_resolved", style_id=style.style_id, product_id=product_id
        )

    variants = await client.get_variants(product_id)
    sizes = {
        v.get("variantId"): size_key(str(v.get("variantValue")))
        for v in variants
        if v.get("variantId") and v.get("variantValue") is not None
    }
    market = await client.get_market_data(product_id, currency_code=currency)

    as_of = _now()
    written = skipped = 0
    for entry in market:
        variant_id = entry.get("variantId")
        size = sizes.get(variant_id)
        if size is None:
            skipped += 1
            continue
        standard = entry.get("standardMarketData") or {}
        snapshot = MarketSnapshotIn(
            provider="stockx",
            style_id=style.style_id,
            size=size,
            size_uk=convert_to_uk(size, "US"),
            currency=currency,
            lowest_ask=parse_price(entry.get("lowestAskAmount"))
            or parse_price(standard.get("lowestAsk")),
            highest_bid=parse_price(entry.get("highestBidAmount"))
            or parse_price(standard.get("highestBidAmount")),
            sales_72h=_parse_int(entry.get("salesLast72Hours")),
            as_of=as_of,
            meta={"product_id": product_id, "variant_id": variant_id},
        )
        if await upsert_market_snapshot(db, snapshot):
            written += 1
        else:
            skipped += 1

    logger.info(
        "market.stockx_synced",
        style_id=style.style_id,
        product_id=product_id,
        written=written,
        skipped=skipped,
    )
    return StyleSyncResult(
        provider="stockx",
        style_id=style.style_id,
        product_id=product_id,
        written=written,
        skipped=skipped,
        metadata=metadata,
    )


def _alias_metadata(item: dict[str, Any]) -> dict[str, str | None]:
    return {
        "brand": item.get("brand"),
        "name": item.get("name"),
        "colorway": item.get("colorway"),
        "category": item.get("product_category"),
    }


async def sync_alias_style(
    db: AsyncSession,
    style: StyleCatalog,
    client: AliasClient | None = None,
    region_id: str | None = None,
    consigned: bool = False,
) -> StyleSyncResult:
    """Pull Alias availabilities for every size of a style.

    Only new items in good packaging are stored. Prices arrive in USD cents.

    Args:
        db: Async database session.
        style: Style to refresh; must be mapped to an Alias catalog id.
        client: Alias client (defaults to the singleton).
        region_id: Alias region (defaults to settings).
        consigned: Consigned or standard listings.

    Returns:
        Counts of written and skipped snapshots plus catalog metadata.

    Raises:
        ValidationError: If the style has no Alias catalog id.
        AliasAPIError: If the Alias API fails.
    """
    if not style.alias_catalog_id:
        raise ValidationError(
            f"Style {style.style_id} has no alias_catalog_id",
            details={"style_id": style.style_id, "provider": "alias"},
        )
    client = client or get_alias_client()
    region_id = region_id or get_settings().alias_region_id
    catalog_id = style.alias_catalog_id

    item = await client.get_catalog_item(catalog_id)
    catalog_item = item.get("catalog_item") or item
    availabilities = await client.get_availabilities(
        catalog_id, region_id=region_id, consigned=consigned
    )

    as_of = _now()
    written = skipped = 0
    seen: set[str] = set()
    for variant in availabilities.get("variants") or []:
        if (
            variant.get("product_condition") != ALIAS_NEW_CONDITION
            or variant.get("packaging_condition") != ALIAS_GOOD_PACKAGING
            or bool(variant.get("consigned")) != consigned
            or variant.get("size") is None
        ):
            continue
        size = size_key(str(variant["size"]))
        if size in seen:
            continue
        seen.add(size)

        availability = variant.get("availability") or {}
        snapshot = MarketSnapshotIn(
            provider="alias",
            style_id=style.style_id,
            size=size,
            size_uk=convert_to_uk(size, "US"),
            currency=ALIAS_CURRENCY,
            lowest_ask=parse_cents(availability.get("lowest_listing_price_cents")),
            highest_bid=parse_cents(availability.get("highest_offer_price_cents")),
            last_sale=parse_cents(availability.get("last_sold_listing_price_cents")),
            as_of=as_of,
            meta={
                "catalog_id": catalog_id,
                "region_id": region_id,
                "consigned": consigned,
                "listings": _parse_int(availability.get("number_of_listings")),
                "offers": _parse_int(availability.get("number_of_offers")),
            },
        )
        if await upsert_market_snapshot(db, snapshot):
            written += 1
        else:
            skipped += 1

    logger.info(
        "market.alias_synced",
        style_id=style.style_id,
        catalog_id=catalog_id,
        region_id=region_id,
        written=written,
        skipped=skipped,
    )
    return StyleSyncResult(
        provider="alias",
        style_id=style.style_id,
        product_id=catalog_id,
        written=written,
        skipped=skipped,
        metadata=_alias_metadata(catalog_item),
    )
