"""Inventory items, mark-sold with FX snapshot, P&L and valuation."""

from __future__ import annotations

import datetime
from collections import defaultdict
from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from app.core.logging import get_logger
from app.features.alias.models import AliasListing
from app.features.fx.schemas import Currency, FxRates
from app.features.fx.service import fx_rate_for, get_fx_rates, record_fx_audit
from app.features.inventory.models import InventoryItem, Sale
from app.features.inventory.schemas import (
    FxInfo,
    InventoryItemCreate,
    InventoryItemResponse,
    InventoryValuation,
    ItemValuation,
    MarkSoldRequest,
    MarkSoldResponse,
    PlatformPnl,
    PnlReport,
    SaleResponse,
    UndoSaleResponse,
)
from app.features.market.models import MarketSnapshot, StyleCatalog
from app.features.pricing.aggregate import aggregate_prices
from app.features.pricing.fees import convert_to_user_currency, round_to_cents
from app.features.pricing.schemas import PriceQuote
from app.features.sku.normalize import normalize_sku_for_matching
from app.features.sku.sizes import convert_to_uk

logger = get_logger(__name__)

CENT = Decimal("0.01")

SALE_CONDITIONS: dict[str, str] = {
    "new": "New",
    "deadstock": "New",
    "used": "Used",
    "worn": "Worn",
    "defect": "Defect",
}

# Sale condition back to item condition, used when item_condition is missing.
ITEM_CONDITIONS: dict[str, str] = {
    "New": "new",
    "Used": "used",
    "Worn": "worn",
    "Defect": "defect",
}


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def map_condition_for_sale(condition: str | None) -> str | None:
    """Item condition (new, deadstock, used, ...) to sale condition (New, Used, ...)."""
    if not condition:
        return None
    return SALE_CONDITIONS.get(condition.strip().lower())


def map_condition_for_item(sale: Sale) -> str:
    """Condition to restore on undo: the item's own, else mapped back, else new."""
    if sale.item_condition in SALE_CONDITIONS:
        return sale.item_condition
    return ITEM_CONDITIONS.get(sale.condition or "", "new")


# =============================================================================
# Items
# =============================================================================


async def create_item(
    db: AsyncSession, owner_id: str, payload: InventoryItemCreate
) -> InventoryItem:
    """Add an item, normalizing the SKU and converting the size to UK."""
    sku = normalize_sku_for_matching(payload.sku) or payload.sku.strip().upper()
    size_uk = convert_to_uk(payload.size.strip(), payload.size_system) if payload.size else None

    item = InventoryItem(
        owner_id=owner_id,
        sku=sku,
        brand=payload.brand,
        model=payload.model,
        colorway=payload.colorway,
        size_uk=size_uk,
        condition=payload.condition,
        purchase_price=payload.purchase_price,
        purchase_currency=payload.purchase_currency,
        purchase_date=payload.purchase_date,
        status=payload.status,
        notes=payload.notes,
    )
    db.add(item)
    await db.flush()
    await db.refresh(item)

    logger.info("inventory.item_created", item_id=item.id, owner_id=owner_id, sku=sku)
    return item


async def get_item(db: AsyncSession, owner_id: str, item_id: int) -> InventoryItem:
    """Load an item the caller owns.

    Raises:
        NotFoundError: If the item does not exist.
        ForbiddenError: If another owner holds it.
    """
    item = await db.get(InventoryItem, item_id)
    if item is None:
        raise NotFoundError(f"Inventory item not found: {item_id}", details={"item_id": item_id})
    if item.owner_id != owner_id:
        logger.warning(
            "inventory.item_forbidden", item_id=item_id, owner_id=owner_id, item_owner=item.owner_id
        )
        raise ForbiddenError("You do not own this item", details={"item_id": item_id})
    return item


async def list_items(
    db: AsyncSession,
    owner_id: str,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[InventoryItem]:
    stmt = select(InventoryItem).where(InventoryItem.owner_id == owner_id)
    if status is not None:
        stmt = stmt.where(InventoryItem.status == status)
    stmt = stmt.order_by(InventoryItem.created_at.desc(), InventoryItem.id.desc())
    result = await db.execute(stmt.limit(limit).offset(offset))
    return list(result.scalars().all())


# =============================================================================
# Mark sold
# =============================================================================


async def _existing_sale_id(db: AsyncSession, item_id: int) -> int | None:
    result = await db.execute(select(Sale.id).where(Sale.original_item_id == item_id))
    return result.scalar_one_or_none()


async def _snapshot_rate(
    db: AsyncSession, day: datetime.date, from_currency: str, to_currency: str
) -> Decimal:
    """Rate on ``day``; a failed lookup falls back to 1."""
    if from_currency == to_currency:
        return Decimal(1)
    try:
        async with db.begin_nested():
            return await fx_rate_for(db, day, from_currency, to_currency)
    except SQLAlchemyError as e:
        logger.warning(
            "inventory.fx_rate_fallback",
            date=day.isoformat(),
            from_currency=from_currency,
            to_currency=to_currency,
            error=str(e),
        )
        return Decimal(1)


async def mark_sold(
    db: AsyncSession,
    owner_id: str,
    item_id: int,
    payload: MarkSoldRequest,
) -> MarkSoldResponse:
    """Move an item into sales with an FX snapshot.

    The sale is written first, then the item and its marketplace listings are
    deleted and the applied rate is recorded in the FX audit log. Calling it
    again for an item that already has a sale changes nothing.

    Args:
        db: Async database session.
        owner_id: Caller; must own the item.
        item_id: Item to sell.
        payload: Sale details.

    Returns:
        The sale and the rate snapshot, or ``already_sold=True``.

    Raises:
        NotFoundError: If the item does not exist.
        ForbiddenError: If another owner holds it.
    """
    item = await get_item(db, owner_id, item_id)

    existing_id = await _existing_sale_id(db, item_id)
    if existing_id is not None:
        logger.info("inventory.already_sold", item_id=item_id, sale_id=existing_id)
        return MarkSoldResponse(
            already_sold=True,
            sale_id=existing_id,
            item_id=item_id,
            message="Item already marked as sold",
        )

    base_currency = get_settings().base_currency
    fx_rate = await _snapshot_rate(db, payload.sold_date, payload.sale_currency, base_currency)
    sold_price_base = _cents(payload.sold_price * fx_rate)

    purchase_rate = await _snapshot_rate(
        db, item.purchase_date or payload.sold_date, item.purchase_currency, base_currency
    )

    sale = Sale(
        owner_id=owner_id,
        original_item_id=item_id,
        sku=item.sku,
        brand=item.brand,
        model=item.model,
        colorway=item.colorway,
        size_uk=item.size_uk,
        condition=map_condition_for_sale(item.condition),
        item_condition=item.condition,
        item_status=item.status,
        purchase_price=item.purchase_price,
        purchase_currency=item.purchase_currency,
        purchase_date=item.purchase_date,
        purchase_price_base=_cents(item.purchase_price * purchase_rate),
        sold_price=payload.sold_price,
        sale_currency=payload.sale_currency,
        base_currency=base_currency,
        fx_rate_used=fx_rate,
        sold_price_base=sold_price_base,
        sales_fee=payload.fees + payload.shipping,
        shipping_cost=payload.shipping,
        platform=payload.platform,
        sold_date=payload.sold_date,
        notes=payload.notes,
    )

    try:
        async with db.begin_nested():
            db.add(sale)
            await db.flush()
    except IntegrityError:
        duplicate_id = await _existing_sale_id(db, item_id)
        logger.info("inventory.already_sold_race", item_id=item_id, sale_id=duplicate_id)
        return MarkSoldResponse(
            already_sold=True,
            sale_id=duplicate_id,
            item_id=item_id,
            message="Item already marked as sold (duplicate detected)",
        )

    await db.delete(item)
    await db.execute(delete(AliasListing).where(AliasListing.inventory_item_id == item_id))
    await record_fx_audit(
        db,
        table_name="sales",
        record_id=str(sale.id),
        field_name="sold_price",
        rate_date=payload.sold_date,
        from_currency=payload.sale_currency,
        to_currency=base_currency,
        rate=fx_rate,
        original_amount=payload.sold_price,
    )

    logger.info(
        "inventory.item_sold",
        item_id=item_id,
        sale_id=sale.id,
        owner_id=owner_id,
        sold_price_base=str(sold_price_base),
        base_currency=base_currency,
    )

    return MarkSoldResponse(
        sale_id=sale.id,
        item_id=item_id,
        message="Item moved to sales",
        sale=SaleResponse.model_validate(sale),
        fx_info=FxInfo(
            original_currency=payload.sale_currency,
            original_amount=payload.sold_price,
            base_currency=base_currency,
            fx_rate=fx_rate,
            base_amount=sold_price_base,
        ),
    )


# =============================================================================
# Undo sale
# =============================================================================


async def get_sale(db: AsyncSession, owner_id: str, sale_id: int) -> Sale:
    """Load a sale the caller owns.

    Raises:
        NotFoundError: If the sale does not exist.
        ForbiddenError: If it belongs to another owner.
    """
    sale = await db.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError(f"Sale not found: {sale_id}", details={"sale_id": sale_id})
    if sale.owner_id != owner_id:
        logger.warning(
            "inventory.sale_forbidden", sale_id=sale_id, owner_id=owner_id, sale_owner=sale.owner_id
        )
        raise ForbiddenError("You do not own this sale", details={"sale_id": sale_id})
    return sale


async def undo_sale(db: AsyncSession, owner_id: str, sale_id: int) -> UndoSaleResponse:
    """Move a sale back into inventory under its original item id.

    The item is rebuilt from the fields copied at sale time, the sale is
    deleted and a reversing entry is written to the FX audit log.

    Args:
        db: Async database session.
        owner_id: Caller; must own the sale.
        sale_id: Sale to undo.

    Returns:
        The restored item.

    Raises:
        NotFoundError: If the sale does not exist.
        ForbiddenError: If another owner made the sale.
        ConflictError: If an item with the original id is already in inventory.
    """
    sale = await get_sale(db, owner_id, sale_id)
    item_id = sale.original_item_id

    if await db.get(InventoryItem, item_id) is not None:
        logger.warning("inventory.undo_item_exists", sale_id=sale_id, item_id=item_id)
        raise ConflictError(
            f"Item {item_id} already exists in inventory",
            details={"sale_id": sale_id, "item_id": item_id},
        )

    item = InventoryItem(
        id=item_id,
        owner_id=owner_id,
        sku=sale.sku,
        brand=sale.brand,
        model=sale.model,
        colorway=sale.colorway,
        size_uk=sale.size_uk,
        condition=map_condition_for_item(sale),
        purchase_price=sale.purchase_price if sale.purchase_price is not None else Decimal(0),
        purchase_currency=sale.purchase_currency,
        purchase_date=sale.purchase_date,
        status=sale.item_status or "active",
        notes=sale.notes,
    )

    try:
        async with db.begin_nested():
            db.add(item)
            await db.flush()
    except IntegrityError as e:
        logger.warning("inventory.undo_item_exists_race", sale_id=sale_id, item_id=item_id)
        raise ConflictError(
            f"Item {item_id} already exists in inventory",
            details={"sale_id": sale_id, "item_id": item_id},
        ) from e

    await db.delete(sale)
    await db.flush()
    # Negative amount reverses the snapshot recorded by mark_sold
    await record_fx_audit(
        db,
        table_name="sales",
        record_id=str(sale_id),
        field_name="sold_price",
        rate_date=sale.sold_date,
        from_currency=sale.sale_currency,
        to_currency=sale.base_currency,
        rate=sale.fx_rate_used,
        original_amount=-sale.sold_price,
    )
    await db.refresh(item)

    logger.info(
        "inventory.sale_undone",
        sale_id=sale_id,
        item_id=item_id,
        owner_id=owner_id,
        sold_price_base=str(sale.sold_price_base),
    )

    return UndoSaleResponse(
        sale_id=sale_id,
        item_id=item_id,
        message="Sale undone, item restored to inventory",
        item=InventoryItemResponse.model_validate(item),
    )


# =============================================================================
# P&L
# =============================================================================


async def list_sales(
    db: AsyncSession,
    owner_id: str,
    start: datetime.date | None = None,
    end: datetime.date | None = None,
) -> list[Sale]:
    """Sales in ``[start, end]`` (either bound optional), newest first."""
    stmt = select(Sale).where(Sale.owner_id == owner_id)
    if start is not None:
        stmt = stmt.where(Sale.sold_date >= start)
    if end is not None:
        stmt = stmt.where(Sale.sold_date <= end)
    result = await db.execute(stmt.order_by(Sale.sold_date.desc(), Sale.id.desc()))
    return list(result.scalars().all())


def summarize_sales(
    sales: Sequence[Sale],
    base_currency: str,
    start: datetime.date | None = None,
    end: datetime.date | None = None,
) -> PnlReport:
    """Sum revenue, cost, fees and profit in base currency.

    Fees are converted with each sale's stored rate. A sale without a cost
    basis counts as zero cost.
    """
    revenue = cost = fees = Decimal(0)
    platform_counts: dict[str, int] = defaultdict(int)
    platform_revenue: dict[str, Decimal] = defaultdict(Decimal)
    platform_profit: dict[str, Decimal] = defaultdict(Decimal)

    for sale in sales:
        sale_cost = sale.purchase_price_base or Decimal(0)
        sale_fees = (sale.sales_fee or Decimal(0)) * sale.fx_rate_used
        sale_profit = sale.sold_price_base - sale_cost - sale_fees

        revenue += sale.sold_price_base
        cost += sale_cost
        fees += sale_fees

        platform = sale.platform or "other"
        platform_counts[platform] += 1
        platform_revenue[platform] += sale.sold_price_base
        platform_profit[platform] += sale_profit

    profit = revenue - cost - fees
    margin = float(profit / revenue * 100) if revenue > 0 else None

    return PnlReport(
        start=start,
        end=end,
        base_currency=base_currency,
        sales_count=len(sales),
        revenue=_cents(revenue),
        cost=_cents(cost),
        fees=_cents(fees),
        profit=_cents(profit),
        margin_percent=round(margin, 2) if margin is not None else None,
        by_platform={
            platform: PlatformPnl(
                sales_count=platform_counts[platform],
                revenue=_cents(platform_revenue[platform]),
                profit=_cents(platform_profit[platform]),
            )
            for platform in sorted(platform_counts)
        },
    )


async def pnl_report(
    db: AsyncSession,
    owner_id: str,
    start: datetime.date | None = None,
    end: datetime.date | None = None,
) -> PnlReport:
    """Realised P&L for an owner over a date range."""
    sales = await list_sales(db, owner_id, start, end)
    report = summarize_sales(sales, get_settings().base_currency, start, end)
    logger.info(
        "inventory.pnl_reported",
        owner_id=owner_id,
        sales_count=report.sales_count,
        profit=str(report.profit),
    )
    return report


# =============================================================================
# Valuation
# =============================================================================


def value_items(
    items: Sequence[InventoryItem],
    snapshots: Sequence[MarketSnapshot],
    categories: dict[str, str | None],
    fx_rates: FxRates,
) -> InventoryValuation:
    """Value items against the lowest asks of matching snapshots.

    A snapshot matches an item on style and UK size. Each provider's ask is
    one quote; quotes are reconciled with ``aggregate_prices``.

    Args:
        items: Items to value.
        snapshots: Market snapshots for the items' styles.
        categories: Style category per SKU.
        fx_rates: Multipliers into the valuation currency.

    Returns:
        Per-item and total valuation.
    """
    quotes: dict[tuple[str, str | None], list[PriceQuote]] = defaultdict(list)
    for snap in snapshots:
        if snap.lowest_ask is None:
            continue
        quotes[(snap.style_id, snap.size_uk)].append(
            PriceQuote(
                provider=snap.provider,
                price=float(snap.lowest_ask),
                currency=snap.currency,  # type: ignore[arg-type]
                as_of=snap.as_of,
            )
        )

    valued: list[ItemValuation] = []
    total_cost = total_value = priced_cost = 0.0
    for item in items:
        cost = round_to_cents(
            convert_to_user_currency(
                float(item.purchase_price),
                item.purchase_currency,  # type: ignore[arg-type]
                fx_rates,
            )
        )
        price = aggregate_prices(
            quotes.get((item.sku, item.size_uk), []), categories.get(item.sku), fx_rates
        )
        total_cost += cost
        if price is not None:
            total_value += price.price
            priced_cost += cost
        valued.append(
            ItemValuation(
                item_id=item.id,
                sku=item.sku,
                size_uk=item.size_uk,
                cost=cost,
                market_price=price,
                unrealized_profit=round_to_cents(price.price - cost) if price else None,
            )
        )

    return InventoryValuation(
        currency=fx_rates.user_currency,
        item_count=len(valued),
        priced_count=sum(1 for v in valued if v.market_price is not None),
        total_cost=round_to_cents(total_cost),
        total_market_value=round_to_cents(total_value),
        unrealized_profit=round_to_cents(total_value - priced_cost),
        items=valued,
    )


async def get_inventory_valuation(
    db: AsyncSession, owner_id: str, currency: Currency | None = None
) -> InventoryValuation:
    """Value an owner's unsold items at current market prices."""
    items = await list_items(db, owner_id, limit=10_000)
    currency = currency or get_settings().base_currency
    fx_rates = await get_fx_rates(db, currency)
    if not items:
        return value_items([], [], {}, fx_rates)

    skus = sorted({item.sku for item in items})
    snapshot_result = await db.execute(
        select(MarketSnapshot).where(MarketSnapshot.style_id.in_(skus))
    )
    category_result = await db.execute(
        select(StyleCatalog.style_id, StyleCatalog.category).where(
            StyleCatalog.style_id.in_(skus)
        )
    )
    categories = {style_id: category for style_id, category in category_result.all()}

    valuation = value_items(items, snapshot_result.scalars().all(), categories, fx_rates)
    logger.info(
        "inventory.valuation_computed",
        owner_id=owner_id,
        item_count=valuation.item_count,
        priced_count=valuation.priced_count,
        currency=valuation.currency,
    )
    return valuation
