"""Pydantic schemas for inventory, sales, P&L and valuation."""

import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.features.fx.schemas import Currency
from app.features.pricing.schemas import AggregatedPrice
from app.features.sku.sizes import SizeSystem

ItemCondition = Literal["new", "deadstock", "used", "worn", "defect"]
ItemStatus = Literal["active", "listed", "consigned"]


# =============================================================================
# Items
# =============================================================================


class InventoryItemCreate(BaseModel):
    """Request body for adding an item.

    ``size`` may be given in any notation; it is stored as UK.
    """

    sku: str = Field(..., min_length=1, max_length=64, examples=["DD1391-100"])
    brand: str | None = Field(None, max_length=100)
    model: str | None = Field(None, max_length=255)
    colorway: str | None = Field(None, max_length=255)
    size: str | None = Field(None, max_length=20, examples=["10.5"])
    size_system: SizeSystem = Field("UK", description="Notation of ``size``.")
    condition: ItemCondition = "new"
    purchase_price: Decimal = Field(..., ge=0)
    purchase_currency: Currency = "GBP"
    purchase_date: datetime.date | None = None
    status: ItemStatus = "active"
    notes: str | None = None


class InventoryItemResponse(BaseModel):
    """A stored item."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: str
    sku: str
    brand: str | None
    model: str | None
    colorway: str | None
    size_uk: str | None
    condition: str
    purchase_price: Decimal
    purchase_currency: str
    purchase_date: datetime.date | None
    status: str
    notes: str | None
    created_at: datetime.datetime


# =============================================================================
# Sales
# =============================================================================


class MarkSoldRequest(BaseModel):
    """Request body for marking an item sold."""

    sold_price: Decimal = Field(..., gt=0, description="Sale price in sale_currency.")
    sold_date: datetime.date
    sale_currency: Currency = "GBP"
    platform: str | None = Field(None, max_length=50, examples=["stockx"])
    fees: Decimal = Field(Decimal(0), ge=0, description="Platform fees in sale_currency.")
    shipping: Decimal = Field(Decimal(0), ge=0, description="Shipping in sale_currency.")
    notes: str | None = None


class SaleResponse(BaseModel):
    """A stored sale."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    original_item_id: int
    sku: str
    brand: str | None
    model: str | None
    colorway: str | None
    size_uk: str | None
    condition: str | None
    purchase_price: Decimal | None
    purchase_currency: str
    sold_price: Decimal
    sale_currency: str
    base_currency: str
    fx_rate_used: Decimal
    sold_price_base: Decimal
    sales_fee: Decimal
    shipping_cost: Decimal
    platform: str | None
    sold_date: datetime.date


class FxInfo(BaseModel):
    """The rate snapshot applied to a sale."""

    original_currency: str
    original_amount: Decimal
    base_currency: str
    fx_rate: Decimal
    base_amount: Decimal


class MarkSoldResponse(BaseModel):
    """Outcome of marking an item sold.

    ``already_sold`` is true when a sale for the item existed; nothing changes
    in that case.
    """

    success: bool = True
    already_sold: bool = False
    sale_id: int | None
    item_id: int
    message: str
    sale: SaleResponse | None = None
    fx_info: FxInfo | None = None


class UndoSaleResponse(BaseModel):
    """Outcome of undoing a sale."""

    success: bool = True
    sale_id: int
    item_id: int
    message: str
    item: InventoryItemResponse


class PlatformPnl(BaseModel):
    """P&L for one platform."""

    sales_count: int
    revenue: Decimal
    profit: Decimal


class PnlReport(BaseModel):
    """Realised profit and loss over a date range, in base currency."""

    start: datetime.date | None
    end: datetime.date | None
    base_currency: str
    sales_count: int
    revenue: Decimal
    cost: Decimal
    fees: Decimal
    profit: Decimal
    margin_percent: float | None = Field(None, description="Profit / revenue x 100.")
    by_platform: dict[str, PlatformPnl] = Field(default_factory=dict)


# =============================================================================
# Valuation
# =============================================================================


class ItemValuation(BaseModel):
    """Cost against market value for one item, in the valuation currency."""

    item_id: int
    sku: str
    size_uk: str | None
    cost: float
    market_price: AggregatedPrice | None
    unrealized_profit: float | None


class InventoryValuation(BaseModel):
    """Market value of all active items."""

    currency: Currency
    item_count: int
    priced_count: int
    total_cost: float
    total_market_value: float = Field(..., description="Sum over priced items only.")
    unrealized_profit: float = Field(..., description="Market value minus cost of priced items.")
    items: list[ItemValuation]
