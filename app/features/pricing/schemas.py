"""Pydantic schemas for market pricing, fees and price reconciliation."""

import datetime
from typing import Literal

from pydantic import BaseModel, Field

from app.features.fx.schemas import Currency, FxRates

Platform = Literal["stockx", "alias"]
PriceConfidence = Literal["high", "medium", "low"]
DataFreshness = Literal["live", "recent", "stale"]
ProviderDataStatus = Literal["available", "no_listing", "error", "not_mapped"]
AliasRegion = Literal["uk", "us", "eu"]
AliasShippingMethod = Literal["dropoff", "prepaid"]


# =============================================================================
# Fees
# =============================================================================


class FeeProfile(BaseModel):
    """A seller's fee settings across platforms.

    ``alias_commission_fee`` is a fraction (0.095 = 9.5%).
    """

    stockx_seller_level: int = Field(1, ge=1, le=5, description="StockX seller level (1-5).")
    stockx_shipping_fee: float = Field(4.0, description="StockX shipping deduction in GBP.")
    alias_commission_fee: float = Field(0.095, description="Alias commission as a fraction.")
    alias_seller_region: AliasRegion = Field("uk", description="Alias seller region.")
    alias_shipping_method: AliasShippingMethod = Field(
        "dropoff", description="Alias shipping method."
    )


class PlatformFeeConfig(BaseModel):
    """Resolved fee parameters for one platform."""

    seller_fee_percent: float
    payment_processing_percent: float
    shipping_cost: float
    minimum_fee: float
    currency: Currency


class FeeBreakdown(BaseModel):
    """Fees deducted from a gross sale price, in platform currency."""

    platform_fee: float
    payment_fee: float
    shipping: float
    total: float


class PlatformNetProceeds(BaseModel):
    """What the seller receives from one platform."""

    platform: Platform
    gross_price: float
    gross_price_currency: Currency
    fees: FeeBreakdown
    net_receive: float = Field(..., description="Gross minus fees, in platform currency.")
    net_receive_currency: Currency
    net_receive_user_currency: float = Field(..., description="Net converted to user currency.")


class BestPlatform(BaseModel):
    """Platform with the better net payout."""

    platform: Platform | None
    advantage: float | None = Field(
        None, description="Absolute payout difference; null when only one platform quoted."
    )


class RealProfit(BaseModel):
    """Profit after fees against cost basis."""

    profit: float
    profit_percent: float


# =============================================================================
# ARCHVD price
# =============================================================================


class ProviderMarketData(BaseModel):
    """Latest market data for one provider, one size."""

    lowest_ask: float | None = None
    highest_bid: float | None = None
    currency: Currency | None = Field(
        None, description="Quote currency. StockX defaults to GBP; Alias is always USD."
    )
    updated_at: datetime.datetime | None = None
    status: ProviderDataStatus | None = None
    error: str | None = None
    last_sale_price: float | None = None
    sales_last_72h: int | None = None
    sales_last_30d: int | None = None


class UnifiedMarketInput(BaseModel):
    """Size-scoped market data from both providers."""

    style_id: str = Field(..., description="Style code, e.g. 'DZ5485-612'.")
    size: str = Field(..., description="Size value.")
    size_unit: str = Field("US", description="Size notation of ``size``.")
    variant_ids: dict[str, str | None] = Field(default_factory=dict)
    stockx: ProviderMarketData | None = None
    alias: ProviderMarketData | None = None


class CostInput(BaseModel):
    """Cost basis of an item."""

    amount: float = Field(..., ge=0)
    currency: Currency = "GBP"


class ProviderFreshness(BaseModel):
    """Freshness and availability of one provider's data."""

    updated_at: datetime.datetime | None
    freshness: DataFreshness
    status: ProviderDataStatus
    error: str | None = None


class ArchvdPriceInputs(BaseModel):
    """Asks used in the calculation, converted and original."""

    stockx_ask: float | None
    stockx_ask_original: float | None
    alias_ask: float | None
    alias_ask_original: float | None
    fx: FxRates


class ArchvdBids(BaseModel):
    """Highest bids, converted and original."""

    stockx_bid: float | None
    stockx_bid_original: float | None
    alias_bid: float | None
    alias_bid_original: float | None


class ArchvdPrice(BaseModel):
    """Single market price across providers, in user currency."""

    style_id: str
    size: str
    size_unit: str
    variant_ids: dict[str, str | None]
    value: float
    currency: Currency
    source: Platform
    confidence: PriceConfidence
    inputs: ArchvdPriceInputs
    bids: ArchvdBids
    calculated_at: datetime.datetime
    provider_freshness: dict[Platform, ProviderFreshness]


class AliasExtended(BaseModel):
    """Alias-only sales statistics."""

    last_sale_price: float | None
    last_sale_price_user_currency: float | None
    sales_last_72h: int | None
    sales_last_30d: int | None


class ArchvdPriceWithFees(ArchvdPrice):
    """ARCHVD price with net proceeds, platform recommendation and profit."""

    net_proceeds: dict[Platform, PlatformNetProceeds | None]
    bid_net_proceeds: dict[Platform, PlatformNetProceeds | None]
    best_bid_net_proceeds: float | None
    best_bid_platform: Platform | None
    best_platform_to_sell: Platform | None
    best_net_proceeds: float | None
    platform_advantage: float | None
    real_profit: float | None
    real_profit_percent: float | None
    alias_extended: AliasExtended


class DataAvailability(BaseModel):
    """Which providers have an ask."""

    has_stockx: bool
    has_alias: bool
    has_both: bool
    has_any: bool


# =============================================================================
# Cross-provider aggregation
# =============================================================================


class PriceQuote(BaseModel):
    """A single provider's price for an item."""

    provider: str = Field(..., description="Provider key, e.g. 'stockx', 'alias', 'ebay'.")
    price: float = Field(..., description="Price in ``currency``.")
    currency: Currency = "GBP"
    as_of: datetime.datetime | None = None


class AggregatedPrice(BaseModel):
    """Reconciled market price for an item."""

    price: float = Field(..., description="Reconciled price in user currency.")
    currency: Currency
    method: Literal["priority", "median"] = Field(
        ..., description="'priority' when a preferred provider quoted, else 'median'."
    )
    provider: str | None = Field(None, description="Provider used when method is 'priority'.")
    confidence: PriceConfidence
    quote_count: int = Field(..., ge=1)
    coefficient_of_variation: float | None = Field(
        None, description="Std/mean across quotes; null for the priority method."
    )


# =============================================================================
# Requests
# =============================================================================


class AggregateRequest(BaseModel):
    """Request body for POST /pricing/aggregate."""

    quotes: list[PriceQuote] = Field(..., description="Quotes from any providers.")
    category: str = Field("sneakers", description="Product category; selects provider priority.")
    user_currency: Currency = "GBP"


class ArchvdRequest(BaseModel):
    """Request body for POST /pricing/archvd."""

    market: UnifiedMarketInput
    cost: CostInput | None = None
    user_currency: Currency = "GBP"
    fee_profile: FeeProfile = Field(default_factory=FeeProfile)


class FeesRequest(BaseModel):
    """Request body for POST /pricing/fees."""

    gross_price: float = Field(..., gt=0)
    platform: Platform
    gross_price_currency: Currency | None = None
    user_currency: Currency = "GBP"
    fee_profile: FeeProfile = Field(default_factory=FeeProfile)
