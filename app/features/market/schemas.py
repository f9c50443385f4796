"""Pydantic schemas for the style catalog and unified market view."""

import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from app.features.pricing.schemas import ProviderMarketData

Provider = Literal["stockx", "alias"]


class StyleCatalogUpsert(BaseModel):
    """Request body for creating or updating a style.

    Omitted fields keep their stored value.
    """

    brand: str | None = Field(None, max_length=100)
    name: str | None = Field(None, max_length=255)
    colorway: str | None = Field(None, max_length=255)
    category: str | None = Field(None, max_length=50, examples=["sneakers"])
    stockx_product_id: str | None = Field(None, max_length=64)
    alias_catalog_id: str | None = Field(None, max_length=255)


class StyleCatalogResponse(BaseModel):
    """A stored style."""

    model_config = ConfigDict(from_attributes=True)

    style_id: str
    brand: str | None
    name: str | None
    colorway: str | None
    category: str | None
    stockx_product_id: str | None
    alias_catalog_id: str | None


class MarketSnapshotIn(BaseModel):
    """One provider reading for one size, ready to upsert."""

    provider: Provider
    style_id: str
    size: str
    size_uk: str | None = None
    currency: str = Field(..., min_length=3, max_length=3)
    lowest_ask: Decimal | None = None
    highest_bid: Decimal | None = None
    last_sale: Decimal | None = None
    sales_72h: int | None = None
    sales_30d: int | None = None
    as_of: datetime.datetime
    meta: dict[str, Any] = Field(default_factory=dict)


class UnifiedMarketRow(BaseModel):
    """Both providers' data for one size."""

    size: str = Field(..., description="Provider (US) size.")
    size_uk: str | None = None
    size_numeric: float | None = Field(None, description="Null for sizes such as '14W'.")
    stockx: ProviderMarketData | None = None
    alias: ProviderMarketData | None = None
    has_stockx: bool
    has_alias: bool


class UnifiedMarketResponse(BaseModel):
    """All sizes of a style with both providers side by side.

    Prices are in each provider's native currency.
    """

    style: StyleCatalogResponse
    rows: list[UnifiedMarketRow]


class StyleSyncResult(BaseModel):
    """Outcome of pulling one provider's market data for a style."""

    provider: Provider
    style_id: str
    product_id: str | None = Field(None, description="StockX product id or Alias catalog id.")
    written: int = Field(0, description="Snapshots inserted or refreshed.")
    skipped: int = Field(0, description="Sizes skipped as stale or empty.")
    metadata: dict[str, str | None] = Field(
        default_factory=dict, description="Brand, name, colorway and category from the provider."
    )
