"""Feature-specific test fixtures for pricing module."""

import datetime

import pytest

from app.features.fx.schemas import FxRates
from app.features.fx.service import default_fx_rates
from app.features.pricing.schemas import ProviderMarketData, UnifiedMarketInput

NOW = datetime.datetime(2024, 6, 1, 12, 0, tzinfo=datetime.UTC)


@pytest.fixture
def now() -> datetime.datetime:
    """Fixed reference time for freshness checks."""
    return NOW


@pytest.fixture
def gbp_rates() -> FxRates:
    """Default rates into GBP (USD 0.79, EUR 0.85)."""
    return default_fx_rates("GBP")


@pytest.fixture
def market_both_fresh() -> UnifiedMarketInput:
    """StockX 150 GBP and Alias 180 USD, both updated 30 minutes ago."""
    updated = NOW - datetime.timedelta(minutes=30)
    return UnifiedMarketInput(
        style_id="DZ5485-612",
        size="10",
        stockx=ProviderMarketData(
            lowest_ask=150.0, highest_bid=120.0, currency="GBP", updated_at=updated
        ),
        alias=ProviderMarketData(
            lowest_ask=180.0,
            highest_bid=140.0,
            updated_at=updated,
            last_sale_price=175.0,
            sales_last_72h=4,
            sales_last_30d=31,
        ),
    )
