"""Fixtures for market tests."""

import datetime
from decimal import Decimal

import pytest

from app.features.market.models import MarketSnapshot, StyleCatalog

AS_OF = datetime.datetime(2024, 6, 1, 12, tzinfo=datetime.UTC)


def _snapshot(
    provider: str,
    size: str,
    ask: str | None = None,
    bid: str | None = None,
    last: str | None = None,
    currency: str | None = None,
) -> MarketSnapshot:
    """Unsaved MarketSnapshot for one size."""
    return MarketSnapshot(
        provider=provider,
        style_id="DD1391-100",
        size=size,
        size_uk=None,
        currency=currency or ("GBP" if provider == "stockx" else "USD"),
        lowest_ask=Decimal(ask) if ask else None,
        highest_bid=Decimal(bid) if bid else None,
        last_sale=Decimal(last) if last else None,
        sales_72h=None,
        sales_30d=None,
        as_of=AS_OF,
        meta={},
    )


@pytest.fixture
def make_snapshot():
    """Factory for unsaved snapshots: make_snapshot(provider, size, ask, bid, last)."""
    return _snapshot


@pytest.fixture
def style() -> StyleCatalog:
    """A style mapped to both providers."""
    return StyleCatalog(
        style_id="DD1391-100",
        brand="Nike",
        name="Dunk Low Panda",
        colorway=None,
        category="sneakers",
        stockx_product_id="sx-prod-1",
        alias_catalog_id="dunk-low-panda-dd1391-100",
    )


@pytest.fixture
def unmapped_style() -> StyleCatalog:
    """A style with no marketplace ids or metadata."""
    return StyleCatalog(
        style_id="DD1391-100",
        brand=None,
        name=None,
        colorway=None,
        category=None,
        stockx_product_id=None,
        alias_catalog_id=None,
    )
