"""Unit tests for market service."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.dialects import postgresql

from app.core.exceptions import NotFoundError, ValidationError
from app.features.alias.client import AliasClient
from app.features.market.schemas import MarketSnapshotIn
from app.features.market.service import (
    backfill_style_metadata,
    build_unified_market,
    get_unified_market,
    parse_cents,
    parse_price,
    size_key,
    sync_alias_style,
    sync_stockx_style,
    upsert_market_snapshot,
)
from app.features.stockx.client import StockxClient


@pytest.fixture
def recorded_upserts():
    """Patch the snapshot upsert and collect what would be written."""
    with patch(
        "app.features.market.service.upsert_market_snapshot",
        new=AsyncMock(return_value=True),
    ) as upsert:
        yield upsert


def _written(upsert: AsyncMock) -> list[MarketSnapshotIn]:
    return [c.args[1] for c in upsert.await_args_list]


class TestParsing:
    """Tests for provider value parsing."""

    def test_size_key_drops_trailing_zero(self):
        """10.0 and 10 share a key."""
        assert size_key("10.0") == "10"
        assert size_key("10.5") == "10.5"

    def test_size_key_non_numeric(self):
        """Non-numeric sizes are trimmed and uppercased."""
        assert size_key(" 14w ") == "14W"
        assert size_key("nan") == "NAN"
        assert size_key("inf") == "INF"

    def test_parse_cents(self):
        """Cents strings become major units."""
        assert parse_cents("12500") == Decimal("125.00")
        assert parse_cents("12999") == Decimal("129.99")

    def test_parse_cents_zero_is_none(self):
        """A zero price means no price."""
        assert parse_cents("0") is None
        assert parse_cents(None) is None

    def test_parse_price_junk(self):
        """Unparseable prices are None."""
        assert parse_price("n/a") is None
        assert parse_price("") is None
        assert parse_price("150") == Decimal("150")


class TestBuildUnifiedMarket:
    """Tests for build_unified_market."""

    def test_merges_rows_by_size(self, make_snapshot):
        """Rows for the same size from both providers become one row."""
        rows = build_unified_market(
            [make_snapshot("stockx", "10", ask="150", bid="120")],
            [make_snapshot("alias", "10.0", ask="180", last="175")],
        )

        assert len(rows) == 1
        row = rows[0]
        assert row.has_stockx and row.has_alias
        assert row.stockx.lowest_ask == 150.0
        assert row.stockx.currency == "GBP"
        assert row.alias.lowest_ask == 180.0
        assert row.alias.last_sale_price == 175.0
        assert row.alias.currency == "USD"

    def test_skips_empty_alias_rows(self, make_snapshot):
        """Alias rows without ask, bid or last sale are dropped."""
        rows = build_unified_market(
            [],
            [
                make_snapshot("alias", "9"),
                make_snapshot("alias", "10", last="175"),
            ],
        )

        assert [r.size for r in rows] == ["10"]
        assert rows[0].alias.status == "no_listing"

    def test_stockx_only_size(self, make_snapshot):
        """Sizes without Alias data keep has_alias False."""
        rows = build_unified_market([make_snapshot("stockx", "11", ask="140")], [])

        assert rows[0].has_stockx is True
        assert rows[0].has_alias is False
        assert rows[0].alias is None
        assert rows[0].stockx.status == "available"

    def test_sorts_numeric_then_non_numeric(self, make_snapshot):
        """Numeric sizes ascend and non-numeric sizes come last."""
        rows = build_unified_market(
            [
                make_snapshot("stockx", "11", ask="1"),
                make_snapshot("stockx", "14W", ask="1"),
                make_snapshot("stockx", "9.5", ask="1"),
            ],
            [make_snapshot("alias", "10", ask="1")],
        )

        assert [r.size for r in rows] == ["9.5", "10", "11", "14W"]
        assert rows[-1].size_numeric is None


class TestUpsertMarketSnapshot:
    """Tests for the newer-only snapshot upsert."""

    @staticmethod
    def _reading(style_id: str = "DD1391-100") -> MarketSnapshotIn:
        return MarketSnapshotIn(
            provider="stockx",
            style_id=style_id,
            size="10",
            currency="GBP",
            lowest_ask=Decimal("150"),
            as_of="2024-06-01T12:00:00Z",
        )

    @staticmethod
    def _session(returned_id):
        session = AsyncMock()
        result = MagicMock()
        result.scalar_one_or_none.return_value = returned_id
        session.execute.return_value = result
        return session

    @pytest.mark.asyncio
    async def test_written(self):
        """A returned row id means the reading was stored."""
        session = self._session(7)

        assert await upsert_market_snapshot(session, self._reading()) is True

    @pytest.mark.asyncio
    async def test_stale_reading_skipped(self):
        """No returned row means the stored reading was newer."""
        session = self._session(None)

        assert await upsert_market_snapshot(session, self._reading()) is False

    @pytest.mark.asyncio
    async def test_only_newer_readings_overwrite(self):
        """The conflict update is guarded on as_of."""
        session = self._session(1)

        await upsert_market_snapshot(session, self._reading(" dd1391-100 "))

        stmt = session.execute.call_args.args[0]
        compiled = stmt.compile(dialect=postgresql.dialect())
        sql = str(compiled)
        assert "ON CONFLICT ON CONSTRAINT uq_market_snapshots_key" in sql
        assert "excluded.as_of" in sql
        assert compiled.params["style_id"] == "DD1391-100"


class TestBackfillStyleMetadata:
    """Tests for backfill_style_metadata."""

    @pytest.mark.asyncio
    async def test_fills_only_empty_fields(self, style):
        """Stored values win over provider values."""
        session = AsyncMock()

        filled = await backfill_style_metadata(
            session,
            style,
            {"brand": "Jordan", "name": "Other", "colorway": "White/Black", "category": None},
        )

        assert filled == ["colorway"]
        assert style.brand == "Nike"
        assert style.colorway == "White/Black"
        session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_nothing_to_fill(self, style):
        """No flush happens when nothing changes."""
        session = AsyncMock()

        assert await backfill_style_metadata(session, style, {"brand": "Jordan"}) == []
        session.flush.assert_not_awaited()


class TestGetUnifiedMarket:
    """Tests for get_unified_market."""

    @pytest.mark.asyncio
    async def test_missing_style(self):
        """Unknown styles raise NotFoundError."""
        session = AsyncMock()
        session.get.return_value = None

        with pytest.raises(NotFoundError, match="DD1391-100"):
            await get_unified_market(session, "dd1391-100")


class TestSyncStockxStyle:
    """Tests for sync_stockx_style."""

    @pytest.mark.asyncio
    async def test_mapped_style(self, style, recorded_upserts):
        """Market data is joined to variant sizes and stored per size."""
        client = AsyncMock(spec=StockxClient)
        client.get_variants.return_value = [
            {"variantId": "v1", "variantValue": "10"},
            {"variantId": "v2", "variantValue": "10.5"},
        ]
        client.get_market_data.return_value = [
            {"variantId": "v1", "lowestAskAmount": "150", "highestBidAmount": "120"},
            {
                "variantId": "v2",
                "lowestAskAmount": None,
                "standardMarketData": {"lowestAsk": "160", "highestBidAmount": "130"},
            },
            {"variantId": "v-unknown", "lowestAskAmount": "99"},
        ]

        result = await sync_stockx_style(AsyncMock(), style, client=client, currency="GBP")

        assert result.written == 2
        assert result.skipped == 1
        assert result.product_id == "sx-prod-1"
        client.search_catalog.assert_not_awaited()
        client.get_market_data.assert_awaited_once_with("sx-prod-1", currency_code="GBP")

        first, second = _written(recorded_upserts)
        assert first.size == "10"
        assert first.size_uk == "9"
        assert first.lowest_ask == Decimal("150")
        assert first.highest_bid == Decimal("120")
        assert second.lowest_ask == Decimal("160")
        assert second.highest_bid == Decimal("130")
        assert second.meta == {"product_id": "sx-prod-1", "variant_id": "v2"}

    @pytest.mark.asyncio
    async def test_resolves_product_by_style_code(self, unmapped_style, recorded_upserts):
        """An unmapped style is resolved by searching, preferring the exact style code."""
        client = AsyncMock(spec=StockxClient)
        client.search_catalog.return_value = {
            "products": [
                {"productId": "p-other", "styleId": "DD1503-101"},
                {
                    "productId": "p-dunk",
                    "styleId": "DD1391 100",
                    "brand": "Nike",
                    "title": "Nike Dunk Low Retro White Black",
                    "productType": "sneakers",
                    "productAttributes": {"colorway": "White/Black"},
                },
            ]
        }
        client.get_variants.return_value = []
        client.get_market_data.return_value = []
        session = AsyncMock()

        result = await sync_stockx_style(session, unmapped_style, client=client, currency="GBP")

        assert result.product_id == "p-dunk"
        assert unmapped_style.stockx_product_id == "p-dunk"
        assert result.metadata["brand"] == "Nike"
        assert result.metadata["colorway"] == "White/Black"
        assert result.metadata["category"] == "sneakers"
        session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_search_results(self, unmapped_style):
        """A style StockX does not know raises NotFoundError."""
        client = AsyncMock(spec=StockxClient)
        client.search_catalog.return_value = {"products": []}

        with pytest.raises(NotFoundError, match="No StockX product"):
            await sync_stockx_style(AsyncMock(), unmapped_style, client=client, currency="GBP")


class TestSyncAliasStyle:
    """Tests for sync_alias_style."""

    @staticmethod
    def _variant(
        size, ask="12500", bid="0", last=None, condition="PRODUCT_CONDITION_NEW", consigned=False
    ):
        return {
            "size": size,
            "product_condition": condition,
            "packaging_condition": "PACKAGING_CONDITION_GOOD_CONDITION",
            "consigned": consigned,
            "availability": {
                "lowest_listing_price_cents": ask,
                "highest_offer_price_cents": bid,
                "last_sold_listing_price_cents": last,
                "number_of_listings": "4",
            },
        }

    @pytest.mark.asyncio
    async def test_requires_catalog_id(self, unmapped_style):
        """Styles without an Alias catalog id cannot sync."""
        with pytest.raises(ValidationError, match="alias_catalog_id"):
            await sync_alias_style(AsyncMock(), unmapped_style, client=AsyncMock())

    @pytest.mark.asyncio
    async def test_stores_new_good_condition_sizes(self, style, recorded_upserts):
        """Only new, well-packaged, non-consigned variants are stored, once per size."""
        client = AsyncMock(spec=AliasClient)
        client.get_catalog_item.return_value = {
            "catalog_item": {
                "brand": "Nike",
                "name": "Dunk Low 'Panda'",
                "product_category": "sneakers",
            }
        }
        client.get_availabilities.return_value = {
            "variants": [
                self._variant(10, ask="12500", last="11999"),
                self._variant(10.5, condition="PRODUCT_CONDITION_USED"),
                self._variant(11, consigned=True),
                self._variant(10.0, ask="99900"),
            ]
        }

        result = await sync_alias_style(AsyncMock(), style, client=client, region_id="3")

        client.get_availabilities.assert_awaited_once_with(
            "dunk-low-panda-dd1391-100", region_id="3", consigned=False
        )
        assert result.written == 1
        assert result.metadata["name"] == "Dunk Low 'Panda'"

        (stored,) = _written(recorded_upserts)
        assert stored.provider == "alias"
        assert stored.currency == "USD"
        assert stored.size == "10"
        assert stored.size_uk == "9"
        assert stored.lowest_ask == Decimal("125.00")
        assert stored.highest_bid is None
        assert stored.last_sale == Decimal("119.99")
        assert stored.meta["listings"] == 4

    @pytest.mark.asyncio
    async def test_stale_readings_counted_as_skipped(self, style):
        """Readings the database rejects as stale count as skipped."""
        client = AsyncMock(spec=AliasClient)
        client.get_catalog_item.return_value = {}
        client.get_availabilities.return_value = {"variants": [self._variant(9)]}

        with patch(
            "app.features.market.service.upsert_market_snapshot",
            new=AsyncMock(return_value=False),
        ):
            result = await sync_alias_style(AsyncMock(), style, client=client, region_id="3")

        assert result.written == 0
        assert result.skipped == 1
