"""Tests for market API routes."""

from unittest.mock import AsyncMock, patch

import pytest

from app.core.exceptions import NotFoundError
from app.features.market.schemas import UnifiedMarketRow
from app.features.pricing.schemas import ProviderMarketData


class TestGetMarket:
    """Tests for GET /market/{style_id}."""

    @pytest.mark.asyncio
    async def test_returns_rows(self, mocked_db_client, style):
        """Style and unified rows are returned."""
        rows = [
            UnifiedMarketRow(
                size="10",
                size_uk="9",
                size_numeric=10.0,
                stockx=ProviderMarketData(lowest_ask=150.0, currency="GBP"),
                has_stockx=True,
                has_alias=False,
            )
        ]
        with patch(
            "app.features.market.service.get_unified_market",
            new=AsyncMock(return_value=(style, rows)),
        ) as get_unified:
            response = await mocked_db_client.get("/market/DD1391-100?currency=USD")

        assert response.status_code == 200
        data = response.json()
        assert data["style"]["style_id"] == "DD1391-100"
        assert data["rows"][0]["size_uk"] == "9"
        assert data["rows"][0]["stockx"]["lowest_ask"] == 150.0
        assert get_unified.await_args.kwargs["stockx_currency"] == "USD"

    @pytest.mark.asyncio
    async def test_unknown_style(self, mocked_db_client):
        """Unknown styles return a 404 problem."""
        with patch(
            "app.features.market.service.get_unified_market",
            new=AsyncMock(side_effect=NotFoundError("Style not found: XX0000-000")),
        ):
            response = await mocked_db_client.get("/market/XX0000-000")

        assert response.status_code == 404
        assert response.headers["content-type"].startswith("application/problem+json")
        assert response.json()["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_invalid_currency(self, mocked_db_client):
        """Unsupported currencies are rejected."""
        response = await mocked_db_client.get("/market/DD1391-100?currency=JPY")

        assert response.status_code == 422


class TestPutStyle:
    """Tests for PUT /market/styles/{style_id}."""

    @pytest.mark.asyncio
    async def test_upserts_style(self, mocked_db_client, style):
        """Only the posted fields are passed to the upsert."""
        with patch(
            "app.features.market.service.upsert_style",
            new=AsyncMock(return_value=style),
        ) as upsert:
            response = await mocked_db_client.put(
                "/market/styles/dd1391-100",
                json={"alias_catalog_id": "dunk-low-panda-dd1391-100"},
            )

        assert response.status_code == 200
        assert response.json()["alias_catalog_id"] == "dunk-low-panda-dd1391-100"
        _, style_id, payload = upsert.await_args.args
        assert style_id == "dd1391-100"
        assert payload.model_dump(exclude_unset=True) == {
            "alias_catalog_id": "dunk-low-panda-dd1391-100"
        }
