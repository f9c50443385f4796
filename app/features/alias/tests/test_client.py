"""Unit tests for the Alias API client."""

import httpx
import pytest

from app.features.alias.client import (
    AliasAPIError,
    AliasAuthenticationError,
    AliasCatalogNotFoundError,
    AliasClient,
    AliasPricingError,
)


def make_client(handler) -> AliasClient:
    return AliasClient(pat="pat_test_token", transport=httpx.MockTransport(handler))


class TestAliasClient:
    """Tests for AliasClient."""

    def test_requires_pat(self):
        """A blank token is rejected up front."""
        with pytest.raises(AliasAuthenticationError):
            AliasClient(pat="  ")

    @pytest.mark.asyncio
    async def test_search_catalog(self):
        """Search sends bearer auth, query and limit."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"catalog_items": [], "has_more": False})

        client = make_client(handler)
        data = await client.search_catalog("DZ5485-612", limit=5)

        assert data["catalog_items"] == []
        request = seen[0]
        assert request.url.path == "/api/v1/catalog"
        assert request.url.params["query"] == "DZ5485-612"
        assert request.url.params["limit"] == "5"
        assert request.headers["Authorization"] == "Bearer pat_test_token"

    @pytest.mark.asyncio
    async def test_non_json_body_returns_empty(self):
        """Responses without a JSON content type decode to {}."""
        client = make_client(lambda request: httpx.Response(200, text="ok"))

        assert await client.test() == {}

    @pytest.mark.asyncio
    async def test_malformed_json_returns_empty(self):
        """A body labelled JSON that does not parse decodes to {}."""
        client = make_client(
            lambda request: httpx.Response(
                200, headers={"content-type": "application/json"}, content=b"<html>oops"
            )
        )

        assert await client.search_catalog("DD1391-100") == {}

    @pytest.mark.asyncio
    async def test_non_object_json_returns_empty(self):
        """A JSON array where an object is expected decodes to {}."""
        client = make_client(lambda request: httpx.Response(200, json=[{"catalog_id": "c1"}]))

        assert await client.search_catalog("DD1391-100") == {}

    @pytest.mark.asyncio
    async def test_error_uses_api_message(self):
        """Non-2xx raises AliasAPIError with the API's message."""
        client = make_client(
            lambda request: httpx.Response(422, json={"message": "bad region"})
        )

        with pytest.raises(AliasAPIError) as exc_info:
            await client.list_regions()

        assert exc_info.value.status == 422
        assert exc_info.value.message == "bad region"
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        """A rejected token raises AliasAuthenticationError."""
        client = make_client(lambda request: httpx.Response(401, text="nope"))

        with pytest.raises(AliasAuthenticationError):
            await client.test()

    @pytest.mark.asyncio
    async def test_catalog_item_not_found(self):
        """404 on a catalog item is a not-found error."""
        client = make_client(lambda request: httpx.Response(404, text="missing"))

        with pytest.raises(AliasCatalogNotFoundError) as exc_info:
            await client.get_catalog_item("air-jordan-1-missing")

        assert exc_info.value.catalog_id == "air-jordan-1-missing"
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_availabilities(self):
        """Region and consigned filters are passed through."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"variants": []})

        client = make_client(handler)
        await client.get_availabilities("cat-1", region_id="3", consigned=False)

        assert seen[0].url.path == "/api/v1/pricing_insights/availabilities/cat-1"
        assert seen[0].url.params["region_id"] == "3"
        assert seen[0].url.params["consigned"] == "false"

    @pytest.mark.asyncio
    async def test_availabilities_error(self):
        """Pricing failures raise AliasPricingError."""
        client = make_client(lambda request: httpx.Response(500, text="oops"))

        with pytest.raises(AliasPricingError) as exc_info:
            await client.get_availabilities("cat-1")

        assert exc_info.value.status == 500
