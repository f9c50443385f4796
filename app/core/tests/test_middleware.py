"""Tests for request middleware."""

import pytest


class TestRequestIdMiddleware:
    """Tests for X-Request-ID propagation."""

    @pytest.mark.asyncio
    async def test_generates_uuid(self, client):
        """A missing request id is generated as a UUID."""
        response = await client.get("/health")

        assert len(response.headers["X-Request-ID"]) == 36

    @pytest.mark.asyncio
    async def test_unique_per_request(self, client):
        """Each request without an id gets its own."""
        first = await client.get("/health")
        second = await client.get("/health")

        assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_present_on_problem_responses(self, mocked_db_client):
        """Error responses carry the request id too."""
        response = await mocked_db_client.get(
            "/market/DD1391-100?currency=JPY", headers={"X-Request-ID": "req-404"}
        )

        assert response.status_code == 422
        assert response.headers["X-Request-ID"] == "req-404"
