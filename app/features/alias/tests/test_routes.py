"""Tests for Alias API routes."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from app.core.config import Settings
from app.features.alias.client import get_alias_client
from app.features.alias.schemas import WebhookResult
from app.features.alias.webhooks import compute_webhook_signature
from app.main import app

SECRET = "whsec_route_secret"
EVENT = {
    "id": "evt_100",
    "type": "listing.status.changed",
    "created_at": "2024-06-01T12:00:00Z",
    "data": {"listing_id": "l1", "new_status": "sold"},
}


def signed(body: dict | bytes, secret: str = SECRET) -> tuple[bytes, dict[str, str]]:
    raw = body if isinstance(body, bytes) else json.dumps(body).encode()
    return raw, {
        "x-alias-signature": compute_webhook_signature(raw, secret),
        "content-type": "application/json",
    }


@pytest.fixture
def webhook_settings():
    settings = Settings(_env_file=None, alias_webhook_secret=SECRET)
    with patch("app.features.alias.routes.get_settings", return_value=settings):
        yield settings


@pytest.fixture
def handlers():
    with (
        patch("app.features.alias.routes.record_webhook_event", new=AsyncMock()) as record,
        patch(
            "app.features.alias.routes.handle_webhook_event",
            new=AsyncMock(
                return_value=WebhookResult(status="success", message="Listing status updated")
            ),
        ) as handle,
    ):
        yield record, handle


class TestWebhookRoute:
    """Tests for POST /alias/webhooks."""

    @pytest.mark.asyncio
    async def test_valid_delivery(self, mocked_db_client, webhook_settings, handlers):
        """A signed event is recorded, handled and acknowledged."""
        record, handle = handlers
        raw, headers = signed(EVENT)

        response = await mocked_db_client.post("/alias/webhooks", content=raw, headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["received"] is True
        assert data["processed"] is True
        assert data["event_id"] == "evt_100"
        assert data["message"] == "Listing status updated"
        assert "duration_ms" in data
        record.assert_awaited_once()
        handle.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_alternate_signature_header(self, mocked_db_client, webhook_settings, handlers):
        """x-webhook-signature is accepted as well."""
        raw, headers = signed(EVENT)
        headers = {"x-webhook-signature": headers["x-alias-signature"]}

        response = await mocked_db_client.post("/alias/webhooks", content=raw, headers=headers)

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_missing_signature(self, mocked_db_client, webhook_settings, handlers):
        """No signature header is a 400."""
        response = await mocked_db_client.post("/alias/webhooks", json=EVENT)

        assert response.status_code == 400
        assert response.headers["content-type"].startswith("application/problem+json")

    @pytest.mark.asyncio
    async def test_invalid_signature(self, mocked_db_client, webhook_settings, handlers):
        """A signature made with another secret is a 401."""
        record, handle = handlers
        raw, headers = signed(EVENT, secret="wrong")

        response = await mocked_db_client.post("/alias/webhooks", content=raw, headers=headers)

        assert response.status_code == 401
        handle.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_secret_not_configured(self, mocked_db_client, handlers):
        """Missing secret configuration is a 500."""
        settings = Settings(_env_file=None, alias_webhook_secret="")
        raw, headers = signed(EVENT)
        with patch("app.features.alias.routes.get_settings", return_value=settings):
            response = await mocked_db_client.post(
                "/alias/webhooks", content=raw, headers=headers
            )

        assert response.status_code == 500
        assert response.json()["code"] == "CONFIGURATION_ERROR"

    @pytest.mark.asyncio
    async def test_webhooks_disabled(self, mocked_db_client, handlers):
        """Disabled integration is a 501."""
        settings = Settings(
            _env_file=None, alias_webhook_secret=SECRET, alias_webhooks_enabled=False
        )
        raw, headers = signed(EVENT)
        with patch("app.features.alias.routes.get_settings", return_value=settings):
            response = await mocked_db_client.post(
                "/alias/webhooks", content=raw, headers=headers
            )

        assert response.status_code == 501

    @pytest.mark.asyncio
    async def test_invalid_json(self, mocked_db_client, webhook_settings, handlers):
        """A signed but unparsable body is a 400."""
        raw, headers = signed(b"{not json")

        response = await mocked_db_client.post("/alias/webhooks", content=raw, headers=headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid JSON payload"

    @pytest.mark.asyncio
    async def test_incomplete_payload(self, mocked_db_client, webhook_settings, handlers):
        """Events without data are a 400."""
        raw, headers = signed({"id": "evt_1", "type": "order.created"})

        response = await mocked_db_client.post("/alias/webhooks", content=raw, headers=headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Incomplete webhook payload"

    @pytest.mark.asyncio
    async def test_handler_error_still_acknowledged(
        self, mocked_db_client, webhook_settings, handlers
    ):
        """Handler failures return 200 with processed=false."""
        _record, handle = handlers
        handle.side_effect = RuntimeError("db down")
        raw, headers = signed(EVENT)

        response = await mocked_db_client.post("/alias/webhooks", content=raw, headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["processed"] is False
        assert data["error"] == "db down"


class TestMatchRoutes:
    """Tests for /alias/match endpoints."""

    @pytest.fixture
    def alias_client(self):
        fake = AsyncMock()
        fake.search_catalog.return_value = {
            "catalog_items": [{"catalog_id": "c1", "sku": "DZ5485-612", "name": "AJ1"}]
        }
        app.dependency_overrides[get_alias_client] = lambda: fake
        yield fake
        app.dependency_overrides.clear()

    @pytest.mark.asyncio
    async def test_match(self, client, alias_client):
        """POST /alias/match returns the suggestion."""
        response = await client.post("/alias/match", json={"sku": "DZ5485-612"})

        assert response.status_code == 200
        data = response.json()
        assert data["catalog_id"] == "c1"
        assert data["match_method"] == "exact_sku"

    @pytest.mark.asyncio
    async def test_match_batch(self, client, alias_client):
        """POST /alias/match/batch counts high-confidence results."""
        with patch("app.features.alias.matching.asyncio.sleep", new=AsyncMock()):
            response = await client.post(
                "/alias/match/batch",
                json={"items": [{"sku": "DZ5485-612"}, {"product_name": None}]},
            )

        assert response.status_code == 200
        data = response.json()
        assert len(data["results"]) == 2
        assert data["high_confidence"] == 1
        assert data["results"][1]["match_method"] == "manual"

    @pytest.mark.asyncio
    async def test_match_batch_requires_items(self, client, alias_client):
        """Empty batches fail validation."""
        response = await client.post("/alias/match/batch", json={"items": []})

        assert response.status_code == 422
