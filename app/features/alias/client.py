"""Alias (GOAT) API client.

Personal-access-token authentication against the Alias v1 API. Prices in
Alias responses are USD cents encoded as strings.
"""

from __future__ import annotations

from typing import Any

import httpx

from app.core.config import get_settings
from app.core.exceptions import UpstreamServiceError
from app.core.logging import get_logger

logger = get_logger(__name__)


class AliasAPIError(UpstreamServiceError):
    """Alias answered with a non-success status."""

    def __init__(self, message: str, status: int | None = None, body: str | None = None) -> None:
        super().__init__(message=message, details={"provider": "alias", "upstream_status": status})
        self.code = "ALIAS_API_ERROR"
        self.status = status
        self.body = body

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


class AliasAuthenticationError(AliasAPIError):
    """No personal access token, or Alias rejected it."""

    def __init__(self, message: str = "Personal Access Token (PAT) is required") -> None:
        super().__init__(message, status=401)
        self.code = "ALIAS_AUTH_ERROR"


class AliasCatalogNotFoundError(AliasAPIError):
    """Catalog id does not exist on Alias."""

    def __init__(self, catalog_id: str) -> None:
        super().__init__(f"Catalog item not found: {catalog_id}", status=404)
        self.code = "NOT_FOUND"
        self.status_code = 404
        self.catalog_id = catalog_id


class AliasPricingError(AliasAPIError):
    """Pricing insights could not be fetched."""

    def __init__(self, message: str, status: int | None = None, body: str | None = None) -> None:
        super().__init__(message, status=status, body=body)
        self.code = "ALIAS_PRICING_ERROR"


class AliasClient:
    """Async Alias API client.

    Args:
        pat: Personal access token. Defaults to ``ALIAS_PAT``.
        transport: Optional httpx transport (tests).

    Raises:
        AliasAuthenticationError: If no token is available.
    """

    def __init__(
        self,
        pat: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = get_settings()
        pat = pat if pat is not None else self.settings.alias_pat
        if not pat or not pat.strip():
            raise AliasAuthenticationError()
        self._pat = pat.strip()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.alias_api_base_url,
                timeout=httpx.Timeout(30.0, connect=10.0),
                headers={"Authorization": f"Bearer {self._pat}"},
                transport=self._transport,
            )
        return self._client

    async def _request(
        self,
        endpoint: str,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = await self._get_client().request(method, endpoint, params=params, json=json)

        if response.is_error:
            body = response.text
            message = f"Alias API error: {response.status_code}"
            try:
                parsed = response.json()
                if isinstance(parsed, dict) and parsed.get("message"):
                    message = str(parsed["message"])
            except ValueError:
                pass
            logger.error(
                "alias.api_error",
                endpoint=endpoint,
                status_code=response.status_code,
                error=body[:500],
            )
            if response.status_code == 401:
                raise AliasAuthenticationError(message)
            raise AliasAPIError(message, status=response.status_code, body=body)

        if "application/json" not in response.headers.get("content-type", ""):
            return {}
        try:
            data = response.json()
        except ValueError:
            logger.warning("alias.invalid_json", endpoint=endpoint, body=response.text[:200])
            return {}
        if not isinstance(data, dict):
            logger.warning(
                "alias.unexpected_body", endpoint=endpoint, body_type=type(data).__name__
            )
            return {}
        return data

    async def test(self) -> dict[str, Any]:
        """Verify the token is accepted."""
        return await self._request("/test")

    async def list_regions(self) -> dict[str, Any]:
        return await self._request("/regions")

    async def search_catalog(
        self,
        query: str,
        limit: int | None = None,
        pagination_token: str | None = None,
    ) -> dict[str, Any]:
        """Search the catalog by SKU or name.

        Returns:
            ``{"catalog_items": [...], "next_pagination_token": ..., "has_more": bool}``
        """
        params: dict[str, Any] = {"query": query}
        if limit:
            params["limit"] = limit
        if pagination_token:
            params["pagination_token"] = pagination_token
        return await self._request("/catalog", params=params)

    async def get_catalog_item(self, catalog_id: str) -> dict[str, Any]:
        """Fetch one catalog item.

        Raises:
            AliasCatalogNotFoundError: If the id is unknown.
        """
        try:
            return await self._request(f"/catalog/{catalog_id}")
        except AliasAPIError as e:
            if e.is_not_found:
                raise AliasCatalogNotFoundError(catalog_id) from e
            raise

    async def get_availabilities(
        self,
        catalog_id: str,
        region_id: str | None = None,
        consigned: bool | None = None,
    ) -> dict[str, Any]:
        """Pricing insights for every size and condition of a catalog item.

        Args:
            catalog_id: Alias catalog id.
            region_id: Region filter; omitted means global.
            consigned: Consignment filter.

        Returns:
            ``{"variants": [...]}`` with prices in cents.

        Raises:
            AliasPricingError: If Alias rejects the request.
        """
        params: dict[str, Any] = {}
        if region_id is not None:
            params["region_id"] = region_id
        if consigned is not None:
            params["consigned"] = str(consigned).lower()

        try:
            return await self._request(
                f"/pricing_insights/availabilities/{catalog_id}", params=params
            )
        except AliasAuthenticationError:
            raise
        except AliasAPIError as e:
            raise AliasPricingError(e.message, status=e.status, body=e.body) from e

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


_alias_client: AliasClient | None = None


def get_alias_client() -> AliasClient:
    """Get singleton Alias client built from settings.

    Raises:
        AliasAuthenticationError: If ALIAS_PAT is not configured.
    """
    global _alias_client
    if _alias_client is None:
        _alias_client = AliasClient()
    return _alias_client


async def close_alias_client() -> None:
    if _alias_client is not None:
        await _alias_client.close()


def reset_alias_client() -> None:
    """Reset the singleton client.

    Useful for testing or reconfiguration.
    """
    global _alias_client
    _alias_client = None
