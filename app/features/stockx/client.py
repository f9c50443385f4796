"""StockX API client.

Authenticated HTTP access to the StockX v2 API with token handling and retries:
- Static token: ``STOCKX_ACCESS_TOKEN`` is used as-is when no user is given
- User tokens: loaded from ``stockx_accounts`` and refreshed shortly before expiry
- Client credentials: app-level token cached until shortly before expiry

Rate limits (429) wait for ``Retry-After``; 5xx and transport failures back off
exponentially. Other 4xx responses fail immediately.
"""

from __future__ import annotations

import asyncio
import datetime
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import session_scope
from app.core.exceptions import UpstreamServiceError
from app.core.logging import get_logger, mask_secret
from app.features.stockx.models import StockxAccount

logger = get_logger(__name__)

DEFAULT_TOKEN_LIFETIME_SECONDS = 3600
REFRESH_FAILED_MESSAGE = "Failed to refresh StockX token. Please reconnect your account."


class StockxError(UpstreamServiceError):
    """Base error for StockX calls."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, details={"provider": "stockx", **(details or {})})
        self.code = "STOCKX_ERROR"


class StockxAuthError(StockxError):
    """No usable StockX token could be obtained."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.code = "STOCKX_AUTH_ERROR"


class StockxAPIError(StockxError):
    """StockX answered with a non-success status."""

    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"StockX API error: {status}", details={"upstream_status": status})
        self.code = "STOCKX_API_ERROR"
        self.status = status
        self.body = body


class StockxTimeoutError(StockxError):
    """StockX did not answer within the request timeout."""


def _token_payload(response: httpx.Response, failure_message: str) -> dict[str, Any]:
    """Decode a token endpoint reply; anything without an access token is an auth failure."""
    try:
        data = response.json()
    except ValueError as e:
        logger.error("stockx.token_response_invalid", error="non-JSON body")
        raise StockxAuthError(failure_message) from e

    token = data.get("access_token") if isinstance(data, dict) else None
    if not isinstance(token, str) or not token:
        logger.error("stockx.token_response_invalid", error="missing access_token")
        raise StockxAuthError(failure_message)

    expires_in = data.get("expires_in")
    if not isinstance(expires_in, int | float) or isinstance(expires_in, bool) or expires_in <= 0:
        data["expires_in"] = DEFAULT_TOKEN_LIFETIME_SECONDS
    return data


class StockxClient:
    """Async StockX client for one user or for the application.

    Args:
        user_id: Owner of a connected account. None for app-level access.
        db: Session used for token storage. A fresh transactional session is
            opened per token operation when omitted.
        transport: Optional httpx transport (tests).
    """

    def __init__(
        self,
        user_id: str | None = None,
        db: AsyncSession | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = get_settings()
        self.user_id = user_id
        self._db = db
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        self._access_token: str | None = None
        self._refresh_token: str | None = None
        self._token_expires_at: datetime.datetime | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.stockx_api_base_url,
                timeout=httpx.Timeout(self.settings.stockx_request_timeout_seconds, connect=10.0),
                transport=self._transport,
            )
        return self._client

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        if self._db is not None:
            yield self._db
        else:
            async with session_scope() as session:
                yield session

    @staticmethod
    def _now() -> datetime.datetime:
        return datetime.datetime.now(datetime.UTC)

    def _expires_soon(self) -> bool:
        if self._token_expires_at is None:
            return True
        skew = datetime.timedelta(seconds=self.settings.stockx_token_refresh_skew_seconds)
        return self._token_expires_at <= self._now() + skew

    # =========================================================================
    # Tokens
    # =========================================================================

    async def _load_user_tokens(self) -> StockxAccount | None:
        async with self._session() as session:
            result = await session.execute(
                select(StockxAccount).where(StockxAccount.user_id == self.user_id)
            )
            return result.scalar_one_or_none()

    async def _refresh_user_token(self) -> None:
        """Exchange the refresh token and persist the new pair.

        Raises:
            StockxAuthError: If StockX rejects the refresh.
        """
        logger.info("stockx.token_refreshing", user_id=self.user_id)

        try:
            response = await self._get_client().post(
                self.settings.stockx_token_url,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": self._refresh_token or "",
                    "client_id": self.settings.stockx_client_id,
                    "client_secret": self.settings.stockx_client_secret,
                },
            )
        except httpx.HTTPError as e:
            logger.error("stockx.token_refresh_failed", user_id=self.user_id, error=str(e))
            raise StockxAuthError(REFRESH_FAILED_MESSAGE) from e

        if response.is_error:
            logger.error(
                "stockx.token_refresh_failed",
                user_id=self.user_id,
                status_code=response.status_code,
                error=response.text[:500],
            )
            raise StockxAuthError(REFRESH_FAILED_MESSAGE)

        data = _token_payload(response, REFRESH_FAILED_MESSAGE)
        self._access_token = data["access_token"]
        # Some grants do not rotate the refresh token
        self._refresh_token = data.get("refresh_token") or self._refresh_token
        expires_in = data["expires_in"]
        self._token_expires_at = self._now() + datetime.timedelta(seconds=expires_in)

        async with self._session() as session:
            await session.execute(
                update(StockxAccount)
                .where(StockxAccount.user_id == self.user_id)
                .values(
                    access_token=self._access_token,
                    refresh_token=self._refresh_token,
                    expires_at=self._token_expires_at,
                )
            )

        logger.info(
            "stockx.token_refreshed",
            user_id=self.user_id,
            token=mask_secret(self._access_token),
            expires_at=self._token_expires_at.isoformat(),
        )

    async def _request_app_token(self) -> None:
        logger.info("stockx.app_token_requesting")

        try:
            response = await self._get_client().post(
                self.settings.stockx_token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.settings.stockx_client_id,
                    "client_secret": self.settings.stockx_client_secret,
                },
            )
        except httpx.HTTPError as e:
            raise StockxAuthError(f"StockX OAuth failed: {e}") from e

        if response.is_error:
            logger.error(
                "stockx.app_token_failed",
                status_code=response.status_code,
                error=response.text[:500],
            )
            raise StockxAuthError(f"StockX OAuth failed: {response.status_code}")

        data = _token_payload(response, "StockX OAuth failed: invalid token response")
        self._access_token = data["access_token"]
        expires_in = data["expires_in"]
        self._token_expires_at = self._now() + datetime.timedelta(seconds=expires_in)

        logger.info(
            "stockx.app_token_obtained",
            expires_in=expires_in,
            token=mask_secret(self._access_token),
        )

    async def get_access_token(self) -> str:
        """Return a usable bearer token, refreshing when needed.

        Raises:
            StockxAuthError: If the user has no account or a refresh fails.
        """
        if self.user_id is None and self.settings.stockx_access_token:
            return self.settings.stockx_access_token

        if self.user_id is not None:
            if self._access_token is None:
                account = await self._load_user_tokens()
                if account is None:
                    logger.warning("stockx.account_missing", user_id=self.user_id)
                    raise StockxAuthError(
                        "User not connected to StockX. Please connect your account first."
                    )
                self._access_token = account.access_token
                self._refresh_token = account.refresh_token
                self._token_expires_at = account.expires_at

            if self._expires_soon():
                await self._refresh_user_token()

            assert self._access_token is not None
            return self._access_token

        if self._access_token is None or self._expires_soon():
            await self._request_app_token()

        assert self._access_token is not None
        return self._access_token

    # =========================================================================
    # Requests
    # =========================================================================

    def _rate_limit_wait(self, response: httpx.Response) -> float:
        default = self.settings.stockx_rate_limit_default_wait_seconds
        try:
            wait = float(response.headers.get("Retry-After", default))
        except ValueError:
            wait = default
        return min(wait, self.settings.stockx_rate_limit_max_wait_seconds)

    def _backoff(self, attempt: int) -> float:
        return min(
            self.settings.stockx_backoff_base_seconds * (2**attempt),
            self.settings.stockx_backoff_max_seconds,
        )

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        retries: int | None = None,
    ) -> Any:
        """Call a StockX endpoint with retries.

        Args:
            endpoint: Path relative to the API base URL.
            method: HTTP method.
            json: Optional JSON body.
            params: Optional query parameters.
            retries: Attempt count (defaults to settings).

        Returns:
            Decoded JSON body, or an empty dict for empty responses.

        Raises:
            StockxAuthError: If no token is available.
            StockxAPIError: On a non-retryable status or when retries run out.
            StockxTimeoutError: If the request times out.
        """
        retries = retries or self.settings.stockx_request_retries
        token = await self.get_access_token()

        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
        if self.settings.stockx_api_key:
            headers["x-api-key"] = self.settings.stockx_api_key

        logger.debug(
            "stockx.request_started",
            endpoint=endpoint,
            method=method,
            token=mask_secret(token),
        )

        client = self._get_client()
        last_error: StockxError | None = None

        for attempt in range(retries):
            has_next = attempt < retries - 1
            try:
                response = await client.request(
                    method, endpoint, json=json, params=params, headers=headers
                )
            except httpx.TimeoutException as e:
                logger.error("stockx.request_timeout", endpoint=endpoint)
                raise StockxTimeoutError(
                    f"StockX request timeout after "
                    f"{self.settings.stockx_request_timeout_seconds}s"
                ) from e
            except httpx.TransportError as e:
                last_error = StockxError(f"StockX transport error: {e}")
                if has_next:
                    wait = self._backoff(attempt)
                    logger.warning(
                        "stockx.request_retrying",
                        endpoint=endpoint,
                        attempt=attempt + 1,
                        retries=retries,
                        wait_seconds=wait,
                        error=str(e),
                    )
                    await asyncio.sleep(wait)
                continue

            if response.status_code == 429:
                last_error = StockxAPIError(429, response.text)
                if has_next:
                    wait = self._rate_limit_wait(response)
                    logger.warning(
                        "stockx.rate_limited",
                        endpoint=endpoint,
                        attempt=attempt + 1,
                        retries=retries,
                        wait_seconds=wait,
                    )
                    await asyncio.sleep(wait)
                continue

            if response.status_code >= 500:
                last_error = StockxAPIError(response.status_code, response.text)
                if has_next:
                    wait = self._backoff(attempt)
                    logger.warning(
                        "stockx.request_retrying",
                        endpoint=endpoint,
                        attempt=attempt + 1,
                        retries=retries,
                        wait_seconds=wait,
                        status_code=response.status_code,
                    )
                    await asyncio.sleep(wait)
                continue

            if response.is_error:
                logger.error(
                    "stockx.api_error",
                    endpoint=endpoint,
                    status_code=response.status_code,
                    error=response.text[:500],
                )
                raise StockxAPIError(response.status_code, response.text)

            logger.debug("stockx.request_succeeded", endpoint=endpoint, status=response.status_code)
            if not response.content:
                return {}
            return response.json()

        logger.error(
            "stockx.request_exhausted",
            endpoint=endpoint,
            retries=retries,
            error=str(last_error),
        )
        raise last_error or StockxError("StockX request failed")

    async def search_catalog(
        self, query: str, page_number: int = 1, page_size: int = 10
    ) -> dict[str, Any]:
        """Search the catalog by style code or name."""
        return await self.request(
            "/v2/catalog/search",
            params={"query": query, "pageNumber": page_number, "pageSize": page_size},
        )

    async def get_product(self, product_id: str) -> dict[str, Any]:
        return await self.request(f"/v2/catalog/products/{product_id}")

    async def get_variants(self, product_id: str) -> list[dict[str, Any]]:
        """All size variants of a product."""
        data = await self.request(f"/v2/catalog/products/{product_id}/variants")
        return data if isinstance(data, list) else []

    async def get_market_data(
        self, product_id: str, currency_code: str = "GBP"
    ) -> list[dict[str, Any]]:
        """Per-variant asks and bids for a product in ``currency_code``."""
        data = await self.request(
            f"/v2/catalog/products/{product_id}/market-data",
            params={"currencyCode": currency_code},
        )
        return data if isinstance(data, list) else []

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# Singleton instances for dependency injection
_user_clients: dict[str, StockxClient] = {}
_app_client: StockxClient | None = None


def get_stockx_client(user_id: str | None = None) -> StockxClient:
    """Get the cached client for a user, or the app-level client.

    Args:
        user_id: Account owner, or None for app-level access.

    Returns:
        StockxClient instance.
    """
    global _app_client
    if user_id is not None:
        if user_id not in _user_clients:
            _user_clients[user_id] = StockxClient(user_id=user_id)
        return _user_clients[user_id]

    if _app_client is None:
        _app_client = StockxClient()
    return _app_client


async def close_stockx_clients() -> None:
    """Close every cached client's HTTP connection pool."""
    for client in [*_user_clients.values(), *([_app_client] if _app_client else [])]:
        await client.close()


def reset_stockx_clients() -> None:
    """Drop cached clients.

    Useful for testing or reconfiguration.
    """
    global _app_client
    _user_clients.clear()
    _app_client = None
