"""StockX API access: tokens, retries and catalog/market calls."""

from app.features.stockx.client import (
    StockxAPIError,
    StockxAuthError,
    StockxClient,
    StockxError,
    StockxTimeoutError,
    close_stockx_clients,
    get_stockx_client,
    reset_stockx_clients,
)
from app.features.stockx.models import StockxAccount

__all__ = [
    "StockxAPIError",
    "StockxAccount",
    "StockxAuthError",
    "StockxClient",
    "StockxError",
    "StockxTimeoutError",
    "close_stockx_clients",
    "get_stockx_client",
    "reset_stockx_clients",
]
