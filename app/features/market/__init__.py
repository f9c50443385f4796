"""Style catalog and per-provider market snapshots."""

from app.features.market.models import MarketSnapshot, StyleCatalog
from app.features.market.routes import router
from app.features.market.service import (
    build_unified_market,
    get_style,
    sync_alias_style,
    sync_stockx_style,
    upsert_market_snapshot,
)

__all__ = [
    "MarketSnapshot",
    "StyleCatalog",
    "build_unified_market",
    "get_style",
    "router",
    "sync_alias_style",
    "sync_stockx_style",
    "upsert_market_snapshot",
]
