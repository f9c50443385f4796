"""Inventory items, sales with FX snapshots, P&L and valuation."""

from app.features.inventory.models import InventoryItem, Sale
from app.features.inventory.routes import router, sales_router
from app.features.inventory.service import (
    get_inventory_valuation,
    map_condition_for_sale,
    mark_sold,
    pnl_report,
)

__all__ = [
    "InventoryItem",
    "Sale",
    "get_inventory_valuation",
    "map_condition_for_sale",
    "mark_sold",
    "pnl_report",
    "router",
    "sales_router",
]
