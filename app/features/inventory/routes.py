"""API routes for inventory items, sales and P&L.

The caller is identified by the ``X-Owner-ID`` header.
"""

import datetime

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import BadRequestError
from app.core.logging import get_logger
from app.features.fx.schemas import Currency
from app.features.inventory import service
from app.features.inventory.schemas import (
    InventoryItemCreate,
    InventoryItemResponse,
    InventoryValuation,
    ItemStatus,
    MarkSoldRequest,
    MarkSoldResponse,
    PnlReport,
    SaleResponse,
    UndoSaleResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/inventory", tags=["inventory"])
sales_router = APIRouter(prefix="/sales", tags=["sales"])


def get_owner_id(
    x_owner_id: str = Header(..., alias="X-Owner-ID", min_length=1, max_length=64),
) -> str:
    """Owner of the request, taken from the X-Owner-ID header."""
    return x_owner_id.strip()


@router.post(
    "",
    response_model=InventoryItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add an inventory item",
)
async def create_item(
    payload: InventoryItemCreate,
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
) -> InventoryItemResponse:
    """The SKU is normalized and the size converted to UK."""
    item = await service.create_item(db, owner_id, payload)
    return InventoryItemResponse.model_validate(item)


@router.get(
    "",
    response_model=list[InventoryItemResponse],
    summary="List inventory items",
)
async def list_items(
    item_status: ItemStatus | None = Query(None, alias="status", description="Filter by status"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
) -> list[InventoryItemResponse]:
    items = await service.list_items(db, owner_id, status=item_status, limit=limit, offset=offset)
    return [InventoryItemResponse.model_validate(item) for item in items]


@router.get(
    "/valuation",
    response_model=InventoryValuation,
    summary="Value unsold items at market prices",
    description="""
Values every item the caller holds against the latest stored StockX and Alias
asks for its style and UK size.

Quotes are reconciled per item: the category's trusted provider is used when it
quoted, otherwise the median of all quotes. Items without market data count
toward `total_cost` but not toward `total_market_value` or `unrealized_profit`.
""",
)
async def get_valuation(
    currency: Currency | None = Query(None, description="Valuation currency"),
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
) -> InventoryValuation:
    return await service.get_inventory_valuation(db, owner_id, currency)


@router.get(
    "/{item_id}",
    response_model=InventoryItemResponse,
    summary="Get an inventory item",
)
async def get_item(
    item_id: int,
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
) -> InventoryItemResponse:
    item = await service.get_item(db, owner_id, item_id)
    return InventoryItemResponse.model_validate(item)


@router.post(
    "/{item_id}/mark-sold",
    response_model=MarkSoldResponse,
    summary="Move an item into sales",
    description="""
Writes a sale with a snapshot of the FX rate from the sale currency to the base
currency on `sold_date`, then deletes the item and its marketplace listings.

**Idempotent:** when the item already has a sale the response has
`already_sold: true` and nothing changes.

If no rate can be loaded the sale is stored at a rate of `1`.
""",
)
async def mark_sold(
    item_id: int,
    payload: MarkSoldRequest,
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
) -> MarkSoldResponse:
    return await service.mark_sold(db, owner_id, item_id, payload)


@sales_router.get(
    "",
    response_model=list[SaleResponse],
    summary="List sales",
)
async def list_sales(
    start: datetime.date | None = Query(None, description="First sale date (inclusive)"),
    end: datetime.date | None = Query(None, description="Last sale date (inclusive)"),
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
) -> list[SaleResponse]:
    sales = await service.list_sales(db, owner_id, start, end)
    return [SaleResponse.model_validate(sale) for sale in sales]


@sales_router.get(
    "/pnl",
    response_model=PnlReport,
    summary="Realised profit and loss",
)
async def get_pnl(
    start: datetime.date | None = Query(None, description="First sale date (inclusive)"),
    end: datetime.date | None = Query(None, description="Last sale date (inclusive)"),
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
) -> PnlReport:
    """Revenue, cost, fees and profit in base currency, with a per-platform split."""
    if start is not None and end is not None and start > end:
        raise BadRequestError("start must be on or before end")
    return await service.pnl_report(db, owner_id, start, end)


@sales_router.post(
    "/{sale_id}/undo",
    response_model=UndoSaleResponse,
    summary="Undo a sale",
    description="""
Restores the sold item to inventory under its original id and deletes the sale.
Condition, status and purchase details come from the copy kept on the sale.

Returns `409` when an item with that id is already in inventory.
""",
)
async def undo_sale(
    sale_id: int,
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
) -> UndoSaleResponse:
    return await service.undo_sale(db, owner_id, sale_id)
