"""Integration tests for items, mark-sold and undo.

Requires PostgreSQL to be running: docker-compose up -d
"""

import datetime
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.features.fx.models import FxAuditLog
from app.features.inventory.models import InventoryItem
from app.features.inventory.schemas import InventoryItemCreate, MarkSoldRequest
from app.features.inventory.service import (
    create_item,
    list_sales,
    mark_sold,
    pnl_report,
    undo_sale,
)

pytestmark = pytest.mark.integration


@pytest.mark.asyncio
class TestMarkSoldIntegration:
    """mark_sold against PostgreSQL."""

    async def test_moves_item_into_sales(self, db_session: AsyncSession, gbp_settings) -> None:
        """The item becomes a sale, is deleted and the rate is audited."""
        item = await create_item(
            db_session,
            "owner-1",
            InventoryItemCreate(sku="dd1391-100", size="9", purchase_price=Decimal("100")),
        )
        payload = MarkSoldRequest(
            sold_price=Decimal("180.00"),
            sold_date=datetime.date(2024, 6, 3),
            platform="alias",
            fees=Decimal("12.00"),
        )

        with patch("app.features.inventory.service.get_settings", return_value=gbp_settings):
            response = await mark_sold(db_session, "owner-1", item.id, payload)

            with pytest.raises(NotFoundError):
                await mark_sold(db_session, "owner-1", item.id, payload)
            report = await pnl_report(db_session, "owner-1")

        assert response.success is True
        assert response.fx_info.fx_rate == Decimal(1)
        assert await db_session.get(InventoryItem, item.id) is None

        (sale,) = await list_sales(db_session, "owner-1")
        assert sale.original_item_id == item.id
        assert sale.sold_price_base == Decimal("180.00")

        audit = (await db_session.execute(select(FxAuditLog))).scalars().all()
        assert [a.record_id for a in audit] == [str(sale.id)]

        assert report.profit == Decimal("68.00")

    async def test_undo_restores_item_and_allows_resale(
        self, db_session: AsyncSession, gbp_settings
    ) -> None:
        """Undo puts the item back under its id; it can then be sold again."""
        item = await create_item(
            db_session,
            "owner-1",
            InventoryItemCreate(
                sku="DD1391-100",
                size="10",
                size_system="US",
                condition="worn",
                status="consigned",
                purchase_price=Decimal("90"),
            ),
        )
        item_id = item.id
        payload = MarkSoldRequest(sold_price=Decimal("150.00"), sold_date=datetime.date(2024, 6, 3))

        with patch("app.features.inventory.service.get_settings", return_value=gbp_settings):
            sold = await mark_sold(db_session, "owner-1", item_id, payload)
            undone = await undo_sale(db_session, "owner-1", sold.sale_id)

            restored = await db_session.get(InventoryItem, item_id)
            assert restored is not None
            assert (restored.condition, restored.status) == ("worn", "consigned")
            assert restored.size_uk == "9"
            assert restored.purchase_price == Decimal("90.00")
            assert await list_sales(db_session, "owner-1") == []

            resold = await mark_sold(db_session, "owner-1", item_id, payload)

        assert undone.item_id == item_id
        assert resold.already_sold is False
        amounts = (
            await db_session.execute(
                select(FxAuditLog.original_amount).order_by(FxAuditLog.id)
            )
        ).scalars().all()
        assert amounts == [Decimal("150.00"), Decimal("-150.00"), Decimal("150.00")]
