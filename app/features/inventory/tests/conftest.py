"""Fixtures for inventory tests."""

import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.features.inventory.models import InventoryItem, Sale

OWNER = "owner-1"


@pytest.fixture
def owner_headers() -> dict[str, str]:
    return {"X-Owner-ID": OWNER}


@pytest.fixture
def gbp_settings() -> Settings:
    """Settings with GBP as the base currency."""
    return Settings(_env_file=None, base_currency="GBP")


@pytest.fixture
def item() -> InventoryItem:
    """A deadstock pair bought in GBP."""
    return InventoryItem(
        id=7,
        owner_id=OWNER,
        sku="DD1391-100",
        brand="Nike",
        model="Dunk Low Panda",
        colorway="White/Black",
        size_uk="9",
        condition="deadstock",
        purchase_price=Decimal("100.00"),
        purchase_currency="GBP",
        purchase_date=datetime.date(2024, 5, 1),
        status="active",
        notes=None,
        created_at=datetime.datetime(2024, 5, 1, 9, tzinfo=datetime.UTC),
    )


@pytest.fixture
def sale_session():
    """AsyncSession mock that assigns id 42 to a flushed Sale.

    ``session.added`` collects everything passed to ``add``.
    """
    session = AsyncMock(spec=AsyncSession)
    session.added = []
    session.add = MagicMock(side_effect=session.added.append)

    async def assign_ids():
        for obj in session.added:
            if isinstance(obj, Sale) and obj.id is None:
                obj.id = 42

    session.flush.side_effect = assign_ids
    lookup = MagicMock()
    lookup.scalar_one_or_none.return_value = None
    session.execute.return_value = lookup
    return session
