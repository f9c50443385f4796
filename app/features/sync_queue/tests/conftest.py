"""Fixtures for sync queue tests."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.features.market.models import StyleCatalog
from app.features.sync_queue.models import SyncJob


def _job(job_id: int = 1, provider: str = "stockx", attempts: int = 1, **kwargs) -> SyncJob:
    """Unsaved job in the processing state."""
    values = {
        "style_id": "DD1391-100",
        "status": "processing",
        "max_attempts": 3,
        "last_error": None,
        "next_retry_at": None,
        "started_at": None,
        "completed_at": None,
    }
    values.update(kwargs)
    return SyncJob(id=job_id, provider=provider, attempts=attempts, **values)


@pytest.fixture
def make_job():
    """Factory for unsaved jobs: make_job(job_id, provider, attempts, **columns)."""
    return _job


@pytest.fixture
def queue_settings():
    """Patch the queue's settings with defaults."""
    settings = Settings(_env_file=None)
    with patch("app.features.sync_queue.service.get_settings", return_value=settings):
        yield settings


@pytest.fixture
def queue_session():
    """AsyncSession mock whose queries return no rows."""
    session = AsyncMock(spec=AsyncSession)
    session.add = MagicMock()
    empty = MagicMock()
    empty.scalar_one_or_none.return_value = None
    empty.scalars.return_value.all.return_value = []
    empty.all.return_value = []
    session.execute.return_value = empty
    return session


@pytest.fixture
def style() -> StyleCatalog:
    """A style mapped to StockX only."""
    return StyleCatalog(
        style_id="DD1391-100",
        brand=None,
        name=None,
        colorway=None,
        category=None,
        stockx_product_id="sx-prod-1",
        alias_catalog_id=None,
    )
