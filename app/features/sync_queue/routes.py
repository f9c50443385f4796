"""API routes for the market sync queue."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging import get_logger
from app.features.sync_queue import service
from app.features.sync_queue.schemas import (
    ProcessBatchRequest,
    RetrySyncRequest,
    RetrySyncResponse,
    StyleSyncStatus,
    SyncBatchResult,
    SyncQueueStats,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get(
    "/styles/{style_id}",
    response_model=StyleSyncStatus,
    summary="Get a style's sync status",
)
async def get_style_status(
    style_id: str,
    db: AsyncSession = Depends(get_db),
) -> StyleSyncStatus:
    """Provider and overall status; unknown styles report `not_mapped`."""
    return await service.get_style_sync_status(db, style_id)


@router.post(
    "/styles/{style_id}",
    response_model=RetrySyncResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue a market refresh for a style",
    description="""
Queues a refresh job per provider. Providers already processing or completed are
skipped, and a pending job is reused rather than duplicated.

Alias can only be queued once the style has an `alias_catalog_id`; otherwise an
entry is added to `errors`. StockX resolves the product by style code if needed.
""",
)
async def retry_style_sync(
    style_id: str,
    payload: RetrySyncRequest | None = None,
    db: AsyncSession = Depends(get_db),
) -> RetrySyncResponse:
    return await service.retry_sync(db, style_id, payload.provider if payload else None)


@router.post(
    "/process",
    response_model=SyncBatchResult,
    summary="Process a batch of due sync jobs",
    description="""
Claims due jobs with `FOR UPDATE SKIP LOCKED` and runs them one at a time with a
short pause between jobs. The claim and each job result are committed
separately. Jobs left `processing` for more than 5 minutes by a dead worker are
recovered through the normal retry path. Failed jobs are retried after 2, 4,
8... minutes (capped at 30) until `max_attempts` is reached.

Intended for a scheduler or the `scripts/run_sync_worker.py` loop.
""",
)
async def process_batch(
    payload: ProcessBatchRequest | None = None,
    db: AsyncSession = Depends(get_db),
) -> SyncBatchResult:
    return await service.process_sync_batch(db, payload.limit if payload else None)


@router.get(
    "/stats",
    response_model=SyncQueueStats,
    summary="Queue counts by status",
)
async def get_stats(db: AsyncSession = Depends(get_db)) -> SyncQueueStats:
    return await service.get_queue_stats(db)
