"""Service layer for the per-style provider sync queue.

Jobs are claimed with ``FOR UPDATE SKIP LOCKED`` so several workers can drain
the queue without taking the same row. Failed attempts are retried with
exponential backoff until ``max_attempts`` is reached.
"""

from __future__ import annotations

import asyncio
import datetime
from collections.abc import Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import NotFoundError
from app.core.logging import get_logger
from app.features.alias.client import AliasClient
from app.features.market.models import StyleCatalog
from app.features.market.schemas import Provider
from app.features.market.service import (
    backfill_style_metadata,
    get_style,
    has_snapshots,
    normalize_style_id,
    sync_alias_style,
    sync_stockx_style,
)
from app.features.stockx.client import StockxClient
from app.features.sync_queue.models import SyncJob, SyncJobStatus
from app.features.sync_queue.schemas import (
    CreatedSyncJob,
    OverallSyncStatus,
    ProviderSyncStatus,
    RetrySyncResponse,
    StyleSyncStatus,
    SyncBatchResult,
    SyncJobError,
    SyncJobResponse,
    SyncQueueStats,
)

logger = get_logger(__name__)

PROVIDERS: tuple[Provider, ...] = ("stockx", "alias")
IN_FLIGHT = (SyncJobStatus.PENDING.value, SyncJobStatus.PROCESSING.value)
STALE_ERROR = "Processing timed out; worker did not report a result"


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


# =============================================================================
# Queue operations
# =============================================================================


async def enqueue_sync_job(db: AsyncSession, style_id: str, provider: Provider) -> int:
    """Queue a refresh unless one is already pending.

    Returns:
        Id of the new job, or of the pending job that already covers it.
    """
    style_id = normalize_style_id(style_id)
    settings = get_settings()
    stmt = (
        pg_insert(SyncJob)
        .values(
            style_id=style_id,
            provider=provider,
            status=SyncJobStatus.PENDING.value,
            attempts=0,
            max_attempts=settings.sync_max_attempts,
        )
        .on_conflict_do_nothing(
            index_elements=["style_id", "provider"],
            index_where=SyncJob.status == SyncJobStatus.PENDING.value,
        )
        .returning(SyncJob.id)
    )
    job_id = (await db.execute(stmt)).scalar_one_or_none()
    if job_id is not None:
        logger.info("sync_queue.job_enqueued", job_id=job_id, style_id=style_id, provider=provider)
        return job_id

    existing = select(SyncJob.id).where(
        SyncJob.style_id == style_id,
        SyncJob.provider == provider,
        SyncJob.status == SyncJobStatus.PENDING.value,
    )
    job_id = (await db.execute(existing)).scalar_one()
    logger.debug("sync_queue.job_deduplicated", job_id=job_id, style_id=style_id)
    return job_id


async def fetch_pending_jobs(db: AsyncSession, limit: int) -> list[SyncJob]:
    """Claim up to ``limit`` due jobs and mark them processing.

    Rows locked by another worker are skipped.
    """
    now = _now()
    stmt = (
        select(SyncJob)
        .where(
            SyncJob.status == SyncJobStatus.PENDING.value,
            or_(SyncJob.next_retry_at.is_(None), SyncJob.next_retry_at <= now),
        )
        .order_by(SyncJob.created_at, SyncJob.id)
        .limit(limit)
        .with_for_update(skip_locked=True)
    )
    jobs = list((await db.execute(stmt)).scalars().all())

    for job in jobs:
        job.status = SyncJobStatus.PROCESSING.value
        job.attempts += 1
        job.last_attempt_at = now
        if job.started_at is None:
            job.started_at = now
    if jobs:
        await db.flush()
        logger.info("sync_queue.jobs_claimed", count=len(jobs))
    return jobs


async def mark_job_completed(db: AsyncSession, job: SyncJob) -> None:
    job.status = SyncJobStatus.COMPLETED.value
    job.last_error = None
    job.next_retry_at = None
    job.completed_at = _now()
    await db.flush()
    logger.info("sync_queue.job_completed", job_id=job.id, style_id=job.style_id)


def retry_delay(attempts: int) -> datetime.timedelta:
    """Backoff before the next attempt: 2^attempts minutes, capped."""
    cap = get_settings().sync_retry_backoff_max_minutes
    return datetime.timedelta(minutes=min(2**attempts, cap))


async def _has_other_pending(db: AsyncSession, job: SyncJob) -> bool:
    stmt = select(SyncJob.id).where(
        SyncJob.style_id == job.style_id,
        SyncJob.provider == job.provider,
        SyncJob.status == SyncJobStatus.PENDING.value,
        SyncJob.id != job.id,
    )
    return (await db.execute(stmt.limit(1))).scalar_one_or_none() is not None


async def mark_job_failed(db: AsyncSession, job: SyncJob, error: str) -> str:
    """Record a failed attempt and schedule a retry if attempts remain.

    A job that was re-queued while it ran is failed outright, since only one
    pending job may exist per style and provider.

    Returns:
        The job's new status.
    """
    now = _now()
    job.last_error = error[: get_settings().sync_error_max_length]

    if job.attempts >= job.max_attempts or await _has_other_pending(db, job):
        job.status = SyncJobStatus.FAILED.value
        job.next_retry_at = None
        job.completed_at = now
    else:
        job.status = SyncJobStatus.PENDING.value
        job.next_retry_at = now + retry_delay(job.attempts)

    await db.flush()
    logger.warning(
        "sync_queue.job_failed",
        job_id=job.id,
        style_id=job.style_id,
        provider=job.provider,
        attempts=job.attempts,
        status=job.status,
        next_retry_at=job.next_retry_at.isoformat() if job.next_retry_at else None,
    )
    return job.status


async def recover_stale_jobs(
    db: AsyncSession, stale_after: datetime.timedelta | None = None
) -> int:
    """Put jobs left in ``processing`` by a dead worker back through the retry path.

    A job whose last attempt started more than ``sync_stale_after_minutes`` ago
    counts as a failed attempt: it is rescheduled with backoff, or failed once
    its attempts are used up.

    Returns:
        Number of jobs recovered.
    """
    if stale_after is None:
        stale_after = datetime.timedelta(minutes=get_settings().sync_stale_after_minutes)
    stmt = (
        select(SyncJob)
        .where(
            SyncJob.status == SyncJobStatus.PROCESSING.value,
            SyncJob.last_attempt_at < _now() - stale_after,
        )
        .order_by(SyncJob.id)
        .with_for_update(skip_locked=True)
    )
    jobs = list((await db.execute(stmt)).scalars().all())

    for job in jobs:
        await mark_job_failed(db, job, STALE_ERROR)
    if jobs:
        logger.warning(
            "sync_queue.stale_jobs_recovered",
            count=len(jobs),
            job_ids=[job.id for job in jobs],
        )
    return len(jobs)


# =============================================================================
# Status
# =============================================================================


def derive_overall_status(
    stockx: ProviderSyncStatus, alias: ProviderSyncStatus
) -> OverallSyncStatus:
    """Combine both provider states into one style state."""
    statuses = (stockx, alias)
    if any(s in IN_FLIGHT for s in statuses):
        return "syncing"
    if stockx == alias == "completed":
        return "ready"
    if stockx == alias == "not_mapped":
        return "not_mapped"
    if "completed" in statuses:
        return "partial"
    if "failed" in statuses:
        return "failed"
    return "partial"


def _is_mapped(style: StyleCatalog, provider: Provider) -> bool:
    if provider == "stockx":
        return bool(style.stockx_product_id)
    return bool(style.alias_catalog_id)


async def latest_jobs(db: AsyncSession, style_id: str) -> dict[str, SyncJob]:
    """Most recent job per provider for a style."""
    stmt = (
        select(SyncJob)
        .where(SyncJob.style_id == style_id)
        .order_by(SyncJob.created_at.desc(), SyncJob.id.desc())
    )
    latest: dict[str, SyncJob] = {}
    for job in (await db.execute(stmt)).scalars():
        latest.setdefault(job.provider, job)
    return latest


async def _provider_status(
    db: AsyncSession, style: StyleCatalog, provider: Provider, job: SyncJob | None
) -> ProviderSyncStatus:
    if job is not None:
        return job.status  # type: ignore[return-value]
    if not _is_mapped(style, provider):
        return "not_mapped"
    if await has_snapshots(db, style.style_id, provider):
        return "completed"
    return "pending"


async def _style_status(db: AsyncSession, style: StyleCatalog) -> StyleSyncStatus:
    jobs = await latest_jobs(db, style.style_id)
    stockx = await _provider_status(db, style, "stockx", jobs.get("stockx"))
    alias = await _provider_status(db, style, "alias", jobs.get("alias"))

    def as_response(job: SyncJob | None) -> SyncJobResponse | None:
        return SyncJobResponse.model_validate(job) if job is not None else None

    return StyleSyncStatus(
        style_id=style.style_id,
        stockx_status=stockx,
        alias_status=alias,
        overall_status=derive_overall_status(stockx, alias),
        stockx_job=as_response(jobs.get("stockx")),
        alias_job=as_response(jobs.get("alias")),
    )


async def get_style_sync_status(db: AsyncSession, style_id: str) -> StyleSyncStatus:
    """Sync state of a style; unknown styles report not_mapped."""
    style_id = normalize_style_id(style_id)
    style = await get_style(db, style_id)
    if style is None:
        return StyleSyncStatus(
            style_id=style_id,
            stockx_status="not_mapped",
            alias_status="not_mapped",
            overall_status="not_mapped",
        )
    return await _style_status(db, style)


async def retry_sync(
    db: AsyncSession, style_id: str, provider: Provider | None = None
) -> RetrySyncResponse:
    """Queue refreshes for a style's providers.

    Providers that are processing or completed are left alone. Alias can only
    be queued once the style has an Alias catalog id.

    Raises:
        NotFoundError: If the style is not in the catalog.
    """
    style_id = normalize_style_id(style_id)
    style = await get_style(db, style_id)
    if style is None:
        raise NotFoundError(
            f"Style {style_id} not found in catalog", details={"style_id": style_id}
        )

    status = await _style_status(db, style)
    current = {"stockx": status.stockx_status, "alias": status.alias_status}
    response = RetrySyncResponse(style_id=style_id)

    for name in [provider] if provider else PROVIDERS:
        if current[name] in (SyncJobStatus.PROCESSING.value, SyncJobStatus.COMPLETED.value):
            continue
        if name == "alias" and not style.alias_catalog_id:
            if current[name] == "not_mapped":
                response.errors.append(f"Style {style_id} is not mapped to Alias")
            continue
        job_id = await enqueue_sync_job(db, style_id, name)
        response.jobs_created.append(CreatedSyncJob(id=job_id, provider=name))

    logger.info(
        "sync_queue.retry_requested",
        style_id=style_id,
        provider=provider,
        jobs_created=len(response.jobs_created),
        errors=len(response.errors),
    )
    return response


# =============================================================================
# Worker
# =============================================================================


async def process_job(
    db: AsyncSession,
    job: SyncJob,
    stockx_client: StockxClient | None = None,
    alias_client: AliasClient | None = None,
) -> str | None:
    """Run one claimed job.

    Provider writes happen in a savepoint so a failed sync leaves no partial
    snapshots behind.

    Returns:
        None on success, otherwise the error message.
    """
    style = await get_style(db, job.style_id)
    if style is None:
        error = f"Style {job.style_id} not found in catalog"
        await mark_job_failed(db, job, error)
        return error

    try:
        async with db.begin_nested():
            if job.provider == "stockx":
                result = await sync_stockx_style(db, style, client=stockx_client)
            else:
                result = await sync_alias_style(db, style, client=alias_client)
            await backfill_style_metadata(db, style, result.metadata)
    except Exception as e:
        logger.error(
            "sync_queue.job_error",
            job_id=job.id,
            style_id=job.style_id,
            provider=job.provider,
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        await mark_job_failed(db, job, str(e) or type(e).__name__)
        return str(e) or type(e).__name__

    await mark_job_completed(db, job)
    return None


async def process_sync_batch(
    db: AsyncSession,
    limit: int | None = None,
    stockx_client: StockxClient | None = None,
    alias_client: AliasClient | None = None,
) -> SyncBatchResult:
    """Claim a batch of due jobs and run them one after another.

    Stale ``processing`` jobs are recovered first. The claim is committed
    before any provider call so other workers and status readers see the jobs
    as processing, and each job's outcome is committed on its own. A job whose
    commit fails stays ``processing`` until stale recovery picks it up.

    Waits ``sync_job_delay_seconds`` between jobs to stay under provider rate
    limits.
    """
    settings = get_settings()
    result = SyncBatchResult()
    result.recovered = await recover_stale_jobs(db)
    jobs: Sequence[SyncJob] = await fetch_pending_jobs(db, limit or settings.sync_batch_limit)
    await db.commit()

    # Rollback expires every loaded instance, so keep identifiers up front.
    claimed = [(job, job.id, job.style_id, job.provider) for job in jobs]
    expired = False

    for index, (job, job_id, style_id, provider) in enumerate(claimed):
        if expired:
            await db.refresh(job)
            expired = False
        try:
            error = await process_job(db, job, stockx_client, alias_client)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            expired = True
            logger.error(
                "sync_queue.job_commit_failed",
                job_id=job_id,
                style_id=style_id,
                provider=provider,
                error=str(e),
                exc_info=True,
            )
            error = f"Result not saved: {type(e).__name__}"

        result.processed += 1
        if error is None:
            result.successful += 1
        else:
            result.failed += 1
            result.errors.append(
                SyncJobError(job_id=job_id, style_id=style_id, provider=provider, error=error)
            )
        if index < len(claimed) - 1:
            await asyncio.sleep(settings.sync_job_delay_seconds)

    logger.info(
        "sync_queue.batch_processed",
        processed=result.processed,
        successful=result.successful,
        failed=result.failed,
        recovered=result.recovered,
    )
    return result


async def get_queue_stats(db: AsyncSession) -> SyncQueueStats:
    stmt = select(SyncJob.status, func.count()).group_by(SyncJob.status)
    counts = {status.value: 0 for status in SyncJobStatus}
    for status, count in (await db.execute(stmt)).all():
        counts[status] = count
    return SyncQueueStats(**counts, total=sum(counts.values()))
