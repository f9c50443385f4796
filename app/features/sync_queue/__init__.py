"""Per-style provider refresh queue with retry and backoff."""

from app.features.sync_queue.models import SyncJob, SyncJobStatus
from app.features.sync_queue.routes import router
from app.features.sync_queue.service import (
    derive_overall_status,
    enqueue_sync_job,
    get_style_sync_status,
    process_sync_batch,
    retry_sync,
)

__all__ = [
    "SyncJob",
    "SyncJobStatus",
    "derive_overall_status",
    "enqueue_sync_job",
    "get_style_sync_status",
    "process_sync_batch",
    "retry_sync",
    "router",
]
