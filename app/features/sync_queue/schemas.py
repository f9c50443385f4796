"""Pydantic schemas for the sync queue endpoints."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.features.market.schemas import Provider

ProviderSyncStatus = Literal["not_mapped", "pending", "processing", "completed", "failed"]
OverallSyncStatus = Literal["ready", "syncing", "partial", "failed", "not_mapped"]


# =============================================================================
# Jobs
# =============================================================================


class SyncJobResponse(BaseModel):
    """A queued provider refresh."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    style_id: str
    provider: Provider
    status: str
    attempts: int
    max_attempts: int
    last_error: str | None = None
    next_retry_at: datetime | None = None
    last_attempt_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None


# =============================================================================
# Style status
# =============================================================================


class StyleSyncStatus(BaseModel):
    """Per-provider and overall sync state of one style.

    **overall_status** values:
    - `ready`: both providers completed
    - `syncing`: a job is pending or processing
    - `partial`: only one provider has data
    - `failed`: a provider failed and nothing is in flight
    - `not_mapped`: neither provider is mapped
    """

    style_id: str
    stockx_status: ProviderSyncStatus
    alias_status: ProviderSyncStatus
    overall_status: OverallSyncStatus
    stockx_job: SyncJobResponse | None = None
    alias_job: SyncJobResponse | None = None


# =============================================================================
# Retry
# =============================================================================


class RetrySyncRequest(BaseModel):
    """Request body for re-queueing a style."""

    provider: Provider | None = Field(
        None, description="Provider to refresh. Omit to refresh both."
    )


class CreatedSyncJob(BaseModel):
    id: int
    provider: Provider


class RetrySyncResponse(BaseModel):
    """Jobs queued by a retry request."""

    style_id: str
    jobs_created: list[CreatedSyncJob] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


# =============================================================================
# Processing
# =============================================================================


class ProcessBatchRequest(BaseModel):
    limit: int | None = Field(
        None, ge=1, le=100, description="Jobs to claim (defaults to the configured batch size)."
    )


class SyncJobError(BaseModel):
    job_id: int
    style_id: str
    provider: Provider
    error: str


class SyncBatchResult(BaseModel):
    """Outcome of one worker batch."""

    processed: int = 0
    successful: int = 0
    failed: int = 0
    errors: list[SyncJobError] = Field(default_factory=list)
    recovered: int = Field(0, description="Stale processing jobs returned to the queue.")


class SyncQueueStats(BaseModel):
    """Job counts by status."""

    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0
