"""Sync job ORM model.

One row per requested refresh of a style's market data from one provider.
Workers claim pending rows with ``FOR UPDATE SKIP LOCKED``.
"""

from __future__ import annotations

import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.shared.models import TimestampMixin


class SyncJobStatus(str, Enum):
    """Sync job lifecycle states.

    State transitions:
    - PENDING -> PROCESSING -> COMPLETED
    - PROCESSING -> PENDING (retry scheduled) | FAILED (attempts exhausted)
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncJob(TimestampMixin, Base):
    """Queued provider refresh for one style.

    Attributes:
        id: Primary key.
        style_id: Uppercase style code.
        provider: "stockx" or "alias".
        status: Current lifecycle state.
        attempts: Times the job has been claimed.
        max_attempts: Claims allowed before the job fails for good.
        last_error: Error of the most recent failed attempt.
        next_retry_at: Earliest time a pending retry may be claimed.
        last_attempt_at: When the job was last claimed.
        started_at: When the job was first claimed.
        completed_at: When the job completed or failed for good.
    """

    __tablename__ = "sync_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    style_id: Mapped[str] = mapped_column(String(64), index=True)
    provider: Mapped[str] = mapped_column(String(20))
    status: Mapped[str] = mapped_column(String(20), default=SyncJobStatus.PENDING.value)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    next_retry_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_attempt_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    started_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        # At most one pending job per style and provider
        Index(
            "uq_sync_jobs_pending",
            "style_id",
            "provider",
            unique=True,
            postgresql_where=text("status = 'pending'"),
        ),
        Index("ix_sync_jobs_status_next_retry", "status", "next_retry_at"),
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="ck_sync_jobs_valid_status",
        ),
        CheckConstraint("provider IN ('stockx', 'alias')", name="ck_sync_jobs_valid_provider"),
    )
