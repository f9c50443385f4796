"""Column mixins shared by the ledger, market and sync tables."""

from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, declared_attr, mapped_column


class TimestampMixin:
    """Server-side created_at and updated_at columns (timezone aware)."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class OwnedMixin:
    """Rows scoped to one seller, identified by the X-Owner-ID header."""

    @declared_attr
    def owner_id(cls) -> Mapped[str]:
        return mapped_column(String(64), index=True, nullable=False)
