"""Alias listing and webhook event ORM models."""

import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import DateTime, Index, Integer, Numeric, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.shared.models import TimestampMixin


class AliasListing(TimestampMixin, Base):
    """A seller's listing on Alias, kept in sync by webhooks.

    Attributes:
        id: Surrogate key.
        alias_listing_id: Listing id assigned by Alias (unique).
        catalog_id: Alias catalog item.
        inventory_item_id: Linked inventory item, if any.
        size: Listed size (Alias sizes are numeric US).
        ask_price: Current ask in USD.
        status: Alias listing status.
        sold_at: Set when status becomes sold.
        last_price_update: Last ask change reported by Alias.
        synced_at: Last time this row was updated from Alias.
    """

    __tablename__ = "alias_listings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    alias_listing_id: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    catalog_id: Mapped[str] = mapped_column(String(255))
    inventory_item_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    size: Mapped[Decimal | None] = mapped_column(Numeric(5, 1), nullable=True)
    ask_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="active")
    sold_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_price_update: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    synced_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class AliasWebhookEvent(Base):
    """Audit record of a verified webhook delivery."""

    __tablename__ = "alias_webhook_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[str] = mapped_column(String(100))
    event_type: Mapped[str] = mapped_column(String(50))
    event_created_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONB)
    received_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (Index("ix_alias_webhook_events_event_id", "event_id"),)
