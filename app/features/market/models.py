"""Style catalog and provider market snapshot ORM models."""

import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.shared.models import TimestampMixin


class StyleCatalog(TimestampMixin, Base):
    """One product style and its ids on each marketplace.

    Attributes:
        style_id: Uppercase style code (primary key), e.g. "DD1391-100".
        brand: Brand name.
        name: Product name.
        colorway: Colorway description.
        category: Product category; selects provider priority in pricing.
        stockx_product_id: StockX product UUID, once resolved.
        alias_catalog_id: Alias catalog id, once mapped.
    """

    __tablename__ = "style_catalog"

    style_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    brand: Mapped[str | None] = mapped_column(String(100), nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    colorway: Mapped[str | None] = mapped_column(String(255), nullable=True)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    stockx_product_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    alias_catalog_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    __table_args__ = (
        CheckConstraint("style_id = upper(style_id)", name="ck_style_catalog_style_id_upper"),
    )


class MarketSnapshot(TimestampMixin, Base):
    """Latest asks, bids and sales for one provider, style, size and currency.

    ``size`` is the provider's own (US) notation; ``size_uk`` is the same size
    converted for joining against inventory.

    Attributes:
        id: Surrogate key.
        provider: "stockx" or "alias".
        style_id: Style code.
        size: Provider size, e.g. "10.5".
        size_uk: UK equivalent of ``size``.
        currency: Quote currency.
        lowest_ask: Cheapest active listing.
        highest_bid: Best active offer.
        last_sale: Most recent sale price.
        sales_72h: Sales in the last 72 hours.
        sales_30d: Sales in the last 30 days.
        as_of: When the provider data was fetched.
        meta: Provider ids and raw counts.
    """

    __tablename__ = "market_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    provider: Mapped[str] = mapped_column(String(20))
    style_id: Mapped[str] = mapped_column(String(64), index=True)
    size: Mapped[str] = mapped_column(String(20))
    size_uk: Mapped[str | None] = mapped_column(String(20), nullable=True)
    currency: Mapped[str] = mapped_column(String(3))
    lowest_ask: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    highest_bid: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    last_sale: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    sales_72h: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sales_30d: Mapped[int | None] = mapped_column(Integer, nullable=True)
    as_of: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True))
    meta: Mapped[dict[str, Any]] = mapped_column(JSONB, default=dict, server_default="{}")

    __table_args__ = (
        UniqueConstraint(
            "provider", "style_id", "size", "currency", name="uq_market_snapshots_key"
        ),
        CheckConstraint("provider IN ('stockx', 'alias')", name="ck_market_snapshots_provider"),
        Index("ix_market_snapshots_style_size_uk", "style_id", "size_uk"),
    )
