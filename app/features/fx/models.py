"""FX rate ORM models.

Rates are stored GBP-pivoted: one row per day holding how many pounds buy one
dollar and one euro. Any pair is derived through GBP.
"""

import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import CheckConstraint, Date, Index, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.shared.models import TimestampMixin


class FxRate(TimestampMixin, Base):
    """Daily GBP-pivoted exchange rates.

    Attributes:
        as_of: Rate date (primary key).
        gbp_per_usd: Pounds per one US dollar.
        gbp_per_eur: Pounds per one euro.
        source: Where the rate came from ("manual", "ecb", ...).
        meta: Free-form provenance.
    """

    __tablename__ = "fx_rates"

    as_of: Mapped[datetime.date] = mapped_column(Date, primary_key=True)
    gbp_per_usd: Mapped[Decimal] = mapped_column(Numeric(12, 6))
    gbp_per_eur: Mapped[Decimal] = mapped_column(Numeric(12, 6))
    source: Mapped[str] = mapped_column(String(50), default="manual", server_default="manual")
    meta: Mapped[dict[str, Any]] = mapped_column(JSONB, default=dict, server_default="{}")

    __table_args__ = (
        CheckConstraint("gbp_per_usd > 0", name="ck_fx_rates_gbp_per_usd_positive"),
        CheckConstraint("gbp_per_eur > 0", name="ck_fx_rates_gbp_per_eur_positive"),
    )

    @property
    def usd_per_gbp(self) -> Decimal:
        return Decimal(1) / self.gbp_per_usd

    @property
    def eur_per_gbp(self) -> Decimal:
        return Decimal(1) / self.gbp_per_eur


class FxAuditLog(TimestampMixin, Base):
    """Record of an FX rate applied to a stored amount.

    Attributes:
        id: Primary key.
        table_name: Table holding the converted amount (e.g. "sales").
        record_id: Row id in that table.
        field_name: Column that was converted.
        rate_date: Date whose rate was used.
        from_currency: Original currency.
        to_currency: Base currency.
        rate: Multiplier applied.
        original_amount: Amount before conversion.
        converted_amount: Amount after conversion.
    """

    __tablename__ = "fx_audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    table_name: Mapped[str] = mapped_column(String(50))
    record_id: Mapped[str] = mapped_column(String(64))
    field_name: Mapped[str] = mapped_column(String(50))
    rate_date: Mapped[datetime.date] = mapped_column(Date)
    from_currency: Mapped[str] = mapped_column(String(3))
    to_currency: Mapped[str] = mapped_column(String(3))
    rate: Mapped[Decimal] = mapped_column(Numeric(12, 6))
    original_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    converted_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))

    __table_args__ = (Index("ix_fx_audit_log_record", "table_name", "record_id"),)
