"""Unit tests for FX service."""

import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.dialects import postgresql

from app.features.fx.models import FxRate
from app.features.fx.service import (
    cross_rate,
    default_fx_rates,
    fx_rate_for,
    get_fx_rates,
    record_fx_audit,
    upsert_fx_rate,
)


def _session_returning(row):
    """Mock session whose execute() yields ``row`` for scalar_one_or_none."""
    session = AsyncMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = row
    result.scalar_one.return_value = row
    session.execute.return_value = result
    session.add = MagicMock()
    return session


@pytest.fixture
def stored_rate() -> FxRate:
    """A stored day of rates."""
    return FxRate(
        as_of=datetime.date(2024, 6, 3),
        gbp_per_usd=Decimal("0.790000"),
        gbp_per_eur=Decimal("0.850000"),
        source="manual",
        meta={},
    )


class TestCrossRate:
    """Tests for GBP-pivoted cross rates."""

    def test_same_currency_is_one(self):
        """Identical currencies convert at 1."""
        assert cross_rate("USD", "USD", Decimal("0.79"), Decimal("0.85")) == Decimal(1)

    def test_usd_to_gbp(self):
        """USD to GBP is gbp_per_usd."""
        assert cross_rate("USD", "GBP", Decimal("0.79"), Decimal("0.85")) == Decimal("0.790000")

    def test_gbp_to_usd(self):
        """GBP to USD is the reciprocal."""
        assert cross_rate("GBP", "USD", Decimal("0.8"), Decimal("0.85")) == Decimal("1.250000")

    def test_usd_to_eur_goes_through_gbp(self):
        """USD to EUR divides the two GBP legs."""
        rate = cross_rate("USD", "EUR", Decimal("0.8"), Decimal("0.5"))
        assert rate == Decimal("1.600000")


class TestDefaultFxRates:
    """Tests for static fallback rates."""

    def test_gbp_user(self):
        """GBP users get USD/EUR to GBP defaults."""
        rates = default_fx_rates("GBP")
        assert rates.gbp_to_user == 1.0
        assert rates.usd_to_user == 0.79
        assert rates.eur_to_user == 0.85

    def test_usd_user(self):
        """USD users get GBP/EUR to USD defaults."""
        rates = default_fx_rates("USD")
        assert rates.gbp_to_user == 1.27
        assert rates.usd_to_user == 1.0
        assert rates.rate_for("EUR") == 1.09


class TestFxRateFor:
    """Tests for fx_rate_for."""

    @pytest.mark.asyncio
    async def test_same_currency_skips_lookup(self):
        """No query is made for identical currencies."""
        session = AsyncMock()
        rate = await fx_rate_for(session, datetime.date(2024, 6, 3), "GBP", "GBP")

        assert rate == Decimal(1)
        session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_uses_stored_rate(self, stored_rate):
        """Stored rates are used for cross-currency lookups."""
        session = _session_returning(stored_rate)
        rate = await fx_rate_for(session, datetime.date(2024, 6, 4), "USD", "GBP")

        assert rate == Decimal("0.790000")

    @pytest.mark.asyncio
    async def test_missing_rate_falls_back_to_one(self):
        """Dates before any stored rate convert at 1."""
        session = _session_returning(None)
        rate = await fx_rate_for(session, datetime.date(2020, 1, 1), "USD", "GBP")

        assert rate == Decimal(1)


class TestUpsertFxRate:
    """Tests for upsert_fx_rate carry-forward."""

    @pytest.mark.asyncio
    async def test_missing_values_carry_forward(self, stored_rate):
        """An omitted rate is taken from the previous stored day."""
        session = _session_returning(stored_rate)

        await upsert_fx_rate(session, datetime.date(2024, 6, 4), gbp_per_usd=Decimal("0.8"))

        insert_stmt = session.execute.call_args_list[-1].args[0]
        params = insert_stmt.compile(dialect=postgresql.dialect()).params
        assert params["gbp_per_usd"] == Decimal("0.8")
        assert params["gbp_per_eur"] == Decimal("0.850000")

    @pytest.mark.asyncio
    async def test_no_history_uses_configured_fallback(self):
        """Without history the configured fallback rates apply."""
        session = _session_returning(None)
        mock_settings = MagicMock(fx_fallback_gbp_per_usd=0.787, fx_fallback_gbp_per_eur=0.855)

        with patch("app.features.fx.service.get_settings", return_value=mock_settings):
            await upsert_fx_rate(session, datetime.date(2024, 6, 4))

        insert_stmt = session.execute.call_args_list[-1].args[0]
        params = insert_stmt.compile(dialect=postgresql.dialect()).params
        assert params["gbp_per_usd"] == Decimal("0.787")
        assert params["gbp_per_eur"] == Decimal("0.855")

    @pytest.mark.asyncio
    async def test_both_values_given_skips_lookup(self, stored_rate):
        """No history lookup happens when both rates are provided."""
        session = _session_returning(stored_rate)

        await upsert_fx_rate(
            session,
            datetime.date(2024, 6, 4),
            gbp_per_usd=Decimal("0.8"),
            gbp_per_eur=Decimal("0.86"),
        )

        assert session.execute.await_count == 1


class TestGetFxRates:
    """Tests for pricing multipliers."""

    @pytest.mark.asyncio
    async def test_defaults_when_empty(self):
        """Empty table yields default rates."""
        session = _session_returning(None)
        rates = await get_fx_rates(session, "GBP", datetime.date(2024, 6, 3))

        assert rates.usd_to_user == 0.79
        assert rates.timestamp is None

    @pytest.mark.asyncio
    async def test_from_stored_row(self, stored_rate):
        """Stored rows convert into user currency multipliers."""
        session = _session_returning(stored_rate)
        rates = await get_fx_rates(session, "GBP", datetime.date(2024, 6, 3))

        assert rates.gbp_to_user == 1.0
        assert rates.usd_to_user == pytest.approx(0.79)
        assert rates.eur_to_user == pytest.approx(0.85)
        assert rates.timestamp is not None


@pytest.mark.asyncio
async def test_record_fx_audit_converts_amount():
    """Audit entries store the converted amount rounded to cents."""
    session = AsyncMock()
    session.add = MagicMock()

    entry = await record_fx_audit(
        session,
        table_name="sales",
        record_id="42",
        field_name="sold_price",
        rate_date=datetime.date(2024, 6, 3),
        from_currency="USD",
        to_currency="GBP",
        rate=Decimal("0.79"),
        original_amount=Decimal("200.00"),
    )

    assert entry.converted_amount == Decimal("158.00")
    session.add.assert_called_once_with(entry)
    session.flush.assert_awaited_once()
