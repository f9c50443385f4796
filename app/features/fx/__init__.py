"""FX rates, cross-currency conversion and rate snapshots."""

from app.features.fx.models import FxAuditLog, FxRate
from app.features.fx.routes import router
from app.features.fx.schemas import Currency, FxRates
from app.features.fx.service import (
    cross_rate,
    default_fx_rates,
    fx_rate_for,
    get_fx_rates,
    record_fx_audit,
    upsert_fx_rate,
)

__all__ = [
    "Currency",
    "FxAuditLog",
    "FxRate",
    "FxRates",
    "cross_rate",
    "default_fx_rates",
    "fx_rate_for",
    "get_fx_rates",
    "record_fx_audit",
    "router",
    "upsert_fx_rate",
]
