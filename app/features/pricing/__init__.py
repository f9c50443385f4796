"""Market pricing: cross-provider reconciliation, platform fees and ARCHVD price."""

from app.features.pricing.aggregate import aggregate_prices
from app.features.pricing.archvd import (
    calculate_archvd_price,
    calculate_archvd_price_with_fees,
    determine_data_freshness,
)
from app.features.pricing.fees import (
    build_fee_profile,
    calculate_fees,
    calculate_net_proceeds,
    calculate_real_profit,
    get_best_platform,
)
from app.features.pricing.routes import router

__all__ = [
    "aggregate_prices",
    "build_fee_profile",
    "calculate_archvd_price",
    "calculate_archvd_price_with_fees",
    "calculate_fees",
    "calculate_net_proceeds",
    "calculate_real_profit",
    "determine_data_freshness",
    "get_best_platform",
    "router",
]
