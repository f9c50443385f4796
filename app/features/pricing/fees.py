"""Platform fees and net proceeds.

StockX charges a seller-level transaction fee (with a GBP minimum), a payment
processing fee and a shipping deduction. Alias charges a commission, a cash-out
fee and a region/method shipping fee quoted in USD.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from app.core.logging import get_logger
from app.features.fx.schemas import Currency, FxRates
from app.features.pricing.schemas import (
    BestPlatform,
    FeeBreakdown,
    FeeProfile,
    Platform,
    PlatformFeeConfig,
    PlatformNetProceeds,
    RealProfit,
)

logger = get_logger(__name__)

STOCKX_SELLER_LEVEL_FEES: dict[int, float] = {
    1: 0.09,
    2: 0.085,
    3: 0.08,
    4: 0.075,
    5: 0.07,
}
STOCKX_PAYMENT_PROCESSING = 0.03
STOCKX_MINIMUM_FEE_GBP = 5.0
STOCKX_MAX_SHIPPING_GBP = 50.0

ALIAS_CASH_OUT_FEE = 0.029
# USD, per region and shipping method
ALIAS_SHIPPING_FEES_USD: dict[str, dict[str, float]] = {
    "us": {"dropoff": 0.0, "prepaid": 5.0},
    "uk": {"dropoff": 2.0, "prepaid": 5.0},
    "eu": {"dropoff": 5.0, "prepaid": 8.0},
}

DEFAULT_FEE_PROFILE = FeeProfile()

CURRENCY_SYMBOLS: dict[str, str] = {"GBP": "£", "USD": "$", "EUR": "€"}


def round_to_cents(value: float) -> float:
    """Round half-up to two decimal places."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def clamp_seller_level(level: float) -> int:
    """Clamp a StockX seller level to 1-5."""
    return min(5, max(1, int(Decimal(str(level)).quantize(Decimal(1), rounding=ROUND_HALF_UP))))


def _normalize_choice(
    value: str | None,
    allowed: Mapping[str, Any] | tuple[str, ...],
    default: str,
) -> str:
    normalized = (value or "").strip().lower()
    return normalized if normalized in allowed else default


def get_platform_fee_config(
    platform: Platform,
    fee_profile: FeeProfile = DEFAULT_FEE_PROFILE,
) -> PlatformFeeConfig:
    """Resolve fee parameters for a platform from a seller's profile.

    Args:
        platform: "stockx" or "alias".
        fee_profile: Seller fee settings.

    Returns:
        Fee configuration in the platform's native currency.
    """
    if platform == "stockx":
        level = clamp_seller_level(fee_profile.stockx_seller_level)
        shipping = min(STOCKX_MAX_SHIPPING_GBP, max(0.0, fee_profile.stockx_shipping_fee))
        return PlatformFeeConfig(
            seller_fee_percent=STOCKX_SELLER_LEVEL_FEES[level],
            payment_processing_percent=STOCKX_PAYMENT_PROCESSING,
            shipping_cost=shipping,
            minimum_fee=STOCKX_MINIMUM_FEE_GBP,
            currency="GBP",
        )

    region = _normalize_choice(
        fee_profile.alias_seller_region,
        ALIAS_SHIPPING_FEES_USD,
        DEFAULT_FEE_PROFILE.alias_seller_region,
    )
    method = _normalize_choice(
        fee_profile.alias_shipping_method,
        ("dropoff", "prepaid"),
        DEFAULT_FEE_PROFILE.alias_shipping_method,
    )
    commission = min(1.0, max(0.0, fee_profile.alias_commission_fee))

    return PlatformFeeConfig(
        seller_fee_percent=commission,
        payment_processing_percent=ALIAS_CASH_OUT_FEE,
        shipping_cost=ALIAS_SHIPPING_FEES_USD[region][method],
        minimum_fee=0.0,
        currency="USD",
    )


def calculate_fees(
    gross_price: float,
    platform: Platform,
    fee_profile: FeeProfile = DEFAULT_FEE_PROFILE,
) -> FeeBreakdown:
    """Fees deducted from a sale on ``platform``.

    Args:
        gross_price: Sale price in platform currency.
        platform: "stockx" or "alias".
        fee_profile: Seller fee settings.

    Returns:
        Fee breakdown rounded to cents.

    Raises:
        ValueError: If gross_price is not positive.
    """
    if gross_price <= 0:
        raise ValueError(f"gross_price must be > 0, got {gross_price}")

    config = get_platform_fee_config(platform, fee_profile)

    platform_fee = max(gross_price * config.seller_fee_percent, config.minimum_fee)
    payment_fee = gross_price * config.payment_processing_percent
    shipping = config.shipping_cost
    total = platform_fee + payment_fee + shipping

    return FeeBreakdown(
        platform_fee=round_to_cents(platform_fee),
        payment_fee=round_to_cents(payment_fee),
        shipping=round_to_cents(shipping),
        total=round_to_cents(total),
    )


def convert_to_user_currency(amount: float, from_currency: Currency, fx_rates: FxRates) -> float:
    """Convert an amount into the user's currency."""
    if from_currency == fx_rates.user_currency:
        return amount
    return amount * fx_rates.rate_for(from_currency)


def calculate_net_proceeds(
    gross_price: float,
    platform: Platform,
    fx_rates: FxRates,
    fee_profile: FeeProfile = DEFAULT_FEE_PROFILE,
    gross_price_currency: Currency | None = None,
) -> PlatformNetProceeds:
    """What the seller receives after fees, in platform and user currency.

    Args:
        gross_price: Sale price.
        platform: "stockx" or "alias".
        fx_rates: Multipliers into user currency.
        fee_profile: Seller fee settings.
        gross_price_currency: Currency of gross_price when it differs from the
            platform default (StockX quotes per region).

    Returns:
        Net proceeds breakdown.
    """
    config = get_platform_fee_config(platform, fee_profile)
    fees = calculate_fees(gross_price, platform, fee_profile)
    net_receive = round_to_cents(gross_price - fees.total)
    currency = gross_price_currency or config.currency

    return PlatformNetProceeds(
        platform=platform,
        gross_price=gross_price,
        gross_price_currency=currency,
        fees=fees,
        net_receive=net_receive,
        net_receive_currency=currency,
        net_receive_user_currency=round_to_cents(
            convert_to_user_currency(net_receive, currency, fx_rates)
        ),
    )


def get_best_platform(
    stockx_net: PlatformNetProceeds | None,
    alias_net: PlatformNetProceeds | None,
) -> BestPlatform:
    """Pick the platform paying more; StockX wins ties."""
    if stockx_net is None and alias_net is None:
        return BestPlatform(platform=None, advantage=None)
    if stockx_net is None:
        return BestPlatform(platform="alias", advantage=None)
    if alias_net is None:
        return BestPlatform(platform="stockx", advantage=None)

    stockx_value = stockx_net.net_receive_user_currency
    alias_value = alias_net.net_receive_user_currency
    advantage = round_to_cents(abs(stockx_value - alias_value))

    if stockx_value >= alias_value:
        return BestPlatform(platform="stockx", advantage=advantage)
    return BestPlatform(platform="alias", advantage=advantage)


def calculate_real_profit(net_proceeds: float, cost: float) -> RealProfit:
    """Profit after fees, with percentage of cost to one decimal place."""
    profit = round_to_cents(net_proceeds - cost)
    percent = (profit / cost) * 100 if cost > 0 else 0.0
    return RealProfit(
        profit=profit,
        profit_percent=float(
            Decimal(str(percent)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
        ),
    )


def build_fee_profile(settings: Mapping[str, Any]) -> FeeProfile:
    """Build a FeeProfile from stored user settings.

    Stored ``alias_commission_fee`` is a percentage (9.5). Values between 0 and 1
    are taken to be fractions already and used unchanged.

    Args:
        settings: Row with optional stockx_seller_level, stockx_shipping_fee,
            alias_commission_fee, alias_region and alias_shipping_method.

    Returns:
        Normalized fee profile.
    """
    commission = DEFAULT_FEE_PROFILE.alias_commission_fee
    raw_commission = settings.get("alias_commission_fee")
    if raw_commission is not None:
        raw_commission = float(raw_commission)
        if 0 < raw_commission < 1:
            logger.warning("pricing.fee_profile_fraction_commission", value=raw_commission)
            commission = raw_commission
        else:
            commission = raw_commission / 100

    shipping = settings.get("stockx_shipping_fee")

    return FeeProfile(
        stockx_seller_level=clamp_seller_level(settings.get("stockx_seller_level") or 1),
        stockx_shipping_fee=(
            float(shipping) if shipping is not None else DEFAULT_FEE_PROFILE.stockx_shipping_fee
        ),
        alias_commission_fee=commission,
        alias_seller_region=_normalize_choice(  # type: ignore[arg-type]
            settings.get("alias_region"),
            ALIAS_SHIPPING_FEES_USD,
            DEFAULT_FEE_PROFILE.alias_seller_region,
        ),
        alias_shipping_method=_normalize_choice(  # type: ignore[arg-type]
            settings.get("alias_shipping_method"),
            ("dropoff", "prepaid"),
            DEFAULT_FEE_PROFILE.alias_shipping_method,
        ),
    )


def format_currency(
    amount: float,
    currency: Currency,
    show_sign: bool = False,
    decimals: int = 2,
) -> str:
    """Format an amount with its symbol, e.g. ``"£120.00"`` or ``"+$5.50"``."""
    symbol = CURRENCY_SYMBOLS[currency]
    formatted = f"{abs(amount):.{decimals}f}"
    if show_sign:
        return f"{'+' if amount >= 0 else '-'}{symbol}{formatted}"
    return f"-{symbol}{formatted}" if amount < 0 else f"{symbol}{formatted}"


def format_percent(value: float, show_sign: bool = False, decimals: int = 1) -> str:
    """Format a percentage, e.g. ``"12.5%"`` or ``"-3.0%"`` with sign."""
    formatted = f"{abs(value):.{decimals}f}"
    if show_sign:
        return f"{'+' if value >= 0 else '-'}{formatted}%"
    return f"{formatted}%"
