"""ARCHVD price: one trusted market value per style and size.

The headline value is the lower of the StockX and Alias lowest asks, both
converted to the user's currency. Confidence reflects how many providers quoted
and whether the winning quote is fresh.
"""

from __future__ import annotations

import datetime

from app.features.fx.schemas import Currency, FxRates
from app.features.pricing.fees import (
    DEFAULT_FEE_PROFILE,
    calculate_net_proceeds,
    calculate_real_profit,
    convert_to_user_currency,
    get_best_platform,
    round_to_cents,
)
from app.features.pricing.schemas import (
    AliasExtended,
    ArchvdBids,
    ArchvdPrice,
    ArchvdPriceInputs,
    ArchvdPriceWithFees,
    CostInput,
    DataAvailability,
    DataFreshness,
    FeeProfile,
    Platform,
    PlatformNetProceeds,
    PriceConfidence,
    ProviderDataStatus,
    ProviderFreshness,
    ProviderMarketData,
    UnifiedMarketInput,
)

LIVE_MAX_AGE = datetime.timedelta(hours=1)
RECENT_MAX_AGE = datetime.timedelta(hours=24)

ALIAS_CURRENCY: Currency = "USD"
STOCKX_DEFAULT_CURRENCY: Currency = "GBP"


def determine_data_freshness(
    updated_at: datetime.datetime | None,
    now: datetime.datetime | None = None,
) -> DataFreshness:
    """Classify data age as live (<1h), recent (<24h) or stale.

    Future timestamps are treated as age zero. Naive timestamps are read as UTC.
    """
    if updated_at is None:
        return "stale"

    now = now or datetime.datetime.now(datetime.UTC)
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=datetime.UTC)

    age = max(datetime.timedelta(0), now - updated_at)
    if age < LIVE_MAX_AGE:
        return "live"
    if age < RECENT_MAX_AGE:
        return "recent"
    return "stale"


def build_provider_freshness(
    data: ProviderMarketData | None,
    now: datetime.datetime | None = None,
) -> ProviderFreshness:
    """Freshness and status for one provider.

    An error string always wins. Otherwise a provider marked available without
    an ask is reported as no_listing.
    """
    updated_at = data.updated_at if data else None
    freshness = determine_data_freshness(updated_at, now)

    if data is not None and data.error:
        return ProviderFreshness(
            updated_at=updated_at, freshness=freshness, status="error", error=data.error
        )

    status: ProviderDataStatus = (data.status if data and data.status else None) or "available"
    ask = data.lowest_ask if data else None
    if ask is None and status == "available":
        status = "no_listing"

    return ProviderFreshness(updated_at=updated_at, freshness=freshness, status=status)


def _stockx_currency(market: UnifiedMarketInput) -> Currency:
    if market.stockx and market.stockx.currency:
        return market.stockx.currency
    return STOCKX_DEFAULT_CURRENCY


def _converted(amount: float | None, currency: Currency, fx_rates: FxRates) -> float | None:
    if amount is None:
        return None
    return convert_to_user_currency(amount, currency, fx_rates)


def calculate_archvd_price(
    market: UnifiedMarketInput,
    fx_rates: FxRates,
    now: datetime.datetime | None = None,
) -> ArchvdPrice | None:
    """Combine StockX and Alias asks into one price in user currency.

    Args:
        market: Size-scoped data from both providers.
        fx_rates: Multipliers into user currency.
        now: Reference time for freshness (defaults to current UTC time).

    Returns:
        The ARCHVD price, or None when neither provider has an ask.
    """
    stockx_ask = market.stockx.lowest_ask if market.stockx else None
    alias_ask = market.alias.lowest_ask if market.alias else None
    if stockx_ask is None and alias_ask is None:
        return None

    stockx_currency = _stockx_currency(market)
    stockx_value = _converted(stockx_ask, stockx_currency, fx_rates)
    alias_value = _converted(alias_ask, ALIAS_CURRENCY, fx_rates)

    source: Platform
    confidence: PriceConfidence
    if stockx_value is not None and alias_value is not None:
        source = "stockx" if stockx_value <= alias_value else "alias"
        value = min(stockx_value, alias_value)
        confidence = "high"
    elif stockx_value is not None:
        source, value, confidence = "stockx", stockx_value, "medium"
    else:
        assert alias_value is not None
        source, value, confidence = "alias", alias_value, "medium"

    stockx_bid = market.stockx.highest_bid if market.stockx else None
    alias_bid = market.alias.highest_bid if market.alias else None

    provider_freshness: dict[Platform, ProviderFreshness] = {
        "stockx": build_provider_freshness(market.stockx, now),
        "alias": build_provider_freshness(market.alias, now),
    }
    winner = provider_freshness[source]
    if winner.status == "error" or winner.freshness == "stale":
        confidence = "low"

    return ArchvdPrice(
        style_id=market.style_id,
        size=market.size,
        size_unit=market.size_unit,
        variant_ids=market.variant_ids,
        value=round_to_cents(value),
        currency=fx_rates.user_currency,
        source=source,
        confidence=confidence,
        inputs=ArchvdPriceInputs(
            stockx_ask=stockx_value,
            stockx_ask_original=stockx_ask,
            alias_ask=alias_value,
            alias_ask_original=alias_ask,
            fx=fx_rates,
        ),
        bids=ArchvdBids(
            stockx_bid=_converted(stockx_bid, stockx_currency, fx_rates),
            stockx_bid_original=stockx_bid,
            alias_bid=_converted(alias_bid, ALIAS_CURRENCY, fx_rates),
            alias_bid_original=alias_bid,
        ),
        calculated_at=now or datetime.datetime.now(datetime.UTC),
        provider_freshness=provider_freshness,
    )


def _net(
    amount: float | None,
    platform: Platform,
    currency: Currency,
    fx_rates: FxRates,
    fee_profile: FeeProfile,
) -> PlatformNetProceeds | None:
    if amount is None or amount <= 0:
        return None
    return calculate_net_proceeds(amount, platform, fx_rates, fee_profile, currency)


def calculate_archvd_price_with_fees(
    market: UnifiedMarketInput,
    cost: CostInput | None,
    fx_rates: FxRates,
    fee_profile: FeeProfile = DEFAULT_FEE_PROFILE,
    now: datetime.datetime | None = None,
) -> ArchvdPriceWithFees | None:
    """ARCHVD price plus net proceeds, best platform and real profit.

    Args:
        market: Size-scoped data from both providers.
        cost: Item cost basis, or None to skip profit.
        fx_rates: Multipliers into user currency.
        fee_profile: Seller fee settings.
        now: Reference time for freshness.

    Returns:
        Extended price, or None when neither provider has an ask.
    """
    base = calculate_archvd_price(market, fx_rates, now)
    if base is None:
        return None

    stockx_currency = _stockx_currency(market)
    stockx = market.stockx or ProviderMarketData()
    alias = market.alias or ProviderMarketData()

    stockx_net = _net(stockx.lowest_ask, "stockx", stockx_currency, fx_rates, fee_profile)
    alias_net = _net(alias.lowest_ask, "alias", ALIAS_CURRENCY, fx_rates, fee_profile)
    stockx_bid_net = _net(stockx.highest_bid, "stockx", stockx_currency, fx_rates, fee_profile)
    alias_bid_net = _net(alias.highest_bid, "alias", ALIAS_CURRENCY, fx_rates, fee_profile)

    nets = {"stockx": stockx_net, "alias": alias_net}
    bid_nets = {"stockx": stockx_bid_net, "alias": alias_bid_net}

    best = get_best_platform(stockx_net, alias_net)
    best_bid = get_best_platform(stockx_bid_net, alias_bid_net)

    best_net = nets[best.platform].net_receive_user_currency if best.platform else None
    best_bid_net = (
        bid_nets[best_bid.platform].net_receive_user_currency if best_bid.platform else None
    )

    real_profit: float | None = None
    real_profit_percent: float | None = None
    if cost is not None and best_net is not None:
        cost_in_user = convert_to_user_currency(cost.amount, cost.currency, fx_rates)
        profit = calculate_real_profit(best_net, cost_in_user)
        real_profit = profit.profit
        real_profit_percent = profit.profit_percent

    return ArchvdPriceWithFees(
        **base.model_dump(),
        net_proceeds=nets,
        bid_net_proceeds=bid_nets,
        best_bid_net_proceeds=best_bid_net,
        best_bid_platform=best_bid.platform,
        best_platform_to_sell=best.platform,
        best_net_proceeds=best_net,
        platform_advantage=best.advantage,
        real_profit=real_profit,
        real_profit_percent=real_profit_percent,
        alias_extended=AliasExtended(
            last_sale_price=alias.last_sale_price,
            last_sale_price_user_currency=_converted(
                alias.last_sale_price, ALIAS_CURRENCY, fx_rates
            ),
            sales_last_72h=alias.sales_last_72h,
            sales_last_30d=alias.sales_last_30d,
        ),
    )


def has_market_data(market: UnifiedMarketInput) -> bool:
    """True when either provider has an ask."""
    return get_data_availability(market).has_any


def get_data_availability(market: UnifiedMarketInput) -> DataAvailability:
    has_stockx = market.stockx is not None and market.stockx.lowest_ask is not None
    has_alias = market.alias is not None and market.alias.lowest_ask is not None
    return DataAvailability(
        has_stockx=has_stockx,
        has_alias=has_alias,
        has_both=has_stockx and has_alias,
        has_any=has_stockx or has_alias,
    )


def get_provider_statuses(
    market: UnifiedMarketInput,
    now: datetime.datetime | None = None,
) -> dict[Platform, ProviderFreshness]:
    """Per-provider status, useful when no price could be computed."""
    return {
        "stockx": build_provider_freshness(market.stockx, now),
        "alias": build_provider_freshness(market.alias, now),
    }
