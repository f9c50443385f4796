"""Cross-provider price reconciliation.

Each product category has an ordered list of trusted providers. When one of
them quoted, its price is used outright. Otherwise the quotes are reduced to
their median, and confidence depends on how tightly the quotes agree
(coefficient of variation against a threshold).
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from app.core.config import get_settings
from app.core.logging import get_logger
from app.features.fx.schemas import FxRates
from app.features.pricing.fees import convert_to_user_currency, round_to_cents
from app.features.pricing.schemas import AggregatedPrice, PriceConfidence, PriceQuote

logger = get_logger(__name__)

CATEGORY_PROVIDER_PRIORITY: dict[str, tuple[str, ...]] = {
    "sneakers": ("stockx", "alias"),
    "apparel": ("stockx", "alias"),
    "streetwear": ("stockx", "alias"),
    "trading_cards": ("tcgplayer", "ebay"),
    "pokemon": ("tcgplayer", "ebay"),
}


def provider_priority(category: str | None) -> tuple[str, ...]:
    """Trusted providers for a category, most trusted first."""
    if not category:
        return ()
    return CATEGORY_PROVIDER_PRIORITY.get(category.strip().lower().replace("-", "_"), ())


def aggregate_prices(
    quotes: Sequence[PriceQuote],
    category: str | None,
    fx_rates: FxRates,
    variance_threshold: float | None = None,
) -> AggregatedPrice | None:
    """Reconcile provider quotes into one price in the user's currency.

    Args:
        quotes: Quotes from any providers. Non-positive prices are ignored.
        category: Product category used to select trusted providers.
        fx_rates: Multipliers into user currency.
        variance_threshold: Maximum coefficient of variation for a
            medium-confidence median. Defaults to settings.

    Returns:
        Reconciled price, or None when no usable quote exists.
    """
    if variance_threshold is None:
        variance_threshold = get_settings().pricing_variance_threshold

    usable = [q for q in quotes if q.price > 0]
    if not usable:
        return None

    by_provider = {q.provider.lower(): q for q in usable}
    for provider in provider_priority(category):
        quote = by_provider.get(provider)
        if quote is not None:
            return AggregatedPrice(
                price=round_to_cents(
                    convert_to_user_currency(quote.price, quote.currency, fx_rates)
                ),
                currency=fx_rates.user_currency,
                method="priority",
                provider=provider,
                confidence="high",
                quote_count=len(usable),
            )

    values = np.array(
        [convert_to_user_currency(q.price, q.currency, fx_rates) for q in usable],
        dtype=float,
    )
    median = float(np.median(values))
    mean = float(np.mean(values))
    cv = float(np.std(values) / mean) if mean > 0 else 0.0

    confidence: PriceConfidence = "medium" if cv <= variance_threshold else "low"
    if confidence == "low":
        logger.info(
            "pricing.aggregate_high_variance",
            category=category,
            quote_count=len(usable),
            coefficient_of_variation=round(cv, 4),
        )

    return AggregatedPrice(
        price=round_to_cents(median),
        currency=fx_rates.user_currency,
        method="median",
        provider=None,
        confidence=confidence,
        quote_count=len(usable),
        coefficient_of_variation=round(cv, 4),
    )
