"""Suggest Alias catalog matches for inventory items.

Matching only suggests: nothing here writes to the database. Heuristics run in
order and the first confident one wins:

1. Exact SKU among the top 5 search results (1.0)
2. SKU equal after removing spaces/hyphens among the top 10 (0.95)
3. Levenshtein similarity of the top SKU result >= 0.7 (0.85 x similarity)
4. Name similarity of the top "brand name" result >= 0.6 (0.70 x similarity)
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any


from app.core.config import get_settings
from app.core.logging import get_logger
from app.features.alias.client import AliasClient
from app.features.alias.schemas import AliasMatchResult, InventoryMatchInput
from app.features.sku.normalize import compact_sku

logger = get_logger(__name__)

SKU_SIMILARITY_MIN = 0.7
NAME_SIMILARITY_MIN = 0.6


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance with unit insert, delete and substitute costs."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def string_similarity(a: str, b: str) -> float:
    """1 - distance / longer length; two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1 - levenshtein_distance(a, b) / longest


def _manual() -> AliasMatchResult:
    return AliasMatchResult(catalog_id=None, confidence=0.0, match_method="manual")


async def _search(
    client: AliasClient, query: str, limit: int, step: str
) -> list[dict[str, Any]] | None:
    try:
        response = await client.search_catalog(query, limit=limit)
    except Exception as e:
        logger.warning(
            "alias.match_search_failed",
            step=step,
            query=query,
            error=str(e),
            error_type=type(e).__name__,
        )
        return None
    items = response.get("catalog_items") if isinstance(response, dict) else None
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


async def match_inventory_to_alias_catalog(
    client: AliasClient,
    sku: str | None = None,
    product_name: str | None = None,
    brand: str | None = None,
) -> AliasMatchResult:
    """Find the most likely Alias catalog item for an inventory item.

    A failed search is logged and the next heuristic runs.

    Args:
        client: Alias API client.
        sku: Style code from inventory.
        product_name: Product name from inventory.
        brand: Brand, prefixed to name searches.

    Returns:
        Best suggestion, or a ``manual`` result with zero confidence.
    """
    sku = (sku or "").strip()
    if sku:
        items = await _search(client, sku, 5, "exact_sku")
        for item in items or []:
            if str(item.get("sku", "")).upper() == sku.upper():
                logger.info("alias.match_found", method="exact_sku", catalog_id=item["catalog_id"])
                return AliasMatchResult(
                    catalog_id=item["catalog_id"],
                    confidence=1.0,
                    match_method="exact_sku",
                    catalog_item=item,
                )

        compact = compact_sku(sku)
        items = await _search(client, sku, 10, "normalized_sku")
        for item in items or []:
            if compact_sku(item.get("sku")) == compact:
                logger.info(
                    "alias.match_found", method="normalized_sku", catalog_id=item["catalog_id"]
                )
                return AliasMatchResult(
                    catalog_id=item["catalog_id"],
                    confidence=0.95,
                    match_method="normalized_sku",
                    catalog_item=item,
                )

        items = await _search(client, sku, 5, "search_sku")
        if items:
            best = items[0]
            similarity = string_similarity(compact, compact_sku(best.get("sku")))
            if similarity >= SKU_SIMILARITY_MIN:
                logger.info(
                    "alias.match_found",
                    method="search_sku",
                    catalog_id=best["catalog_id"],
                    similarity=round(similarity, 3),
                )
                return AliasMatchResult(
                    catalog_id=best["catalog_id"],
                    confidence=0.85 * similarity,
                    match_method="search_sku",
                    catalog_item=best,
                    search_results=items,
                )

    product_name = (product_name or "").strip()
    if product_name:
        query = f"{brand} {product_name}".strip() if brand else product_name
        items = await _search(client, query, 5, "search_name")
        if items:
            best = items[0]
            similarity = string_similarity(
                product_name.lower(), str(best.get("name", "")).lower()
            )
            if similarity >= NAME_SIMILARITY_MIN:
                logger.info(
                    "alias.match_found",
                    method="search_name",
                    catalog_id=best["catalog_id"],
                    similarity=round(similarity, 3),
                )
                return AliasMatchResult(
                    catalog_id=best["catalog_id"],
                    confidence=0.70 * similarity,
                    match_method="search_name",
                    catalog_item=best,
                    search_results=items,
                )

    logger.info("alias.match_not_found", sku=sku or None, product_name=product_name or None)
    return _manual()


async def batch_match_inventory(
    client: AliasClient,
    items: Sequence[InventoryMatchInput],
    delay_seconds: float | None = None,
) -> list[AliasMatchResult]:
    """Match items one at a time with a pause between calls.

    Args:
        client: Alias API client.
        items: Inventory items to match.
        delay_seconds: Pause after each item (defaults to settings).

    Returns:
        One result per item, in order. A failed item yields a manual result.
    """
    if delay_seconds is None:
        delay_seconds = get_settings().alias_batch_match_delay_seconds

    results: list[AliasMatchResult] = []
    for item in items:
        try:
            result = await match_inventory_to_alias_catalog(
                client, item.sku, item.product_name, item.brand
            )
        except Exception as e:
            logger.error(
                "alias.batch_match_failed",
                sku=item.sku,
                error=str(e),
                error_type=type(e).__name__,
            )
            result = _manual()
        results.append(result)
        await asyncio.sleep(delay_seconds)

    return results


def is_high_confidence_match(result: AliasMatchResult) -> bool:
    """Confidence at or above the threshold with a catalog id.

    High confidence is a UI hint only; every match still needs approval.
    """
    threshold = get_settings().alias_match_confidence_threshold
    return result.confidence >= threshold and result.catalog_id is not None


def should_auto_map(_result: AliasMatchResult) -> bool:
    """Auto-mapping is disabled; always False."""
    logger.warning("alias.auto_map_disabled")
    return False
