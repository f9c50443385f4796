"""API routes for SKU normalization and size conversion."""

from typing import Literal

from fastapi import APIRouter, Query

from app.core.logging import get_logger
from app.features.sku.normalize import compact_sku, looks_like_sku, normalize_sku_for_matching
from app.features.sku.schemas import SizeConvertResponse, SkuNormalizeResponse
from app.features.sku.sizes import convert_to_uk, format_size_display, parse_size

logger = get_logger(__name__)

router = APIRouter(prefix="/sku", tags=["sku"])


@router.get(
    "/normalize",
    response_model=SkuNormalizeResponse,
    summary="Normalize a SKU for cross-marketplace matching",
)
async def normalize_sku(
    q: str = Query(..., min_length=1, max_length=200, description="Raw SKU or search text"),
) -> SkuNormalizeResponse:
    """Return the canonical matching key for a raw SKU."""
    normalized = normalize_sku_for_matching(q)
    logger.debug("sku.normalized", raw=q, normalized=normalized)
    return SkuNormalizeResponse(
        raw=q,
        normalized=normalized,
        compact=compact_sku(q),
        looks_like_sku=looks_like_sku(q),
    )


@router.get(
    "/sizes/convert",
    response_model=SizeConvertResponse,
    summary="Convert a shoe size to UK sizing",
)
async def convert_size(
    size: str = Query(..., min_length=1, max_length=20, description="Size, optionally prefixed"),
    system: Literal["UK", "US", "EU", "JP"] | None = Query(
        None, description="Notation; inferred from a prefix, else UK"
    ),
    gender: Literal["M", "W"] | None = Query(None, description="Gender for US sizing"),
) -> SizeConvertResponse:
    """Convert a size to UK notation."""
    parsed = parse_size(size)
    resolved_system = system or parsed.system or "UK"
    resolved_gender = gender or parsed.gender
    value = parsed.value or size
    size_uk = convert_to_uk(value, resolved_system, resolved_gender)
    return SizeConvertResponse(
        size=value,
        system=resolved_system,
        gender=resolved_gender,
        size_uk=size_uk,
        display=format_size_display(size_uk, "UK"),
    )
