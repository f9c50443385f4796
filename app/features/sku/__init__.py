"""SKU normalization and shoe size conversion."""

from app.features.sku.normalize import compact_sku, looks_like_sku, normalize_sku_for_matching
from app.features.sku.routes import router
from app.features.sku.sizes import (
    ParsedSize,
    convert_to_uk,
    format_size_display,
    normalize_size_to_uk,
    parse_size,
)

__all__ = [
    "ParsedSize",
    "compact_sku",
    "convert_to_uk",
    "format_size_display",
    "looks_like_sku",
    "normalize_size_to_uk",
    "normalize_sku_for_matching",
    "parse_size",
    "router",
]
