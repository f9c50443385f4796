"""Canonical SKU keys for matching products across marketplaces.

StockX, Alias and hand-typed inventory rows format style codes differently
("IH0296 400", "(White) IH0296-400", "ih0296-400"). ``normalize_sku_for_matching``
reduces them to one uppercase, hyphenated key or returns None when no
recognisable style code is present.

Two shapes are recognised:
- Numeric styles (Crocs, Birkenstock): 4-6 digits, a separator, 2-4 characters
  ("205759-610").
- Letter-led styles (Nike, Jordan, New Balance): letters, digits, optional
  separated numeric suffix ("DD1391-100", "M990GL6").
"""

from __future__ import annotations

import re

_PARENTHESISED = re.compile(r"\([^)]*\)")
_DISALLOWED = re.compile(r"[^A-Za-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_NUMERIC_STYLE = re.compile(r"(?<![A-Z])(\d{4,6})[\s-](\w{2,4})", re.ASCII)
_LETTER_STYLE = re.compile(r"([A-Z]+\d+[A-Z\d]*(?:[-\s]\d+[A-Z]*)?)(?:\s|$)")
_LETTER_STYLE_LOOSE = re.compile(r"[A-Z]+\d{3,}[A-Z\d]*")
_SPACED_SUFFIX = re.compile(r"^([A-Z]+\d+)\s+(\d+)$")
_LOOSE_HYPHEN = re.compile(r"\s*-\s*")
_DIGIT = re.compile(r"\d")
_LETTER = re.compile(r"[A-Z]")
_ALNUM = re.compile(r"[A-Za-z0-9]")

MIN_SKU_LENGTH = 6
MAX_SKU_LENGTH = 15
MIN_SKU_DIGITS = 3


def _clean(raw: str) -> str:
    text = _PARENTHESISED.sub("", raw.strip())
    text = _DISALLOWED.sub("", text)
    text = _WHITESPACE.sub(" ", text)
    return text.upper()


def normalize_sku_for_matching(raw: str | None) -> str | None:
    """Normalize a free-text style code to its canonical matching key.

    Args:
        raw: SKU as typed by a user or returned by a provider.

    Returns:
        Canonical SKU (e.g. ``"IH0296-400"``), or None when no valid style code
        can be extracted.
    """
    if not raw or not raw.strip():
        return None

    text = _clean(raw)

    numeric = _NUMERIC_STYLE.search(text)
    if numeric:
        candidate = f"{numeric.group(1)}-{numeric.group(2)}"
        if 7 <= len(candidate) <= 12 and len(_DIGIT.findall(candidate)) >= 6:
            return candidate

    match = _LETTER_STYLE.search(text)
    if match:
        text = match.group(1).strip()
    else:
        loose = _LETTER_STYLE_LOOSE.search(text)
        if not loose:
            return None
        text = loose.group(0)

    text = _SPACED_SUFFIX.sub(r"\1-\2", text)
    text = _LOOSE_HYPHEN.sub("-", text)

    if not _LETTER.search(text):
        return None
    if len(_DIGIT.findall(text)) < MIN_SKU_DIGITS:
        return None
    if not MIN_SKU_LENGTH <= len(text) <= MAX_SKU_LENGTH:
        return None

    return text


def looks_like_sku(query: str | None) -> bool:
    """Heuristic used to choose SKU search over name search.

    Args:
        query: Raw search query.

    Returns:
        True when the query is SKU-shaped and normalizes successfully.
    """
    if not query:
        return False

    trimmed = query.strip()
    if not 6 <= len(trimmed) <= 20:
        return False
    if not _DIGIT.search(trimmed):
        return False
    if len(_ALNUM.findall(trimmed)) / len(trimmed) < 0.6:
        return False

    return normalize_sku_for_matching(trimmed) is not None


def compact_sku(raw: str | None) -> str:
    """Strip spaces and hyphens and uppercase, for loose equality checks."""
    if not raw:
        return ""
    return re.sub(r"[\s-]", "", raw).upper()
