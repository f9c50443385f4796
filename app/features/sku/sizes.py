"""Shoe size parsing and conversion to UK sizing.

Inventory is keyed on UK size. Provider and import rows arrive in UK, US, EU or
JP notation, sometimes prefixed ("US10"), sometimes bare ("10").
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal

SizeSystem = Literal["UK", "US", "EU", "JP"]
Gender = Literal["M", "W"]

_PREFIXED = re.compile(r"^\s*(UK|US|EU|JP)\s*(.+?)\s*$", re.IGNORECASE)
# Women's marker before or after the number: "W10", "W 10", "10W".
_WOMENS = re.compile(r"^(?:(W)\s*)?(\d+(?:\.\d+)?)\s*(W)?$", re.IGNORECASE)

# US men's runs one size above UK, women's two.
US_TO_UK_OFFSET: dict[str, float] = {"M": 1.0, "W": 2.0}


@dataclass(frozen=True)
class ParsedSize:
    """Size split into notation system, raw value and gender marker."""

    system: SizeSystem | None
    value: str | None
    gender: Gender | None = None


def parse_size(text: str | None) -> ParsedSize:
    """Split a size string into system, value and gender.

    Args:
        text: Size such as ``"UK 9.5"``, ``"us10"``, ``"US W10"`` or ``"9"``.

    Returns:
        ParsedSize; system is None for bare values, gender is ``"W"`` only
        when a women's marker is present.
    """
    if text is None:
        return ParsedSize(system=None, value=None)

    system: SizeSystem | None = None
    value = text.strip()
    match = _PREFIXED.match(text)
    if match:
        system = match.group(1).upper()  # type: ignore[assignment]
        value = match.group(2)

    womens = _WOMENS.match(value)
    if womens and (womens.group(1) or womens.group(3)):
        return ParsedSize(system=system, value=womens.group(2), gender="W")

    return ParsedSize(system=system, value=value)


def _round_half(value: float) -> float:
    # Halves go up: EU 43 is UK 8.5, not 8.
    doubled = Decimal(repr(value * 2)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return float(doubled) / 2


def _parse_number(size: str) -> float | None:
    try:
        value = float(size)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def format_size_number(value: float) -> str:
    """Render 9.0 as "9" and 9.5 as "9.5"."""
    if math.isfinite(value) and value == int(value):
        return str(int(value))
    return f"{value:g}"


def convert_to_uk(
    size: str,
    system: SizeSystem,
    gender: Gender | None = None,
) -> str:
    """Convert a size value to UK sizing.

    Args:
        size: Numeric size value, without prefix.
        system: Notation the value is expressed in.
        gender: ``"W"`` for women's US sizing; men's is assumed otherwise.

    Returns:
        UK size as a string. Non-numeric sizes ("OS", "XL", "nan") pass through.
    """
    value = _parse_number(size)
    if value is None or system == "UK":
        return size

    if system == "US":
        uk = value - US_TO_UK_OFFSET.get(gender or "M", 1.0)
    elif system == "EU":
        uk = _round_half((value - 32) * 0.75)
    elif system == "JP":
        uk = _round_half(value - 22)
    else:
        return size

    return format_size_number(uk)


def _from_parsed(text: str, default_system: SizeSystem) -> str | None:
    parsed = parse_size(text)
    if parsed.value is None or parsed.value == "":
        return None
    return convert_to_uk(parsed.value, parsed.system or default_system, parsed.gender)


def normalize_size_to_uk(record: Mapping[str, str | None]) -> str | None:
    """Pick the best size field from a loosely-typed record and convert to UK.

    Fields are tried in order: ``uk``, ``size_uk``, ``size``, ``us``, ``eu``,
    ``jp``, ``size_alt``. Bare numbers in ``size``/``size_alt`` are read as UK.

    Args:
        record: Row from an import or provider payload.

    Returns:
        UK size, or None if no size field is present.
    """
    for key in ("uk", "size_uk"):
        value = record.get(key)
        if value:
            return value

    ordered: list[tuple[str, SizeSystem]] = [
        ("size", "UK"),
        ("us", "US"),
        ("eu", "EU"),
        ("jp", "JP"),
        ("size_alt", "UK"),
    ]
    for key, default_system in ordered:
        value = record.get(key)
        if value:
            converted = _from_parsed(value, default_system)
            if converted is not None:
                return converted

    return None


def format_size_display(
    size: str | None,
    system: SizeSystem,
    gender: Gender | None = None,
) -> str | None:
    """Format a size for display, e.g. ``"UK 9"`` or ``"US W 10"``."""
    if size is None:
        return None
    if gender == "W":
        return f"{system} W {size}"
    return f"{system} {size}"
