"""Pydantic schemas for SKU and size endpoints."""

from typing import Literal

from pydantic import BaseModel, Field


class SkuNormalizeResponse(BaseModel):
    """Result of normalizing a raw SKU string."""

    raw: str = Field(..., description="Input exactly as received.")
    normalized: str | None = Field(
        None,
        description="Canonical matching key (e.g. 'IH0296-400'), or null when no "
        "style code could be extracted.",
    )
    compact: str = Field(..., description="Input uppercased with spaces and hyphens removed.")
    looks_like_sku: bool = Field(
        ...,
        description="True when the input should be searched as a SKU rather than a name.",
    )


class SizeConvertResponse(BaseModel):
    """Result of converting a size to UK sizing."""

    size: str = Field(..., description="Input size value.")
    system: Literal["UK", "US", "EU", "JP"] = Field(..., description="Input notation.")
    gender: Literal["M", "W"] | None = Field(None, description="Gender for US sizing.")
    size_uk: str = Field(..., description="Size in UK notation.")
    display: str | None = Field(None, description="Display label, e.g. 'UK 9'.")
