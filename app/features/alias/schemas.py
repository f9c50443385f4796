"""Pydantic schemas for Alias matching and webhooks."""

from typing import Any, Literal

from pydantic import BaseModel, Field

MatchMethod = Literal["exact_sku", "normalized_sku", "search_sku", "search_name", "manual"]


class InventoryMatchInput(BaseModel):
    """Inventory fields used to find an Alias catalog item."""

    sku: str | None = Field(None, description="Style code, e.g. 'DZ5485-612'.")
    product_name: str | None = Field(None, description="Product name.")
    brand: str | None = Field(None, description="Brand, prefixed to name searches.")
    size: str | None = None


class AliasMatchResult(BaseModel):
    """Suggested catalog match. Never persisted automatically."""

    catalog_id: str | None
    confidence: float = Field(..., ge=0.0, le=1.0)
    match_method: MatchMethod
    catalog_item: dict[str, Any] | None = None
    search_results: list[dict[str, Any]] | None = None


class BatchMatchRequest(BaseModel):
    """Request body for POST /alias/match/batch."""

    items: list[InventoryMatchInput] = Field(..., min_length=1, max_length=50)


class BatchMatchResponse(BaseModel):
    """Results in request order plus a high-confidence count."""

    results: list[AliasMatchResult]
    high_confidence: int


class WebhookPayload(BaseModel):
    """Alias webhook envelope."""

    id: str
    type: str
    created_at: str | None = None
    data: dict[str, Any]


class WebhookResult(BaseModel):
    """Outcome of handling one event."""

    status: Literal["success", "skipped", "error"]
    message: str


class WebhookAck(BaseModel):
    """Response returned to Alias."""

    received: bool = True
    event_id: str | None = None
    event_type: str | None = None
    processed: bool
    message: str | None = None
    error: str | None = None
    duration_ms: int
