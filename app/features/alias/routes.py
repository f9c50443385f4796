"""API routes for Alias catalog matching and webhooks."""

import json
import time

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db
from app.core.exceptions import BadRequestError, ResaleLedgerError, UnauthorizedError
from app.core.logging import get_logger
from app.features.alias.client import AliasClient, get_alias_client
from app.features.alias.matching import (
    batch_match_inventory,
    is_high_confidence_match,
    match_inventory_to_alias_catalog,
)
from app.features.alias.schemas import (
    AliasMatchResult,
    BatchMatchRequest,
    BatchMatchResponse,
    InventoryMatchInput,
    WebhookAck,
    WebhookPayload,
)
from app.features.alias.webhooks import (
    handle_webhook_event,
    record_webhook_event,
    verify_webhook_signature,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/alias", tags=["alias"])


@router.post(
    "/match",
    response_model=AliasMatchResult,
    summary="Suggest an Alias catalog item for an inventory item",
    description="""
Tries, in order: exact SKU, SKU ignoring spaces and hyphens, fuzzy SKU and fuzzy
product name. The first confident heuristic wins.

Suggestions are never persisted; mapping requires manual approval.
""",
)
async def match(
    item: InventoryMatchInput,
    client: AliasClient = Depends(get_alias_client),
) -> AliasMatchResult:
    return await match_inventory_to_alias_catalog(
        client, item.sku, item.product_name, item.brand
    )


@router.post(
    "/match/batch",
    response_model=BatchMatchResponse,
    summary="Suggest Alias catalog items for up to 50 inventory items",
)
async def match_batch(
    request: BatchMatchRequest,
    client: AliasClient = Depends(get_alias_client),
) -> BatchMatchResponse:
    results = await batch_match_inventory(client, request.items)
    return BatchMatchResponse(
        results=results,
        high_confidence=sum(1 for r in results if is_high_confidence_match(r)),
    )


@router.post(
    "/webhooks",
    response_model=WebhookAck,
    response_model_exclude_none=True,
    summary="Receive a signed Alias webhook",
    description="""
Verifies the `x-alias-signature` (or `x-webhook-signature`) HMAC-SHA256 header
over the raw body, records the event and applies it.

Once a delivery is verified and parsed, the response is always 200 so that Alias
does not redeliver; `processed` reports whether the event was applied.
""",
)
async def receive_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> WebhookAck:
    started = time.perf_counter()
    settings = get_settings()

    if not settings.alias_webhooks_enabled:
        raise ResaleLedgerError(
            "Alias integration is not enabled", code="NOT_IMPLEMENTED", status_code=501
        )

    raw_body = await request.body()
    signature = request.headers.get("x-alias-signature") or request.headers.get(
        "x-webhook-signature"
    )
    if not signature:
        raise BadRequestError("Missing webhook signature header")

    if not settings.alias_webhook_secret:
        logger.error("alias.webhook_secret_missing")
        raise ResaleLedgerError(
            "Webhook secret not configured", code="CONFIGURATION_ERROR", status_code=500
        )

    if not verify_webhook_signature(raw_body, signature, settings.alias_webhook_secret):
        logger.warning("alias.webhook_signature_invalid", signature_prefix=signature[:20])
        raise UnauthorizedError("Invalid webhook signature")

    try:
        body = json.loads(raw_body)
    except ValueError as e:
        raise BadRequestError("Invalid JSON payload") from e

    if not isinstance(body, dict) or not (body.get("id") and body.get("type") and body.get("data")):
        raise BadRequestError("Incomplete webhook payload")

    try:
        payload = WebhookPayload.model_validate(body)
    except PydanticValidationError as e:
        raise BadRequestError("Incomplete webhook payload") from e

    await record_webhook_event(db, payload)

    try:
        async with db.begin_nested():
            result = await handle_webhook_event(db, payload)
    except Exception as e:
        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.error(
            "alias.webhook_failed",
            event_id=payload.id,
            event_type=payload.type,
            error=str(e),
            duration_ms=duration_ms,
            exc_info=True,
        )
        return WebhookAck(
            event_id=payload.id,
            event_type=payload.type,
            processed=False,
            error=str(e),
            duration_ms=duration_ms,
        )

    duration_ms = int((time.perf_counter() - started) * 1000)
    logger.info(
        "alias.webhook_processed",
        event_id=payload.id,
        event_type=payload.type,
        result=result.status,
        duration_ms=duration_ms,
    )
    return WebhookAck(
        event_id=payload.id,
        event_type=payload.type,
        processed=result.status == "success",
        message=result.message,
        duration_ms=duration_ms,
    )
