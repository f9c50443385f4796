"""Alias webhook verification and event handling.

Deliveries are signed with HMAC-SHA256 over the raw body and sent as
``sha256=<hex>`` in the ``x-alias-signature`` header.
"""

from __future__ import annotations

import datetime
import hashlib
import hmac
import re
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.features.alias.models import AliasListing, AliasWebhookEvent
from app.features.alias.schemas import WebhookPayload, WebhookResult

logger = get_logger(__name__)

SIGNATURE_PREFIX = "sha256="
_HEX_DIGEST = re.compile(r"[0-9a-fA-F]{64}")


def compute_webhook_signature(payload: bytes | str, secret: str) -> str:
    """Signature header value for ``payload``."""
    body = payload.encode() if isinstance(payload, str) else payload
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_webhook_signature(
    payload: bytes | str,
    signature: str | None,
    secret: str | None,
) -> bool:
    """Check a webhook signature in constant time.

    Anything malformed (no prefix, non-hex digest, wrong length, empty secret)
    fails verification.

    Args:
        payload: Raw request body.
        signature: Header value, ``sha256=<hex>``.
        secret: Shared webhook secret.

    Returns:
        True only for a valid signature.
    """
    if not secret or not signature or not signature.startswith(SIGNATURE_PREFIX):
        logger.warning(
            "alias.webhook_signature_malformed",
            signature_prefix=(signature or "")[:20],
        )
        return False

    digest = signature[len(SIGNATURE_PREFIX) :]
    if not _HEX_DIGEST.fullmatch(digest):
        logger.warning("alias.webhook_signature_not_hex", digest_length=len(digest))
        return False
    received = bytes.fromhex(digest)

    body = payload.encode() if isinstance(payload, str) else payload
    expected = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    return hmac.compare_digest(received, expected)


async def record_webhook_event(db: AsyncSession, payload: WebhookPayload) -> None:
    """Store the delivery for auditing. Failures are logged and ignored."""
    try:
        async with db.begin_nested():
            db.add(
                AliasWebhookEvent(
                    event_id=payload.id,
                    event_type=payload.type,
                    event_created_at=payload.created_at,
                    payload=payload.model_dump(),
                )
            )
    except Exception as e:
        logger.warning("alias.webhook_record_failed", event_id=payload.id, error=str(e))


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


async def handle_listing_status_changed(db: AsyncSession, data: dict[str, Any]) -> WebhookResult:
    listing_id = data.get("listing_id")
    new_status = data.get("new_status")
    logger.info(
        "alias.webhook_listing_status_changed",
        listing_id=listing_id,
        old_status=data.get("old_status"),
        new_status=new_status,
    )
    now = _now()
    await db.execute(
        update(AliasListing)
        .where(AliasListing.alias_listing_id == listing_id)
        .values(
            status=new_status,
            sold_at=now if new_status == "sold" else None,
            synced_at=now,
        )
    )
    return WebhookResult(status="success", message="Listing status updated")


async def handle_listing_price_changed(db: AsyncSession, data: dict[str, Any]) -> WebhookResult:
    listing_id = data.get("listing_id")
    logger.info(
        "alias.webhook_listing_price_changed",
        listing_id=listing_id,
        old_price=data.get("old_price"),
        new_price=data.get("new_price"),
    )
    now = _now()
    await db.execute(
        update(AliasListing)
        .where(AliasListing.alias_listing_id == listing_id)
        .values(ask_price=data.get("new_price"), last_price_update=now, synced_at=now)
    )
    return WebhookResult(status="success", message="Listing price updated")


async def handle_order_created(_db: AsyncSession, data: dict[str, Any]) -> WebhookResult:
    logger.info(
        "alias.webhook_order_created",
        order_id=data.get("order_id"),
        listing_id=data.get("listing_id"),
    )
    return WebhookResult(status="success", message="Order created event logged")


async def handle_order_updated(_db: AsyncSession, data: dict[str, Any]) -> WebhookResult:
    logger.info(
        "alias.webhook_order_updated",
        order_id=data.get("order_id"),
        order_status=data.get("status"),
    )
    return WebhookResult(status="success", message="Order updated event logged")


async def handle_payout_created(_db: AsyncSession, data: dict[str, Any]) -> WebhookResult:
    logger.info(
        "alias.webhook_payout_created",
        payout_id=data.get("payout_id"),
        amount=data.get("amount"),
    )
    return WebhookResult(status="success", message="Payout created event logged")


EventHandler = Callable[[AsyncSession, dict[str, Any]], Awaitable[WebhookResult]]

EVENT_HANDLERS: dict[str, EventHandler] = {
    "listing.status.changed": handle_listing_status_changed,
    "listing.price.changed": handle_listing_price_changed,
    "order.created": handle_order_created,
    "order.updated": handle_order_updated,
    "payout.created": handle_payout_created,
}


async def handle_webhook_event(db: AsyncSession, payload: WebhookPayload) -> WebhookResult:
    """Dispatch an event to its handler; unknown types are skipped."""
    handler = EVENT_HANDLERS.get(payload.type)
    if handler is None:
        logger.warning("alias.webhook_unknown_event", event_type=payload.type)
        return WebhookResult(status="skipped", message=f"Unknown event type: {payload.type}")
    return await handler(db, payload.data)
