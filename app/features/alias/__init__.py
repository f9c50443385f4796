"""Alias (GOAT) integration: API client, catalog matching and webhooks."""

from app.features.alias.client import (
    AliasAPIError,
    AliasAuthenticationError,
    AliasCatalogNotFoundError,
    AliasClient,
    AliasPricingError,
    get_alias_client,
)
from app.features.alias.matching import (
    batch_match_inventory,
    is_high_confidence_match,
    match_inventory_to_alias_catalog,
    should_auto_map,
)
from app.features.alias.routes import router
from app.features.alias.webhooks import verify_webhook_signature

__all__ = [
    "AliasAPIError",
    "AliasAuthenticationError",
    "AliasCatalogNotFoundError",
    "AliasClient",
    "AliasPricingError",
    "batch_match_inventory",
    "get_alias_client",
    "is_high_confidence_match",
    "match_inventory_to_alias_catalog",
    "router",
    "should_auto_map",
    "verify_webhook_signature",
]
