"""create_resale_ledger_tables

Revision ID: 3b1f9c2d7e40
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3b1f9c2d7e40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    """created_at / updated_at columns from TimestampMixin."""
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Apply migration - create ledger, market, FX, Alias, StockX and sync tables."""
    # FX
    op.create_table(
        "fx_rates",
        sa.Column("as_of", sa.Date(), nullable=False),
        sa.Column("gbp_per_usd", sa.Numeric(12, 6), nullable=False),
        sa.Column("gbp_per_eur", sa.Numeric(12, 6), nullable=False),
        sa.Column("source", sa.String(length=50), nullable=False, server_default="manual"),
        sa.Column(
            "meta", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default="{}"
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("as_of"),
        sa.CheckConstraint("gbp_per_usd > 0", name="ck_fx_rates_gbp_per_usd_positive"),
        sa.CheckConstraint("gbp_per_eur > 0", name="ck_fx_rates_gbp_per_eur_positive"),
    )
    op.create_table(
        "fx_audit_log",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("table_name", sa.String(length=50), nullable=False),
        sa.Column("record_id", sa.String(length=64), nullable=False),
        sa.Column("field_name", sa.String(length=50), nullable=False),
        sa.Column("rate_date", sa.Date(), nullable=False),
        sa.Column("from_currency", sa.String(length=3), nullable=False),
        sa.Column("to_currency", sa.String(length=3), nullable=False),
        sa.Column("rate", sa.Numeric(12, 6), nullable=False),
        sa.Column("original_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("converted_amount", sa.Numeric(12, 2), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_fx_audit_log_record", "fx_audit_log", ["table_name", "record_id"])

    # Style catalog and market snapshots
    op.create_table(
        "style_catalog",
        sa.Column("style_id", sa.String(length=64), nullable=False),
        sa.Column("brand", sa.String(length=100), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("colorway", sa.String(length=255), nullable=True),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("stockx_product_id", sa.String(length=64), nullable=True),
        sa.Column("alias_catalog_id", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("style_id"),
        sa.CheckConstraint("style_id = upper(style_id)", name="ck_style_catalog_style_id_upper"),
    )
    op.create_index(
        op.f("ix_style_catalog_stockx_product_id"), "style_catalog", ["stockx_product_id"]
    )
    op.create_index(
        op.f("ix_style_catalog_alias_catalog_id"), "style_catalog", ["alias_catalog_id"]
    )

    op.create_table(
        "market_snapshots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("provider", sa.String(length=20), nullable=False),
        sa.Column("style_id", sa.String(length=64), nullable=False),
        sa.Column("size", sa.String(length=20), nullable=False),
        sa.Column("size_uk", sa.String(length=20), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("lowest_ask", sa.Numeric(12, 2), nullable=True),
        sa.Column("highest_bid", sa.Numeric(12, 2), nullable=True),
        sa.Column("last_sale", sa.Numeric(12, 2), nullable=True),
        sa.Column("sales_72h", sa.Integer(), nullable=True),
        sa.Column("sales_30d", sa.Integer(), nullable=True),
        sa.Column("as_of", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "meta", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default="{}"
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "provider", "style_id", "size", "currency", name="uq_market_snapshots_key"
        ),
        sa.CheckConstraint("provider IN ('stockx', 'alias')", name="ck_market_snapshots_provider"),
    )
    op.create_index(op.f("ix_market_snapshots_style_id"), "market_snapshots", ["style_id"])
    op.create_index(
        "ix_market_snapshots_style_size_uk", "market_snapshots", ["style_id", "size_uk"]
    )

    # Inventory and sales
    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("brand", sa.String(length=100), nullable=True),
        sa.Column("model", sa.String(length=255), nullable=True),
        sa.Column("colorway", sa.String(length=255), nullable=True),
        sa.Column("size_uk", sa.String(length=20), nullable=True),
        sa.Column("condition", sa.String(length=20), nullable=False, server_default="new"),
        sa.Column("purchase_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("purchase_currency", sa.String(length=3), nullable=False, server_default="GBP"),
        sa.Column("purchase_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("purchase_price >= 0", name="ck_inventory_items_purchase_price"),
        sa.CheckConstraint(
            "condition IN ('new', 'deadstock', 'used', 'worn', 'defect')",
            name="ck_inventory_items_condition",
        ),
        sa.CheckConstraint(
            "status IN ('active', 'listed', 'consigned')", name="ck_inventory_items_status"
        ),
    )
    op.create_index(op.f("ix_inventory_items_owner_id"), "inventory_items", ["owner_id"])
    op.create_index(op.f("ix_inventory_items_sku"), "inventory_items", ["sku"])
    op.create_index(
        "ix_inventory_items_owner_status", "inventory_items", ["owner_id", "status"]
    )

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("original_item_id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("brand", sa.String(length=100), nullable=True),
        sa.Column("model", sa.String(length=255), nullable=True),
        sa.Column("colorway", sa.String(length=255), nullable=True),
        sa.Column("size_uk", sa.String(length=20), nullable=True),
        sa.Column("condition", sa.String(length=20), nullable=True),
        sa.Column("purchase_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("purchase_currency", sa.String(length=3), nullable=False),
        sa.Column("purchase_date", sa.Date(), nullable=True),
        sa.Column("purchase_price_base", sa.Numeric(12, 2), nullable=True),
        sa.Column("sold_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("sale_currency", sa.String(length=3), nullable=False),
        sa.Column("base_currency", sa.String(length=3), nullable=False),
        sa.Column("fx_rate_used", sa.Numeric(12, 6), nullable=False),
        sa.Column("sold_price_base", sa.Numeric(12, 2), nullable=False),
        sa.Column("sales_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("shipping_cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("platform", sa.String(length=50), nullable=True),
        sa.Column("sold_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("original_item_id"),
        sa.CheckConstraint("sold_price > 0", name="ck_sales_sold_price_positive"),
        sa.CheckConstraint("fx_rate_used > 0", name="ck_sales_fx_rate_positive"),
    )
    op.create_index(op.f("ix_sales_owner_id"), "sales", ["owner_id"])
    op.create_index(op.f("ix_sales_sku"), "sales", ["sku"])
    op.create_index("ix_sales_owner_sold_date", "sales", ["owner_id", "sold_date"])

    # Alias
    op.create_table(
        "alias_listings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("alias_listing_id", sa.String(length=100), nullable=False),
        sa.Column("catalog_id", sa.String(length=255), nullable=False),
        sa.Column("inventory_item_id", sa.Integer(), nullable=True),
        sa.Column("size", sa.Numeric(5, 1), nullable=True),
        sa.Column("ask_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("sold_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_price_update", sa.DateTime(timezone=True), nullable=True),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_alias_listings_alias_listing_id"),
        "alias_listings",
        ["alias_listing_id"],
        unique=True,
    )
    op.create_index(
        op.f("ix_alias_listings_inventory_item_id"), "alias_listings", ["inventory_item_id"]
    )

    op.create_table(
        "alias_webhook_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.String(length=100), nullable=False),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("event_created_at", sa.String(length=50), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column(
            "received_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_alias_webhook_events_event_id", "alias_webhook_events", ["event_id"])

    # StockX OAuth tokens
    op.create_table(
        "stockx_accounts",
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("token_type", sa.String(length=20), nullable=False, server_default="Bearer"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scope", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("user_id"),
    )

    # Sync queue
    op.create_table(
        "sync_jobs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("style_id", sa.String(length=64), nullable=False),
        sa.Column("provider", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("max_attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("next_retry_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="ck_sync_jobs_valid_status",
        ),
        sa.CheckConstraint("provider IN ('stockx', 'alias')", name="ck_sync_jobs_valid_provider"),
    )
    op.create_index(op.f("ix_sync_jobs_style_id"), "sync_jobs", ["style_id"])
    op.create_index("ix_sync_jobs_status_next_retry", "sync_jobs", ["status", "next_retry_at"])
    # One pending job per style and provider
    op.create_index(
        "uq_sync_jobs_pending",
        "sync_jobs",
        ["style_id", "provider"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )


def downgrade() -> None:
    """Revert migration - drop all tables (indexes go with them)."""
    op.drop_table("sync_jobs")
    op.drop_table("stockx_accounts")
    op.drop_table("alias_webhook_events")
    op.drop_table("alias_listings")
    op.drop_table("sales")
    op.drop_table("inventory_items")
    op.drop_table("market_snapshots")
    op.drop_table("style_catalog")
    op.drop_table("fx_audit_log")
    op.drop_table("fx_rates")
