"""Inventory item and sale ORM models.

Marking an item sold moves it: a Sale row is written with the item's id in
``original_item_id`` and the InventoryItem row is deleted. Undoing the sale
moves it back under the same id.
"""

import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.shared.models import OwnedMixin, TimestampMixin


class InventoryItem(OwnedMixin, TimestampMixin, Base):
    """A pair (or piece) the owner currently holds.

    Attributes:
        id: Primary key.
        owner_id: Owning user.
        sku: Uppercase style code; joins to style_catalog.style_id.
        brand: Brand name.
        model: Product name.
        colorway: Colorway.
        size_uk: UK size.
        condition: new, deadstock, used, worn or defect.
        purchase_price: Amount paid, in purchase_currency.
        purchase_currency: Currency of purchase_price.
        purchase_date: Date bought.
        status: active, listed or consigned.
        notes: Free text.
    """

    __tablename__ = "inventory_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sku: Mapped[str] = mapped_column(String(64), index=True)
    brand: Mapped[str | None] = mapped_column(String(100), nullable=True)
    model: Mapped[str | None] = mapped_column(String(255), nullable=True)
    colorway: Mapped[str | None] = mapped_column(String(255), nullable=True)
    size_uk: Mapped[str | None] = mapped_column(String(20), nullable=True)
    condition: Mapped[str] = mapped_column(String(20), default="new", server_default="new")
    purchase_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    purchase_currency: Mapped[str] = mapped_column(String(3), default="GBP", server_default="GBP")
    purchase_date: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active", server_default="active")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("purchase_price >= 0", name="ck_inventory_items_purchase_price"),
        CheckConstraint(
            "condition IN ('new', 'deadstock', 'used', 'worn', 'defect')",
            name="ck_inventory_items_condition",
        ),
        CheckConstraint(
            "status IN ('active', 'listed', 'consigned')", name="ck_inventory_items_status"
        ),
        Index("ix_inventory_items_owner_status", "owner_id", "status"),
    )


class Sale(OwnedMixin, TimestampMixin, Base):
    """A completed sale with its FX snapshot.

    Amounts are stored in the sale currency alongside the rate to the owner's
    base currency on the sale date, so historical reports never move when rates
    change.

    Attributes:
        id: Primary key.
        owner_id: Seller.
        original_item_id: Id of the inventory item that was sold (unique).
        sku, brand, model, colorway, size_uk: Copied from the item.
        condition: New, Used, Worn or Defect.
        item_condition: The item's own condition (new, deadstock, ...), for undo.
        item_status: The item's status when sold (active, listed, consigned).
        purchase_price: Cost, in purchase_currency.
        purchase_currency: Currency of purchase_price.
        purchase_date: Date bought.
        purchase_price_base: Cost converted to base currency.
        sold_price: Sale price, in sale_currency.
        sale_currency: Currency of the sale.
        base_currency: Owner's reporting currency.
        fx_rate_used: Sale currency to base currency rate on sold_date.
        sold_price_base: sold_price x fx_rate_used.
        sales_fee: Platform fees plus shipping, in sale_currency.
        shipping_cost: Shipping part of sales_fee.
        platform: Where it sold.
        sold_date: Sale date.
        notes: Free text.
    """

    __tablename__ = "sales"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    original_item_id: Mapped[int] = mapped_column(Integer, unique=True)
    sku: Mapped[str] = mapped_column(String(64), index=True)
    brand: Mapped[str | None] = mapped_column(String(100), nullable=True)
    model: Mapped[str | None] = mapped_column(String(255), nullable=True)
    colorway: Mapped[str | None] = mapped_column(String(255), nullable=True)
    size_uk: Mapped[str | None] = mapped_column(String(20), nullable=True)
    condition: Mapped[str | None] = mapped_column(String(20), nullable=True)
    item_condition: Mapped[str | None] = mapped_column(String(20), nullable=True)
    item_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    purchase_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    purchase_currency: Mapped[str] = mapped_column(String(3), default="GBP")
    purchase_date: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    purchase_price_base: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    sold_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    sale_currency: Mapped[str] = mapped_column(String(3))
    base_currency: Mapped[str] = mapped_column(String(3))
    fx_rate_used: Mapped[Decimal] = mapped_column(Numeric(12, 6))
    sold_price_base: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    sales_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal(0))
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal(0))
    platform: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sold_date: Mapped[datetime.date] = mapped_column(Date)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("sold_price > 0", name="ck_sales_sold_price_positive"),
        CheckConstraint("fx_rate_used > 0", name="ck_sales_fx_rate_positive"),
        Index("ix_sales_owner_sold_date", "owner_id", "sold_date"),
    )
