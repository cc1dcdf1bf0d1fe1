"""Inventory item (ingredient / stock article) model."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, JSON, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from pos_inventory.core.config import settings
from pos_inventory.db.base import ArchiveMixin, Base, TimestampMixin
from pos_inventory.models.validators import non_negative

TRACKING_METHODS = ("fifo", "lifo", "fefo", "average")


class InventoryItem(Base, ArchiveMixin, TimestampMixin):
    """A stock-keeping article.

    ``current_stock`` is a cache of the per-warehouse ``InventoryStock``
    quantities and is rewritten by every stock mutation; ``cost`` is the
    weighted-average unit cost maintained by supplier purchases.
    """

    __tablename__ = "inventory_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    sku: Mapped[Optional[str]] = mapped_column(String(100), unique=True, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    unit: Mapped[str] = mapped_column(String(20), default=lambda: settings.default_unit, nullable=False)

    current_stock: Mapped[Decimal] = mapped_column(
        Numeric(14, 3), default=Decimal("0"), server_default="0", nullable=False
    )
    par_level: Mapped[Decimal] = mapped_column(
        Numeric(14, 3), default=Decimal("0"), server_default="0", nullable=False
    )
    cost: Mapped[Decimal] = mapped_column(
        Numeric(14, 4), default=Decimal("0"), server_default="0", nullable=False
    )
    supplier_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    default_warehouse_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True, index=True
    )

    tracking_method: Mapped[str] = mapped_column(String(20), default="fifo", nullable=False)
    consumption_unit: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    conversion_rate: Mapped[Decimal] = mapped_column(Numeric(14, 4), default=Decimal("1"), nullable=False)
    storage_conditions: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    shelf_life_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    expiry_tracking_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    low_stock_alert_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    tags: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    allergens: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    last_restock_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    default_warehouse: Mapped[Optional["Warehouse"]] = relationship(
        "Warehouse", foreign_keys=[default_warehouse_id]
    )
    stocks: Mapped[List["InventoryStock"]] = relationship(
        "InventoryStock", back_populates="item", cascade="all, delete-orphan"
    )

    @validates("current_stock", "par_level", "cost", "conversion_rate")
    def _validate_amounts(self, key, value):
        return non_negative(key, value)

    @validates("shelf_life_days")
    def _validate_shelf_life(self, key, value):
        return non_negative(key, value)

    @property
    def is_low_stock(self) -> bool:
        """At or below par, for items that have a par level and alerts on."""
        par = self.par_level or Decimal("0")
        return (
            bool(self.low_stock_alert_enabled)
            and par > 0
            and (self.current_stock or Decimal("0")) <= par
        )

    @property
    def inventory_value(self) -> Decimal:
        return (self.current_stock or Decimal("0")) * (self.cost or Decimal("0"))


from pos_inventory.models.warehouse import Warehouse  # noqa: E402
from pos_inventory.models.stock import InventoryStock  # noqa: E402
