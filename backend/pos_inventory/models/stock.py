"""Stock models: InventoryStock (per warehouse balance) and InventoryMovement (ledger)."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from pos_inventory.db.base import Base, utcnow
from pos_inventory.models.validators import non_negative


class MovementType(str, Enum):
    """Kinds of stock movements."""

    INCOMING = "incoming"  # Goods received / supplier purchase
    USAGE = "usage"  # Consumed by orders
    ADJUSTMENT = "adjustment"  # Manual correction
    WASTE = "waste"  # Spoilage, breakage
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    RETURN = "return"  # Returned to supplier
    COUNT_ADJUSTMENT = "count_adjustment"  # Cycle count / import reconciliation


# Movement types that consume stock, used by the fast-moving report
OUTBOUND_MOVEMENT_TYPES = (
    MovementType.USAGE.value,
    MovementType.WASTE.value,
    MovementType.TRANSFER_OUT.value,
    MovementType.RETURN.value,
)


class InventoryStock(Base):
    """Current quantity of one item in one warehouse."""

    __tablename__ = "inventory_stock"
    __table_args__ = (
        UniqueConstraint("item_id", "warehouse_id", name="uq_inventory_stock_item_warehouse"),
        CheckConstraint("quantity >= 0", name="ck_inventory_stock_quantity_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    item_id: Mapped[int] = mapped_column(
        ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    warehouse_id: Mapped[int] = mapped_column(
        ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quantity: Mapped[Decimal] = mapped_column(
        Numeric(14, 3), default=Decimal("0"), server_default="0", nullable=False
    )
    unit: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    par_level: Mapped[Decimal] = mapped_column(Numeric(14, 3), default=Decimal("0"), nullable=False)
    reorder_point: Mapped[Decimal] = mapped_column(Numeric(14, 3), default=Decimal("0"), nullable=False)
    safety_stock: Mapped[Decimal] = mapped_column(Numeric(14, 3), default=Decimal("0"), nullable=False)
    last_count_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_movement_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    item: Mapped["InventoryItem"] = relationship("InventoryItem", back_populates="stocks")
    warehouse: Mapped["Warehouse"] = relationship("Warehouse", back_populates="stocks")

    @validates("quantity", "par_level", "reorder_point", "safety_stock")
    def _validate_quantities(self, key, value):
        return non_negative(key, value)


class InventoryMovement(Base):
    """Append-only ledger of every stock change.

    ``delta`` is signed, ``quantity`` is its magnitude and ``balance_after``
    is the stock row quantity right after the change was applied.
    """

    __tablename__ = "inventory_movements"
    __table_args__ = (
        Index("ix_inventory_movements_item_created", "item_id", "created_at"),
        Index("ix_inventory_movements_warehouse_created", "warehouse_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    item_id: Mapped[int] = mapped_column(
        ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    delta: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    unit: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    warehouse_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True
    )
    source_warehouse_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True
    )
    target_warehouse_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True
    )

    unit_cost: Mapped[Decimal] = mapped_column(Numeric(14, 4), default=Decimal("0"), nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    created_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    supplier_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    item: Mapped["InventoryItem"] = relationship("InventoryItem")
    warehouse: Mapped[Optional["Warehouse"]] = relationship("Warehouse", foreign_keys=[warehouse_id])
    source_warehouse: Mapped[Optional["Warehouse"]] = relationship(
        "Warehouse", foreign_keys=[source_warehouse_id]
    )
    target_warehouse: Mapped[Optional["Warehouse"]] = relationship(
        "Warehouse", foreign_keys=[target_warehouse_id]
    )
    supplier: Mapped[Optional["Supplier"]] = relationship("Supplier")


from pos_inventory.models.inventory import InventoryItem  # noqa: E402
from pos_inventory.models.warehouse import Warehouse  # noqa: E402
from pos_inventory.models.supplier import Supplier  # noqa: E402
