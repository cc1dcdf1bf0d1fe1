"""Warehouse (stock location) model."""

from __future__ import annotations

from typing import Optional, List

from sqlalchemy import Boolean, ForeignKey, Index, JSON, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pos_inventory.db.base import Base, TimestampMixin

WAREHOUSE_TYPES = ("main", "kitchen", "bar", "delivery", "storage", "custom")


class Warehouse(Base, TimestampMixin):
    """A physical or logical stock location.

    At most one row may carry ``is_default``; the partial unique index below
    makes a second default a database error rather than a silent state.
    """

    __tablename__ = "warehouses"
    __table_args__ = (
        Index(
            "uq_warehouses_single_default",
            "is_default",
            unique=True,
            sqlite_where=text("is_default = 1"),
            postgresql_where=text("is_default = true"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    code: Mapped[Optional[str]] = mapped_column(String(50), unique=True, nullable=True)
    type: Mapped[str] = mapped_column(String(20), default="custom", nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Address
    street: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Contact
    contact_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    contact_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    parent_warehouse_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True
    )
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    # Relationships
    parent: Mapped[Optional["Warehouse"]] = relationship("Warehouse", remote_side=[id])
    stocks: Mapped[List["InventoryStock"]] = relationship(
        "InventoryStock", back_populates="warehouse"
    )

    @property
    def address(self) -> dict:
        return {
            "street": self.street or "",
            "city": self.city or "",
            "state": self.state or "",
            "country": self.country or "",
            "postal_code": self.postal_code or "",
        }

    @property
    def contact(self) -> dict:
        return {
            "name": self.contact_name or "",
            "phone": self.contact_phone or "",
            "email": self.contact_email or "",
        }


from pos_inventory.models.stock import InventoryStock  # noqa: E402
