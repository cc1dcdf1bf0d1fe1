"""Restaurant front-of-house models the inventory core reads from: menu items and orders."""

from decimal import Decimal

from sqlalchemy import Column, Integer, String, DateTime, Numeric, Boolean, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship, validates

from pos_inventory.core.validators import to_decimal
from pos_inventory.db.base import Base, utcnow
from pos_inventory.models.validators import non_negative


class MenuItem(Base):
    """Menu item for ordering."""
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    category = Column(String(100), nullable=True)
    available = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @validates('price')
    def _validate_price(self, key, value):
        return non_negative(key, value)


class Order(Base):
    """A placed order; its lines drive recipe-based ingredient usage."""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    table_name = Column(String(100), nullable=True)
    order_type = Column(String(20), default="table")  # table, delivery, takeaway
    status = Column(String(20), default="new")  # new, in_progress, ready, closed, cancelled

    # [{"menu_item_id", "name", "qty", "price", "portion_key", "notes"}]
    items = Column(JSON, nullable=False, default=list)

    subtotal = Column(Numeric(12, 2), default=Decimal("0"))
    discount = Column(Numeric(12, 2), default=Decimal("0"))
    total = Column(Numeric(12, 2), default=Decimal("0"))

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    # Relationships
    usage_task = relationship("InventoryUsageTask", back_populates="order", uselist=False)

    @validates('subtotal', 'discount', 'total')
    def _validate_amounts(self, key, value):
        return non_negative(key, value)


def line_qty(line: dict) -> Decimal:
    """Quantity of an order line, defaulting to 1 when missing or invalid."""
    qty = to_decimal(line.get("qty"), Decimal("1"))
    return qty if qty > 0 else Decimal("1")


from pos_inventory.models.operations import InventoryUsageTask  # noqa: E402
