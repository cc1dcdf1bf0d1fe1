"""Order creation: persists the order together with its usage outbox row."""

import logging
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from pos_inventory.core.exceptions import NotFoundError, ValidationError
from pos_inventory.core.validators import clean_str, to_decimal
from pos_inventory.db.base import utcnow
from pos_inventory.models.operations import InventoryUsageTask, UsageTaskStatus
from pos_inventory.models.restaurant import MenuItem, Order

logger = logging.getLogger(__name__)

MONEY = Decimal("0.01")


class OrderService:
    """Service for placing orders."""

    def __init__(self, db: Session):
        self.db = db

    def get_order(self, order_id: int) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    def create_order(self, data: dict[str, Any], user_id: Optional[int] = None) -> Order:
        """Price the lines from the menu and commit the order plus a pending usage task."""
        lines = data.get("items") or []
        if not lines:
            raise ValidationError("Order must contain at least one item")

        menu_ids = {line["menu_item_id"] for line in lines}
        menu_items = {m.id: m for m in self.db.query(MenuItem).filter(MenuItem.id.in_(menu_ids))}

        items = []
        subtotal = Decimal("0")
        for line in lines:
            menu_item = menu_items.get(line["menu_item_id"])
            if menu_item is None:
                raise NotFoundError(f"Menu item {line['menu_item_id']} not found")
            if menu_item.available is False:
                raise ValidationError(f"'{menu_item.name}' is not available")

            qty = to_decimal(line.get("qty"), Decimal("1"))
            if qty <= 0:
                raise ValidationError("Item quantity must be greater than zero")
            price = to_decimal(line.get("price"), None)
            if price is None:
                price = Decimal(menu_item.price or 0)

            subtotal += price * qty
            # JSON column: decimals stored as strings
            items.append({
                "menu_item_id": menu_item.id,
                "name": menu_item.name,
                "qty": str(qty),
                "price": str(price),
                "portion_key": clean_str(line.get("portion_key"), "standard"),
                "notes": clean_str(line.get("notes")) or None,
            })

        subtotal = subtotal.quantize(MONEY)
        discount = min(subtotal, to_decimal(data.get("discount"), Decimal("0")).quantize(MONEY))
        order = Order(
            table_name=clean_str(data.get("table_name")) or None,
            order_type=clean_str(data.get("order_type"), "table"),
            status="new",
            items=items,
            subtotal=subtotal,
            discount=discount,
            total=subtotal - discount,
            created_by=user_id,
            created_at=utcnow(),
        )
        self.db.add(order)
        self.db.flush()

        order.usage_task = InventoryUsageTask(
            order_id=order.id,
            status=UsageTaskStatus.PENDING,
            attempts=0,
            created_by=user_id,
            created_at=utcnow(),
        )
        self.db.commit()
        self.db.refresh(order)

        logger.info(f"Order {order.id} created with {len(items)} lines, total {order.total}")
        return order

    def list_orders(self, limit: int = 50) -> list[Order]:
        return self.db.query(Order).order_by(Order.id.desc()).limit(min(max(limit, 1), 200)).all()


def get_order_service(db: Session) -> OrderService:
    """Get an order service instance."""
    return OrderService(db)
