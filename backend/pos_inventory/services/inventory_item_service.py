"""Inventory item management: create, update, archive and the stock overview list."""

import logging
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from pos_inventory.core.config import settings
from pos_inventory.core.exceptions import ConflictError, NotFoundError, ValidationError
from pos_inventory.core.validators import clean_code, clean_list, clean_str, non_negative_decimal, to_decimal
from pos_inventory.db.base import utcnow
from pos_inventory.models.inventory import InventoryItem, TRACKING_METHODS
from pos_inventory.models.stock import InventoryStock, MovementType
from pos_inventory.models.warehouse import Warehouse
from pos_inventory.services.audit_service import log_action
from pos_inventory.services.stock_ledger_service import StockLedgerService, quantize_qty

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    "Meat & poultry",
    "Vegetables & fruit",
    "Dairy",
    "Bakery & pastry",
    "Beverages",
    "Spices",
    "Dry goods",
    "Semi-finished",
    "Packaging",
    "Cleaning supplies",
    "Frozen goods",
]

TEXT_FIELDS = ("category", "supplier_name", "notes", "consumption_unit", "storage_conditions")


class InventoryItemService:
    """Service for inventory item CRUD."""

    def __init__(self, db: Session):
        self.db = db
        self.ledger = StockLedgerService(db)

    def get_item(self, item_id: int) -> InventoryItem:
        return self.ledger.get_item(item_id)

    def _check_sku(self, sku: Optional[str], exclude_id: Optional[int] = None) -> None:
        if not sku:
            return
        query = self.db.query(InventoryItem.id).filter(InventoryItem.sku == sku)
        if exclude_id is not None:
            query = query.filter(InventoryItem.id != exclude_id)
        if query.first():
            raise ConflictError(f"SKU '{sku}' already exists")

    def _clean_fields(self, data: dict[str, Any]) -> dict[str, Any]:
        """Trim strings and clamp numbers for the fields present in ``data``."""
        values: dict[str, Any] = {}
        if "sku" in data:
            values["sku"] = clean_code(data["sku"])
        if "unit" in data:
            values["unit"] = clean_str(data["unit"], settings.default_unit)
        for field in TEXT_FIELDS:
            if field in data:
                values[field] = clean_str(data[field]) or None
        if "par_level" in data:
            values["par_level"] = non_negative_decimal(data["par_level"])
        if "cost" in data:
            values["cost"] = non_negative_decimal(data["cost"])
        if "conversion_rate" in data:
            rate = non_negative_decimal(data["conversion_rate"], Decimal("1"))
            values["conversion_rate"] = rate if rate > 0 else Decimal("1")
        if "shelf_life_days" in data:
            days = data["shelf_life_days"]
            values["shelf_life_days"] = max(0, int(days)) if days is not None else None
        if data.get("tracking_method") is not None:
            method = clean_str(data["tracking_method"]).lower()
            if method not in TRACKING_METHODS:
                raise ValidationError(f"Unknown tracking method '{method}'")
            values["tracking_method"] = method
        if data.get("expiry_tracking_enabled") is not None:
            values["expiry_tracking_enabled"] = bool(data["expiry_tracking_enabled"])
        if data.get("low_stock_alert_enabled") is not None:
            values["low_stock_alert_enabled"] = bool(data["low_stock_alert_enabled"])
        if data.get("tags") is not None:
            values["tags"] = clean_list(data["tags"])
        if data.get("allergens") is not None:
            values["allergens"] = clean_list(data["allergens"])
        return values

    # ===== CREATE / UPDATE / ARCHIVE =====

    def create_item(self, data: dict[str, Any], user_id: Optional[int] = None) -> InventoryItem:
        """Create an item; a positive opening stock becomes an incoming movement."""
        name = clean_str(data.get("name"))
        if not name:
            raise ValidationError("Item name is required")

        values = self._clean_fields(data)
        values.setdefault("unit", settings.default_unit)
        self._check_sku(values.get("sku"))
        starting_stock = non_negative_decimal(data.get("current_stock"))

        with self.ledger.transaction():
            warehouse = self.ledger.warehouses.resolve_warehouse(data.get("default_warehouse_id"))
            item = InventoryItem(
                name=name,
                default_warehouse_id=warehouse.id,
                current_stock=Decimal("0"),
                **values,
            )
            self.db.add(item)
            try:
                self.db.flush()
            except IntegrityError as e:
                raise ConflictError(f"SKU '{values.get('sku')}' already exists") from e

            stock = self.ledger.get_or_create_stock(item, warehouse, par_level=item.par_level)
            if quantize_qty(starting_stock) > 0:
                change = self.ledger.apply_delta(stock, starting_stock, item=item, warehouse=warehouse)
                self.ledger.record_movement(
                    item,
                    warehouse,
                    MovementType.INCOMING.value,
                    change.applied,
                    change.balance_after,
                    reason="Opening balance",
                    user_id=user_id,
                )
                item.last_restock_date = utcnow()
            self.ledger.sync_item_total(item)

            log_action(
                action="inventory_create",
                entity_type="inventory_item",
                entity_id=item.id,
                user_id=user_id,
                summary=f"New inventory item: {item.name} ({warehouse.name})",
                details={"item_id": item.id, "warehouse_id": warehouse.id, "opening_stock": starting_stock},
                db=self.db,
            )

        logger.info(f"Inventory item {item.id} created in warehouse {warehouse.id}")
        return item

    def update_item(
        self, item_id: int, data: dict[str, Any], user_id: Optional[int] = None
    ) -> InventoryItem:
        """Partial update. Par level and unit changes are pushed down to every stock row."""
        with self.ledger.transaction():
            item = self.get_item(item_id)
            values = self._clean_fields(data)

            if "name" in data:
                name = clean_str(data["name"])
                if not name:
                    raise ValidationError("Item name cannot be empty")
                values["name"] = name
            if "sku" in values:
                self._check_sku(values["sku"], exclude_id=item.id)

            if "default_warehouse_id" in data:
                warehouse_id = data["default_warehouse_id"]
                if warehouse_id:
                    warehouse = self.db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()
                    if not warehouse or not warehouse.is_active:
                        raise NotFoundError(f"Warehouse {warehouse_id} not found or inactive")
                    values["default_warehouse_id"] = warehouse.id
                else:
                    values["default_warehouse_id"] = None

            for key, value in values.items():
                setattr(item, key, value)
            changed = set(values)
            if data.get("is_active") is not None:
                item.set_active(data["is_active"])
                changed.add("is_active")

            try:
                self.db.flush()
            except IntegrityError as e:
                raise ConflictError("SKU already exists") from e

            stock_updates: dict[Any, Any] = {}
            if "par_level" in values:
                stock_updates[InventoryStock.par_level] = item.par_level
                stock_updates[InventoryStock.reorder_point] = item.par_level
            if "unit" in values:
                stock_updates[InventoryStock.unit] = item.unit
            if stock_updates:
                self.db.query(InventoryStock).filter(InventoryStock.item_id == item.id).update(
                    stock_updates, synchronize_session="fetch"
                )

            self.ledger.sync_item_total(item)
            log_action(
                action="inventory_update",
                entity_type="inventory_item",
                entity_id=item.id,
                user_id=user_id,
                summary=f"Inventory item updated: {item.name}",
                details={"item_id": item.id, "fields": sorted(changed)},
                db=self.db,
            )
        return item

    def archive_item(self, item_id: int, user_id: Optional[int] = None) -> InventoryItem:
        """Archive an item whose stock is already zero everywhere."""
        with self.ledger.transaction():
            item = self.get_item(item_id)
            if self.ledger.recalc_item_totals(item.id) > 0:
                raise ValidationError("Bring the item's stock to zero before archiving it")

            item.archive()
            item.current_stock = Decimal("0")
            self.db.query(InventoryStock).filter(InventoryStock.item_id == item.id).update(
                {InventoryStock.quantity: 0, InventoryStock.last_movement_at: utcnow()},
                synchronize_session="fetch",
            )
            log_action(
                action="inventory_archive",
                entity_type="inventory_item",
                entity_id=item.id,
                user_id=user_id,
                summary=f"Inventory item archived: {item.name}",
                details={"item_id": item.id},
                db=self.db,
            )
        return item

    # ===== READS =====

    def summary(self) -> dict[str, Any]:
        """Totals over active items: count, stock units, value and low stock count."""
        total_items = (
            self.db.query(func.count(InventoryItem.id))
            .filter(InventoryItem.is_active.is_(True))
            .scalar()
        ) or 0

        units, value = (
            self.db.query(
                func.coalesce(func.sum(InventoryStock.quantity), 0),
                func.coalesce(func.sum(InventoryStock.quantity * InventoryItem.cost), 0),
            )
            .join(InventoryItem, InventoryItem.id == InventoryStock.item_id)
            .filter(InventoryItem.is_active.is_(True))
            .one()
        )

        low_stock = (
            self.db.query(func.count(InventoryItem.id))
            .filter(
                InventoryItem.is_active.is_(True),
                InventoryItem.par_level > 0,
                InventoryItem.current_stock <= InventoryItem.par_level,
            )
            .scalar()
        ) or 0

        return {
            "total_items": total_items,
            "total_stock_units": quantize_qty(units),
            "inventory_value": Decimal(str(value or 0)).quantize(Decimal("0.01")),
            "low_stock": low_stock,
        }

    def list_items(
        self,
        search: str = "",
        category: Optional[str] = None,
        status: str = "active",
        warehouse_id: Optional[int] = None,
    ) -> dict[str, Any]:
        """Items with their per warehouse breakdown plus summary, categories and warehouses."""
        self.ledger.warehouses.ensure_default_warehouse()
        self.db.commit()

        query = self.db.query(InventoryItem).options(
            selectinload(InventoryItem.stocks).selectinload(InventoryStock.warehouse)
        )
        if status == "archived":
            query = query.filter(InventoryItem.is_active.is_(False))
        elif status != "all":
            query = query.filter(InventoryItem.is_active.is_(True))

        term = clean_str(search)
        if term:
            pattern = f"%{term}%"
            query = query.filter(or_(
                InventoryItem.name.ilike(pattern),
                InventoryItem.sku.ilike(pattern),
                InventoryItem.supplier_name.ilike(pattern),
            ))
        if category and category != "all":
            query = query.filter(InventoryItem.category == category)

        items = []
        for item in query.order_by(InventoryItem.name).all():
            payload = item_to_dict(item)
            if warehouse_id:
                selected = next((s for s in item.stocks if s.warehouse_id == warehouse_id), None)
                payload["selected_warehouse_stock"] = quantize_qty(selected.quantity) if selected else Decimal("0")
            items.append(payload)

        used = [
            row[0]
            for row in self.db.query(InventoryItem.category)
            .filter(InventoryItem.is_active.is_(True), InventoryItem.category.isnot(None))
            .distinct()
            .all()
            if row[0]
        ]
        categories = sorted(set(DEFAULT_CATEGORIES) | set(used))

        warehouses = (
            self.db.query(Warehouse)
            .filter(Warehouse.is_active.is_(True))
            .order_by(Warehouse.is_default.desc(), Warehouse.name)
            .all()
        )
        return {
            "items": items,
            "summary": self.summary(),
            "categories": categories,
            "warehouses": [
                {"id": w.id, "name": w.name, "code": w.code, "type": w.type, "is_default": w.is_default}
                for w in warehouses
            ],
        }


def item_to_dict(item: InventoryItem) -> dict[str, Any]:
    """Item fields plus its stock rows by warehouse."""
    return {
        "id": item.id,
        "name": item.name,
        "sku": item.sku,
        "category": item.category,
        "unit": item.unit,
        "current_stock": item.current_stock,
        "par_level": item.par_level,
        "cost": item.cost,
        "supplier_name": item.supplier_name,
        "default_warehouse_id": item.default_warehouse_id,
        "tracking_method": item.tracking_method,
        "consumption_unit": item.consumption_unit,
        "conversion_rate": item.conversion_rate,
        "storage_conditions": item.storage_conditions,
        "shelf_life_days": item.shelf_life_days,
        "expiry_tracking_enabled": item.expiry_tracking_enabled,
        "low_stock_alert_enabled": item.low_stock_alert_enabled,
        "tags": item.tags or [],
        "allergens": item.allergens or [],
        "last_restock_date": item.last_restock_date,
        "notes": item.notes,
        "is_active": item.is_active,
        "archived_at": item.archived_at,
        "is_low_stock": item.is_low_stock,
        "inventory_value": item.inventory_value,
        "stock_by_warehouse": [
            {
                "stock_id": stock.id,
                "warehouse": {
                    "id": stock.warehouse.id,
                    "name": stock.warehouse.name,
                    "code": stock.warehouse.code,
                    "is_default": stock.warehouse.is_default,
                } if stock.warehouse else None,
                "quantity": stock.quantity,
                "par_level": stock.par_level,
                "reorder_point": stock.reorder_point,
                "safety_stock": stock.safety_stock,
                "last_count_date": stock.last_count_date,
                "last_movement_at": stock.last_movement_at,
            }
            for stock in item.stocks
        ],
    }


def get_inventory_item_service(db: Session) -> InventoryItemService:
    """Get an inventory item service instance."""
    return InventoryItemService(db)
