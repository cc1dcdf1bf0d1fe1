"""Warehouse registry: default warehouse resolution and warehouse CRUD.

Exactly one active warehouse is the default. It is the fallback location for
every stock operation that does not name a warehouse, and it is repaired
lazily: when no active default exists, the ``MAIN`` warehouse is promoted or
created on the next call to ``ensure_default_warehouse``.
"""

import logging
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pos_inventory.core.config import settings
from pos_inventory.core.exceptions import ConflictError, NotFoundError, ValidationError
from pos_inventory.core.validators import clean_code, clean_str
from pos_inventory.models.inventory import InventoryItem
from pos_inventory.models.stock import InventoryStock
from pos_inventory.models.warehouse import Warehouse, WAREHOUSE_TYPES
from pos_inventory.services.audit_service import log_action

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("street", "city", "state", "country", "postal_code")
CONTACT_FIELDS = {"name": "contact_name", "phone": "contact_phone", "email": "contact_email"}


class WarehouseService:
    """Service for the warehouse registry."""

    def __init__(self, db: Session):
        self.db = db

    # ===== DEFAULT RESOLUTION =====

    def get_warehouse(self, warehouse_id: int) -> Warehouse:
        warehouse = self.db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()
        if not warehouse:
            raise NotFoundError(f"Warehouse {warehouse_id} not found")
        return warehouse

    def resolve_warehouse(self, warehouse_id: Optional[int] = None) -> Warehouse:
        """Return the named active warehouse, or the default when none is named."""
        if warehouse_id:
            warehouse = self.db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()
            if not warehouse or not warehouse.is_active:
                raise NotFoundError(f"Warehouse {warehouse_id} not found or inactive")
            return warehouse
        return self.ensure_default_warehouse()

    def ensure_default_warehouse(self) -> Warehouse:
        """Return the active default warehouse, promoting or creating MAIN if needed.

        Flushes but does not commit; callers commit with their own changes.
        """
        default = (
            self.db.query(Warehouse)
            .filter(Warehouse.is_default.is_(True), Warehouse.is_active.is_(True))
            .first()
        )
        if default:
            return default

        code = settings.default_warehouse_code
        try:
            with self.db.begin_nested():
                self._clear_default()
                main = self.db.query(Warehouse).filter(Warehouse.code == code).first()
                if main:
                    main.is_default = True
                    main.is_active = True
                    logger.info(f"Promoted warehouse {main.id} ({code}) to default")
                else:
                    main = Warehouse(
                        name=self._free_default_name(code),
                        code=code,
                        type="main",
                        is_default=True,
                        is_active=True,
                    )
                    self.db.add(main)
                    logger.info(f"Created default warehouse {code}")
                self.db.flush()
        except IntegrityError:
            # Another writer repaired the default first
            logger.warning("Concurrent default warehouse repair detected, re-reading")
            main = (
                self.db.query(Warehouse)
                .filter(Warehouse.is_default.is_(True), Warehouse.is_active.is_(True))
                .first()
            )
            if main is None:
                raise
        return main

    def _free_default_name(self, code: str) -> str:
        name = settings.default_warehouse_name
        taken = self.db.query(Warehouse.id).filter(Warehouse.name == name).first()
        return f"{name} ({code})" if taken else name

    def _clear_default(self, exclude_id: Optional[int] = None) -> None:
        query = self.db.query(Warehouse).filter(Warehouse.is_default.is_(True))
        if exclude_id is not None:
            query = query.filter(Warehouse.id != exclude_id)
        query.update({Warehouse.is_default: False}, synchronize_session="fetch")
        self.db.flush()

    def _make_default(self, warehouse: Warehouse) -> Warehouse:
        self._clear_default(exclude_id=warehouse.id)
        warehouse.is_default = True
        warehouse.is_active = True
        self.db.flush()
        return warehouse

    def set_default_warehouse(self, warehouse_id: int, user_id: Optional[int] = None) -> Warehouse:
        """Make one warehouse the single default (and reactivate it)."""
        warehouse = self.get_warehouse(warehouse_id)
        self._make_default(warehouse)
        log_action(
            action="warehouse_set_default",
            entity_type="warehouse",
            entity_id=warehouse.id,
            user_id=user_id,
            summary=f"Default warehouse changed: {warehouse.name}",
            details={"warehouse_id": warehouse.id},
            db=self.db,
        )
        self.db.commit()
        self.db.refresh(warehouse)
        return warehouse

    # ===== CRUD =====

    def list_warehouses(self, status: str = "active") -> list[Warehouse]:
        """Warehouses filtered by active/inactive/all, default first then by name."""
        self.ensure_default_warehouse()
        self.db.commit()

        query = self.db.query(Warehouse)
        if status == "inactive":
            query = query.filter(Warehouse.is_active.is_(False))
        elif status != "all":
            query = query.filter(Warehouse.is_active.is_(True))
        return query.order_by(Warehouse.is_default.desc(), Warehouse.name).all()

    def _sanitize(self, data: dict[str, Any]) -> dict[str, Any]:
        """Trim strings, upper-case the code and drop unknown warehouse types."""
        values: dict[str, Any] = {}
        if "name" in data:
            values["name"] = clean_str(data["name"])
        if "code" in data:
            values["code"] = clean_code(data["code"])
        if data.get("type"):
            kind = clean_str(data["type"]).lower()
            if kind in WAREHOUSE_TYPES:
                values["type"] = kind
        if "description" in data:
            values["description"] = clean_str(data["description"]) or None
        if data.get("address") is not None:
            address = data["address"] or {}
            for field in ADDRESS_FIELDS:
                values[field] = clean_str(address.get(field)) or None
        if data.get("contact") is not None:
            contact = data["contact"] or {}
            for key, column in CONTACT_FIELDS.items():
                values[column] = clean_str(contact.get(key)) or None
        if "parent_warehouse_id" in data:
            values["parent_warehouse_id"] = data["parent_warehouse_id"] or None
        if "metadata" in data:
            values["meta"] = data["metadata"]
        if data.get("is_active") is not None:
            values["is_active"] = bool(data["is_active"])
        return values

    def _check_unique(self, values: dict[str, Any], exclude_id: Optional[int] = None) -> None:
        for column in ("name", "code"):
            value = values.get(column)
            if not value:
                continue
            query = self.db.query(Warehouse.id).filter(getattr(Warehouse, column) == value)
            if exclude_id is not None:
                query = query.filter(Warehouse.id != exclude_id)
            if query.first():
                raise ConflictError(f"Warehouse {column} '{value}' already exists")

    def _check_parent(self, values: dict[str, Any], warehouse_id: Optional[int] = None) -> None:
        parent_id = values.get("parent_warehouse_id")
        if not parent_id:
            return
        if warehouse_id is not None and parent_id == warehouse_id:
            raise ValidationError("A warehouse cannot be its own parent")
        self.get_warehouse(parent_id)

    def create_warehouse(self, data: dict[str, Any], user_id: Optional[int] = None) -> Warehouse:
        should_set_default = bool(data.get("is_default"))
        values = self._sanitize(data)
        if not values.get("name"):
            raise ValidationError("Warehouse name is required")
        self._check_unique(values)
        self._check_parent(values)

        warehouse = Warehouse(is_default=False, **values)
        self.db.add(warehouse)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("Warehouse code or name already exists") from e

        if should_set_default:
            self._make_default(warehouse)
        else:
            self.ensure_default_warehouse()

        log_action(
            action="warehouse_create",
            entity_type="warehouse",
            entity_id=warehouse.id,
            user_id=user_id,
            summary=f"Warehouse created: {warehouse.name}",
            details={"warehouse_id": warehouse.id},
            db=self.db,
        )
        self.db.commit()
        self.db.refresh(warehouse)
        logger.info(f"Warehouse {warehouse.id} ({warehouse.code}) created")
        return warehouse

    def update_warehouse(
        self, warehouse_id: int, data: dict[str, Any], user_id: Optional[int] = None
    ) -> Warehouse:
        warehouse = self.get_warehouse(warehouse_id)
        should_set_default = bool(data.get("is_default"))
        values = self._sanitize(data)
        if "name" in values and not values["name"]:
            raise ValidationError("Warehouse name cannot be empty")
        if values.get("is_active") is False and warehouse.is_default and not should_set_default:
            raise ValidationError("The default warehouse cannot be deactivated")
        self._check_unique(values, exclude_id=warehouse.id)
        self._check_parent(values, warehouse_id=warehouse.id)

        for key, value in values.items():
            setattr(warehouse, key, value)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("Warehouse code or name already exists") from e

        if should_set_default:
            self._make_default(warehouse)
        elif not warehouse.is_default:
            self.ensure_default_warehouse()

        log_action(
            action="warehouse_update",
            entity_type="warehouse",
            entity_id=warehouse.id,
            user_id=user_id,
            summary=f"Warehouse updated: {warehouse.name}",
            details={"warehouse_id": warehouse.id, "fields": sorted(values)},
            db=self.db,
        )
        self.db.commit()
        self.db.refresh(warehouse)
        return warehouse

    def archive_warehouse(self, warehouse_id: int, user_id: Optional[int] = None) -> Warehouse:
        """Deactivate an empty, non-default warehouse and drop its stock rows."""
        warehouse = self.get_warehouse(warehouse_id)
        if warehouse.is_default:
            raise ValidationError("The default warehouse cannot be archived")

        total = (
            self.db.query(func.coalesce(func.sum(InventoryStock.quantity), 0))
            .filter(InventoryStock.warehouse_id == warehouse.id)
            .scalar()
        )
        if Decimal(str(total or 0)) > 0:
            raise ValidationError(
                "Warehouse still holds stock; transfer or consume it before archiving"
            )

        warehouse.is_active = False
        self.db.query(InventoryStock).filter(
            InventoryStock.warehouse_id == warehouse.id
        ).delete(synchronize_session="fetch")
        self.db.flush()

        log_action(
            action="warehouse_archive",
            entity_type="warehouse",
            entity_id=warehouse.id,
            user_id=user_id,
            summary=f"Warehouse archived: {warehouse.name}",
            details={"warehouse_id": warehouse.id},
            db=self.db,
        )
        self.ensure_default_warehouse()
        self.db.commit()
        self.db.refresh(warehouse)
        return warehouse

    # ===== STOCK VIEW =====

    def warehouse_stock(self, warehouse_id: int) -> dict[str, Any]:
        """Per item balances held in one active warehouse, with a value summary."""
        warehouse = self.resolve_warehouse(warehouse_id)

        rows = (
            self.db.query(InventoryStock, InventoryItem)
            .join(InventoryItem, InventoryItem.id == InventoryStock.item_id)
            .filter(
                InventoryStock.warehouse_id == warehouse.id,
                InventoryItem.is_active.is_(True),
            )
            .order_by(InventoryItem.name)
            .all()
        )

        items = []
        total_quantity = Decimal("0")
        total_value = Decimal("0")
        low_stock_count = 0
        for stock, item in rows:
            quantity = stock.quantity or Decimal("0")
            cost = item.cost or Decimal("0")
            par = stock.par_level or Decimal("0")
            is_low = par > 0 and quantity <= par
            value = quantity * cost
            total_quantity += quantity
            total_value += value
            if is_low:
                low_stock_count += 1
            items.append({
                "stock_id": stock.id,
                "item_id": item.id,
                "name": item.name,
                "sku": item.sku,
                "category": item.category,
                "unit": stock.unit or item.unit,
                "quantity": quantity,
                "par_level": par,
                "reorder_point": stock.reorder_point,
                "safety_stock": stock.safety_stock,
                "is_low_stock": is_low,
                "cost": cost,
                "value": value,
                "last_count_date": stock.last_count_date,
                "last_movement_at": stock.last_movement_at,
            })

        return {
            "warehouse": {
                "id": warehouse.id,
                "name": warehouse.name,
                "code": warehouse.code,
                "type": warehouse.type,
                "is_default": warehouse.is_default,
            },
            "items": items,
            "summary": {
                "total_items": len(items),
                "total_quantity": total_quantity,
                "inventory_value": total_value,
                "low_stock_count": low_stock_count,
            },
        }


def get_warehouse_service(db: Session) -> WarehouseService:
    """Get a warehouse service instance."""
    return WarehouseService(db)
