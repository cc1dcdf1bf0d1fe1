"""Stock Ledger Service - per warehouse balances and the movement log.

Every stock change goes through this service:

1. resolve the warehouse (explicit, item default, registry default)
2. get-or-create the (item, warehouse) stock row
3. change the quantity with a conditional atomic UPDATE
   (``quantity = quantity + delta WHERE quantity + delta >= 0``)
4. append exactly one ``InventoryMovement`` with the resulting balance
5. recompute ``InventoryItem.current_stock`` from the stock rows

Manual operations reject a change that would drive a row negative
(``InsufficientStockError``); automatic usage clamps at zero and reports the
shortage. Each public operation is one database transaction.
"""

import csv
import io
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy import func, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pos_inventory.core.exceptions import (
    InsufficientStockError,
    InventoryError,
    NotFoundError,
    ValidationError,
)
from pos_inventory.core.validators import clean_code, clean_str, to_decimal
from pos_inventory.db.base import utcnow
from pos_inventory.models.inventory import InventoryItem
from pos_inventory.models.stock import InventoryMovement, InventoryStock, MovementType
from pos_inventory.models.supplier import Supplier
from pos_inventory.models.warehouse import Warehouse
from pos_inventory.services.audit_service import log_action
from pos_inventory.services.warehouse_service import WarehouseService

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Stored quantities are rounded to the column scale inside the UPDATE so that
# float-backed databases never leave a -1e-17 residue behind.
QTY_SCALE = 3
QTY_QUANT = Decimal("0.001")

# Types accepted by a manual adjustment; anything else becomes "adjustment"
ADJUSTMENT_TYPES = {
    MovementType.INCOMING.value,
    MovementType.USAGE.value,
    MovementType.ADJUSTMENT.value,
    MovementType.WASTE.value,
    MovementType.RETURN.value,
}
OUTBOUND_ADJUSTMENT_TYPES = {
    MovementType.USAGE.value,
    MovementType.WASTE.value,
    MovementType.RETURN.value,
}

EXPORT_COLUMNS = ["name", "sku", "quantity", "unit", "parLevel"]
MAX_MOVEMENT_PAGE = 200
MAX_ITEM_MOVEMENT_PAGE = 100


def quantize_qty(value: Any) -> Decimal:
    """Decimal rounded to the stock column scale."""
    return Decimal(str(value or 0)).quantize(QTY_QUANT)


@dataclass
class MovementFilter:
    """Filters for the movement log."""

    item_id: Optional[int] = None
    warehouse_id: Optional[int] = None
    type: Optional[str] = None
    created_by: Optional[int] = None
    supplier_id: Optional[int] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


@dataclass
class DeltaResult:
    """Outcome of one atomic stock change."""

    applied: Decimal
    balance_after: Decimal
    shortage: Decimal = ZERO


class StockLedgerService:
    """Service for stock mutations and the movement log."""

    def __init__(self, db: Session):
        self.db = db
        self.warehouses = WarehouseService(db)

    @contextmanager
    def transaction(self):
        """Commit on success, roll everything back on any error."""
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # ===== LOOKUPS =====

    def get_item(self, item_id: int, active_only: bool = False) -> InventoryItem:
        item = self.db.query(InventoryItem).filter(InventoryItem.id == item_id).first()
        if not item or (active_only and not item.is_active):
            raise NotFoundError(f"Inventory item {item_id} not found")
        return item

    def resolve_item_warehouse(
        self, item: InventoryItem, warehouse_id: Optional[int] = None
    ) -> Warehouse:
        """Explicit warehouse, else the item's default, else the registry default."""
        return self.warehouses.resolve_warehouse(warehouse_id or item.default_warehouse_id)

    def _get_active_supplier(self, supplier_id: int) -> Supplier:
        supplier = self.db.query(Supplier).filter(Supplier.id == supplier_id).first()
        if not supplier or not supplier.is_active:
            raise NotFoundError(f"Supplier {supplier_id} not found or archived")
        return supplier

    # ===== PRIMITIVES =====

    def get_or_create_stock(
        self,
        item: InventoryItem,
        warehouse: Warehouse,
        par_level: Optional[Decimal] = None,
    ) -> InventoryStock:
        """Return the (item, warehouse) stock row, inserting it on first use.

        Seeds quantity 0, the item's unit and par levels only when the row is
        created; an existing row is never overwritten.
        """
        par = to_decimal(par_level if par_level is not None else item.par_level, ZERO)
        par = max(ZERO, par)
        values = {
            "item_id": item.id,
            "warehouse_id": warehouse.id,
            "quantity": ZERO,
            "unit": item.unit,
            "par_level": par,
            "reorder_point": par,
            "safety_stock": max(ZERO, (par / 2).to_integral_value(rounding=ROUND_FLOOR)),
            "created_at": utcnow(),
        }

        dialect = self.db.get_bind().dialect.name
        if dialect in ("sqlite", "postgresql"):
            insert = sqlite_insert if dialect == "sqlite" else pg_insert
            stmt = insert(InventoryStock).values(**values).on_conflict_do_nothing(
                index_elements=["item_id", "warehouse_id"]
            )
            self.db.execute(stmt)
        else:
            existing = self._find_stock(item.id, warehouse.id)
            if existing:
                return existing
            try:
                with self.db.begin_nested():
                    self.db.add(InventoryStock(**values))
            except IntegrityError:
                logger.debug(f"Stock row for item {item.id} in warehouse {warehouse.id} created concurrently")

        stock = self._find_stock(item.id, warehouse.id)
        if stock is None:
            raise InventoryError(f"Could not create stock row for item {item.id}", status_code=500)
        return stock

    def _find_stock(self, item_id: int, warehouse_id: int) -> Optional[InventoryStock]:
        return (
            self.db.query(InventoryStock)
            .filter(InventoryStock.item_id == item_id, InventoryStock.warehouse_id == warehouse_id)
            .populate_existing()
            .first()
        )

    def apply_delta(
        self,
        stock: InventoryStock,
        delta: Decimal,
        clamp: bool = False,
        item: Optional[InventoryItem] = None,
        warehouse: Optional[Warehouse] = None,
    ) -> DeltaResult:
        """Atomically add ``delta`` to a stock row.

        The row only changes when the result stays >= 0. Otherwise either
        ``InsufficientStockError`` is raised, or with ``clamp`` everything that
        is available is taken and the rest is reported as ``shortage``.
        """
        delta = quantize_qty(delta)
        now = utcnow()
        new_quantity = func.round(InventoryStock.quantity + delta, QTY_SCALE)
        result = self.db.execute(
            update(InventoryStock)
            .where(InventoryStock.id == stock.id, new_quantity >= 0)
            .values(quantity=new_quantity, last_movement_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            self.db.refresh(stock)
            return DeltaResult(applied=delta, balance_after=quantize_qty(stock.quantity))

        if not clamp:
            self.db.refresh(stock)
            item = item or stock.item
            warehouse = warehouse or stock.warehouse
            raise InsufficientStockError(
                item_name=item.name if item else str(stock.item_id),
                warehouse_name=warehouse.name if warehouse else str(stock.warehouse_id),
                available=quantize_qty(stock.quantity),
                requested=abs(delta),
                unit=(item.unit if item else stock.unit) or "",
            )

        # Take exactly what was observed; retry if another writer got there first
        while True:
            self.db.refresh(stock)
            available = quantize_qty(stock.quantity)
            if available + delta >= 0:
                return self.apply_delta(stock, delta, clamp=True, item=item, warehouse=warehouse)
            result = self.db.execute(
                update(InventoryStock)
                .where(
                    InventoryStock.id == stock.id,
                    func.round(InventoryStock.quantity - available, QTY_SCALE) >= 0,
                )
                .values(
                    quantity=func.round(InventoryStock.quantity - available, QTY_SCALE),
                    last_movement_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                self.db.refresh(stock)
                return DeltaResult(
                    applied=-available if available else ZERO,
                    balance_after=quantize_qty(stock.quantity),
                    shortage=abs(delta) - available,
                )

    def set_quantity(self, stock: InventoryStock, counted: Decimal) -> Decimal:
        """Overwrite a stock row with an absolute count and return the delta."""
        self.db.refresh(stock)
        counted = quantize_qty(counted)
        delta = counted - quantize_qty(stock.quantity)
        now = utcnow()
        stock.quantity = counted
        stock.last_count_date = now
        stock.last_movement_at = now
        self.db.flush()
        return delta

    def record_movement(
        self,
        item: InventoryItem,
        warehouse: Optional[Warehouse],
        movement_type: str,
        delta: Decimal,
        balance_after: Decimal,
        reason: Optional[str] = None,
        reference: Optional[str] = None,
        meta: Optional[dict[str, Any]] = None,
        user_id: Optional[int] = None,
        supplier_id: Optional[int] = None,
        source_warehouse_id: Optional[int] = None,
        target_warehouse_id: Optional[int] = None,
        unit_cost: Optional[Decimal] = None,
        total_cost: Optional[Decimal] = None,
    ) -> InventoryMovement:
        """Append one movement; costs default to the item's current unit cost."""
        quantity = abs(quantize_qty(delta))
        cost = unit_cost if unit_cost is not None else (item.cost or ZERO)
        movement = InventoryMovement(
            item_id=item.id,
            type=movement_type,
            delta=quantize_qty(delta),
            quantity=quantity,
            balance_after=quantize_qty(balance_after),
            unit=item.unit,
            warehouse_id=warehouse.id if warehouse else None,
            source_warehouse_id=source_warehouse_id,
            target_warehouse_id=target_warehouse_id,
            unit_cost=cost,
            total_cost=total_cost if total_cost is not None else quantity * cost,
            reason=clean_str(reason) or None,
            reference=clean_str(reference) or None,
            meta=jsonable_encoder(meta) if meta else None,
            created_by=user_id,
            supplier_id=supplier_id,
            created_at=utcnow(),
        )
        self.db.add(movement)
        self.db.flush()
        return movement

    def recalc_item_totals(self, item_id: int) -> Decimal:
        """Sum of the item's stock rows across all warehouses."""
        total = (
            self.db.query(func.coalesce(func.sum(InventoryStock.quantity), 0))
            .filter(InventoryStock.item_id == item_id)
            .scalar()
        )
        return quantize_qty(total)

    def sync_item_total(self, item: InventoryItem) -> Decimal:
        self.db.flush()
        item.current_stock = self.recalc_item_totals(item.id)
        self.db.flush()
        return item.current_stock

    # ===== MANUAL OPERATIONS =====

    def adjust_stock(
        self,
        item_id: int,
        quantity: Any,
        movement_type: str = MovementType.ADJUSTMENT.value,
        reason: Optional[str] = None,
        reference: Optional[str] = None,
        warehouse_id: Optional[int] = None,
        supplier_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> dict[str, Any]:
        """Manual stock change of one item in one warehouse.

        incoming is always added, usage/waste/return always removed, and a
        plain adjustment keeps the sign it was given.
        """
        kind = movement_type if movement_type in ADJUSTMENT_TYPES else MovementType.ADJUSTMENT.value
        amount = to_decimal(quantity, None)
        if amount is None or quantize_qty(amount) == 0:
            raise ValidationError("Quantity must be a non-zero number")

        with self.transaction():
            item = self.get_item(item_id)
            supplier = self._get_active_supplier(supplier_id) if supplier_id else None

            if kind == MovementType.INCOMING.value:
                delta = abs(amount)
            elif kind in OUTBOUND_ADJUSTMENT_TYPES:
                delta = -abs(amount)
            else:
                delta = amount

            warehouse = self.resolve_item_warehouse(item, warehouse_id)
            stock = self.get_or_create_stock(item, warehouse)
            change = self.apply_delta(stock, delta, item=item, warehouse=warehouse)

            if change.applied > 0:
                item.last_restock_date = utcnow()

            movement = self.record_movement(
                item,
                warehouse,
                kind,
                change.applied,
                change.balance_after,
                reason=reason,
                reference=reference,
                user_id=user_id,
                supplier_id=supplier.id if supplier else None,
            )
            self.sync_item_total(item)

            log_action(
                action="inventory_adjust",
                entity_type="inventory_item",
                entity_id=item.id,
                user_id=user_id,
                summary=f"{item.name}: {kind} {change.applied} {item.unit} ({warehouse.name})",
                details={
                    "item_id": item.id,
                    "warehouse_id": warehouse.id,
                    "type": kind,
                    "delta": change.applied,
                    "balance_after": change.balance_after,
                    "movement_id": movement.id,
                },
                db=self.db,
            )

        logger.info(f"Adjusted item {item.id} in warehouse {warehouse.id} by {change.applied} ({kind})")
        return {"item": item, "warehouse": warehouse, "stock": stock, "movement": movement}

    def transfer_stock(
        self,
        item_id: int,
        quantity: Any,
        target_warehouse_id: Optional[int] = None,
        source_warehouse_id: Optional[int] = None,
        reason: Optional[str] = None,
        reference: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> dict[str, Any]:
        """Move stock between two warehouses, writing a transfer_out/transfer_in pair."""
        qty = abs(to_decimal(quantity, ZERO))
        if quantize_qty(qty) <= 0:
            raise ValidationError("Transfer quantity must be greater than zero")
        if not target_warehouse_id:
            raise ValidationError("Target warehouse is required")

        with self.transaction():
            item = self.get_item(item_id)
            source = self.resolve_item_warehouse(item, source_warehouse_id)
            target = self.warehouses.resolve_warehouse(target_warehouse_id)
            if source.id == target.id:
                raise ValidationError("Source and target warehouse must differ")

            source_stock = self.get_or_create_stock(item, source)
            target_stock = self.get_or_create_stock(item, target)
            out_change = self.apply_delta(source_stock, -qty, item=item, warehouse=source)
            in_change = self.apply_delta(target_stock, qty, item=item, warehouse=target)

            shared = {
                "reason": reason,
                "reference": reference,
                "user_id": user_id,
                "source_warehouse_id": source.id,
                "target_warehouse_id": target.id,
            }
            out_movement = self.record_movement(
                item, source, MovementType.TRANSFER_OUT.value,
                out_change.applied, out_change.balance_after, **shared,
            )
            in_movement = self.record_movement(
                item, target, MovementType.TRANSFER_IN.value,
                in_change.applied, in_change.balance_after, **shared,
            )
            self.sync_item_total(item)

            log_action(
                action="inventory_transfer",
                entity_type="inventory_item",
                entity_id=item.id,
                user_id=user_id,
                summary=f"{item.name}: {qty} {item.unit} {source.name} -> {target.name}",
                details={
                    "item_id": item.id,
                    "quantity": qty,
                    "source_warehouse_id": source.id,
                    "target_warehouse_id": target.id,
                },
                db=self.db,
            )

        return {
            "item": item,
            "source_stock": source_stock,
            "target_stock": target_stock,
            "movements": [out_movement, in_movement],
        }

    def cycle_count(
        self,
        item_id: int,
        warehouse_id: Optional[int],
        counted_quantity: Any,
        reason: Optional[str] = None,
        reference: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> dict[str, Any]:
        """Reconcile a stock row to a physical count."""
        if not warehouse_id:
            raise ValidationError("Warehouse is required for a cycle count")
        counted = to_decimal(counted_quantity, None)
        if counted is None or counted < 0:
            raise ValidationError("Counted quantity must be zero or more")

        with self.transaction():
            item = self.get_item(item_id)
            warehouse = self.warehouses.resolve_warehouse(warehouse_id)
            stock = self.get_or_create_stock(item, warehouse)
            delta = self.set_quantity(stock, counted)

            movement = None
            if delta != 0:
                movement = self.record_movement(
                    item,
                    warehouse,
                    MovementType.COUNT_ADJUSTMENT.value,
                    delta,
                    stock.quantity,
                    reason=clean_str(reason) or "Cycle count",
                    reference=reference,
                    user_id=user_id,
                )
            self.sync_item_total(item)

            log_action(
                action="inventory_cycle_count",
                entity_type="inventory_item",
                entity_id=item.id,
                user_id=user_id,
                summary=f"{item.name}: counted {quantize_qty(counted)} {item.unit} in {warehouse.name}",
                details={
                    "item_id": item.id,
                    "warehouse_id": warehouse.id,
                    "counted": counted,
                    "delta": delta,
                },
                db=self.db,
            )

        return {"item": item, "stock": stock, "movement": movement, "delta": delta}

    # ===== IMPORT / EXPORT =====

    @staticmethod
    def parse_csv(text: str) -> list[dict[str, Any]]:
        """Rows of a CSV export with lower-cased, trimmed header names."""
        reader = csv.DictReader(io.StringIO(text.strip()))
        rows = []
        for record in reader:
            rows.append({
                (key or "").strip().lower(): value
                for key, value in record.items()
            })
        return rows

    def _match_import_item(self, row: dict[str, Any]) -> Optional[InventoryItem]:
        item_ref = row.get("itemid") or row.get("item_id")
        if item_ref not in (None, ""):
            try:
                return self.db.query(InventoryItem).filter(InventoryItem.id == int(item_ref)).first()
            except (TypeError, ValueError):
                return None

        sku = clean_code(row.get("sku"))
        if sku:
            return self.db.query(InventoryItem).filter(InventoryItem.sku == sku).first()

        name = clean_str(row.get("name"))
        if name:
            matches = (
                self.db.query(InventoryItem)
                .filter(func.lower(InventoryItem.name) == name.lower(), InventoryItem.is_active.is_(True))
                .limit(2)
                .all()
            )
            if len(matches) == 1:
                return matches[0]
        return None

    def import_stock(
        self,
        warehouse_id: Optional[int],
        rows: Optional[list[dict[str, Any]]] = None,
        csv_text: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> dict[str, Any]:
        """Apply absolute counts from rows or CSV text to one warehouse."""
        source = "rows"
        parsed = [
            {str(key).strip().lower(): value for key, value in row.items()}
            for row in (rows or [])
            if isinstance(row, dict)
        ]
        if not parsed and csv_text and csv_text.strip():
            parsed = self.parse_csv(csv_text)
            source = "csv"
        if not parsed:
            raise ValidationError("No rows to import")

        with self.transaction():
            warehouse = self.warehouses.resolve_warehouse(warehouse_id)

            to_process: list[tuple[InventoryItem, Decimal]] = []
            skipped = 0
            for row in parsed:
                raw_qty = row.get("quantity")
                if raw_qty in (None, ""):
                    raw_qty = row.get("qty")
                qty = to_decimal(raw_qty, None)
                if qty is None:
                    skipped += 1
                    continue
                item = self._match_import_item(row)
                if item is None:
                    skipped += 1
                    continue
                to_process.append((item, max(ZERO, qty)))

            if not to_process:
                raise ValidationError("No matching inventory items found in import")

            results = []
            for item, qty in to_process:
                stock = self.get_or_create_stock(item, warehouse)
                delta = self.set_quantity(stock, qty)
                if delta != 0:
                    self.record_movement(
                        item,
                        warehouse,
                        MovementType.COUNT_ADJUSTMENT.value,
                        delta,
                        stock.quantity,
                        reason="Stock import count",
                        meta={"import": True, "source": source},
                        user_id=user_id,
                    )
                self.sync_item_total(item)
                results.append({
                    "item_id": item.id,
                    "name": item.name,
                    "new_quantity": quantize_qty(qty),
                    "delta": delta,
                })

            log_action(
                action="inventory_import",
                entity_type="warehouse",
                entity_id=warehouse.id,
                user_id=user_id,
                summary=f"Imported {len(results)} stock counts into {warehouse.name}",
                details={"warehouse_id": warehouse.id, "updated": len(results), "skipped": skipped},
                db=self.db,
            )

        return {
            "warehouse": {"id": warehouse.id, "name": warehouse.name},
            "updated": len(results),
            "skipped": skipped,
            "results": results,
        }

    def export_stock_csv(self, warehouse_id: int) -> dict[str, str]:
        """CSV snapshot of one warehouse: name, sku, quantity, unit, parLevel."""
        warehouse = self.warehouses.get_warehouse(warehouse_id)
        rows = (
            self.db.query(InventoryStock, InventoryItem)
            .join(InventoryItem, InventoryItem.id == InventoryStock.item_id)
            .filter(InventoryStock.warehouse_id == warehouse.id)
            .order_by(InventoryItem.name)
            .all()
        )

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(EXPORT_COLUMNS)
        for stock, item in rows:
            par = stock.par_level if stock.par_level is not None else item.par_level
            writer.writerow([
                item.name or "",
                item.sku or "",
                quantize_qty(stock.quantity),
                item.unit or "",
                quantize_qty(par),
            ])

        filename = f"{warehouse.code or 'warehouse'}-stock-{utcnow().date().isoformat()}.csv"
        return {"filename": filename, "csv": buffer.getvalue()}

    # ===== MOVEMENT LOG =====

    def list_movements(
        self,
        filters: Optional[MovementFilter] = None,
        page: int = 1,
        limit: int = 50,
        max_limit: int = MAX_MOVEMENT_PAGE,
    ) -> tuple[list[InventoryMovement], int, int, int]:
        """Newest-first page of movements; returns (movements, total, page, limit)."""
        filters = filters or MovementFilter()
        limit = min(max_limit, max(1, int(limit or 1)))
        page = max(1, int(page or 1))

        query = self.db.query(InventoryMovement)
        if filters.item_id:
            query = query.filter(InventoryMovement.item_id == filters.item_id)
        if filters.warehouse_id:
            query = query.filter(InventoryMovement.warehouse_id == filters.warehouse_id)
        if filters.type:
            query = query.filter(InventoryMovement.type == filters.type)
        if filters.created_by:
            query = query.filter(InventoryMovement.created_by == filters.created_by)
        if filters.supplier_id:
            query = query.filter(InventoryMovement.supplier_id == filters.supplier_id)
        if filters.date_from:
            query = query.filter(InventoryMovement.created_at >= filters.date_from)
        if filters.date_to:
            query = query.filter(InventoryMovement.created_at <= filters.date_to)

        total = query.count()
        movements = (
            query.order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return movements, total, page, limit

    def list_item_movements(
        self, item_id: int, filters: Optional[MovementFilter] = None, page: int = 1, limit: int = 30
    ) -> tuple[list[InventoryMovement], int, int, int]:
        self.get_item(item_id)
        filters = filters or MovementFilter()
        filters.item_id = item_id
        return self.list_movements(filters, page=page, limit=limit, max_limit=MAX_ITEM_MOVEMENT_PAGE)


def movement_to_dict(movement: InventoryMovement) -> dict[str, Any]:
    """Movement with the names of the item, warehouses and supplier it refers to."""
    def _warehouse(warehouse: Optional[Warehouse]) -> Optional[dict]:
        if warehouse is None:
            return None
        return {"id": warehouse.id, "name": warehouse.name, "code": warehouse.code}

    return {
        "id": movement.id,
        "item_id": movement.item_id,
        "item": {"id": movement.item.id, "name": movement.item.name, "unit": movement.item.unit}
        if movement.item else None,
        "type": movement.type,
        "delta": movement.delta,
        "quantity": movement.quantity,
        "balance_after": movement.balance_after,
        "unit": movement.unit,
        "warehouse_id": movement.warehouse_id,
        "warehouse": _warehouse(movement.warehouse),
        "source_warehouse_id": movement.source_warehouse_id,
        "target_warehouse_id": movement.target_warehouse_id,
        "unit_cost": movement.unit_cost,
        "total_cost": movement.total_cost,
        "reason": movement.reason,
        "reference": movement.reference,
        "metadata": movement.meta,
        "created_by": movement.created_by,
        "supplier_id": movement.supplier_id,
        "supplier": {"id": movement.supplier.id, "name": movement.supplier.name}
        if movement.supplier else None,
        "created_at": movement.created_at,
    }


def get_stock_ledger_service(db: Session) -> StockLedgerService:
    """Get a stock ledger service instance."""
    return StockLedgerService(db)
