"""Supplier Ledger Service - purchases, returns, payments and invoices.

Purchases and returns move stock through ``StockLedgerService`` (one
movement each, linked to the supplier) and additionally:

* purchase: re-average the item cost
  ``(old_qty * old_cost + qty * unit_cost) / (old_qty + qty)``, raise the
  supplier balance and ``total_purchases``, append a price-history row
* return: deduct what is actually on hand (never more), lower balance and
  ``total_purchases`` by the returned value (floored at 0), append a
  negative-cost price-history row

Price history, payments and invoices are append-only tables trimmed to the
newest ``settings.history_retention_limit`` rows per supplier.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pos_inventory.core.config import settings
from pos_inventory.core.exceptions import ConflictError, NotFoundError, ValidationError
from pos_inventory.core.validators import clean_code, clean_list, clean_str, to_decimal
from pos_inventory.db.base import utcnow
from pos_inventory.models.stock import MovementType
from pos_inventory.models.supplier import (
    Supplier,
    SupplierInvoice,
    SupplierPayment,
    SupplierPriceHistory,
)
from pos_inventory.services.audit_service import log_action
from pos_inventory.services.stock_ledger_service import StockLedgerService, quantize_qty

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
COST_QUANT = Decimal("0.0001")
MONEY_QUANT = Decimal("0.01")

CONTACT_FIELDS = {
    "person": "contact_person",
    "phone": "phone",
    "email": "email",
    "whatsapp": "whatsapp",
    "telegram": "telegram",
}
ADDRESS_FIELDS = ("street", "city", "state", "country", "postal_code")
TEXT_FIELDS = ("company_name", "tax_id", "payment_terms", "notes")


def money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(MONEY_QUANT)


class SupplierLedgerService:
    """Service for suppliers and their purchase/payment ledger."""

    def __init__(self, db: Session):
        self.db = db
        self.ledger = StockLedgerService(db)

    # ===== CRUD =====

    def get_supplier(self, supplier_id: int) -> Supplier:
        supplier = self.db.query(Supplier).filter(Supplier.id == supplier_id).first()
        if not supplier:
            raise NotFoundError(f"Supplier {supplier_id} not found")
        return supplier

    def _apply_payload(self, supplier: Supplier, data: dict[str, Any]) -> None:
        if "code" in data:
            supplier.code = clean_code(data["code"])
        for name in TEXT_FIELDS:
            if name in data:
                setattr(supplier, name, clean_str(data[name]) or None)
        if data.get("categories") is not None:
            supplier.categories = clean_list(data["categories"])
        if data.get("contact") is not None:
            contact = data["contact"] or {}
            for key, attr in CONTACT_FIELDS.items():
                setattr(supplier, attr, clean_str(contact.get(key)) or None)
        if data.get("address") is not None:
            address = data["address"] or {}
            for key in ADDRESS_FIELDS:
                setattr(supplier, key, clean_str(address.get(key)) or None)
        if "currency" in data:
            supplier.currency = clean_code(data["currency"]) or settings.default_currency
        if "metadata" in data:
            supplier.meta = data["metadata"]

    def _check_unique(self, name: Optional[str], code: Optional[str], exclude_id: Optional[int] = None) -> None:
        for column, value in (("name", name), ("code", code)):
            if not value:
                continue
            query = self.db.query(Supplier.id).filter(getattr(Supplier, column) == value)
            if exclude_id is not None:
                query = query.filter(Supplier.id != exclude_id)
            if query.first():
                raise ConflictError(f"A supplier with {column} '{value}' already exists")

    def list_suppliers(self, search: str = "", status: str = "active") -> dict[str, Any]:
        query = self.db.query(Supplier)
        if status == "inactive":
            query = query.filter(Supplier.is_active.is_(False))
        elif status != "all":
            query = query.filter(Supplier.is_active.is_(True))

        term = clean_str(search)
        if term:
            pattern = f"%{term}%"
            query = query.filter(or_(
                Supplier.name.ilike(pattern),
                Supplier.company_name.ilike(pattern),
                Supplier.contact_person.ilike(pattern),
                Supplier.phone.ilike(pattern),
            ))

        suppliers = query.order_by(Supplier.is_active.desc(), Supplier.balance.desc(), Supplier.name).all()
        totals = {
            "count": len(suppliers),
            "active": sum(1 for s in suppliers if s.is_active),
            "total_balance": sum((s.balance or ZERO for s in suppliers), ZERO),
        }
        return {"suppliers": suppliers, "totals": totals}

    def create_supplier(self, data: dict[str, Any], user_id: Optional[int] = None) -> Supplier:
        name = clean_str(data.get("name"))
        if not name:
            raise ValidationError("Supplier name is required")
        self._check_unique(name, clean_code(data.get("code")))

        supplier = Supplier(name=name, currency=settings.default_currency)
        self._apply_payload(supplier, data)
        try:
            self.db.add(supplier)
            self.db.flush()
            log_action(
                action="supplier_create",
                entity_type="supplier",
                entity_id=supplier.id,
                user_id=user_id,
                summary=f"Supplier created: {supplier.name}",
                details={"supplier_id": supplier.id},
                db=self.db,
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("A supplier with this name or code already exists") from e
        self.db.refresh(supplier)
        return supplier

    def update_supplier(self, supplier_id: int, data: dict[str, Any], user_id: Optional[int] = None) -> Supplier:
        supplier = self.get_supplier(supplier_id)
        name = clean_str(data.get("name")) if "name" in data else None
        code = clean_code(data.get("code")) if "code" in data else None
        self._check_unique(name, code, exclude_id=supplier.id)

        if name:
            supplier.name = name
        self._apply_payload(supplier, data)
        if data.get("is_active") is not None:
            supplier.set_active(data["is_active"])

        try:
            log_action(
                action="supplier_update",
                entity_type="supplier",
                entity_id=supplier.id,
                user_id=user_id,
                summary=f"Supplier updated: {supplier.name}",
                details={"supplier_id": supplier.id},
                db=self.db,
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("A supplier with this name or code already exists") from e
        self.db.refresh(supplier)
        return supplier

    def archive_supplier(self, supplier_id: int, user_id: Optional[int] = None) -> Supplier:
        supplier = self.get_supplier(supplier_id)
        supplier.archive()
        log_action(
            action="supplier_archive",
            entity_type="supplier",
            entity_id=supplier.id,
            user_id=user_id,
            summary=f"Supplier archived: {supplier.name}",
            details={"supplier_id": supplier.id},
            db=self.db,
        )
        self.db.commit()
        return supplier

    # ===== HISTORY =====

    def _trim_history(self, model, supplier_id: int) -> int:
        """Delete rows beyond the newest retention limit for one supplier."""
        keep = settings.history_retention_limit
        stale = (
            select(model.id)
            .where(model.supplier_id == supplier_id)
            .order_by(model.id.desc())
            .offset(keep)
        )
        stale_ids = list(self.db.execute(stale).scalars())
        if not stale_ids:
            return 0
        self.db.execute(
            delete(model).where(model.id.in_(stale_ids)).execution_options(synchronize_session=False)
        )
        logger.debug(f"Trimmed {len(stale_ids)} {model.__tablename__} rows for supplier {supplier_id}")
        return len(stale_ids)

    def _append_history(self, row) -> None:
        self.db.add(row)
        self.db.flush()
        self._trim_history(type(row), row.supplier_id)

    def last_unit_cost(self, supplier_id: int, item_id: Optional[int] = None) -> Decimal:
        """Newest positive purchase price, preferring the same item."""
        query = self.db.query(SupplierPriceHistory.unit_cost).filter(
            SupplierPriceHistory.supplier_id == supplier_id,
            SupplierPriceHistory.unit_cost > 0,
        )
        newest = SupplierPriceHistory.id.desc()
        if item_id is not None:
            cost = query.filter(SupplierPriceHistory.item_id == item_id).order_by(newest).limit(1).scalar()
            if cost is not None:
                return Decimal(cost)
        cost = query.order_by(newest).limit(1).scalar()
        return Decimal(cost) if cost is not None else ZERO

    # ===== LEDGER OPERATIONS =====

    def record_purchase(
        self,
        supplier_id: int,
        item_id: int,
        quantity: Any,
        unit_cost: Any,
        warehouse_id: Optional[int] = None,
        currency: Optional[str] = None,
        note: Optional[str] = None,
        reference: Optional[str] = None,
        invoice_number: Optional[str] = None,
        invoice_date: Optional[datetime] = None,
        due_date: Optional[datetime] = None,
        user_id: Optional[int] = None,
    ) -> dict[str, Any]:
        """Receive goods from a supplier at a unit cost."""
        qty = to_decimal(quantity, None)
        cost = to_decimal(unit_cost, None)

        with self.ledger.transaction():
            supplier = self.get_supplier(supplier_id)
            if not supplier.is_active:
                raise ValidationError("Cannot record a purchase from an archived supplier")
            if qty is None or quantize_qty(qty) <= 0:
                raise ValidationError("Purchase quantity must be greater than zero")
            if cost is None or cost <= 0:
                raise ValidationError("Unit cost must be greater than zero")
            qty = quantize_qty(qty)

            item = self.ledger.get_item(item_id)
            warehouse = self.ledger.resolve_item_warehouse(item, warehouse_id)
            now = utcnow()
            total_cost = qty * cost

            # Weighted average over the total on hand before this purchase
            old_qty = item.current_stock or ZERO
            old_cost = item.cost or ZERO
            if old_qty > 0:
                item.cost = ((old_qty * old_cost + total_cost) / (old_qty + qty)).quantize(COST_QUANT)
            else:
                item.cost = cost.quantize(COST_QUANT)

            stock = self.ledger.get_or_create_stock(item, warehouse)
            change = self.ledger.apply_delta(stock, qty, item=item, warehouse=warehouse)
            movement = self.ledger.record_movement(
                item,
                warehouse,
                MovementType.INCOMING.value,
                change.applied,
                change.balance_after,
                reason=note,
                reference=reference,
                user_id=user_id,
                supplier_id=supplier.id,
                unit_cost=cost,
                total_cost=total_cost,
            )
            item.last_restock_date = now
            self.ledger.sync_item_total(item)

            self._append_history(SupplierPriceHistory(
                supplier_id=supplier.id,
                item_id=item.id,
                item_name=item.name,
                unit=item.unit,
                warehouse_id=warehouse.id,
                unit_cost=cost,
                quantity=qty,
                total_cost=money(total_cost),
                currency=clean_code(currency) or supplier.currency,
                note=clean_str(note) or None,
                reference=clean_str(reference) or None,
                invoice_number=clean_str(invoice_number) or None,
                invoice_date=invoice_date,
                due_date=due_date,
                recorded_by=user_id,
                created_at=now,
            ))

            supplier.balance = money((supplier.balance or ZERO) + total_cost)
            supplier.total_purchases = money((supplier.total_purchases or ZERO) + total_cost)
            supplier.last_purchase_date = now

            log_action(
                action="supplier_purchase",
                entity_type="supplier",
                entity_id=supplier.id,
                user_id=user_id,
                summary=f"{supplier.name} -> {item.name} ({qty} {item.unit})",
                details={
                    "supplier_id": supplier.id,
                    "item_id": item.id,
                    "warehouse_id": warehouse.id,
                    "quantity": qty,
                    "unit_cost": cost,
                    "total_cost": total_cost,
                },
                db=self.db,
            )

        logger.info(f"Supplier {supplier.id} purchase: item {item.id} x {qty} @ {cost}")
        return {"supplier": supplier, "item": item, "movement": movement, "stock": stock}

    def record_return(
        self,
        supplier_id: int,
        item_id: int,
        quantity: Any,
        unit_cost: Any = None,
        warehouse_id: Optional[int] = None,
        currency: Optional[str] = None,
        note: Optional[str] = None,
        reference: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> dict[str, Any]:
        """Send goods back; only what is on hand in the warehouse is deducted.

        With nothing on hand the return is still recorded, at zero quantity.
        """
        requested = to_decimal(quantity, None)
        if requested is None or quantize_qty(requested) <= 0:
            raise ValidationError("Return quantity must be greater than zero")
        requested = quantize_qty(requested)

        with self.ledger.transaction():
            supplier = self.get_supplier(supplier_id)
            item = self.ledger.get_item(item_id)
            cost = to_decimal(unit_cost, None)
            if cost is None:
                cost = self.last_unit_cost(supplier.id, item.id)
            cost = max(ZERO, cost)

            warehouse = self.ledger.resolve_item_warehouse(item, warehouse_id)
            stock = self.ledger.get_or_create_stock(item, warehouse)
            change = self.ledger.apply_delta(stock, -requested, clamp=True, item=item, warehouse=warehouse)
            deducted = -change.applied
            total_cost = deducted * cost

            movement = self.ledger.record_movement(
                item,
                warehouse,
                MovementType.RETURN.value,
                change.applied,
                change.balance_after,
                reason=clean_str(note) or "Return to supplier",
                reference=reference,
                meta={"requested_quantity": requested, "deducted_quantity": deducted},
                user_id=user_id,
                supplier_id=supplier.id,
                unit_cost=cost,
                total_cost=total_cost,
            )
            self.ledger.sync_item_total(item)

            supplier.balance = money(max(ZERO, (supplier.balance or ZERO) - total_cost))
            supplier.total_purchases = money(max(ZERO, (supplier.total_purchases or ZERO) - total_cost))

            self._append_history(SupplierPriceHistory(
                supplier_id=supplier.id,
                item_id=item.id,
                item_name=item.name,
                unit=item.unit,
                warehouse_id=warehouse.id,
                unit_cost=-cost,
                quantity=deducted,
                total_cost=-money(total_cost),
                currency=clean_code(currency) or supplier.currency,
                note=f"Return: {clean_str(note)}".strip(),
                reference=clean_str(reference) or None,
                recorded_by=user_id,
                created_at=utcnow(),
            ))

            log_action(
                action="supplier_return",
                entity_type="supplier",
                entity_id=supplier.id,
                user_id=user_id,
                summary=f"{item.name} ({deducted} {item.unit}) returned to {supplier.name}",
                details={
                    "supplier_id": supplier.id,
                    "item_id": item.id,
                    "requested": requested,
                    "quantity": deducted,
                    "total_cost": total_cost,
                },
                db=self.db,
            )

        return {"supplier": supplier, "item": item, "movement": movement, "stock": stock}

    def record_payment(
        self,
        supplier_id: int,
        amount: Any,
        method: str = "cash",
        reference: Optional[str] = None,
        note: Optional[str] = None,
        paid_at: Optional[datetime] = None,
        user_id: Optional[int] = None,
    ) -> dict[str, Any]:
        value = to_decimal(amount, None)
        if value is None or value <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        value = money(value)

        with self.ledger.transaction():
            supplier = self.get_supplier(supplier_id)
            payment = SupplierPayment(
                supplier_id=supplier.id,
                amount=value,
                method=clean_str(method, "cash"),
                reference=clean_str(reference) or None,
                note=clean_str(note) or None,
                recorded_by=user_id,
                paid_at=paid_at or utcnow(),
                created_at=utcnow(),
            )
            self._append_history(payment)

            supplier.balance = money(max(ZERO, (supplier.balance or ZERO) - value))
            supplier.total_payments = money((supplier.total_payments or ZERO) + value)

            log_action(
                action="supplier_payment",
                entity_type="supplier",
                entity_id=supplier.id,
                user_id=user_id,
                summary=f"Payment of {value} {supplier.currency} to {supplier.name}",
                details={"supplier_id": supplier.id, "amount": value, "method": payment.method},
                db=self.db,
            )

        return {"supplier": supplier, "payment": payment}

    def attach_invoice(self, supplier_id: int, data: dict[str, Any], user_id: Optional[int] = None) -> dict[str, Any]:
        with self.ledger.transaction():
            supplier = self.get_supplier(supplier_id)
            invoice = SupplierInvoice(
                supplier_id=supplier.id,
                number=clean_str(data.get("number")) or None,
                amount=money(max(ZERO, to_decimal(data.get("amount"), ZERO))),
                currency=clean_code(data.get("currency")) or supplier.currency,
                issued_date=data.get("issued_date"),
                due_date=data.get("due_date"),
                file_name=clean_str(data.get("file_name")) or None,
                file_path=clean_str(data.get("file_path")) or None,
                file_url=clean_str(data.get("file_url")) or None,
                note=clean_str(data.get("note")) or None,
                status="pending",
                uploaded_by=user_id,
                created_at=utcnow(),
            )
            self._append_history(invoice)

            log_action(
                action="supplier_invoice_attach",
                entity_type="supplier",
                entity_id=supplier.id,
                user_id=user_id,
                summary=f"Invoice {invoice.number or '(no number)'} attached to {supplier.name}",
                details={"supplier_id": supplier.id, "invoice_number": invoice.number},
                db=self.db,
            )

        return {"supplier": supplier, "invoice": invoice}

    def get_ledger(self, supplier_id: int, page: int = 1, limit: int = 50) -> dict[str, Any]:
        """Supplier header plus one newest-first page of each history table."""
        supplier = self.get_supplier(supplier_id)
        limit = min(settings.history_retention_limit, max(1, int(limit or 1)))
        page = max(1, int(page or 1))

        def _page(model, order_column):
            query = self.db.query(model).filter(model.supplier_id == supplier.id)
            total = query.with_entities(func.count(model.id)).scalar()
            rows = (
                query.order_by(order_column.desc(), model.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
            return rows, total

        price_history, price_total = _page(SupplierPriceHistory, SupplierPriceHistory.created_at)
        payments, payment_total = _page(SupplierPayment, SupplierPayment.paid_at)
        invoices, invoice_total = _page(SupplierInvoice, SupplierInvoice.created_at)

        return {
            "supplier": supplier,
            "price_history": price_history,
            "payments": payments,
            "invoices": invoices,
            "page": page,
            "limit": limit,
            "totals": {
                "price_history": price_total,
                "payments": payment_total,
                "invoices": invoice_total,
            },
        }


def get_supplier_ledger_service(db: Session) -> SupplierLedgerService:
    """Get a supplier ledger service instance."""
    return SupplierLedgerService(db)
