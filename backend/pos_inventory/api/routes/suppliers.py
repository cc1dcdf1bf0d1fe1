"""Supplier routes - CRUD plus the purchase, return and payment ledger."""

from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Query, Request

from pos_inventory.core.rate_limit import limiter
from pos_inventory.core.rbac import CurrentUser, RequireManager
from pos_inventory.core.responses import list_response
from pos_inventory.core.validators import PositiveIntId
from pos_inventory.db.session import DbSession
from pos_inventory.schemas.supplier import (
    InvoiceAttachRequest,
    InvoiceResponse,
    PaymentRequest,
    PaymentResponse,
    PriceHistoryResponse,
    PurchaseRequest,
    ReturnRequest,
    SupplierCreate,
    SupplierResponse,
    SupplierUpdate,
)
from pos_inventory.services.inventory_item_service import item_to_dict
from pos_inventory.services.stock_ledger_service import movement_to_dict
from pos_inventory.services.supplier_ledger_service import SupplierLedgerService
from pos_inventory.services.websocket_service import (
    emit_stock_received,
    emit_stock_updated,
    stock_snapshot,
)

router = APIRouter()


@router.get("/")
@limiter.limit("60/minute")
def list_suppliers(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    search: str = Query("", max_length=200),
    status: Literal["active", "inactive", "all"] = Query("active"),
):
    result = SupplierLedgerService(db).list_suppliers(search, status)
    return list_response(
        [SupplierResponse.model_validate(s) for s in result["suppliers"]],
        totals=result["totals"],
    )


@router.post("/", response_model=SupplierResponse, status_code=201)
@limiter.limit("30/minute")
def create_supplier(request: Request, payload: SupplierCreate, db: DbSession, current_user: RequireManager):
    return SupplierLedgerService(db).create_supplier(payload.model_dump(exclude_unset=True), current_user.user_id)


@router.get("/{supplier_id}", response_model=SupplierResponse)
@limiter.limit("60/minute")
def get_supplier(request: Request, supplier_id: PositiveIntId, db: DbSession, current_user: CurrentUser):
    return SupplierLedgerService(db).get_supplier(supplier_id)


@router.put("/{supplier_id}", response_model=SupplierResponse)
@limiter.limit("30/minute")
def update_supplier(
    request: Request,
    supplier_id: PositiveIntId,
    payload: SupplierUpdate,
    db: DbSession,
    current_user: RequireManager,
):
    return SupplierLedgerService(db).update_supplier(
        supplier_id, payload.model_dump(exclude_unset=True), current_user.user_id
    )


@router.delete("/{supplier_id}")
@limiter.limit("30/minute")
def archive_supplier(request: Request, supplier_id: PositiveIntId, db: DbSession, current_user: RequireManager):
    SupplierLedgerService(db).archive_supplier(supplier_id, current_user.user_id)
    return {"success": True}


@router.get("/{supplier_id}/ledger")
@limiter.limit("60/minute")
def get_supplier_ledger(
    request: Request,
    supplier_id: PositiveIntId,
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
):
    """Supplier header plus a newest-first page of price history, payments and invoices."""
    ledger = SupplierLedgerService(db).get_ledger(supplier_id, page, limit)
    return {
        "supplier": SupplierResponse.model_validate(ledger["supplier"]),
        "price_history": [PriceHistoryResponse.model_validate(r) for r in ledger["price_history"]],
        "payments": [PaymentResponse.model_validate(r) for r in ledger["payments"]],
        "invoices": [InvoiceResponse.model_validate(r) for r in ledger["invoices"]],
        "page": ledger["page"],
        "limit": ledger["limit"],
        "totals": ledger["totals"],
    }


@router.post("/{supplier_id}/purchases", status_code=201)
@limiter.limit("60/minute")
def record_purchase(
    request: Request,
    supplier_id: PositiveIntId,
    payload: PurchaseRequest,
    background_tasks: BackgroundTasks,
    db: DbSession,
    current_user: RequireManager,
):
    """Receive goods: stock in, weighted-average cost, supplier balance up."""
    result = SupplierLedgerService(db).record_purchase(
        supplier_id,
        payload.item_id,
        payload.quantity,
        payload.unit_cost,
        warehouse_id=payload.warehouse_id,
        currency=payload.currency,
        note=payload.note,
        reference=payload.reference,
        invoice_number=payload.invoice_number,
        invoice_date=payload.invoice_date,
        due_date=payload.due_date,
        user_id=current_user.user_id,
    )
    snapshot = stock_snapshot(result["item"])
    background_tasks.add_task(
        emit_stock_received, snapshot, result["supplier"].name, result["movement"].quantity, current_user.venue_id
    )
    background_tasks.add_task(emit_stock_updated, [snapshot], "purchase", current_user.venue_id)
    return {
        "supplier": SupplierResponse.model_validate(result["supplier"]),
        "item": item_to_dict(result["item"]),
        "movement": movement_to_dict(result["movement"]),
        "stock": {"warehouse_id": result["stock"].warehouse_id, "quantity": result["stock"].quantity},
    }


@router.post("/{supplier_id}/returns", status_code=201)
@limiter.limit("60/minute")
def record_return(
    request: Request,
    supplier_id: PositiveIntId,
    payload: ReturnRequest,
    background_tasks: BackgroundTasks,
    db: DbSession,
    current_user: RequireManager,
):
    result = SupplierLedgerService(db).record_return(
        supplier_id,
        payload.item_id,
        payload.quantity,
        unit_cost=payload.unit_cost,
        warehouse_id=payload.warehouse_id,
        currency=payload.currency,
        note=payload.note,
        reference=payload.reference,
        user_id=current_user.user_id,
    )
    background_tasks.add_task(
        emit_stock_updated, [stock_snapshot(result["item"])], "return", current_user.venue_id
    )
    return {
        "supplier": SupplierResponse.model_validate(result["supplier"]),
        "item": item_to_dict(result["item"]),
        "movement": movement_to_dict(result["movement"]),
    }


@router.post("/{supplier_id}/payments", status_code=201)
@limiter.limit("60/minute")
def record_payment(
    request: Request,
    supplier_id: PositiveIntId,
    payload: PaymentRequest,
    db: DbSession,
    current_user: RequireManager,
):
    result = SupplierLedgerService(db).record_payment(
        supplier_id,
        payload.amount,
        method=payload.method,
        reference=payload.reference,
        note=payload.note,
        paid_at=payload.paid_at,
        user_id=current_user.user_id,
    )
    return {
        "supplier": SupplierResponse.model_validate(result["supplier"]),
        "payment": PaymentResponse.model_validate(result["payment"]),
    }


@router.post("/{supplier_id}/invoices", status_code=201)
@limiter.limit("30/minute")
def attach_invoice(
    request: Request,
    supplier_id: PositiveIntId,
    payload: InvoiceAttachRequest,
    db: DbSession,
    current_user: RequireManager,
):
    result = SupplierLedgerService(db).attach_invoice(
        supplier_id, payload.model_dump(exclude_unset=True), current_user.user_id
    )
    return {
        "supplier": SupplierResponse.model_validate(result["supplier"]),
        "invoice": InvoiceResponse.model_validate(result["invoice"]),
    }
