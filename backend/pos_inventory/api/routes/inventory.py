"""Inventory routes - items, stock movements, transfers, counts and CSV import/export.

Every mutation commits in the service layer first; websocket notifications are
scheduled as background tasks afterwards so a slow client never delays the
response.
"""

import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Query, Request

from pos_inventory.core.rate_limit import limiter
from pos_inventory.core.rbac import CurrentUser, RequireManager
from pos_inventory.core.responses import paginated_response
from pos_inventory.core.validators import PositiveIntId
from pos_inventory.db.session import DbSession
from pos_inventory.models.stock import MovementType
from pos_inventory.schemas.inventory import (
    CycleCountRequest,
    InventoryItemCreate,
    InventoryItemUpdate,
    StockAdjustRequest,
    StockImportRequest,
    StockTransferRequest,
)
from pos_inventory.services.inventory_item_service import InventoryItemService, item_to_dict
from pos_inventory.services.stock_ledger_service import (
    MovementFilter,
    StockLedgerService,
    movement_to_dict,
)
from pos_inventory.services.websocket_service import emit_stock_updated, stock_snapshot

logger = logging.getLogger(__name__)

router = APIRouter()


def _notify(background_tasks: BackgroundTasks, items: list, reason: str, venue_id: int) -> None:
    snapshots = [stock_snapshot(item) for item in items]
    background_tasks.add_task(emit_stock_updated, snapshots, reason, venue_id)


def _movement_filter(
    warehouse_id: Optional[int],
    type: Optional[str],
    created_by: Optional[int],
    supplier_id: Optional[int],
    date_from: Optional[datetime],
    date_to: Optional[datetime],
    item_id: Optional[int] = None,
) -> MovementFilter:
    return MovementFilter(
        item_id=item_id,
        warehouse_id=warehouse_id,
        type=type,
        created_by=created_by,
        supplier_id=supplier_id,
        date_from=date_from,
        date_to=date_to,
    )


# ==================== ITEMS ====================

@router.get("/")
@limiter.limit("60/minute")
def list_items(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    search: str = Query("", max_length=200),
    category: Optional[str] = None,
    status: Literal["active", "archived", "all"] = Query("active"),
    warehouse_id: Optional[int] = Query(None, gt=0),
):
    """Items with per warehouse balances, summary, categories and warehouses."""
    return InventoryItemService(db).list_items(search, category, status, warehouse_id)


@router.post("/", status_code=201)
@limiter.limit("30/minute")
def create_item(
    request: Request,
    payload: InventoryItemCreate,
    background_tasks: BackgroundTasks,
    db: DbSession,
    current_user: RequireManager,
):
    item = InventoryItemService(db).create_item(payload.model_dump(exclude_unset=True), current_user.user_id)
    _notify(background_tasks, [item], "created", current_user.venue_id)
    return item_to_dict(item)


# ==================== MOVEMENTS / IMPORT / EXPORT ====================

@router.get("/movements")
@limiter.limit("60/minute")
def list_movements(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    warehouse_id: Optional[int] = Query(None, gt=0),
    type: Optional[MovementType] = None,
    created_by: Optional[int] = Query(None, gt=0),
    supplier_id: Optional[int] = Query(None, gt=0),
    item_id: Optional[int] = Query(None, gt=0),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
):
    """Newest-first movement log."""
    filters = _movement_filter(
        warehouse_id, type.value if type else None, created_by, supplier_id, date_from, date_to, item_id
    )
    movements, total, page, limit = StockLedgerService(db).list_movements(filters, page, limit)
    return paginated_response([movement_to_dict(m) for m in movements], total, page, limit)


@router.get("/export")
@limiter.limit("10/minute")
def export_stock(
    request: Request,
    db: DbSession,
    current_user: RequireManager,
    warehouse_id: int = Query(..., gt=0),
):
    """CSV snapshot of one warehouse."""
    return StockLedgerService(db).export_stock_csv(warehouse_id)


@router.post("/import")
@limiter.limit("10/minute")
def import_stock(
    request: Request,
    payload: StockImportRequest,
    background_tasks: BackgroundTasks,
    db: DbSession,
    current_user: RequireManager,
):
    """Apply absolute counts from rows or CSV text."""
    service = StockLedgerService(db)
    result = service.import_stock(payload.warehouse_id, payload.rows, payload.csv, current_user.user_id)
    items = [service.get_item(row["item_id"]) for row in result["results"]]
    _notify(background_tasks, items, "import", current_user.venue_id)
    return result


# ==================== SINGLE ITEM ====================

@router.get("/{item_id}")
@limiter.limit("60/minute")
def get_item(request: Request, item_id: PositiveIntId, db: DbSession, current_user: CurrentUser):
    return item_to_dict(InventoryItemService(db).get_item(item_id))


@router.put("/{item_id}")
@limiter.limit("30/minute")
def update_item(
    request: Request,
    item_id: PositiveIntId,
    payload: InventoryItemUpdate,
    background_tasks: BackgroundTasks,
    db: DbSession,
    current_user: RequireManager,
):
    item = InventoryItemService(db).update_item(item_id, payload.model_dump(exclude_unset=True), current_user.user_id)
    _notify(background_tasks, [item], "updated", current_user.venue_id)
    return item_to_dict(item)


@router.delete("/{item_id}")
@limiter.limit("30/minute")
def archive_item(request: Request, item_id: PositiveIntId, db: DbSession, current_user: RequireManager):
    """Archive an item with no stock left."""
    item = InventoryItemService(db).archive_item(item_id, current_user.user_id)
    return {"success": True, "item": item_to_dict(item)}


@router.post("/{item_id}/adjust")
@limiter.limit("60/minute")
def adjust_stock(
    request: Request,
    item_id: PositiveIntId,
    payload: StockAdjustRequest,
    background_tasks: BackgroundTasks,
    db: DbSession,
    current_user: RequireManager,
):
    """Manual stock change: incoming, usage, adjustment, waste or return."""
    result = StockLedgerService(db).adjust_stock(
        item_id,
        payload.quantity,
        movement_type=payload.type,
        reason=payload.reason,
        reference=payload.reference,
        warehouse_id=payload.warehouse_id,
        supplier_id=payload.supplier_id,
        user_id=current_user.user_id,
    )
    _notify(background_tasks, [result["item"]], result["movement"].type, current_user.venue_id)
    return {"item": item_to_dict(result["item"]), "movement": movement_to_dict(result["movement"])}


@router.post("/{item_id}/transfer")
@limiter.limit("60/minute")
def transfer_stock(
    request: Request,
    item_id: PositiveIntId,
    payload: StockTransferRequest,
    background_tasks: BackgroundTasks,
    db: DbSession,
    current_user: RequireManager,
):
    result = StockLedgerService(db).transfer_stock(
        item_id,
        payload.quantity,
        target_warehouse_id=payload.target_warehouse_id,
        source_warehouse_id=payload.source_warehouse_id,
        reason=payload.reason,
        reference=payload.reference,
        user_id=current_user.user_id,
    )
    _notify(background_tasks, [result["item"]], "transfer", current_user.venue_id)
    return {
        "item": item_to_dict(result["item"]),
        "movements": [movement_to_dict(m) for m in result["movements"]],
    }


@router.post("/{item_id}/count")
@limiter.limit("60/minute")
def cycle_count(
    request: Request,
    item_id: PositiveIntId,
    payload: CycleCountRequest,
    background_tasks: BackgroundTasks,
    db: DbSession,
    current_user: RequireManager,
):
    """Reconcile one warehouse balance to a physical count."""
    result = StockLedgerService(db).cycle_count(
        item_id,
        payload.warehouse_id,
        payload.counted_quantity,
        reason=payload.reason,
        reference=payload.reference,
        user_id=current_user.user_id,
    )
    _notify(background_tasks, [result["item"]], "count", current_user.venue_id)
    return {
        "item": item_to_dict(result["item"]),
        "delta": result["delta"],
        "movement": movement_to_dict(result["movement"]) if result["movement"] else None,
    }


@router.get("/{item_id}/movements")
@limiter.limit("60/minute")
def list_item_movements(
    request: Request,
    item_id: PositiveIntId,
    db: DbSession,
    current_user: CurrentUser,
    warehouse_id: Optional[int] = Query(None, gt=0),
    type: Optional[MovementType] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(30, ge=1, le=100),
):
    filters = _movement_filter(warehouse_id, type.value if type else None, None, None, date_from, date_to)
    movements, total, page, limit = StockLedgerService(db).list_item_movements(item_id, filters, page, limit)
    return paginated_response([movement_to_dict(m) for m in movements], total, page, limit)
