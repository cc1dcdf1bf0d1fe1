"""Warehouse management API routes."""

from typing import Literal

from fastapi import APIRouter, Query, Request

from pos_inventory.core.rate_limit import limiter
from pos_inventory.core.rbac import CurrentUser, RequireManager
from pos_inventory.core.responses import list_response
from pos_inventory.core.validators import PositiveIntId
from pos_inventory.db.session import DbSession
from pos_inventory.schemas.warehouse import WarehouseCreate, WarehouseResponse, WarehouseUpdate
from pos_inventory.services.warehouse_service import WarehouseService

router = APIRouter()


@router.get("/")
@limiter.limit("60/minute")
def list_warehouses(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    status: Literal["active", "inactive", "all"] = Query("active"),
):
    """List warehouses, default first."""
    warehouses = WarehouseService(db).list_warehouses(status)
    return list_response([WarehouseResponse.model_validate(w) for w in warehouses])


@router.post("/", response_model=WarehouseResponse, status_code=201)
@limiter.limit("30/minute")
def create_warehouse(request: Request, payload: WarehouseCreate, db: DbSession, current_user: RequireManager):
    return WarehouseService(db).create_warehouse(payload.model_dump(exclude_unset=True), current_user.user_id)


@router.get("/{warehouse_id}/stock")
@limiter.limit("60/minute")
def get_warehouse_stock(request: Request, warehouse_id: PositiveIntId, db: DbSession, current_user: CurrentUser):
    """Item balances held in one warehouse."""
    return WarehouseService(db).warehouse_stock(warehouse_id)


@router.put("/{warehouse_id}", response_model=WarehouseResponse)
@limiter.limit("30/minute")
def update_warehouse(
    request: Request,
    warehouse_id: PositiveIntId,
    payload: WarehouseUpdate,
    db: DbSession,
    current_user: RequireManager,
):
    return WarehouseService(db).update_warehouse(
        warehouse_id, payload.model_dump(exclude_unset=True), current_user.user_id
    )


@router.post("/{warehouse_id}/default", response_model=WarehouseResponse)
@limiter.limit("30/minute")
def set_default_warehouse(request: Request, warehouse_id: PositiveIntId, db: DbSession, current_user: RequireManager):
    return WarehouseService(db).set_default_warehouse(warehouse_id, current_user.user_id)


@router.delete("/{warehouse_id}")
@limiter.limit("30/minute")
def archive_warehouse(request: Request, warehouse_id: PositiveIntId, db: DbSession, current_user: RequireManager):
    """Deactivate an empty, non-default warehouse."""
    warehouse = WarehouseService(db).archive_warehouse(warehouse_id, current_user.user_id)
    return {"success": True, "warehouse": WarehouseResponse.model_validate(warehouse)}
