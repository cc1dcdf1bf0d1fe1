"""Inventory item, stock and movement schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field


class InventoryItemBase(BaseModel):
    """Fields shared by item create and update."""

    sku: Optional[str] = None
    category: Optional[str] = None
    unit: Optional[str] = None
    par_level: Optional[Decimal] = None
    cost: Optional[Decimal] = None
    supplier_name: Optional[str] = None
    default_warehouse_id: Optional[int] = None
    tracking_method: Optional[str] = None
    consumption_unit: Optional[str] = None
    conversion_rate: Optional[Decimal] = None
    storage_conditions: Optional[str] = None
    shelf_life_days: Optional[int] = None
    expiry_tracking_enabled: Optional[bool] = None
    low_stock_alert_enabled: Optional[bool] = None
    tags: Optional[list[str]] = None
    allergens: Optional[list[str]] = None
    notes: Optional[str] = None


class InventoryItemCreate(InventoryItemBase):
    """Item creation schema. ``current_stock`` is the opening balance."""

    name: Optional[str] = None
    current_stock: Optional[Decimal] = None


class InventoryItemUpdate(InventoryItemBase):
    """Item update schema."""

    name: Optional[str] = None
    is_active: Optional[bool] = None


class StockRowResponse(BaseModel):
    """One item's balance in one warehouse."""

    id: int
    item_id: int
    warehouse_id: int
    quantity: Decimal
    unit: Optional[str] = None
    par_level: Decimal
    reorder_point: Decimal
    safety_stock: Decimal
    last_count_date: Optional[datetime] = None
    last_movement_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class InventoryItemResponse(BaseModel):
    """Item response schema."""

    id: int
    name: str
    sku: Optional[str] = None
    category: Optional[str] = None
    unit: str
    current_stock: Decimal
    par_level: Decimal
    cost: Decimal
    supplier_name: Optional[str] = None
    default_warehouse_id: Optional[int] = None
    tracking_method: str
    consumption_unit: Optional[str] = None
    conversion_rate: Decimal
    storage_conditions: Optional[str] = None
    shelf_life_days: Optional[int] = None
    expiry_tracking_enabled: bool
    low_stock_alert_enabled: bool
    tags: Optional[list[str]] = None
    allergens: Optional[list[str]] = None
    last_restock_date: Optional[datetime] = None
    notes: Optional[str] = None
    is_active: bool
    archived_at: Optional[datetime] = None
    is_low_stock: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class MovementResponse(BaseModel):
    """Movement log entry."""

    id: int
    item_id: int
    type: str
    delta: Decimal
    quantity: Decimal
    balance_after: Decimal
    unit: Optional[str] = None
    warehouse_id: Optional[int] = None
    source_warehouse_id: Optional[int] = None
    target_warehouse_id: Optional[int] = None
    unit_cost: Decimal
    total_cost: Decimal
    reason: Optional[str] = None
    reference: Optional[str] = None
    meta: Optional[dict] = Field(default=None, serialization_alias="metadata")
    created_by: Optional[int] = None
    supplier_id: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class StockAdjustRequest(BaseModel):
    """Manual stock adjustment. The sign of ``quantity`` is normalized by ``type``."""

    quantity: Optional[Decimal] = None
    type: str = "adjustment"
    reason: Optional[str] = None
    reference: Optional[str] = None
    warehouse_id: Optional[int] = None
    supplier_id: Optional[int] = None


class StockTransferRequest(BaseModel):
    quantity: Optional[Decimal] = None
    source_warehouse_id: Optional[int] = None
    target_warehouse_id: Optional[int] = None
    reason: Optional[str] = None
    reference: Optional[str] = None


class CycleCountRequest(BaseModel):
    warehouse_id: Optional[int] = None
    counted_quantity: Optional[Decimal] = None
    reason: Optional[str] = None
    reference: Optional[str] = None


class StockImportRequest(BaseModel):
    """Bulk absolute counts, either as row dicts or raw CSV text."""

    warehouse_id: Optional[int] = None
    rows: Optional[list[dict[str, Any]]] = None
    csv: Optional[str] = None
