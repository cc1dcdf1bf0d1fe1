"""Warehouse schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class WarehouseAddress(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None


class WarehouseContact(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class WarehouseCreate(BaseModel):
    """Warehouse creation schema."""

    name: Optional[str] = None
    code: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    address: Optional[WarehouseAddress] = None
    contact: Optional[WarehouseContact] = None
    parent_warehouse_id: Optional[int] = None
    metadata: Optional[dict] = None
    is_default: bool = False
    is_active: Optional[bool] = None


class WarehouseUpdate(BaseModel):
    """Warehouse update schema; only fields that are sent are changed."""

    name: Optional[str] = None
    code: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    address: Optional[WarehouseAddress] = None
    contact: Optional[WarehouseContact] = None
    parent_warehouse_id: Optional[int] = None
    metadata: Optional[dict] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None


class WarehouseResponse(BaseModel):
    """Warehouse response schema."""

    id: int
    name: str
    code: Optional[str] = None
    type: str
    description: Optional[str] = None
    address: dict
    contact: dict
    parent_warehouse_id: Optional[int] = None
    meta: Optional[dict] = Field(default=None, serialization_alias="metadata")
    is_default: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
