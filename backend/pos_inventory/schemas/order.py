"""Order schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field


class OrderLineInput(BaseModel):
    """One dish on an order. ``price`` defaults to the menu price."""

    menu_item_id: int
    qty: Decimal = Field(default=Decimal("1"), gt=0)
    price: Optional[Decimal] = Field(default=None, ge=0)
    portion_key: str = "standard"
    notes: Optional[str] = None


class OrderCreate(BaseModel):
    table_name: Optional[str] = None
    order_type: str = "table"
    items: list[OrderLineInput] = Field(..., min_length=1)
    discount: Decimal = Field(default=Decimal("0"), ge=0)


class UsageTaskResponse(BaseModel):
    id: int
    order_id: int
    status: str
    attempts: int
    last_error: Optional[str] = None
    result: Optional[dict[str, Any]] = None
    created_at: datetime
    processed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    id: int
    table_name: Optional[str] = None
    order_type: str
    status: str
    items: list[dict[str, Any]]
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    created_by: Optional[int] = None
    created_at: datetime
    usage_task: Optional[UsageTaskResponse] = None

    model_config = {"from_attributes": True}
