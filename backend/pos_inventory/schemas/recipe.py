"""Recipe schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class IngredientInput(BaseModel):
    item_id: Optional[int] = None
    quantity: Optional[Decimal] = None
    unit: Optional[str] = None
    waste_percent: Optional[Decimal] = None
    notes: Optional[str] = None
    warehouse_id: Optional[int] = None


class PortionInput(BaseModel):
    key: Optional[str] = None
    label: Optional[str] = None
    multiplier: Optional[Decimal] = None


class RecipeVersionInput(BaseModel):
    """A new recipe version. Becomes the default when ``is_default`` is set
    or the recipe has no default yet."""

    name: Optional[str] = None
    notes: Optional[str] = None
    ingredients: list[IngredientInput] = Field(default_factory=list)
    portions: list[PortionInput] = Field(default_factory=list)
    is_default: bool = False


class RecipeCreate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    menu_item_id: Optional[int] = None
    category: Optional[str] = None
    tags: Optional[list[str]] = None
    notes: Optional[str] = None
    version: Optional[RecipeVersionInput] = None


class RecipeUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    menu_item_id: Optional[int] = None
    category: Optional[str] = None
    tags: Optional[list[str]] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class SetDefaultVersionRequest(BaseModel):
    version_id: int


class IngredientResponse(BaseModel):
    id: int
    inventory_item_id: int
    quantity: Decimal
    unit: Optional[str] = None
    waste_percent: Decimal
    notes: Optional[str] = None
    warehouse_id: Optional[int] = None
    position: int

    model_config = {"from_attributes": True}


class PortionResponse(BaseModel):
    id: int
    key: str
    label: Optional[str] = None
    multiplier: Decimal
    position: int

    model_config = {"from_attributes": True}


class RecipeVersionResponse(BaseModel):
    id: int
    version_number: int
    name: Optional[str] = None
    notes: Optional[str] = None
    ingredient_total_cost: Decimal
    is_default: bool
    created_by: Optional[int] = None
    created_at: datetime
    ingredients: list[IngredientResponse] = Field(default_factory=list)
    portions: list[PortionResponse] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class RecipeResponse(BaseModel):
    """Recipe response schema with all versions."""

    id: int
    name: str
    code: Optional[str] = None
    menu_item_id: Optional[int] = None
    category: Optional[str] = None
    tags: Optional[list[str]] = None
    notes: Optional[str] = None
    estimated_cost: Decimal
    default_version_id: Optional[int] = None
    is_active: bool
    archived_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    versions: list[RecipeVersionResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
