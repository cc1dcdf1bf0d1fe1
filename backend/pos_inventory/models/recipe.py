"""Recipe (bill of materials) models with versions, ingredients and portions."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from pos_inventory.db.base import ArchiveMixin, Base, TimestampMixin, utcnow
from pos_inventory.models.validators import non_negative, positive


class Recipe(Base, ArchiveMixin, TimestampMixin):
    """A dish recipe linked to a menu item.

    ``default_version_id`` is the single pointer to the version used for
    costing and order deduction; versions do not carry their own flag.
    """

    __tablename__ = "recipes"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    code: Mapped[Optional[str]] = mapped_column(String(50), unique=True, nullable=True)
    menu_item_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("menu_items.id", ondelete="SET NULL"), nullable=True, index=True
    )
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    tags: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    estimated_cost: Mapped[Decimal] = mapped_column(Numeric(14, 4), default=Decimal("0"), nullable=False)
    default_version_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    versions: Mapped[List["RecipeVersion"]] = relationship(
        "RecipeVersion",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeVersion.version_number",
    )
    menu_item = relationship("MenuItem", foreign_keys=[menu_item_id])

    @validates("estimated_cost")
    def _validate_cost(self, key, value):
        return non_negative(key, value)

    @property
    def default_version(self) -> Optional["RecipeVersion"]:
        for version in self.versions:
            if version.id == self.default_version_id:
                return version
        return None


class RecipeVersion(Base):
    """An immutable snapshot of a recipe's ingredient list."""

    __tablename__ = "recipe_versions"
    __table_args__ = (
        UniqueConstraint("recipe_id", "version_number", name="uq_recipe_versions_number"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    recipe_id: Mapped[int] = mapped_column(
        ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ingredient_total_cost: Mapped[Decimal] = mapped_column(
        Numeric(14, 4), default=Decimal("0"), nullable=False
    )
    created_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="versions")
    ingredients: Mapped[List["RecipeIngredient"]] = relationship(
        "RecipeIngredient",
        back_populates="version",
        cascade="all, delete-orphan",
        order_by="RecipeIngredient.position",
    )
    portions: Mapped[List["RecipePortion"]] = relationship(
        "RecipePortion",
        back_populates="version",
        cascade="all, delete-orphan",
        order_by="RecipePortion.position",
    )

    @property
    def is_default(self) -> bool:
        return self.recipe is not None and self.recipe.default_version_id == self.id


class RecipeIngredient(Base):
    """One inventory item consumed by a recipe version."""

    __tablename__ = "recipe_ingredients"

    id: Mapped[int] = mapped_column(primary_key=True)
    version_id: Mapped[int] = mapped_column(
        ForeignKey("recipe_versions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    inventory_item_id: Mapped[int] = mapped_column(
        ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    unit: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    waste_percent: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("0"), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    warehouse_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True
    )  # Overrides the item's default warehouse for deduction
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    version: Mapped["RecipeVersion"] = relationship("RecipeVersion", back_populates="ingredients")
    item: Mapped["InventoryItem"] = relationship("InventoryItem")

    @validates("quantity")
    def _validate_quantity(self, key, value):
        return positive(key, value)

    @validates("waste_percent")
    def _validate_waste(self, key, value):
        return non_negative(key, value)


class RecipePortion(Base):
    """A named size of a dish scaling all ingredient quantities."""

    __tablename__ = "recipe_portions"

    id: Mapped[int] = mapped_column(primary_key=True)
    version_id: Mapped[int] = mapped_column(
        ForeignKey("recipe_versions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key: Mapped[str] = mapped_column(String(50), nullable=False)
    label: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    multiplier: Mapped[Decimal] = mapped_column(Numeric(10, 4), default=Decimal("1"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    version: Mapped["RecipeVersion"] = relationship("RecipeVersion", back_populates="portions")

    @validates("multiplier")
    def _validate_multiplier(self, key, value):
        return positive(key, value)


from pos_inventory.models.inventory import InventoryItem  # noqa: E402
from pos_inventory.models.restaurant import MenuItem  # noqa: E402
