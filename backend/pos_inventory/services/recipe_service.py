"""Recipe Engine - versioned recipes, ingredient costing and portion scaling.

A recipe holds numbered versions; ``Recipe.default_version_id`` points at the
version used for costing and for order deduction. Each version snapshots its
ingredient cost at creation time:

    ingredient_total_cost = sum(quantity * (1 + waste% / 100) * item.cost)

and the quantity an order line consumes is

    quantity * portion multiplier * ordered qty * (1 + waste% / 100)
"""

import logging
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from pos_inventory.core.exceptions import ConflictError, NotFoundError, ValidationError
from pos_inventory.core.validators import clean_code, clean_list, clean_str, to_decimal
from pos_inventory.db.base import utcnow
from pos_inventory.models.inventory import InventoryItem
from pos_inventory.models.recipe import Recipe, RecipeIngredient, RecipePortion, RecipeVersion
from pos_inventory.models.restaurant import MenuItem
from pos_inventory.models.warehouse import Warehouse
from pos_inventory.services.audit_service import log_action
from pos_inventory.services.warehouse_service import WarehouseService

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
DEFAULT_PORTION_KEY = "standard"
DEFAULT_PORTIONS = [{"key": DEFAULT_PORTION_KEY, "label": "Standard", "multiplier": ONE}]


def waste_factor(waste_percent: Any) -> Decimal:
    return ONE + max(ZERO, to_decimal(waste_percent, ZERO)) / HUNDRED


def required_quantity(ingredient: RecipeIngredient, multiplier: Decimal, qty: Decimal) -> Decimal:
    """Stock an order line consumes for one ingredient."""
    base = to_decimal(ingredient.quantity, ZERO)
    return base * multiplier * qty * waste_factor(ingredient.waste_percent)


def active_version(recipe: Recipe) -> Optional[RecipeVersion]:
    """The default version, else the first one."""
    if not recipe.versions:
        return None
    return recipe.default_version or recipe.versions[0]


def resolve_portion(version: RecipeVersion, key: Optional[str] = None) -> tuple[str, Decimal]:
    """Portion key and multiplier for an order line; unknown keys fall back to the first portion."""
    key = key or DEFAULT_PORTION_KEY
    portion = next((p for p in version.portions if p.key == key), None)
    if portion is None and version.portions:
        portion = version.portions[0]
    if portion is None:
        return key, ONE
    multiplier = to_decimal(portion.multiplier, ONE)
    return portion.key, multiplier if multiplier > 0 else ONE


class RecipeService:
    """Service for recipe CRUD and versioning."""

    def __init__(self, db: Session):
        self.db = db
        self.warehouses = WarehouseService(db)

    def get_recipe(self, recipe_id: int) -> Recipe:
        recipe = (
            self.db.query(Recipe)
            .options(
                selectinload(Recipe.versions).selectinload(RecipeVersion.ingredients),
                selectinload(Recipe.versions).selectinload(RecipeVersion.portions),
            )
            .filter(Recipe.id == recipe_id)
            .first()
        )
        if not recipe:
            raise NotFoundError(f"Recipe {recipe_id} not found")
        return recipe

    def _resolve_menu_item(self, menu_item_id: Optional[int]) -> Optional[MenuItem]:
        if not menu_item_id:
            return None
        menu_item = self.db.query(MenuItem).filter(MenuItem.id == menu_item_id).first()
        if not menu_item:
            raise NotFoundError(f"Menu item {menu_item_id} not found")
        return menu_item

    def _check_unique(self, name: Optional[str], code: Optional[str], exclude_id: Optional[int] = None) -> None:
        for column, value in (("name", name), ("code", code)):
            if not value:
                continue
            query = self.db.query(Recipe.id).filter(getattr(Recipe, column) == value)
            if exclude_id is not None:
                query = query.filter(Recipe.id != exclude_id)
            if query.first():
                raise ConflictError(f"A recipe with {column} '{value}' already exists")

    # ===== VERSION PAYLOAD =====

    def prepare_version_payload(self, data: dict[str, Any], user_id: Optional[int] = None) -> RecipeVersion:
        """Validate ingredients and portions and build an unsaved version with its cost snapshot."""
        ingredients = data.get("ingredients") or []
        if not ingredients:
            raise ValidationError("Recipe ingredients are required")

        item_ids = {ingredient.get("item_id") for ingredient in ingredients}
        if None in item_ids:
            raise ValidationError("Every ingredient must reference an inventory item")
        items = {
            item.id: item
            for item in self.db.query(InventoryItem).filter(
                InventoryItem.id.in_(item_ids), InventoryItem.is_active.is_(True)
            )
        }
        if len(items) != len(item_ids):
            raise ValidationError("Some ingredients were not found or are archived")

        warehouse_ids = {i.get("warehouse_id") for i in ingredients if i.get("warehouse_id")}
        if warehouse_ids:
            found = self.db.query(func.count(Warehouse.id)).filter(
                Warehouse.id.in_(warehouse_ids), Warehouse.is_active.is_(True)
            ).scalar()
            if found != len(warehouse_ids):
                raise ValidationError("Some warehouses were not found or are inactive")
        else:
            self.warehouses.ensure_default_warehouse()

        version = RecipeVersion(
            name=clean_str(data.get("name")) or None,
            notes=clean_str(data.get("notes")) or None,
            created_by=user_id,
            created_at=utcnow(),
        )
        total_cost = ZERO
        for position, ingredient in enumerate(ingredients):
            item = items[ingredient["item_id"]]
            quantity = to_decimal(ingredient.get("quantity"), None)
            if quantity is None or quantity <= 0:
                raise ValidationError(f"Ingredient quantity for '{item.name}' must be greater than zero")
            waste = max(ZERO, to_decimal(ingredient.get("waste_percent"), ZERO))

            total_cost += quantity * waste_factor(waste) * (item.cost or ZERO)
            version.ingredients.append(RecipeIngredient(
                inventory_item_id=item.id,
                quantity=quantity,
                unit=clean_str(ingredient.get("unit")) or item.unit,
                waste_percent=waste,
                notes=clean_str(ingredient.get("notes")) or None,
                warehouse_id=ingredient.get("warehouse_id") or item.default_warehouse_id,
                position=position,
            ))

        portions = data.get("portions") or DEFAULT_PORTIONS
        for position, portion in enumerate(portions):
            multiplier = to_decimal(portion.get("multiplier"), ONE)
            version.portions.append(RecipePortion(
                key=clean_str(portion.get("key"), DEFAULT_PORTION_KEY),
                label=clean_str(portion.get("label")) or None,
                multiplier=multiplier if multiplier > 0 else ONE,
                position=position,
            ))

        version.ingredient_total_cost = total_cost
        return version

    def _attach_default(self, recipe: Recipe, version: RecipeVersion) -> None:
        recipe.default_version_id = version.id
        recipe.estimated_cost = version.ingredient_total_cost

    # ===== OPERATIONS =====

    def create_recipe(self, data: dict[str, Any], user_id: Optional[int] = None) -> Recipe:
        name = clean_str(data.get("name"))
        if not name:
            raise ValidationError("Recipe name is required")
        code = clean_code(data.get("code"))
        menu_item = self._resolve_menu_item(data.get("menu_item_id"))
        self._check_unique(name, code)

        version = None
        if data.get("version"):
            version = self.prepare_version_payload(data["version"], user_id)

        try:
            recipe = Recipe(
                name=name,
                code=code,
                menu_item_id=menu_item.id if menu_item else None,
                category=clean_str(data.get("category")) or None,
                tags=clean_list(data.get("tags")),
                notes=clean_str(data.get("notes")) or None,
            )
            self.db.add(recipe)
            if version is not None:
                version.version_number = 1
                recipe.versions.append(version)
            self.db.flush()
            if version is not None:
                self._attach_default(recipe, version)

            log_action(
                action="recipe_create",
                entity_type="recipe",
                entity_id=recipe.id,
                user_id=user_id,
                summary=f"Recipe created: {recipe.name}",
                details={"recipe_id": recipe.id, "menu_item_id": recipe.menu_item_id},
                db=self.db,
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("A recipe with this name or code already exists") from e

        logger.info(f"Recipe {recipe.id} created")
        return self.get_recipe(recipe.id)

    def add_version(self, recipe_id: int, data: dict[str, Any], user_id: Optional[int] = None) -> Recipe:
        """Append version max+1; it becomes default when asked to or when none is set."""
        recipe = self.get_recipe(recipe_id)
        version = self.prepare_version_payload(data, user_id)
        version.version_number = max((v.version_number for v in recipe.versions), default=0) + 1
        recipe.versions.append(version)
        self.db.flush()

        if data.get("is_default") or not recipe.default_version_id:
            self._attach_default(recipe, version)

        log_action(
            action="recipe_add_version",
            entity_type="recipe",
            entity_id=recipe.id,
            user_id=user_id,
            summary=f"Version {version.version_number} added to {recipe.name}",
            details={"recipe_id": recipe.id, "version_id": version.id},
            db=self.db,
        )
        self.db.commit()
        return self.get_recipe(recipe.id)

    def set_default_version(self, recipe_id: int, version_id: int, user_id: Optional[int] = None) -> Recipe:
        recipe = self.get_recipe(recipe_id)
        version = next((v for v in recipe.versions if v.id == version_id), None)
        if version is None:
            raise NotFoundError(f"Version {version_id} not found in recipe {recipe_id}")

        self._attach_default(recipe, version)
        log_action(
            action="recipe_set_default",
            entity_type="recipe",
            entity_id=recipe.id,
            user_id=user_id,
            summary=f"Version {version.version_number} is now default for {recipe.name}",
            details={"recipe_id": recipe.id, "version_id": version.id},
            db=self.db,
        )
        self.db.commit()
        return self.get_recipe(recipe.id)

    def update_recipe_meta(self, recipe_id: int, data: dict[str, Any], user_id: Optional[int] = None) -> Recipe:
        recipe = self.get_recipe(recipe_id)

        name = clean_str(data.get("name")) if "name" in data else None
        code = clean_code(data.get("code")) if "code" in data else None
        self._check_unique(name, code, exclude_id=recipe.id)

        if name:
            recipe.name = name
        if "code" in data:
            recipe.code = code
        if "category" in data:
            recipe.category = clean_str(data["category"]) or None
        if data.get("tags") is not None:
            recipe.tags = clean_list(data["tags"])
        if "notes" in data:
            recipe.notes = clean_str(data["notes"]) or None
        if "menu_item_id" in data:
            menu_item = self._resolve_menu_item(data["menu_item_id"])
            recipe.menu_item_id = menu_item.id if menu_item else None
        if data.get("is_active") is not None:
            recipe.set_active(data["is_active"])

        try:
            log_action(
                action="recipe_update",
                entity_type="recipe",
                entity_id=recipe.id,
                user_id=user_id,
                summary=f"Recipe details updated: {recipe.name}",
                details={"recipe_id": recipe.id},
                db=self.db,
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("A recipe with this name or code already exists") from e
        return self.get_recipe(recipe.id)

    def archive_recipe(self, recipe_id: int, user_id: Optional[int] = None) -> Recipe:
        recipe = self.get_recipe(recipe_id)
        recipe.archive()
        log_action(
            action="recipe_archive",
            entity_type="recipe",
            entity_id=recipe.id,
            user_id=user_id,
            summary=f"Recipe archived: {recipe.name}",
            details={"recipe_id": recipe.id},
            db=self.db,
        )
        self.db.commit()
        return recipe

    def list_recipes(
        self,
        search: str = "",
        status: str = "active",
        category: Optional[str] = None,
        menu_item_id: Optional[int] = None,
    ) -> list[Recipe]:
        query = self.db.query(Recipe).options(
            selectinload(Recipe.versions).selectinload(RecipeVersion.ingredients),
            selectinload(Recipe.versions).selectinload(RecipeVersion.portions),
        )
        if status == "archived":
            query = query.filter(Recipe.is_active.is_(False))
        elif status != "all":
            query = query.filter(Recipe.is_active.is_(True))

        if category and category != "all":
            query = query.filter(Recipe.category == category)
        if menu_item_id:
            query = query.filter(Recipe.menu_item_id == menu_item_id)

        term = clean_str(search)
        if not term:
            return query.order_by(Recipe.is_active.desc(), Recipe.name).all()

        pattern = f"%{term}%"
        recipes = (
            query.filter(or_(Recipe.name.ilike(pattern), Recipe.code.ilike(pattern)))
            .order_by(Recipe.is_active.desc(), Recipe.name)
            .all()
        )
        # Tags live in a JSON list; match them in Python
        needle = term.lower()
        extra = [
            r for r in query.filter(Recipe.tags.isnot(None)).order_by(Recipe.name).all()
            if r not in recipes and any(needle in str(tag).lower() for tag in r.tags or [])
        ]
        recipes.extend(extra)
        return recipes

    def active_recipes_by_menu_item(self, menu_item_ids: set[int]) -> dict[int, Recipe]:
        """Newest active recipe per menu item."""
        if not menu_item_ids:
            return {}
        recipes = (
            self.db.query(Recipe)
            .options(
                selectinload(Recipe.versions).selectinload(RecipeVersion.ingredients),
                selectinload(Recipe.versions).selectinload(RecipeVersion.portions),
            )
            .filter(Recipe.menu_item_id.in_(menu_item_ids), Recipe.is_active.is_(True))
            .order_by(Recipe.id)
            .all()
        )
        return {recipe.menu_item_id: recipe for recipe in recipes}


def get_recipe_service(db: Session) -> RecipeService:
    """Get a recipe service instance."""
    return RecipeService(db)
