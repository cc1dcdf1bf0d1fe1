"""Tests for recipe versioning, costing and portion scaling."""

import pytest
from decimal import Decimal

from pos_inventory.core.exceptions import ConflictError, NotFoundError, ValidationError
from pos_inventory.models.recipe import RecipeIngredient
from pos_inventory.services.recipe_service import (
    RecipeService,
    active_version,
    required_quantity,
    resolve_portion,
    waste_factor,
)


@pytest.fixture
def recipe_setup(db_session, make_item, make_menu_item):
    """Two ingredients and a menu item for recipe tests."""
    beef = make_item("Beef", stock="20", cost="100")
    onion = make_item("Onion", stock="10", cost="10")
    plov = make_menu_item("Plov", price="50.00")
    return {"beef": beef, "onion": onion, "plov": plov, "db": db_session}


def _payload(setup, beef_qty="0.2", waste="10", portions=None):
    version = {
        "ingredients": [
            {"item_id": setup["beef"].id, "quantity": beef_qty, "waste_percent": waste},
            {"item_id": setup["onion"].id, "quantity": "0.1"},
        ],
    }
    if portions is not None:
        version["portions"] = portions
    return {"name": "Plov", "code": "plv", "menu_item_id": setup["plov"].id, "version": version}


class TestRequiredQuantity:

    def test_portion_qty_and_waste_are_multiplied(self):
        ingredient = RecipeIngredient(quantity=Decimal("2"), waste_percent=Decimal("10"))
        assert required_quantity(ingredient, Decimal("1.5"), Decimal("3")) == Decimal("9.9")

    def test_negative_waste_is_ignored(self):
        assert waste_factor("-5") == Decimal("1")
        assert waste_factor(None) == Decimal("1")
        assert waste_factor("25") == Decimal("1.25")


class TestRecipeCreation:

    def test_cost_snapshot(self, recipe_setup):
        recipe = RecipeService(recipe_setup["db"]).create_recipe(_payload(recipe_setup))

        version = recipe.default_version
        assert version.version_number == 1
        # 0.2 * 1.1 * 100 + 0.1 * 1 * 10
        assert version.ingredient_total_cost == Decimal("23")
        assert recipe.estimated_cost == Decimal("23")
        assert recipe.code == "PLV"
        assert recipe.menu_item_id == recipe_setup["plov"].id

    def test_default_portion_added(self, recipe_setup):
        recipe = RecipeService(recipe_setup["db"]).create_recipe(_payload(recipe_setup))
        portions = recipe.default_version.portions
        assert [(p.key, p.multiplier) for p in portions] == [("standard", Decimal("1"))]

    def test_ingredient_warehouse_defaults_to_item_warehouse(self, recipe_setup, main_warehouse):
        recipe = RecipeService(recipe_setup["db"]).create_recipe(_payload(recipe_setup))
        assert {i.warehouse_id for i in recipe.default_version.ingredients} == {main_warehouse.id}

    def test_duplicate_name_conflicts(self, recipe_setup):
        service = RecipeService(recipe_setup["db"])
        service.create_recipe(_payload(recipe_setup))
        with pytest.raises(ConflictError):
            service.create_recipe({"name": "Plov"})

    def test_requires_ingredients(self, recipe_setup):
        with pytest.raises(ValidationError):
            RecipeService(recipe_setup["db"]).create_recipe({"name": "Empty", "version": {"ingredients": []}})

    def test_rejects_archived_ingredient(self, recipe_setup):
        db = recipe_setup["db"]
        onion = recipe_setup["onion"]
        onion.is_active = False
        db.commit()
        with pytest.raises(ValidationError):
            RecipeService(db).create_recipe(_payload(recipe_setup))

    def test_rejects_zero_quantity(self, recipe_setup):
        with pytest.raises(ValidationError):
            RecipeService(recipe_setup["db"]).create_recipe(_payload(recipe_setup, beef_qty="0"))

    def test_unknown_menu_item(self, recipe_setup):
        payload = _payload(recipe_setup)
        payload["menu_item_id"] = 9999
        with pytest.raises(NotFoundError):
            RecipeService(recipe_setup["db"]).create_recipe(payload)


class TestRecipeVersions:

    def test_new_version_is_not_default_unless_asked(self, recipe_setup):
        service = RecipeService(recipe_setup["db"])
        recipe = service.create_recipe(_payload(recipe_setup))
        first_id = recipe.default_version_id

        recipe = service.add_version(recipe.id, _payload(recipe_setup, beef_qty="0.3")["version"])
        assert [v.version_number for v in recipe.versions] == [1, 2]
        assert recipe.default_version_id == first_id

        recipe = service.add_version(
            recipe.id, {**_payload(recipe_setup, beef_qty="0.4")["version"], "is_default": True}
        )
        assert recipe.default_version.version_number == 3
        # 0.4 * 1.1 * 100 + 1
        assert recipe.estimated_cost == Decimal("45")

    def test_set_default_version(self, recipe_setup):
        service = RecipeService(recipe_setup["db"])
        recipe = service.create_recipe(_payload(recipe_setup))
        first_id = recipe.default_version_id
        recipe = service.add_version(recipe.id, {**_payload(recipe_setup, beef_qty="0.3")["version"], "is_default": True})

        recipe = service.set_default_version(recipe.id, first_id)
        assert recipe.default_version_id == first_id
        assert recipe.estimated_cost == Decimal("23")

    def test_set_default_from_other_recipe_fails(self, recipe_setup):
        service = RecipeService(recipe_setup["db"])
        recipe = service.create_recipe(_payload(recipe_setup))
        with pytest.raises(NotFoundError):
            service.set_default_version(recipe.id, 9999)


class TestPortions:

    def test_resolve_named_and_unknown_portion(self, recipe_setup):
        portions = [
            {"key": "half", "label": "Half", "multiplier": "0.5"},
            {"key": "double", "label": "Double", "multiplier": "2"},
        ]
        recipe = RecipeService(recipe_setup["db"]).create_recipe(_payload(recipe_setup, portions=portions))
        version = active_version(recipe)

        assert resolve_portion(version, "double") == ("double", Decimal("2"))
        # Unknown key falls back to the first portion
        assert resolve_portion(version, "family") == ("half", Decimal("0.5"))


class TestRecipeListing:

    def test_archive_hides_recipe(self, recipe_setup):
        service = RecipeService(recipe_setup["db"])
        recipe = service.create_recipe(_payload(recipe_setup))
        service.archive_recipe(recipe.id)

        assert service.list_recipes() == []
        assert [r.id for r in service.list_recipes(status="archived")] == [recipe.id]
        assert service.active_recipes_by_menu_item({recipe_setup["plov"].id}) == {}

    def test_search_matches_tags(self, recipe_setup):
        service = RecipeService(recipe_setup["db"])
        payload = _payload(recipe_setup)
        payload["tags"] = ["Uzbek", "rice"]
        recipe = service.create_recipe(payload)

        assert [r.id for r in service.list_recipes(search="uzbek")] == [recipe.id]
        assert service.list_recipes(search="pizza") == []

    def test_tag_search_respects_category(self, recipe_setup):
        service = RecipeService(recipe_setup["db"])
        payload = _payload(recipe_setup)
        payload.update({"tags": ["Uzbek"], "category": "Mains"})
        service.create_recipe(payload)

        assert service.list_recipes(search="uzbek", category="Desserts") == []
        assert len(service.list_recipes(search="uzbek", category="Mains")) == 1
        assert service.list_recipes(search="uzbek", menu_item_id=9999) == []

    def test_newest_recipe_wins_for_menu_item(self, recipe_setup):
        service = RecipeService(recipe_setup["db"])
        service.create_recipe(_payload(recipe_setup))
        newer = _payload(recipe_setup)
        newer.update({"name": "Plov v2", "code": None})
        second = service.create_recipe(newer)

        mapping = service.active_recipes_by_menu_item({recipe_setup["plov"].id})
        assert mapping[recipe_setup["plov"].id].id == second.id
