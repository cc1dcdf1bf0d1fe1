"""Tests for recipe-driven ingredient deduction and the usage outbox."""

import pytest
from decimal import Decimal

from pos_inventory.core.config import settings
from pos_inventory.core.exceptions import NotFoundError, ValidationError
from pos_inventory.models.operations import AuditLogEntry, InventoryUsageTask, UsageTaskStatus
from pos_inventory.models.stock import InventoryMovement, InventoryStock
from pos_inventory.services.order_service import OrderService
from pos_inventory.services.order_usage_service import (
    OrderUsageService,
    process_pending_tasks,
    process_usage_task,
)
from pos_inventory.services.recipe_service import RecipeService
from pos_inventory.services.stock_ledger_service import StockLedgerService


@pytest.fixture
def kitchen(db_session, main_warehouse, make_item, make_menu_item, test_user):
    """Two dishes sharing rice, each with a recipe."""
    rice = make_item("Rice", stock="10", cost="12")
    chicken = make_item("Chicken", stock="1", cost="40")
    carrot = make_item("Carrot", stock="5", cost="3")

    plov = make_menu_item("Plov", price="45.00")
    pilaf = make_menu_item("Chicken pilaf", price="55.00")
    soup = make_menu_item("Soup of the day", price="20.00")

    recipes = RecipeService(db_session)
    recipes.create_recipe({
        "name": "Plov",
        "menu_item_id": plov.id,
        "version": {
            "ingredients": [
                {"item_id": rice.id, "quantity": "0.2"},
                {"item_id": carrot.id, "quantity": "0.1", "waste_percent": "20"},
            ],
            "portions": [
                {"key": "standard", "multiplier": "1"},
                {"key": "large", "multiplier": "1.5"},
            ],
        },
    })
    recipes.create_recipe({
        "name": "Chicken pilaf",
        "menu_item_id": pilaf.id,
        "version": {
            "ingredients": [
                {"item_id": rice.id, "quantity": "0.3"},
                {"item_id": chicken.id, "quantity": "0.25"},
            ],
        },
    })
    return {
        "db": db_session,
        "user": test_user,
        "warehouse": main_warehouse,
        "rice": rice,
        "chicken": chicken,
        "carrot": carrot,
        "plov": plov,
        "pilaf": pilaf,
        "soup": soup,
    }


def _order(kitchen, *lines):
    return OrderService(kitchen["db"]).create_order(
        {"items": [dict(line) for line in lines], "table_name": "T4"},
        kitchen["user"].id,
    )


def _balance(db_session, item):
    db_session.expire_all()
    return (
        db_session.query(InventoryStock.quantity)
        .filter(InventoryStock.item_id == item.id)
        .scalar()
    )


def _usage_movements(db_session, item):
    return (
        db_session.query(InventoryMovement)
        .filter(InventoryMovement.item_id == item.id, InventoryMovement.type == "usage")
        .all()
    )


class TestOrderCreation:

    def test_order_creates_pending_task(self, kitchen):
        order = _order(kitchen, {"menu_item_id": kitchen["plov"].id, "qty": 2})

        assert order.total == Decimal("90.00")
        assert order.usage_task.status == UsageTaskStatus.PENDING
        assert order.usage_task.attempts == 0
        assert order.items[0]["portion_key"] == "standard"

    def test_discount_never_exceeds_subtotal(self, kitchen):
        order = OrderService(kitchen["db"]).create_order(
            {"items": [{"menu_item_id": kitchen["soup"].id}], "discount": "500"}
        )
        assert order.discount == Decimal("20.00")
        assert order.total == Decimal("0")

    def test_unavailable_menu_item(self, kitchen, make_menu_item):
        off_menu = make_menu_item("Seasonal", available=False)
        with pytest.raises(ValidationError):
            _order(kitchen, {"menu_item_id": off_menu.id})

    def test_unknown_menu_item(self, kitchen):
        with pytest.raises(NotFoundError):
            _order(kitchen, {"menu_item_id": 9999})

    def test_empty_order(self, kitchen):
        with pytest.raises(ValidationError):
            OrderService(kitchen["db"]).create_order({"items": []})


class TestRecipeUsage:

    def test_shared_ingredient_deducted_once(self, kitchen):
        db = kitchen["db"]
        order = _order(
            kitchen,
            {"menu_item_id": kitchen["plov"].id, "qty": 2},
            {"menu_item_id": kitchen["pilaf"].id, "qty": 1},
        )

        summary = OrderUsageService(db).apply_recipe_usage(order, kitchen["user"].id)
        db.commit()

        # rice: 0.2 * 2 + 0.3 * 1
        movements = _usage_movements(db, kitchen["rice"])
        assert len(movements) == 1
        assert movements[0].delta == Decimal("-0.7")
        assert movements[0].meta["menu_items"] == ["Plov", "Chicken pilaf"]
        assert movements[0].reference == "Dishes: Plov, Chicken pilaf"
        assert _usage_movements(db, kitchen["chicken"])[0].reference == "Dishes: Chicken pilaf"
        assert _balance(db, kitchen["rice"]) == Decimal("9.3")
        assert summary["buckets"] == 3
        assert summary["processed"] == 3

    def test_waste_and_portion_scale_usage(self, kitchen):
        db = kitchen["db"]
        order = _order(kitchen, {"menu_item_id": kitchen["plov"].id, "qty": 2, "portion_key": "large"})

        OrderUsageService(db).apply_recipe_usage(order)
        db.commit()

        # carrot: 0.1 * 1.5 * 2 * 1.2
        assert _balance(db, kitchen["carrot"]) == Decimal("4.64")
        assert _usage_movements(db, kitchen["carrot"])[0].meta["portions"] == ["large"]

    def test_shortage_clamps_at_zero(self, kitchen):
        db = kitchen["db"]
        order = _order(kitchen, {"menu_item_id": kitchen["pilaf"].id, "qty": 8})

        summary = OrderUsageService(db).apply_recipe_usage(order)
        db.commit()

        # chicken: 0.25 * 8 = 2 requested, 1 on hand
        assert _balance(db, kitchen["chicken"]) == Decimal("0")
        movement = _usage_movements(db, kitchen["chicken"])[0]
        assert movement.delta == Decimal("-1")
        assert movement.balance_after == Decimal("0")
        assert Decimal(str(movement.meta["shortage"])) == Decimal("1")
        assert [s["name"] for s in summary["shortages"]] == ["Chicken"]

    def test_dish_without_recipe_is_ignored(self, kitchen):
        db = kitchen["db"]
        order = _order(kitchen, {"menu_item_id": kitchen["soup"].id})

        summary = OrderUsageService(db).apply_recipe_usage(order)
        assert summary["buckets"] == 0
        assert db.query(InventoryMovement).filter(InventoryMovement.type == "usage").count() == 0

    def test_usage_is_audited_and_marks_recipe(self, kitchen):
        db = kitchen["db"]
        order = _order(kitchen, {"menu_item_id": kitchen["plov"].id})

        OrderUsageService(db).apply_recipe_usage(order)
        db.commit()

        entry = db.query(AuditLogEntry).filter(AuditLogEntry.action == "inventory_usage_auto").one()
        assert entry.entity_id == str(order.id)
        recipe = RecipeService(db).list_recipes(search="Plov")[0]
        assert recipe.last_used_at is not None


class TestUsageOutbox:

    def test_background_processing_marks_done(self, kitchen):
        db = kitchen["db"]
        order = _order(kitchen, {"menu_item_id": kitchen["plov"].id})
        task_id = order.usage_task.id

        outcome = process_usage_task(task_id)

        assert outcome["status"] == UsageTaskStatus.DONE
        assert outcome["order_id"] == order.id
        assert outcome["result"]["processed"] == 2
        db.expire_all()
        task = db.query(InventoryUsageTask).filter(InventoryUsageTask.id == task_id).one()
        assert task.status == UsageTaskStatus.DONE
        assert task.processed_at is not None
        assert _balance(db, kitchen["rice"]) == Decimal("9.8")

    def test_task_is_claimed_only_once(self, kitchen):
        order = _order(kitchen, {"menu_item_id": kitchen["plov"].id})
        task_id = order.usage_task.id

        assert process_usage_task(task_id) is not None
        assert process_usage_task(task_id) is None
        assert len(_usage_movements(kitchen["db"], kitchen["rice"])) == 1

    def test_failure_is_retried_then_failed(self, kitchen, monkeypatch):
        db = kitchen["db"]
        order = _order(kitchen, {"menu_item_id": kitchen["plov"].id})
        task_id = order.usage_task.id

        def boom(self, order, user_id=None):
            raise RuntimeError("database went away")

        monkeypatch.setattr(OrderUsageService, "apply_recipe_usage", boom)
        monkeypatch.setattr(settings, "usage_outbox_max_attempts", 2)

        outcome = process_usage_task(task_id)
        assert outcome["status"] == UsageTaskStatus.PENDING

        outcome = process_usage_task(task_id)
        assert outcome["status"] == UsageTaskStatus.FAILED

        db.expire_all()
        task = db.query(InventoryUsageTask).filter(InventoryUsageTask.id == task_id).one()
        assert task.attempts == 2
        assert "database went away" in task.last_error
        # The order itself is untouched
        assert _balance(db, kitchen["rice"]) == Decimal("10")

    def test_pending_tasks_are_swept(self, kitchen):
        _order(kitchen, {"menu_item_id": kitchen["plov"].id})
        _order(kitchen, {"menu_item_id": kitchen["pilaf"].id})

        stats = process_pending_tasks()

        assert stats == {"picked": 2, "done": 2, "failed": 0, "pending": 0}
        assert _balance(kitchen["db"], kitchen["rice"]) == Decimal("9.5")
        assert process_pending_tasks()["picked"] == 0

    def test_manual_retry_after_failure(self, kitchen, monkeypatch):
        db = kitchen["db"]
        order = _order(kitchen, {"menu_item_id": kitchen["plov"].id})
        monkeypatch.setattr(settings, "usage_outbox_max_attempts", 1)

        original = OrderUsageService.apply_recipe_usage

        def boom(self, order, user_id=None):
            raise RuntimeError("temporary")

        monkeypatch.setattr(OrderUsageService, "apply_recipe_usage", boom)
        assert process_usage_task(order.usage_task.id)["status"] == UsageTaskStatus.FAILED

        monkeypatch.setattr(OrderUsageService, "apply_recipe_usage", original)
        db.expire_all()
        task = OrderUsageService(db).run_usage_for_order(order.id)
        assert task.status == UsageTaskStatus.DONE

        # A finished task is returned unchanged
        again = OrderUsageService(db).run_usage_for_order(order.id)
        assert again.id == task.id
        assert len(_usage_movements(db, kitchen["rice"])) == 1

    def test_failure_midway_is_rolled_back_and_retried_once(self, kitchen, monkeypatch):
        db = kitchen["db"]
        order = _order(kitchen, {"menu_item_id": kitchen["plov"].id})
        task_id = order.usage_task.id

        original = StockLedgerService.record_movement
        calls = []

        def fail_on_second_bucket(self, *args, **kwargs):
            calls.append(1)
            if len(calls) == 2:
                raise RuntimeError("connection reset")
            return original(self, *args, **kwargs)

        monkeypatch.setattr(StockLedgerService, "record_movement", fail_on_second_bucket)
        assert process_usage_task(task_id)["status"] == UsageTaskStatus.PENDING
        # The rice bucket deducted before the failure is undone
        assert _balance(db, kitchen["rice"]) == Decimal("10")
        assert _usage_movements(db, kitchen["rice"]) == []

        assert process_usage_task(task_id)["status"] == UsageTaskStatus.DONE
        assert _balance(db, kitchen["rice"]) == Decimal("9.8")
        assert _balance(db, kitchen["carrot"]) == Decimal("4.88")
        assert len(_usage_movements(db, kitchen["rice"])) == 1

    def test_order_is_never_deducted_twice(self, kitchen):
        db = kitchen["db"]
        order = _order(kitchen, {"menu_item_id": kitchen["plov"].id})
        task_id = order.usage_task.id
        assert process_usage_task(task_id)["status"] == UsageTaskStatus.DONE

        db.expire_all()
        task = db.query(InventoryUsageTask).filter(InventoryUsageTask.id == task_id).one()
        task.status = UsageTaskStatus.PENDING
        db.commit()

        outcome = process_usage_task(task_id)

        assert outcome["status"] == UsageTaskStatus.DONE
        assert outcome["result"]["already_applied"] is True
        assert _balance(db, kitchen["rice"]) == Decimal("9.8")
        assert len(_usage_movements(db, kitchen["rice"])) == 1
