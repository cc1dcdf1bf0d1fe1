"""Order Usage Service - deducts recipe ingredients when orders are placed.

Flow:
1. Order placed -> ``OrderService`` commits the order together with an
   ``InventoryUsageTask`` outbox row
2. A background task (and the scheduler, for retries) calls
   ``process_usage_task``
3. For each order line:
   a. Find the active recipe for the menu item
   b. Pick the default version and the ordered portion
   c. Required quantity per ingredient =
      quantity * portion multiplier * qty * (1 + waste% / 100)
4. Aggregate by (item, warehouse) so each stock row is touched once
5. Deduct each bucket in its own savepoint, clamping at zero and recording
   the shortage on the usage movement
6. Recompute item totals, write one audit entry, touch ``last_used_at``

Deduction is best-effort: the order stands whatever happens here, failures
are logged and recorded on the outbox row.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Optional, Union

from fastapi.encoders import jsonable_encoder
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pos_inventory.core.config import settings
from pos_inventory.core.exceptions import InventoryError, NotFoundError
from pos_inventory.db.base import utcnow
from pos_inventory.db.session import SessionLocal
from pos_inventory.models.inventory import InventoryItem
from pos_inventory.models.recipe import Recipe
from pos_inventory.models.operations import InventoryUsageTask, UsageTaskStatus
from pos_inventory.models.restaurant import MenuItem, Order, line_qty
from pos_inventory.models.stock import InventoryMovement, MovementType
from pos_inventory.services.audit_service import log_action
from pos_inventory.services.recipe_service import (
    RecipeService,
    active_version,
    required_quantity,
    resolve_portion,
)
from pos_inventory.services.stock_ledger_service import StockLedgerService, quantize_qty

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
DEFAULT_WAREHOUSE_KEY = "default"


@dataclass
class UsageBucket:
    """Required quantity of one item from one warehouse across the whole order."""

    item: InventoryItem
    warehouse_key: Union[int, str]
    quantity: Decimal = ZERO
    menu_items: list[str] = field(default_factory=list)
    portions: list[str] = field(default_factory=list)

    def add(self, quantity: Decimal, menu_item_name: str, portion_key: str) -> None:
        self.quantity += quantity
        if menu_item_name and menu_item_name not in self.menu_items:
            self.menu_items.append(menu_item_name)
        if portion_key not in self.portions:
            self.portions.append(portion_key)


class OrderUsageService:
    """Service for recipe-driven ingredient deduction."""

    def __init__(self, db: Session):
        self.db = db
        self.ledger = StockLedgerService(db)
        self.recipes = RecipeService(db)

    def build_buckets(self, order: Order) -> tuple["OrderedDict[tuple, UsageBucket]", dict[int, Recipe]]:
        """Aggregate the order's ingredient needs by (item, warehouse key).

        Returns the buckets and the recipes that contributed, by id.
        """
        lines = [line for line in (order.items or []) if isinstance(line, dict)]
        menu_item_ids = set()
        for line in lines:
            try:
                menu_item_ids.add(int(line.get("menu_item_id")))
            except (TypeError, ValueError):
                continue

        recipes = self.recipes.active_recipes_by_menu_item(menu_item_ids)
        menu_names = {
            m.id: m.name
            for m in self.db.query(MenuItem).filter(MenuItem.id.in_(menu_item_ids))
        } if menu_item_ids else {}

        buckets: "OrderedDict[tuple, UsageBucket]" = OrderedDict()
        used_recipes: dict[int, Recipe] = {}
        for line in lines:
            try:
                menu_item_id = int(line.get("menu_item_id"))
            except (TypeError, ValueError):
                continue
            recipe = recipes.get(menu_item_id)
            if recipe is None:
                continue
            version = active_version(recipe)
            if version is None or not version.ingredients:
                continue

            portion_key, multiplier = resolve_portion(version, line.get("portion_key"))
            qty = line_qty(line)
            dish = line.get("name") or menu_names.get(menu_item_id) or recipe.name

            for ingredient in version.ingredients:
                item = ingredient.item
                if item is None:
                    continue
                needed = required_quantity(ingredient, multiplier, qty)
                if needed <= 0:
                    continue
                key = ingredient.warehouse_id or item.default_warehouse_id or DEFAULT_WAREHOUSE_KEY
                bucket = buckets.get((item.id, key))
                if bucket is None:
                    bucket = buckets[(item.id, key)] = UsageBucket(item=item, warehouse_key=key)
                bucket.add(needed, dish, portion_key)
                used_recipes[recipe.id] = recipe

        return buckets, used_recipes

    def usage_recorded(self, order_id: int) -> bool:
        """True when usage movements for the order already exist."""
        return self.db.query(InventoryMovement.id).filter(
            InventoryMovement.type == MovementType.USAGE.value,
            InventoryMovement.meta["order_id"].as_integer() == order_id,
        ).first() is not None

    def apply_recipe_usage(self, order: Order, user_id: Optional[int] = None) -> dict[str, Any]:
        """Deduct everything the order's recipes require; the caller commits.

        An order is deducted at most once: when usage movements for it already
        exist nothing is touched.
        """
        if self.usage_recorded(order.id):
            logger.info(f"Order {order.id}: usage already recorded, skipping")
            return {
                "order_id": order.id,
                "buckets": 0,
                "processed": 0,
                "skipped": 0,
                "shortages": [],
                "items": [],
                "already_applied": True,
            }

        buckets, used_recipes = self.build_buckets(order)
        summary: dict[str, Any] = {
            "order_id": order.id,
            "buckets": len(buckets),
            "processed": 0,
            "skipped": 0,
            "shortages": [],
            "items": [],
        }
        if not buckets:
            return summary

        touched_items: dict[int, InventoryItem] = {}
        for bucket in buckets.values():
            item = bucket.item
            requested = quantize_qty(bucket.quantity)
            reference = f"Dishes: {', '.join(bucket.menu_items)}"[:255]
            try:
                with self.db.begin_nested():
                    warehouse_id = None if bucket.warehouse_key == DEFAULT_WAREHOUSE_KEY else bucket.warehouse_key
                    warehouse = self.ledger.warehouses.resolve_warehouse(warehouse_id)
                    stock = self.ledger.get_or_create_stock(item, warehouse)
                    change = self.ledger.apply_delta(stock, -requested, clamp=True, item=item, warehouse=warehouse)

                    if change.applied < 0 or change.shortage > 0:
                        self.ledger.record_movement(
                            item,
                            warehouse,
                            MovementType.USAGE.value,
                            change.applied,
                            change.balance_after,
                            reason=f"Order #{order.id} recipe usage",
                            reference=reference,
                            meta={
                                "order_id": order.id,
                                "menu_items": bucket.menu_items,
                                "portions": bucket.portions,
                                "shortage": change.shortage,
                                "requested": requested,
                            },
                            user_id=user_id,
                        )
            except NotFoundError as e:
                logger.warning(f"Order {order.id}: skipping {item.name}, warehouse unavailable: {e.message}")
                summary["skipped"] += 1
                continue
            except (InventoryError, SQLAlchemyError):
                logger.error(f"Order {order.id}: failed to deduct {item.name}", exc_info=True)
                summary["skipped"] += 1
                continue

            touched_items[item.id] = item
            summary["processed"] += 1
            summary["items"].append({
                "item_id": item.id,
                "name": item.name,
                "warehouse_id": warehouse.id,
                "requested": requested,
                "deducted": -change.applied,
                "balance_after": change.balance_after,
            })
            if change.shortage > 0:
                summary["shortages"].append({
                    "item_id": item.id,
                    "name": item.name,
                    "warehouse_id": warehouse.id,
                    "shortage": change.shortage,
                    "unit": item.unit,
                })
                logger.warning(
                    f"Order {order.id}: short {change.shortage} {item.unit} of {item.name} in {warehouse.name}"
                )

        for item in touched_items.values():
            self.ledger.sync_item_total(item)

        if touched_items:
            log_action(
                action="inventory_usage_auto",
                entity_type="order",
                entity_id=order.id,
                user_id=user_id,
                summary=f"Order #{order.id}: recipe usage for {len(summary['items'])} ingredients",
                details={
                    "order_id": order.id,
                    "ingredients": len(summary["items"]),
                    "shortages": len(summary["shortages"]),
                },
                db=self.db,
            )

        now = utcnow()
        for recipe in used_recipes.values():
            recipe.last_used_at = now
        self.db.flush()

        logger.info(
            f"Order {order.id}: deducted {summary['processed']} ingredient rows, "
            f"{len(summary['shortages'])} short, {summary['skipped']} skipped"
        )
        return summary

    # ===== OUTBOX =====

    def claim_task(self, task_id: int) -> bool:
        """Move a pending task to processing; False when someone else has it."""
        result = self.db.execute(
            update(InventoryUsageTask)
            .where(InventoryUsageTask.id == task_id, InventoryUsageTask.status == UsageTaskStatus.PENDING)
            .values(status=UsageTaskStatus.PROCESSING)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return bool(result.rowcount)

    def run_task(self, task_id: int) -> InventoryUsageTask:
        """Process a claimed task, recording success or failure on the row."""
        task = self.db.query(InventoryUsageTask).filter(InventoryUsageTask.id == task_id).populate_existing().one()
        try:
            summary = self.apply_recipe_usage(task.order, task.created_by)
            task.status = UsageTaskStatus.DONE
            task.result = jsonable_encoder(summary)
            task.last_error = None
            task.processed_at = utcnow()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Usage deduction failed for order {task.order_id}", exc_info=True)
            task = self.db.query(InventoryUsageTask).filter(InventoryUsageTask.id == task_id).one()
            task.attempts = (task.attempts or 0) + 1
            task.last_error = f"{type(e).__name__}: {e}"[:1000]
            if task.attempts >= settings.usage_outbox_max_attempts:
                task.status = UsageTaskStatus.FAILED
            else:
                task.status = UsageTaskStatus.PENDING
            self.db.commit()
        return task

    def run_usage_for_order(self, order_id: int) -> InventoryUsageTask:
        """Requeue and run the usage task of one order (manual retry)."""
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")

        task = order.usage_task
        if task is None:
            task = InventoryUsageTask(order_id=order.id, created_by=order.created_by, created_at=utcnow())
            self.db.add(task)
        elif task.status == UsageTaskStatus.DONE:
            return task
        task.status = UsageTaskStatus.PENDING
        self.db.commit()

        if not self.claim_task(task.id):
            self.db.refresh(task)
            return task
        return self.run_task(task.id)


def process_usage_task(
    task_id: int, session_factory: Optional[Callable[[], Session]] = None
) -> Optional[dict[str, Any]]:
    """Background entry point: process one outbox row in its own session.

    Never raises; returns ``{"task_id", "order_id", "status", "result"}``, or
    None when the task was missing or already claimed.
    """
    db = (session_factory or SessionLocal)()
    try:
        service = OrderUsageService(db)
        if not service.claim_task(task_id):
            logger.debug(f"Usage task {task_id} already claimed or finished")
            return None
        task = service.run_task(task_id)
        return {"task_id": task.id, "order_id": task.order_id, "status": task.status, "result": task.result}
    except Exception:
        logger.exception(f"Usage task {task_id} could not be processed")
        db.rollback()
        return None
    finally:
        db.close()


def process_pending_tasks(
    limit: Optional[int] = None, session_factory: Optional[Callable[[], Session]] = None
) -> dict[str, int]:
    """Retry pending outbox rows, oldest first."""
    factory = session_factory or SessionLocal
    db = factory()
    try:
        task_ids = [
            row.id
            for row in db.query(InventoryUsageTask.id)
            .filter(InventoryUsageTask.status == UsageTaskStatus.PENDING)
            .order_by(InventoryUsageTask.id)
            .limit(limit or settings.usage_outbox_batch_size)
        ]
    finally:
        db.close()

    stats = {"picked": len(task_ids), "done": 0, "failed": 0, "pending": 0}
    for task_id in task_ids:
        outcome = process_usage_task(task_id, session_factory=factory)
        if outcome and outcome["status"] in stats:
            stats[outcome["status"]] += 1
    if task_ids:
        logger.info(f"Usage outbox run: {stats}")
    return stats


def get_order_usage_service(db: Session) -> OrderUsageService:
    """Get an order usage service instance."""
    return OrderUsageService(db)
