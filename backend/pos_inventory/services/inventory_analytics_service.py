"""Inventory analytics: overview, usage trends, food cost and alerts."""

import logging
import math
from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from pos_inventory.core.config import settings
from pos_inventory.db.base import as_utc, utcnow
from pos_inventory.models.inventory import InventoryItem
from pos_inventory.models.recipe import Recipe
from pos_inventory.models.stock import InventoryMovement, MovementType, OUTBOUND_MOVEMENT_TYPES
from pos_inventory.services.inventory_item_service import InventoryItemService

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ANOMALY_MOVEMENT_TYPES = (MovementType.USAGE.value, MovementType.WASTE.value)
LIST_LIMIT = 10


def days_left(item: InventoryItem, now: Optional[datetime] = None) -> Optional[int]:
    """Whole days until the last restock expires; None when expiry is not tracked."""
    if not item.shelf_life_days or not item.last_restock_date:
        return None
    now = now or utcnow()
    expires_at = as_utc(item.last_restock_date) + timedelta(days=item.shelf_life_days)
    return math.ceil((expires_at - now) / timedelta(days=1))


class InventoryAnalyticsService:
    """Read-only reports over items, movements and recipes."""

    def __init__(self, db: Session):
        self.db = db

    def low_stock_items(self, limit: Optional[int] = None) -> list[dict[str, Any]]:
        query = (
            self.db.query(InventoryItem)
            .filter(
                InventoryItem.is_active.is_(True),
                InventoryItem.low_stock_alert_enabled.is_(True),
                InventoryItem.par_level > 0,
                InventoryItem.current_stock <= InventoryItem.par_level,
            )
            .order_by(InventoryItem.name)
        )
        if limit:
            query = query.limit(limit)
        return [
            {
                "id": item.id,
                "name": item.name,
                "unit": item.unit,
                "current_stock": item.current_stock,
                "par_level": item.par_level,
            }
            for item in query.all()
        ]

    def expiring_items(self, within_days: int) -> list[dict[str, Any]]:
        now = utcnow()
        candidates = self.db.query(InventoryItem).filter(
            InventoryItem.is_active.is_(True),
            InventoryItem.expiry_tracking_enabled.is_(True),
            InventoryItem.shelf_life_days > 0,
            InventoryItem.last_restock_date.isnot(None),
        )
        expiring = []
        for item in candidates:
            left = days_left(item, now)
            if left is None or left > within_days:
                continue
            expiring.append({
                "id": item.id,
                "name": item.name,
                "unit": item.unit,
                "current_stock": item.current_stock,
                "expiry_date": as_utc(item.last_restock_date) + timedelta(days=item.shelf_life_days),
                "days_left": left,
            })
        expiring.sort(key=lambda row: row["days_left"])
        return expiring

    def fast_moving(self, window_days: Optional[int] = None, limit: Optional[int] = None) -> list[dict[str, Any]]:
        since = utcnow() - timedelta(days=window_days or settings.fast_moving_window_days)
        total_usage = func.sum(InventoryMovement.quantity).label("total_usage")
        rows = (
            self.db.query(InventoryMovement.item_id, total_usage)
            .filter(
                InventoryMovement.type.in_(OUTBOUND_MOVEMENT_TYPES),
                InventoryMovement.created_at >= since,
            )
            .group_by(InventoryMovement.item_id)
            .order_by(total_usage.desc())
            .limit(limit or settings.fast_moving_limit)
            .all()
        )
        items = {
            item.id: item
            for item in self.db.query(InventoryItem).filter(InventoryItem.id.in_([r.item_id for r in rows]))
        } if rows else {}

        result = []
        for item_id, usage in rows:
            item = items.get(item_id)
            result.append({
                "id": item_id,
                "name": item.name if item else "Unknown",
                "unit": item.unit if item else None,
                "current_stock": item.current_stock if item else None,
                "par_level": item.par_level if item else None,
                "total_usage": Decimal(str(usage or 0)),
            })
        return result

    def overview(self) -> dict[str, Any]:
        summary = InventoryItemService(self.db).summary()
        low_stock = self.low_stock_items()
        expiring = self.expiring_items(settings.expiring_soon_days)
        value = summary["inventory_value"]

        return {
            "totals": {
                "total_items": summary["total_items"],
                "total_stock_units": summary["total_stock_units"],
                "inventory_value": value,
                "low_stock_count": len(low_stock),
                "expiring_soon_count": len(expiring),
                # Only the running average cost is tracked
                "valuation": {"average_cost": value, "fifo": value, "lifo": value},
            },
            "low_stock_items": low_stock[:LIST_LIMIT],
            "expiring_soon": expiring[:LIST_LIMIT],
            "fast_moving": self.fast_moving(),
        }

    def usage_trends(self, days: int = 30) -> dict[str, Any]:
        """Outbound quantity per day and movement type over the trailing window."""
        days = max(1, int(days or 30))
        since = utcnow() - timedelta(days=days)
        rows = (
            self.db.query(InventoryMovement.created_at, InventoryMovement.type, InventoryMovement.quantity)
            .filter(
                InventoryMovement.type.in_(OUTBOUND_MOVEMENT_TYPES),
                InventoryMovement.created_at >= since,
            )
            .all()
        )
        totals: dict[tuple[str, str], Decimal] = defaultdict(lambda: ZERO)
        for created_at, movement_type, quantity in rows:
            day = as_utc(created_at).date().isoformat()
            totals[(day, movement_type)] += Decimal(quantity or 0)

        usage = [
            {"day": day, "type": movement_type, "total": total}
            for (day, movement_type), total in sorted(totals.items())
        ]
        return {"days": days, "usage": usage}

    def food_cost_report(self) -> dict[str, Any]:
        recipes = (
            self.db.query(Recipe)
            .options(selectinload(Recipe.versions), selectinload(Recipe.menu_item))
            .filter(
                Recipe.is_active.is_(True),
                Recipe.default_version_id.isnot(None),
                Recipe.menu_item_id.isnot(None),
            )
            .order_by(Recipe.name)
            .all()
        )

        report = []
        for recipe in recipes:
            menu_item = recipe.menu_item
            version = recipe.default_version
            if menu_item is None:
                continue
            cost = version.ingredient_total_cost if version else ZERO
            price = Decimal(menu_item.price or 0)
            pct = (cost / price * 100) if price > 0 else ZERO
            report.append({
                "recipe_id": recipe.id,
                "menu_item_id": menu_item.id,
                "menu_item_name": menu_item.name,
                "category": menu_item.category,
                "price": price,
                "ingredient_cost": cost,
                "food_cost_pct": pct.quantize(Decimal("0.01")),
            })
        return {"report": report}

    def anomalies(self) -> list[dict[str, Any]]:
        """Items whose usage+waste today exceeds the multiplier times the mean of earlier days."""
        now = utcnow()
        today = now.date().isoformat()
        since = now - timedelta(days=settings.anomaly_window_days)
        rows = (
            self.db.query(InventoryMovement.item_id, InventoryMovement.created_at, InventoryMovement.quantity)
            .filter(
                InventoryMovement.type.in_(ANOMALY_MOVEMENT_TYPES),
                InventoryMovement.created_at >= since,
            )
            .all()
        )

        daily: dict[int, dict[str, Decimal]] = defaultdict(lambda: defaultdict(lambda: ZERO))
        for item_id, created_at, quantity in rows:
            daily[item_id][as_utc(created_at).date().isoformat()] += Decimal(quantity or 0)

        multiplier = Decimal(str(settings.anomaly_multiplier))
        candidates = []
        for item_id, totals in daily.items():
            today_usage = totals.get(today, ZERO)
            past = [total for day, total in totals.items() if day != today]
            average = sum(past, ZERO) / len(past) if past else ZERO
            if average > 0 and today_usage > average * multiplier:
                candidates.append((item_id, today_usage, average))

        if not candidates:
            return []
        items = {
            item.id: item
            for item in self.db.query(InventoryItem).filter(InventoryItem.id.in_([c[0] for c in candidates]))
        }
        return [
            {
                "id": item_id,
                "name": items[item_id].name if item_id in items else "Unknown",
                "unit": items[item_id].unit if item_id in items else None,
                "today_usage": today_usage,
                "average_usage": average.quantize(Decimal("0.01")),
            }
            for item_id, today_usage, average in candidates
        ]

    def alerts(self) -> dict[str, Any]:
        return {
            "low_stock": self.low_stock_items(),
            "expiring_soon": self.expiring_items(settings.alert_expiring_days),
            "anomalies": self.anomalies(),
        }


def get_inventory_analytics_service(db: Session) -> InventoryAnalyticsService:
    """Get an inventory analytics service instance."""
    return InventoryAnalyticsService(db)
