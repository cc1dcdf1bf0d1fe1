"""Inventory analytics routes: overview, usage trends, food cost and alerts."""

from fastapi import APIRouter, Query, Request

from pos_inventory.core.rate_limit import limiter
from pos_inventory.core.rbac import CurrentUser, RequireManager
from pos_inventory.db.session import DbSession
from pos_inventory.services.inventory_analytics_service import InventoryAnalyticsService

router = APIRouter()


@router.get("/overview")
@limiter.limit("30/minute")
def get_overview(request: Request, db: DbSession, current_user: CurrentUser):
    """Totals, low stock, expiring soon and fast-moving items."""
    return InventoryAnalyticsService(db).overview()


@router.get("/usage-trends")
@limiter.limit("30/minute")
def get_usage_trends(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    days: int = Query(30, ge=1, le=365),
):
    return InventoryAnalyticsService(db).usage_trends(days)


@router.get("/food-cost")
@limiter.limit("30/minute")
def get_food_cost(request: Request, db: DbSession, current_user: RequireManager):
    """Ingredient cost against menu price for every costed recipe."""
    return InventoryAnalyticsService(db).food_cost_report()


@router.get("/alerts")
@limiter.limit("30/minute")
def get_alerts(request: Request, db: DbSession, current_user: CurrentUser):
    return InventoryAnalyticsService(db).alerts()
