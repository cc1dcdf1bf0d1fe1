"""API routes."""

import logging
from fastapi import APIRouter

logger = logging.getLogger(__name__)

from pos_inventory.api.routes import (
    auth, warehouses, inventory, recipes, suppliers, orders, analytics,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(warehouses.router, prefix="/warehouses", tags=["warehouses"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory", "stock"])
api_router.include_router(recipes.router, prefix="/recipes", tags=["recipes"])
api_router.include_router(suppliers.router, prefix="/suppliers", tags=["suppliers"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(analytics.router, prefix="/inventory-analytics", tags=["analytics"])
