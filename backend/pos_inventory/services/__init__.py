# Services module

from pos_inventory.services.warehouse_service import WarehouseService, get_warehouse_service
from pos_inventory.services.stock_ledger_service import (
    StockLedgerService,
    MovementFilter,
    get_stock_ledger_service,
)
from pos_inventory.services.inventory_item_service import InventoryItemService, get_inventory_item_service
from pos_inventory.services.recipe_service import RecipeService, get_recipe_service
from pos_inventory.services.order_service import OrderService, get_order_service
from pos_inventory.services.order_usage_service import (
    OrderUsageService,
    get_order_usage_service,
    process_pending_tasks,
    process_usage_task,
)
from pos_inventory.services.supplier_ledger_service import SupplierLedgerService, get_supplier_ledger_service
from pos_inventory.services.inventory_analytics_service import (
    InventoryAnalyticsService,
    get_inventory_analytics_service,
)

__all__ = [
    "WarehouseService",
    "get_warehouse_service",
    "StockLedgerService",
    "MovementFilter",
    "get_stock_ledger_service",
    "InventoryItemService",
    "get_inventory_item_service",
    "RecipeService",
    "get_recipe_service",
    "OrderService",
    "get_order_service",
    "OrderUsageService",
    "get_order_usage_service",
    "process_pending_tasks",
    "process_usage_task",
    "SupplierLedgerService",
    "get_supplier_ledger_service",
    "InventoryAnalyticsService",
    "get_inventory_analytics_service",
]
