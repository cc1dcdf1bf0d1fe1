"""SQLAlchemy models."""

from pos_inventory.models.user import User
from pos_inventory.models.warehouse import Warehouse, WAREHOUSE_TYPES
from pos_inventory.models.inventory import InventoryItem, TRACKING_METHODS
from pos_inventory.models.stock import (
    InventoryStock,
    InventoryMovement,
    MovementType,
    OUTBOUND_MOVEMENT_TYPES,
)
from pos_inventory.models.supplier import (
    Supplier,
    SupplierPriceHistory,
    SupplierPayment,
    SupplierInvoice,
    INVOICE_STATUSES,
)
from pos_inventory.models.restaurant import MenuItem, Order
from pos_inventory.models.recipe import Recipe, RecipeVersion, RecipeIngredient, RecipePortion
from pos_inventory.models.operations import AuditLogEntry, InventoryUsageTask, UsageTaskStatus

__all__ = [
    "User",
    "Warehouse",
    "WAREHOUSE_TYPES",
    "InventoryItem",
    "TRACKING_METHODS",
    "InventoryStock",
    "InventoryMovement",
    "MovementType",
    "OUTBOUND_MOVEMENT_TYPES",
    "Supplier",
    "SupplierPriceHistory",
    "SupplierPayment",
    "SupplierInvoice",
    "INVOICE_STATUSES",
    "MenuItem",
    "Order",
    "Recipe",
    "RecipeVersion",
    "RecipeIngredient",
    "RecipePortion",
    "AuditLogEntry",
    "InventoryUsageTask",
    "UsageTaskStatus",
]
