"""Domain exceptions raised by the inventory services.

Services raise these before mutating anything; ``main.py`` registers a
handler that renders them as ``{"detail": message}`` with ``status_code``.
"""

from decimal import Decimal
from typing import Optional


class InventoryError(Exception):
    """Base class for inventory domain errors."""

    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(InventoryError):
    """Request data is missing or out of range."""

    status_code = 400


class NotFoundError(InventoryError):
    """Referenced entity is missing or inactive."""

    status_code = 404


class ConflictError(InventoryError):
    """Unique name/code/SKU already taken."""

    status_code = 409


class InsufficientStockError(InventoryError):
    """Raised when a manual deduction would drive a stock row negative."""

    status_code = 400

    def __init__(
        self,
        item_name: str,
        warehouse_name: str,
        available: Decimal,
        requested: Decimal,
        unit: str = "",
    ):
        self.item_name = item_name
        self.warehouse_name = warehouse_name
        self.available = available
        self.requested = requested
        self.unit = unit
        super().__init__(
            f"Insufficient stock for '{item_name}' in '{warehouse_name}': "
            f"need {requested} {unit}, have {available} {unit}".rstrip()
        )
