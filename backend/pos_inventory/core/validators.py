"""Reusable parameter validators and payload coercion helpers."""

from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Iterable, Optional

from fastapi import Path

# Positive integer ID validator for path parameters
PositiveIntId = Annotated[int, Path(gt=0, description="Resource ID (must be positive)")]


def to_decimal(value: Any, default: Optional[Decimal] = Decimal("0")) -> Optional[Decimal]:
    """Parse a user supplied number, returning ``default`` when it is not finite."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return default
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default
    if not parsed.is_finite():
        return default
    return parsed


def non_negative_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Parse a number and clamp it at zero."""
    parsed = to_decimal(value, default)
    return max(Decimal("0"), parsed)


def clean_str(value: Any, default: str = "") -> str:
    """Trim a user supplied string; ``None`` becomes ``default``."""
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def clean_code(value: Any) -> Optional[str]:
    """Normalize SKU/warehouse/supplier codes: trimmed, upper-cased, empty -> None."""
    text = clean_str(value)
    return text.upper() or None


def clean_list(values: Optional[Iterable[Any]]) -> list[str]:
    """Trim a list of strings and drop empty entries."""
    if not values:
        return []
    return [text for text in (clean_str(v) for v in values) if text]
