"""Standardized API response helpers.

List endpoints return ``{"items": [...], "total": <int>}``; paginated
endpoints additionally include ``page``, ``limit``, ``pages`` and
``has_more``. Single-item endpoints return the object directly.
"""

import math
from typing import Optional


def list_response(items: list, total: Optional[int] = None, **extra) -> dict:
    """Wrap a list in the standard envelope.

    Extra keyword arguments (summaries, totals) are merged into the envelope.
    """
    body = {
        "items": items,
        "total": total if total is not None else len(items),
    }
    body.update(extra)
    return body


def paginated_response(items: list, total: int, page: int = 1, limit: int = 50, **extra) -> dict:
    """Wrap one page of results in the standard envelope."""
    body = {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if limit else 0,
        "has_more": (page - 1) * limit + len(items) < total,
    }
    body.update(extra)
    return body
