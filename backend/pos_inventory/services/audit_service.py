"""Audit logging service.

Every state-changing inventory operation writes one ``AuditLogEntry`` in the
same transaction as the change it describes. When no session is passed,
``log_action`` opens a short-lived one of its own (used by the login route
and the usage outbox worker).
"""

import logging
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pos_inventory.db.base import utcnow
from pos_inventory.db.session import SessionLocal
from pos_inventory.models.operations import AuditLogEntry

logger = logging.getLogger("audit")


def log_action(
    action: str,
    entity_type: str = "",
    entity_id: Any = "",
    user_id: Optional[int] = None,
    user_name: str = "",
    ip_address: str = "",
    summary: str = "",
    details: Optional[dict[str, Any]] = None,
    db: Optional[Session] = None,
) -> None:
    """Write an audit log entry.

    Args:
        action: The action performed (inventory_adjust, supplier_purchase, ...)
        entity_type: Type of entity affected (inventory_item, warehouse, ...)
        entity_id: ID of the affected entity
        user_id: ID of the user performing the action
        user_name: Name/email of the user
        ip_address: Client IP address
        summary: One-line human readable description
        details: Structured metadata (ids, quantities, costs)
        db: Optional existing DB session. If None, creates a new one.
    """
    own_session = db is None
    if own_session:
        db = SessionLocal()

    entry = AuditLogEntry(
        user_id=user_id,
        user_name=user_name or None,
        action=action,
        entity_type=entity_type or None,
        entity_id=str(entity_id) if entity_id not in (None, "") else None,
        summary=(summary or "")[:500] or None,
        details=jsonable_encoder(details or {}),
        ip_address=ip_address or None,
        created_at=utcnow(),
    )
    try:
        if own_session:
            db.add(entry)
            db.commit()
        else:
            # Savepoint so a failed audit insert never poisons the caller's transaction
            with db.begin_nested():
                db.add(entry)
    except SQLAlchemyError:
        logger.exception(f"Failed to write audit log entry for {action}")
        if own_session:
            db.rollback()
    finally:
        if own_session:
            db.close()


def log_login(user_id: Optional[int], email: str, ip_address: str, success: bool = True) -> None:
    """Log a login attempt."""
    log_action(
        action="login" if success else "failed_login",
        entity_type="session",
        user_id=user_id if success else None,
        user_name=email,
        ip_address=ip_address,
        summary=f"{'Successful' if success else 'Failed'} login for {email}",
    )
