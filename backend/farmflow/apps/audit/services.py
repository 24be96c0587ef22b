from __future__ import annotations

import json
import logging
from typing import Any, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from farmflow.tenancy import TenantContext, tenant_context_for, tenant_query

from . import models
from .schemas import AuditAction

logger = logging.getLogger(__name__)


def serialize_audit_payload(payload: Any) -> Any:
    """
    Make a before/after payload safe for a JSON column.

    Values that cannot be encoded are stored as their string form.
    """
    if payload is None:
        return None
    try:
        return json.loads(json.dumps(payload, default=_json_default))
    except (TypeError, ValueError):
        return {"value": str(payload)}


def _json_default(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    raise TypeError(f"{type(value).__name__} is not JSON serialisable")


def log_audit_event(
    db: Session,
    user: Any,
    *,
    action: AuditAction,
    entity_type: str,
    entity_id: Optional[Any] = None,
    before: Any = None,
    after: Any = None,
    critical: bool = False,
) -> Optional[models.AuditLog]:
    """
    Best-effort audit writer.

    The insert runs in a savepoint, so a failed audit write only rolls back
    the audit row and the caller's transaction stays committable. Failures
    are logged and swallowed unless `critical` is set.
    """
    context = tenant_context_for(user)
    entry = models.AuditLog(
        tenant_id=context.tenant_id,
        user_id=getattr(user, "id", None),
        username=getattr(user, "username", None) or "system",
        role=context.role,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id not in (None, "") else None,
        before_data=serialize_audit_payload(before),
        after_data=serialize_audit_payload(after),
    )
    # Pending business rows must fail on their own, not as an audit failure.
    db.flush()
    try:
        with db.begin_nested():
            db.add(entry)
            db.flush()
        return entry
    except SQLAlchemyError:
        logger.warning(
            "Audit log write failed",
            extra={
                "tenant_id": context.tenant_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "action": action,
                "critical": critical,
            },
            exc_info=True,
        )
        if critical:
            raise
        return None


def list_audit_logs(
    db: Session,
    *,
    context: TenantContext,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: int = 200,
) -> Sequence[models.AuditLog]:
    query = tenant_query(db, models.AuditLog, context)
    if entity_type:
        query = query.filter(models.AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(models.AuditLog.entity_id == entity_id)
    return (
        query.order_by(models.AuditLog.created_at.desc(), models.AuditLog.id.desc())
        .limit(max(1, min(limit, 1000)))
        .all()
    )
