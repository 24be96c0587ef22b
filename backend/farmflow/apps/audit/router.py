from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from farmflow.database import get_db
from farmflow.security import require_admin
from farmflow.tenancy import tenant_context_for
from farmflow.apps.accounts.models import User

from . import schemas, services

router = APIRouter(prefix="/admin/audit-logs", tags=["audit"])


@router.get("", response_model=List[schemas.AuditLogRead])
def list_audit_logs(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: int = 200,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return services.list_audit_logs(
        db,
        context=tenant_context_for(current_user),
        entity_type=entity_type,
        entity_id=entity_id,
        limit=limit,
    )
