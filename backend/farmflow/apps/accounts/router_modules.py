from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from farmflow.database import get_db
from farmflow.security import get_current_active_user, require_admin
from farmflow.tenancy import tenant_context_for
from farmflow.apps.audit import services as audit_services

from . import models, modules, permissions, schemas, services

router = APIRouter(prefix="/tenant-modules", tags=["modules"])


@router.get("", response_model=List[schemas.ModuleState])
def list_tenant_modules(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
):
    tenant_id = tenant_context_for(current_user).tenant_id
    return modules.resolve_module_states(services.list_tenant_module_rows(db, tenant_id))


@router.put("", response_model=List[schemas.ModuleState])
def update_tenant_modules(
    payload: schemas.TenantModulesUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin),
):
    tenant_id = tenant_context_for(current_user).tenant_id
    before = modules.resolve_module_states(services.list_tenant_module_rows(db, tenant_id))
    states = services.set_tenant_modules(db, tenant_id=tenant_id, updates=payload.modules)
    audit_services.log_audit_event(
        db,
        current_user,
        action="upsert",
        entity_type="tenant_modules",
        entity_id=tenant_id,
        before=before,
        after=states,
    )
    db.commit()
    return states


user_modules_router = APIRouter(prefix="/user-modules", tags=["modules"])


def _target_user(db: Session, actor: models.User, user_id: str) -> models.User:
    try:
        return services.get_user_in_scope(db, actor=actor, user_id=user_id)
    except services.UserNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except permissions.PermissionDeniedError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))


@user_modules_router.get("/{user_id}", response_model=schemas.UserModulesRead)
def get_user_modules(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin),
):
    target = _target_user(db, current_user, user_id)
    states, source = services.get_user_module_states(db, target=target)
    return {"user_id": target.id, "source": source, "modules": states}


@user_modules_router.put("/{user_id}", response_model=schemas.UserModulesRead)
def update_user_modules(
    user_id: str,
    payload: schemas.UserModulesUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin),
):
    target = _target_user(db, current_user, user_id)
    before = modules.resolve_module_states(services.list_user_module_rows(db, target.id))
    services.set_user_modules(db, target=target, updates=payload.modules)
    states, source = services.get_user_module_states(db, target=target)
    audit_services.log_audit_event(
        db,
        current_user,
        action="update",
        entity_type="user_modules",
        entity_id=target.id,
        before=before,
        after=[update.model_dump() for update in payload.modules],
    )
    db.commit()
    return {"user_id": target.id, "source": source, "modules": states}


@user_modules_router.delete("/{user_id}")
def reset_user_modules(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin),
):
    target = _target_user(db, current_user, user_id)
    before = modules.resolve_module_states(services.list_user_module_rows(db, target.id))
    deleted = services.reset_user_modules(db, target=target)
    audit_services.log_audit_event(
        db,
        current_user,
        action="delete",
        entity_type="user_modules",
        entity_id=target.id,
        before=before,
    )
    db.commit()
    return {"success": True, "deleted": deleted}
