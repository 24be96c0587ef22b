"""
Module access helpers.

Routers declare the module they belong to (inventory, transactions, ...)
and this dependency blocks the request when the module is switched off for
the caller's estate or narrowed away for the caller.
"""

from __future__ import annotations

from typing import Callable, Optional

from fastapi import Cookie, Depends, HTTPException, status
from sqlalchemy.orm import Session

from farmflow.apps.accounts import models as account_models
from farmflow.apps.accounts import permissions
from farmflow.apps.accounts import services as account_services
from farmflow.utils.identifiers import is_uuid

from .database import get_db
from .security import get_current_active_user

PREVIEW_TENANT_COOKIE = "farmflow_preview_tenant"


def resolve_scoped_user(
    db: Session,
    user: account_models.User,
    preview_tenant_id: Optional[str],
) -> account_models.User:
    """
    Let a platform owner act inside another estate.

    The preview id is only honoured for owners, must look like a UUID and
    must name an existing tenant; otherwise the user is returned unchanged.
    """
    if not permissions.is_owner_role(user.role):
        return user
    candidate = (preview_tenant_id or "").strip()
    if not candidate or not is_uuid(candidate):
        return user
    if account_services.get_tenant(db, candidate) is None:
        return user
    user._preview_tenant_id = candidate
    return user


def require_module(module_key: str) -> Callable[..., account_models.User]:
    """
    FastAPI dependency that blocks access when a module is not enabled.

    Usage:
        router = APIRouter(
            prefix="/inventory",
            dependencies=[Depends(require_module("inventory"))],
        )
    """

    def dependency(
        current_user: account_models.User = Depends(get_current_active_user),
        db: Session = Depends(get_db),
        preview_tenant: Optional[str] = Cookie(None, alias=PREVIEW_TENANT_COOKIE),
    ) -> account_models.User:
        user = resolve_scoped_user(db, current_user, preview_tenant)

        if permissions.is_owner_role(user.role):
            return user

        if module_key not in account_services.get_enabled_modules(db, user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Module access disabled",
            )

        return user

    return dependency
