from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from farmflow import security
from farmflow.tenancy import normalize_tenant_context, tenant_query

from . import models, modules, permissions, schemas

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised for bad credentials or disabled accounts."""


# ---------------------------------------------------------------------------
# AUTH
# ---------------------------------------------------------------------------


def get_user_by_username(db: Session, username: str) -> Optional[models.User]:
    return (
        db.query(models.User)
        .filter(models.User.username == (username or "").strip())
        .first()
    )


def authenticate_user(db: Session, *, login_req: schemas.LoginRequest) -> models.User:
    user = get_user_by_username(db, login_req.username)
    if user is None or not security.verify_password(login_req.password, user.hashed_password):
        raise AuthenticationError("Incorrect username or password.")
    if not user.is_active:
        raise AuthenticationError("This account has been disabled.")
    if user.tenant is not None and not user.tenant.is_active and not user.is_owner:
        raise AuthenticationError("This estate account is not active.")

    if security.password_needs_rehash(user.hashed_password):
        user.hashed_password = security.get_password_hash(login_req.password)

    user.last_login_at = datetime.now(timezone.utc)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def issue_access_token_for_user(user: models.User) -> Tuple[str, int]:
    expires_in = security.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    token = security.create_access_token(
        data={"sub": user.id, "tenant_id": user.tenant_id, "role": user.role},
        expires_delta=timedelta(seconds=expires_in),
    )
    return token, expires_in


def create_user(
    db: Session,
    *,
    tenant_id: str,
    username: str,
    password: str,
    role: str = models.AccountRole.USER.value,
) -> models.User:
    user = models.User(
        tenant_id=tenant_id,
        username=username.strip(),
        hashed_password=security.get_password_hash(password),
        role=models.AccountRole(role).value,
    )
    db.add(user)
    db.flush()
    return user


# ---------------------------------------------------------------------------
# MODULE ACCESS
# ---------------------------------------------------------------------------


def get_tenant(db: Session, tenant_id: str) -> Optional[models.Tenant]:
    return db.query(models.Tenant).filter(models.Tenant.id == tenant_id).first()


def list_tenant_module_rows(db: Session, tenant_id: str) -> List[models.TenantModule]:
    context = normalize_tenant_context(tenant_id, models.AccountRole.ADMIN.value)
    return tenant_query(db, models.TenantModule, context).all()


def get_enabled_modules(db: Session, user: models.User) -> List[str]:
    """
    Resolve the modules a user can open.

    Owners see everything. Everyone else starts from the tenant's switches
    (registry defaults where none are stored); admins stop there, other roles
    are further narrowed by their own user_modules rows.
    """
    if permissions.is_owner_role(user.role):
        return list(modules.MODULE_IDS)

    tenant_rows = list_tenant_module_rows(db, user.effective_tenant_id)
    tenant_enabled = modules.resolve_enabled_modules(tenant_rows)

    if permissions.is_admin_role(user.role):
        return tenant_enabled

    try:
        user_rows = (
            db.query(models.UserModule)
            .filter(models.UserModule.user_id == user.id)
            .all()
        )
    except SQLAlchemyError:
        logger.warning("User module lookup failed; using tenant modules", exc_info=True)
        user_rows = []

    if user_rows:
        user_map = {row.module: bool(row.enabled) for row in user_rows}
        tenant_enabled = [module_id for module_id in tenant_enabled if user_map.get(module_id, True)]

    return modules.filter_user_blocked_modules(tenant_enabled)


def set_tenant_modules(
    db: Session,
    *,
    tenant_id: str,
    updates: Iterable[schemas.ModuleStateUpdate],
) -> List[dict]:
    """
    Upsert module switches for a tenant. Unknown module ids are ignored.
    """
    existing = {row.module: row for row in list_tenant_module_rows(db, tenant_id)}
    known = set(modules.MODULE_IDS)
    for update in updates:
        if update.id not in known:
            logger.info("Ignoring unknown module id %s for tenant %s", update.id, tenant_id)
            continue
        row = existing.get(update.id)
        if row is None:
            row = models.TenantModule(tenant_id=tenant_id, module=update.id)
            existing[update.id] = row
        row.enabled = update.enabled
        db.add(row)
    db.flush()
    return modules.resolve_module_states(existing.values())


# ---------------------------------------------------------------------------
# PER-USER MODULE ACCESS
# ---------------------------------------------------------------------------


class UserNotFoundError(Exception):
    """Raised when a module lookup names a user that does not exist."""


def get_user_in_scope(db: Session, *, actor: models.User, user_id: str) -> models.User:
    """
    Load a user the actor may administer: owners reach every estate,
    admins only their own.
    """
    target = db.query(models.User).filter(models.User.id == (user_id or "").strip()).first()
    if target is None:
        raise UserNotFoundError("User not found")
    if not permissions.is_owner_role(actor.role) and target.tenant_id != actor.effective_tenant_id:
        raise permissions.PermissionDeniedError("Forbidden")
    return target


def list_user_module_rows(db: Session, user_id: str) -> List[models.UserModule]:
    return db.query(models.UserModule).filter(models.UserModule.user_id == user_id).all()


def get_user_module_states(db: Session, *, target: models.User) -> Tuple[List[dict], str]:
    """
    Module states for one user and where they come from.

    `source` is "user" when the user has their own rows, "tenant" when only
    the estate has switches, otherwise "default". A module the estate has
    switched off is reported disabled whatever the user rows say.
    """
    tenant_rows = list_tenant_module_rows(db, target.tenant_id)
    tenant_enabled = set(modules.resolve_enabled_modules(tenant_rows))
    user_rows = list_user_module_rows(db, target.id)

    if user_rows:
        source, source_rows = "user", user_rows
    elif tenant_rows:
        source, source_rows = "tenant", tenant_rows
    else:
        source, source_rows = "default", []

    states = [
        {**state, "enabled": state["enabled"] and state["id"] in tenant_enabled}
        for state in modules.resolve_module_states(source_rows)
    ]
    return states, source


def set_user_modules(
    db: Session,
    *,
    target: models.User,
    updates: Iterable[schemas.ModuleStateUpdate],
) -> List[dict]:
    """
    Store a full module list for a user.

    Every registry module gets a row; anything not requested, or switched
    off for the estate, is stored disabled.
    """
    requested = {update.id: bool(update.enabled) for update in updates}
    tenant_enabled = set(modules.resolve_enabled_modules(list_tenant_module_rows(db, target.tenant_id)))
    existing = {row.module: row for row in list_user_module_rows(db, target.id)}

    for module_id in modules.MODULE_IDS:
        row = existing.get(module_id)
        if row is None:
            row = models.UserModule(user_id=target.id, module=module_id)
            existing[module_id] = row
        row.enabled = requested.get(module_id, False) and module_id in tenant_enabled
        db.add(row)
    db.flush()
    logger.info("Stored module access for user %s", target.id)
    return modules.resolve_module_states(existing.values())


def reset_user_modules(db: Session, *, target: models.User) -> int:
    """Drop a user's own rows so they fall back to the estate's modules."""
    deleted = (
        db.query(models.UserModule)
        .filter(models.UserModule.user_id == target.id)
        .delete(synchronize_session="fetch")
    )
    db.flush()
    return deleted
