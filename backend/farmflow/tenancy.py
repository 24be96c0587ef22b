# backend/farmflow/tenancy.py
"""
Tenant isolation helpers.

Every operational table carries a `tenant_id`. Two layers keep queries inside
the caller's estate:

- ORM queries go through `tenant_query()`, which refuses models without a
  `tenant_id` column and always applies the tenant filter.
- Raw statements go through `run_tenant_query()` / `run_tenant_queries()`,
  which publish the tenant and role as transaction-local PostgreSQL settings
  (`app.tenant_id`, `app.role`) for row-level security policies before the
  statements run. A session event re-applies them on every new transaction
  the session begins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Type

from sqlalchemy import event, text
from sqlalchemy.orm import Query, Session

logger = logging.getLogger(__name__)

FALLBACK_TENANT_ID = "00000000-0000-0000-0000-000000000000"
DEFAULT_ROLE = "user"
TENANT_CONTEXT_KEY = "tenant_context"


class TenantScopeError(Exception):
    """Raised when a query cannot be scoped to a tenant."""


@dataclass(frozen=True)
class TenantContext:
    tenant_id: str
    role: str = DEFAULT_ROLE


def normalize_tenant_context(tenant_id: Optional[str] = None, role: Optional[str] = None) -> TenantContext:
    return TenantContext(
        tenant_id=tenant_id or FALLBACK_TENANT_ID,
        role=role or DEFAULT_ROLE,
    )


def tenant_context_for(user: Any) -> TenantContext:
    """
    Build the context for an authenticated user, honouring an owner's
    previewed estate when one is active.
    """
    tenant_id = getattr(user, "effective_tenant_id", None) or getattr(user, "tenant_id", None)
    return normalize_tenant_context(tenant_id, getattr(user, "role", None))


def _is_postgres(db: Session) -> bool:
    return db.get_bind().dialect.name == "postgresql"


def _set_config(executor: Any, context: TenantContext) -> None:
    executor.execute(text("SELECT set_config('TimeZone', 'UTC', true)"))
    executor.execute(
        text("SELECT set_config('app.tenant_id', :tenant_id, true)"),
        {"tenant_id": context.tenant_id},
    )
    executor.execute(
        text("SELECT set_config('app.role', :role, true)"),
        {"role": context.role},
    )


def apply_tenant_settings(db: Session, context: TenantContext) -> None:
    """
    Set transaction-local settings used by row-level security policies.

    `set_config(..., true)` scopes the values to the current transaction.
    The context is also remembered on the session so that
    `reapply_tenant_settings` can restore it when a later transaction
    begins, e.g. a `refresh()` after `commit()`.
    """
    db.info[TENANT_CONTEXT_KEY] = context
    if not _is_postgres(db):
        return
    _set_config(db, context)


@event.listens_for(Session, "after_begin")
def reapply_tenant_settings(session: Session, transaction: Any, connection: Any) -> None:
    context = session.info.get(TENANT_CONTEXT_KEY)
    if context is None or connection.dialect.name != "postgresql":
        return
    _set_config(connection, context)


def run_tenant_query(
    db: Session,
    context: TenantContext,
    statement: Any,
    params: Optional[dict] = None,
) -> List[dict]:
    """
    Execute a single statement inside the tenant's settings and return rows
    as dicts. Statements that return no rows yield an empty list.
    """
    return run_tenant_queries(db, context, [(statement, params)])[0]


def run_tenant_queries(
    db: Session,
    context: TenantContext,
    statements: Sequence[Any],
) -> List[List[dict]]:
    """
    Execute several statements in one transaction after applying tenant
    settings. Each item is either a statement or a `(statement, params)`
    tuple. Returns one row list per statement, in order.
    """
    apply_tenant_settings(db, context)
    results: List[List[dict]] = []
    for item in statements:
        statement, params = item if isinstance(item, tuple) else (item, None)
        if isinstance(statement, str):
            statement = text(statement)
        bound = dict(params or {})
        bound.setdefault("tenant_id", context.tenant_id)
        result = db.execute(statement, bound)
        if result.returns_rows:
            results.append([dict(row) for row in result.mappings().all()])
        else:
            results.append([])
    return results


def tenant_query(db: Session, model: Type, context: TenantContext) -> Query:
    """
    Return `db.query(model)` already filtered on the caller's tenant.
    """
    column = getattr(model, "tenant_id", None)
    if column is None:
        logger.error("Refusing unscoped query", extra={"model": getattr(model, "__name__", str(model))})
        raise TenantScopeError(f"{getattr(model, '__name__', model)} has no tenant_id column")
    apply_tenant_settings(db, context)
    return db.query(model).filter(column == context.tenant_id)
