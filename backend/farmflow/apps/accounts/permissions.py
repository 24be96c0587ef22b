"""
Role -> module write/delete rules.

Admins (and the platform owner) can write and delete everywhere. Estate
users can write to the day-to-day operational modules only and never
delete. Viewers are read-only.
"""

from __future__ import annotations

from typing import Optional

from .models import AccountRole

USER_WRITE_MODULES = frozenset(
    {
        "inventory",
        "transactions",
        "accounts",
        "processing",
        "dispatch",
        "sales",
        "rainfall",
        "pepper",
        "journal",
    }
)

_ROLE_LABELS = {
    AccountRole.OWNER.value: "Platform Owner",
    AccountRole.ADMIN.value: "Estate Admin",
    AccountRole.USER.value: "Estate User",
    AccountRole.VIEWER.value: "Read-only Viewer",
}


class PermissionDeniedError(Exception):
    """Raised when a role lacks the privilege for an operation."""


def _normalise(role: Optional[str]) -> str:
    if isinstance(role, AccountRole):
        return role.value
    return str(role or "").strip().lower()


def is_admin_role(role: Optional[str]) -> bool:
    return _normalise(role) in {AccountRole.OWNER.value, AccountRole.ADMIN.value}


def is_owner_role(role: Optional[str]) -> bool:
    return _normalise(role) == AccountRole.OWNER.value


def can_write_module(role: Optional[str], module_id: str) -> bool:
    if is_admin_role(role):
        return True
    return _normalise(role) == AccountRole.USER.value and module_id in USER_WRITE_MODULES


def can_delete_module(role: Optional[str], module_id: str) -> bool:
    return is_admin_role(role)


def require_admin_role(role: Optional[str]) -> None:
    if not is_admin_role(role):
        raise PermissionDeniedError("Admin role required")


def require_owner_role(role: Optional[str]) -> None:
    if not is_owner_role(role):
        raise PermissionDeniedError("Owner role required")


def role_label(role: Optional[str]) -> str:
    normalised = _normalise(role)
    if normalised in _ROLE_LABELS:
        return _ROLE_LABELS[normalised]
    return str(role) if role else "User"
