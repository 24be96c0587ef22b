# backend/farmflow/security.py

"""
Security helpers for FarmFlow.

Responsibilities:
- Password hashing and verification
- JWT access token creation and decoding
- FastAPI dependencies for current user / role checks
- Module write/delete guards for router dependencies
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Set, Union

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHash
import bcrypt

from .database import get_db
from farmflow.apps.accounts import models as account_models
from farmflow.apps.accounts import permissions
from farmflow.apps.accounts.models import AccountRole

# ---------------------------------------------------------------------------
# CONFIG
# ---------------------------------------------------------------------------


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


# Override in every deployment.
SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME_IN_PRODUCTION")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = _int_env("ACCESS_TOKEN_EXPIRE_MINUTES", 720)  # 12 hours

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


# ---------------------------------------------------------------------------
# PASSWORD HASHING
# ---------------------------------------------------------------------------

_pwd_hasher = PasswordHasher(
    time_cost=_int_env("ARGON2_TIME_COST", 3),
    memory_cost=_int_env("ARGON2_MEMORY_COST", 64 * 1024),  # KiB
    parallelism=_int_env("ARGON2_PARALLELISM", 2),
    hash_len=_int_env("ARGON2_HASH_LEN", 32),
    salt_len=_int_env("ARGON2_SALT_LEN", 16),
)


_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def _hash_scheme(hashed_password: Optional[str]) -> Optional[str]:
    if not isinstance(hashed_password, str):
        return None
    if hashed_password.startswith("$argon2"):
        return "argon2"
    if hashed_password.startswith(_BCRYPT_PREFIXES):
        return "bcrypt"
    return None


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Check a password against its Argon2 hash. Older accounts may still
    carry a bcrypt hash until their next login.
    """
    if not plain_password:
        return False

    scheme = _hash_scheme(hashed_password)
    if scheme == "argon2":
        try:
            return _pwd_hasher.verify(hashed_password, plain_password)
        except (VerifyMismatchError, VerificationError, InvalidHash):
            return False
    if scheme == "bcrypt":
        try:
            return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
        except ValueError:
            return False
    return False


def get_password_hash(password: str) -> str:
    return _pwd_hasher.hash(password)


def password_needs_rehash(hashed_password: str) -> bool:
    """Legacy bcrypt hashes, and Argon2 hashes made with older parameters."""
    if _hash_scheme(hashed_password) != "argon2":
        return True
    return _pwd_hasher.check_needs_rehash(hashed_password)


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------


def create_access_token(*, data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign `data` (normally `sub`, `tenant_id` and `role`) with an expiry.
    """
    lifetime = expires_delta if expires_delta is not None else timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {**data, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(claims, SECRET_KEY, algorithm=JWT_ALGORITHM)


# ---------------------------------------------------------------------------
# USER LOOKUP
# ---------------------------------------------------------------------------


def get_user_by_id(db: Session, user_id: Union[str, int, None]) -> Optional[account_models.User]:
    if user_id is None:
        return None
    return db.query(account_models.User).filter(account_models.User.id == str(user_id).strip()).first()


# ---------------------------------------------------------------------------
# FASTAPI DEPENDENCIES
# ---------------------------------------------------------------------------


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> account_models.User:
    """
    Resolve the bearer token to a user.

    Tokens carry `sub` (user id) and `tenant_id`; a token minted for another
    estate than the user's current one is rejected.
    """
    try:
        claims = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise _unauthorized()

    user = get_user_by_id(db, claims.get("sub"))
    if user is None:
        raise _unauthorized()

    token_tenant = claims.get("tenant_id")
    if token_tenant is not None and token_tenant != user.tenant_id:
        raise _unauthorized()
    return user


def get_current_active_user(
    current_user: account_models.User = Depends(get_current_user),
) -> account_models.User:
    if not getattr(current_user, "is_active", False):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user account")
    return current_user


def require_admin(
    current_user: account_models.User = Depends(get_current_active_user),
) -> account_models.User:
    """Owner or estate admin."""
    if not permissions.is_admin_role(current_user.role):
        raise _forbidden("Admin role required")
    return current_user


# ---------------------------------------------------------------------------
# ROLE GUARDS
# ---------------------------------------------------------------------------

UserDependency = Callable[..., account_models.User]


def _role_guard(is_allowed: Callable[[Optional[str]], bool]) -> UserDependency:
    def dependency(
        current_user: account_models.User = Depends(get_current_active_user),
    ) -> account_models.User:
        if not is_allowed(current_user.role):
            raise _forbidden("Insufficient role")
        return current_user

    return dependency


def require_roles(*allowed_roles: Union[AccountRole, str]) -> UserDependency:
    """
    Admit the listed roles. The platform owner always passes.

        @router.post(..., dependencies=[Depends(require_roles("admin", "user"))])
    """
    allowed: Set[str] = set()
    for role in allowed_roles:
        try:
            allowed.add(AccountRole(role).value)
        except ValueError:
            raise ValueError(f"Unknown role {role!r} passed to require_roles()")

    return _role_guard(lambda role: permissions.is_owner_role(role) or role in allowed)


def require_write(module_id: str) -> UserDependency:
    return _role_guard(lambda role: permissions.can_write_module(role, module_id))


def require_delete(module_id: str) -> UserDependency:
    return _role_guard(lambda role: permissions.can_delete_module(role, module_id))
