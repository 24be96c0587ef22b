# backend/farmflow/apps/accounts/models.py

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship

from farmflow.database import Base
from farmflow.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class AccountRole(str, enum.Enum):
    """
    Roles recognised across the platform.

    Stored as plain strings so older rows (lower-case text) stay readable.
    """

    OWNER = "owner"      # Platform owner, not bound to one estate
    ADMIN = "admin"      # Estate admin
    USER = "user"        # Estate user
    VIEWER = "viewer"    # Read-only


# ---------------------------------------------------------------------------
# TENANTS
# ---------------------------------------------------------------------------


class Tenant(Base):
    """
    An estate account. Every operational row is partitioned by tenant id.
    """

    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    users = relationship("User", back_populates="tenant", lazy="selectin")
    modules = relationship("TenantModule", back_populates="tenant", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Tenant {self.id} {self.name}>"


class TenantModule(Base):
    """
    Explicit module switch for a tenant. Modules without a row fall back to
    their registry default.
    """

    __tablename__ = "tenant_modules"
    __table_args__ = (
        UniqueConstraint("tenant_id", "module", name="uq_tenant_modules_tenant_module"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    module = Column(String(64), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    tenant = relationship("Tenant", back_populates="modules", lazy="joined")


# ---------------------------------------------------------------------------
# USERS
# ---------------------------------------------------------------------------


class User(Base):
    """
    Login account bound to a single tenant.

    Owners also carry a tenant id (their home estate) but module and tenant
    checks are bypassed for them.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_tenant_role", "tenant_id", "role"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    username = Column(String(128), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(16), nullable=False, default=AccountRole.USER.value, index=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    tenant = relationship("Tenant", back_populates="users", lazy="joined")
    modules = relationship(
        "UserModule",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def is_owner(self) -> bool:
        return self.role == AccountRole.OWNER.value

    @property
    def effective_tenant_id(self) -> str:
        # Owners previewing another estate get a request-scoped override.
        return getattr(self, "_preview_tenant_id", None) or self.tenant_id

    def __repr__(self) -> str:
        return f"<User {self.username} role={self.role} tenant={self.tenant_id}>"


class UserModule(Base):
    """
    Per-user narrowing of the tenant's enabled modules (non-admin roles only).
    """

    __tablename__ = "user_modules"
    __table_args__ = (
        UniqueConstraint("user_id", "module", name="uq_user_modules_user_module"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    module = Column(String(64), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)

    user = relationship("User", back_populates="modules", lazy="joined")
