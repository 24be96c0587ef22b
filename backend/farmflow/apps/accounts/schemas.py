from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# AUTH
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    role: str
    tenant_id: str


class UserRead(BaseModel):
    id: str
    tenant_id: str
    username: str
    role: str
    role_label: str
    is_active: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None
    enabled_modules: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# MODULES
# ---------------------------------------------------------------------------


class ModuleState(BaseModel):
    id: str
    label: str
    default_enabled: bool
    enabled: bool


class ModuleStateUpdate(BaseModel):
    id: str
    enabled: bool


class TenantModulesUpdate(BaseModel):
    modules: List[ModuleStateUpdate] = Field(default_factory=list)


class UserModulesUpdate(BaseModel):
    modules: List[ModuleStateUpdate] = Field(default_factory=list)


class UserModulesRead(BaseModel):
    user_id: str
    source: str
    modules: List[ModuleState] = Field(default_factory=list)
