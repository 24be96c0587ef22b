from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel

AuditAction = Literal["create", "update", "delete", "upsert"]


class AuditLogRead(BaseModel):
    id: str
    tenant_id: str
    user_id: Optional[str] = None
    username: str
    role: Optional[str] = None
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    before_data: Optional[Any] = None
    after_data: Optional[Any] = None
    created_at: datetime

    class Config:
        from_attributes = True
