# backend/farmflow/models.py
"""
Single import point that registers every table on `Base.metadata`.
"""

from .apps.accounts import models as accounts_models    # tenants / users / module switches
from .apps.audit import models as audit_models          # audit trail
from .apps.inventory import models as inventory_models  # locations / history / current stock

__all__ = [
    "accounts_models",
    "audit_models",
    "inventory_models",
]
