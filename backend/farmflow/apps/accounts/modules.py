from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class ModuleDefinition:
    id: str
    label: str
    default_enabled: bool = True


MODULES: Tuple[ModuleDefinition, ...] = (
    ModuleDefinition("inventory", "Inventory Management"),
    ModuleDefinition("transactions", "Transaction History"),
    ModuleDefinition("accounts", "Accounts"),
    ModuleDefinition("processing", "Processing"),
    ModuleDefinition("curing", "Curing & Drying", default_enabled=False),
    ModuleDefinition("quality", "Quality & Grading", default_enabled=False),
    ModuleDefinition("dispatch", "Dispatch"),
    ModuleDefinition("sales", "Sales"),
    ModuleDefinition("billing", "Billing & Invoices"),
    ModuleDefinition("rainfall", "Rainfall"),
    ModuleDefinition("pepper", "Pepper"),
    ModuleDefinition("ai-analysis", "AI Analysis"),
    ModuleDefinition("news", "Market News"),
    ModuleDefinition("weather", "Weather"),
    ModuleDefinition("season", "Season View"),
)

MODULE_IDS: List[str] = [module.id for module in MODULES]
DEFAULT_ENABLED_MODULE_IDS: List[str] = [module.id for module in MODULES if module.default_enabled]

# Modules never exposed to non-admin roles, regardless of tenant settings.
USER_ROLE_BLOCKED_MODULES = frozenset({"balance-sheet"})


def get_module_default_enabled(module_id: str) -> bool:
    for module in MODULES:
        if module.id == module_id:
            return module.default_enabled
    return True


def _rows_to_map(rows: Optional[Iterable]) -> Dict[str, bool]:
    """
    Accept ORM rows (``.module`` / ``.enabled``) or plain dicts.
    """
    result: Dict[str, bool] = {}
    for row in rows or []:
        if isinstance(row, dict):
            result[str(row["module"])] = bool(row["enabled"])
        else:
            result[str(row.module)] = bool(row.enabled)
    return result


def resolve_enabled_modules(rows: Optional[Iterable] = None) -> List[str]:
    by_module = _rows_to_map(rows)
    return [
        module.id
        for module in MODULES
        if by_module.get(module.id, module.default_enabled)
    ]


def resolve_module_states(rows: Optional[Iterable] = None) -> List[dict]:
    by_module = _rows_to_map(rows)
    return [
        {
            "id": module.id,
            "label": module.label,
            "default_enabled": module.default_enabled,
            "enabled": by_module.get(module.id, module.default_enabled),
        }
        for module in MODULES
    ]


def filter_user_blocked_modules(module_ids: Iterable[str]) -> List[str]:
    return [module_id for module_id in module_ids if module_id not in USER_ROLE_BLOCKED_MODULES]
