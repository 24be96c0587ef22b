"""
Moving weighted-average recalculation of `current_inventory`.

This is the stored, per-location view of stock used by listings and the
summary cards. The FIFO valuation in `valuation.py` is computed on demand
from the same history and is not stored.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from farmflow.tenancy import TenantContext, tenant_query

from . import models

logger = logging.getLogger(__name__)

DEFAULT_UNIT = "kg"


def is_restock_type(value: Optional[str]) -> bool:
    return str(value or "").strip().lower() in {"restock", "restocking"}


def replay_weighted_average(rows: Iterable[models.TransactionHistory]) -> Tuple[float, float]:
    """
    Replay history rows (oldest first) and return `(quantity, total_cost)`.

    Restocks add their quantity and total cost. Every other row removes its
    quantity at the running average cost; both figures are floored at zero.
    """
    running_qty = 0.0
    running_cost = 0.0
    for row in rows:
        qty = float(row.quantity or 0)
        if is_restock_type(row.transaction_type):
            running_qty += qty
            running_cost += float(row.total_cost or 0)
            continue
        avg_cost = running_cost / running_qty if running_qty > 0 else 0.0
        running_qty = max(0.0, running_qty - qty)
        running_cost = max(0.0, running_cost - avg_cost * qty)
    return running_qty, running_cost


def _location_filter(query, column, location_id: Optional[str]):
    if location_id is None:
        return query.filter(column.is_(None))
    return query.filter(column == location_id)


def get_current_row(
    db: Session,
    context: TenantContext,
    item_type: str,
    location_id: Optional[str],
) -> Optional[models.CurrentInventory]:
    query = tenant_query(db, models.CurrentInventory, context).filter(
        models.CurrentInventory.item_type == item_type
    )
    return _location_filter(query, models.CurrentInventory.location_id, location_id).first()


def recalculate_inventory_for_location(
    db: Session,
    context: TenantContext,
    item_type: str,
    location_id: Optional[str],
    unit: Optional[str] = None,
) -> dict:
    """
    Replay one item at one location and upsert its `current_inventory` row.

    `unit` is only used when the row does not exist yet.
    """
    history = tenant_query(db, models.TransactionHistory, context).filter(
        models.TransactionHistory.item_type == item_type
    )
    history = _location_filter(history, models.TransactionHistory.location_id, location_id)
    rows = history.order_by(
        models.TransactionHistory.transaction_date.asc(),
        models.TransactionHistory.id.asc(),
    ).all()

    quantity, total_cost = replay_weighted_average(rows)
    avg_price = total_cost / quantity if quantity > 0 else 0.0

    current = get_current_row(db, context, item_type, location_id)
    if current is not None and current.unit:
        unit = current.unit
    else:
        unit = unit or DEFAULT_UNIT
    if current is None:
        current = models.CurrentInventory(
            tenant_id=context.tenant_id,
            item_type=item_type,
            location_id=location_id,
            unit=unit,
        )
    current.quantity = quantity
    current.total_cost = total_cost
    current.avg_price = avg_price
    db.add(current)
    db.flush()

    logger.debug(
        "Recalculated %s at %s for tenant %s: qty=%s cost=%s",
        item_type,
        location_id or "unassigned",
        context.tenant_id,
        quantity,
        total_cost,
    )
    return {
        "item_type": item_type,
        "location_id": location_id,
        "quantity": quantity,
        "total_cost": total_cost,
        "avg_price": avg_price,
        "unit": unit,
    }


def recalculate_inventory_for_item(
    db: Session,
    context: TenantContext,
    item_type: str,
) -> List[dict]:
    """
    Recalculate every location the item has history at (or the unassigned
    row when it has no history at all).
    """
    location_ids = [
        row[0]
        for row in tenant_query(db, models.TransactionHistory, context)
        .with_entities(models.TransactionHistory.location_id)
        .filter(models.TransactionHistory.item_type == item_type)
        .distinct()
        .all()
    ]
    if not location_ids:
        return [recalculate_inventory_for_location(db, context, item_type, None)]
    return [
        recalculate_inventory_for_location(db, context, item_type, location_id)
        for location_id in location_ids
    ]
