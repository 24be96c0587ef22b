from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from farmflow.apps.accounts import models as account_models
from farmflow.apps.audit import services as audit_services
from farmflow.tenancy import TenantContext, tenant_context_for, tenant_query

from . import models, schemas
from .recalc import (
    DEFAULT_UNIT,
    get_current_row,
    is_restock_type,
    recalculate_inventory_for_item,
    recalculate_inventory_for_location,
)
from .valuation import InventoryTransactionView, normalize_transaction_type, value_inventory

logger = logging.getLogger(__name__)

UNASSIGNED = "unassigned"
DEFAULT_TRANSACTION_LIMIT = 100


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _normalize_location_id(location_id: Optional[str]) -> Optional[str]:
    value = (location_id or "").strip()
    if not value or value.lower() == UNASSIGNED:
        return None
    return value


def _filter_location(query, column, location: Optional[str]):
    """Apply a `location` query parameter: blank = all, "unassigned" = none."""
    value = (location or "").strip()
    if not value:
        return query
    if value.lower() == UNASSIGNED:
        return query.filter(column.is_(None))
    return query.filter(column == value)


def _ensure_location(db: Session, context: TenantContext, location_id: Optional[str]) -> Optional[models.Location]:
    if location_id is None:
        return None
    location = (
        tenant_query(db, models.Location, context)
        .filter(models.Location.id == location_id)
        .first()
    )
    if location is None:
        raise _bad_request("Unknown location")
    return location


def _positive_quantity(value: Any) -> float:
    try:
        quantity = float(value)
    except (TypeError, ValueError):
        raise _bad_request("Quantity must be a positive number")
    if not math.isfinite(quantity) or quantity <= 0:
        raise _bad_request("Quantity must be a positive number")
    return quantity


def _price(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise _bad_request("Price must be a number")
    if not math.isfinite(price) or price < 0:
        raise _bad_request("Price must be a non-negative number")
    return price


def transaction_to_dict(row: models.TransactionHistory) -> Dict[str, Any]:
    location = row.location
    return {
        "id": row.id,
        "item_type": row.item_type,
        "quantity": row.quantity,
        "transaction_type": row.transaction_type,
        "notes": row.notes or "",
        "transaction_date": row.transaction_date,
        "user_id": row.user_id,
        "price": row.price or 0.0,
        "total_cost": row.total_cost or 0.0,
        "unit": row.unit or DEFAULT_UNIT,
        "location_id": row.location_id,
        "location_name": location.name if location is not None else None,
        "location_code": location.code if location is not None else None,
    }


def inventory_row_to_dict(row: models.CurrentInventory) -> Dict[str, Any]:
    location = row.location
    return {
        "name": row.item_type,
        "quantity": row.quantity,
        "unit": row.unit or DEFAULT_UNIT,
        "avg_price": row.avg_price,
        "total_cost": row.total_cost,
        "location_id": row.location_id,
        "location_name": location.name if location is not None else None,
    }


def to_transaction_view(row: models.TransactionHistory) -> InventoryTransactionView:
    """
    Map a stored row to the valuation input.

    A stored price of 0 means "not recorded", so the fallback price table
    applies to it.
    """
    return InventoryTransactionView(
        id=str(row.id),
        item_type=row.item_type,
        quantity=float(row.quantity or 0),
        transaction_type=normalize_transaction_type(row.transaction_type),
        price=row.price if row.price else None,
        notes=row.notes or "",
        date=row.transaction_date.isoformat() if row.transaction_date else None,
        user=row.user_id,
        unit=row.unit or DEFAULT_UNIT,
        total_cost=row.total_cost,
    )


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


def list_locations(db: Session, *, context: TenantContext) -> List[models.Location]:
    return (
        tenant_query(db, models.Location, context)
        .order_by(models.Location.name.asc(), models.Location.code.asc())
        .all()
    )


def create_location(
    db: Session,
    *,
    user: account_models.User,
    payload: schemas.LocationCreate,
) -> models.Location:
    context = tenant_context_for(user)
    name = payload.name.strip()
    code = payload.code.strip().upper()
    if not name or not code:
        raise _bad_request("Location name and code are required")

    existing = (
        tenant_query(db, models.Location, context)
        .filter(models.Location.code == code)
        .first()
    )
    if existing is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A location with that code already exists",
        )

    location = models.Location(tenant_id=context.tenant_id, name=name, code=code)
    db.add(location)
    db.flush()
    audit_services.log_audit_event(
        db,
        user,
        action="create",
        entity_type="location",
        entity_id=location.id,
        after={"name": name, "code": code},
    )
    return location


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


def record_transaction(
    db: Session,
    *,
    user: account_models.User,
    payload: schemas.TransactionCreate,
) -> models.TransactionHistory:
    context = tenant_context_for(user)
    item_type = (payload.item_type or "").strip()
    if not item_type or payload.quantity is None or not (payload.transaction_type or "").strip():
        raise _bad_request("item_type, quantity and transaction_type are required")

    quantity = _positive_quantity(payload.quantity)
    price = _price(payload.price)
    transaction_type = models.TX_RESTOCK if is_restock_type(payload.transaction_type) else models.TX_DEPLETE
    location_id = _normalize_location_id(payload.location_id)
    _ensure_location(db, context, location_id)

    unit = (payload.unit or "").strip()
    if not unit:
        current = get_current_row(db, context, item_type, location_id)
        unit = current.unit if current is not None and current.unit else DEFAULT_UNIT

    row = models.TransactionHistory(
        tenant_id=context.tenant_id,
        item_type=item_type,
        quantity=quantity,
        transaction_type=transaction_type,
        notes=payload.notes or "",
        user_id=getattr(user, "username", None) or "system",
        price=price,
        total_cost=quantity * price,
        unit=unit,
        location_id=location_id,
    )
    db.add(row)
    db.flush()

    recalculate_inventory_for_location(db, context, item_type, location_id, unit=unit)
    audit_services.log_audit_event(
        db,
        user,
        action="create",
        entity_type="transaction_history",
        entity_id=row.id,
        after=transaction_to_dict(row),
    )
    logger.info(
        "Recorded %s of %s %s for tenant %s",
        transaction_type,
        quantity,
        item_type,
        context.tenant_id,
    )
    return row


def list_transactions(
    db: Session,
    *,
    context: TenantContext,
    item_type: Optional[str] = None,
    location: Optional[str] = None,
    limit: Optional[int] = DEFAULT_TRANSACTION_LIMIT,
) -> List[models.TransactionHistory]:
    """
    Newest first. `limit` only applies to the unfiltered feed; an item's
    full history is always returned.
    """
    query = tenant_query(db, models.TransactionHistory, context)
    if item_type:
        query = query.filter(models.TransactionHistory.item_type == item_type)
    query = _filter_location(query, models.TransactionHistory.location_id, location)
    query = query.order_by(
        models.TransactionHistory.transaction_date.desc(),
        models.TransactionHistory.id.desc(),
    )
    if not item_type and limit:
        query = query.limit(max(1, int(limit)))
    return query.all()


def update_transaction(
    db: Session,
    *,
    user: account_models.User,
    transaction_id: int,
    payload: schemas.TransactionUpdate,
) -> models.TransactionHistory:
    """
    Correct a recorded transaction in place.

    Omitting `location_id` keeps the stored location; sending it blank or
    "unassigned" clears it. Stock is recalculated for the old and the new
    item/location pair.
    """
    context = tenant_context_for(user)
    item_type = (payload.item_type or "").strip()
    if not item_type or payload.quantity is None or not (payload.transaction_type or "").strip():
        raise _bad_request("item_type, quantity and transaction_type are required")

    row = (
        tenant_query(db, models.TransactionHistory, context)
        .filter(models.TransactionHistory.id == transaction_id)
        .first()
    )
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")

    quantity = _positive_quantity(payload.quantity)
    price = _price(payload.price)
    if "location_id" in payload.model_fields_set:
        location_id = _normalize_location_id(payload.location_id)
        _ensure_location(db, context, location_id)
    else:
        location_id = row.location_id

    before = transaction_to_dict(row)
    row.item_type = item_type
    row.quantity = quantity
    row.transaction_type = models.TX_RESTOCK if is_restock_type(payload.transaction_type) else models.TX_DEPLETE
    row.notes = payload.notes or ""
    row.price = price
    row.total_cost = quantity * price
    row.location_id = location_id
    if (payload.unit or "").strip():
        row.unit = payload.unit.strip()
    db.flush()

    affected = [(before["item_type"], before["location_id"]), (item_type, location_id)]
    for affected_item, affected_location in dict.fromkeys(affected):
        recalculate_inventory_for_location(db, context, affected_item, affected_location, unit=row.unit)

    db.refresh(row)
    after = transaction_to_dict(row)
    audit_services.log_audit_event(
        db,
        user,
        action="update",
        entity_type="transaction_history",
        entity_id=transaction_id,
        before=before,
        after=after,
    )
    logger.info("Updated transaction %s for tenant %s", transaction_id, context.tenant_id)
    return row


def delete_transaction(
    db: Session,
    *,
    user: account_models.User,
    transaction_id: int,
) -> Dict[str, Any]:
    context = tenant_context_for(user)
    row = (
        tenant_query(db, models.TransactionHistory, context)
        .filter(models.TransactionHistory.id == transaction_id)
        .first()
    )
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")

    before = transaction_to_dict(row)
    db.delete(row)
    db.flush()

    recalculate_inventory_for_location(db, context, before["item_type"], before["location_id"])
    audit_services.log_audit_event(
        db,
        user,
        action="delete",
        entity_type="transaction_history",
        entity_id=transaction_id,
        before=before,
    )
    return before


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


def add_item(
    db: Session,
    *,
    user: account_models.User,
    payload: schemas.InventoryItemCreate,
) -> models.CurrentInventory:
    context = tenant_context_for(user)
    item_type = (payload.item_type or "").strip()
    if not item_type:
        raise _bad_request("item_type is required")

    quantity = float(payload.quantity or 0)
    if not math.isfinite(quantity) or quantity < 0:
        raise _bad_request("Quantity must be zero or a positive number")
    price = _price(payload.price)
    unit = (payload.unit or "").strip() or DEFAULT_UNIT
    location_id = _normalize_location_id(payload.location_id)
    _ensure_location(db, context, location_id)

    current = get_current_row(db, context, item_type, location_id)
    if current is None:
        current = models.CurrentInventory(
            tenant_id=context.tenant_id,
            item_type=item_type,
            location_id=location_id,
            quantity=0.0,
            avg_price=0.0,
            total_cost=0.0,
        )
        db.add(current)
    current.unit = unit
    db.flush()

    if quantity > 0:
        db.add(
            models.TransactionHistory(
                tenant_id=context.tenant_id,
                item_type=item_type,
                quantity=quantity,
                transaction_type=models.TX_RESTOCK,
                notes=payload.notes or "Opening stock",
                user_id=getattr(user, "username", None) or "system",
                price=price,
                total_cost=quantity * price,
                unit=unit,
                location_id=location_id,
            )
        )
        db.flush()
        recalculate_inventory_for_location(db, context, item_type, location_id)

    audit_services.log_audit_event(
        db,
        user,
        action="create",
        entity_type="current_inventory",
        entity_id=item_type,
        after=inventory_row_to_dict(current),
    )
    return current


def update_item(
    db: Session,
    *,
    user: account_models.User,
    payload: schemas.InventoryItemUpdate,
) -> Dict[str, Any]:
    context = tenant_context_for(user)
    item_type = (payload.item_type or "").strip()
    if not item_type:
        raise _bad_request("item_type is required")

    rows = (
        tenant_query(db, models.CurrentInventory, context)
        .filter(models.CurrentInventory.item_type == item_type)
        .all()
    )
    if not rows:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")

    new_item_type = (payload.new_item_type or "").strip()
    rename = bool(new_item_type) and new_item_type != item_type
    new_unit = (payload.unit or "").strip()
    unit_changed = bool(new_unit) and any((row.unit or DEFAULT_UNIT) != new_unit for row in rows)
    if not rename and not unit_changed:
        raise _bad_request("Nothing to update")

    if rename:
        clash = (
            tenant_query(db, models.CurrentInventory, context)
            .filter(models.CurrentInventory.item_type == new_item_type)
            .first()
        )
        if clash is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="An item with that name already exists",
            )

    before = [inventory_row_to_dict(row) for row in rows]
    final_name = new_item_type if rename else item_type

    if rename:
        for row in rows:
            row.item_type = new_item_type
        tenant_query(db, models.TransactionHistory, context).filter(
            models.TransactionHistory.item_type == item_type
        ).update({models.TransactionHistory.item_type: new_item_type}, synchronize_session="fetch")

    if unit_changed:
        for row in rows:
            old_unit = row.unit or DEFAULT_UNIT
            if old_unit == new_unit:
                continue
            row.unit = new_unit
            db.add(
                models.TransactionHistory(
                    tenant_id=context.tenant_id,
                    item_type=final_name,
                    quantity=0.0,
                    transaction_type=models.TX_UNIT_CHANGE,
                    notes=f"Unit changed from {old_unit} to {new_unit}",
                    user_id=getattr(user, "username", None) or "system",
                    unit=new_unit,
                    location_id=row.location_id,
                )
            )
    db.flush()

    after = [inventory_row_to_dict(row) for row in rows]
    audit_services.log_audit_event(
        db,
        user,
        action="update",
        entity_type="current_inventory",
        entity_id=final_name,
        before=before,
        after=after,
    )
    return {
        "item_type": final_name,
        "previous_item_type": item_type,
        "unit": new_unit or rows[0].unit,
        "renamed": rename,
        "unit_changed": unit_changed,
    }


def delete_item(
    db: Session,
    *,
    user: account_models.User,
    payload: schemas.InventoryItemDelete,
) -> int:
    """
    Remove an item at one location, or everywhere with `scope="all"`.

    Stock still on hand is written off with an `item deleted` transaction
    first so the history explains where it went. Returns the number of
    inventory rows removed.
    """
    context = tenant_context_for(user)
    item_type = (payload.item_type or "").strip()
    if not item_type:
        raise _bad_request("item_type is required")

    delete_all = (payload.scope or "").strip().lower() == "all"
    if not delete_all and not (payload.location_id or "").strip():
        raise _bad_request("location_id is required unless scope is 'all'")

    query = tenant_query(db, models.CurrentInventory, context).filter(
        models.CurrentInventory.item_type == item_type
    )
    if not delete_all:
        query = _filter_location(query, models.CurrentInventory.location_id, payload.location_id)
    rows = query.all()
    if not rows:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")

    before = [inventory_row_to_dict(row) for row in rows]
    for row in rows:
        if (row.quantity or 0) > 0:
            db.add(
                models.TransactionHistory(
                    tenant_id=context.tenant_id,
                    item_type=item_type,
                    quantity=row.quantity,
                    transaction_type=models.TX_ITEM_DELETED,
                    notes="Item deleted",
                    user_id=getattr(user, "username", None) or "system",
                    price=row.avg_price or 0.0,
                    total_cost=row.total_cost or 0.0,
                    unit=row.unit,
                    location_id=row.location_id,
                )
            )
        db.delete(row)
    db.flush()

    audit_services.log_audit_event(
        db,
        user,
        action="delete",
        entity_type="current_inventory",
        entity_id=item_type,
        before=before,
    )
    logger.info("Deleted %s inventory rows for %s (tenant %s)", len(rows), item_type, context.tenant_id)
    return len(rows)


def recalculate_item(db: Session, *, context: TenantContext, item_type: str) -> List[dict]:
    return recalculate_inventory_for_item(db, context, item_type)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def list_inventory(
    db: Session,
    *,
    context: TenantContext,
    location: Optional[str] = None,
) -> List[Dict[str, Any]]:
    query = _filter_location(
        tenant_query(db, models.CurrentInventory, context),
        models.CurrentInventory.location_id,
        location,
    )
    rows = query.order_by(models.CurrentInventory.item_type.asc()).all()
    return [inventory_row_to_dict(row) for row in rows]


def inventory_summary(db: Session, *, context: TenantContext) -> Dict[str, Any]:
    rows = tenant_query(db, models.CurrentInventory, context).all()
    return {
        "total_inventory_value": sum(float(row.total_cost or 0) for row in rows),
        "total_items": len({row.item_type for row in rows}),
        "total_quantity": sum(float(row.quantity or 0) for row in rows),
    }


def get_inventory_valuation(
    db: Session,
    *,
    context: TenantContext,
    location: Optional[str] = None,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """
    FIFO valuation of the tenant's history (optionally one location).

    With `limit`, only the newest `limit` rows are replayed.
    """
    query = _filter_location(
        tenant_query(db, models.TransactionHistory, context),
        models.TransactionHistory.location_id,
        location,
    ).order_by(
        models.TransactionHistory.transaction_date.desc(),
        models.TransactionHistory.id.desc(),
    )
    if limit:
        query = query.limit(max(1, int(limit)))
    rows = query.all()

    values = value_inventory([to_transaction_view(row) for row in rows])
    return {
        "success": True,
        "valuation": {item: value.as_dict() for item, value in values.items()},
        "total_value": sum(value.total_value for value in values.values()),
        "transactions_considered": len(rows),
    }
