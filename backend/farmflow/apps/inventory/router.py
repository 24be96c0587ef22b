from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from farmflow.database import get_db, get_read_db
from farmflow.entitlements import require_module
from farmflow.security import get_current_active_user, require_admin, require_delete, require_write
from farmflow.tenancy import tenant_context_for
from farmflow.apps.accounts import models as account_models

from . import schemas, services

inventory_router = APIRouter(
    prefix="",
    tags=["inventory"],
    dependencies=[Depends(require_module("inventory"))],
)

transactions_router = APIRouter(
    prefix="/transactions",
    tags=["transactions"],
    dependencies=[Depends(require_module("transactions"))],
)


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


@inventory_router.get("/inventory", response_model=List[schemas.InventoryItemRead])
def list_inventory(
    location: Optional[str] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.list_inventory(db, context=tenant_context_for(current_user), location=location)


@inventory_router.post("/inventory", status_code=status.HTTP_201_CREATED)
def add_inventory_item(
    payload: schemas.InventoryItemCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_write("inventory")),
):
    row = services.add_item(db, user=current_user, payload=payload)
    db.commit()
    db.refresh(row)
    return {"success": True, "item": services.inventory_row_to_dict(row)}


@inventory_router.put("/inventory")
def update_inventory_item(
    payload: schemas.InventoryItemUpdate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_write("inventory")),
):
    result = services.update_item(db, user=current_user, payload=payload)
    db.commit()
    return {"success": True, **result}


@inventory_router.delete("/inventory")
def delete_inventory_item(
    payload: schemas.InventoryItemDelete,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_delete("inventory")),
):
    deleted = services.delete_item(db, user=current_user, payload=payload)
    db.commit()
    return {"success": True, "deleted": deleted}


@inventory_router.get("/inventory/summary", response_model=schemas.InventorySummary)
def inventory_summary(
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.inventory_summary(db, context=tenant_context_for(current_user))


@inventory_router.get("/inventory/valuation", response_model=schemas.InventoryValuationResponse)
def inventory_valuation(
    location: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1, le=50000),
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.get_inventory_valuation(
        db,
        context=tenant_context_for(current_user),
        location=location,
        limit=limit,
    )


@inventory_router.post("/inventory/recalculate")
def recalculate_inventory_item(
    item_type: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_admin),
):
    results = services.recalculate_item(db, context=tenant_context_for(current_user), item_type=item_type)
    db.commit()
    return {"success": True, "results": results}


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


@inventory_router.get("/locations", response_model=List[schemas.LocationRead])
def list_locations(
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.list_locations(db, context=tenant_context_for(current_user))


@inventory_router.post(
    "/locations",
    response_model=schemas.LocationRead,
    status_code=status.HTTP_201_CREATED,
)
def create_location(
    payload: schemas.LocationCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_admin),
):
    location = services.create_location(db, user=current_user, payload=payload)
    db.commit()
    db.refresh(location)
    return location


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@transactions_router.get("", response_model=schemas.TransactionListResponse)
def list_transactions(
    item_type: Optional[str] = None,
    location: Optional[str] = None,
    limit: int = Query(services.DEFAULT_TRANSACTION_LIMIT, ge=1, le=5000),
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    rows = services.list_transactions(
        db,
        context=tenant_context_for(current_user),
        item_type=item_type,
        location=location,
        limit=limit,
    )
    transactions = [services.transaction_to_dict(row) for row in rows]
    return {"success": True, "transactions": transactions, "count": len(transactions)}


@transactions_router.post("", status_code=status.HTTP_201_CREATED)
def record_transaction(
    payload: schemas.TransactionCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_write("transactions")),
):
    row = services.record_transaction(db, user=current_user, payload=payload)
    db.commit()
    db.refresh(row)
    return {"success": True, "transaction": services.transaction_to_dict(row)}


@transactions_router.put("/{transaction_id}")
def update_transaction(
    transaction_id: int,
    payload: schemas.TransactionUpdate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_write("transactions")),
):
    row = services.update_transaction(
        db,
        user=current_user,
        transaction_id=transaction_id,
        payload=payload,
    )
    db.commit()
    db.refresh(row)
    return {
        "success": True,
        "transaction": services.transaction_to_dict(row),
        "message": "Transaction updated successfully",
    }


@transactions_router.delete("/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_delete("transactions")),
):
    deleted = services.delete_transaction(db, user=current_user, transaction_id=transaction_id)
    db.commit()
    return {"success": True, "deleted": deleted}
