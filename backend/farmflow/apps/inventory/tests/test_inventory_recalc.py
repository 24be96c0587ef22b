from __future__ import annotations

from types import SimpleNamespace

import pytest

from farmflow.apps.inventory import models as inventory_models
from farmflow.apps.inventory.recalc import (
    recalculate_inventory_for_item,
    recalculate_inventory_for_location,
    replay_weighted_average,
)
from farmflow.tenancy import TenantContext


def _row(transaction_type, quantity, total_cost=0.0):
    return SimpleNamespace(transaction_type=transaction_type, quantity=quantity, total_cost=total_cost)


def _history(db, tenant_id, item_type, transaction_type, quantity, price=0.0, location_id=None):
    row = inventory_models.TransactionHistory(
        tenant_id=tenant_id,
        item_type=item_type,
        quantity=quantity,
        transaction_type=transaction_type,
        price=price,
        total_cost=quantity * price,
        location_id=location_id,
    )
    db.add(row)
    db.flush()
    return row


def test_weighted_average_depletes_at_running_average_cost():
    quantity, total_cost = replay_weighted_average(
        [
            _row("restock", 10, 20),
            _row("restock", 10, 40),
            _row("deplete", 15),
        ]
    )

    assert quantity == 5
    assert total_cost == pytest.approx(15)


def test_weighted_average_floors_at_zero():
    quantity, total_cost = replay_weighted_average(
        [
            _row("restock", 4, 40),
            _row("deplete", 10),
        ]
    )

    assert quantity == 0
    assert total_cost == 0


def test_weighted_average_treats_item_deleted_as_removal_and_ignores_unit_change():
    quantity, total_cost = replay_weighted_average(
        [
            _row("restock", 6, 60),
            _row("unit change", 0),
            _row("item deleted", 6),
            _row("Restocking", 2, 30),
        ]
    )

    assert quantity == 2
    assert total_cost == 30


def test_recalculate_upserts_current_inventory_row(db_session, tenant):
    context = TenantContext(tenant_id=tenant.id, role="admin")
    _history(db_session, tenant.id, "UREA", "restock", 10, price=6)
    _history(db_session, tenant.id, "UREA", "deplete", 4)

    result = recalculate_inventory_for_location(db_session, context, "UREA", None, unit="bag")

    assert result["quantity"] == 6
    assert result["total_cost"] == pytest.approx(36)
    assert result["avg_price"] == pytest.approx(6)
    assert result["unit"] == "bag"

    _history(db_session, tenant.id, "UREA", "restock", 4, price=11)
    result = recalculate_inventory_for_location(db_session, context, "UREA", None)

    rows = db_session.query(inventory_models.CurrentInventory).all()
    assert len(rows) == 1
    assert rows[0].quantity == 10
    assert rows[0].total_cost == pytest.approx(80)
    assert rows[0].unit == "bag"


def test_recalculate_item_covers_every_location(db_session, tenant):
    context = TenantContext(tenant_id=tenant.id, role="admin")
    north = inventory_models.Location(tenant_id=tenant.id, name="North Store", code="N")
    db_session.add(north)
    db_session.flush()

    _history(db_session, tenant.id, "DAP", "restock", 5, price=28)
    _history(db_session, tenant.id, "DAP", "restock", 3, price=30, location_id=north.id)

    results = recalculate_inventory_for_item(db_session, context, "DAP")

    by_location = {result["location_id"]: result for result in results}
    assert set(by_location) == {None, north.id}
    assert by_location[None]["quantity"] == 5
    assert by_location[north.id]["total_cost"] == 90


def test_recalculate_item_without_history_writes_empty_unassigned_row(db_session, tenant):
    context = TenantContext(tenant_id=tenant.id)

    results = recalculate_inventory_for_item(db_session, context, "Zinc")

    assert results == [
        {
            "item_type": "Zinc",
            "location_id": None,
            "quantity": 0.0,
            "total_cost": 0.0,
            "avg_price": 0.0,
            "unit": "kg",
        }
    ]


def test_recalculate_ignores_other_tenants_history(db_session, make_tenant):
    estate_a = make_tenant("Estate A")
    estate_b = make_tenant("Estate B")
    _history(db_session, estate_a.id, "MOP", "restock", 10, price=3)
    _history(db_session, estate_b.id, "MOP", "restock", 99, price=3)

    result = recalculate_inventory_for_location(db_session, TenantContext(estate_a.id), "MOP", None)

    assert result["quantity"] == 10
