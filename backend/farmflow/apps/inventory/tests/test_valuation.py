from __future__ import annotations

import pytest

from farmflow.apps.inventory.pricing import ITEM_BASE_PRICES, base_price_for
from farmflow.apps.inventory.valuation import (
    DEPLETING,
    ITEM_DELETED,
    RESTOCKING,
    UNIT_CHANGE,
    InventoryTransactionView,
    normalize_transaction_type,
    value_inventory,
)


def _tx(item_type, quantity, transaction_type, price=None):
    return InventoryTransactionView(
        item_type=item_type,
        quantity=quantity,
        transaction_type=transaction_type,
        price=price,
    )


def _newest_first(*transactions):
    """Write scenarios oldest-first, feed them the way the history is stored."""
    return list(reversed(transactions))


def test_empty_history_values_nothing():
    assert value_inventory([]) == {}


def test_restocks_only_sum_quantities_and_weight_prices():
    history = _newest_first(
        _tx("UREA", 10, RESTOCKING, 5),
        _tx("UREA", 30, RESTOCKING, 7),
        _tx("DAP", 4, RESTOCKING, 25),
    )

    values = value_inventory(history)

    assert values["UREA"].quantity == 40
    assert values["UREA"].total_value == 10 * 5 + 30 * 7
    assert values["UREA"].avg_price == pytest.approx(260 / 40)
    assert values["DAP"].quantity == 4
    assert values["DAP"].avg_price == 25


def test_depletion_consumes_oldest_layers_first():
    history = _newest_first(
        _tx("MOP", 10, RESTOCKING, 2),
        _tx("MOP", 10, RESTOCKING, 4),
        _tx("MOP", 15, DEPLETING),
    )

    value = value_inventory(history)["MOP"]

    assert value.quantity == 5
    assert value.total_value == 20
    assert value.avg_price == 4
    assert value.as_dict() == {"quantity": 5, "totalValue": 20, "avgPrice": 4}


def test_partial_depletion_keeps_remainder_of_oldest_layer():
    history = _newest_first(
        _tx("Zinc", 10, RESTOCKING, 50),
        _tx("Zinc", 10, RESTOCKING, 60),
        _tx("Zinc", 4, DEPLETING),
    )

    value = value_inventory(history)["Zinc"]

    assert value.quantity == 16
    assert value.total_value == 6 * 50 + 10 * 60


def test_exact_depletion_omits_item():
    history = _newest_first(
        _tx("HSP", 10, RESTOCKING, 8),
        _tx("HSP", 10, DEPLETING),
    )

    assert "HSP" not in value_inventory(history)


def test_over_depletion_floors_at_zero_and_later_restock_starts_fresh():
    history = _newest_first(
        _tx("Fix", 5, RESTOCKING, 280),
        _tx("Fix", 12, DEPLETING),
    )
    assert value_inventory(history) == {}

    history = _newest_first(
        _tx("Fix", 5, RESTOCKING, 280),
        _tx("Fix", 12, DEPLETING),
        _tx("Fix", 3, RESTOCKING, 300),
    )
    value = value_inventory(history)["Fix"]
    assert value.quantity == 3
    assert value.total_value == 900


def test_depleting_an_unknown_item_is_ignored():
    history = _newest_first(_tx("Petrol", 3, DEPLETING))

    assert value_inventory(history) == {}


def test_item_deleted_discards_all_layers():
    history = _newest_first(
        _tx("Trical", 10, RESTOCKING, 34),
        _tx("Trical", 5, RESTOCKING, 36),
        _tx("Trical", 15, ITEM_DELETED),
    )

    assert "Trical" not in value_inventory(history)


def test_item_deleted_then_restock_only_counts_new_stock():
    history = _newest_first(
        _tx("Trical", 10, RESTOCKING, 34),
        _tx("Trical", 10, ITEM_DELETED),
        _tx("Trical", 2, RESTOCKING, 40),
    )

    value = value_inventory(history)["Trical"]

    assert value.quantity == 2
    assert value.total_value == 80


def test_unit_change_never_alters_the_snapshot():
    base = [
        _tx("Glycerol", 4, RESTOCKING, 410),
        _tx("Glycerol", 1, DEPLETING),
    ]
    with_unit_change = base[:1] + [_tx("Glycerol", 0, UNIT_CHANGE)] + base[1:]

    assert value_inventory(_newest_first(*with_unit_change)) == value_inventory(_newest_first(*base))


def test_missing_price_falls_back_to_base_price_table():
    history = _newest_first(_tx("UREA", 10, RESTOCKING, None))

    value = value_inventory(history)["UREA"]

    assert value.total_value == 10 * ITEM_BASE_PRICES["UREA"]


def test_missing_price_without_table_entry_is_valued_at_zero():
    history = _newest_first(_tx("Home-made compost", 8, RESTOCKING, None))

    value = value_inventory(history)["Home-made compost"]

    assert value.quantity == 8
    assert value.total_value == 0
    assert value.avg_price == 0


def test_recorded_zero_price_is_not_replaced_by_fallback():
    history = _newest_first(_tx("UREA", 10, RESTOCKING, 0))

    assert value_inventory(history)["UREA"].total_value == 0


def test_custom_price_table_overrides_defaults():
    history = _newest_first(_tx("UREA", 2, RESTOCKING, None))

    assert value_inventory(history, {"UREA": 9})["UREA"].total_value == 18


def test_valuation_is_idempotent_and_does_not_mutate_input():
    history = _newest_first(
        _tx("MOP", 10, RESTOCKING, 2),
        _tx("MOP", 3, DEPLETING),
    )
    snapshot = list(history)

    first = value_inventory(history)
    second = value_inventory(history)

    assert first == second
    assert history == snapshot


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("restock", RESTOCKING),
        ("Restocking", RESTOCKING),
        (" DEPLETE ", DEPLETING),
        ("depleting", DEPLETING),
        ("item deleted", ITEM_DELETED),
        ("Unit Change", UNIT_CHANGE),
        ("transfer", DEPLETING),
        (None, DEPLETING),
    ],
)
def test_normalize_transaction_type(raw, expected):
    assert normalize_transaction_type(raw) == expected


def test_base_price_for_unknown_item_is_none():
    assert base_price_for("Gramaxone") == 450
    assert base_price_for("Unknown") is None
