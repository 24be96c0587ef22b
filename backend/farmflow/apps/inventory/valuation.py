"""
FIFO inventory valuation.

Replays an estate's transaction history into per-item cost layers and
reports what is still on hand and what it is worth. The replay is a pure
function of its input: nothing is persisted and every call starts from an
empty layer set.

Rules, per item type, oldest transaction first:

- Restocking appends a layer at the recorded price, or at the fallback
  base price when no price was recorded, or at 0.
- Depleting consumes layers from the oldest end. Demand beyond the stock
  on hand is dropped, so quantity never goes negative.
- Item Deleted discards every layer.
- Unit Change (and anything unrecognised) leaves the layers alone.

Only items with a positive remaining quantity are reported.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Mapping, Optional, Sequence

from .pricing import base_price_for

RESTOCKING = "Restocking"
DEPLETING = "Depleting"
ITEM_DELETED = "Item Deleted"
UNIT_CHANGE = "Unit Change"

_DISPLAY_TYPES = {
    "restock": RESTOCKING,
    "restocking": RESTOCKING,
    "deplete": DEPLETING,
    "depleting": DEPLETING,
    "item deleted": ITEM_DELETED,
    "unit change": UNIT_CHANGE,
}


def normalize_transaction_type(raw: Optional[str]) -> str:
    """Map a stored transaction type to its display form (default Depleting)."""
    return _DISPLAY_TYPES.get(str(raw or "").strip().lower(), DEPLETING)


@dataclass(frozen=True)
class InventoryTransactionView:
    item_type: str
    quantity: float
    transaction_type: str
    price: Optional[float] = None
    id: Optional[str] = None
    notes: str = ""
    date: Optional[str] = None
    user: Optional[str] = None
    unit: str = "kg"
    total_cost: Optional[float] = None


@dataclass
class CostLayer:
    quantity: float
    price: float


@dataclass(frozen=True)
class InventoryValue:
    quantity: float
    total_value: float
    avg_price: float

    def as_dict(self) -> dict:
        return {
            "quantity": self.quantity,
            "totalValue": self.total_value,
            "avgPrice": self.avg_price,
        }


def _layer_price(tx: InventoryTransactionView, base_prices: Optional[Mapping[str, float]]) -> float:
    if tx.price is not None:
        return tx.price
    fallback = base_price_for(tx.item_type, base_prices)
    return fallback if fallback is not None else 0


def _deplete(layers: Deque[CostLayer], quantity: float) -> None:
    remaining = quantity
    while remaining > 0 and layers:
        oldest = layers[0]
        if oldest.quantity <= remaining:
            remaining -= oldest.quantity
            layers.popleft()
        else:
            oldest.quantity -= remaining
            remaining = 0


def value_inventory(
    transactions: Sequence[InventoryTransactionView],
    base_prices: Optional[Mapping[str, float]] = None,
) -> Dict[str, InventoryValue]:
    """
    Value the stock described by `transactions`.

    `transactions` must be ordered newest first, the order the history
    endpoints return. The sequence itself is not modified.
    """
    if not transactions:
        return {}

    stock: Dict[str, Deque[CostLayer]] = {}

    for tx in reversed(transactions):
        layers = stock.setdefault(tx.item_type, deque())

        if tx.transaction_type == RESTOCKING:
            layers.append(CostLayer(quantity=tx.quantity, price=_layer_price(tx, base_prices)))
        elif tx.transaction_type == DEPLETING:
            _deplete(layers, tx.quantity)
        elif tx.transaction_type == ITEM_DELETED:
            layers.clear()

    values: Dict[str, InventoryValue] = {}
    for item_type, layers in stock.items():
        quantity = sum(layer.quantity for layer in layers)
        if quantity <= 0:
            continue
        total_value = sum(layer.quantity * layer.price for layer in layers)
        values[item_type] = InventoryValue(
            quantity=quantity,
            total_value=total_value,
            avg_price=total_value / quantity,
        )
    return values
