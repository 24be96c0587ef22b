"""
Fallback unit prices (INR) per item type.

Only consulted when a restock row has no recorded price. Editing this table
revalues every unpriced historical restock on the next valuation.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional

ITEM_BASE_PRICES: Dict[str, float] = {
    "UREA": 6,
    "MOP": 3,
    "DAP": 28,
    "MOP white": 34,
    "MgSO4": 10,
    "MOP+UREA Mix": 26,  # per kg
    "Phosphoric Acid": 35,
    "Trical": 34,
    "Glycerol": 410,
    "Madam oil": 320,
    "19:19:19": 195,
    "Zinc": 56,
    "Contact": 28,  # per kg
    "N P K Potassium Nitrate": 28,
    "Soluble": 900,
    "HSP": 8,
    "Petrol": 103,
    "Rock Phosphate": 10,
    "Micromin": 80,
    "Fix": 280,
    "Polyhalite": 35,
    "Gramaxone": 450,  # per litre
}


def base_price_for(item_type: str, prices: Optional[Mapping[str, float]] = None) -> Optional[float]:
    table = ITEM_BASE_PRICES if prices is None else prices
    return table.get(item_type)
