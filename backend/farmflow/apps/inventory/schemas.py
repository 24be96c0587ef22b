from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class LocationCreate(BaseModel):
    name: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)


class LocationRead(LocationCreate):
    id: str
    tenant_id: str
    created_at: datetime

    class Config:
        from_attributes = True


class TransactionCreate(BaseModel):
    # Loose types on purpose: the service applies the estate's own
    # validation rules and messages.
    item_type: Optional[str] = None
    quantity: Optional[float] = None
    transaction_type: Optional[str] = None
    notes: Optional[str] = None
    price: Optional[float] = None
    location_id: Optional[str] = None
    unit: Optional[str] = None


class TransactionUpdate(TransactionCreate):
    pass


class TransactionRead(BaseModel):
    id: int
    item_type: str
    quantity: float
    transaction_type: str
    notes: str = ""
    transaction_date: datetime
    user_id: str
    price: float = 0.0
    total_cost: float = 0.0
    unit: str = "kg"
    location_id: Optional[str] = None
    location_name: Optional[str] = None
    location_code: Optional[str] = None


class InventoryItemCreate(BaseModel):
    item_type: Optional[str] = None
    quantity: Optional[float] = 0
    unit: Optional[str] = None
    price: Optional[float] = 0
    notes: Optional[str] = None
    location_id: Optional[str] = None


class InventoryItemUpdate(BaseModel):
    item_type: Optional[str] = None
    new_item_type: Optional[str] = None
    unit: Optional[str] = None


class InventoryItemDelete(BaseModel):
    item_type: Optional[str] = None
    location_id: Optional[str] = None
    scope: str = "single"


class InventoryItemRead(BaseModel):
    name: str
    quantity: float
    unit: str
    avg_price: Optional[float] = None
    total_cost: Optional[float] = None
    location_id: Optional[str] = None
    location_name: Optional[str] = None


class InventorySummary(BaseModel):
    total_inventory_value: float = 0.0
    total_items: int = 0
    total_quantity: float = 0.0


class InventoryValueRead(BaseModel):
    quantity: float
    totalValue: float
    avgPrice: float


class InventoryValuationResponse(BaseModel):
    success: bool = True
    valuation: Dict[str, InventoryValueRead] = Field(default_factory=dict)
    total_value: float = 0.0
    transactions_considered: int = 0


class TransactionListResponse(BaseModel):
    success: bool = True
    transactions: List[TransactionRead] = Field(default_factory=list)
    count: int = 0
