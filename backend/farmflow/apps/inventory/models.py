from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from farmflow.database import Base
from farmflow.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Stored (lower-case) transaction types.
TX_RESTOCK = "restock"
TX_DEPLETE = "deplete"
TX_ITEM_DELETED = "item deleted"
TX_UNIT_CHANGE = "unit change"


class Location(Base):
    __tablename__ = "locations"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_locations_tenant_code"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    code = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class TransactionHistory(Base):
    """
    Append-mostly stock movement log. Current stock and valuations are
    derived from it.
    """

    __tablename__ = "transaction_history"
    __table_args__ = (
        Index("ix_transaction_history_tenant_date", "tenant_id", "transaction_date"),
        Index("ix_transaction_history_tenant_item", "tenant_id", "item_type", "location_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    item_type = Column(String(128), nullable=False)
    quantity = Column(Float, nullable=False, default=0.0)
    transaction_type = Column(String(32), nullable=False)
    notes = Column(Text, nullable=False, default="")
    transaction_date = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    user_id = Column(String(128), nullable=False, default="system")
    price = Column(Float, nullable=False, default=0.0)
    total_cost = Column(Float, nullable=False, default=0.0)
    unit = Column(String(16), nullable=True)
    location_id = Column(String(36), ForeignKey("locations.id", ondelete="SET NULL"), nullable=True, index=True)

    location = relationship("Location", lazy="joined")


class CurrentInventory(Base):
    """
    Materialised on-hand stock per item and location, kept at moving
    weighted-average cost by `recalc.recalculate_inventory_for_item`.
    """

    __tablename__ = "current_inventory"
    __table_args__ = (
        UniqueConstraint("item_type", "tenant_id", "location_id", name="uq_current_inventory_item_location"),
        CheckConstraint("quantity >= 0", name="check_non_negative_quantity"),
        # NULL location ids never collide under the constraint above.
        Index(
            "uq_current_inventory_item_unassigned",
            "item_type",
            "tenant_id",
            unique=True,
            postgresql_where=text("location_id IS NULL"),
            sqlite_where=text("location_id IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    item_type = Column(String(128), nullable=False)
    quantity = Column(Float, nullable=False, default=0.0)
    unit = Column(String(16), nullable=False, default="kg")
    avg_price = Column(Float, nullable=False, default=0.0)
    total_cost = Column(Float, nullable=False, default=0.0)
    location_id = Column(String(36), ForeignKey("locations.id", ondelete="SET NULL"), nullable=True, index=True)

    location = relationship("Location", lazy="joined")
