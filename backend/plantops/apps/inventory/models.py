from __future__ import annotations

import enum
from datetime import date, datetime, timezone

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from plantops.database import Base
from plantops.apps.accounts import models as account_models  # noqa: F401
from plantops.apps.warehouses import models as warehouse_models  # noqa: F401
from plantops.apps.work import models as work_models  # noqa: F401


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _enum_column(enum_cls, name: str) -> SAEnum:
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=lambda members: [member.value for member in members],
    )


class ItemStatusEnum(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCONTINUED = "discontinued"


class LotStatusEnum(str, enum.Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    EXPIRED = "expired"
    DEPLETED = "depleted"


class MovementTypeEnum(str, enum.Enum):
    IN = "in"
    OUT = "out"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"


class StockRequestStatusEnum(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FULFILLED = "fulfilled"


# Quantities and unit costs carry four decimal places; a line total is the
# exact product of the two.
QUANTITY = Numeric(18, 4, asdecimal=True)
MONEY = Numeric(18, 4, asdecimal=True)
TOTAL = Numeric(28, 8, asdecimal=True)


class InventoryItem(Base):
    __tablename__ = "inventory_items"
    __table_args__ = (
        UniqueConstraint("sku", name="uq_inventory_items_sku"),
        CheckConstraint("reorder_point >= 0", name="ck_inventory_items_reorder_point"),
        CheckConstraint("avg_cost >= 0", name="ck_inventory_items_avg_cost"),
        Index("ix_inventory_items_category_status", "category", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(64), nullable=False)
    name = Column(String(255), nullable=False, index=True)
    category = Column(String(100), nullable=False)
    unit = Column(String(32), nullable=False)
    reorder_point = Column(QUANTITY, nullable=False, default=0)
    status = Column(
        _enum_column(ItemStatusEnum, "inventory_item_status_enum"),
        nullable=False,
        default=ItemStatusEnum.ACTIVE,
    )
    avg_cost = Column(MONEY, nullable=False, default=0)
    description = Column(Text, nullable=True)
    suppliers = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class StockLot(Base):
    __tablename__ = "stock_lots"
    __table_args__ = (
        UniqueConstraint("lot_id", name="uq_stock_lots_lot_id"),
        CheckConstraint("quantity >= 0", name="ck_stock_lots_quantity"),
        CheckConstraint("quantity <= received_quantity", name="ck_stock_lots_quantity_le_received"),
        CheckConstraint("unit_cost > 0", name="ck_stock_lots_unit_cost"),
        Index("ix_stock_lots_fifo", "item_id", "warehouse_id", "status", "received_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    lot_id = Column(String(64), nullable=False)
    item_id = Column(Integer, ForeignKey("inventory_items.id"), nullable=False, index=True)
    warehouse_id = Column(Integer, ForeignKey("plots.id"), nullable=False, index=True)
    batch_no = Column(String(100), nullable=False)
    quantity = Column(QUANTITY, nullable=False)
    received_quantity = Column(QUANTITY, nullable=False)
    unit_cost = Column(MONEY, nullable=False)
    total_cost = Column(TOTAL, nullable=False)
    expiry_date = Column(Date, nullable=True)
    supplier = Column(String(255), nullable=False)
    status = Column(
        _enum_column(LotStatusEnum, "stock_lot_status_enum"),
        nullable=False,
        default=LotStatusEnum.AVAILABLE,
        index=True,
    )
    notes = Column(Text, nullable=True)
    received_date = Column(Date, nullable=False, default=_today)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    item = relationship("InventoryItem", lazy="selectin")
    warehouse = relationship("Plot", lazy="selectin")


class StockMovement(Base):
    """Append-only audit record of one quantity change."""

    __tablename__ = "stock_movements"
    __table_args__ = (
        UniqueConstraint("movement_id", name="uq_stock_movements_movement_id"),
        CheckConstraint("quantity > 0", name="ck_stock_movements_quantity"),
        Index("ix_stock_movements_item_created", "item_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    movement_id = Column(String(64), nullable=False)
    item_id = Column(Integer, ForeignKey("inventory_items.id"), nullable=False, index=True)
    lot_id = Column(Integer, ForeignKey("stock_lots.id"), nullable=True, index=True)
    warehouse_id = Column(Integer, ForeignKey("plots.id"), nullable=False, index=True)
    type = Column(_enum_column(MovementTypeEnum, "stock_movement_type_enum"), nullable=False, index=True)
    quantity = Column(QUANTITY, nullable=False)
    unit_cost = Column(MONEY, nullable=False)
    total_cost = Column(TOTAL, nullable=False)
    reason = Column(String(255), nullable=False)
    reference = Column(String(255), nullable=True)
    performed_by = Column(String(255), nullable=False)
    notes = Column(Text, nullable=True)
    stock_request_id = Column(Integer, ForeignKey("stock_requests.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    item = relationship("InventoryItem", lazy="selectin")
    lot = relationship("StockLot", lazy="selectin")
    warehouse = relationship("Plot", lazy="selectin")


class StockRequest(Base):
    __tablename__ = "stock_requests"
    __table_args__ = (
        UniqueConstraint("request_id", name="uq_stock_requests_request_id"),
        CheckConstraint("quantity > 0", name="ck_stock_requests_quantity"),
        Index("ix_stock_requests_status_created", "status", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(String(64), nullable=False)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("inventory_items.id"), nullable=False, index=True)
    quantity = Column(QUANTITY, nullable=False)
    warehouse_id = Column(Integer, ForeignKey("plots.id"), nullable=True, index=True)
    status = Column(
        _enum_column(StockRequestStatusEnum, "stock_request_status_enum"),
        nullable=False,
        default=StockRequestStatusEnum.PENDING,
    )
    requested_by = Column(String(255), nullable=False)
    requested_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_by = Column(String(255), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(String(255), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    fulfilled_by = Column(String(255), nullable=True)
    fulfilled_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    item = relationship("InventoryItem", lazy="selectin")
    work_order = relationship("WorkOrder", lazy="selectin")
    warehouse = relationship("Plot", lazy="selectin")


class IdempotencyKey(Base):
    __tablename__ = "inventory_idempotency_keys"
    __table_args__ = (UniqueConstraint("scope", "key", name="uq_inventory_idempotency_scope_key"),)

    id = Column(Integer, primary_key=True, index=True)
    scope = Column(String(64), nullable=False)
    key = Column(String(255), nullable=False)
    payload_hash = Column(String(64), nullable=False)
    resource_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
