from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field, PlainSerializer

from .models import ItemStatusEnum, LotStatusEnum, MovementTypeEnum, StockRequestStatusEnum

# Decimal in Python, JSON number on the wire.
Amount = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# ---------------------------------------------------------------------------
# ITEMS
# ---------------------------------------------------------------------------


class ItemCreate(BaseModel):
    sku: str
    name: str
    category: str
    unit: str
    reorder_point: Amount = Decimal("0")
    avg_cost: Amount = Decimal("0")
    status: ItemStatusEnum = ItemStatusEnum.ACTIVE
    description: Optional[str] = None
    suppliers: List[str] = Field(default_factory=list)


class ItemUpdate(BaseModel):
    sku: Optional[str] = None
    name: Optional[str] = None
    category: Optional[str] = None
    unit: Optional[str] = None
    reorder_point: Optional[Amount] = None
    avg_cost: Optional[Amount] = None
    status: Optional[ItemStatusEnum] = None
    description: Optional[str] = None
    suppliers: Optional[List[str]] = None


class ItemRead(BaseModel):
    id: int
    sku: str
    name: str
    category: str
    unit: str
    reorder_point: Amount
    avg_cost: Amount
    status: ItemStatusEnum
    description: Optional[str] = None
    suppliers: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ItemSummary(BaseModel):
    id: int
    sku: str
    name: str
    unit: str

    class Config:
        from_attributes = True


class WarehouseSummary(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# LOTS
# ---------------------------------------------------------------------------


class LotReceive(BaseModel):
    item_id: int
    warehouse_id: int
    batch_no: str
    quantity: Amount
    unit_cost: Amount
    supplier: str
    expiry_date: Optional[date] = None
    received_date: Optional[date] = None
    notes: Optional[str] = None


class LotRead(BaseModel):
    id: int
    lot_id: str
    item_id: int
    warehouse_id: int
    batch_no: str
    quantity: Amount
    received_quantity: Amount
    unit_cost: Amount
    total_cost: Amount
    expiry_date: Optional[date] = None
    supplier: str
    status: LotStatusEnum
    notes: Optional[str] = None
    received_date: date
    created_at: datetime
    updated_at: datetime
    item: Optional[ItemSummary] = None
    warehouse: Optional[WarehouseSummary] = None

    class Config:
        from_attributes = True


class StockRemove(BaseModel):
    lot_id: int
    quantity: Amount
    reason: str
    performed_by: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    stock_request_id: Optional[int] = None


# ---------------------------------------------------------------------------
# MOVEMENTS
# ---------------------------------------------------------------------------


class LotSummary(BaseModel):
    id: int
    lot_id: str
    batch_no: str

    class Config:
        from_attributes = True


class MovementRead(BaseModel):
    id: int
    movement_id: str
    item_id: int
    lot_id: Optional[int] = None
    warehouse_id: int
    type: MovementTypeEnum
    quantity: Amount
    unit_cost: Amount
    total_cost: Amount
    reason: str
    reference: Optional[str] = None
    performed_by: str
    notes: Optional[str] = None
    stock_request_id: Optional[int] = None
    created_at: datetime
    item: Optional[ItemSummary] = None
    lot: Optional[LotSummary] = None
    warehouse: Optional[WarehouseSummary] = None

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# STOCK REQUESTS
# ---------------------------------------------------------------------------


class StockRequestCreate(BaseModel):
    work_order_id: int
    item_id: int
    quantity: Amount
    warehouse_id: Optional[int] = None
    requested_by: Optional[str] = None
    notes: Optional[str] = None


class StockRequestApprove(BaseModel):
    approved_by: Optional[str] = None
    notes: Optional[str] = None


class StockRequestReject(BaseModel):
    reason: str = ""
    rejected_by: Optional[str] = None


class StockRequestFulfill(BaseModel):
    performed_by: Optional[str] = None


class StockRequestRead(BaseModel):
    id: int
    request_id: str
    work_order_id: int
    work_order_title: Optional[str] = None
    item_id: int
    item: Optional[ItemSummary] = None
    quantity: Amount
    warehouse_id: Optional[int] = None
    warehouse: Optional[WarehouseSummary] = None
    status: StockRequestStatusEnum
    requested_by: str
    requested_by_user_id: Optional[int] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    fulfilled_by: Optional[str] = None
    fulfilled_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    available_stock: Optional[Amount] = None

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# STATS
# ---------------------------------------------------------------------------


class InventoryStats(BaseModel):
    total_items: int
    total_value: Amount
    warehouses: int
    low_stock_items: int
    recent_movements: int
