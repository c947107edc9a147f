from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from plantops.apps.warehouses import services as warehouse_services

from . import models, schemas
from .quantities import QUANTUM, as_decimal

RECENT_MOVEMENT_DAYS = 7


def inventory_stats(db: Session) -> schemas.InventoryStats:
    """Dashboard aggregates. Stock value is the current value of what is on
    hand (quantity x unit cost over available lots), not the receipt value."""
    total_items = (
        db.query(func.count(models.InventoryItem.id))
        .filter(models.InventoryItem.status == models.ItemStatusEnum.ACTIVE)
        .scalar()
    ) or 0

    total_value = (
        db.query(func.coalesce(func.sum(models.StockLot.quantity * models.StockLot.unit_cost), 0))
        .filter(models.StockLot.status == models.LotStatusEnum.AVAILABLE)
        .scalar()
    )

    available = (
        db.query(
            models.StockLot.item_id.label("item_id"),
            func.sum(models.StockLot.quantity).label("on_hand"),
        )
        .filter(models.StockLot.status == models.LotStatusEnum.AVAILABLE)
        .group_by(models.StockLot.item_id)
        .subquery()
    )
    low_stock_items = (
        db.query(func.count(models.InventoryItem.id))
        .outerjoin(available, available.c.item_id == models.InventoryItem.id)
        .filter(
            models.InventoryItem.status == models.ItemStatusEnum.ACTIVE,
            func.coalesce(available.c.on_hand, 0) <= models.InventoryItem.reorder_point,
        )
        .scalar()
    ) or 0

    since = datetime.now(timezone.utc) - timedelta(days=RECENT_MOVEMENT_DAYS)
    recent_movements = (
        db.query(func.count(models.StockMovement.id))
        .filter(models.StockMovement.created_at >= since)
        .scalar()
    ) or 0

    return schemas.InventoryStats(
        total_items=total_items,
        total_value=as_decimal(total_value).quantize(QUANTUM),
        warehouses=warehouse_services.count_warehouses(db),
        low_stock_items=low_stock_items,
        recent_movements=recent_movements,
    )
