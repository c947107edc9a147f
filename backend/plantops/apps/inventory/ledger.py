"""
Movement ledger.

The only writer of `StockMovement`. Rows are appended inside the caller's
transaction and never updated or deleted afterwards; `total_cost` is fixed
at write time so historical cost survives later changes to the item.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from plantops.utils.identifiers import generate_reference
from plantops.utils.search import LIKE_ESCAPE, like_pattern

from . import models
from .errors import InvalidArgument
from .filters import MovementFilter, Page
from .quantities import ZERO, line_total, to_decimal


def record_movement(
    db: Session,
    *,
    movement_type: models.MovementTypeEnum,
    item_id: int,
    lot_id: Optional[int],
    warehouse_id: int,
    quantity: Decimal,
    unit_cost: Decimal,
    reason: str,
    performed_by: str,
    reference: Optional[str] = None,
    notes: Optional[str] = None,
    stock_request_id: Optional[int] = None,
) -> models.StockMovement:
    quantity = to_decimal(quantity, field="quantity")
    unit_cost = to_decimal(unit_cost, field="unit_cost")
    if quantity <= ZERO:
        raise InvalidArgument("Movement quantity must be greater than 0")
    if unit_cost < ZERO:
        raise InvalidArgument("Movement unit cost must not be negative")
    if not reason or not reason.strip():
        raise InvalidArgument("Movement reason is required")
    if not performed_by or not performed_by.strip():
        raise InvalidArgument("Movement performer is required")

    movement = models.StockMovement(
        movement_id=generate_reference("MOV"),
        item_id=item_id,
        lot_id=lot_id,
        warehouse_id=warehouse_id,
        type=models.MovementTypeEnum(movement_type),
        quantity=quantity,
        unit_cost=unit_cost,
        total_cost=line_total(quantity, unit_cost),
        reason=reason.strip(),
        reference=reference,
        performed_by=performed_by.strip(),
        notes=notes,
        stock_request_id=stock_request_id,
    )
    db.add(movement)
    db.flush()
    return movement


def list_movements(
    db: Session,
    *,
    filters: Optional[MovementFilter] = None,
    page: Optional[Page] = None,
) -> List[models.StockMovement]:
    filters = filters or MovementFilter()
    page = page or Page()

    query = db.query(models.StockMovement)
    if filters.movement_type:
        try:
            movement_type = models.MovementTypeEnum(filters.movement_type)
        except ValueError:
            raise InvalidArgument(f"Unknown movement type: {filters.movement_type}")
        query = query.filter(models.StockMovement.type == movement_type)
    if filters.item_id:
        query = query.filter(models.StockMovement.item_id == filters.item_id)
    if filters.warehouse_id:
        query = query.filter(models.StockMovement.warehouse_id == filters.warehouse_id)
    if filters.lot_id:
        query = query.filter(models.StockMovement.lot_id == filters.lot_id)
    if filters.stock_request_id:
        query = query.filter(models.StockMovement.stock_request_id == filters.stock_request_id)

    pattern = like_pattern(filters.search)
    if pattern:
        query = query.join(models.InventoryItem, models.InventoryItem.id == models.StockMovement.item_id).filter(
            or_(
                models.StockMovement.movement_id.ilike(pattern, escape=LIKE_ESCAPE),
                models.StockMovement.reason.ilike(pattern, escape=LIKE_ESCAPE),
                models.StockMovement.reference.ilike(pattern, escape=LIKE_ESCAPE),
                models.StockMovement.performed_by.ilike(pattern, escape=LIKE_ESCAPE),
                models.InventoryItem.name.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )

    query = query.order_by(models.StockMovement.created_at.desc(), models.StockMovement.id.desc())
    return page.apply(query).all()


def movements_for_lot(db: Session, *, lot_id: int) -> List[models.StockMovement]:
    return (
        db.query(models.StockMovement)
        .filter(models.StockMovement.lot_id == lot_id)
        .order_by(models.StockMovement.id.asc())
        .all()
    )
