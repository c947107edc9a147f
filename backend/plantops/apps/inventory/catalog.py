"""
Item catalog: registry of stockable item definitions.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from plantops.database import write_transaction
from plantops.utils.search import LIKE_ESCAPE, like_pattern

from . import models, schemas
from .errors import Conflict, InvalidArgument, NotFound
from .filters import ItemFilter, Page
from .quantities import ZERO, to_decimal

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("sku", "name", "category", "unit")


def clean_sku(sku: str) -> str:
    return (sku or "").strip()


def _clean_suppliers(suppliers: Optional[List[str]]) -> List[str]:
    return [s.strip() for s in (suppliers or []) if s and s.strip()]


def _ensure_unique_sku(db: Session, sku: str, *, exclude_id: Optional[int] = None) -> None:
    # Stored as given; two SKUs differing only in case are still one item.
    query = db.query(models.InventoryItem.id).filter(func.upper(models.InventoryItem.sku) == sku.upper())
    if exclude_id is not None:
        query = query.filter(models.InventoryItem.id != exclude_id)
    if query.first() is not None:
        raise Conflict(f"SKU {sku} already exists")


def _non_negative(value, field: str):
    amount = to_decimal(value, field=field)
    if amount < ZERO:
        raise InvalidArgument(f"{field} must not be negative")
    return amount


def register_item(db: Session, *, payload: schemas.ItemCreate) -> models.InventoryItem:
    data = payload.model_dump()
    for name in _REQUIRED_FIELDS:
        value = data.get(name)
        if value is None or not str(value).strip():
            raise InvalidArgument("SKU, name, category, and unit are required")

    sku = clean_sku(data["sku"])
    with write_transaction(db):
        _ensure_unique_sku(db, sku)
        item = models.InventoryItem(
            sku=sku,
            name=data["name"].strip(),
            category=data["category"].strip(),
            unit=data["unit"].strip(),
            reorder_point=_non_negative(data.get("reorder_point") or 0, "reorder_point"),
            avg_cost=_non_negative(data.get("avg_cost") or 0, "avg_cost"),
            status=data.get("status") or models.ItemStatusEnum.ACTIVE,
            description=data.get("description"),
            suppliers=_clean_suppliers(data.get("suppliers")),
        )
        db.add(item)
        db.flush()

    db.refresh(item)
    logger.info("Inventory item registered", extra={"item_id": item.id, "sku": item.sku})
    return item


def get_item(db: Session, *, item_id: int) -> models.InventoryItem:
    item = db.query(models.InventoryItem).filter(models.InventoryItem.id == item_id).first()
    if item is None:
        raise NotFound("Inventory item not found")
    return item


def update_item(db: Session, *, item_id: int, payload: schemas.ItemUpdate) -> models.InventoryItem:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise InvalidArgument("No fields to update")

    with write_transaction(db):
        item = (
            db.query(models.InventoryItem)
            .filter(models.InventoryItem.id == item_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if item is None:
            raise NotFound("Inventory item not found")

        for name in _REQUIRED_FIELDS:
            if name in changes and (changes[name] is None or not str(changes[name]).strip()):
                raise InvalidArgument(f"{name} must not be empty")

        if "sku" in changes:
            sku = clean_sku(changes["sku"])
            if sku.upper() != item.sku.upper():
                _ensure_unique_sku(db, sku, exclude_id=item.id)
            item.sku = sku
        for name in ("name", "category", "unit"):
            if name in changes:
                setattr(item, name, changes[name].strip())
        if "reorder_point" in changes:
            item.reorder_point = _non_negative(changes["reorder_point"], "reorder_point")
        if "avg_cost" in changes:
            item.avg_cost = _non_negative(changes["avg_cost"], "avg_cost")
        if "status" in changes:
            if changes["status"] is None:
                raise InvalidArgument("status must not be empty")
            item.status = models.ItemStatusEnum(changes["status"])
        if "description" in changes:
            item.description = changes["description"]
        if "suppliers" in changes:
            item.suppliers = _clean_suppliers(changes["suppliers"])
        db.flush()

    db.refresh(item)
    return item


def retire_item(db: Session, *, item_id: int) -> models.InventoryItem:
    """Mark an item discontinued. Its lots and history are left as they are."""
    with write_transaction(db):
        item = (
            db.query(models.InventoryItem)
            .filter(models.InventoryItem.id == item_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if item is None:
            raise NotFound("Inventory item not found")
        item.status = models.ItemStatusEnum.DISCONTINUED
        db.flush()

    db.refresh(item)
    logger.info("Inventory item retired", extra={"item_id": item.id, "sku": item.sku})
    return item


def list_items(
    db: Session,
    *,
    filters: Optional[ItemFilter] = None,
    page: Optional[Page] = None,
) -> List[models.InventoryItem]:
    filters = filters or ItemFilter()
    page = page or Page()

    query = db.query(models.InventoryItem)
    pattern = like_pattern(filters.search)
    if pattern:
        query = query.filter(
            or_(
                models.InventoryItem.name.ilike(pattern, escape=LIKE_ESCAPE),
                models.InventoryItem.sku.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )
    if filters.category:
        query = query.filter(models.InventoryItem.category == filters.category)
    if filters.status:
        try:
            status = models.ItemStatusEnum(filters.status)
        except ValueError:
            raise InvalidArgument(f"Unknown item status: {filters.status}")
        query = query.filter(models.InventoryItem.status == status)

    query = query.order_by(models.InventoryItem.created_at.desc(), models.InventoryItem.id.desc())
    return page.apply(query).all()
