"""
Lot store: the only writer of `StockLot`.

Quantity leaves a lot through `decrement_lot` alone. The decrement is a
compare-and-swap on the lot row (status still `available`, quantity still
what was read), so it stays correct whether or not the backend honours
`SELECT ... FOR UPDATE`.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from plantops.apps.warehouses import services as warehouse_services
from plantops.database import write_transaction
from plantops.utils.search import LIKE_ESCAPE, like_pattern
from plantops.utils.identifiers import generate_reference

from . import events, idempotency, ledger, models, schemas
from .errors import Conflict, InsufficientQuantity, InvalidArgument, NotAvailable, NotFound
from .filters import LotFilter, Page
from .quantities import ZERO, as_decimal, display, line_total, to_decimal

logger = logging.getLogger(__name__)

RECEIPT_REASON = "Stock Receipt"
RECEIVE_SCOPE = "inventory.receive_lot"

_CAS_ATTEMPTS = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def require_stock_warehouse(db: Session, warehouse_id: Optional[int]) -> None:
    if warehouse_services.is_stock_warehouse(db, warehouse_id):
        return
    if not warehouse_id or warehouse_services.get_plot(db, warehouse_id) is None:
        raise NotFound("Warehouse not found")
    raise InvalidArgument("Plot must be of type 'storage' or 'warehouse'")


# ---------------------------------------------------------------------------
# RECEIPT
# ---------------------------------------------------------------------------


def receive_lot(
    db: Session,
    *,
    payload: schemas.LotReceive,
    performed_by: str,
    idempotency_key: Optional[str] = None,
) -> models.StockLot:
    quantity = to_decimal(payload.quantity, field="quantity")
    unit_cost = to_decimal(payload.unit_cost, field="unit_cost")
    batch_no = (payload.batch_no or "").strip()
    supplier = (payload.supplier or "").strip()
    if quantity <= ZERO:
        raise InvalidArgument("Quantity must be greater than 0")
    if unit_cost <= ZERO:
        raise InvalidArgument("Unit cost must be greater than 0")
    if not batch_no or not supplier:
        raise InvalidArgument("item_id, warehouse_id, batch_no, quantity, unit_cost, and supplier are required")

    request_payload = payload.model_dump(mode="json")
    replay_id: Optional[int] = None

    with write_transaction(db):
        if idempotency_key:
            existing = idempotency.lookup(db, scope=RECEIVE_SCOPE, key=idempotency_key, payload=request_payload)
            if existing is not None:
                replay_id = existing.resource_id

        if replay_id is None:
            item = (
                db.query(models.InventoryItem)
                .filter(models.InventoryItem.id == payload.item_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if item is None:
                raise NotFound("Inventory item not found")
            if item.status == models.ItemStatusEnum.DISCONTINUED:
                raise InvalidArgument("Cannot receive stock for a discontinued item")
            require_stock_warehouse(db, payload.warehouse_id)

            lot = models.StockLot(
                lot_id=generate_reference("LOT"),
                item_id=item.id,
                warehouse_id=payload.warehouse_id,
                batch_no=batch_no,
                quantity=quantity,
                received_quantity=quantity,
                unit_cost=unit_cost,
                total_cost=line_total(quantity, unit_cost),
                expiry_date=payload.expiry_date,
                supplier=supplier,
                status=models.LotStatusEnum.AVAILABLE,
                notes=payload.notes,
                received_date=payload.received_date or _utcnow().date(),
            )
            db.add(lot)
            db.flush()

            # Last-cost policy: the item's average cost is the latest receipt's unit cost.
            item.avg_cost = unit_cost

            ledger.record_movement(
                db,
                movement_type=models.MovementTypeEnum.IN,
                item_id=item.id,
                lot_id=lot.id,
                warehouse_id=lot.warehouse_id,
                quantity=quantity,
                unit_cost=unit_cost,
                reason=RECEIPT_REASON,
                reference=batch_no,
                performed_by=performed_by or "System",
                notes=payload.notes,
            )
            if idempotency_key:
                idempotency.register(
                    db,
                    scope=RECEIVE_SCOPE,
                    key=idempotency_key,
                    payload=request_payload,
                    resource_id=lot.id,
                )

    if replay_id is not None:
        logger.info("Replayed stock receipt", extra={"lot_pk": replay_id, "idempotency_key": idempotency_key})
        return get_lot(db, lot_id=replay_id)

    db.refresh(lot)
    logger.info(
        "Stock lot received",
        extra={
            "lot_id": lot.lot_id,
            "item_id": lot.item_id,
            "warehouse_id": lot.warehouse_id,
            "quantity": str(lot.quantity),
        },
    )
    return lot


# ---------------------------------------------------------------------------
# AVAILABILITY
# ---------------------------------------------------------------------------


def _available_lots_query(db: Session, *, item_id: int, warehouse_id: Optional[int] = None):
    query = db.query(models.StockLot).filter(
        models.StockLot.item_id == item_id,
        models.StockLot.status == models.LotStatusEnum.AVAILABLE,
    )
    if warehouse_id is not None:
        query = query.filter(models.StockLot.warehouse_id == warehouse_id)
    return query


def available_quantity(
    db: Session,
    *,
    item_id: int,
    warehouse_id: Optional[int],
    for_update: bool = False,
) -> Decimal:
    """Sum of quantity over `available` lots of an item in one warehouse.

    With ``for_update`` the lot rows are locked for the rest of the caller's
    transaction, so the figure cannot change until it commits.
    """
    if for_update:
        lots = (
            _available_lots_query(db, item_id=item_id, warehouse_id=warehouse_id)
            .order_by(models.StockLot.id.asc())
            .with_for_update()
            .populate_existing()
            .all()
        )
        return sum((as_decimal(lot.quantity) for lot in lots), ZERO)

    total = (
        db.query(func.coalesce(func.sum(models.StockLot.quantity), 0))
        .filter(
            models.StockLot.item_id == item_id,
            models.StockLot.status == models.LotStatusEnum.AVAILABLE,
            models.StockLot.warehouse_id == warehouse_id,
        )
        .scalar()
    )
    return as_decimal(total)


def total_available(db: Session, *, item_id: int) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(models.StockLot.quantity), 0))
        .filter(
            models.StockLot.item_id == item_id,
            models.StockLot.status == models.LotStatusEnum.AVAILABLE,
        )
        .scalar()
    )
    return as_decimal(total)


def crossed_reorder_point(item: models.InventoryItem, before: Decimal, after: Decimal) -> bool:
    reorder_point = as_decimal(item.reorder_point)
    return before > reorder_point >= after


def fifo_lots(db: Session, *, item_id: int, warehouse_id: int) -> List[models.StockLot]:
    """Available lots with stock, oldest receipt first, locked for update."""
    return (
        _available_lots_query(db, item_id=item_id, warehouse_id=warehouse_id)
        .filter(models.StockLot.quantity > 0)
        .order_by(models.StockLot.received_date.asc(), models.StockLot.id.asc())
        .with_for_update()
        .populate_existing()
        .all()
    )


# ---------------------------------------------------------------------------
# DECREMENT
# ---------------------------------------------------------------------------


def decrement_lot(
    db: Session,
    *,
    lot_id: int,
    quantity: Decimal,
    reason: str,
    performed_by: str,
    reference: Optional[str] = None,
    notes: Optional[str] = None,
    stock_request_id: Optional[int] = None,
) -> models.StockMovement:
    """Take ``quantity`` out of one lot and append the matching `out` movement.

    Runs inside the caller's transaction (flush only). The caller commits.
    """
    quantity = to_decimal(quantity, field="quantity")
    if quantity <= ZERO:
        raise InvalidArgument("Quantity must be greater than 0")
    if not reason or not reason.strip():
        raise InvalidArgument("Reason is required")
    if not performed_by or not performed_by.strip():
        raise InvalidArgument("Performer is required")

    lot = (
        db.query(models.StockLot)
        .filter(models.StockLot.id == lot_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if lot is None:
        raise NotFound("Stock lot not found")

    for _attempt in range(_CAS_ATTEMPTS):
        current = as_decimal(lot.quantity)
        if lot.status != models.LotStatusEnum.AVAILABLE:
            raise NotAvailable(f"Stock lot {lot.lot_id} is not available (status: {lot.status.value})")
        if quantity > current:
            raise InsufficientQuantity(
                f"Quantity to remove exceeds available quantity in lot {lot.lot_id}. "
                f"available: {display(current)}, requested: {display(quantity)}"
            )

        remaining = current - quantity
        new_status = models.LotStatusEnum.DEPLETED if remaining == ZERO else models.LotStatusEnum.AVAILABLE
        updated = (
            db.query(models.StockLot)
            .filter(
                models.StockLot.id == lot.id,
                models.StockLot.status == models.LotStatusEnum.AVAILABLE,
                models.StockLot.quantity == current,
            )
            .update(
                {
                    models.StockLot.quantity: remaining,
                    models.StockLot.status: new_status,
                    models.StockLot.updated_at: _utcnow(),
                },
                synchronize_session=False,
            )
        )
        if updated == 1:
            break
        # Another transaction changed the lot after it was read.
        db.refresh(lot, with_for_update=True)
    else:
        raise Conflict(f"Stock lot {lot.lot_id} is being modified concurrently, please retry")

    db.expire(lot, ["quantity", "status", "updated_at"])

    return ledger.record_movement(
        db,
        movement_type=models.MovementTypeEnum.OUT,
        item_id=lot.item_id,
        lot_id=lot.id,
        warehouse_id=lot.warehouse_id,
        quantity=quantity,
        unit_cost=lot.unit_cost,
        reason=reason,
        reference=reference,
        performed_by=performed_by,
        notes=notes,
        stock_request_id=stock_request_id,
    )


def remove_stock(
    db: Session,
    *,
    payload: schemas.StockRemove,
    performed_by: Optional[str] = None,
) -> models.StockMovement:
    """Manual removal from one lot (spoilage, counts, ad-hoc issue)."""
    performer = (payload.performed_by or performed_by or "").strip()
    if not payload.reason or not payload.reason.strip() or not performer:
        raise InvalidArgument("lot_id, quantity, reason, and performed_by are required")

    low_stock_item = None
    after = ZERO
    with write_transaction(db):
        lot = db.query(models.StockLot).filter(models.StockLot.id == payload.lot_id).first()
        if lot is None:
            raise NotFound("Stock lot not found")
        if payload.stock_request_id is not None:
            linked = (
                db.query(models.StockRequest.id)
                .filter(models.StockRequest.id == payload.stock_request_id)
                .first()
            )
            if linked is None:
                raise NotFound("Stock request not found")
        item = lot.item
        before = total_available(db, item_id=lot.item_id)

        movement = decrement_lot(
            db,
            lot_id=lot.id,
            quantity=payload.quantity,
            reason=payload.reason,
            performed_by=performer,
            reference=payload.reference,
            notes=payload.notes,
            stock_request_id=payload.stock_request_id,
        )
        after = before - movement.quantity
        if crossed_reorder_point(item, before, after):
            low_stock_item = item

    db.refresh(movement)
    logger.info(
        "Stock removed",
        extra={"lot_pk": movement.lot_id, "quantity": str(movement.quantity), "performed_by": performer},
    )
    if low_stock_item is not None:
        events.publish(events.low_stock(low_stock_item, after))
    return movement


# ---------------------------------------------------------------------------
# QUERIES
# ---------------------------------------------------------------------------


def get_lot(db: Session, *, lot_id: int) -> models.StockLot:
    lot = db.query(models.StockLot).filter(models.StockLot.id == lot_id).first()
    if lot is None:
        raise NotFound("Stock lot not found")
    return lot


def list_lots(
    db: Session,
    *,
    filters: Optional[LotFilter] = None,
    page: Optional[Page] = None,
) -> List[models.StockLot]:
    filters = filters or LotFilter()
    page = page or Page()

    query = db.query(models.StockLot)
    if filters.warehouse_id:
        query = query.filter(models.StockLot.warehouse_id == filters.warehouse_id)
    if filters.item_id:
        query = query.filter(models.StockLot.item_id == filters.item_id)
    if filters.status:
        try:
            status = models.LotStatusEnum(filters.status)
        except ValueError:
            raise InvalidArgument(f"Unknown lot status: {filters.status}")
        query = query.filter(models.StockLot.status == status)

    pattern = like_pattern(filters.search)
    if pattern:
        query = query.join(models.InventoryItem, models.InventoryItem.id == models.StockLot.item_id).filter(
            or_(
                models.StockLot.lot_id.ilike(pattern, escape=LIKE_ESCAPE),
                models.StockLot.batch_no.ilike(pattern, escape=LIKE_ESCAPE),
                models.StockLot.supplier.ilike(pattern, escape=LIKE_ESCAPE),
                models.InventoryItem.name.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )

    query = query.order_by(models.StockLot.created_at.desc(), models.StockLot.id.desc())
    return page.apply(query).all()


# ---------------------------------------------------------------------------
# EXPIRY
# ---------------------------------------------------------------------------


def expire_lots(db: Session, *, today: Optional[date] = None) -> int:
    """Move available lots past their expiry date to `expired`."""
    today = today or _utcnow().date()
    with write_transaction(db):
        count = (
            db.query(models.StockLot)
            .filter(
                models.StockLot.status == models.LotStatusEnum.AVAILABLE,
                models.StockLot.expiry_date.isnot(None),
                models.StockLot.expiry_date < today,
            )
            .update(
                {
                    models.StockLot.status: models.LotStatusEnum.EXPIRED,
                    models.StockLot.updated_at: _utcnow(),
                },
                synchronize_session=False,
            )
        )
    db.expire_all()
    if count:
        logger.info("Expired stock lots", extra={"count": count, "as_of": today.isoformat()})
    return count
