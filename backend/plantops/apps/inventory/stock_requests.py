"""
Stock request workflow.

    pending --approve--> approved --fulfill--> fulfilled
    pending --reject---> rejected

Each transition is one transaction: the request row is locked, the move is
checked against the ``stock_request`` transition table and the status is
written with a compare-and-swap on the expected source state. Fulfillment
allocates lots oldest-first and either decrements every planned lot and
marks the request fulfilled, or writes nothing at all. Notifications go
out only after the commit.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from plantops.apps.work import services as work_services
from plantops.apps.workflow import TransitionError, apply_transition
from plantops.apps.workflow.engine import MISSING_REQUIREMENTS
from plantops.database import write_transaction
from plantops.utils.identifiers import generate_reference

from . import events, idempotency, lots, models, schemas
from .errors import (
    InsufficientQuantity,
    InvalidArgument,
    InvalidTransition,
    MissingWarehouse,
    NotFound,
)
from .filters import Page, RequestFilter
from .quantities import ZERO, as_decimal, display, to_decimal

logger = logging.getLogger(__name__)

WORKFLOW = "stock_request"
CREATE_SCOPE = "inventory.create_request"

Status = models.StockRequestStatusEnum

_TRANSITION_MESSAGES = {
    Status.APPROVED: "Only pending stock requests can be approved",
    Status.REJECTED: "Only pending stock requests can be rejected",
    Status.FULFILLED: "Only approved stock requests can be fulfilled",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _append_note(existing: Optional[str], note: Optional[str]) -> Optional[str]:
    if not note or not note.strip():
        return existing
    if not existing:
        return note.strip()
    return f"{existing}\n{note.strip()}"


# ---------------------------------------------------------------------------
# TRANSITION HELPERS
# ---------------------------------------------------------------------------


def _lock_request(db: Session, request_id: int) -> models.StockRequest:
    request = (
        db.query(models.StockRequest)
        .filter(models.StockRequest.id == request_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if request is None:
        raise NotFound("Stock request not found")
    return request


def _check_transition(
    db: Session,
    request: models.StockRequest,
    to_state: Status,
    *,
    actor: Optional[str],
    after: Dict[str, object],
) -> None:
    try:
        apply_transition(
            db,
            actor=actor,
            entity_type=WORKFLOW,
            entity_id=request.request_id,
            from_state=request.status.value,
            to_state=to_state.value,
            before_obj=request,
            after_obj={"status": to_state.value, **after},
        )
    except TransitionError as exc:
        if exc.code == MISSING_REQUIREMENTS:
            if any(item.get("field") == "warehouse_id" for item in exc.detail):
                raise MissingWarehouse() from exc
            raise InvalidArgument(str(exc)) from exc
        raise InvalidTransition(
            f"{_TRANSITION_MESSAGES[to_state]} (current status: {request.status.value})"
        ) from exc


def _swap_status(
    db: Session,
    request: models.StockRequest,
    expected: Status,
    values: Dict,
) -> None:
    updated = (
        db.query(models.StockRequest)
        .filter(
            models.StockRequest.id == request.id,
            models.StockRequest.status == expected,
        )
        .update(values, synchronize_session=False)
    )
    if updated != 1:
        db.refresh(request)
        raise InvalidTransition(
            f"Stock request {request.request_id} was changed concurrently (current status: {request.status.value})"
        )


# ---------------------------------------------------------------------------
# RESERVATIONS
# ---------------------------------------------------------------------------


def reserved_quantity(
    db: Session,
    *,
    item_id: int,
    warehouse_id: int,
    exclude_request_id: Optional[int] = None,
) -> Decimal:
    """Stock promised to approved, not yet fulfilled requests."""
    query = db.query(func.coalesce(func.sum(models.StockRequest.quantity), 0)).filter(
        models.StockRequest.item_id == item_id,
        models.StockRequest.warehouse_id == warehouse_id,
        models.StockRequest.status == Status.APPROVED,
    )
    if exclude_request_id is not None:
        query = query.filter(models.StockRequest.id != exclude_request_id)
    return as_decimal(query.scalar())


# ---------------------------------------------------------------------------
# FIFO ALLOCATION
# ---------------------------------------------------------------------------


def plan_fifo(
    candidates: Sequence[models.StockLot],
    requested: Decimal,
) -> List[Tuple[models.StockLot, Decimal]]:
    """Walk lots oldest-first taking ``min(remaining, lot.quantity)`` from each.

    ``candidates`` must already be in allocation order. Raises
    ``InsufficientQuantity`` when the lots run out first; nothing is written.
    """
    remaining = requested
    plan: List[Tuple[models.StockLot, Decimal]] = []
    for lot in candidates:
        if remaining <= ZERO:
            break
        on_hand = as_decimal(lot.quantity)
        if on_hand <= ZERO:
            continue
        take = min(remaining, on_hand)
        plan.append((lot, take))
        remaining -= take

    if remaining > ZERO:
        available = requested - remaining
        raise InsufficientQuantity(
            f"Insufficient stock to fulfill request. available: {display(available)}, "
            f"requested: {display(requested)}, need {display(remaining)} more"
        )
    return plan


# ---------------------------------------------------------------------------
# OPERATIONS
# ---------------------------------------------------------------------------


def create_request(
    db: Session,
    *,
    payload: schemas.StockRequestCreate,
    requester_user_id: Optional[int] = None,
    idempotency_key: Optional[str] = None,
) -> models.StockRequest:
    quantity = to_decimal(payload.quantity, field="quantity")
    requested_by = (payload.requested_by or "").strip()
    if quantity <= ZERO:
        raise InvalidArgument("Quantity must be greater than 0")
    if not requested_by:
        raise InvalidArgument("work_order_id, item_id, quantity, and requested_by are required")

    request_payload = payload.model_dump(mode="json")
    replay_id: Optional[int] = None

    with write_transaction(db):
        if idempotency_key:
            existing = idempotency.lookup(db, scope=CREATE_SCOPE, key=idempotency_key, payload=request_payload)
            if existing is not None:
                replay_id = existing.resource_id

        if replay_id is None:
            if work_services.get_work_order(db, payload.work_order_id) is None:
                raise NotFound("Work order not found")
            item = db.query(models.InventoryItem).filter(models.InventoryItem.id == payload.item_id).first()
            if item is None:
                raise NotFound("Inventory item not found")
            if payload.warehouse_id is not None:
                lots.require_stock_warehouse(db, payload.warehouse_id)

            request = models.StockRequest(
                request_id=generate_reference("REQ"),
                work_order_id=payload.work_order_id,
                item_id=item.id,
                quantity=quantity,
                warehouse_id=payload.warehouse_id,
                status=Status.PENDING,
                requested_by=requested_by,
                requested_by_user_id=requester_user_id,
                notes=payload.notes,
            )
            db.add(request)
            db.flush()
            if idempotency_key:
                idempotency.register(
                    db,
                    scope=CREATE_SCOPE,
                    key=idempotency_key,
                    payload=request_payload,
                    resource_id=request.id,
                )

    if replay_id is not None:
        return _get(db, replay_id)

    db.refresh(request)
    logger.info(
        "Stock request created",
        extra={"request_id": request.request_id, "work_order_id": request.work_order_id, "quantity": str(quantity)},
    )
    events.publish(events.request_created(request))
    return request


def approve_request(
    db: Session,
    *,
    request_id: int,
    approved_by: str,
    notes: Optional[str] = None,
) -> models.StockRequest:
    approver = (approved_by or "").strip()

    with write_transaction(db):
        request = _lock_request(db, request_id)
        _check_transition(db, request, Status.APPROVED, actor=approver, after={"approved_by": approver})

        if request.warehouse_id:
            requested = as_decimal(request.quantity)
            # Lot locks first: approvals for the same item and warehouse queue here.
            on_hand = lots.available_quantity(
                db,
                item_id=request.item_id,
                warehouse_id=request.warehouse_id,
                for_update=True,
            )
            available = on_hand - reserved_quantity(
                db,
                item_id=request.item_id,
                warehouse_id=request.warehouse_id,
                exclude_request_id=request.id,
            )
            if available < requested:
                raise InsufficientQuantity(
                    f"Insufficient stock. available: {display(available)}, requested: {display(requested)}"
                )

        now = _utcnow()
        values = {
            models.StockRequest.status: Status.APPROVED,
            models.StockRequest.approved_by: approver,
            models.StockRequest.approved_at: now,
            models.StockRequest.updated_at: now,
        }
        if notes and notes.strip():
            values[models.StockRequest.notes] = _append_note(request.notes, notes)
        _swap_status(db, request, Status.PENDING, values)

    db.refresh(request)
    logger.info("Stock request approved", extra={"request_id": request.request_id, "approved_by": approver})
    events.publish(events.request_approved(request))
    return request


def reject_request(
    db: Session,
    *,
    request_id: int,
    rejected_by: str,
    reason: str,
) -> models.StockRequest:
    if not reason or not reason.strip():
        raise InvalidArgument("Rejection reason is required")
    rejecter = (rejected_by or "").strip()

    with write_transaction(db):
        request = _lock_request(db, request_id)
        _check_transition(
            db,
            request,
            Status.REJECTED,
            actor=rejecter,
            after={"rejected_by": rejecter, "rejection_reason": reason},
        )
        now = _utcnow()
        _swap_status(
            db,
            request,
            Status.PENDING,
            {
                models.StockRequest.status: Status.REJECTED,
                models.StockRequest.rejected_by: rejecter,
                models.StockRequest.rejected_at: now,
                models.StockRequest.rejection_reason: reason.strip(),
                models.StockRequest.updated_at: now,
            },
        )

    db.refresh(request)
    logger.info("Stock request rejected", extra={"request_id": request.request_id, "rejected_by": rejecter})
    events.publish(events.request_rejected(request))
    return request


def fulfill_request(
    db: Session,
    *,
    request_id: int,
    performed_by: str = "System",
) -> models.StockRequest:
    performer = (performed_by or "").strip() or "System"
    low_stock_item: Optional[models.InventoryItem] = None
    after_total = ZERO

    with write_transaction(db):
        request = _lock_request(db, request_id)
        _check_transition(db, request, Status.FULFILLED, actor=performer, after={"fulfilled_by": performer})

        requested = as_decimal(request.quantity)
        candidates = lots.fifo_lots(db, item_id=request.item_id, warehouse_id=request.warehouse_id)
        plan = plan_fifo(candidates, requested)
        before_total = lots.total_available(db, item_id=request.item_id)

        for lot, take in plan:
            lots.decrement_lot(
                db,
                lot_id=lot.id,
                quantity=take,
                reason=f"fulfill stock request {request.request_id}",
                performed_by=performer,
                reference=f"Stock Request #{request.id}",
                stock_request_id=request.id,
            )

        now = _utcnow()
        _swap_status(
            db,
            request,
            Status.APPROVED,
            {
                models.StockRequest.status: Status.FULFILLED,
                models.StockRequest.fulfilled_by: performer,
                models.StockRequest.fulfilled_at: now,
                models.StockRequest.updated_at: now,
            },
        )

        after_total = before_total - requested
        if request.item is not None and lots.crossed_reorder_point(request.item, before_total, after_total):
            low_stock_item = request.item

    db.refresh(request)
    logger.info(
        "Stock request fulfilled",
        extra={
            "request_id": request.request_id,
            "lots": [lot.lot_id for lot, _ in plan],
            "quantity": str(requested),
        },
    )
    events.publish(events.request_fulfilled(request))
    if low_stock_item is not None:
        events.publish(events.low_stock(low_stock_item, after_total))
    return request


# ---------------------------------------------------------------------------
# QUERIES
# ---------------------------------------------------------------------------


def to_read(db: Session, request: models.StockRequest) -> schemas.StockRequestRead:
    """Serialise a request with its item, work-order title and live stock.

    ``available_stock`` is a separate read and may already be stale by the
    time the caller sees it.
    """
    read = schemas.StockRequestRead.model_validate(request)
    if request.work_order is not None:
        read.work_order_title = request.work_order.title
    if request.warehouse_id:
        read.available_stock = lots.available_quantity(
            db,
            item_id=request.item_id,
            warehouse_id=request.warehouse_id,
        )
    return read


def _get(db: Session, request_id: int) -> models.StockRequest:
    request = db.query(models.StockRequest).filter(models.StockRequest.id == request_id).first()
    if request is None:
        raise NotFound("Stock request not found")
    return request


def get_request(db: Session, *, request_id: int) -> schemas.StockRequestRead:
    return to_read(db, _get(db, request_id))


def list_requests(
    db: Session,
    *,
    filters: Optional[RequestFilter] = None,
    page: Optional[Page] = None,
) -> List[schemas.StockRequestRead]:
    filters = filters or RequestFilter()
    page = page or Page()

    query = db.query(models.StockRequest)
    if filters.work_order_id:
        query = query.filter(models.StockRequest.work_order_id == filters.work_order_id)
    if filters.item_id:
        query = query.filter(models.StockRequest.item_id == filters.item_id)
    if filters.status:
        try:
            status = Status(filters.status)
        except ValueError:
            raise InvalidArgument(f"Unknown stock request status: {filters.status}")
        query = query.filter(models.StockRequest.status == status)

    query = query.order_by(models.StockRequest.created_at.desc(), models.StockRequest.id.desc())
    return [to_read(db, request) for request in page.apply(query).all()]
