from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session

from plantops.database import get_db, get_read_db
from plantops.security import get_current_active_user, require_roles
from plantops.apps.accounts import models as account_models
from plantops.apps.warehouses import schemas as warehouse_schemas
from plantops.apps.warehouses import services as warehouse_services

from . import catalog, ledger, lots, schemas, stats, stock_requests
from .filters import ItemFilter, LotFilter, MovementFilter, Page, RequestFilter

router = APIRouter(prefix="/inventory", tags=["inventory"])

INVENTORY_WRITE_ROLES = list(account_models.WAREHOUSE_MANAGER_ROLES)


def _page(
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
) -> Page:
    return Page.of(page, limit)


def _display_name(user: account_models.User) -> str:
    return user.full_name or user.email


# ---------------------------------------------------------------------------
# ITEMS
# ---------------------------------------------------------------------------


@router.get("/items", response_model=List[schemas.ItemRead])
def list_items(
    search: Optional[str] = None,
    category: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    page: Page = Depends(_page),
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return catalog.list_items(
        db,
        filters=ItemFilter(search=search, category=category, status=status_filter),
        page=page,
    )


@router.post("/items", response_model=schemas.ItemRead, status_code=status.HTTP_201_CREATED)
def create_item(
    payload: schemas.ItemCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*INVENTORY_WRITE_ROLES)),
):
    return catalog.register_item(db, payload=payload)


@router.get("/items/{item_id}", response_model=schemas.ItemRead)
def get_item(
    item_id: int,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return catalog.get_item(db, item_id=item_id)


@router.put("/items/{item_id}", response_model=schemas.ItemRead)
def update_item(
    item_id: int,
    payload: schemas.ItemUpdate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*INVENTORY_WRITE_ROLES)),
):
    return catalog.update_item(db, item_id=item_id, payload=payload)


@router.delete("/items/{item_id}", response_model=schemas.ItemRead)
def retire_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*INVENTORY_WRITE_ROLES)),
):
    return catalog.retire_item(db, item_id=item_id)


# ---------------------------------------------------------------------------
# LOTS
# ---------------------------------------------------------------------------


@router.get("/stock-lots", response_model=List[schemas.LotRead])
def list_stock_lots(
    search: Optional[str] = None,
    warehouse_id: Optional[int] = None,
    item_id: Optional[int] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    page: Page = Depends(_page),
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return lots.list_lots(
        db,
        filters=LotFilter(search=search, warehouse_id=warehouse_id, item_id=item_id, status=status_filter),
        page=page,
    )


@router.post("/stock-lots", response_model=schemas.LotRead, status_code=status.HTTP_201_CREATED)
def receive_stock_lot(
    payload: schemas.LotReceive,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*INVENTORY_WRITE_ROLES)),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    return lots.receive_lot(
        db,
        payload=payload,
        performed_by=_display_name(current_user),
        idempotency_key=idempotency_key,
    )


@router.post("/stock-lots/remove", response_model=schemas.MovementRead)
def remove_stock(
    payload: schemas.StockRemove,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*INVENTORY_WRITE_ROLES)),
):
    return lots.remove_stock(db, payload=payload, performed_by=_display_name(current_user))


@router.get("/stock-lots/{lot_id}", response_model=schemas.LotRead)
def get_stock_lot(
    lot_id: int,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return lots.get_lot(db, lot_id=lot_id)


# ---------------------------------------------------------------------------
# MOVEMENTS / STATS / WAREHOUSES
# ---------------------------------------------------------------------------


@router.get("/stock-movements", response_model=List[schemas.MovementRead])
def list_stock_movements(
    search: Optional[str] = None,
    movement_type: Optional[str] = Query(None, alias="type"),
    item_id: Optional[int] = None,
    warehouse_id: Optional[int] = None,
    lot_id: Optional[int] = None,
    stock_request_id: Optional[int] = None,
    page: Page = Depends(_page),
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return ledger.list_movements(
        db,
        filters=MovementFilter(
            movement_type=movement_type,
            item_id=item_id,
            warehouse_id=warehouse_id,
            lot_id=lot_id,
            stock_request_id=stock_request_id,
            search=search,
        ),
        page=page,
    )


@router.get("/stats", response_model=schemas.InventoryStats)
def get_stats(
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return stats.inventory_stats(db)


@router.get("/warehouses", response_model=List[warehouse_schemas.WarehouseRead])
def list_warehouses(
    search: Optional[str] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return warehouse_services.list_warehouses(db, search=search)


# ---------------------------------------------------------------------------
# STOCK REQUESTS
# ---------------------------------------------------------------------------


@router.get("/stock-requests", response_model=List[schemas.StockRequestRead])
def list_stock_requests(
    work_order_id: Optional[int] = None,
    item_id: Optional[int] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    page: Page = Depends(_page),
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return stock_requests.list_requests(
        db,
        filters=RequestFilter(work_order_id=work_order_id, status=status_filter, item_id=item_id),
        page=page,
    )


@router.post("/stock-requests", response_model=schemas.StockRequestRead, status_code=status.HTTP_201_CREATED)
def create_stock_request(
    payload: schemas.StockRequestCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    if not payload.requested_by:
        payload.requested_by = _display_name(current_user)
    request = stock_requests.create_request(
        db,
        payload=payload,
        requester_user_id=current_user.id,
        idempotency_key=idempotency_key,
    )
    return stock_requests.to_read(db, request)


@router.get("/stock-requests/{request_id}", response_model=schemas.StockRequestRead)
def get_stock_request(
    request_id: int,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return stock_requests.get_request(db, request_id=request_id)


@router.post("/stock-requests/{request_id}/approve", response_model=schemas.StockRequestRead)
def approve_stock_request(
    request_id: int,
    payload: Optional[schemas.StockRequestApprove] = None,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*INVENTORY_WRITE_ROLES)),
):
    payload = payload or schemas.StockRequestApprove()
    request = stock_requests.approve_request(
        db,
        request_id=request_id,
        approved_by=payload.approved_by or _display_name(current_user),
        notes=payload.notes,
    )
    return stock_requests.to_read(db, request)


@router.post("/stock-requests/{request_id}/reject", response_model=schemas.StockRequestRead)
def reject_stock_request(
    request_id: int,
    payload: schemas.StockRequestReject,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*INVENTORY_WRITE_ROLES)),
):
    request = stock_requests.reject_request(
        db,
        request_id=request_id,
        rejected_by=payload.rejected_by or _display_name(current_user),
        reason=payload.reason,
    )
    return stock_requests.to_read(db, request)


@router.post("/stock-requests/{request_id}/fulfill", response_model=schemas.StockRequestRead)
def fulfill_stock_request(
    request_id: int,
    payload: Optional[schemas.StockRequestFulfill] = None,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*INVENTORY_WRITE_ROLES)),
):
    payload = payload or schemas.StockRequestFulfill()
    request = stock_requests.fulfill_request(
        db,
        request_id=request_id,
        performed_by=payload.performed_by or _display_name(current_user),
    )
    return stock_requests.to_read(db, request)
