from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from plantops.apps.accounts import models as account_models
from plantops.apps.inventory import catalog, lots, schemas, stock_requests
from plantops.apps.warehouses import models as warehouse_models
from plantops.apps.work import models as work_models


def create_warehouse(db, name: str = "Gudang Utama", plot_type: str = "warehouse") -> warehouse_models.Plot:
    plot = warehouse_models.Plot(name=name, description=f"{name} store", type=plot_type)
    db.add(plot)
    db.commit()
    db.refresh(plot)
    return plot


def create_work_order(db, title: str = "Fertilise block A") -> work_models.WorkOrder:
    work_order = work_models.WorkOrder(title=title, status="pending")
    db.add(work_order)
    db.commit()
    db.refresh(work_order)
    return work_order


def create_user(
    db,
    *,
    email: str,
    role: account_models.AccountRole,
    full_name: Optional[str] = None,
    is_active: bool = True,
) -> account_models.User:
    user = account_models.User(
        email=email,
        full_name=full_name or email.split("@")[0].title(),
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_item(db, sku: str = "SKU-001", *, unit: str = "kg", reorder_point=10, **fields):
    payload = schemas.ItemCreate(
        sku=sku,
        name=fields.pop("name", f"Item {sku}"),
        category=fields.pop("category", "Fertilizer"),
        unit=unit,
        reorder_point=Decimal(str(reorder_point)),
        **fields,
    )
    return catalog.register_item(db, payload=payload)


def receive(
    db,
    item,
    warehouse,
    quantity,
    unit_cost,
    *,
    received_date: Optional[date] = None,
    expiry_date: Optional[date] = None,
    batch_no: str = "B-1",
    idempotency_key: Optional[str] = None,
):
    payload = schemas.LotReceive(
        item_id=item.id,
        warehouse_id=warehouse.id,
        batch_no=batch_no,
        quantity=Decimal(str(quantity)),
        unit_cost=Decimal(str(unit_cost)),
        supplier="PT Pupuk Nusantara",
        received_date=received_date,
        expiry_date=expiry_date,
    )
    return lots.receive_lot(db, payload=payload, performed_by="Store Keeper", idempotency_key=idempotency_key)


def raise_request(
    db,
    item,
    work_order,
    quantity,
    *,
    warehouse=None,
    requester: Optional[account_models.User] = None,
    idempotency_key: Optional[str] = None,
):
    payload = schemas.StockRequestCreate(
        work_order_id=work_order.id,
        item_id=item.id,
        quantity=Decimal(str(quantity)),
        warehouse_id=warehouse.id if warehouse is not None else None,
        requested_by=requester.full_name if requester is not None else "Field Supervisor",
    )
    return stock_requests.create_request(
        db,
        payload=payload,
        requester_user_id=requester.id if requester is not None else None,
        idempotency_key=idempotency_key,
    )
