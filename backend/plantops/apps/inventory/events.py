from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from plantops.apps.notifications.dispatcher import (
    AUDIENCE_WAREHOUSE_MANAGERS,
    NotificationEvent,
    publish_events,
)

from . import models
from .quantities import display

EVENT_REQUEST_NEW = "stock_request_new"
EVENT_REQUEST_APPROVED = "stock_request_approved"
EVENT_REQUEST_REJECTED = "stock_request_rejected"
EVENT_REQUEST_FULFILLED = "stock_request_fulfilled"
EVENT_LOW_STOCK = "low_stock"


def _request_link(request: models.StockRequest) -> str:
    return f"/inventory/stock-requests/{request.id}"


def _to_requester(request: models.StockRequest, event_type: str, title: str, message: str) -> Optional[NotificationEvent]:
    if not request.requested_by_user_id:
        return None
    return NotificationEvent(
        event_type=event_type,
        title=title,
        message=message,
        link=_request_link(request),
        user_ids=(request.requested_by_user_id,),
    )


def request_created(request: models.StockRequest) -> NotificationEvent:
    return NotificationEvent(
        event_type=EVENT_REQUEST_NEW,
        title="New stock request",
        message=f"New stock request {request.request_id} for work order #{request.work_order_id}",
        link=_request_link(request),
        audience=AUDIENCE_WAREHOUSE_MANAGERS,
    )


def request_approved(request: models.StockRequest) -> Optional[NotificationEvent]:
    return _to_requester(
        request,
        EVENT_REQUEST_APPROVED,
        "Stock request approved",
        f"Stock request {request.request_id} was approved by {request.approved_by}",
    )


def request_rejected(request: models.StockRequest) -> Optional[NotificationEvent]:
    return _to_requester(
        request,
        EVENT_REQUEST_REJECTED,
        "Stock request rejected",
        f"Stock request {request.request_id} was rejected: {request.rejection_reason}",
    )


def request_fulfilled(request: models.StockRequest) -> Optional[NotificationEvent]:
    return _to_requester(
        request,
        EVENT_REQUEST_FULFILLED,
        "Stock request fulfilled",
        f"Stock request {request.request_id} has been fulfilled",
    )


def low_stock(item: models.InventoryItem, available: Decimal) -> NotificationEvent:
    return NotificationEvent(
        event_type=EVENT_LOW_STOCK,
        title="Low stock",
        message=(
            f"{item.name} ({item.sku}) is down to {display(available)} {item.unit}, "
            f"reorder point {display(item.reorder_point)}"
        ),
        link=f"/inventory/items/{item.id}",
        audience=AUDIENCE_WAREHOUSE_MANAGERS,
    )


def publish(*events: Optional[NotificationEvent]) -> None:
    ready: List[NotificationEvent] = [event for event in events if event is not None]
    if ready:
        publish_events(ready)
