from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from plantops.apps.accounts.models import AccountRole
from plantops.apps.inventory import catalog, ledger, lots, models, schemas, stats
from plantops.apps.inventory.errors import (
    Conflict,
    InsufficientQuantity,
    InvalidArgument,
    NotAvailable,
    NotFound,
)
from plantops.apps.inventory.filters import LotFilter, MovementFilter
from plantops.apps.notifications import models as notification_models
from plantops.jobs import expire_lots as expire_job

from .helpers import create_item, create_user, create_warehouse, receive


def _out_total(db, lot) -> Decimal:
    movements = ledger.movements_for_lot(db, lot_id=lot.id)
    assert movements[0].type == models.MovementTypeEnum.IN
    return sum((m.quantity for m in movements if m.type == models.MovementTypeEnum.OUT), Decimal("0"))


def test_receive_lot_computes_cost_and_records_in_movement(db_session):
    warehouse = create_warehouse(db_session)
    item = create_item(db_session)

    lot = receive(db_session, item, warehouse, 100, "2.0", batch_no="BATCH-7")

    assert lot.lot_id.startswith("LOT-")
    assert lot.status == models.LotStatusEnum.AVAILABLE
    assert lot.quantity == Decimal("100")
    assert lot.received_quantity == Decimal("100")
    assert lot.total_cost == Decimal("200")
    assert lot.received_date is not None

    db_session.refresh(item)
    assert item.avg_cost == Decimal("2.0")

    movements = ledger.list_movements(db_session, filters=MovementFilter(lot_id=lot.id))
    assert len(movements) == 1
    movement = movements[0]
    assert movement.type == models.MovementTypeEnum.IN
    assert movement.reason == lots.RECEIPT_REASON
    assert movement.reference == "BATCH-7"
    assert movement.total_cost == Decimal("200")


def test_receive_lot_uses_last_cost_for_average(db_session):
    warehouse = create_warehouse(db_session)
    item = create_item(db_session)

    receive(db_session, item, warehouse, 100, "2.0")
    receive(db_session, item, warehouse, 1, "9.5")

    db_session.refresh(item)
    assert item.avg_cost == Decimal("9.5")


def test_receive_lot_validates_references(db_session):
    warehouse = create_warehouse(db_session)
    field_plot = create_warehouse(db_session, "Block A", plot_type="field")
    item = create_item(db_session)

    with pytest.raises(NotFound):
        receive(db_session, item, type("Plot", (), {"id": 999})(), 10, "1.0")
    with pytest.raises(InvalidArgument):
        receive(db_session, item, field_plot, 10, "1.0")
    with pytest.raises(NotFound):
        receive(db_session, type("Item", (), {"id": 999})(), warehouse, 10, "1.0")

    catalog.retire_item(db_session, item_id=item.id)
    with pytest.raises(InvalidArgument):
        receive(db_session, item, warehouse, 10, "1.0")

    assert db_session.query(models.StockLot).count() == 0
    assert db_session.query(models.StockMovement).count() == 0


@pytest.mark.parametrize("quantity,unit_cost", [(0, "1.0"), (-5, "1.0"), (5, "0"), (5, "-2")])
def test_receive_lot_requires_positive_amounts(db_session, quantity, unit_cost):
    warehouse = create_warehouse(db_session)
    item = create_item(db_session)

    with pytest.raises(InvalidArgument):
        receive(db_session, item, warehouse, quantity, unit_cost)


@pytest.mark.parametrize("quantity,unit_cost", [("1e30", "1.0"), ("1e14", "1.0"), (5, "1e20"), ("1e13", "1e13")])
def test_receive_lot_rejects_amounts_beyond_column_range(db_session, quantity, unit_cost):
    warehouse = create_warehouse(db_session)
    item = create_item(db_session)

    with pytest.raises(InvalidArgument):
        receive(db_session, item, warehouse, quantity, unit_cost)

    assert db_session.query(models.StockLot).count() == 0


def test_receive_lot_idempotency_key_replays_and_guards_payload(db_session):
    warehouse = create_warehouse(db_session)
    item = create_item(db_session)

    first = receive(db_session, item, warehouse, 10, "2.0", idempotency_key="rcv-1")
    replay = receive(db_session, item, warehouse, 10, "2.0", idempotency_key="rcv-1")

    assert replay.id == first.id
    assert db_session.query(models.StockLot).count() == 1
    assert db_session.query(models.StockMovement).count() == 1

    with pytest.raises(Conflict):
        receive(db_session, item, warehouse, 11, "2.0", idempotency_key="rcv-1")


def test_available_quantity_counts_only_available_lots(db_session):
    warehouse = create_warehouse(db_session)
    other = create_warehouse(db_session, "Other store", plot_type="storage")
    item = create_item(db_session)
    receive(db_session, item, warehouse, 30, "1.0", batch_no="A")
    spent = receive(db_session, item, warehouse, 5, "1.0", batch_no="B")
    receive(db_session, item, warehouse, 7, "1.0", batch_no="C", expiry_date=date.today() - timedelta(days=1))
    receive(db_session, item, other, 50, "1.0", batch_no="D")

    lots.remove_stock(
        db_session,
        payload=schemas.StockRemove(lot_id=spent.id, quantity=Decimal("5"), reason="Spilled"),
        performed_by="Store Keeper",
    )
    assert lots.expire_lots(db_session) == 1

    assert lots.available_quantity(db_session, item_id=item.id, warehouse_id=warehouse.id) == Decimal("30")
    assert lots.available_quantity(
        db_session, item_id=item.id, warehouse_id=warehouse.id, for_update=True
    ) == Decimal("30")
    assert lots.available_quantity(db_session, item_id=item.id, warehouse_id=other.id) == Decimal("50")


def test_decrement_lot_depletes_at_zero(db_session):
    warehouse = create_warehouse(db_session)
    item = create_item(db_session)
    lot = receive(db_session, item, warehouse, 12, "1.5")

    movement = lots.decrement_lot(
        db_session,
        lot_id=lot.id,
        quantity=Decimal("12"),
        reason="Issued to block C",
        performed_by="Store Keeper",
        reference="WO-12",
    )
    db_session.commit()
    db_session.refresh(lot)

    assert lot.quantity == Decimal("0")
    assert lot.status == models.LotStatusEnum.DEPLETED
    assert movement.type == models.MovementTypeEnum.OUT
    assert movement.total_cost == Decimal("18")

    with pytest.raises(NotAvailable):
        lots.decrement_lot(
            db_session,
            lot_id=lot.id,
            quantity=Decimal("1"),
            reason="Issued",
            performed_by="Store Keeper",
        )


def test_decrement_lot_rejects_overdraw_and_unknown_lot(db_session):
    warehouse = create_warehouse(db_session)
    item = create_item(db_session)
    lot = receive(db_session, item, warehouse, 12, "1.5")

    with pytest.raises(InsufficientQuantity) as excinfo:
        lots.decrement_lot(db_session, lot_id=lot.id, quantity=Decimal("13"), reason="Issue", performed_by="SK")
    assert "available: 12, requested: 13" in str(excinfo.value)

    with pytest.raises(NotFound):
        lots.decrement_lot(db_session, lot_id=404, quantity=Decimal("1"), reason="Issue", performed_by="SK")


def test_remove_stock_conserves_quantity(db_session):
    warehouse = create_warehouse(db_session)
    item = create_item(db_session)
    lot = receive(db_session, item, warehouse, 20, "2.0")

    for qty in ("3", "4.25", "0.75"):
        lots.remove_stock(
            db_session,
            payload=schemas.StockRemove(lot_id=lot.id, quantity=Decimal(qty), reason="Field issue"),
            performed_by="Store Keeper",
        )

    db_session.refresh(lot)
    assert lot.quantity == Decimal("12")
    assert lot.received_quantity - _out_total(db_session, lot) == lot.quantity
    assert lot.total_cost == lot.received_quantity * lot.unit_cost


def test_remove_stock_requires_reason_and_performer(db_session):
    warehouse = create_warehouse(db_session)
    item = create_item(db_session)
    lot = receive(db_session, item, warehouse, 20, "2.0")

    with pytest.raises(InvalidArgument):
        lots.remove_stock(db_session, payload=schemas.StockRemove(lot_id=lot.id, quantity=Decimal("1"), reason=""))
    with pytest.raises(InvalidArgument):
        lots.remove_stock(db_session, payload=schemas.StockRemove(lot_id=lot.id, quantity=Decimal("1"), reason="Spill"))


def test_remove_stock_notifies_when_crossing_reorder_point(db_session, dispatcher):
    manager = create_user(db_session, email="gudang@example.com", role=AccountRole.WAREHOUSE)
    warehouse = create_warehouse(db_session)
    item = create_item(db_session, reorder_point=10)
    lot = receive(db_session, item, warehouse, 15, "2.0")

    lots.remove_stock(
        db_session,
        payload=schemas.StockRemove(lot_id=lot.id, quantity=Decimal("4"), reason="Issue"),
        performed_by="Store Keeper",
    )
    assert dispatcher.pending == 0

    lots.remove_stock(
        db_session,
        payload=schemas.StockRemove(lot_id=lot.id, quantity=Decimal("2"), reason="Issue"),
        performed_by="Store Keeper",
    )
    assert dispatcher.drain() == 1

    notes = db_session.query(notification_models.Notification).all()
    assert [(n.user_id, n.type) for n in notes] == [(manager.id, "low_stock")]


def test_list_lots_filters(db_session):
    main = create_warehouse(db_session, "Main store")
    field = create_warehouse(db_session, "Field store", plot_type="storage")
    item = create_item(db_session, name="Urea")
    receive(db_session, item, main, 10, "2.0", batch_no="URE-01")
    receive(db_session, item, field, 10, "2.0", batch_no="URE-02")

    assert [lot.batch_no for lot in lots.list_lots(db_session, filters=LotFilter(warehouse_id=field.id))] == ["URE-02"]
    assert len(lots.list_lots(db_session, filters=LotFilter(search="urea"))) == 2
    assert lots.list_lots(db_session, filters=LotFilter(status="depleted")) == []
    with pytest.raises(InvalidArgument):
        lots.list_lots(db_session, filters=LotFilter(status="lost"))


def test_expire_lots_job(db_session, monkeypatch, session_factory):
    warehouse = create_warehouse(db_session)
    item = create_item(db_session)
    stale = receive(db_session, item, warehouse, 5, "1.0", batch_no="OLD", expiry_date=date(2024, 1, 31))
    fresh = receive(db_session, item, warehouse, 5, "1.0", batch_no="NEW", expiry_date=date(2030, 1, 31))

    monkeypatch.setattr(expire_job, "WriteSessionLocal", session_factory)
    assert expire_job.run(today=date(2025, 6, 1)) == {"expired": 1}
    assert expire_job.run(today=date(2025, 6, 1)) == {"expired": 0}

    db_session.refresh(stale)
    db_session.refresh(fresh)
    assert stale.status == models.LotStatusEnum.EXPIRED
    assert fresh.status == models.LotStatusEnum.AVAILABLE


def test_inventory_stats(db_session):
    warehouse = create_warehouse(db_session)
    create_warehouse(db_session, "Block A", plot_type="field")
    urea = create_item(db_session, sku="UREA-1", reorder_point=10)
    create_item(db_session, sku="NPK-1", reorder_point=5)
    lot = receive(db_session, urea, warehouse, 40, "2.5")
    lots.remove_stock(
        db_session,
        payload=schemas.StockRemove(lot_id=lot.id, quantity=Decimal("10"), reason="Issue"),
        performed_by="Store Keeper",
    )

    result = stats.inventory_stats(db_session)

    assert result.total_items == 2
    assert result.total_value == Decimal("75")
    assert result.warehouses == 1
    assert result.low_stock_items == 1
    assert result.recent_movements == 2


def test_remove_stock_rejects_oversized_quantity(db_session):
    warehouse = create_warehouse(db_session)
    item = create_item(db_session)
    lot = receive(db_session, item, warehouse, 20, "2.0")

    with pytest.raises(InvalidArgument) as excinfo:
        lots.remove_stock(
            db_session,
            payload=schemas.StockRemove(lot_id=lot.id, quantity=Decimal("1e30"), reason="Count"),
            performed_by="Store Keeper",
        )
    assert str(excinfo.value) == "quantity must be a number"

    db_session.refresh(lot)
    assert lot.quantity == Decimal("20")


def test_remove_stock_requires_known_stock_request(db_session):
    warehouse = create_warehouse(db_session)
    item = create_item(db_session)
    lot = receive(db_session, item, warehouse, 20, "2.0")

    with pytest.raises(NotFound) as excinfo:
        lots.remove_stock(
            db_session,
            payload=schemas.StockRemove(lot_id=lot.id, quantity=Decimal("1"), reason="Issue", stock_request_id=9999),
            performed_by="Store Keeper",
        )
    assert str(excinfo.value) == "Stock request not found"

    db_session.refresh(lot)
    assert lot.quantity == Decimal("20")
    assert _out_total(db_session, lot) == Decimal("0")
