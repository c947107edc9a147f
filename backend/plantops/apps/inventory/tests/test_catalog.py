from __future__ import annotations

from decimal import Decimal

import pytest

from plantops.apps.inventory import catalog, models, schemas
from plantops.apps.inventory.errors import Conflict, InvalidArgument, NotFound
from plantops.apps.inventory.filters import ItemFilter, Page

from .helpers import create_item, create_warehouse, receive


def test_register_item_keeps_sku_as_given(db_session):
    item = create_item(db_session, sku="  abc-1 ", suppliers=[" PT Pupuk ", ""])

    assert item.sku == "abc-1"
    assert item.status == models.ItemStatusEnum.ACTIVE
    assert item.suppliers == ["PT Pupuk"]
    assert item.reorder_point == Decimal("10")


def test_register_item_rejects_duplicate_sku(db_session):
    create_item(db_session, sku="SKU-001")

    with pytest.raises(Conflict):
        create_item(db_session, sku="sku-001")
    with pytest.raises(Conflict) as excinfo:
        create_item(db_session, sku=" Sku-001")
    assert str(excinfo.value) == "SKU Sku-001 already exists"


@pytest.mark.parametrize("field", ["sku", "name", "category", "unit"])
def test_register_item_requires_fields(db_session, field):
    data = {"sku": "SKU-9", "name": "Urea", "category": "Fertilizer", "unit": "kg"}
    data[field] = "   "

    with pytest.raises(InvalidArgument):
        catalog.register_item(db_session, payload=schemas.ItemCreate(**data))

    assert db_session.query(models.InventoryItem).count() == 0


def test_update_item_revalidates_sku_excluding_self(db_session):
    first = create_item(db_session, sku="SKU-001")
    second = create_item(db_session, sku="SKU-002")

    # Re-saving its own SKU is not a conflict.
    updated = catalog.update_item(db_session, item_id=first.id, payload=schemas.ItemUpdate(sku="sku-001", name="Urea 46%"))
    assert updated.sku == "sku-001"
    assert updated.name == "Urea 46%"

    with pytest.raises(Conflict):
        catalog.update_item(db_session, item_id=second.id, payload=schemas.ItemUpdate(sku="SKU-001"))


def test_update_item_rejects_empty_patch_and_blank_fields(db_session):
    item = create_item(db_session)

    with pytest.raises(InvalidArgument):
        catalog.update_item(db_session, item_id=item.id, payload=schemas.ItemUpdate())
    with pytest.raises(InvalidArgument):
        catalog.update_item(db_session, item_id=item.id, payload=schemas.ItemUpdate(unit=""))
    with pytest.raises(NotFound):
        catalog.update_item(db_session, item_id=999, payload=schemas.ItemUpdate(name="Ghost"))


def test_retire_item_keeps_lots(db_session):
    warehouse = create_warehouse(db_session)
    item = create_item(db_session)
    lot = receive(db_session, item, warehouse, 40, "2.0")

    retired = catalog.retire_item(db_session, item_id=item.id)

    assert retired.status == models.ItemStatusEnum.DISCONTINUED
    db_session.refresh(lot)
    assert lot.quantity == Decimal("40")
    assert lot.status == models.LotStatusEnum.AVAILABLE


def test_list_items_filters_and_paginates(db_session):
    create_item(db_session, sku="UREA-1", name="Urea", category="Fertilizer")
    create_item(db_session, sku="NPK-1", name="NPK 15-15-15", category="Fertilizer")
    create_item(db_session, sku="SEED-1", name="Oil palm seed", category="Seed")

    fertilizer = catalog.list_items(db_session, filters=ItemFilter(category="Fertilizer"))
    assert {item.sku for item in fertilizer} == {"UREA-1", "NPK-1"}

    by_sku = catalog.list_items(db_session, filters=ItemFilter(search="seed"))
    assert [item.sku for item in by_sku] == ["SEED-1"]

    first_page = catalog.list_items(db_session, page=Page.of(1, 2))
    second_page = catalog.list_items(db_session, page=Page.of(2, 2))
    assert len(first_page) == 2
    assert len(second_page) == 1
    assert not {i.id for i in first_page} & {i.id for i in second_page}


def test_list_items_is_repeatable(db_session):
    create_item(db_session, sku="UREA-1")
    create_item(db_session, sku="NPK-1")

    first = [item.id for item in catalog.list_items(db_session)]
    second = [item.id for item in catalog.list_items(db_session)]

    assert first == second


def test_page_clamps_out_of_range_values():
    assert Page.of(0, 500) == Page(page=1, limit=50)
    assert Page.of(3, 20).offset == 40


def test_list_items_treats_wildcards_literally(db_session):
    half = create_item(db_session, sku="UREA-50", name="Urea 50% N")
    create_item(db_session, sku="UREA-500", name="Urea 500 kg")
    create_item(db_session, sku="NPK_15", name="NPK 15-15-15")
    create_item(db_session, sku="KCL-1", name="Pupuk 1kg")

    assert [i.id for i in catalog.list_items(db_session, filters=ItemFilter(search="50%"))] == [half.id]
    assert [i.sku for i in catalog.list_items(db_session, filters=ItemFilter(search="k_1"))] == ["NPK_15"]
