from decimal import Decimal

import pytest

from ledger_engine.core.exceptions import ConflictError, ReferenceNotFoundError, ValidationError
from ledger_engine.models import ActivityLog, StockMove
from ledger_engine.schemas import ItemCreate, ItemUpdate, StockMoveCreate, WarehouseCreate
from ledger_engine.services.inventory_service import ItemService, StockMoveService, WarehouseService

from conftest import USER_ID


def _move(db, tenant, **fields):
    return StockMoveService(db).create(StockMoveCreate(**fields), tenant.id, USER_ID)


def test_purchase_increments_on_hand(db, tenant, widget, warehouse):
    assert widget.quantity_on_hand == Decimal("10.00")

    _move(db, tenant, item_id=widget.id, warehouse_id=warehouse.id, move_type="purchase", quantity=Decimal("2.5"))
    db.refresh(widget)
    assert widget.quantity_on_hand == Decimal("12.50")

    log = db.query(ActivityLog).filter(ActivityLog.action == "stock_move_created").order_by(ActivityLog.id.desc()).first()
    assert log.details_data == {"move_type": "purchase", "quantity": "2.50"}


def test_sale_decrements_on_hand(db, tenant, widget, warehouse):
    _move(db, tenant, item_id=widget.id, warehouse_id=warehouse.id, move_type="sale", quantity=Decimal("4"))
    db.refresh(widget)
    assert widget.quantity_on_hand == Decimal("6.00")


def test_sale_beyond_on_hand_is_refused(db, tenant, widget, warehouse):
    with pytest.raises(ConflictError, match="insufficient stock") as excinfo:
        _move(db, tenant, item_id=widget.id, warehouse_id=warehouse.id, move_type="sale", quantity=Decimal("11"))

    assert excinfo.value.details["available"] == "10.00"
    db.refresh(widget)
    assert widget.quantity_on_hand == Decimal("10.00")
    assert db.query(StockMove).filter(StockMove.move_type == "sale").count() == 0


@pytest.mark.parametrize("quantity", [Decimal("0"), Decimal("-1")])
def test_quantity_must_be_positive(db, tenant, widget, warehouse, quantity):
    with pytest.raises(ValidationError, match="positive"):
        _move(db, tenant, item_id=widget.id, warehouse_id=warehouse.id, move_type="adjustment", quantity=quantity)


def test_transfer_adds_paired_leg_and_keeps_total(db, tenant, widget, warehouse):
    annex = WarehouseService(db).create(WarehouseCreate(name="Annex", code="ANX"), tenant.id)

    move = _move(
        db, tenant, item_id=widget.id, warehouse_id=warehouse.id, target_warehouse_id=annex.id,
        move_type="transfer", quantity=Decimal("3"), unit_cost=Decimal("30"),
    )

    db.refresh(widget)
    assert widget.quantity_on_hand == Decimal("10.00")
    assert move.target_warehouse_id == annex.id

    leg = db.query(StockMove).filter(StockMove.reference_type == "transfer_in").one()
    assert leg.reference_id == move.id
    assert leg.warehouse_id == annex.id
    assert leg.move_type == "adjustment"
    assert leg.quantity == Decimal("3.00")
    assert leg.note == "Auto generated from transfer"


def test_transfer_requires_distinct_target(db, tenant, widget, warehouse):
    with pytest.raises(ValidationError, match="target warehouse"):
        _move(db, tenant, item_id=widget.id, warehouse_id=warehouse.id, move_type="transfer", quantity=Decimal("1"))
    with pytest.raises(ValidationError, match="differ"):
        _move(
            db, tenant, item_id=widget.id, warehouse_id=warehouse.id, target_warehouse_id=warehouse.id,
            move_type="transfer", quantity=Decimal("1"),
        )


def test_move_for_unknown_item_or_foreign_warehouse(db, tenant, other_tenant, widget):
    foreign = WarehouseService(db).create(WarehouseCreate(name="Elsewhere", code="ELS"), other_tenant.id)
    with pytest.raises(ReferenceNotFoundError, match="Item not found"):
        _move(db, tenant, item_id=999, warehouse_id=foreign.id, move_type="purchase", quantity=Decimal("1"))
    with pytest.raises(ReferenceNotFoundError, match="Warehouse not found"):
        _move(db, tenant, item_id=widget.id, warehouse_id=foreign.id, move_type="purchase", quantity=Decimal("1"))


def test_default_warehouse_is_explicit(db, tenant):
    service = WarehouseService(db)
    with pytest.raises(ConflictError, match="No default warehouse"):
        service.get_default(tenant.id)

    first = service.create(WarehouseCreate(name="First", code="W1"), tenant.id)
    with pytest.raises(ConflictError):
        service.get_default(tenant.id)

    second = service.create(WarehouseCreate(name="Second", code="W2", is_default=True), tenant.id)
    assert service.get_default(tenant.id).id == second.id

    service.set_default(tenant.id, first.id)
    assert service.get_default(tenant.id).id == first.id


def test_duplicate_warehouse_code(db, tenant, warehouse):
    with pytest.raises(ConflictError):
        WarehouseService(db).create(WarehouseCreate(name="Other", code="MAIN"), tenant.id)


def test_item_sku_unique_per_tenant(db, tenant, other_tenant, widget):
    service = ItemService(db)
    with pytest.raises(ConflictError, match="SKU"):
        service.create(ItemCreate(name="Copy", sku="WID-1"), tenant.id)
    assert service.create(ItemCreate(name="Widget", sku="WID-1"), other_tenant.id).id != widget.id


def test_item_update_keeps_quantity(db, tenant, widget):
    updated = ItemService(db).update(widget.id, tenant.id, ItemUpdate(price=Decimal("55.505")))
    assert updated.price == Decimal("55.51")
    assert updated.quantity_on_hand == Decimal("10.00")


@pytest.mark.parametrize("reference_type", ["invoice", "transfer_in"])
def test_manual_moves_cannot_use_internal_reference_types(db, tenant, widget, warehouse, reference_type):
    with pytest.raises(ValidationError, match="reserved"):
        _move(
            db, tenant, item_id=widget.id, warehouse_id=warehouse.id, move_type="adjustment",
            quantity=Decimal("1"), reference_type=reference_type, reference_id=1,
        )
    db.refresh(widget)
    assert widget.quantity_on_hand == Decimal("10.00")
