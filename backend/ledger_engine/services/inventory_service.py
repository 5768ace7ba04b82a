"""
Inventory Service - Items, Warehouses, Stock Moves
"""
from typing import Optional, List
from decimal import Decimal
from sqlalchemy.orm import Session
import logging

from ledger_engine.core.database import transaction
from ledger_engine.core.exceptions import (
    ConflictError, ReferenceNotFoundError, ValidationError
)
from ledger_engine.core.money import to_decimal, to_money
from ledger_engine.models import Item, MoveType, StockMove, Tenant, Warehouse
from ledger_engine.schemas import ItemCreate, ItemUpdate, StockMoveCreate, WarehouseCreate
from ledger_engine.services.activity_service import ActivityAction, ActivityLogService

logger = logging.getLogger(__name__)

MOVE_TYPES = {m.value for m in MoveType}

# Written only by invoice posting and transfer legs
RESERVED_REFERENCE_TYPES = ("invoice", "transfer_in")


class WarehouseService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, warehouse_id: int, tenant_id: int) -> Optional[Warehouse]:
        return self.db.query(Warehouse).filter(
            Warehouse.id == warehouse_id,
            Warehouse.tenant_id == tenant_id
        ).first()

    def get_or_raise(self, warehouse_id: int, tenant_id: int) -> Warehouse:
        warehouse = self.get_by_id(warehouse_id, tenant_id)
        if not warehouse:
            raise ReferenceNotFoundError(f"Warehouse not found: {warehouse_id}", {"warehouse_id": warehouse_id})
        return warehouse

    def get_by_tenant(self, tenant_id: int) -> List[Warehouse]:
        return self.db.query(Warehouse).filter(
            Warehouse.tenant_id == tenant_id
        ).order_by(Warehouse.code).all()

    def create(self, warehouse_data: WarehouseCreate, tenant_id: int) -> Warehouse:
        existing = self.db.query(Warehouse).filter(
            Warehouse.tenant_id == tenant_id,
            Warehouse.code == warehouse_data.code
        ).first()
        if existing:
            raise ConflictError(f"Warehouse with code '{warehouse_data.code}' already exists")

        with transaction(self.db):
            warehouse = Warehouse(
                tenant_id=tenant_id,
                name=warehouse_data.name,
                code=warehouse_data.code,
            )
            self.db.add(warehouse)
            self.db.flush()
            if warehouse_data.is_default:
                self._tenant(tenant_id).default_warehouse_id = warehouse.id
        return warehouse

    def set_default(self, tenant_id: int, warehouse_id: int) -> Warehouse:
        warehouse = self.get_or_raise(warehouse_id, tenant_id)
        with transaction(self.db):
            self._tenant(tenant_id).default_warehouse_id = warehouse.id
        logger.info(f"Default warehouse for tenant {tenant_id} set to {warehouse.code}")
        return warehouse

    def get_default(self, tenant_id: int) -> Warehouse:
        """The tenant's configured default warehouse; ConflictError when unset"""
        tenant = self._tenant(tenant_id)
        warehouse = None
        if tenant.default_warehouse_id is not None:
            warehouse = self.get_by_id(tenant.default_warehouse_id, tenant_id)
        if warehouse is None:
            raise ConflictError(
                "No default warehouse configured for tenant",
                {"tenant_id": tenant_id}
            )
        return warehouse

    def _tenant(self, tenant_id: int) -> Tenant:
        tenant = self.db.query(Tenant).filter(Tenant.id == tenant_id).first()
        if not tenant:
            raise ReferenceNotFoundError(f"Tenant not found: {tenant_id}")
        return tenant


class ItemService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, item_id: int, tenant_id: int) -> Optional[Item]:
        return self.db.query(Item).filter(
            Item.id == item_id,
            Item.tenant_id == tenant_id
        ).first()

    def get_or_raise(self, item_id: int, tenant_id: int) -> Item:
        item = self.get_by_id(item_id, tenant_id)
        if not item:
            raise ReferenceNotFoundError(f"Item not found: {item_id}", {"item_id": item_id})
        return item

    def get_by_tenant(self, tenant_id: int) -> List[Item]:
        return self.db.query(Item).filter(Item.tenant_id == tenant_id).order_by(Item.name).all()

    def is_sku_unique(self, sku: str, tenant_id: int, exclude_item_id: int = None) -> bool:
        query = self.db.query(Item).filter(Item.tenant_id == tenant_id, Item.sku == sku)
        if exclude_item_id:
            query = query.filter(Item.id != exclude_item_id)
        return query.first() is None

    def create(self, item_data: ItemCreate, tenant_id: int) -> Item:
        if item_data.sku and not self.is_sku_unique(item_data.sku, tenant_id):
            raise ConflictError(f"Item with SKU '{item_data.sku}' already exists")
        if item_data.cost < 0:
            raise ValidationError("Cost cannot be negative")
        if item_data.price < 0:
            raise ValidationError("Price cannot be negative")

        with transaction(self.db):
            item = Item(
                tenant_id=tenant_id,
                sku=item_data.sku,
                barcode=item_data.barcode,
                name=item_data.name,
                cost=to_money(item_data.cost),
                price=to_money(item_data.price),
                quantity_on_hand=Decimal("0"),
            )
            self.db.add(item)
        return item

    def update(self, item_id: int, tenant_id: int, item_data: ItemUpdate) -> Item:
        item = self.get_or_raise(item_id, tenant_id)
        update_data = {k: v for k, v in item_data.model_dump(exclude_unset=True).items() if v is not None}

        if update_data.get("sku") and not self.is_sku_unique(update_data["sku"], tenant_id, item_id):
            raise ConflictError(f"Item with SKU '{update_data['sku']}' already exists")
        for field in ("cost", "price"):
            if field in update_data:
                if update_data[field] < 0:
                    raise ValidationError(f"{field.capitalize()} cannot be negative")
                update_data[field] = to_money(update_data[field])

        with transaction(self.db):
            for key, value in update_data.items():
                setattr(item, key, value)
        return item


class StockMoveService:
    def __init__(self, db: Session):
        self.db = db

    def create(self, move_data: StockMoveCreate, tenant_id: int, user_id: int) -> StockMove:
        """Record a stock move (and its transfer leg) in one transaction"""
        if move_data.reference_type in RESERVED_REFERENCE_TYPES:
            raise ValidationError(
                f"Reference type '{move_data.reference_type}' is reserved",
                {"reserved": list(RESERVED_REFERENCE_TYPES)}
            )
        with transaction(self.db):
            move = self.apply_move(
                tenant_id,
                user_id,
                item_id=move_data.item_id,
                warehouse_id=move_data.warehouse_id,
                move_type=move_data.move_type.value if hasattr(move_data.move_type, "value") else move_data.move_type,
                quantity=move_data.quantity,
                unit_cost=move_data.unit_cost,
                target_warehouse_id=move_data.target_warehouse_id,
                reference_type=move_data.reference_type,
                reference_id=move_data.reference_id,
                note=move_data.note,
            )
        return move

    def apply_move(
        self,
        tenant_id: int,
        user_id: int,
        item_id: int,
        warehouse_id: int,
        move_type: str,
        quantity,
        unit_cost=0,
        target_warehouse_id: Optional[int] = None,
        reference_type: Optional[str] = None,
        reference_id: Optional[int] = None,
        note: Optional[str] = None,
    ) -> StockMove:
        """
        Add a stock move to the current unit of work (flush only).

        Sales decrement on-hand with a conditional update and raise
        ConflictError when it matches no row. Purchases and adjustments
        increment. Transfers leave the item's total unchanged and add a paired
        ``adjustment`` leg at the target warehouse.
        """
        if move_type not in MOVE_TYPES:
            raise ValidationError(f"Invalid move type: {move_type}", {"allowed": sorted(MOVE_TYPES)})
        try:
            quantity = to_money(quantity)
            unit_cost = to_money(unit_cost)
        except ValueError:
            raise ValidationError("Quantity and unit cost must be numeric")
        if quantity <= 0:
            raise ValidationError("Quantity must be positive", {"quantity": str(quantity)})
        if unit_cost < 0:
            raise ValidationError("Unit cost cannot be negative")

        item = ItemService(self.db).get_or_raise(item_id, tenant_id)
        warehouses = WarehouseService(self.db)
        warehouses.get_or_raise(warehouse_id, tenant_id)

        if move_type == MoveType.TRANSFER.value:
            if target_warehouse_id is None:
                raise ValidationError("Transfer requires a target warehouse")
            if target_warehouse_id == warehouse_id:
                raise ValidationError("Transfer target must differ from source warehouse")
            warehouses.get_or_raise(target_warehouse_id, tenant_id)

        if move_type == MoveType.SALE.value:
            self._decrement(item, tenant_id, quantity)
        elif move_type in (MoveType.PURCHASE.value, MoveType.ADJUSTMENT.value):
            self.db.query(Item).filter(
                Item.id == item.id,
                Item.tenant_id == tenant_id
            ).update(
                {Item.quantity_on_hand: Item.quantity_on_hand + quantity},
                synchronize_session=False
            )
            self.db.expire(item, ["quantity_on_hand"])

        move = StockMove(
            tenant_id=tenant_id,
            item_id=item.id,
            warehouse_id=warehouse_id,
            target_warehouse_id=target_warehouse_id if move_type == MoveType.TRANSFER.value else None,
            move_type=move_type,
            quantity=quantity,
            unit_cost=unit_cost,
            reference_type=reference_type,
            reference_id=reference_id,
            note=note,
            created_by=user_id,
        )
        self.db.add(move)
        self.db.flush()

        if move_type == MoveType.TRANSFER.value:
            self.db.add(StockMove(
                tenant_id=tenant_id,
                item_id=item.id,
                warehouse_id=target_warehouse_id,
                move_type=MoveType.ADJUSTMENT.value,
                quantity=quantity,
                unit_cost=unit_cost,
                reference_type="transfer_in",
                reference_id=move.id,
                note="Auto generated from transfer",
                created_by=user_id,
            ))
            self.db.flush()

        ActivityLogService(self.db).log(
            tenant_id, ActivityAction.STOCK_MOVE_CREATED, "stock_move", move.id,
            user_id=user_id, details={"move_type": move_type, "quantity": str(quantity)}
        )
        logger.info(f"Stock move {move.id}: {move_type} {quantity} x item {item.id} (tenant {tenant_id})")
        return move

    def _decrement(self, item: Item, tenant_id: int, quantity: Decimal) -> None:
        updated = self.db.query(Item).filter(
            Item.id == item.id,
            Item.tenant_id == tenant_id,
            Item.quantity_on_hand >= quantity
        ).update(
            {Item.quantity_on_hand: Item.quantity_on_hand - quantity},
            synchronize_session=False
        )
        self.db.expire(item, ["quantity_on_hand"])
        if updated == 0:
            raise ConflictError(
                "insufficient stock",
                {
                    "item_id": item.id,
                    "requested": str(quantity),
                    "available": str(to_decimal(item.quantity_on_hand)),
                }
            )

    def get_by_tenant(self, tenant_id: int, item_id: Optional[int] = None, limit: int = 100) -> List[StockMove]:
        query = self.db.query(StockMove).filter(StockMove.tenant_id == tenant_id)
        if item_id:
            query = query.filter(StockMove.item_id == item_id)
        return query.order_by(StockMove.id.desc()).limit(limit).all()

    def get_by_reference(self, tenant_id: int, reference_type: str, reference_id: int,
                         move_type: Optional[str] = None) -> List[StockMove]:
        query = self.db.query(StockMove).filter(
            StockMove.tenant_id == tenant_id,
            StockMove.reference_type == reference_type,
            StockMove.reference_id == reference_id
        )
        if move_type:
            query = query.filter(StockMove.move_type == move_type)
        return query.order_by(StockMove.id).all()
