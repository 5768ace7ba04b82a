"""
Inventory API Routes - Items, Warehouses, Stock Moves
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from ledger_engine.core.database import get_db
from ledger_engine.core.security import AccessContext, ModulePermission
from ledger_engine.schemas import (
    ItemCreate, ItemUpdate, ItemResponse,
    WarehouseCreate, WarehouseResponse,
    StockMoveCreate, StockMoveResponse
)
from ledger_engine.services.inventory_service import ItemService, StockMoveService, WarehouseService

router = APIRouter(prefix="/inventory", tags=["Inventory"])


# ==================== ITEMS ====================

@router.get("/items", response_model=List[ItemResponse])
async def list_items(
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("inventory", "read"))
):
    return ItemService(db).get_by_tenant(context.tenant_id)


@router.post("/items", response_model=ItemResponse, status_code=201)
async def create_item(
    item_data: ItemCreate,
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("inventory", "write"))
):
    return ItemService(db).create(item_data, context.tenant_id)


@router.put("/items/{item_id}", response_model=ItemResponse)
async def update_item(
    item_id: int,
    item_data: ItemUpdate,
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("inventory", "write"))
):
    return ItemService(db).update(item_id, context.tenant_id, item_data)


# ==================== WAREHOUSES ====================

@router.get("/warehouses", response_model=List[WarehouseResponse])
async def list_warehouses(
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("inventory", "read"))
):
    return WarehouseService(db).get_by_tenant(context.tenant_id)


@router.post("/warehouses", response_model=WarehouseResponse, status_code=201)
async def create_warehouse(
    warehouse_data: WarehouseCreate,
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("inventory", "write"))
):
    return WarehouseService(db).create(warehouse_data, context.tenant_id)


@router.put("/warehouses/{warehouse_id}/default", response_model=WarehouseResponse)
async def set_default_warehouse(
    warehouse_id: int,
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("inventory", "write"))
):
    """Make this warehouse the one sale invoices draw stock from"""
    return WarehouseService(db).set_default(context.tenant_id, warehouse_id)


# ==================== STOCK MOVES ====================

@router.get("/stock-moves", response_model=List[StockMoveResponse])
async def list_stock_moves(
    item_id: Optional[int] = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("inventory", "read"))
):
    return StockMoveService(db).get_by_tenant(context.tenant_id, item_id, min(max(limit, 1), 500))


@router.post("/stock-moves", response_model=StockMoveResponse, status_code=201)
async def create_stock_move(
    move_data: StockMoveCreate,
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("inventory", "write"))
):
    return StockMoveService(db).create(move_data, context.tenant_id, context.user_id)
