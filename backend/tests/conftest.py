"""
Shared fixtures: an in-memory SQLite ledger per test, a tenant with a small
chart of accounts, a default warehouse and a stocked item.
"""
from datetime import date
from decimal import Decimal
from io import BytesIO

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ledger_engine import models  # noqa: F401  registers tables on Base
from ledger_engine.core.database import Base, get_db
from ledger_engine.core.security import create_access_token
from ledger_engine.schemas import AccountCreate, ItemCreate, StockMoveCreate, WarehouseCreate
from ledger_engine.services.account_service import AccountService
from ledger_engine.services.inventory_service import ItemService, StockMoveService, WarehouseService
from ledger_engine.services.tenant_service import TenantService

USER_ID = 7
SALE_DATE = date(2024, 3, 15)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def tenant(db):
    return TenantService(db).create("Acme Trading")


@pytest.fixture
def other_tenant(db):
    return TenantService(db).create("Globex")


@pytest.fixture
def accounts(db, tenant):
    """Small chart of accounts keyed by short name"""
    service = AccountService(db)
    chart = {
        "cash": ("1000", "Cash", "asset"),
        "receivable": ("1100", "Accounts Receivable", "asset"),
        "inventory": ("1200", "Inventory", "asset"),
        "payable": ("2000", "Accounts Payable", "liability"),
        "capital": ("3000", "Owner Capital", "equity"),
        "revenue": ("4000", "Sales Revenue", "revenue"),
        "cogs": ("5000", "Cost of Sales", "cost"),
        "rent": ("6000", "Rent Expense", "expense"),
    }
    return {
        key: service.create(AccountCreate(code=code, name=name, type=account_type), tenant.id)
        for key, (code, name, account_type) in chart.items()
    }


@pytest.fixture
def warehouse(db, tenant):
    return WarehouseService(db).create(
        WarehouseCreate(name="Main Store", code="MAIN", is_default=True), tenant.id
    )


@pytest.fixture
def widget(db, tenant, warehouse):
    """Item costing 30, selling at 50, with 10 units purchased into the main store"""
    item = ItemService(db).create(
        ItemCreate(name="Widget", sku="WID-1", cost=Decimal("30"), price=Decimal("50")), tenant.id
    )
    StockMoveService(db).create(
        StockMoveCreate(
            item_id=item.id, warehouse_id=warehouse.id, move_type="purchase",
            quantity=Decimal("10"), unit_cost=Decimal("30"),
        ),
        tenant.id,
        USER_ID,
    )
    db.refresh(item)
    return item


@pytest.fixture
def make_xlsx():
    """Build .xlsx bytes from a header row and data rows"""
    from openpyxl import Workbook

    def build(header, rows):
        wb = Workbook()
        ws = wb.active
        ws.append(list(header))
        for row in rows:
            ws.append(list(row))
        buffer = BytesIO()
        wb.save(buffer)
        return buffer.getvalue()

    return build


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient
    from ledger_engine.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(tenant):
    def build(role="admin", tenant_id=None, user_id=USER_ID):
        token = create_access_token({
            "sub": str(user_id),
            "tenant_id": tenant_id if tenant_id is not None else tenant.id,
            "role": role,
        })
        return {"Authorization": f"Bearer {token}"}

    return build
