"""
Pydantic Schemas for API Validation
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, List, Optional
from datetime import datetime, date
from decimal import Decimal
from enum import Enum


# ==================== ENUMS ====================

class AccountTypeEnum(str, Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"
    COST = "cost"


class AccountRoleEnum(str, Enum):
    CASH = "cash"
    RECEIVABLE = "receivable"
    PAYABLE = "payable"
    INVENTORY = "inventory"


class MoveTypeEnum(str, Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"


class InvoiceTypeEnum(str, Enum):
    SALE = "sale"
    PURCHASE = "purchase"


# ==================== ACCOUNT SCHEMAS ====================

class AccountBase(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    type: AccountTypeEnum
    role: Optional[AccountRoleEnum] = None


class AccountCreate(AccountBase):
    parent_id: Optional[int] = None


class AccountUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[AccountTypeEnum] = None
    role: Optional[AccountRoleEnum] = None
    parent_id: Optional[int] = None
    is_active: Optional[bool] = None


class AccountResponse(BaseModel):
    id: int
    tenant_id: int
    parent_id: Optional[int]
    code: str
    name: str
    type: str
    role: Optional[str]
    is_system: bool
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AccountNode(AccountResponse):
    children: List["AccountNode"] = []


AccountNode.model_rebuild()


class AccountTreeResponse(BaseModel):
    flat: List[AccountResponse]
    tree: List[AccountNode]


# ==================== JOURNAL SCHEMAS ====================

class JournalLineCreate(BaseModel):
    # Amount rules (sign, exclusivity) are enforced by the posting engine
    account_id: int
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    description: Optional[str] = None


class JournalEntryCreate(BaseModel):
    entry_date: date
    description: Optional[str] = None
    lines: List[JournalLineCreate]


class JournalLineResponse(BaseModel):
    id: int
    account_id: int
    account_code: Optional[str] = None
    account_name: Optional[str] = None
    debit: Decimal
    credit: Decimal
    description: Optional[str]


class JournalEntryResponse(BaseModel):
    id: int
    entry_date: date
    description: Optional[str]
    source_type: Optional[str]
    source_id: Optional[int]
    created_by: int
    created_at: datetime
    total_debit: Decimal
    total_credit: Decimal
    lines: List[JournalLineResponse]


class JournalEntryPage(BaseModel):
    page: int
    page_size: int
    total: int
    data: List[JournalEntryResponse]


class JournalEntryCreated(BaseModel):
    id: int


# ==================== TRIAL BALANCE SCHEMAS ====================

class TrialBalanceRow(BaseModel):
    account_id: int
    code: str
    name: str
    type: str
    debit: Decimal
    credit: Decimal
    balance: Decimal


class TrialBalanceTotals(BaseModel):
    debit: Decimal
    credit: Decimal
    balanced: bool


class TrialBalanceResponse(BaseModel):
    date_from: date
    date_to: date
    lines: List[TrialBalanceRow]
    totals: TrialBalanceTotals


class TrialBalanceImportResponse(BaseModel):
    imported_rows: int
    created_accounts: int
    balanced: bool
    totals: Dict[str, Decimal]
    journal_entry_id: Optional[int] = None


# ==================== INVENTORY SCHEMAS ====================

class WarehouseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=50)
    is_default: bool = False


class WarehouseResponse(BaseModel):
    id: int
    tenant_id: int
    name: str
    code: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    sku: Optional[str] = Field(None, max_length=100)
    barcode: Optional[str] = Field(None, max_length=100)
    cost: Decimal = Field(default=Decimal("0.00"), ge=0)
    price: Decimal = Field(default=Decimal("0.00"), ge=0)


class ItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    sku: Optional[str] = Field(None, max_length=100)
    barcode: Optional[str] = Field(None, max_length=100)
    cost: Optional[Decimal] = Field(None, ge=0)
    price: Optional[Decimal] = Field(None, ge=0)


class ItemResponse(BaseModel):
    id: int
    tenant_id: int
    sku: Optional[str]
    barcode: Optional[str]
    name: str
    cost: Decimal
    price: Decimal
    quantity_on_hand: Decimal
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StockMoveCreate(BaseModel):
    item_id: int
    warehouse_id: int
    target_warehouse_id: Optional[int] = None
    move_type: MoveTypeEnum
    quantity: Decimal
    unit_cost: Decimal = Decimal("0.00")
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    note: Optional[str] = None


class StockMoveResponse(BaseModel):
    id: int
    item_id: int
    warehouse_id: int
    target_warehouse_id: Optional[int]
    move_type: str
    quantity: Decimal
    unit_cost: Decimal
    reference_type: Optional[str]
    reference_id: Optional[int]
    note: Optional[str]
    created_by: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ==================== INVOICE SCHEMAS ====================

class InvoiceLineCreate(BaseModel):
    item_id: Optional[int] = None
    description: Optional[str] = None
    quantity: Decimal
    unit_price: Optional[Decimal] = None


class InvoiceCreate(BaseModel):
    type: InvoiceTypeEnum = InvoiceTypeEnum.SALE
    customer_name: Optional[str] = Field(None, max_length=255)
    invoice_date: date
    tax_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    discount_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    lines: List[InvoiceLineCreate]


class InvoiceLineResponse(BaseModel):
    id: int
    item_id: Optional[int]
    description: Optional[str]
    quantity: Decimal
    unit_price: Decimal
    unit_cost: Decimal
    line_total: Decimal

    model_config = ConfigDict(from_attributes=True)


class InvoiceResponse(BaseModel):
    id: int
    tenant_id: int
    invoice_number: str
    type: str
    status: str
    customer_name: Optional[str]
    invoice_date: date
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    journal_entry_id: Optional[int]
    posting_error: Optional[str]
    created_by: int
    created_at: datetime
    lines: List[InvoiceLineResponse] = []

    model_config = ConfigDict(from_attributes=True)


# ==================== REPORT SCHEMAS ====================

class StatementLine(BaseModel):
    account_id: Optional[int]
    code: Optional[str]
    name: str
    amount: Decimal


class IncomeStatementResponse(BaseModel):
    date_from: date
    date_to: date
    revenue: List[StatementLine]
    cost: List[StatementLine]
    expenses: List[StatementLine]
    totals: Dict[str, Decimal]


class BalanceSheetResponse(BaseModel):
    as_of: date
    assets: List[StatementLine]
    liabilities: List[StatementLine]
    equity: List[StatementLine]
    totals: Dict[str, Any]


class CashFlowResponse(BaseModel):
    period: Dict[str, date]
    net_income: Decimal
    adjustments: Dict[str, Decimal]
    operating_cash_flow: Decimal
