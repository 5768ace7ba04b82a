"""
SQLAlchemy Models for the Ledger Engine
"""
from datetime import datetime
import enum
import json

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Date, Numeric,
    ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from ledger_engine.core.database import Base


# ==================== ENUMS ====================

class AccountType(str, enum.Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"
    COST = "cost"


class AccountRole(str, enum.Enum):
    CASH = "cash"
    RECEIVABLE = "receivable"
    PAYABLE = "payable"
    INVENTORY = "inventory"


class MoveType(str, enum.Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"


class InvoiceType(str, enum.Enum):
    SALE = "sale"
    PURCHASE = "purchase"


class InvoiceStatus(str, enum.Enum):
    ISSUED = "issued"
    NEEDS_RECONCILIATION = "needs_reconciliation"


class SnapshotSource(str, enum.Enum):
    SYSTEM = "system"
    EXCEL_IMPORT = "excel_import"


DEFAULT_MODULES = "accounting,inventory,invoicing,reports"


# ==================== TENANT ====================

class Tenant(Base):
    """Isolated customer organization"""
    __tablename__ = 'tenants'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    enabled_modules = Column(String(255), nullable=False, default=DEFAULT_MODULES)
    default_warehouse_id = Column(Integer, nullable=True)  # warehouses.id, set explicitly
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    accounts = relationship("Account", back_populates="tenant")

    @property
    def module_set(self) -> frozenset:
        return frozenset(m.strip() for m in (self.enabled_modules or "").split(",") if m.strip())

    def has_module(self, module: str) -> bool:
        return module in self.module_set


# ==================== LEDGER ====================

class Account(Base):
    """Chart of Accounts"""
    __tablename__ = 'accounts'

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    parent_id = Column(Integer, ForeignKey('accounts.id', ondelete='SET NULL'), nullable=True)
    code = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False)  # AccountType value
    role = Column(String(20), nullable=True)  # AccountRole value
    is_system = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    tenant = relationship("Tenant", back_populates="accounts")
    parent = relationship("Account", remote_side=[id], backref="children")
    journal_lines = relationship("JournalLine", back_populates="account")

    __table_args__ = (
        UniqueConstraint('tenant_id', 'code', name='uq_account_tenant_code'),
        Index('ix_accounts_tenant_id', 'tenant_id'),
    )


class JournalEntry(Base):
    """Balanced set of debit/credit lines; immutable once committed"""
    __tablename__ = 'journal_entries'

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    entry_date = Column(Date, nullable=False)
    description = Column(Text, nullable=True)
    source_type = Column(String(50), nullable=True)  # invoice, trial_balance_import, manual
    source_id = Column(Integer, nullable=True)
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    lines = relationship("JournalLine", back_populates="entry", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_journal_entries_tenant_date', 'tenant_id', 'entry_date'),
        Index('ix_journal_entries_source', 'tenant_id', 'source_type', 'source_id'),
    )


class JournalLine(Base):
    """Single debit or credit against an account"""
    __tablename__ = 'journal_lines'

    id = Column(Integer, primary_key=True)
    entry_id = Column(Integer, ForeignKey('journal_entries.id', ondelete='CASCADE'), nullable=False)
    account_id = Column(Integer, ForeignKey('accounts.id'), nullable=False)
    debit = Column(Numeric(15, 2), default=0, nullable=False)
    credit = Column(Numeric(15, 2), default=0, nullable=False)
    description = Column(Text, nullable=True)

    # Relationships
    entry = relationship("JournalEntry", back_populates="lines")
    account = relationship("Account", back_populates="journal_lines")

    __table_args__ = (
        Index('ix_journal_lines_entry_id', 'entry_id'),
        Index('ix_journal_lines_account_id', 'account_id'),
    )


class TrialBalanceSnapshot(Base):
    """Append-only audit record of a computed or imported trial balance"""
    __tablename__ = 'trial_balance_snapshots'

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    period_from = Column(Date, nullable=False)
    period_to = Column(Date, nullable=False)
    source = Column(String(20), nullable=False)  # SnapshotSource value
    totals = Column(Text, nullable=False)  # JSON string of {lines, totals}
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def totals_data(self) -> dict:
        return json.loads(self.totals) if self.totals else {}

    __table_args__ = (
        Index('ix_tb_snapshots_tenant_id', 'tenant_id'),
    )


class ActivityLog(Base):
    """Activity trail written in the same transaction as the recorded change"""
    __tablename__ = 'activity_logs'

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, nullable=True)
    action = Column(String(50), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=True)
    details = Column(Text, nullable=True)  # JSON string
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    @property
    def details_data(self) -> dict:
        return json.loads(self.details) if self.details else {}

    __table_args__ = (
        Index('ix_activity_logs_tenant_id', 'tenant_id'),
        Index('ix_activity_logs_entity', 'entity_type', 'entity_id'),
    )


# ==================== INVENTORY ====================

class Warehouse(Base):
    __tablename__ = 'warehouses'

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(255), nullable=False)
    code = Column(String(50), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('tenant_id', 'code', name='uq_warehouse_tenant_code'),
    )


class Item(Base):
    """Catalog item with global on-hand quantity"""
    __tablename__ = 'items'

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    sku = Column(String(100), nullable=True)
    barcode = Column(String(100), nullable=True)
    name = Column(String(255), nullable=False)
    cost = Column(Numeric(15, 2), default=0, nullable=False)
    price = Column(Numeric(15, 2), default=0, nullable=False)
    quantity_on_hand = Column(Numeric(15, 2), default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('tenant_id', 'sku', name='uq_item_tenant_sku'),
        Index('ix_items_tenant_id', 'tenant_id'),
    )


class StockMove(Base):
    __tablename__ = 'stock_moves'

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    item_id = Column(Integer, ForeignKey('items.id'), nullable=False)
    warehouse_id = Column(Integer, ForeignKey('warehouses.id'), nullable=False)
    target_warehouse_id = Column(Integer, ForeignKey('warehouses.id'), nullable=True)
    move_type = Column(String(20), nullable=False)  # MoveType value
    quantity = Column(Numeric(15, 2), nullable=False)
    unit_cost = Column(Numeric(15, 2), default=0, nullable=False)
    reference_type = Column(String(50), nullable=True)
    reference_id = Column(Integer, nullable=True)
    note = Column(Text, nullable=True)
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    item = relationship("Item")
    warehouse = relationship("Warehouse", foreign_keys=[warehouse_id])
    target_warehouse = relationship("Warehouse", foreign_keys=[target_warehouse_id])

    __table_args__ = (
        Index('ix_stock_moves_tenant_id', 'tenant_id'),
        Index('ix_stock_moves_reference', 'tenant_id', 'reference_type', 'reference_id'),
    )


# ==================== INVOICING ====================

class Invoice(Base):
    __tablename__ = 'invoices'

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    invoice_number = Column(String(50), nullable=False)
    type = Column(String(20), nullable=False)  # InvoiceType value
    status = Column(String(30), nullable=False, default=InvoiceStatus.ISSUED.value)
    customer_name = Column(String(255), nullable=True)
    invoice_date = Column(Date, nullable=False)
    subtotal = Column(Numeric(15, 2), default=0, nullable=False)
    tax_amount = Column(Numeric(15, 2), default=0, nullable=False)
    discount_amount = Column(Numeric(15, 2), default=0, nullable=False)
    total_amount = Column(Numeric(15, 2), default=0, nullable=False)
    journal_entry_id = Column(Integer, ForeignKey('journal_entries.id'), nullable=True)
    posting_error = Column(Text, nullable=True)
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    lines = relationship("InvoiceLine", back_populates="invoice", cascade="all, delete-orphan",
                         order_by="InvoiceLine.id")

    __table_args__ = (
        UniqueConstraint('tenant_id', 'invoice_number', name='uq_invoice_tenant_number'),
        Index('ix_invoices_tenant_id', 'tenant_id'),
    )


class InvoiceLine(Base):
    __tablename__ = 'invoice_lines'

    id = Column(Integer, primary_key=True)
    invoice_id = Column(Integer, ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False)
    item_id = Column(Integer, ForeignKey('items.id'), nullable=True)
    description = Column(Text, nullable=True)
    quantity = Column(Numeric(15, 2), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    unit_cost = Column(Numeric(15, 2), default=0, nullable=False)
    line_total = Column(Numeric(15, 2), nullable=False)

    # Relationships
    invoice = relationship("Invoice", back_populates="lines")
    item = relationship("Item")
