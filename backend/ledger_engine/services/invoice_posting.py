"""
Sale Posting Saga - carries a committed sale invoice through its stock and
ledger side effects

Each step runs in its own transaction and first checks whether it already
happened for this invoice id, so a failed posting can be resumed without
double-counting stock or journal lines. Until every step has succeeded the
invoice stays marked ``needs_reconciliation``.
"""
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Session
import logging

from ledger_engine.core.database import transaction
from ledger_engine.core.exceptions import LedgerError
from ledger_engine.core.money import ZERO, to_money
from ledger_engine.models import Invoice, InvoiceStatus, MoveType
from ledger_engine.services.account_service import AccountService
from ledger_engine.services.inventory_service import StockMoveService, WarehouseService
from ledger_engine.services.journal_service import JournalService, PostingLine
from ledger_engine.services.tenant_service import TenantService

logger = logging.getLogger(__name__)

INVOICE_SOURCE_TYPE = "invoice"


class PostingStep:
    STOCK = "stock"
    JOURNAL = "journal"


def invoice_cost(invoice: Invoice) -> Decimal:
    """Cost of goods sold: unit cost x quantity over catalog lines"""
    return to_money(sum(
        (to_money(line.unit_cost) * to_money(line.quantity) for line in invoice.lines if line.item_id),
        ZERO
    ))


class SalePostingSaga:
    def __init__(self, db: Session, tenant_id: int, user_id: int):
        self.db = db
        self.tenant_id = tenant_id
        self.user_id = user_id

    def run(self, invoice: Invoice) -> Invoice:
        """Run the remaining steps; on failure mark the invoice and re-raise"""
        step = PostingStep.STOCK
        try:
            self._post_stock(invoice)
            step = PostingStep.JOURNAL
            entry_id = self._post_journal(invoice)
        except Exception as exc:
            self.db.rollback()
            self._mark_needs_reconciliation(invoice, step, exc)
            if isinstance(exc, LedgerError):
                exc.details.setdefault("invoice_id", invoice.id)
                exc.details.setdefault("failed_step", step)
            raise

        with transaction(self.db):
            invoice.status = InvoiceStatus.ISSUED.value
            invoice.journal_entry_id = entry_id
            invoice.posting_error = None
        logger.info(f"Invoice {invoice.invoice_number} posted (journal entry {entry_id})")
        return invoice

    def _post_stock(self, invoice: Invoice) -> None:
        tenant = TenantService(self.db).get_or_raise(self.tenant_id)
        if not tenant.has_module("inventory"):
            return

        catalog_lines = [line for line in invoice.lines if line.item_id]
        if not catalog_lines:
            return

        moves = StockMoveService(self.db)
        if moves.get_by_reference(self.tenant_id, INVOICE_SOURCE_TYPE, invoice.id, MoveType.SALE.value):
            logger.info(f"Stock for invoice {invoice.invoice_number} already posted, skipping")
            return

        warehouse = WarehouseService(self.db).get_default(self.tenant_id)
        with transaction(self.db):
            for line in catalog_lines:
                moves.apply_move(
                    self.tenant_id,
                    self.user_id,
                    item_id=line.item_id,
                    warehouse_id=warehouse.id,
                    move_type=MoveType.SALE.value,
                    quantity=line.quantity,
                    unit_cost=line.unit_cost,
                    reference_type=INVOICE_SOURCE_TYPE,
                    reference_id=invoice.id,
                    note=f"Auto-generated from invoice {invoice.invoice_number}",
                )

    def _post_journal(self, invoice: Invoice) -> Optional[int]:
        journals = JournalService(self.db)
        existing = journals.find_by_source(self.tenant_id, INVOICE_SOURCE_TYPE, invoice.id)
        if existing:
            logger.info(f"Journal for invoice {invoice.invoice_number} already posted, skipping")
            return existing.id

        accounts = AccountService(self.db)
        with transaction(self.db):
            cash = accounts.ensure_system_account(self.tenant_id, "cash")
            revenue = accounts.ensure_system_account(self.tenant_id, "sales_revenue")
            cost_of_sales = accounts.ensure_system_account(self.tenant_id, "cost_of_sales")
            inventory = accounts.ensure_system_account(self.tenant_id, "inventory")
            account_ids = (cash.id, revenue.id, cost_of_sales.id, inventory.id)
        cash_id, revenue_id, cost_id, inventory_id = account_ids

        number = invoice.invoice_number
        total_amount = to_money(invoice.total_amount)
        total_cost = invoice_cost(invoice)

        lines = []
        if total_amount > 0:
            lines.append(PostingLine(cash_id, debit=total_amount, description=f"Invoice {number}"))
            lines.append(PostingLine(revenue_id, credit=total_amount, description=f"Sales revenue {number}"))
        if total_cost > 0:
            lines.append(PostingLine(cost_id, debit=total_cost, description=f"COGS {number}"))
            lines.append(PostingLine(inventory_id, credit=total_cost, description=f"Inventory relief {number}"))
        if not lines:
            return None

        return journals.post_entry(
            self.tenant_id,
            invoice.invoice_date,
            lines,
            created_by=self.user_id,
            description=f"Auto journal for invoice {number}",
            source_type=INVOICE_SOURCE_TYPE,
            source_id=invoice.id,
        )

    def _mark_needs_reconciliation(self, invoice: Invoice, step: str, exc: Exception) -> None:
        with transaction(self.db):
            invoice.status = InvoiceStatus.NEEDS_RECONCILIATION.value
            invoice.posting_error = f"{step}: {exc}"
        logger.warning(
            f"Invoice {invoice.invoice_number} needs reconciliation: {step} step failed ({exc})"
        )
