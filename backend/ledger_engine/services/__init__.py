# Services Package
from ledger_engine.services.tenant_service import TenantService
from ledger_engine.services.activity_service import ActivityAction, ActivityLogService
from ledger_engine.services.account_service import AccountService
from ledger_engine.services.journal_service import JournalService, PostingLine
from ledger_engine.services.trial_balance_service import TrialBalanceService
from ledger_engine.services.statement_service import FinancialStatementService
from ledger_engine.services.inventory_service import ItemService, StockMoveService, WarehouseService
from ledger_engine.services.invoice_posting import SalePostingSaga
from ledger_engine.services.invoice_service import InvoiceService
from ledger_engine.services.export_service import ExportService

__all__ = [
    'TenantService',
    'ActivityAction',
    'ActivityLogService',
    'AccountService',
    'JournalService',
    'PostingLine',
    'TrialBalanceService',
    'FinancialStatementService',
    'ItemService',
    'StockMoveService',
    'WarehouseService',
    'SalePostingSaga',
    'InvoiceService',
    'ExportService',
]
