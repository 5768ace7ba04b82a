# API v1 Package
from ledger_engine.api.v1 import accounting, inventory, invoices, reports

__all__ = [
    'accounting',
    'inventory',
    'invoices',
    'reports',
]
