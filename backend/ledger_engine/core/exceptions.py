"""
Ledger error kinds

Every error raised by the accounting core carries a machine-checkable
``kind`` and optional structured ``details``. The HTTP layer maps kinds to
status codes; services never translate or swallow them.
"""
from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base class for all accounting core errors"""
    kind = "ledger"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "kind": self.kind, "details": self.details}


class ValidationError(LedgerError):
    """Malformed or incomplete input"""
    kind = "validation"


class UnbalancedEntryError(ValidationError):
    """Journal entry whose debit and credit totals differ"""
    kind = "unbalanced"

    def __init__(self, debit_total, credit_total):
        super().__init__(
            "Unbalanced journal entry. Debit must equal Credit",
            {"debit_total": str(debit_total), "credit_total": str(credit_total)},
        )
        self.debit_total = debit_total
        self.credit_total = credit_total


class ReferenceNotFoundError(LedgerError):
    """Referenced account, item, warehouse or invoice is not in the tenant"""
    kind = "reference"


class ConflictError(LedgerError):
    """Operation conflicts with existing state"""
    kind = "conflict"


class EmptySourceError(LedgerError):
    """Import source holds no usable data"""
    kind = "empty_source"


class AuthzError(LedgerError):
    """Module disabled or permission denied"""
    kind = "authz"
