"""
Account Service - Chart of Accounts
"""
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import func
import logging

from ledger_engine.core.database import transaction
from ledger_engine.core.exceptions import (
    ConflictError, ReferenceNotFoundError, ValidationError
)
from ledger_engine.models import Account, AccountRole, AccountType, JournalLine
from ledger_engine.schemas import AccountCreate, AccountUpdate
from ledger_engine.services.activity_service import ActivityAction, ActivityLogService

logger = logging.getLogger(__name__)

ACCOUNT_TYPES = {t.value for t in AccountType}
ACCOUNT_ROLES = {r.value for r in AccountRole}

# key -> (code, name, type, role)
SYSTEM_ACCOUNTS = {
    "cash": ("1000", "Cash", AccountType.ASSET.value, AccountRole.CASH.value),
    "inventory": ("1200", "Inventory", AccountType.ASSET.value, AccountRole.INVENTORY.value),
    "sales_revenue": ("4000", "Sales Revenue", AccountType.REVENUE.value, None),
    "cost_of_sales": ("5000", "Cost of Sales", AccountType.COST.value, None),
}

# Checked in order; first keyword found in the name wins
ROLE_KEYWORDS = [
    ("receivable", AccountRole.RECEIVABLE.value),
    ("payable", AccountRole.PAYABLE.value),
    ("inventory", AccountRole.INVENTORY.value),
    ("cash", AccountRole.CASH.value),
    ("bank", AccountRole.CASH.value),
]


def infer_role(name: Optional[str]) -> Optional[str]:
    """Default role for a new account, guessed from its name"""
    lowered = (name or "").lower()
    for keyword, role in ROLE_KEYWORDS:
        if keyword in lowered:
            return role
    return None


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


class AccountService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, account_id: int, tenant_id: int) -> Optional[Account]:
        return self.db.query(Account).filter(
            Account.id == account_id,
            Account.tenant_id == tenant_id
        ).first()

    def get_or_raise(self, account_id: int, tenant_id: int) -> Account:
        account = self.get_by_id(account_id, tenant_id)
        if not account:
            raise ReferenceNotFoundError(f"Account not found: {account_id}", {"account_id": account_id})
        return account

    def get_by_code(self, code: str, tenant_id: int) -> Optional[Account]:
        return self.db.query(Account).filter(
            Account.code == code,
            Account.tenant_id == tenant_id
        ).first()

    def get_by_tenant(self, tenant_id: int, include_inactive: bool = True) -> List[Account]:
        query = self.db.query(Account).filter(Account.tenant_id == tenant_id)
        if not include_inactive:
            query = query.filter(Account.is_active == True)
        return query.order_by(Account.code).all()

    def get_by_role(self, tenant_id: int, role: str) -> List[Account]:
        return self.db.query(Account).filter(
            Account.tenant_id == tenant_id,
            Account.role == role
        ).order_by(Account.code).all()

    def get_tree(self, tenant_id: int) -> Dict[str, List[Dict[str, Any]]]:
        """Return the chart both as a code-ordered list and as a parent/child forest"""
        accounts = self.get_by_tenant(tenant_id)
        flat = [self._to_dict(account) for account in accounts]
        nodes = {node["id"]: dict(node, children=[]) for node in flat}

        roots = []
        for node in nodes.values():
            parent = nodes.get(node["parent_id"]) if node["parent_id"] else None
            if parent is not None:
                parent["children"].append(node)
            else:
                roots.append(node)
        return {"flat": flat, "tree": roots}

    def create(self, account_data: AccountCreate, tenant_id: int) -> Account:
        """Create an account from validated input and commit it"""
        with transaction(self.db):
            account = self.add_account(
                tenant_id,
                code=account_data.code,
                name=account_data.name,
                account_type=_enum_value(account_data.type),
                role=_enum_value(account_data.role),
                parent_id=account_data.parent_id,
            )
        logger.info(f"Account {account.code} '{account.name}' created for tenant {tenant_id}")
        return account

    def add_account(
        self,
        tenant_id: int,
        code: str,
        name: str,
        account_type: str,
        role: Optional[str] = None,
        parent_id: Optional[int] = None,
        is_system: bool = False,
    ) -> Account:
        """
        Add an account to the current unit of work (flush only).

        When no role is given, one is inferred from the name.
        """
        code = (code or "").strip()
        name = (name or "").strip()
        if not code:
            raise ValidationError("Account code is required")
        if not name:
            raise ValidationError("Account name is required")
        if account_type not in ACCOUNT_TYPES:
            raise ValidationError(f"Invalid account type: {account_type}", {"allowed": sorted(ACCOUNT_TYPES)})
        if role is not None and role not in ACCOUNT_ROLES:
            raise ValidationError(f"Invalid account role: {role}", {"allowed": sorted(ACCOUNT_ROLES)})
        if self.get_by_code(code, tenant_id):
            raise ConflictError(f"Account with code '{code}' already exists", {"code": code})
        if parent_id is not None:
            self.get_or_raise(parent_id, tenant_id)

        account = Account(
            tenant_id=tenant_id,
            code=code,
            name=name,
            type=account_type,
            role=role if role is not None else infer_role(name),
            parent_id=parent_id,
            is_system=is_system,
        )
        self.db.add(account)
        self.db.flush()
        return account

    def update(self, account_id: int, tenant_id: int, account_data: AccountUpdate) -> Account:
        account = self.get_or_raise(account_id, tenant_id)
        # parent_id and role may be cleared explicitly; other fields ignore None
        update_data = {
            key: _enum_value(value)
            for key, value in account_data.model_dump(exclude_unset=True).items()
            if value is not None or key in ("parent_id", "role")
        }

        if "code" in update_data and update_data["code"] != account.code:
            if account.is_system:
                raise ConflictError("System account code cannot be changed", {"code": account.code})
            existing = self.db.query(Account).filter(
                Account.tenant_id == tenant_id,
                Account.code == update_data["code"],
                Account.id != account_id
            ).first()
            if existing:
                raise ConflictError(f"Account with code '{update_data['code']}' already exists")

        if update_data.get("parent_id") is not None:
            self._check_parent(account, update_data["parent_id"], tenant_id)

        with transaction(self.db):
            for key, value in update_data.items():
                setattr(account, key, value)
        return account

    def delete(self, account_id: int, tenant_id: int, user_id: Optional[int] = None) -> None:
        """Delete a leaf account that has never been posted to"""
        account = self.get_or_raise(account_id, tenant_id)

        if account.is_system:
            raise ConflictError("System account cannot be deleted", {"account_id": account_id})

        child_count = self.db.query(func.count(Account.id)).filter(
            Account.tenant_id == tenant_id,
            Account.parent_id == account_id
        ).scalar()
        if child_count:
            raise ConflictError("Cannot delete account with child accounts", {"children": child_count})

        line_count = self.db.query(func.count(JournalLine.id)).filter(
            JournalLine.account_id == account_id
        ).scalar()
        if line_count:
            raise ConflictError("Cannot delete account used in journal lines", {"journal_lines": line_count})

        with transaction(self.db):
            ActivityLogService(self.db).log(
                tenant_id, ActivityAction.ACCOUNT_DELETED, "account", account.id,
                user_id=user_id, details={"code": account.code}
            )
            self.db.delete(account)

    def ensure_system_account(self, tenant_id: int, key: str) -> Account:
        """Find a system account by its fixed code, creating it when missing (flush only)"""
        code, name, account_type, role = SYSTEM_ACCOUNTS[key]
        account = self.get_by_code(code, tenant_id)
        if account:
            if account.type != account_type:
                raise ConflictError(
                    f"Account {code} '{account.name}' is {account.type}, expected {account_type} for {name}",
                    {"code": code, "type": account.type, "expected_type": account_type}
                )
            return account
        logger.info(f"Creating system account {code} '{name}' for tenant {tenant_id}")
        return self.add_account(tenant_id, code, name, account_type, role=role, is_system=True)

    def _check_parent(self, account: Account, parent_id: int, tenant_id: int) -> None:
        if parent_id == account.id:
            raise ValidationError("An account cannot be its own parent")
        parent = self.get_or_raise(parent_id, tenant_id)
        # Walk upward; reaching the account itself means the move would create a cycle
        while parent is not None:
            if parent.id == account.id:
                raise ValidationError("Parent assignment would create a cycle", {"parent_id": parent_id})
            parent = parent.parent

    @staticmethod
    def _to_dict(account: Account) -> Dict[str, Any]:
        return {
            "id": account.id,
            "tenant_id": account.tenant_id,
            "parent_id": account.parent_id,
            "code": account.code,
            "name": account.name,
            "type": account.type,
            "role": account.role,
            "is_system": account.is_system,
            "is_active": account.is_active,
            "created_at": account.created_at,
        }
