"""
Financial Statement Service - income statement, balance sheet and
indirect cash flow derived from ledger aggregates (read only)
"""
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import func

from ledger_engine.core.exceptions import ValidationError
from ledger_engine.core.money import ZERO, percent_of, to_money
from ledger_engine.models import Account, AccountRole, AccountType, JournalEntry, JournalLine

# Types whose natural balance is debit - credit
DEBIT_NORMAL = {AccountType.ASSET.value, AccountType.EXPENSE.value, AccountType.COST.value}

INCOME_TYPES = (AccountType.REVENUE.value, AccountType.COST.value, AccountType.EXPENSE.value)
BALANCE_TYPES = (AccountType.ASSET.value, AccountType.LIABILITY.value, AccountType.EQUITY.value)


def signed_amount(account_type: str, debit, credit) -> Decimal:
    """Balance in the account type's natural direction"""
    debit = to_money(debit or 0)
    credit = to_money(credit or 0)
    if account_type in DEBIT_NORMAL:
        return to_money(debit - credit)
    return to_money(credit - debit)


class FinancialStatementService:
    def __init__(self, db: Session):
        self.db = db

    def _balances(
        self,
        tenant_id: int,
        types: tuple,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        """Per-account signed amounts for the given types within an optional date window"""
        query = self.db.query(
            JournalLine.account_id.label("account_id"),
            func.sum(JournalLine.debit).label("debit"),
            func.sum(JournalLine.credit).label("credit"),
        ).join(
            JournalEntry, JournalEntry.id == JournalLine.entry_id
        ).filter(JournalEntry.tenant_id == tenant_id)
        if date_from is not None:
            query = query.filter(JournalEntry.entry_date >= date_from)
        if date_to is not None:
            query = query.filter(JournalEntry.entry_date <= date_to)
        activity = query.group_by(JournalLine.account_id).subquery()

        rows = self.db.query(
            Account, activity.c.debit, activity.c.credit
        ).outerjoin(
            activity, activity.c.account_id == Account.id
        ).filter(
            Account.tenant_id == tenant_id,
            Account.type.in_(types)
        ).order_by(Account.code).all()

        return [
            {
                "account_id": account.id,
                "code": account.code,
                "name": account.name,
                "type": account.type,
                "role": account.role,
                "amount": signed_amount(account.type, debit, credit),
            }
            for account, debit, credit in rows
        ]

    @staticmethod
    def _line(row: Dict[str, Any]) -> Dict[str, Any]:
        return {"account_id": row["account_id"], "code": row["code"], "name": row["name"], "amount": row["amount"]}

    @staticmethod
    def _sum(rows: List[Dict[str, Any]]) -> Decimal:
        return to_money(sum((row["amount"] for row in rows), ZERO))

    def income_statement(self, tenant_id: int, date_from: date, date_to: date) -> Dict[str, Any]:
        if date_from > date_to:
            raise ValidationError("date_from must not be after date_to")

        rows = self._balances(tenant_id, INCOME_TYPES, date_from, date_to)
        revenue = [self._line(r) for r in rows if r["type"] == AccountType.REVENUE.value]
        cost = [self._line(r) for r in rows if r["type"] == AccountType.COST.value]
        expenses = [self._line(r) for r in rows if r["type"] == AccountType.EXPENSE.value]

        total_revenue = self._sum(revenue)
        total_cost = self._sum(cost)
        total_expenses = self._sum(expenses)
        gross_profit = to_money(total_revenue - total_cost)
        net_profit = to_money(gross_profit - total_expenses)

        return {
            "date_from": date_from,
            "date_to": date_to,
            "revenue": revenue,
            "cost": cost,
            "expenses": expenses,
            "totals": {
                "total_revenue": total_revenue,
                "total_cost": total_cost,
                "gross_profit": gross_profit,
                "total_expenses": total_expenses,
                "net_profit": net_profit,
                "gross_margin": percent_of(gross_profit, total_revenue),
                "net_margin": percent_of(net_profit, total_revenue),
                "expense_ratio": percent_of(total_expenses, total_revenue),
                "cost_ratio": percent_of(total_cost, total_revenue),
            },
        }

    def balance_sheet(self, tenant_id: int, as_of: date) -> Dict[str, Any]:
        """
        Cumulative balances through ``as_of``. Equity carries a derived
        "Current Earnings" line (cumulative revenue less cost and expenses),
        so income-statement postings keep the sheet in balance.
        """
        rows = self._balances(tenant_id, BALANCE_TYPES, date_to=as_of)
        assets = [self._line(r) for r in rows if r["type"] == AccountType.ASSET.value]
        liabilities = [self._line(r) for r in rows if r["type"] == AccountType.LIABILITY.value]
        equity = [self._line(r) for r in rows if r["type"] == AccountType.EQUITY.value]

        earnings_rows = self._balances(tenant_id, INCOME_TYPES, date_to=as_of)
        current_earnings = to_money(
            sum((r["amount"] for r in earnings_rows if r["type"] == AccountType.REVENUE.value), ZERO)
            - sum((r["amount"] for r in earnings_rows if r["type"] != AccountType.REVENUE.value), ZERO)
        )
        equity.append({"account_id": None, "code": None, "name": "Current Earnings", "amount": current_earnings})

        total_assets = self._sum(assets)
        total_liabilities = self._sum(liabilities)
        total_equity = self._sum(equity)
        liabilities_and_equity = to_money(total_liabilities + total_equity)

        return {
            "as_of": as_of,
            "assets": assets,
            "liabilities": liabilities,
            "equity": equity,
            "totals": {
                "total_assets": total_assets,
                "total_liabilities": total_liabilities,
                "total_equity": total_equity,
                "liabilities_and_equity": liabilities_and_equity,
                "is_balanced": total_assets == liabilities_and_equity,
            },
        }

    def _role_balance(self, tenant_id: int, role: str, as_of: date) -> Decimal:
        rows = self._balances(tenant_id, BALANCE_TYPES, date_to=as_of)
        return self._sum([r for r in rows if r["role"] == role])

    def cash_flow_indirect(self, tenant_id: int, date_from: date, date_to: date) -> Dict[str, Any]:
        """
        Operating cash flow: net profit adjusted by the movement of accounts
        tagged receivable, inventory and payable between the day before
        ``date_from`` and ``date_to``.
        """
        income = self.income_statement(tenant_id, date_from, date_to)
        net_income = income["totals"]["net_profit"]

        opening = date_from - timedelta(days=1)
        deltas = {}
        for role in (AccountRole.RECEIVABLE.value, AccountRole.INVENTORY.value, AccountRole.PAYABLE.value):
            deltas[role] = to_money(
                self._role_balance(tenant_id, role, date_to) - self._role_balance(tenant_id, role, opening)
            )

        working_capital_change = to_money(
            -deltas[AccountRole.RECEIVABLE.value]
            - deltas[AccountRole.INVENTORY.value]
            + deltas[AccountRole.PAYABLE.value]
        )
        return {
            "period": {"date_from": date_from, "date_to": date_to},
            "net_income": net_income,
            "adjustments": {
                "non_cash_adjustments": ZERO,
                "receivables_delta": deltas[AccountRole.RECEIVABLE.value],
                "inventory_delta": deltas[AccountRole.INVENTORY.value],
                "payables_delta": deltas[AccountRole.PAYABLE.value],
                "working_capital_change": working_capital_change,
            },
            "operating_cash_flow": to_money(net_income + working_capital_change),
        }
