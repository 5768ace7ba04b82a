"""
Trial Balance Service - per-account aggregation, audit snapshots and
spreadsheet import reconciliation
"""
from datetime import date
from typing import Any, Dict, List
from sqlalchemy.orm import Session
from sqlalchemy import func
import json
import logging
import time

from ledger_engine.core.database import transaction
from ledger_engine.core.exceptions import EmptySourceError, ValidationError
from ledger_engine.core.money import ZERO, to_money
from ledger_engine.models import (
    Account, AccountType, JournalEntry, JournalLine, SnapshotSource, TrialBalanceSnapshot
)
from ledger_engine.services.account_service import AccountService
from ledger_engine.services.journal_service import JournalService, PostingLine
from ledger_engine.services.spreadsheet_codec import SpreadsheetCodec, first_present, to_number

logger = logging.getLogger(__name__)

CODE_ALIASES = ("account_code", "code", "accountcode")
NAME_ALIASES = ("account_name", "account", "name")
DEBIT_ALIASES = ("debit", "dr")
CREDIT_ALIASES = ("credit", "cr")

IMPORT_SOURCE_TYPE = "trial_balance_import"


def _totals(lines: List[Dict[str, Any]]) -> Dict[str, Any]:
    debit = to_money(sum((line["debit"] for line in lines), ZERO))
    credit = to_money(sum((line["credit"] for line in lines), ZERO))
    return {"debit": debit, "credit": credit, "balanced": debit == credit}


class TrialBalanceService:
    def __init__(self, db: Session):
        self.db = db

    def compute(self, tenant_id: int, date_from: date, date_to: date, created_by: int) -> Dict[str, Any]:
        """
        Debit/credit/balance per account for entries dated within
        [date_from, date_to]. Accounts without activity appear with zeros.

        Every call stores a ``system`` snapshot of the result.
        """
        if date_from > date_to:
            raise ValidationError("date_from must not be after date_to")

        activity = self.db.query(
            JournalLine.account_id.label("account_id"),
            func.sum(JournalLine.debit).label("debit"),
            func.sum(JournalLine.credit).label("credit"),
        ).join(
            JournalEntry, JournalEntry.id == JournalLine.entry_id
        ).filter(
            JournalEntry.tenant_id == tenant_id,
            JournalEntry.entry_date >= date_from,
            JournalEntry.entry_date <= date_to
        ).group_by(JournalLine.account_id).subquery()

        rows = self.db.query(
            Account, activity.c.debit, activity.c.credit
        ).outerjoin(
            activity, activity.c.account_id == Account.id
        ).filter(
            Account.tenant_id == tenant_id
        ).order_by(Account.code).all()

        lines = []
        for account, debit, credit in rows:
            debit = to_money(debit or 0)
            credit = to_money(credit or 0)
            lines.append({
                "account_id": account.id,
                "code": account.code,
                "name": account.name,
                "type": account.type,
                "debit": debit,
                "credit": credit,
                "balance": to_money(debit - credit),
            })

        totals = _totals(lines)
        self._store_snapshot(tenant_id, date_from, date_to, SnapshotSource.SYSTEM.value, lines, totals, created_by)

        return {"date_from": date_from, "date_to": date_to, "lines": lines, "totals": totals}

    def template(self, tenant_id: int) -> List[Dict[str, Any]]:
        """All accounts with zero amounts, as a starting sheet for imports"""
        accounts = AccountService(self.db).get_by_tenant(tenant_id)
        return [
            {
                "account_id": account.id,
                "code": account.code,
                "name": account.name,
                "type": account.type,
                "debit": ZERO,
                "credit": ZERO,
                "balance": ZERO,
            }
            for account in accounts
        ]

    def import_from_spreadsheet(
        self,
        tenant_id: int,
        user_id: int,
        date_from: date,
        date_to: date,
        file_bytes: bytes,
        post_to_ledger: bool = False,
    ) -> Dict[str, Any]:
        """
        Reconcile an uploaded trial balance against the chart of accounts.

        Unknown accounts are created. The ``excel_import`` snapshot is always
        stored; a journal entry dated ``date_to`` is posted only when requested
        and the sheet balances.
        """
        if date_from > date_to:
            raise ValidationError("date_from must not be after date_to")

        records = SpreadsheetCodec().read_rows(file_bytes)
        rows = self._parse_rows(records)
        if not rows:
            raise EmptySourceError("No valid trial balance rows found")

        lines, created_accounts = self._resolve_accounts(tenant_id, rows)
        totals = _totals(lines)

        self._store_snapshot(
            tenant_id, date_from, date_to, SnapshotSource.EXCEL_IMPORT.value, lines, totals, user_id
        )

        journal_entry_id = None
        posting_lines = self._posting_lines(lines)
        if post_to_ledger and totals["balanced"] and posting_lines:
            journal_entry_id = JournalService(self.db).post_entry(
                tenant_id,
                date_to,
                posting_lines,
                created_by=user_id,
                description="Imported opening trial balance",
                source_type=IMPORT_SOURCE_TYPE,
            )
        elif post_to_ledger:
            logger.warning(
                f"Trial balance import for tenant {tenant_id} not posted: "
                f"debit {totals['debit']}, credit {totals['credit']}"
            )

        logger.info(
            f"Imported {len(lines)} trial balance rows for tenant {tenant_id} "
            f"({created_accounts} new accounts, balanced={totals['balanced']})"
        )
        return {
            "imported_rows": len(lines),
            "created_accounts": created_accounts,
            "balanced": totals["balanced"],
            "totals": {"debit": totals["debit"], "credit": totals["credit"]},
            "journal_entry_id": journal_entry_id,
        }

    def get_snapshots(self, tenant_id: int, limit: int = 50) -> List[TrialBalanceSnapshot]:
        return self.db.query(TrialBalanceSnapshot).filter(
            TrialBalanceSnapshot.tenant_id == tenant_id
        ).order_by(TrialBalanceSnapshot.id.desc()).limit(limit).all()

    @staticmethod
    def _posting_lines(lines: List[Dict[str, Any]]) -> List[PostingLine]:
        """One journal line per non-zero side; a row with both amounts gives two lines"""
        posting = []
        for line in lines:
            description = f"Import from Excel: {line['name']}"
            if line["debit"] > 0:
                posting.append(PostingLine(line["account_id"], debit=line["debit"], description=description))
            if line["credit"] > 0:
                posting.append(PostingLine(line["account_id"], credit=line["credit"], description=description))
        return posting

    def _parse_rows(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        rows = []
        for record in records:
            code = first_present(record, CODE_ALIASES)
            name = first_present(record, NAME_ALIASES)
            if isinstance(code, float) and code.is_integer():
                code = int(code)
            code = str(code).strip() if code is not None else ""
            name = str(name).strip() if name is not None else ""
            debit = to_number(first_present(record, DEBIT_ALIASES))
            credit = to_number(first_present(record, CREDIT_ALIASES))

            if not code and not name:
                continue
            if debit < 0 or credit < 0:
                raise ValidationError(
                    f"Debit and credit cannot be negative (account '{code or name}')",
                    {"code": code, "name": name}
                )
            if not (debit > 0 or credit > 0):
                continue
            rows.append({"code": code, "name": name, "debit": debit, "credit": credit})
        return rows

    def _resolve_accounts(self, tenant_id: int, rows: List[Dict[str, Any]]):
        account_service = AccountService(self.db)
        accounts = account_service.get_by_tenant(tenant_id)
        by_code = {account.code.lower(): account for account in accounts}
        by_name = {account.name.lower(): account for account in accounts}

        lines = []
        created = 0
        with transaction(self.db):
            for index, row in enumerate(rows):
                account = None
                if row["code"]:
                    account = by_code.get(row["code"].lower())
                if account is None and row["name"]:
                    account = by_name.get(row["name"].lower())

                if account is None:
                    code = row["code"] or self._fallback_code(index)
                    while code.lower() in by_code:
                        code = f"{code}_{index}"
                    name = row["name"] or f"Imported Account {code}"
                    guessed_type = (
                        AccountType.REVENUE.value if row["credit"] > row["debit"]
                        else AccountType.EXPENSE.value
                    )
                    account = account_service.add_account(tenant_id, code, name, guessed_type)
                    by_code[account.code.lower()] = account
                    by_name[account.name.lower()] = account
                    created += 1

                lines.append({
                    "account_id": account.id,
                    "code": account.code,
                    "name": account.name,
                    "type": account.type,
                    "debit": to_money(row["debit"]),
                    "credit": to_money(row["credit"]),
                    "balance": to_money(row["debit"] - row["credit"]),
                })
        return lines, created

    @staticmethod
    def _fallback_code(index: int) -> str:
        millis = str(int(time.time() * 1000))
        return f"9{millis[-5:]}{index:03d}"

    def _store_snapshot(
        self,
        tenant_id: int,
        date_from: date,
        date_to: date,
        source: str,
        lines: List[Dict[str, Any]],
        totals: Dict[str, Any],
        created_by: int,
    ) -> TrialBalanceSnapshot:
        with transaction(self.db):
            snapshot = TrialBalanceSnapshot(
                tenant_id=tenant_id,
                period_from=date_from,
                period_to=date_to,
                source=source,
                totals=json.dumps({"lines": lines, "totals": totals}, default=str),
                created_by=created_by,
            )
            self.db.add(snapshot)
        logger.info(f"Stored {source} trial balance snapshot for tenant {tenant_id} ({date_from}..{date_to})")
        return snapshot
