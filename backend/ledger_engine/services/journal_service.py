"""
Journal Service - validates and atomically posts journal entries

Entries are immutable once committed: there is no update or delete path,
corrections are posted as new entries.
"""
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func
import logging

from ledger_engine.core.config import settings
from ledger_engine.core.database import transaction
from ledger_engine.core.exceptions import (
    ReferenceNotFoundError, UnbalancedEntryError, ValidationError
)
from ledger_engine.core.money import ZERO, to_money
from ledger_engine.models import Account, JournalEntry, JournalLine
from ledger_engine.services.activity_service import ActivityAction, ActivityLogService

logger = logging.getLogger(__name__)


@dataclass
class PostingLine:
    """One requested debit or credit; amounts may be any numeric input"""
    account_id: int
    debit: Any = ZERO
    credit: Any = ZERO
    description: Optional[str] = None


def normalize_pagination(page: Optional[int], page_size: Optional[int]) -> Tuple[int, int]:
    """Clamp page to >= 1 and page_size to 1..MAX_PAGE_SIZE"""
    page = max(int(page or 1), 1)
    page_size = int(page_size or settings.DEFAULT_PAGE_SIZE)
    page_size = min(max(page_size, 1), settings.MAX_PAGE_SIZE)
    return page, page_size


class JournalService:
    def __init__(self, db: Session):
        self.db = db

    def post_entry(
        self,
        tenant_id: int,
        entry_date: date,
        lines: Sequence[PostingLine],
        created_by: int,
        description: Optional[str] = None,
        source_type: Optional[str] = None,
        source_id: Optional[int] = None,
    ) -> int:
        """
        Validate and commit a journal entry, returning its id.

        The header, every line and one activity log row are written in a
        single transaction; a rejected entry writes nothing.
        """
        if not lines:
            raise ValidationError("Journal entry must include at least one line")
        if entry_date is None:
            raise ValidationError("Journal entry date is required")

        prepared = [self._prepare_line(line) for line in lines]
        self._check_accounts(tenant_id, prepared)

        debit_total = to_money(sum((line.debit for line in prepared), ZERO))
        credit_total = to_money(sum((line.credit for line in prepared), ZERO))
        if debit_total != credit_total:
            raise UnbalancedEntryError(debit_total, credit_total)

        with transaction(self.db):
            entry = JournalEntry(
                tenant_id=tenant_id,
                entry_date=entry_date,
                description=description,
                source_type=source_type,
                source_id=source_id,
                created_by=created_by,
            )
            self.db.add(entry)
            self.db.flush()

            for line in prepared:
                self.db.add(JournalLine(
                    entry_id=entry.id,
                    account_id=line.account_id,
                    debit=line.debit,
                    credit=line.credit,
                    description=line.description,
                ))

            ActivityLogService(self.db).log(
                tenant_id, ActivityAction.JOURNAL_ENTRY_CREATED, "journal_entry", entry.id,
                user_id=created_by, details={"line_count": len(prepared)}
            )

        logger.info(
            f"Posted journal entry {entry.id} for tenant {tenant_id}: "
            f"{len(prepared)} lines, total {debit_total} (source={source_type}:{source_id})"
        )
        return entry.id

    def _prepare_line(self, line: PostingLine) -> PostingLine:
        try:
            debit = to_money(line.debit)
            credit = to_money(line.credit)
        except ValueError:
            raise ValidationError("Debit/Credit must be numeric", {"account_id": line.account_id})

        if debit < 0 or credit < 0:
            raise ValidationError("Debit/Credit cannot be negative", {"account_id": line.account_id})
        if debit > 0 and credit > 0:
            raise ValidationError("A line cannot contain both debit and credit values", {"account_id": line.account_id})
        if debit == 0 and credit == 0:
            raise ValidationError("A line must contain debit or credit amount", {"account_id": line.account_id})

        return PostingLine(line.account_id, debit, credit, line.description)

    def _check_accounts(self, tenant_id: int, lines: List[PostingLine]) -> None:
        account_ids = {line.account_id for line in lines}
        found = {
            row.id for row in self.db.query(Account.id).filter(
                Account.tenant_id == tenant_id,
                Account.id.in_(account_ids)
            ).all()
        }
        for line in lines:
            if line.account_id not in found:
                raise ReferenceNotFoundError(
                    f"Account not found: {line.account_id}", {"account_id": line.account_id}
                )

    # ==================== READS ====================

    def get_entry(self, tenant_id: int, entry_id: int) -> Dict[str, Any]:
        entry = self.db.query(JournalEntry).options(
            joinedload(JournalEntry.lines).joinedload(JournalLine.account)
        ).filter(
            JournalEntry.id == entry_id,
            JournalEntry.tenant_id == tenant_id
        ).first()
        if not entry:
            raise ReferenceNotFoundError(f"Journal entry not found: {entry_id}", {"entry_id": entry_id})
        return self._to_dict(entry)

    def list_entries(self, tenant_id: int, page: int = 1, page_size: Optional[int] = None) -> Dict[str, Any]:
        """Newest first, each entry with its lines ordered by account code"""
        page, page_size = normalize_pagination(page, page_size)

        total = self.db.query(func.count(JournalEntry.id)).filter(
            JournalEntry.tenant_id == tenant_id
        ).scalar()

        entries = self.db.query(JournalEntry).options(
            joinedload(JournalEntry.lines).joinedload(JournalLine.account)
        ).filter(
            JournalEntry.tenant_id == tenant_id
        ).order_by(
            JournalEntry.entry_date.desc(), JournalEntry.id.desc()
        ).offset((page - 1) * page_size).limit(page_size).all()

        return {
            "page": page,
            "page_size": page_size,
            "total": total or 0,
            "data": [self._to_dict(entry) for entry in entries],
        }

    def find_by_source(self, tenant_id: int, source_type: str, source_id: int) -> Optional[JournalEntry]:
        return self.db.query(JournalEntry).filter(
            JournalEntry.tenant_id == tenant_id,
            JournalEntry.source_type == source_type,
            JournalEntry.source_id == source_id
        ).order_by(JournalEntry.id).first()

    @staticmethod
    def _to_dict(entry: JournalEntry) -> Dict[str, Any]:
        lines = sorted(entry.lines, key=lambda l: (l.account.code if l.account else "", l.id))
        return {
            "id": entry.id,
            "entry_date": entry.entry_date,
            "description": entry.description,
            "source_type": entry.source_type,
            "source_id": entry.source_id,
            "created_by": entry.created_by,
            "created_at": entry.created_at,
            "total_debit": to_money(sum((to_money(l.debit) for l in lines), ZERO)),
            "total_credit": to_money(sum((to_money(l.credit) for l in lines), ZERO)),
            "lines": [
                {
                    "id": l.id,
                    "account_id": l.account_id,
                    "account_code": l.account.code if l.account else None,
                    "account_name": l.account.name if l.account else None,
                    "debit": to_money(l.debit),
                    "credit": to_money(l.credit),
                    "description": l.description,
                }
                for l in lines
            ],
        }
