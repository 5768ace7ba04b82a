from datetime import date
from decimal import Decimal

import pytest

from ledger_engine.core.exceptions import (
    ReferenceNotFoundError, UnbalancedEntryError, ValidationError
)
from ledger_engine.models import ActivityLog, JournalEntry, JournalLine
from ledger_engine.services.journal_service import JournalService, PostingLine, normalize_pagination

from conftest import USER_ID

ENTRY_DATE = date(2024, 1, 10)


def _counts(db):
    return (
        db.query(JournalEntry).count(),
        db.query(JournalLine).count(),
        db.query(ActivityLog).filter(ActivityLog.action == "journal_entry_created").count(),
    )


def test_post_balanced_entry_writes_header_lines_and_activity(db, tenant, accounts):
    entry_id = JournalService(db).post_entry(
        tenant.id,
        ENTRY_DATE,
        [
            PostingLine(accounts["cash"].id, debit="250.00"),
            PostingLine(accounts["capital"].id, credit=250),
        ],
        created_by=USER_ID,
        description="Owner investment",
    )

    entry = db.get(JournalEntry, entry_id)
    assert entry.tenant_id == tenant.id
    assert entry.created_by == USER_ID
    assert len(entry.lines) == 2
    assert sum(line.debit for line in entry.lines) == sum(line.credit for line in entry.lines) == Decimal("250.00")

    log = db.query(ActivityLog).filter(ActivityLog.entity_id == entry_id).one()
    assert log.action == "journal_entry_created"
    assert log.details_data == {"line_count": 2}


def test_amounts_are_compared_after_rounding(db, tenant, accounts):
    entry_id = JournalService(db).post_entry(
        tenant.id,
        ENTRY_DATE,
        [
            PostingLine(accounts["cash"].id, debit="33.333"),
            PostingLine(accounts["rent"].id, debit="33.333"),
            PostingLine(accounts["capital"].id, credit="66.66"),
        ],
        created_by=USER_ID,
    )
    assert entry_id


def test_empty_lines_rejected(db, tenant):
    with pytest.raises(ValidationError, match="at least one line"):
        JournalService(db).post_entry(tenant.id, ENTRY_DATE, [], created_by=USER_ID)


@pytest.mark.parametrize("debit,credit,message", [
    (-5, 0, "cannot be negative"),
    (0, -5, "cannot be negative"),
    (10, 10, "cannot contain both"),
    (0, 0, "must contain debit or credit"),
    ("0.001", 0, "must contain debit or credit"),
])
def test_malformed_line_rejected_before_any_write(db, tenant, accounts, debit, credit, message):
    lines = [
        PostingLine(accounts["cash"].id, debit=debit, credit=credit),
        PostingLine(accounts["capital"].id, credit=10),
    ]
    with pytest.raises(ValidationError, match=message):
        JournalService(db).post_entry(tenant.id, ENTRY_DATE, lines, created_by=USER_ID)
    assert _counts(db) == (0, 0, 0)


def test_unbalanced_entry_carries_totals(db, tenant, accounts):
    lines = [
        PostingLine(accounts["cash"].id, debit=100),
        PostingLine(accounts["capital"].id, credit="99.99"),
    ]
    with pytest.raises(UnbalancedEntryError) as excinfo:
        JournalService(db).post_entry(tenant.id, ENTRY_DATE, lines, created_by=USER_ID)

    assert excinfo.value.kind == "unbalanced"
    assert excinfo.value.debit_total == Decimal("100.00")
    assert excinfo.value.credit_total == Decimal("99.99")
    assert excinfo.value.details == {"debit_total": "100.00", "credit_total": "99.99"}
    assert _counts(db) == (0, 0, 0)


def test_account_from_another_tenant_is_a_reference_error(db, tenant, other_tenant, accounts):
    lines = [
        PostingLine(accounts["cash"].id, debit=10),
        PostingLine(accounts["capital"].id, credit=10),
    ]
    with pytest.raises(ReferenceNotFoundError, match="Account not found"):
        JournalService(db).post_entry(other_tenant.id, ENTRY_DATE, lines, created_by=USER_ID)


def test_non_numeric_amount_rejected(db, tenant, accounts):
    with pytest.raises(ValidationError, match="numeric"):
        JournalService(db).post_entry(
            tenant.id, ENTRY_DATE,
            [PostingLine(accounts["cash"].id, debit="ten"), PostingLine(accounts["capital"].id, credit=10)],
            created_by=USER_ID,
        )


def test_list_entries_pages_newest_first_with_lines_ordered_by_code(db, tenant, accounts):
    service = JournalService(db)
    for day in (1, 2, 3):
        service.post_entry(
            tenant.id,
            date(2024, 2, day),
            [PostingLine(accounts["rent"].id, debit=day), PostingLine(accounts["cash"].id, credit=day)],
            created_by=USER_ID,
        )

    result = service.list_entries(tenant.id, page=1, page_size=2)
    assert result["total"] == 3
    assert [e["entry_date"] for e in result["data"]] == [date(2024, 2, 3), date(2024, 2, 2)]
    assert [l["account_code"] for l in result["data"][0]["lines"]] == ["1000", "6000"]
    assert result["data"][0]["total_debit"] == result["data"][0]["total_credit"] == Decimal("3.00")

    second = service.list_entries(tenant.id, page=2, page_size=2)
    assert [e["entry_date"] for e in second["data"]] == [date(2024, 2, 1)]


def test_pagination_is_clamped():
    assert normalize_pagination(0, 0) == (1, 20)
    assert normalize_pagination(-3, 5000) == (1, 200)
    assert normalize_pagination(4, 50) == (4, 50)


def test_get_entry_is_tenant_scoped(db, tenant, other_tenant, accounts):
    service = JournalService(db)
    entry_id = service.post_entry(
        tenant.id, ENTRY_DATE,
        [PostingLine(accounts["cash"].id, debit=5), PostingLine(accounts["capital"].id, credit=5)],
        created_by=USER_ID,
    )
    assert service.get_entry(tenant.id, entry_id)["id"] == entry_id
    with pytest.raises(ReferenceNotFoundError):
        service.get_entry(other_tenant.id, entry_id)
