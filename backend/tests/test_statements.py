from datetime import date, timedelta
from decimal import Decimal

import pytest

from ledger_engine.core.exceptions import ValidationError
from ledger_engine.schemas import InvoiceCreate
from ledger_engine.services.invoice_service import InvoiceService
from ledger_engine.services.journal_service import JournalService, PostingLine
from ledger_engine.services.statement_service import FinancialStatementService, signed_amount

from conftest import SALE_DATE, USER_ID


@pytest.fixture
def sold(db, tenant, accounts, widget):
    """Two widgets sold for cash on SALE_DATE: revenue 100, cost 60"""
    return InvoiceService(db).create(
        InvoiceCreate(invoice_date=SALE_DATE, lines=[{"item_id": widget.id, "quantity": 2}]),
        tenant.id, USER_ID,
    )


def test_signed_amount_follows_normal_side():
    assert signed_amount("asset", 100, 40) == Decimal("60.00")
    assert signed_amount("cost", 10, 0) == Decimal("10.00")
    assert signed_amount("revenue", 0, 100) == Decimal("100.00")
    assert signed_amount("liability", 25, 0) == Decimal("-25.00")


def test_income_statement_after_sale(db, tenant, sold):
    statement = FinancialStatementService(db).income_statement(tenant.id, SALE_DATE, SALE_DATE)
    totals = statement["totals"]

    assert totals["total_revenue"] == Decimal("100.00")
    assert totals["total_cost"] == Decimal("60.00")
    assert totals["gross_profit"] == Decimal("40.00")
    assert totals["net_profit"] == Decimal("40.00")
    assert totals["gross_margin"] == Decimal("40.00")
    assert totals["cost_ratio"] == Decimal("60.00")
    assert [line["name"] for line in statement["revenue"]] == ["Sales Revenue"]


def test_income_statement_with_expenses(db, tenant, sold, accounts):
    JournalService(db).post_entry(
        tenant.id, SALE_DATE,
        [PostingLine(accounts["rent"].id, debit=25), PostingLine(accounts["cash"].id, credit=25)],
        created_by=USER_ID,
    )
    totals = FinancialStatementService(db).income_statement(tenant.id, SALE_DATE, SALE_DATE)["totals"]

    assert totals["net_profit"] == Decimal("15.00")
    assert totals["net_margin"] == Decimal("15.00")
    assert totals["expense_ratio"] == Decimal("25.00")


def test_ratios_are_zero_without_revenue(db, tenant, accounts):
    JournalService(db).post_entry(
        tenant.id, SALE_DATE,
        [PostingLine(accounts["rent"].id, debit=25), PostingLine(accounts["cash"].id, credit=25)],
        created_by=USER_ID,
    )
    totals = FinancialStatementService(db).income_statement(tenant.id, SALE_DATE, SALE_DATE)["totals"]

    assert totals["net_profit"] == Decimal("-25.00")
    assert totals["gross_margin"] == totals["net_margin"] == totals["expense_ratio"] == Decimal("0.00")


def test_income_statement_period_excludes_other_days(db, tenant, sold):
    statement = FinancialStatementService(db).income_statement(
        tenant.id, SALE_DATE + timedelta(days=1), SALE_DATE + timedelta(days=30)
    )
    assert statement["totals"]["total_revenue"] == Decimal("0.00")


def test_inverted_period_rejected(db, tenant):
    with pytest.raises(ValidationError):
        FinancialStatementService(db).income_statement(tenant.id, date(2024, 2, 1), date(2024, 1, 1))


def test_balance_sheet_balances_through_current_earnings(db, tenant, accounts, sold):
    JournalService(db).post_entry(
        tenant.id, date(2024, 1, 2),
        [PostingLine(accounts["cash"].id, debit=1000), PostingLine(accounts["capital"].id, credit=1000)],
        created_by=USER_ID,
    )
    sheet = FinancialStatementService(db).balance_sheet(tenant.id, SALE_DATE)
    totals = sheet["totals"]

    # cash 1100, inventory relieved by 60
    assert totals["total_assets"] == Decimal("1040.00")
    assert totals["total_liabilities"] == Decimal("0.00")
    earnings = next(line for line in sheet["equity"] if line["name"] == "Current Earnings")
    assert earnings["amount"] == Decimal("40.00")
    assert totals["total_equity"] == Decimal("1040.00")
    assert totals["is_balanced"] is True


def test_balance_sheet_before_any_activity(db, tenant, accounts, sold):
    sheet = FinancialStatementService(db).balance_sheet(tenant.id, SALE_DATE - timedelta(days=1))
    assert sheet["totals"]["total_assets"] == Decimal("0.00")
    assert sheet["totals"]["is_balanced"] is True


def test_cash_flow_for_sale_day(db, tenant, sold):
    cash_flow = FinancialStatementService(db).cash_flow_indirect(tenant.id, SALE_DATE, SALE_DATE)

    assert cash_flow["net_income"] == Decimal("40.00")
    assert cash_flow["adjustments"]["inventory_delta"] == Decimal("-60.00")
    assert cash_flow["adjustments"]["receivables_delta"] == Decimal("0.00")
    assert cash_flow["adjustments"]["working_capital_change"] == Decimal("60.00")
    assert cash_flow["operating_cash_flow"] == Decimal("100.00")


def test_cash_flow_reflects_receivables_and_payables(db, tenant, accounts):
    service = JournalService(db)
    # credit sale of 200 and an unpaid rent bill of 50
    service.post_entry(
        tenant.id, SALE_DATE,
        [PostingLine(accounts["receivable"].id, debit=200), PostingLine(accounts["revenue"].id, credit=200)],
        created_by=USER_ID,
    )
    service.post_entry(
        tenant.id, SALE_DATE,
        [PostingLine(accounts["rent"].id, debit=50), PostingLine(accounts["payable"].id, credit=50)],
        created_by=USER_ID,
    )
    cash_flow = FinancialStatementService(db).cash_flow_indirect(tenant.id, SALE_DATE, SALE_DATE)

    assert cash_flow["net_income"] == Decimal("150.00")
    assert cash_flow["adjustments"]["receivables_delta"] == Decimal("200.00")
    assert cash_flow["adjustments"]["payables_delta"] == Decimal("50.00")
    assert cash_flow["adjustments"]["working_capital_change"] == Decimal("-150.00")
    # nothing was paid in cash
    assert cash_flow["operating_cash_flow"] == Decimal("0.00")
