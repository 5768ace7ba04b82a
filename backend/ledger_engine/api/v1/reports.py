"""
Reports API Routes - Financial Statements
"""
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from datetime import date
from io import BytesIO

from ledger_engine.core.database import get_db
from ledger_engine.core.security import AccessContext, ModulePermission
from ledger_engine.schemas import BalanceSheetResponse, CashFlowResponse, IncomeStatementResponse
from ledger_engine.services.export_service import (
    ExportService, balance_sheet_rows, cash_flow_rows, income_statement_rows
)
from ledger_engine.services.statement_service import FinancialStatementService

router = APIRouter(prefix="/reports", tags=["Reports"])


def _pdf_response(content: bytes, filename: str) -> StreamingResponse:
    return StreamingResponse(
        BytesIO(content),
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/income-statement", response_model=IncomeStatementResponse)
async def get_income_statement(
    date_from: date,
    date_to: date,
    format: str = "json",
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("reports", "read"))
):
    statement = FinancialStatementService(db).income_statement(context.tenant_id, date_from, date_to)
    if format == "pdf":
        content = ExportService().report_pdf(
            "Income Statement", f"Period: {date_from} to {date_to}", income_statement_rows(statement)
        )
        return _pdf_response(content, f"income_statement_{date_from}_{date_to}.pdf")
    return statement


@router.get("/balance-sheet", response_model=BalanceSheetResponse)
async def get_balance_sheet(
    as_of: date,
    format: str = "json",
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("reports", "read"))
):
    sheet = FinancialStatementService(db).balance_sheet(context.tenant_id, as_of)
    if format == "pdf":
        content = ExportService().report_pdf("Balance Sheet", f"As of {as_of}", balance_sheet_rows(sheet))
        return _pdf_response(content, f"balance_sheet_{as_of}.pdf")
    return sheet


@router.get("/cash-flow", response_model=CashFlowResponse)
async def get_cash_flow(
    date_from: date,
    date_to: date,
    format: str = "json",
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("reports", "read"))
):
    """Operating cash flow, indirect method"""
    cash_flow = FinancialStatementService(db).cash_flow_indirect(context.tenant_id, date_from, date_to)
    if format == "pdf":
        content = ExportService().report_pdf(
            "Cash Flow Statement", f"Period: {date_from} to {date_to}", cash_flow_rows(cash_flow)
        )
        return _pdf_response(content, f"cash_flow_{date_from}_{date_to}.pdf")
    return cash_flow
