"""
Accounting API Routes - Chart of Accounts, Journal Entries, Trial Balance
"""
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
from io import BytesIO

from ledger_engine.core.config import settings
from ledger_engine.core.database import get_db
from ledger_engine.core.security import AccessContext, ModulePermission
from ledger_engine.schemas import (
    AccountCreate, AccountUpdate, AccountResponse, AccountTreeResponse,
    JournalEntryCreate, JournalEntryCreated, JournalEntryPage, JournalEntryResponse,
    TrialBalanceImportResponse, TrialBalanceResponse, TrialBalanceRow
)
from ledger_engine.services.account_service import AccountService
from ledger_engine.services.export_service import ExportService
from ledger_engine.services.journal_service import JournalService, PostingLine
from ledger_engine.services.trial_balance_service import TrialBalanceService

router = APIRouter(prefix="/accounting", tags=["Accounting"])


# ==================== CHART OF ACCOUNTS ====================

@router.get("/accounts", response_model=AccountTreeResponse)
async def list_accounts(
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("accounting", "read"))
):
    """List the chart of accounts as a flat list and as a tree"""
    return AccountService(db).get_tree(context.tenant_id)


@router.post("/accounts", response_model=AccountResponse, status_code=201)
async def create_account(
    account_data: AccountCreate,
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("accounting", "write"))
):
    """Create a new account"""
    return AccountService(db).create(account_data, context.tenant_id)


@router.get("/accounts/{account_id}", response_model=AccountResponse)
async def get_account(
    account_id: int,
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("accounting", "read"))
):
    return AccountService(db).get_or_raise(account_id, context.tenant_id)


@router.put("/accounts/{account_id}", response_model=AccountResponse)
async def update_account(
    account_id: int,
    account_data: AccountUpdate,
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("accounting", "write"))
):
    """Update account"""
    return AccountService(db).update(account_id, context.tenant_id, account_data)


@router.delete("/accounts/{account_id}")
async def delete_account(
    account_id: int,
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("accounting", "delete"))
):
    """Delete a leaf account without journal history"""
    AccountService(db).delete(account_id, context.tenant_id, context.user_id)
    return {"message": "Account deleted"}


# ==================== JOURNAL ENTRIES ====================

@router.get("/journal-entries", response_model=JournalEntryPage)
async def list_journal_entries(
    page: int = 1,
    page_size: int = 20,
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("accounting", "read"))
):
    return JournalService(db).list_entries(context.tenant_id, page, page_size)


@router.post("/journal-entries", response_model=JournalEntryCreated, status_code=201)
async def create_journal_entry(
    entry_data: JournalEntryCreate,
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("accounting", "write"))
):
    """Post a manual journal entry"""
    entry_id = JournalService(db).post_entry(
        context.tenant_id,
        entry_data.entry_date,
        [
            PostingLine(line.account_id, line.debit, line.credit, line.description)
            for line in entry_data.lines
        ],
        created_by=context.user_id,
        description=entry_data.description,
        source_type="manual",
    )
    return {"id": entry_id}


@router.get("/journal-entries/{entry_id}", response_model=JournalEntryResponse)
async def get_journal_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("accounting", "read"))
):
    return JournalService(db).get_entry(context.tenant_id, entry_id)


# ==================== TRIAL BALANCE ====================

@router.get("/trial-balance", response_model=TrialBalanceResponse)
async def get_trial_balance(
    date_from: date,
    date_to: date,
    format: str = "json",
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("accounting", "read"))
):
    """Trial balance for a period; ``format=xlsx`` downloads it as a workbook"""
    report = TrialBalanceService(db).compute(context.tenant_id, date_from, date_to, context.user_id)
    if format == "xlsx":
        content = ExportService().trial_balance_workbook(report)
        filename = f"trial_balance_{date_from}_{date_to}.xlsx"
        return StreamingResponse(
            BytesIO(content),
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": f"attachment; filename={filename}"}
        )
    return report


@router.get("/trial-balance/template", response_model=List[TrialBalanceRow])
async def get_trial_balance_template(
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("accounting", "read"))
):
    return TrialBalanceService(db).template(context.tenant_id)


@router.post("/trial-balance/import", response_model=TrialBalanceImportResponse)
async def import_trial_balance(
    date_from: date = Form(...),
    date_to: date = Form(...),
    post_to_ledger: bool = Form(False),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("accounting", "write"))
):
    """Import a trial balance from an .xlsx upload"""
    content = await file.read()
    if len(content) > settings.IMPORT_MAX_BYTES:
        raise HTTPException(status_code=413, detail="Uploaded file is too large")
    return TrialBalanceService(db).import_from_spreadsheet(
        context.tenant_id, context.user_id, date_from, date_to, content, post_to_ledger
    )
