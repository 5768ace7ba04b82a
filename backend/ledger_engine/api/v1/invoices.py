"""
Invoice API Routes
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from ledger_engine.core.database import get_db
from ledger_engine.core.security import AccessContext, ModulePermission
from ledger_engine.schemas import InvoiceCreate, InvoiceResponse
from ledger_engine.services.invoice_service import InvoiceService

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.get("", response_model=List[InvoiceResponse])
async def list_invoices(
    type: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("invoicing", "read"))
):
    return InvoiceService(db).get_by_tenant(context.tenant_id, type, status, min(max(limit, 1), 500))


@router.post("", response_model=InvoiceResponse, status_code=201)
async def create_invoice(
    invoice_data: InvoiceCreate,
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("invoicing", "write"))
):
    """Create an invoice; sale invoices also post stock moves and an auto-journal"""
    invoice = InvoiceService(db).create(invoice_data, context.tenant_id, context.user_id)
    db.refresh(invoice)
    return invoice


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("invoicing", "read"))
):
    return InvoiceService(db).get_or_raise(invoice_id, context.tenant_id)


@router.post("/{invoice_id}/resume-posting", response_model=InvoiceResponse)
async def resume_invoice_posting(
    invoice_id: int,
    db: Session = Depends(get_db),
    context: AccessContext = Depends(ModulePermission("invoicing", "write"))
):
    """Retry the stock and journal steps of a sale invoice needing reconciliation"""
    return InvoiceService(db).resume_posting(invoice_id, context.tenant_id, context.user_id)
