"""
Invoice Service - sale and purchase invoices

Sale invoices are handed to ``SalePostingSaga`` after they are committed;
purchase invoices are recorded only.
"""
from collections import OrderedDict
from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy.orm import Session, joinedload
import logging

from ledger_engine.core.database import transaction
from ledger_engine.core.exceptions import (
    ConflictError, ReferenceNotFoundError, ValidationError
)
from ledger_engine.core.money import ZERO, to_money
from ledger_engine.models import Invoice, InvoiceLine, InvoiceStatus, InvoiceType, Item
from ledger_engine.schemas import InvoiceCreate
from ledger_engine.services.activity_service import ActivityAction, ActivityLogService
from ledger_engine.services.inventory_service import ItemService, WarehouseService
from ledger_engine.services.invoice_posting import SalePostingSaga
from ledger_engine.services.tenant_service import TenantService

logger = logging.getLogger(__name__)


class InvoiceService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, invoice_id: int, tenant_id: int) -> Optional[Invoice]:
        return self.db.query(Invoice).options(
            joinedload(Invoice.lines)
        ).filter(
            Invoice.id == invoice_id,
            Invoice.tenant_id == tenant_id
        ).first()

    def get_or_raise(self, invoice_id: int, tenant_id: int) -> Invoice:
        invoice = self.get_by_id(invoice_id, tenant_id)
        if not invoice:
            raise ReferenceNotFoundError(f"Invoice not found: {invoice_id}", {"invoice_id": invoice_id})
        return invoice

    def get_by_tenant(self, tenant_id: int, invoice_type: Optional[str] = None,
                      status: Optional[str] = None, limit: int = 100) -> List[Invoice]:
        query = self.db.query(Invoice).options(joinedload(Invoice.lines)).filter(
            Invoice.tenant_id == tenant_id
        )
        if invoice_type:
            query = query.filter(Invoice.type == invoice_type)
        if status:
            query = query.filter(Invoice.status == status)
        return query.order_by(Invoice.id.desc()).limit(limit).all()

    def get_next_number(self, tenant_id: int) -> str:
        """Generate next invoice number"""
        last_invoice = self.db.query(Invoice).filter(
            Invoice.tenant_id == tenant_id
        ).order_by(Invoice.id.desc()).first()

        if last_invoice:
            try:
                num = int(last_invoice.invoice_number.replace("INV-", ""))
                return f"INV-{num + 1:06d}"
            except ValueError:
                pass

        return "INV-000001"

    def create(self, invoice_data: InvoiceCreate, tenant_id: int, user_id: int) -> Invoice:
        """
        Validate, price and commit an invoice with its lines and activity log.

        Sale invoices are committed as ``needs_reconciliation`` and only become
        ``issued`` once the posting saga (stock moves and auto-journal) has
        finished, so an interrupted posting is always visible and resumable.
        A saga failure re-raises the error.
        """
        invoice_type = invoice_data.type.value if hasattr(invoice_data.type, "value") else invoice_data.type
        if invoice_type not in (InvoiceType.SALE.value, InvoiceType.PURCHASE.value):
            raise ValidationError(f"Invalid invoice type: {invoice_type}")
        if not invoice_data.lines:
            raise ValidationError("Invoice must include at least one line")

        tax_amount = to_money(invoice_data.tax_amount or 0)
        discount_amount = to_money(invoice_data.discount_amount or 0)
        if tax_amount < 0 or discount_amount < 0:
            raise ValidationError("Tax and discount cannot be negative")

        lines, items = self._price_lines(invoice_data, tenant_id)
        subtotal = to_money(sum((line["line_total"] for line in lines), ZERO))
        total_amount = to_money(subtotal + tax_amount - discount_amount)
        if total_amount < 0:
            raise ValidationError(
                "Discount cannot exceed subtotal plus tax",
                {"subtotal": str(subtotal), "discount_amount": str(discount_amount)}
            )

        if invoice_type == InvoiceType.SALE.value:
            self._preflight_sale(tenant_id, lines, items)

        with transaction(self.db):
            invoice = Invoice(
                tenant_id=tenant_id,
                invoice_number=self.get_next_number(tenant_id),
                type=invoice_type,
                status=(
                    InvoiceStatus.NEEDS_RECONCILIATION.value if invoice_type == InvoiceType.SALE.value
                    else InvoiceStatus.ISSUED.value
                ),
                customer_name=invoice_data.customer_name,
                invoice_date=invoice_data.invoice_date,
                subtotal=subtotal,
                tax_amount=tax_amount,
                discount_amount=discount_amount,
                total_amount=total_amount,
                created_by=user_id,
            )
            self.db.add(invoice)
            self.db.flush()

            for line in lines:
                self.db.add(InvoiceLine(invoice_id=invoice.id, **line))

            ActivityLogService(self.db).log(
                tenant_id, ActivityAction.INVOICE_CREATED, "invoice", invoice.id,
                user_id=user_id,
                details={
                    "invoice_number": invoice.invoice_number,
                    "subtotal": str(subtotal),
                    "total_amount": str(total_amount),
                    "line_count": len(lines),
                }
            )

        logger.info(f"Invoice {invoice.invoice_number} ({invoice_type}) created for tenant {tenant_id}: total {total_amount}")

        if invoice_type == InvoiceType.SALE.value:
            SalePostingSaga(self.db, tenant_id, user_id).run(invoice)
        return invoice

    def resume_posting(self, invoice_id: int, tenant_id: int, user_id: int) -> Invoice:
        """
        Re-run the posting saga for a sale invoice.

        Each step skips itself when its stock moves or journal entry already
        exist, so resuming an invoice that is fully posted changes nothing.
        """
        invoice = self.get_or_raise(invoice_id, tenant_id)
        if invoice.type != InvoiceType.SALE.value:
            raise ValidationError("Only sale invoices are posted to stock and ledger")

        logger.info(f"Resuming posting of invoice {invoice.invoice_number}")
        return SalePostingSaga(self.db, tenant_id, user_id).run(invoice)

    def _price_lines(self, invoice_data: InvoiceCreate, tenant_id: int):
        item_service = ItemService(self.db)
        items: Dict[int, Item] = {}
        lines = []
        for index, line in enumerate(invoice_data.lines, 1):
            try:
                quantity = to_money(line.quantity)
            except ValueError:
                raise ValidationError(f"Line {index}: quantity must be numeric")
            if quantity <= 0:
                raise ValidationError(f"Line {index}: quantity must be greater than zero")

            if line.item_id is not None:
                item = items.get(line.item_id) or item_service.get_or_raise(line.item_id, tenant_id)
                items[item.id] = item
                unit_price = to_money(line.unit_price if line.unit_price is not None else item.price)
                unit_cost = to_money(item.cost)
                description = line.description or item.name
            else:
                if line.unit_price is None:
                    raise ValidationError("unitPrice is required for manual lines", {"line": index})
                unit_price = to_money(line.unit_price)
                unit_cost = ZERO
                description = line.description

            if unit_price < 0:
                raise ValidationError(f"Line {index}: unit price cannot be negative")

            lines.append({
                "item_id": line.item_id,
                "description": description,
                "quantity": quantity,
                "unit_price": unit_price,
                "unit_cost": unit_cost,
                "line_total": to_money(quantity * unit_price),
            })
        return lines, items

    def _preflight_sale(self, tenant_id: int, lines: List[dict], items: Dict[int, Item]) -> None:
        """Refuse a sale up front when it cannot be fulfilled from stock"""
        if not items:
            return
        tenant = TenantService(self.db).get_or_raise(tenant_id)
        if not tenant.has_module("inventory"):
            return

        WarehouseService(self.db).get_default(tenant_id)

        requested: Dict[int, Decimal] = OrderedDict()
        for line in lines:
            if line["item_id"] is not None:
                requested[line["item_id"]] = requested.get(line["item_id"], ZERO) + line["quantity"]

        for item_id, quantity in requested.items():
            item = items[item_id]
            available = to_money(item.quantity_on_hand or 0)
            if available < quantity:
                raise ConflictError(
                    f"Insufficient stock for '{item.name}'. Available: {available}, Requested: {quantity}",
                    {"item_id": item_id, "available": str(available), "requested": str(quantity)}
                )
