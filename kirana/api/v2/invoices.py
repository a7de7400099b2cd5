from fastapi import APIRouter, Query, status
from typing import Optional
from datetime import datetime
import logging

from kirana.api.deps import Invoices, Khata, Sharing
from kirana.config import settings
from kirana.exceptions import NotFoundError, ValidationError
from kirana.schemas.invoice import (
    AttachPdfRequest,
    Invoice,
    InvoiceCreate,
    InvoiceListResponse,
    ShareResponse,
)
from kirana.services.gst import build_invoice

logger = logging.getLogger(__name__)
router = APIRouter()


async def _get_or_404(invoices: Invoices, invoice_id: int) -> Invoice:
    invoice = await invoices.get(invoice_id)
    if invoice is None:
        raise NotFoundError("Invoice", str(invoice_id))
    return invoice


@router.get("/", response_model=InvoiceListResponse)
async def list_invoices(
    invoices: Invoices,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    open_credit: bool = False,
    customer_phone: Optional[str] = None,
):
    """List invoices, most recent first.

    ``date_from``/``date_to`` select the half-open range ``[date_from, date_to)``.
    """
    if open_credit:
        query = invoices.unpaid_credit_invoices(customer_phone)
    elif date_from or date_to:
        if not (date_from and date_to):
            raise ValidationError("date_from and date_to must be given together")
        if date_to <= date_from:
            raise ValidationError("date_to must be after date_from")
        query = invoices.invoices_in_range(date_from, date_to)
    else:
        query = invoices.all_invoices()

    results = await query.get()
    if customer_phone and not open_credit:
        results = [invoice for invoice in results if invoice.customer_phone == customer_phone]

    offset = (page - 1) * page_size
    return {
        "items": results[offset:offset + page_size],
        "total": len(results),
    }


@router.post("/", response_model=Invoice, status_code=status.HTTP_201_CREATED)
async def create_invoice(invoice_data: InvoiceCreate, invoices: Invoices, khata: Khata):
    """Compute and save a new invoice."""
    tax_rate = invoice_data.tax_rate if invoice_data.tax_rate is not None else settings.DEFAULT_GST_RATE
    invoice = build_invoice(
        invoice_data.items,
        invoice_data.payment_mode,
        tax_rate,
        customer_name=invoice_data.customer_name,
        customer_phone=invoice_data.customer_phone,
    )
    saved = await invoices.create(invoice)
    await khata.record_invoice(saved)
    return saved


@router.get("/by-number/{invoice_number}", response_model=Invoice)
async def get_invoice_by_number(invoice_number: str, invoices: Invoices):
    invoice = await invoices.get_by_number(invoice_number)
    if invoice is None:
        raise NotFoundError("Invoice", invoice_number)
    return invoice


@router.get("/{invoice_id}", response_model=Invoice)
async def get_invoice(invoice_id: int, invoices: Invoices):
    """Get a single invoice by ID."""
    return await _get_or_404(invoices, invoice_id)


@router.post("/{invoice_id}/mark-paid", response_model=Invoice)
async def mark_invoice_paid(invoice_id: int, invoices: Invoices, khata: Khata):
    """Collect payment on a CREDIT invoice."""
    invoice = await invoices.mark_paid(invoice_id)
    if invoice.customer_phone:
        await khata.sync_customer_credit(invoice.customer_phone)
    return invoice


@router.post("/{invoice_id}/pdf", response_model=Invoice)
async def attach_invoice_pdf(invoice_id: int, request: AttachPdfRequest, invoices: Invoices):
    """Record the generated PDF for an invoice."""
    return await invoices.attach_pdf(invoice_id, request.pdf_path)


@router.post("/{invoice_id}/share", response_model=ShareResponse)
async def share_invoice(invoice_id: int, invoices: Invoices, sharing: Sharing):
    """Share the invoice PDF over WhatsApp. A failed share is reported in the body."""
    invoice = await _get_or_404(invoices, invoice_id)
    result = await sharing.share_invoice(invoice)
    return ShareResponse(
        invoice_number=invoice.display_number,
        success=result.success,
        channel=result.channel,
        message_id=result.message_id,
        link=result.link,
        error=result.error_message,
        error_code=result.error.code.value if result.error else None,
    )
