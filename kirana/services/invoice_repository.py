"""
Invoice Repository

Read and write surface over persisted invoices. Reads that feed screens are
``LiveQuery`` objects backed by the repository's ``ChangeNotifier``; every
committed write publishes a change to the ``invoices`` table.

Writes are limited to insert, payment collection and PDF attachment, and are
serialized per invoice. Inserts are serialized per repository so invoice
numbers stay unique.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kirana.exceptions import ConflictError, NotFoundError
from kirana.models.invoice import InvoiceRecord
from kirana.schemas.invoice import Invoice, InvoiceItem, PaymentMode
from kirana.services.gst import to_decimal, to_money
from kirana.services.live_query import ChangeNotifier, LiveQuery

logger = logging.getLogger(__name__)

INVOICES_TABLE = InvoiceRecord.__tablename__

_NEWEST_FIRST = (InvoiceRecord.timestamp.desc(), InvoiceRecord.id.desc())


def format_invoice_number(sequence: int) -> str:
    """INV followed by a zero-padded 6-digit number."""
    return f"INV{sequence:06d}"


def record_to_invoice(record: InvoiceRecord) -> Invoice:
    """Convert an InvoiceRecord row to an Invoice value."""
    return Invoice(
        id=record.id,
        invoice_number=record.invoice_number,
        customer_name=record.customer_name,
        customer_phone=record.customer_phone,
        items=tuple(
            InvoiceItem(
                name=item["name"],
                quantity=to_decimal(item["quantity"]),
                unit=item["unit"],
                rate=to_decimal(item["rate"]),
                amount=to_decimal(item["amount"]),
                hsn_code=item.get("hsn_code"),
            )
            for item in record.items or []
        ),
        subtotal=to_money(record.subtotal),
        cgst=to_money(record.cgst),
        sgst=to_money(record.sgst),
        total_amount=to_money(record.total_amount),
        payment_mode=PaymentMode(record.payment_mode),
        is_paid=record.is_paid,
        timestamp=record.timestamp,
        pdf_path=record.pdf_path,
    )


def invoice_to_record(invoice: Invoice, invoice_number: str) -> InvoiceRecord:
    """Convert an unsaved Invoice to a new InvoiceRecord."""
    return InvoiceRecord(
        invoice_number=invoice_number,
        customer_name=invoice.customer_name,
        customer_phone=invoice.customer_phone,
        items=[
            {
                "name": item.name,
                "quantity": str(item.quantity),
                "unit": item.unit,
                "rate": str(item.rate),
                "amount": str(item.amount),
                "hsn_code": item.hsn_code,
            }
            for item in invoice.items
        ],
        subtotal=invoice.subtotal,
        cgst=invoice.cgst,
        sgst=invoice.sgst,
        total_amount=invoice.total_amount,
        payment_mode=invoice.payment_mode.value,
        is_paid=invoice.is_paid,
        timestamp=invoice.timestamp,
        pdf_path=invoice.pdf_path,
    )


class InvoiceRepository:
    """Repository for persisted invoices."""

    def __init__(
        self,
        session_maker: async_sessionmaker,
        notifier: Optional[ChangeNotifier] = None,
    ):
        self._session_maker = session_maker
        self.notifier = notifier or ChangeNotifier()
        self._create_lock = asyncio.Lock()
        self._record_locks: Dict[int, asyncio.Lock] = {}
        self._lock_holders: Dict[int, int] = {}

    async def _fetch_all(self, stmt) -> List[Invoice]:
        async with self._session_maker() as session:
            result = await session.execute(stmt)
            return [record_to_invoice(record) for record in result.scalars().all()]

    def _live(self, stmt) -> LiveQuery[List[Invoice]]:
        return LiveQuery(self.notifier, [INVOICES_TABLE], lambda: self._fetch_all(stmt))

    # Live reads

    def all_invoices(self) -> LiveQuery[List[Invoice]]:
        """All invoices, most recent first."""
        return self._live(select(InvoiceRecord).order_by(*_NEWEST_FIRST))

    def invoices_in_range(self, start: datetime, end: datetime) -> LiveQuery[List[Invoice]]:
        """Invoices with ``start <= timestamp < end``, most recent first."""
        return self._live(
            select(InvoiceRecord)
            .where(and_(InvoiceRecord.timestamp >= start, InvoiceRecord.timestamp < end))
            .order_by(*_NEWEST_FIRST)
        )

    def unpaid_credit_invoices(self, customer_phone: Optional[str] = None) -> LiveQuery[List[Invoice]]:
        """Open khata entries, optionally for one customer."""
        stmt = select(InvoiceRecord).where(
            and_(
                InvoiceRecord.payment_mode == PaymentMode.CREDIT.value,
                InvoiceRecord.is_paid.is_(False),
            )
        )
        if customer_phone is not None:
            stmt = stmt.where(InvoiceRecord.customer_phone == customer_phone)
        return self._live(stmt.order_by(*_NEWEST_FIRST))

    # Point-in-time reads

    async def total_sales_in_range(self, start: datetime, end: datetime) -> Decimal:
        """Sum of ``total_amount`` for ``start <= timestamp < end``."""
        async with self._session_maker() as session:
            result = await session.execute(
                select(func.sum(InvoiceRecord.total_amount)).where(
                    and_(InvoiceRecord.timestamp >= start, InvoiceRecord.timestamp < end)
                )
            )
            total = result.scalar()
        return to_money(total) if total is not None else Decimal("0.00")

    async def get(self, invoice_id: int) -> Optional[Invoice]:
        async with self._session_maker() as session:
            record = await session.get(InvoiceRecord, invoice_id)
            return record_to_invoice(record) if record else None

    async def get_by_number(self, invoice_number: str) -> Optional[Invoice]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(InvoiceRecord).where(InvoiceRecord.invoice_number == invoice_number)
            )
            record = result.scalar_one_or_none()
            return record_to_invoice(record) if record else None

    async def _next_number(self, session: AsyncSession) -> str:
        result = await session.execute(select(func.max(InvoiceRecord.id)))
        last_id = result.scalar() or 0
        return format_invoice_number(last_id + 1)

    async def next_invoice_number(self) -> str:
        async with self._session_maker() as session:
            return await self._next_number(session)

    # Writes

    async def create(self, invoice: Invoice) -> Invoice:
        """Persist a newly built invoice and return it with its id and number."""
        if invoice.id is not None:
            raise ConflictError(f"Invoice {invoice.display_number} is already saved")

        async with self._create_lock, self._session_maker() as session:
            async with session.begin():
                number = invoice.invoice_number or await self._next_number(session)
                record = invoice_to_record(invoice, number)
                session.add(record)
                await session.flush()
            saved = record_to_invoice(record)

        self.notifier.notify(INVOICES_TABLE)
        logger.info(
            f"Invoice {saved.invoice_number} saved: total={saved.total_amount} "
            f"mode={saved.payment_mode.value} paid={saved.is_paid}"
        )
        return saved

    @asynccontextmanager
    async def _record_lock(self, invoice_id: int):
        lock = self._record_locks.setdefault(invoice_id, asyncio.Lock())
        self._lock_holders[invoice_id] = self._lock_holders.get(invoice_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            # Drop the lock once nobody holds or waits for it
            self._lock_holders[invoice_id] -= 1
            if not self._lock_holders[invoice_id]:
                del self._lock_holders[invoice_id]
                del self._record_locks[invoice_id]

    async def _update(self, invoice_id: int, change) -> Invoice:
        async with self._record_lock(invoice_id):
            async with self._session_maker() as session:
                async with session.begin():
                    record = await session.get(InvoiceRecord, invoice_id)
                    if record is None:
                        raise NotFoundError("Invoice", str(invoice_id))
                    updated = change(record_to_invoice(record))
                    record.is_paid = updated.is_paid
                    record.pdf_path = updated.pdf_path

        self.notifier.notify(INVOICES_TABLE)
        return updated

    async def mark_paid(self, invoice_id: int) -> Invoice:
        """
        Record payment collection for a CREDIT invoice.

        Raises:
            NotFoundError: no invoice with this id
            AlreadyPaidError: the invoice is already paid
        """
        updated = await self._update(invoice_id, lambda invoice: invoice.with_payment_collected())
        logger.info(f"Invoice {updated.invoice_number} marked paid")
        return updated

    async def attach_pdf(self, invoice_id: int, pdf_path: str) -> Invoice:
        """Record the generated PDF for an invoice. A PDF can only be attached once."""
        updated = await self._update(invoice_id, lambda invoice: invoice.with_pdf(pdf_path))
        logger.info(f"Invoice {updated.invoice_number} PDF attached")
        return updated
