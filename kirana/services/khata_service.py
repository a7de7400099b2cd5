"""
Khata (credit ledger) service.

A customer's outstanding credit is the sum of their unpaid CREDIT invoices.
``Customer.total_credit_amount`` caches that figure and is re-synced whenever
an invoice for the customer is recorded or collected.
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kirana.exceptions import ConflictError
from kirana.models.customer import Customer
from kirana.models.invoice import InvoiceRecord
from kirana.schemas.customer import CustomerCreate, CustomerResponse, CustomerWithCredit
from kirana.schemas.invoice import Invoice, PaymentMode
from kirana.services.gst import to_money
from kirana.services.invoice_repository import INVOICES_TABLE, InvoiceRepository
from kirana.services.live_query import LiveQuery

logger = logging.getLogger(__name__)

CUSTOMERS_TABLE = Customer.__tablename__

_OPEN_CREDIT = and_(
    InvoiceRecord.payment_mode == PaymentMode.CREDIT.value,
    InvoiceRecord.is_paid.is_(False),
)


class KhataService:
    """Customer ledger over the invoice store."""

    def __init__(self, session_maker: async_sessionmaker, invoices: InvoiceRepository):
        self._session_maker = session_maker
        self.invoices = invoices
        self.notifier = invoices.notifier

    async def _open_credit_total(self, session: AsyncSession, phone: str) -> Decimal:
        result = await session.execute(
            select(func.sum(InvoiceRecord.total_amount)).where(
                and_(_OPEN_CREDIT, InvoiceRecord.customer_phone == phone)
            )
        )
        total = result.scalar()
        return to_money(total) if total is not None else Decimal("0.00")

    async def _by_phone(self, session: AsyncSession, phone: str) -> Optional[Customer]:
        result = await session.execute(select(Customer).where(Customer.phone == phone))
        return result.scalar_one_or_none()

    async def get_customer_by_phone(self, phone: str) -> Optional[Customer]:
        async with self._session_maker() as session:
            return await self._by_phone(session, phone)

    async def add_customer(self, data: CustomerCreate) -> Customer:
        async with self._session_maker() as session:
            async with session.begin():
                if data.phone and await self._by_phone(session, data.phone):
                    raise ConflictError(f"Customer with phone {data.phone} already exists")
                customer = Customer(**data.model_dump(), total_credit_amount=Decimal("0.00"))
                session.add(customer)

        self.notifier.notify(CUSTOMERS_TABLE)
        logger.info(f"Customer added: {customer.name}")
        return customer

    async def record_invoice(self, invoice: Invoice) -> Optional[Customer]:
        """
        Upsert the invoice's customer, stamp their last purchase and re-sync credit.

        Walk-in invoices without a phone number have no khata and are ignored.
        """
        if not invoice.customer_phone:
            return None

        async with self._session_maker() as session:
            async with session.begin():
                customer = await self._by_phone(session, invoice.customer_phone)
                if customer is None:
                    customer = Customer(
                        name=invoice.customer_name or invoice.customer_phone,
                        phone=invoice.customer_phone,
                    )
                    session.add(customer)
                    logger.info(f"New khata customer from invoice {invoice.display_number}")

                if customer.last_purchase_date is None or invoice.timestamp > customer.last_purchase_date:
                    customer.last_purchase_date = invoice.timestamp
                customer.total_credit_amount = await self._open_credit_total(session, invoice.customer_phone)

        self.notifier.notify(CUSTOMERS_TABLE)
        return customer

    async def sync_customer_credit(self, phone: str) -> Optional[Decimal]:
        """Recompute a customer's outstanding credit. Returns None for unknown phones."""
        async with self._session_maker() as session:
            async with session.begin():
                customer = await self._by_phone(session, phone)
                if customer is None:
                    return None
                credit = await self._open_credit_total(session, phone)
                customer.total_credit_amount = credit

        self.notifier.notify(CUSTOMERS_TABLE)
        logger.debug(f"Credit synced for {phone}: {credit}")
        return credit

    def customer_credit_invoices(self, phone: str) -> LiveQuery[List[Invoice]]:
        """Open CREDIT invoices for one customer, most recent first."""
        return self.invoices.unpaid_credit_invoices(phone)

    async def _customers_with_credit(self) -> List[CustomerWithCredit]:
        open_invoices = await self.invoices.unpaid_credit_invoices().get()
        by_phone = defaultdict(list)
        for invoice in open_invoices:
            if invoice.customer_phone:
                by_phone[invoice.customer_phone].append(invoice)
        if not by_phone:
            return []

        async with self._session_maker() as session:
            result = await session.execute(select(Customer).where(Customer.phone.in_(list(by_phone))))
            customers = result.scalars().all()

        ledger = [
            CustomerWithCredit(
                customer=CustomerResponse.model_validate(customer),
                credit_invoices=by_phone[customer.phone],
                total_credit_amount=sum(
                    (invoice.total_amount for invoice in by_phone[customer.phone]), Decimal("0.00")
                ),
            )
            for customer in customers
        ]
        ledger.sort(key=lambda entry: (-entry.total_credit_amount, entry.customer.name))
        return ledger

    def customers_with_credit(self) -> LiveQuery[List[CustomerWithCredit]]:
        """Customers owing money, largest balance first."""
        return LiveQuery(self.notifier, [INVOICES_TABLE, CUSTOMERS_TABLE], self._customers_with_credit)

    async def total_outstanding_credit(self) -> Decimal:
        async with self._session_maker() as session:
            result = await session.execute(select(func.sum(InvoiceRecord.total_amount)).where(_OPEN_CREDIT))
            total = result.scalar()
        return to_money(total) if total is not None else Decimal("0.00")

    async def search_customers(self, query: str) -> List[Customer]:
        """Customers whose name or phone contains ``query``."""
        pattern = f"%{query}%"
        async with self._session_maker() as session:
            result = await session.execute(
                select(Customer)
                .where(or_(Customer.name.ilike(pattern), Customer.phone.ilike(pattern)))
                .order_by(Customer.name.asc())
            )
            return list(result.scalars().all())
