"""
Invoice value types.

``Invoice`` and ``InvoiceItem`` are frozen; the two permitted post-persistence
changes (payment collection and PDF attachment) return new instances.
"""

import enum
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from kirana.exceptions import AlreadyPaidError, BusinessRuleError, ConflictError


class PaymentMode(str, enum.Enum):
    CASH = "CASH"
    UPI = "UPI"
    CREDIT = "CREDIT"

    @property
    def settles_immediately(self) -> bool:
        """CASH and UPI are collected at the counter; CREDIT goes on the khata."""
        return self is not PaymentMode.CREDIT


class InvoiceItemInput(BaseModel):
    """A line as entered by the merchant, before any amounts are derived."""

    name: str = Field(..., min_length=1)
    quantity: Decimal
    unit: str = "piece"
    rate: Decimal
    hsn_code: Optional[str] = None


class InvoiceItem(BaseModel):
    """A computed invoice line. ``amount`` is always ``quantity * rate``, rounded."""

    model_config = ConfigDict(frozen=True)

    name: str
    quantity: Decimal
    unit: str
    rate: Decimal
    amount: Decimal
    hsn_code: Optional[str] = None

    @model_validator(mode="after")
    def check_amount(self) -> "InvoiceItem":
        expected = (self.quantity * self.rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        if self.amount != expected:
            raise ValueError(f"amount for {self.name} must equal quantity * rate")
        return self


class Invoice(BaseModel):
    """A fully computed invoice."""

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    invoice_number: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    items: tuple[InvoiceItem, ...]
    subtotal: Decimal
    cgst: Decimal
    sgst: Decimal
    total_amount: Decimal
    payment_mode: PaymentMode
    is_paid: bool
    timestamp: datetime
    pdf_path: Optional[str] = None

    @model_validator(mode="after")
    def check_totals(self) -> "Invoice":
        if not self.items:
            raise ValueError("invoice must have at least one item")
        if self.subtotal != sum((item.amount for item in self.items), Decimal("0.00")):
            raise ValueError("subtotal must equal the sum of item amounts")
        if self.cgst != self.sgst:
            raise ValueError("cgst and sgst must be equal")
        if self.total_amount != self.subtotal + self.cgst + self.sgst:
            raise ValueError("total_amount must equal subtotal + cgst + sgst")
        if self.payment_mode.settles_immediately and not self.is_paid:
            raise ValueError(f"{self.payment_mode.value} invoices are always paid")
        return self

    @property
    def display_number(self) -> str:
        if self.invoice_number:
            return self.invoice_number
        if self.id is not None:
            return str(self.id)
        return "(unsaved)"

    @property
    def is_open_credit(self) -> bool:
        """An unpaid CREDIT invoice is an open khata entry."""
        return self.payment_mode is PaymentMode.CREDIT and not self.is_paid

    def with_payment_collected(self) -> "Invoice":
        if self.is_paid:
            raise AlreadyPaidError(self.display_number)
        return self.model_copy(update={"is_paid": True})

    def with_pdf(self, pdf_path: str) -> "Invoice":
        if not pdf_path:
            raise BusinessRuleError("PDF path must not be empty")
        if self.pdf_path:
            raise ConflictError(f"Invoice {self.display_number} already has a PDF")
        return self.model_copy(update={"pdf_path": pdf_path})


# API payloads

class InvoiceCreate(BaseModel):
    """Schema for creating an invoice."""

    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    items: list[InvoiceItemInput] = Field(default_factory=list)
    payment_mode: PaymentMode = PaymentMode.CASH
    tax_rate: Optional[Decimal] = Field(None, description="Fraction, e.g. 0.05 for 5% GST")


class AttachPdfRequest(BaseModel):
    pdf_path: str = Field(..., min_length=1)


class InvoiceListResponse(BaseModel):
    items: list[Invoice]
    total: int


class ShareResponse(BaseModel):
    """Outcome of sharing an invoice. Failures are reported here, not raised."""
    invoice_number: str
    success: bool
    channel: Optional[str] = None
    message_id: Optional[str] = None
    link: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
