"""
GST computation and invoice construction.

Money is ``Decimal`` rounded half-up to the paisa. Only line amounts and the
per-component tax are rounded; every other figure is a sum of rounded values,
which keeps ``total_amount == subtotal + cgst + sgst`` exact.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional, Union

from kirana.exceptions import InvalidInvoiceError
from kirana.schemas.invoice import Invoice, InvoiceItem, InvoiceItemInput, PaymentMode

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so floats like 0.1 keep their printed value
    return Decimal(str(value))


def to_money(value: Number) -> Decimal:
    return to_decimal(value).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def line_amount(quantity: Number, rate: Number) -> Decimal:
    return to_money(to_decimal(quantity) * to_decimal(rate))


@dataclass(frozen=True)
class GstBreakdown:
    subtotal: Decimal
    cgst: Decimal
    sgst: Decimal

    @property
    def total_tax(self) -> Decimal:
        return self.cgst + self.sgst

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.cgst + self.sgst


def split_gst(subtotal: Decimal, tax_rate: Number) -> GstBreakdown:
    """Split ``subtotal * tax_rate`` evenly into CGST and SGST."""
    half = to_money(subtotal * to_decimal(tax_rate) / 2)
    return GstBreakdown(subtotal=subtotal, cgst=half, sgst=half)


def _coerce_item(index: int, raw, errors: list) -> Optional[InvoiceItemInput]:
    if isinstance(raw, InvoiceItemInput):
        return raw
    if isinstance(raw, dict):
        data = raw
    else:
        # (name, quantity, unit, rate[, hsn_code])
        try:
            name, quantity, unit, rate, *rest = raw
        except (TypeError, ValueError):
            errors.append({"field": f"items[{index}]", "message": "Unrecognised line item"})
            return None
        data = {
            "name": name,
            "quantity": quantity,
            "unit": unit,
            "rate": rate,
            "hsn_code": rest[0] if rest else None,
        }
    try:
        return InvoiceItemInput(
            name=data["name"],
            quantity=to_decimal(data["quantity"]),
            unit=data.get("unit") or "piece",
            rate=to_decimal(data["rate"]),
            hsn_code=data.get("hsn_code"),
        )
    except (KeyError, InvalidOperation, ValueError) as exc:
        errors.append({"field": f"items[{index}]", "message": f"Invalid line item: {exc}"})
        return None


def build_invoice(
    items: Iterable,
    payment_mode: PaymentMode,
    tax_rate: Number,
    *,
    customer_name: Optional[str] = None,
    customer_phone: Optional[str] = None,
    invoice_number: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> Invoice:
    """
    Build a fully computed invoice from raw line inputs.

    Lines may be ``InvoiceItemInput`` objects, dicts, or
    ``(name, quantity, unit, rate, hsn_code)`` tuples.

    Raises:
        InvalidInvoiceError: no items, a quantity <= 0, a rate < 0, or tax_rate < 0.
    """
    errors: list[dict] = []

    try:
        rate_of_tax = to_decimal(tax_rate)
    except InvalidOperation:
        rate_of_tax = None
        errors.append({"field": "tax_rate", "message": "Tax rate is not a number"})
    if rate_of_tax is not None and not rate_of_tax.is_finite():
        errors.append({"field": "tax_rate", "message": "Tax rate must be finite"})
    elif rate_of_tax is not None and rate_of_tax < 0:
        errors.append({"field": "tax_rate", "message": "Tax rate must not be negative"})

    lines = [_coerce_item(i, raw, errors) for i, raw in enumerate(items)]
    if not lines:
        errors.append({"field": "items", "message": "Add at least one item"})

    for i, line in enumerate(lines):
        if line is None:
            continue
        if not (line.quantity.is_finite() and line.rate.is_finite()):
            errors.append({"field": f"items[{i}]", "message": "Quantity and rate must be finite"})
            continue
        if line.quantity <= 0:
            errors.append({"field": f"items[{i}].quantity", "message": "Quantity must be positive"})
        if line.rate < 0:
            errors.append({"field": f"items[{i}].rate", "message": "Rate must not be negative"})

    if errors:
        raise InvalidInvoiceError(errors[0]["message"], errors=errors)

    computed = tuple(
        InvoiceItem(
            name=line.name,
            quantity=line.quantity,
            unit=line.unit,
            rate=line.rate,
            amount=line_amount(line.quantity, line.rate),
            hsn_code=line.hsn_code,
        )
        for line in lines
    )
    subtotal = sum((item.amount for item in computed), ZERO)
    gst = split_gst(subtotal, rate_of_tax)

    return Invoice(
        invoice_number=invoice_number,
        customer_name=customer_name or None,
        customer_phone=customer_phone or None,
        items=computed,
        subtotal=gst.subtotal,
        cgst=gst.cgst,
        sgst=gst.sgst,
        total_amount=gst.total,
        payment_mode=payment_mode,
        is_paid=payment_mode.settles_immediately,
        timestamp=timestamp or datetime.now(),
        pdf_path=None,
    )
