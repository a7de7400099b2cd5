from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, JSON
from kirana.database import Base


class InvoiceRecord(Base):
    """Persisted invoice.

    Line items are embedded as a JSON array; decimals are stored as strings
    so quantities and rates round-trip exactly.
    Each item: {name, quantity, unit, rate, amount, hsn_code}
    """

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(50), unique=True, index=True, nullable=False)

    # Walk-in sales have no customer
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(20), nullable=True, index=True)

    items = Column(JSON, nullable=False, default=list)

    # Calculated totals
    subtotal = Column(Numeric(12, 2), nullable=False)
    cgst = Column(Numeric(12, 2), nullable=False)
    sgst = Column(Numeric(12, 2), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)

    payment_mode = Column(String(10), nullable=False)  # CASH, UPI, CREDIT
    is_paid = Column(Boolean, nullable=False, default=False, index=True)

    # Device-local creation time, used for all day partitioning
    timestamp = Column(DateTime, nullable=False, index=True)

    pdf_path = Column(String(500), nullable=True)

    def __repr__(self):
        return f"<InvoiceRecord {self.invoice_number}>"
