from sqlalchemy import Column, Integer, String, DateTime, Text, Numeric
from kirana.database import Base


class Customer(Base):
    """Khata customer. ``total_credit_amount`` mirrors their open CREDIT invoices."""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    phone = Column(String(20), unique=True, nullable=True, index=True)
    address = Column(Text, nullable=True)

    total_credit_amount = Column(Numeric(12, 2), nullable=False, default=0)
    last_purchase_date = Column(DateTime, nullable=True)

    notes = Column(Text, nullable=True)

    def __repr__(self):
        return f"<Customer {self.name} ({self.phone})>"
