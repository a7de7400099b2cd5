from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from kirana.schemas.invoice import Invoice


class CustomerCreate(BaseModel):
    """Schema for adding a khata customer."""
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    notes: Optional[str] = None


class CustomerResponse(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    total_credit_amount: Decimal
    last_purchase_date: Optional[datetime] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class CustomerWithCredit(BaseModel):
    """A customer together with their open CREDIT invoices."""
    customer: CustomerResponse
    credit_invoices: list[Invoice] = []
    total_credit_amount: Decimal = Decimal("0.00")


class KhataSummary(BaseModel):
    customers: list[CustomerWithCredit]
    total_credit: Decimal
