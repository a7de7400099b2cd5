from fastapi import APIRouter, Query, status
import logging

from kirana.api.deps import Khata
from kirana.exceptions import NotFoundError
from kirana.schemas.customer import CustomerCreate, CustomerResponse, KhataSummary
from kirana.schemas.invoice import Invoice

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=KhataSummary)
async def get_khata(khata: Khata):
    """Customers with outstanding credit, largest balance first."""
    customers = await khata.customers_with_credit().get()
    total = await khata.total_outstanding_credit()
    return {"customers": customers, "total_credit": total}


@router.post("/customers", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def add_customer(customer_data: CustomerCreate, khata: Khata):
    return await khata.add_customer(customer_data)


@router.get("/customers/search", response_model=list[CustomerResponse])
async def search_customers(khata: Khata, q: str = Query(..., min_length=1)):
    """Search customers by name or phone."""
    return await khata.search_customers(q)


@router.get("/customers/{phone}", response_model=CustomerResponse)
async def get_customer(phone: str, khata: Khata):
    customer = await khata.get_customer_by_phone(phone)
    if customer is None:
        raise NotFoundError("Customer", phone)
    return customer


@router.get("/customers/{phone}/invoices", response_model=list[Invoice])
async def get_customer_credit_invoices(phone: str, khata: Khata):
    """Open CREDIT invoices for one customer."""
    return await khata.customer_credit_invoices(phone).get()


@router.post("/customers/{phone}/sync", response_model=CustomerResponse)
async def sync_customer_credit(phone: str, khata: Khata):
    """Recompute a customer's outstanding credit from their invoices."""
    credit = await khata.sync_customer_credit(phone)
    if credit is None:
        raise NotFoundError("Customer", phone)
    return await khata.get_customer_by_phone(phone)
