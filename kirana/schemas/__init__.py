from kirana.schemas.invoice import (
    PaymentMode,
    InvoiceItemInput,
    InvoiceItem,
    Invoice,
    InvoiceCreate,
    InvoiceListResponse,
    ShareResponse,
)
from kirana.schemas.customer import (
    CustomerCreate,
    CustomerResponse,
    CustomerWithCredit,
    KhataSummary,
)
from kirana.schemas.item import (
    ItemCreate,
    ItemResponse,
    ItemListResponse,
    InventoryResponse,
)

__all__ = [
    # Invoice
    "PaymentMode",
    "InvoiceItemInput",
    "InvoiceItem",
    "Invoice",
    "InvoiceCreate",
    "InvoiceListResponse",
    "ShareResponse",
    # Customer
    "CustomerCreate",
    "CustomerResponse",
    "CustomerWithCredit",
    "KhataSummary",
    # Item
    "ItemCreate",
    "ItemResponse",
    "ItemListResponse",
    "InventoryResponse",
]
