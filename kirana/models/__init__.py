from kirana.models.invoice import InvoiceRecord
from kirana.models.customer import Customer
from kirana.models.item import Item, InventoryLevel

__all__ = [
    "InvoiceRecord",
    "Customer",
    "Item",
    "InventoryLevel",
]
