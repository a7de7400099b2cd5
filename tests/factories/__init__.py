"""
Test factories for generating realistic test data.

Uses factory_boy for declarative test data generation.
"""

from .invoice import LineItemFactory, InvoiceInputFactory, make_invoice
from .item import CatalogItemFactory

__all__ = [
    "LineItemFactory",
    "InvoiceInputFactory",
    "make_invoice",
    "CatalogItemFactory",
]
