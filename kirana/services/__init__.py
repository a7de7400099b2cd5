# Services module
from kirana.services.live_query import ChangeNotifier, LiveQuery, ObservableValue
from kirana.services.gst import build_invoice, split_gst
from kirana.services.invoice_repository import InvoiceRepository
from kirana.services.dashboard import DashboardAggregator, SalesTotalPolicy, fold_invoices
from kirana.services.share_service import ShareDispatcher, ShareResult
from kirana.services.khata_service import KhataService
from kirana.services.catalog_service import CatalogService

__all__ = [
    "ChangeNotifier",
    "LiveQuery",
    "ObservableValue",
    "build_invoice",
    "split_gst",
    "InvoiceRepository",
    # Dashboard
    "DashboardAggregator",
    "SalesTotalPolicy",
    "fold_invoices",
    # Sharing
    "ShareDispatcher",
    "ShareResult",
    "KhataService",
    "CatalogService",
]
