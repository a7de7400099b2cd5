"""
FastAPI Dependencies

Provides dependency injection for database sessions and the billing services.
All services share one ChangeNotifier so live queries see every write made
through the API.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from kirana.config import settings
from kirana.database import async_session_maker, get_db
from kirana.services.catalog_service import CatalogService
from kirana.services.dashboard import DashboardAggregator, SalesTotalPolicy
from kirana.services.invoice_repository import InvoiceRepository
from kirana.services.khata_service import KhataService
from kirana.services.live_query import ChangeNotifier
from kirana.services.share_service import ShareDispatcher, TwilioWhatsAppSharer


@lru_cache()
def get_change_notifier() -> ChangeNotifier:
    return ChangeNotifier()


@lru_cache()
def get_invoice_repository() -> InvoiceRepository:
    return InvoiceRepository(async_session_maker, get_change_notifier())


@lru_cache()
def get_khata_service() -> KhataService:
    return KhataService(async_session_maker, get_invoice_repository())


@lru_cache()
def get_catalog_service() -> CatalogService:
    return CatalogService(async_session_maker, get_change_notifier())


@lru_cache()
def get_share_dispatcher() -> ShareDispatcher:
    return ShareDispatcher(TwilioWhatsAppSharer())


def new_dashboard(repository: InvoiceRepository) -> DashboardAggregator:
    """A dashboard aggregator configured from settings. One per screen/connection."""
    return DashboardAggregator(
        repository,
        policy=SalesTotalPolicy(settings.DASHBOARD_SALES_POLICY),
        recent_limit=settings.RECENT_INVOICE_LIMIT,
    )


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
Invoices = Annotated[InvoiceRepository, Depends(get_invoice_repository)]
Khata = Annotated[KhataService, Depends(get_khata_service)]
Catalog = Annotated[CatalogService, Depends(get_catalog_service)]
Sharing = Annotated[ShareDispatcher, Depends(get_share_dispatcher)]
