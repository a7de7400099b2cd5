from fastapi import APIRouter
from kirana.api.v2 import (
    invoices,
    dashboard,
    khata,
    items,
)

api_router = APIRouter()

# Include all v2 routers
api_router.include_router(invoices.router, prefix="/invoices", tags=["invoices"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
api_router.include_router(khata.router, prefix="/khata", tags=["khata"])
api_router.include_router(items.router, prefix="/items", tags=["items"])
