from fastapi import APIRouter, Query, status
from decimal import Decimal
from typing import Optional
import logging

from kirana.api.deps import Catalog
from kirana.exceptions import NotFoundError
from kirana.schemas.invoice import InvoiceItemInput
from kirana.schemas.item import (
    InventoryResponse,
    ItemCreate,
    ItemListResponse,
    ItemResponse,
    LowStockResponse,
    RestockRequest,
    StockUpdate,
)
from kirana.services.catalog_service import to_line_input

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=ItemListResponse)
async def list_items(
    catalog: Catalog,
    q: Optional[str] = Query(None, description="Matches English, Hindi, Marathi or alternate names"),
    category: Optional[str] = None,
):
    """List catalog items by name."""
    if q:
        items = await catalog.search_items(q).get()
        if category:
            items = [item for item in items if item.category == category]
    elif category:
        items = await catalog.items_by_category(category).get()
    else:
        items = await catalog.all_items().get()

    return {"items": items, "total": len(items)}


@router.post("/", response_model=ItemResponse, status_code=status.HTTP_201_CREATED)
async def add_item(item_data: ItemCreate, catalog: Catalog):
    return await catalog.add_item(item_data)


@router.get("/low-stock", response_model=LowStockResponse)
async def get_low_stock_items(catalog: Catalog):
    """Items at or below their reorder level."""
    items = await catalog.low_stock_items().get()
    return {"items": items, "count": await catalog.low_stock_count()}


@router.get("/{item_id}", response_model=ItemResponse)
async def get_item(item_id: int, catalog: Catalog):
    item = await catalog.get_item(item_id)
    if item is None:
        raise NotFoundError("Item", str(item_id))
    return item


@router.get("/{item_id}/line", response_model=InvoiceItemInput)
async def get_invoice_line(
    item_id: int,
    catalog: Catalog,
    quantity: Decimal = Query(..., gt=0),
    rate: Optional[Decimal] = Query(None, ge=0),
):
    """Invoice line input for a quantity of this item."""
    item = await catalog.get_item(item_id)
    if item is None:
        raise NotFoundError("Item", str(item_id))
    return to_line_input(item, quantity, rate)


@router.put("/{item_id}/stock", response_model=InventoryResponse)
async def set_item_stock(item_id: int, update: StockUpdate, catalog: Catalog):
    return await catalog.set_stock(item_id, update.current_stock, update.reorder_level)


@router.post("/{item_id}/restock", response_model=InventoryResponse)
async def restock_item(item_id: int, request: RestockRequest, catalog: Catalog):
    """Add received stock."""
    return await catalog.restock(item_id, request.quantity)
