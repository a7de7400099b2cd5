"""Item catalog and inventory schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class ItemCreate(BaseModel):
    """Schema for adding a catalog item."""

    name: str = Field(..., min_length=1, max_length=255)
    hindi_name: Optional[str] = Field(None, max_length=255)
    marathi_name: Optional[str] = Field(None, max_length=255)
    alternate_names: list[str] = []
    category: str = Field(..., min_length=1, max_length=100)
    default_rate: Decimal = Field(..., ge=0)
    unit: str = Field("piece", max_length=20)
    hsn_code: Optional[str] = Field(None, max_length=20)
    gst_rate: Decimal = Field(Decimal("0"), ge=0, description="Fraction, e.g. 0.05")
    barcode: Optional[str] = Field(None, max_length=64)

    # Stock is optional at creation
    opening_stock: Optional[Decimal] = Field(None, ge=0)
    reorder_level: Decimal = Field(Decimal("0"), ge=0)


class InventoryResponse(BaseModel):
    """Schema for a stock level response."""

    item_id: int
    current_stock: Decimal
    reorder_level: Decimal
    last_restock_date: Optional[datetime] = None
    last_restock_quantity: Optional[Decimal] = None
    is_low: bool  # Computed: current_stock <= reorder_level

    class Config:
        from_attributes = True


class ItemResponse(BaseModel):
    """Schema for catalog item response."""

    id: int
    name: str
    hindi_name: Optional[str] = None
    marathi_name: Optional[str] = None
    alternate_names: list[str] = []
    category: str
    default_rate: Decimal
    unit: str
    hsn_code: Optional[str] = None
    gst_rate: Decimal
    barcode: Optional[str] = None
    inventory: Optional[InventoryResponse] = None

    class Config:
        from_attributes = True


class ItemListResponse(BaseModel):
    items: list[ItemResponse]
    total: int


class StockUpdate(BaseModel):
    """Schema for setting a stock level outright."""

    current_stock: Decimal = Field(..., ge=0)
    reorder_level: Optional[Decimal] = Field(None, ge=0)


class RestockRequest(BaseModel):
    """Schema for receiving stock."""

    quantity: Decimal = Field(..., gt=0)


class LowStockResponse(BaseModel):
    items: list[ItemResponse]
    count: int
