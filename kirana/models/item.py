"""Item catalog and stock levels."""
from sqlalchemy import Column, Integer, String, DateTime, Numeric, JSON, ForeignKey
from sqlalchemy.orm import relationship

from kirana.database import Base


class Item(Base):
    """Sellable catalog item."""

    __tablename__ = "items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    hindi_name = Column(String(255), nullable=True)
    marathi_name = Column(String(255), nullable=True)
    alternate_names = Column(JSON, nullable=False, default=list)  # spoken variants
    category = Column(String(100), nullable=False, index=True)

    default_rate = Column(Numeric(12, 2), nullable=False)
    unit = Column(String(20), nullable=False, default="piece")  # kg, piece, ltr, etc.
    hsn_code = Column(String(20), nullable=True)
    gst_rate = Column(Numeric(5, 4), nullable=False, default=0)  # fraction
    barcode = Column(String(64), nullable=True, unique=True)

    inventory = relationship(
        "InventoryLevel",
        back_populates="item",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Item {self.name}>"


class InventoryLevel(Base):
    """Current stock for one catalog item."""

    __tablename__ = "inventory"

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)

    current_stock = Column(Numeric(12, 3), nullable=False, default=0)
    reorder_level = Column(Numeric(12, 3), nullable=False, default=0)
    last_restock_date = Column(DateTime, nullable=True)
    last_restock_quantity = Column(Numeric(12, 3), nullable=True)

    item = relationship("Item", back_populates="inventory")

    @property
    def is_low(self) -> bool:
        return self.current_stock <= self.reorder_level

    def __repr__(self):
        return f"<InventoryLevel item={self.item_id} stock={self.current_stock}>"
