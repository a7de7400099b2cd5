"""
Item catalog and inventory service.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kirana.exceptions import BusinessRuleError, ConflictError, NotFoundError
from kirana.models.item import InventoryLevel, Item
from kirana.schemas.invoice import InvoiceItemInput
from kirana.schemas.item import ItemCreate
from kirana.services.gst import Number, to_decimal
from kirana.services.live_query import ChangeNotifier, LiveQuery

logger = logging.getLogger(__name__)

ITEMS_TABLE = Item.__tablename__
INVENTORY_TABLE = InventoryLevel.__tablename__


def item_names(item: Item) -> List[str]:
    """Every name an item is known by."""
    names = [item.name, item.hindi_name, item.marathi_name, *(item.alternate_names or [])]
    return [name for name in names if name]


def matches_query(item: Item, query: str) -> bool:
    needle = query.strip().casefold()
    if not needle:
        return True
    return any(needle in name.casefold() for name in item_names(item))


def to_line_input(item: Item, quantity: Number, rate: Optional[Number] = None) -> InvoiceItemInput:
    """Invoice line for ``quantity`` of a catalog item at its default rate."""
    return InvoiceItemInput(
        name=item.name,
        quantity=to_decimal(quantity),
        unit=item.unit,
        rate=to_decimal(rate) if rate is not None else to_decimal(item.default_rate),
        hsn_code=item.hsn_code,
    )


class CatalogService:
    """Catalog items and their stock levels."""

    def __init__(self, session_maker: async_sessionmaker, notifier: Optional[ChangeNotifier] = None):
        self._session_maker = session_maker
        self.notifier = notifier or ChangeNotifier()

    def _items_query(self):
        return select(Item).options(selectinload(Item.inventory)).order_by(Item.name.asc())

    async def _fetch_items(self, stmt) -> List[Item]:
        async with self._session_maker() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    def _live(self, stmt) -> LiveQuery[List[Item]]:
        return LiveQuery(self.notifier, [ITEMS_TABLE, INVENTORY_TABLE], lambda: self._fetch_items(stmt))

    # Catalog

    async def add_item(self, data: ItemCreate) -> Item:
        async with self._session_maker() as session:
            async with session.begin():
                if data.barcode:
                    existing = await session.execute(select(Item.id).where(Item.barcode == data.barcode))
                    if existing.scalar_one_or_none() is not None:
                        raise ConflictError(f"Item with barcode {data.barcode} already exists")

                fields = data.model_dump(exclude={"opening_stock", "reorder_level"})
                item = Item(**fields)
                item.inventory = InventoryLevel(
                    current_stock=data.opening_stock or Decimal("0"),
                    reorder_level=data.reorder_level,
                )
                session.add(item)

        self.notifier.notify(ITEMS_TABLE)
        self.notifier.notify(INVENTORY_TABLE)
        logger.info(f"Catalog item added: {item.name} ({item.category})")
        return item

    async def get_item(self, item_id: int) -> Optional[Item]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(Item).options(selectinload(Item.inventory)).where(Item.id == item_id)
            )
            return result.scalar_one_or_none()

    def all_items(self) -> LiveQuery[List[Item]]:
        return self._live(self._items_query())

    def items_by_category(self, category: str) -> LiveQuery[List[Item]]:
        return self._live(self._items_query().where(Item.category == category))

    def search_items(self, query: str) -> LiveQuery[List[Item]]:
        """Items whose English, Hindi, Marathi or alternate name contains ``query``."""

        async def fetch():
            items = await self._fetch_items(self._items_query())
            return [item for item in items if matches_query(item, query)]

        return LiveQuery(self.notifier, [ITEMS_TABLE, INVENTORY_TABLE], fetch)

    # Inventory

    async def _level_for(self, session: AsyncSession, item_id: int) -> InventoryLevel:
        item = await session.get(Item, item_id)
        if item is None:
            raise NotFoundError("Item", str(item_id))
        result = await session.execute(select(InventoryLevel).where(InventoryLevel.item_id == item_id))
        level = result.scalar_one_or_none()
        if level is None:
            level = InventoryLevel(item_id=item_id, current_stock=Decimal("0"), reorder_level=Decimal("0"))
            session.add(level)
        return level

    async def set_stock(
        self,
        item_id: int,
        current_stock: Number,
        reorder_level: Optional[Number] = None,
    ) -> InventoryLevel:
        stock = to_decimal(current_stock)
        if stock < 0:
            raise BusinessRuleError("Stock must not be negative")

        async with self._session_maker() as session:
            async with session.begin():
                level = await self._level_for(session, item_id)
                level.current_stock = stock
                if reorder_level is not None:
                    if to_decimal(reorder_level) < 0:
                        raise BusinessRuleError("Reorder level must not be negative")
                    level.reorder_level = to_decimal(reorder_level)

        self.notifier.notify(INVENTORY_TABLE)
        logger.info(f"Stock set for item {item_id}: {stock}")
        return level

    async def restock(self, item_id: int, quantity: Number, when: Optional[datetime] = None) -> InventoryLevel:
        """Add received stock and stamp the restock date."""
        received = to_decimal(quantity)
        if received <= 0:
            raise BusinessRuleError("Restock quantity must be positive")

        async with self._session_maker() as session:
            async with session.begin():
                level = await self._level_for(session, item_id)
                level.current_stock = to_decimal(level.current_stock or 0) + received
                level.last_restock_date = when or datetime.now()
                level.last_restock_quantity = received

        self.notifier.notify(INVENTORY_TABLE)
        logger.info(f"Item {item_id} restocked: +{received}")
        return level

    def _low_stock_query(self):
        return (
            self._items_query()
            .join(InventoryLevel, InventoryLevel.item_id == Item.id)
            .where(InventoryLevel.current_stock <= InventoryLevel.reorder_level)
        )

    def low_stock_items(self) -> LiveQuery[List[Item]]:
        """Items at or below their reorder level."""
        return self._live(self._low_stock_query())

    async def low_stock_count(self) -> int:
        async with self._session_maker() as session:
            result = await session.execute(
                select(func.count(InventoryLevel.id)).where(
                    InventoryLevel.current_stock <= InventoryLevel.reorder_level
                )
            )
            return result.scalar() or 0
