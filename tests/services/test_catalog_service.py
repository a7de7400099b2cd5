"""
Tests for the item catalog and inventory service.
"""

import asyncio
import pytest
from contextlib import aclosing
from datetime import datetime
from decimal import Decimal

from kirana.exceptions import BusinessRuleError, ConflictError, NotFoundError
from kirana.schemas.invoice import PaymentMode
from kirana.schemas.item import ItemCreate
from kirana.services.catalog_service import matches_query, to_line_input
from kirana.services.gst import build_invoice

from factories import CatalogItemFactory


async def add(catalog, **overrides):
    return await catalog.add_item(ItemCreate(**CatalogItemFactory(**overrides)))


class TestCatalog:
    """Tests for catalog items."""

    @pytest.mark.asyncio
    async def test_add_item_with_opening_stock(self, catalog):
        item = await add(catalog, name="Rice", default_rate=Decimal("40"), opening_stock=Decimal("25"))

        loaded = await catalog.get_item(item.id)

        assert loaded.name == "Rice"
        assert loaded.default_rate == Decimal("40.00")
        assert loaded.inventory.current_stock == Decimal("25")

    @pytest.mark.asyncio
    async def test_get_missing_item(self, catalog):
        assert await catalog.get_item(404) is None

    @pytest.mark.asyncio
    async def test_duplicate_barcode_rejected(self, catalog):
        await add(catalog, barcode="8901234567890")
        with pytest.raises(ConflictError):
            await add(catalog, barcode="8901234567890")

    @pytest.mark.asyncio
    async def test_all_items_sorted_by_name(self, catalog):
        await add(catalog, name="Sugar")
        await add(catalog, name="Atta")

        items = await catalog.all_items().get()

        assert [item.name for item in items] == ["Atta", "Sugar"]

    @pytest.mark.asyncio
    async def test_search_across_names(self, catalog):
        await add(catalog, name="Rice", hindi_name="चावल", marathi_name="तांदूळ", alternate_names=["chawal"])
        await add(catalog, name="Sugar", hindi_name="चीनी")

        assert [i.name for i in await catalog.search_items("RIC").get()] == ["Rice"]
        assert [i.name for i in await catalog.search_items("चावल").get()] == ["Rice"]
        assert [i.name for i in await catalog.search_items("तांदूळ").get()] == ["Rice"]
        assert [i.name for i in await catalog.search_items("chawal").get()] == ["Rice"]

    @pytest.mark.asyncio
    async def test_search_results_follow_stock_changes(self, catalog):
        item = await add(catalog, name="Rice", opening_stock=Decimal("10"))

        async with aclosing(catalog.search_items("rice").__aiter__()) as results:
            first = await results.__anext__()
            await catalog.restock(item.id, Decimal("5"))
            second = await asyncio.wait_for(results.__anext__(), timeout=1)

        assert first[0].inventory.current_stock == Decimal("10")
        assert second[0].inventory.current_stock == Decimal("15")

    @pytest.mark.asyncio
    async def test_items_by_category(self, catalog):
        await add(catalog, name="Toor Dal", category="Pulses")
        await add(catalog, name="Rice", category="Grains")

        items = await catalog.items_by_category("Pulses").get()

        assert [item.name for item in items] == ["Toor Dal"]

    def test_blank_query_matches_everything(self):
        class Named:
            name = "Rice"
            hindi_name = None
            marathi_name = None
            alternate_names = []

        assert matches_query(Named(), "  ") is True


class TestLineInput:
    """Tests for turning catalog items into invoice lines."""

    @pytest.mark.asyncio
    async def test_line_uses_catalog_defaults(self, catalog):
        item = await add(catalog, name="Sunflower Oil", unit="ltr", default_rate=Decimal("150"), hsn_code="1512")

        line = to_line_input(item, 2)

        assert line.name == "Sunflower Oil"
        assert line.unit == "ltr"
        assert line.rate == Decimal("150")
        assert line.quantity == Decimal("2")
        assert line.hsn_code == "1512"

    @pytest.mark.asyncio
    async def test_line_builds_invoice(self, catalog):
        rice = await add(catalog, name="Rice", default_rate=Decimal("40"))
        oil = await add(catalog, name="Oil", unit="ltr", default_rate=Decimal("150"))

        invoice = build_invoice(
            [to_line_input(rice, 2), to_line_input(oil, 1)],
            PaymentMode.CASH,
            Decimal("0.05"),
        )

        assert invoice.total_amount == Decimal("241.50")

    @pytest.mark.asyncio
    async def test_line_rate_override(self, catalog):
        item = await add(catalog, default_rate=Decimal("40"))
        assert to_line_input(item, 1, rate="38").rate == Decimal("38")


class TestInventory:
    """Tests for stock levels."""

    @pytest.mark.asyncio
    async def test_set_stock(self, catalog):
        item = await add(catalog, opening_stock=Decimal("10"), reorder_level=Decimal("2"))

        level = await catalog.set_stock(item.id, Decimal("1.5"), reorder_level=Decimal("3"))

        assert level.current_stock == Decimal("1.5")
        assert level.reorder_level == Decimal("3")
        assert level.is_low is True

    @pytest.mark.asyncio
    async def test_negative_stock_rejected(self, catalog):
        item = await add(catalog)
        with pytest.raises(BusinessRuleError):
            await catalog.set_stock(item.id, -1)

    @pytest.mark.asyncio
    async def test_set_stock_missing_item(self, catalog):
        with pytest.raises(NotFoundError):
            await catalog.set_stock(404, 5)

    @pytest.mark.asyncio
    async def test_restock_adds_and_stamps(self, catalog):
        item = await add(catalog, opening_stock=Decimal("4"))
        when = datetime(2024, 1, 2, 8, 30)

        level = await catalog.restock(item.id, Decimal("20"), when=when)

        assert level.current_stock == Decimal("24")
        assert level.last_restock_date == when
        assert level.last_restock_quantity == Decimal("20")

    @pytest.mark.asyncio
    async def test_restock_requires_positive_quantity(self, catalog):
        item = await add(catalog)
        with pytest.raises(BusinessRuleError):
            await catalog.restock(item.id, 0)

    @pytest.mark.asyncio
    async def test_low_stock(self, catalog):
        await add(catalog, name="Rice", opening_stock=Decimal("2"), reorder_level=Decimal("5"))
        await add(catalog, name="Salt", opening_stock=Decimal("5"), reorder_level=Decimal("5"))
        await add(catalog, name="Sugar", opening_stock=Decimal("50"), reorder_level=Decimal("5"))

        low = await catalog.low_stock_items().get()

        assert [item.name for item in low] == ["Rice", "Salt"]
        assert await catalog.low_stock_count() == 2
