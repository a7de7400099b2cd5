"""
Tests for the invoices API endpoints (/api/v2/invoices).
"""

import pytest
from decimal import Decimal
from httpx import AsyncClient

INVOICES_PREFIX = "/api/v2/invoices"

RICE_AND_OIL = [
    {"name": "Rice", "quantity": "2", "unit": "kg", "rate": "40"},
    {"name": "Oil", "quantity": "1", "unit": "ltr", "rate": "150"},
]


async def create_invoice(client: AsyncClient, **overrides):
    payload = {"items": RICE_AND_OIL, "payment_mode": "CASH", "tax_rate": "0.05"}
    payload.update(overrides)
    response = await client.post(f"{INVOICES_PREFIX}/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateInvoice:
    """Tests for POST /api/v2/invoices/."""

    @pytest.mark.asyncio
    async def test_create_invoice_success(self, client: AsyncClient):
        data = await create_invoice(client)

        assert data["invoice_number"] == "INV000001"
        assert Decimal(data["subtotal"]) == Decimal("230.00")
        assert Decimal(data["cgst"]) == Decimal("5.75")
        assert Decimal(data["sgst"]) == Decimal("5.75")
        assert Decimal(data["total_amount"]) == Decimal("241.50")
        assert data["is_paid"] is True
        assert data["pdf_path"] is None

    @pytest.mark.asyncio
    async def test_default_gst_rate_applied(self, client: AsyncClient):
        response = await client.post(
            f"{INVOICES_PREFIX}/",
            json={"items": [{"name": "Soap", "quantity": "4", "rate": "25"}]},
        )

        assert response.status_code == 201, response.text
        data = response.json()
        assert Decimal(data["cgst"]) == Decimal("9.00")
        assert data["items"][0]["unit"] == "piece"

    @pytest.mark.asyncio
    async def test_credit_invoice_unpaid(self, client: AsyncClient):
        data = await create_invoice(client, payment_mode="CREDIT", customer_phone="+919800000001")
        assert data["is_paid"] is False

    @pytest.mark.asyncio
    async def test_empty_items_rejected(self, client: AsyncClient):
        response = await client.post(f"{INVOICES_PREFIX}/", json={"items": []})

        assert response.status_code == 422
        assert response.headers["content-type"].startswith("application/problem+json")
        body = response.json()
        assert body["code"] == "VAL_002"
        assert body["errors"][0]["field"] == "items"

    @pytest.mark.asyncio
    async def test_zero_quantity_rejected(self, client: AsyncClient):
        response = await client.post(
            f"{INVOICES_PREFIX}/",
            json={"items": [{"name": "Rice", "quantity": "0", "rate": "40"}]},
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VAL_002"

    @pytest.mark.asyncio
    async def test_malformed_body_rejected(self, client: AsyncClient):
        response = await client.post(
            f"{INVOICES_PREFIX}/",
            json={"items": [{"name": "Rice", "quantity": "lots", "rate": "40"}]},
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VAL_001"


class TestReadInvoices:
    """Tests for listing and fetching invoices."""

    @pytest.mark.asyncio
    async def test_get_invoice(self, client: AsyncClient):
        created = await create_invoice(client)

        response = await client.get(f"{INVOICES_PREFIX}/{created['id']}")

        assert response.status_code == 200
        assert response.json()["invoice_number"] == created["invoice_number"]

    @pytest.mark.asyncio
    async def test_get_by_number(self, client: AsyncClient):
        created = await create_invoice(client)

        response = await client.get(f"{INVOICES_PREFIX}/by-number/{created['invoice_number']}")

        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    @pytest.mark.asyncio
    async def test_get_missing_invoice(self, client: AsyncClient):
        response = await client.get(f"{INVOICES_PREFIX}/999")

        assert response.status_code == 404
        assert response.json()["code"] == "RES_001"
        assert "X-Request-ID" in response.headers

    @pytest.mark.asyncio
    async def test_list_invoices(self, client: AsyncClient):
        for _ in range(3):
            await create_invoice(client)

        response = await client.get(f"{INVOICES_PREFIX}/", params={"page_size": 2})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert len(data["items"]) == 2

    @pytest.mark.asyncio
    async def test_list_open_credit(self, client: AsyncClient):
        await create_invoice(client)
        credit = await create_invoice(client, payment_mode="CREDIT", customer_phone="+919800000001")

        response = await client.get(f"{INVOICES_PREFIX}/", params={"open_credit": True})

        data = response.json()
        assert [item["id"] for item in data["items"]] == [credit["id"]]

    @pytest.mark.asyncio
    async def test_list_requires_both_dates(self, client: AsyncClient):
        response = await client.get(f"{INVOICES_PREFIX}/", params={"date_from": "2024-01-02T00:00:00"})
        assert response.status_code == 422


class TestInvoiceTransitions:
    """Tests for mark-paid and PDF attachment."""

    @pytest.mark.asyncio
    async def test_mark_paid(self, client: AsyncClient):
        credit = await create_invoice(client, payment_mode="CREDIT", customer_phone="+919800000001")

        response = await client.post(f"{INVOICES_PREFIX}/{credit['id']}/mark-paid")

        assert response.status_code == 200
        assert response.json()["is_paid"] is True

    @pytest.mark.asyncio
    async def test_mark_paid_on_cash_conflicts(self, client: AsyncClient):
        cash = await create_invoice(client)

        response = await client.post(f"{INVOICES_PREFIX}/{cash['id']}/mark-paid")

        assert response.status_code == 409
        assert response.json()["code"] == "BIZ_002"

    @pytest.mark.asyncio
    async def test_attach_pdf_once(self, client: AsyncClient):
        created = await create_invoice(client)
        url = f"{INVOICES_PREFIX}/{created['id']}/pdf"

        first = await client.post(url, json={"pdf_path": "/data/INV000001.pdf"})
        second = await client.post(url, json={"pdf_path": "/data/other.pdf"})

        assert first.status_code == 200
        assert first.json()["pdf_path"] == "/data/INV000001.pdf"
        assert second.status_code == 409


class TestShareInvoice:
    """Tests for POST /api/v2/invoices/{id}/share."""

    @pytest.mark.asyncio
    async def test_share_before_pdf_reports_not_ready(self, client: AsyncClient, mock_sharer):
        created = await create_invoice(client, customer_phone="+919800000001")

        response = await client.post(f"{INVOICES_PREFIX}/{created['id']}/share")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["error_code"] == "BIZ_003"
        assert mock_sharer._shared == []

    @pytest.mark.asyncio
    async def test_share_to_customer(self, client: AsyncClient, mock_sharer):
        created = await create_invoice(client, customer_phone="+919800000001")
        await client.post(f"{INVOICES_PREFIX}/{created['id']}/pdf", json={"pdf_path": "/data/INV000001.pdf"})

        response = await client.post(f"{INVOICES_PREFIX}/{created['id']}/share")

        data = response.json()
        assert data["success"] is True
        assert data["channel"] == "whatsapp_contact"
        assert mock_sharer._shared[0]["phone"] == "+919800000001"

    @pytest.mark.asyncio
    async def test_share_missing_invoice(self, client: AsyncClient):
        response = await client.post(f"{INVOICES_PREFIX}/999/share")
        assert response.status_code == 404
