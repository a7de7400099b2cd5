"""
Tests for the dashboard and health endpoints.
"""

import pytest
from decimal import Decimal
from httpx import AsyncClient


class TestDashboardStats:
    """Tests for GET /api/v2/dashboard/stats."""

    @pytest.mark.asyncio
    async def test_empty_dashboard(self, client: AsyncClient):
        response = await client.get("/api/v2/dashboard/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert Decimal(data["today_sales"]) == Decimal("0")
        assert data["recent_invoices"] == []
        assert data["total_invoices_today"] == 0

    @pytest.mark.asyncio
    async def test_dashboard_after_sales(self, client: AsyncClient):
        items = [{"name": "Sugar", "quantity": "1", "unit": "kg", "rate": "100"}]
        await client.post("/api/v2/invoices/", json={"items": items, "payment_mode": "CASH", "tax_rate": "0"})
        await client.post(
            "/api/v2/invoices/",
            json={"items": items, "payment_mode": "CREDIT", "tax_rate": "0", "customer_phone": "+919800000001"},
        )

        data = (await client.get("/api/v2/dashboard/stats")).json()

        assert data["status"] == "ready"
        assert data["total_invoices_today"] == 2
        assert Decimal(data["today_sales"]) == Decimal("200.00")
        assert Decimal(data["pending_credit"]) == Decimal("100.00")
        assert data["recent_invoices"][0]["payment_mode"] == "CREDIT"


class TestHealth:
    """Tests for the root and health endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"

    @pytest.mark.asyncio
    async def test_correlation_id_echoed(self, client: AsyncClient):
        response = await client.get("/", headers={"X-Correlation-ID": "shop-session-1"})

        assert response.headers["X-Correlation-ID"] == "shop-session-1"
        assert response.json()["name"] == "Kirana Billing API"
