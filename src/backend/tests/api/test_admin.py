"""
Tests for admin endpoints.
"""

import httpx
import pytest
from httpx import AsyncClient

from api.deps import get_barcode_lookup
from services.barcode_lookup import BarcodeLookupClient


def lookup_transport() -> httpx.MockTransport:
    """Open Food Facts knows 111; every other lookup misses."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "world.openfoodfacts.org" and request.url.path.endswith("/111.json"):
            return httpx.Response(
                200,
                json={"status": 1, "product": {"product_name": "Oat Drink", "brands": "Oatly"}},
            )
        if request.url.host == "world.openfoodfacts.org":
            return httpx.Response(200, json={"status": 0})
        return httpx.Response(404, json={"code": "INVALID_UPC"})

    return httpx.MockTransport(handler)


@pytest.mark.unit
class TestAdminAuth:
    """Test the X-Admin-Key guard."""

    async def test_missing_key(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/admin/scheduler-status")

        assert response.status_code == 403
        assert response.json()["detail"] == "Admin access required"

    async def test_wrong_key(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/admin/product-votes/enrich",
            headers={"X-Admin-Key": "nope"},
        )
        assert response.status_code == 403

    async def test_non_ascii_key_rejected(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/admin/product-votes/enrich",
            headers={"X-Admin-Key": "clé".encode("latin-1")},
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Admin access required"

    async def test_disabled_without_configured_key(self, client: AsyncClient, admin_headers, monkeypatch) -> None:
        from core.config import settings

        monkeypatch.setattr(settings, "ADMIN_API_KEY", None)

        response = await client.get("/api/v1/admin/scheduler-status", headers=admin_headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "Admin API is disabled"

    async def test_scheduler_status(self, client: AsyncClient, admin_headers) -> None:
        response = await client.get("/api/v1/admin/scheduler-status", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["running"] is False


@pytest.mark.unit
class TestAdvanceStatus:
    """Test POST /admin/product-votes/{barcode}/status."""

    async def test_forward_transition(self, client: AsyncClient, admin_headers, repository, make_record) -> None:
        await repository.create(make_record(barcode="123"))

        response = await client.post(
            "/api/v1/admin/product-votes/123/status",
            json={"status": "testing", "notes": "Sent to lab"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["previous_status"] == "collecting_votes"
        assert data["status"] == "testing"
        assert data["status_history"][-1]["notes"] == "Sent to lab"

    async def test_backward_transition_rejected(
        self, client: AsyncClient, admin_headers, repository, make_record
    ) -> None:
        await repository.create(make_record(barcode="123", status="testing"))

        response = await client.post(
            "/api/v1/admin/product-votes/123/status",
            json={"status": "queued"},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert (await repository.get_by_barcode("123")).status == "testing"

    async def test_unknown_barcode(self, client: AsyncClient, admin_headers) -> None:
        response = await client.post(
            "/api/v1/admin/product-votes/ghost/status",
            json={"status": "queued"},
            headers=admin_headers,
        )
        assert response.status_code == 404

    async def test_complete_marks_results_ready_once(
        self, client: AsyncClient, admin_headers, repository, make_record
    ) -> None:
        await repository.create(make_record(barcode="123", notify_on_complete=["u1"]))

        response = await client.post(
            "/api/v1/admin/product-votes/123/status",
            json={"status": "complete", "linked_product_id": "prod-9"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        stored = await repository.get_by_barcode("123")
        assert stored.notifications_sent.results_ready is True
        assert stored.linked_product_id == "prod-9"


@pytest.mark.unit
class TestEnrichment:
    """Test POST /admin/product-votes/enrich."""

    async def test_enrich_with_mocked_lookup(
        self, app, client: AsyncClient, admin_headers, repository, make_record
    ) -> None:
        await repository.create(make_record(barcode="111", product_name=None, total_weighted_votes=5))
        await repository.create(make_record(barcode="222", product_name=None, total_weighted_votes=1))

        async def override_lookup():
            async with httpx.AsyncClient(transport=lookup_transport()) as http_client:
                yield BarcodeLookupClient(http_client)

        app.dependency_overrides[get_barcode_lookup] = override_lookup
        try:
            response = await client.post("/api/v1/admin/product-votes/enrich", headers=admin_headers)
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200
        data = response.json()
        assert data["processed"] == 2
        assert data["enriched"] == 1
        assert data["remaining"] == 0

        enriched = await repository.get_by_barcode("111")
        assert enriched.product_name == "Oat Drink"
        assert enriched.brand == "Oatly"
        assert (await repository.get_by_barcode("222")).product_name is None
