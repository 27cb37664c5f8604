"""
API Endpoint Tests.

Exercise the HTTP surface end to end: auth, routing, the error envelope
and a full post / apply / select flow.
"""
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from tradiehub.core.security import create_access_token
from tradiehub.modules.notifications.service import MarketplaceEvent

API = "/api/v1"


def job_payload(**overrides) -> dict:
    payload = {
        "title": "Replace switchboard",
        "description": "Old ceramic fuse board needs replacing with a modern RCD board.",
        "job_type": "electrical",
        "location": "Newtown NSW",
        "estimated_budget": "1500",
        "date_required": (datetime.now(timezone.utc) + timedelta(days=14)).isoformat(),
        "urgency_level": "medium",
    }
    payload.update(overrides)
    return payload


class TestServiceEndpoints:

    @pytest.mark.asyncio
    async def test_health(self, api_client):
        response = await api_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "tradiehub-backend"}
        assert "X-Request-ID" in response.headers

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, api_client):
        response = await api_client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    @pytest.mark.asyncio
    async def test_root(self, api_client):
        response = await api_client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "TradieHub Backend"

    @pytest.mark.asyncio
    async def test_openapi_lists_modules(self, api_client):
        response = await api_client.get("/openapi.json")

        paths = response.json()["paths"]
        assert f"{API}/marketplace/jobs" in paths
        assert f"{API}/credits/balance" in paths
        assert f"{API}/quotes/calculate" in paths
        assert f"{API}/jobs" in paths


class TestAuthAndErrors:
    """Authentication, role checks and the error envelope."""

    @pytest.mark.asyncio
    async def test_missing_token(self, api_client):
        response = await api_client.get(f"{API}/credits/balance")

        assert response.status_code == 401
        error = response.json()["error"]
        assert error["code"] == "UNAUTHORIZED"
        assert error["path"] == f"{API}/credits/balance"
        assert error["request_id"] == response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_garbage_token(self, api_client):
        response = await api_client.get(
            f"{API}/credits/balance", headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_role(self, api_client):
        token = create_access_token(str(uuid.uuid4()), "plumber")
        response = await api_client.get(
            f"{API}/credits/balance", headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_role(self, api_client, auth_headers, tradie_id):
        response = await api_client.post(
            f"{API}/marketplace/jobs", json=job_payload(), headers=auth_headers(tradie_id, "tradie"),
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_request_validation(self, api_client, auth_headers, client_id):
        response = await api_client.post(
            f"{API}/marketplace/jobs",
            json=job_payload(job_type="astrology"),
            headers=auth_headers(client_id, "client"),
        )

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert any(e["field"].endswith("job_type") for e in error["details"]["validation_errors"])

    @pytest.mark.asyncio
    async def test_domain_validation(self, api_client, auth_headers, client_id):
        response = await api_client.post(
            f"{API}/marketplace/jobs",
            json=job_payload(title="Fix"),
            headers=auth_headers(client_id, "client"),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_not_found(self, api_client, auth_headers, tradie_id):
        response = await api_client.get(
            f"{API}/marketplace/jobs/{uuid.uuid4()}", headers=auth_headers(tradie_id, "tradie"),
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"


class TestMarketplaceFlow:

    @pytest.mark.asyncio
    async def test_post_apply_select(self, api_client, auth_headers, notifier, client_id, tradie_id):
        client = auth_headers(client_id, "client")
        tradie = auth_headers(tradie_id, "tradie")

        response = await api_client.post(f"{API}/marketplace/jobs", json=job_payload(), headers=client)
        assert response.status_code == 201
        job_id = response.json()["id"]

        response = await api_client.get(f"{API}/marketplace/jobs/{job_id}/credit-cost", headers=tradie)
        assert Decimal(response.json()["credits_required"]) == Decimal("3.60")

        response = await api_client.post(f"{API}/credits/award-trial", headers=tradie)
        assert response.json()["awarded"] is True

        response = await api_client.post(
            f"{API}/marketplace/applications",
            json={"marketplace_job_id": job_id, "custom_quote": "1400"},
            headers=tradie,
        )
        assert response.status_code == 201
        application_id = response.json()["id"]

        response = await api_client.post(
            f"{API}/marketplace/applications",
            json={"marketplace_job_id": job_id},
            headers=tradie,
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_APPLICATION"

        response = await api_client.get(f"{API}/credits/balance", headers=tradie)
        assert Decimal(response.json()["current_balance"]) == Decimal("6.40")

        response = await api_client.post(
            f"{API}/marketplace/select-tradie",
            json={"marketplace_job_id": job_id, "application_id": application_id},
            headers=client,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["assignment"]["selected_tradie_id"] == str(tradie_id)
        assert body["rejected_application_ids"] == []

        response = await api_client.get(f"{API}/jobs", headers=tradie)
        assert response.json()["total"] == 1

        response = await api_client.get(f"{API}/marketplace/analytics/hiring", headers=client)
        assert response.json()["hires_made"] == 1

        assert len(notifier.of_type(MarketplaceEvent.JOB_ASSIGNED)) == 1

    @pytest.mark.asyncio
    async def test_insufficient_credits_returns_402(self, api_client, auth_headers, client_id, tradie_id):
        response = await api_client.post(
            f"{API}/marketplace/jobs", json=job_payload(), headers=auth_headers(client_id, "client"),
        )
        job_id = response.json()["id"]

        response = await api_client.post(
            f"{API}/marketplace/applications",
            json={"marketplace_job_id": job_id},
            headers=auth_headers(tradie_id, "tradie"),
        )

        assert response.status_code == 402
        error = response.json()["error"]
        assert error["code"] == "INSUFFICIENT_CREDITS"


class TestQuotesApi:

    @pytest.mark.asyncio
    async def test_calculate(self, api_client, auth_headers, tradie_id):
        response = await api_client.post(
            f"{API}/quotes/calculate",
            json={
                "items": [
                    {"item_type": "labour", "description": "Electrician", "quantity": "4", "unit": "hour", "unit_price": "95"},
                    {"item_type": "material", "description": "RCD", "quantity": "2", "unit_price": "37.25"},
                ],
            },
            headers=auth_headers(tradie_id, "tradie"),
        )

        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["subtotal"]) == Decimal("454.50")
        assert Decimal(body["gst_amount"]) == Decimal("45.45")
        assert Decimal(body["total_amount"]) == Decimal("499.95")

    @pytest.mark.asyncio
    async def test_empty_items_rejected(self, api_client, auth_headers, tradie_id):
        response = await api_client.post(
            f"{API}/quotes/calculate", json={"items": []}, headers=auth_headers(tradie_id, "tradie"),
        )

        assert response.status_code == 400
        errors = response.json()["error"]["details"]["validation_errors"]
        assert errors[0]["message"] == "At least one quote item is required"

    @pytest.mark.asyncio
    async def test_create_and_send(self, api_client, auth_headers, client_id, tradie_id):
        tradie = auth_headers(tradie_id, "tradie")
        response = await api_client.post(
            f"{API}/quotes",
            json={
                "client_id": str(client_id),
                "title": "Switchboard upgrade",
                "items": [{"item_type": "labour", "description": "Electrician", "quantity": "1", "unit_price": "100"}],
            },
            headers=tradie,
        )
        assert response.status_code == 201
        quote_id = response.json()["id"]

        response = await api_client.put(f"{API}/quotes/{quote_id}/status", json={"status": "sent"}, headers=tradie)
        assert response.json()["status"] == "sent"

        response = await api_client.get(f"{API}/quotes", headers=auth_headers(client_id, "client"))
        assert response.json()["total"] == 1
