"""Health check and the shared error envelope."""
import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_endpoint(client: AsyncClient):
    r = await client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert data["app"] == "ComplianceHub"
    assert data["version"]
    assert data["database"] == "connected"


@pytest.mark.asyncio
async def test_unknown_route_uses_error_envelope(client: AsyncClient):
    r = await client.get("/api/v1/nothing-here")
    assert r.status_code == 404
    assert r.json() == {"error": "Not Found"}


@pytest.mark.asyncio
async def test_validation_error_envelope(client: AsyncClient):
    r = await client.post("/api/v1/auth/login", json={"email": "someone@example.com"})
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "password: Field required"
    assert body["details"][0]["loc"] == ["body", "password"]
