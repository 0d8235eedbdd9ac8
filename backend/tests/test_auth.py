"""Session authentication — register, login, me, logout, error envelope."""
import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_register_logs_user_in(client: AsyncClient):
    r = await client.post("/api/v1/auth/register", json={
        "name": "New User", "email": "New.User@Example.com", "password": "longenough",
    })
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["email"] == "new.user@example.com"
    assert data["platform_role"] == "USER"
    assert "password_hash" not in data

    me = await client.get("/api/v1/auth/me")
    assert me.status_code == 200
    assert me.json()["email"] == "new.user@example.com"
    assert me.json()["memberships"] == []


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, seed):
    r = await client.post("/api/v1/auth/register", json={
        "name": "Copy", "email": "manager@example.com", "password": "longenough",
    })
    assert r.status_code == 409
    assert r.json()["error"] == "User with this email already exists"


@pytest.mark.asyncio
async def test_register_short_password_is_400(client: AsyncClient):
    r = await client.post("/api/v1/auth/register", json={
        "name": "Short", "email": "short@example.com", "password": "abc",
    })
    assert r.status_code == 400
    body = r.json()
    assert body["error"].startswith("password:")
    assert body["details"][0]["loc"][-1] == "password"


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, seed):
    r = await client.post("/api/v1/auth/login", json={"email": "manager@example.com", "password": "nope"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid credentials"}


@pytest.mark.asyncio
async def test_login_unknown_user(client: AsyncClient, seed):
    r = await client.post("/api/v1/auth/login", json={"email": "ghost@example.com", "password": "whatever"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_requires_session(client: AsyncClient):
    r = await client.get("/api/v1/auth/me")
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}


@pytest.mark.asyncio
async def test_me_lists_memberships_with_permissions(manager_client: AsyncClient, seed):
    r = await manager_client.get("/api/v1/auth/me")
    assert r.status_code == 200
    data = r.json()
    assert data["email"] == "manager@example.com"
    assert data["last_login_at"] is not None
    assert len(data["memberships"]) == 1
    m = data["memberships"][0]
    assert m["organization_id"] == seed.org_id
    assert m["organization_slug"] == "acme"
    assert m["role"] == "Compliance Manager"
    assert "frameworks:create" in m["permissions"]


@pytest.mark.asyncio
async def test_logout_clears_session(manager_client: AsyncClient):
    r = await manager_client.post("/api/v1/auth/logout")
    assert r.status_code == 200
    assert r.json() == {"status": "logged_out"}
    r = await manager_client.get("/api/v1/auth/me")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_deactivated_user_cannot_log_in(admin_client: AsyncClient, client: AsyncClient, seed):
    r = await admin_client.put(f"/api/v1/users/{seed.viewer_id}/role", json={"is_active": False})
    assert r.status_code == 200
    assert r.json()["is_active"] is False

    r = await client.post("/api/v1/auth/login", json={"email": "viewer@example.com", "password": "Secret123!"})
    assert r.status_code == 401
