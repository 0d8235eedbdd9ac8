"""Organization frameworks, mappings and controls — CRUD and role permissions."""
import pytest
import pytest_asyncio
from httpx import AsyncClient


# ── Seed helpers ──

@pytest_asyncio.fixture
async def org_framework(manager_client: AsyncClient, seed) -> dict:
    r = await manager_client.post("/api/v1/frameworks", json={
        "organization_id": seed.org_id, "name": "SOC 2 Type II", "type": "SOC2", "version": "2017",
    })
    assert r.status_code == 201, r.text
    return r.json()


async def _control(ac: AsyncClient, org_id: int, fw_id: int, **extra) -> dict:
    payload = {
        "organization_id": org_id, "framework_id": fw_id,
        "name": "Multi-factor authentication", "category": "AUTHENTICATION", "code": "CC6.1",
    }
    payload.update(extra)
    r = await ac.post("/api/v1/controls", json=payload)
    assert r.status_code == 201, r.text
    return r.json()


# ═══════════════════ FRAMEWORKS ═══════════════════

@pytest.mark.asyncio
async def test_create_and_list_frameworks(manager_client: AsyncClient, seed, org_framework):
    assert org_framework["control_count"] == 0
    assert org_framework["type"] == "SOC2"

    r = await manager_client.get("/api/v1/frameworks", params={"organization_id": seed.org_id})
    assert r.status_code == 200
    data = r.json()
    assert [f["name"] for f in data["frameworks"]] == ["SOC 2 Type II"]
    assert data["pagination"]["total_count"] == 1
    assert data["pagination"]["has_next"] is False


@pytest.mark.asyncio
async def test_duplicate_framework_name(manager_client: AsyncClient, seed, org_framework):
    r = await manager_client.post("/api/v1/frameworks", json={
        "organization_id": seed.org_id, "name": "SOC 2 Type II", "type": "SOC2",
    })
    assert r.status_code == 409
    assert r.json()["error"] == "Framework with this name already exists"


@pytest.mark.asyncio
async def test_invalid_framework_type(manager_client: AsyncClient, seed):
    r = await manager_client.post("/api/v1/frameworks", json={
        "organization_id": seed.org_id, "name": "X", "type": "FEDRAMP",
    })
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_viewer_reads_but_cannot_write(viewer_client: AsyncClient, seed, org_framework):
    r = await viewer_client.get(f"/api/v1/frameworks/{org_framework['id']}")
    assert r.status_code == 200

    r = await viewer_client.post("/api/v1/frameworks", json={
        "organization_id": seed.org_id, "name": "HIPAA", "type": "HIPAA",
    })
    assert r.status_code == 403
    assert r.json() == {"error": "Insufficient permissions"}

    r = await viewer_client.put(f"/api/v1/frameworks/{org_framework['id']}", json={"name": "Renamed"})
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_outsider_has_no_access(outsider_client: AsyncClient, seed, org_framework):
    r = await outsider_client.get("/api/v1/frameworks", params={"organization_id": seed.org_id})
    assert r.status_code == 403
    r = await outsider_client.get(f"/api/v1/frameworks/{org_framework['id']}")
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_super_admin_bypasses_permissions(admin_client: AsyncClient, seed):
    r = await admin_client.post("/api/v1/frameworks", json={
        "organization_id": seed.org_id, "name": "GDPR", "type": "GDPR",
    })
    assert r.status_code == 201


@pytest.mark.asyncio
async def test_delete_framework_with_controls_blocked(manager_client: AsyncClient, seed, org_framework):
    await _control(manager_client, seed.org_id, org_framework["id"])
    r = await manager_client.delete(f"/api/v1/frameworks/{org_framework['id']}")
    assert r.status_code == 400
    assert r.json()["error"] == "Cannot delete framework. It has 1 controls."


@pytest.mark.asyncio
async def test_framework_mappings(manager_client: AsyncClient, seed, catalog, org_framework):
    fw_id = org_framework["id"]
    ctrl = await _control(manager_client, seed.org_id, fw_id)

    r = await manager_client.post(f"/api/v1/frameworks/{fw_id}/mappings", json={"control_id": ctrl["id"]})
    assert r.status_code == 400

    r = await manager_client.post(f"/api/v1/frameworks/{fw_id}/mappings", json={
        "control_id": ctrl["id"], "compliance_clause_id": catalog.clause_ids[0],
    })
    assert r.status_code == 201
    assert r.json()["clause_ref"] == "A.5.1"
    mapping_id = r.json()["id"]

    r = await manager_client.post(f"/api/v1/frameworks/{fw_id}/mappings", json={"external_ref": "NIST AC-2"})
    assert r.status_code == 201

    r = await manager_client.get(f"/api/v1/frameworks/{fw_id}/mappings")
    assert len(r.json()) == 2
    assert (await manager_client.get(f"/api/v1/frameworks/{fw_id}")).json()["mapping_count"] == 2

    r = await manager_client.delete(f"/api/v1/frameworks/{fw_id}/mappings/{mapping_id}")
    assert r.status_code == 200
    r = await manager_client.delete(f"/api/v1/frameworks/{fw_id}/mappings/{mapping_id}")
    assert r.status_code == 404


# ═══════════════════ CONTROLS ═══════════════════

@pytest.mark.asyncio
async def test_control_crud(manager_client: AsyncClient, seed, org_framework):
    ctrl = await _control(manager_client, seed.org_id, org_framework["id"], owner_id=seed.manager_id)
    assert ctrl["status"] == "GAP"
    assert ctrl["framework_name"] == "SOC 2 Type II"
    assert ctrl["owner_name"] == "Maria Manager"
    assert ctrl["created_by"] == seed.manager_id

    r = await manager_client.put(f"/api/v1/controls/{ctrl['id']}", json={"status": "MET"})
    assert r.status_code == 200
    assert r.json()["status"] == "MET"

    r = await manager_client.put(f"/api/v1/controls/{ctrl['id']}", json={"name": None})
    assert r.status_code == 400
    assert r.json()["error"] == "name: Value error, may not be null"

    fw = (await manager_client.get(f"/api/v1/frameworks/{org_framework['id']}")).json()
    assert fw["control_status"] == {"MET": 1}

    r = await manager_client.get(f"/api/v1/controls/{ctrl['id']}")
    assert r.json()["evidence"] == []

    r = await manager_client.delete(f"/api/v1/controls/{ctrl['id']}")
    assert r.status_code == 200
    r = await manager_client.get(f"/api/v1/controls/{ctrl['id']}")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_list_controls_filters(manager_client: AsyncClient, seed, org_framework):
    fw_id = org_framework["id"]
    await _control(manager_client, seed.org_id, fw_id)
    await _control(manager_client, seed.org_id, fw_id, name="Disk encryption", category="ENCRYPTION",
                   code="CC6.7", status="PARTIAL", criticality="HIGH")

    url = "/api/v1/controls"
    r = await manager_client.get(url, params={"organization_id": seed.org_id})
    assert [c["code"] for c in r.json()["controls"]] == ["CC6.1", "CC6.7"]

    r = await manager_client.get(url, params={"organization_id": seed.org_id, "status": "partial"})
    assert [c["name"] for c in r.json()["controls"]] == ["Disk encryption"]

    r = await manager_client.get(url, params={"organization_id": seed.org_id, "search": "multi"})
    assert r.json()["pagination"]["total_count"] == 1

    r = await manager_client.get(url, params={"organization_id": seed.org_id, "limit": 1})
    data = r.json()
    assert len(data["controls"]) == 1
    assert data["pagination"]["total_pages"] == 2
    assert data["pagination"]["has_next"] is True


@pytest.mark.asyncio
async def test_control_framework_must_belong_to_org(admin_client: AsyncClient, manager_client: AsyncClient, seed, org_framework):
    r = await admin_client.post("/api/v1/frameworks", json={
        "organization_id": seed.other_org_id, "name": "Globex ISO", "type": "ISO27001",
    })
    foreign_fw = r.json()["id"]
    r = await manager_client.post("/api/v1/controls", json={
        "organization_id": seed.org_id, "framework_id": foreign_fw, "name": "X", "category": "OTHER",
    })
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_viewer_cannot_create_control(viewer_client: AsyncClient, seed, org_framework):
    r = await viewer_client.post("/api/v1/controls", json={
        "organization_id": seed.org_id, "framework_id": org_framework["id"], "name": "X", "category": "OTHER",
    })
    assert r.status_code == 403
