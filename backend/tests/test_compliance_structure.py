"""Compliance catalogue structure — topics, components, clauses."""
import pytest
from httpx import AsyncClient

BASE = "/api/v1/compliance"


@pytest.mark.asyncio
async def test_structure_tree(viewer_client: AsyncClient, catalog):
    r = await viewer_client.get(f"{BASE}/frameworks/{catalog.framework_id}/structure")
    assert r.status_code == 200
    tree = r.json()
    assert len(tree) == 1
    assert tree[0]["components"][0]["name"] == "Policies"
    assert len(tree[0]["components"][0]["clauses"]) == 3


@pytest.mark.asyncio
async def test_structure_unknown_framework(viewer_client: AsyncClient):
    r = await viewer_client.get(f"{BASE}/frameworks/404/structure")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_build_tree_in_order(admin_client: AsyncClient):
    fw = (await admin_client.post(f"{BASE}/frameworks", json={"name": "Custom", "version": "1"})).json()

    t1 = await admin_client.post(f"{BASE}/frameworks/{fw['id']}/topics", json={"name": " Governance "})
    t2 = await admin_client.post(f"{BASE}/frameworks/{fw['id']}/topics", json={"name": "Operations"})
    assert t1.status_code == 201
    assert t1.json()["name"] == "Governance"
    assert (t1.json()["order_index"], t2.json()["order_index"]) == (0, 1)

    comp = await admin_client.post(f"{BASE}/topics/{t1.json()['id']}/components", json={"name": "Policy"})
    assert comp.status_code == 201
    assert comp.json()["order_index"] == 0

    cl = await admin_client.post(f"{BASE}/components/{comp.json()['id']}/clauses", json={
        "clause_id": "G-1", "title": "Policy exists", "description": "A policy is approved.", "risk_level": "CRITICAL",
    })
    assert cl.status_code == 201
    assert cl.json()["risk_level"] == "CRITICAL"

    r = await admin_client.get(f"{BASE}/components/{comp.json()['id']}")
    assert [c["clause_id"] for c in r.json()["clauses"]] == ["G-1"]

    r = await admin_client.get(f"{BASE}/frameworks")
    custom = next(f for f in r.json()["frameworks"] if f["name"] == "Custom")
    assert (custom["topic_count"], custom["clause_count"]) == (2, 1)


@pytest.mark.asyncio
async def test_topic_update_and_delete(admin_client: AsyncClient, catalog):
    r = await admin_client.put(f"{BASE}/topics/{catalog.topic_id}", json={"name": "Org controls", "order_index": 3})
    assert r.status_code == 200
    assert r.json()["name"] == "Org controls"
    assert r.json()["order_index"] == 3

    r = await admin_client.delete(f"{BASE}/topics/{catalog.topic_id}")
    assert r.status_code == 400
    assert r.json()["error"] == "Cannot delete topic. It has 1 components."


@pytest.mark.asyncio
async def test_component_with_clauses_cannot_be_deleted(admin_client: AsyncClient, catalog):
    r = await admin_client.delete(f"{BASE}/components/{catalog.component_id}")
    assert r.status_code == 400
    assert r.json()["error"] == "Cannot delete component. It has 3 clauses."


@pytest.mark.asyncio
async def test_delete_empty_component_and_topic(admin_client: AsyncClient, catalog):
    topic = (await admin_client.post(
        f"{BASE}/frameworks/{catalog.framework_id}/topics", json={"name": "Physical"},
    )).json()
    comp = (await admin_client.post(f"{BASE}/topics/{topic['id']}/components", json={"name": "Perimeter"})).json()

    assert (await admin_client.delete(f"{BASE}/components/{comp['id']}")).status_code == 200
    r = await admin_client.delete(f"{BASE}/topics/{topic['id']}")
    assert r.status_code == 200
    assert r.json() == {"status": "deleted", "id": topic["id"]}


@pytest.mark.asyncio
async def test_duplicate_clause_id_in_component(admin_client: AsyncClient, catalog):
    r = await admin_client.post(f"{BASE}/components/{catalog.component_id}/clauses", json={
        "clause_id": "A.5.1", "title": "Copy", "description": "Copy",
    })
    assert r.status_code == 409
    assert r.json()["error"] == "Clause ID already exists in this component"

    r = await admin_client.put(f"{BASE}/clauses/{catalog.clause_ids[1]}", json={"clause_id": "A.5.1"})
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_update_clause(admin_client: AsyncClient, catalog):
    r = await admin_client.put(f"{BASE}/clauses/{catalog.clause_ids[2]}", json={
        "title": "Duties are segregated", "risk_level": "MEDIUM", "testing_procedures": "Inspect RACI.",
    })
    assert r.status_code == 200
    data = r.json()
    assert data["title"] == "Duties are segregated"
    assert data["risk_level"] == "MEDIUM"
    assert data["clause_id"] == "A.5.3"

    r = await admin_client.put(f"{BASE}/clauses/{catalog.clause_ids[2]}", json={"risk_level": "EXTREME"})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_referenced_clause_cannot_be_deleted(admin_client: AsyncClient, seed, catalog):
    clause_id = catalog.clause_ids[0]
    r = await admin_client.post(f"{BASE}/selections", json={
        "organization_id": seed.org_id, "framework_id": catalog.framework_id, "clause_ids": [clause_id],
    })
    assert r.status_code == 201

    r = await admin_client.delete(f"{BASE}/clauses/{clause_id}")
    assert r.status_code == 400
    assert "1 selections" in r.json()["error"]

    r = await admin_client.delete(f"{BASE}/clauses/{catalog.clause_ids[2]}")
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_structure_writes_require_platform_admin(manager_client: AsyncClient, catalog):
    r = await manager_client.post(f"{BASE}/frameworks/{catalog.framework_id}/topics", json={"name": "Nope"})
    assert r.status_code == 403
    r = await manager_client.put(f"{BASE}/clauses/{catalog.clause_ids[0]}", json={"title": "Nope"})
    assert r.status_code == 403
