"""Evidence submissions against compliance clauses — version chain and review."""
import pytest
from httpx import AsyncClient

BASE = "/api/v1/compliance/evidence"


def _payload(org_id: int, clause_id: int, name: str = "policy.pdf") -> dict:
    return {
        "organization_id": org_id, "clause_id": clause_id,
        "file_name": name, "file_path": f"uploads/{name}", "file_size": 2048,
        "mime_type": "application/pdf", "tags": ["policy"],
    }


@pytest.mark.asyncio
async def test_submissions_chain_versions(manager_client: AsyncClient, seed, catalog):
    clause = catalog.clause_ids[0]
    first = await manager_client.post(BASE, json=_payload(seed.org_id, clause, "v1.pdf"))
    assert first.status_code == 201, first.text
    assert first.json()["version"] == 1
    assert first.json()["is_latest"] is True
    assert first.json()["review_status"] == "PENDING"
    assert first.json()["submitter_name"] == "Maria Manager"

    second = await manager_client.post(BASE, json=_payload(seed.org_id, clause, "v2.pdf"))
    assert second.json()["version"] == 2

    r = await manager_client.get(f"{BASE}/{first.json()['id']}")
    assert r.json()["is_latest"] is False

    other = await manager_client.post(BASE, json=_payload(seed.org_id, catalog.clause_ids[1]))
    assert other.json()["version"] == 1


@pytest.mark.asyncio
async def test_versions_are_per_organization(manager_client: AsyncClient, outsider_client: AsyncClient, seed, catalog):
    clause = catalog.clause_ids[0]
    await manager_client.post(BASE, json=_payload(seed.org_id, clause))
    r = await outsider_client.post(BASE, json=_payload(seed.other_org_id, clause))
    assert r.status_code == 201
    assert r.json()["version"] == 1


@pytest.mark.asyncio
async def test_list_groups_and_counts(manager_client: AsyncClient, seed, catalog):
    a, b, _ = catalog.clause_ids
    s1 = (await manager_client.post(BASE, json=_payload(seed.org_id, a, "a1.pdf"))).json()
    await manager_client.post(BASE, json=_payload(seed.org_id, a, "a2.pdf"))
    await manager_client.post(BASE, json=_payload(seed.org_id, b, "b1.pdf"))
    await manager_client.put(f"{BASE}/{s1['id']}/review", json={"review_status": "REJECTED"})

    r = await manager_client.get(BASE, params={"organization_id": seed.org_id})
    assert r.status_code == 200
    data = r.json()
    assert data["statistics"] == {"total": 3, "pending": 2, "approved": 0, "rejected": 1}
    groups = data["grouped_by_clause"]
    assert [g["clause_ref"] for g in groups] == ["A.5.1", "A.5.2"]
    assert [s["version"] for s in groups[0]["submissions"]] == [2, 1]

    r = await manager_client.get(BASE, params={"organization_id": seed.org_id, "latest_only": True})
    assert r.json()["statistics"]["total"] == 2

    r = await manager_client.get(BASE, params={"organization_id": seed.org_id, "status": "rejected"})
    assert [s["file_name"] for s in r.json()["submissions"]] == ["a1.pdf"]


@pytest.mark.asyncio
async def test_review_submission(manager_client: AsyncClient, seed, catalog):
    sub = (await manager_client.post(BASE, json=_payload(seed.org_id, catalog.clause_ids[0]))).json()

    r = await manager_client.put(f"{BASE}/{sub['id']}/review", json={
        "review_status": "approved", "review_notes": "Signed by the board",
    })
    assert r.status_code == 200
    data = r.json()
    assert data["review_status"] == "APPROVED"
    assert data["reviewed_by"] == seed.manager_id
    assert data["reviewed_at"] is not None

    r = await manager_client.put(f"{BASE}/{sub['id']}/review", json={"review_status": "MAYBE"})
    assert r.status_code == 400
    assert r.json()["error"].startswith("Invalid review status")


@pytest.mark.asyncio
async def test_delete_latest_promotes_previous(manager_client: AsyncClient, seed, catalog):
    clause = catalog.clause_ids[0]
    v1 = (await manager_client.post(BASE, json=_payload(seed.org_id, clause, "v1.pdf"))).json()
    v2 = (await manager_client.post(BASE, json=_payload(seed.org_id, clause, "v2.pdf"))).json()

    r = await manager_client.delete(f"{BASE}/{v2['id']}")
    assert r.status_code == 200

    r = await manager_client.get(f"{BASE}/{v1['id']}")
    assert r.json()["is_latest"] is True

    v3 = (await manager_client.post(BASE, json=_payload(seed.org_id, clause, "v3.pdf"))).json()
    assert v3["version"] == 2


@pytest.mark.asyncio
async def test_unknown_clause_and_foreign_access(manager_client: AsyncClient, outsider_client: AsyncClient, seed, catalog):
    r = await manager_client.post(BASE, json=_payload(seed.org_id, 31337))
    assert r.status_code == 404
    assert r.json()["error"] == "Clause not found"

    sub = (await manager_client.post(BASE, json=_payload(seed.org_id, catalog.clause_ids[0]))).json()
    r = await outsider_client.get(f"{BASE}/{sub['id']}")
    assert r.status_code == 403
    r = await outsider_client.delete(f"{BASE}/{sub['id']}")
    assert r.status_code == 403
