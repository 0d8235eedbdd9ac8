"""Audit trail — automatic change capture, explicit approvals, admin-only viewer."""
import io

import pytest
from httpx import AsyncClient

BASE = "/api/v1/audit-log"


async def _evidence(ac: AsyncClient, org_id: int) -> dict:
    r = await ac.post("/api/v1/evidence", json={
        "organization_id": org_id, "title": "Access review", "type": "REPORT", "url": "https://docs.example.com/r",
    })
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_viewer_requires_platform_admin(manager_client: AsyncClient, client: AsyncClient, seed):
    r = await manager_client.get(BASE)
    assert r.status_code == 403
    assert r.json()["error"] == "Forbidden"
    r = await client.get(BASE)
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_create_is_captured(admin_client: AsyncClient, manager_client: AsyncClient, seed):
    ev = await _evidence(manager_client, seed.org_id)

    r = await admin_client.get(BASE, params={"module": "evidence", "action": "create", "entity_id": ev["id"]})
    assert r.status_code == 200
    data = r.json()
    assert data["pagination"]["total_count"] == 1
    entry = data["entries"][0]
    assert entry["entity_type"] == "evidence"
    assert entry["user_id"] == seed.manager_id
    assert entry["user_name"] == "Maria Manager"


@pytest.mark.asyncio
async def test_field_updates_are_captured(admin_client: AsyncClient, manager_client: AsyncClient, seed):
    ev = await _evidence(manager_client, seed.org_id)
    await manager_client.put(f"/api/v1/evidence/{ev['id']}", json={"title": "Quarterly access review"})

    r = await admin_client.get(BASE, params={"entity_type": "evidence", "action": "update", "entity_id": ev["id"]})
    items = r.json()["entries"]
    assert [(i["field_name"], i["old_value"], i["new_value"]) for i in items] == [
        ("title", "Access review", "Quarterly access review"),
    ]


@pytest.mark.asyncio
async def test_evidence_approval_recorded(admin_client: AsyncClient, manager_client: AsyncClient, seed):
    ev = await _evidence(manager_client, seed.org_id)
    r = await manager_client.put(f"/api/v1/evidence/{ev['id']}", json={"status": "APPROVED"})
    assert r.status_code == 200

    r = await admin_client.get(BASE, params={"module": "evidence", "action": "approve"})
    data = r.json()
    assert data["pagination"]["total_count"] == 1
    entry = data["entries"][0]
    assert entry["entity_id"] == ev["id"]
    assert entry["field_name"] == "status"
    assert (entry["old_value"], entry["new_value"]) == ("DRAFT", "APPROVED")
    assert entry["user_id"] == seed.manager_id


@pytest.mark.asyncio
async def test_answer_review_recorded(admin_client: AsyncClient, manager_client: AsyncClient, seed):
    files = {"file": ("q.txt", io.BytesIO(b"Vendor review\nDo you have a security policy?\n"), "text/plain")}
    r = await manager_client.post("/api/v1/questionnaires/upload", files=files,
                                  data={"organization_id": str(seed.org_id)})
    qn = r.json()
    question = qn["questions"][0]
    answer = (await manager_client.post(f"/api/v1/questionnaires/{qn['id']}/questions/{question['id']}/answer",
                                        json={"draft_text": "Yes"})).json()
    base = f"/api/v1/questionnaires/{qn['id']}/answers/{answer['id']}"
    await manager_client.post(f"{base}/submit", json={})
    await manager_client.post(f"{base}/review", json={"decision": "REJECTED", "rejection_reason": "Expand"})

    r = await admin_client.get(BASE, params={"module": "questionnaires", "entity_type": "answers", "action": "review"})
    data = r.json()
    assert data["pagination"]["total_count"] == 1
    assert data["entries"][0]["new_value"] == "REJECTED"


@pytest.mark.asyncio
async def test_questionnaire_delete_records_children(admin_client: AsyncClient, manager_client: AsyncClient, seed):
    text = b"Vendor review\nDo you have a security policy?\nDo you encrypt backups?\n"
    files = {"file": ("q.txt", io.BytesIO(text), "text/plain")}
    qn = (await manager_client.post("/api/v1/questionnaires/upload", files=files,
                                    data={"organization_id": str(seed.org_id)})).json()
    question = qn["questions"][0]
    answer = (await manager_client.post(f"/api/v1/questionnaires/{qn['id']}/questions/{question['id']}/answer",
                                        json={"draft_text": "Yes"})).json()
    r = await manager_client.delete(f"/api/v1/questionnaires/{qn['id']}")
    assert r.status_code == 200

    r = await admin_client.get(BASE, params={"module": "questionnaires", "action": "delete", "limit": 200})
    deleted = sorted((e["entity_type"], e["entity_id"]) for e in r.json()["entries"])
    assert deleted == sorted([
        ("answers", answer["id"]),
        ("questionnaires", qn["id"]),
        *(("questions", q["id"]) for q in qn["questions"]),
    ])


@pytest.mark.asyncio
async def test_pagination(admin_client: AsyncClient, manager_client: AsyncClient, seed):
    for _ in range(3):
        await _evidence(manager_client, seed.org_id)

    r = await admin_client.get(BASE, params={"module": "evidence", "action": "create", "limit": 2})
    data = r.json()
    assert data["pagination"]["total_count"] == 3
    assert data["pagination"]["total_pages"] == 2
    assert len(data["entries"]) == 2
    newest_first = [i["entity_id"] for i in data["entries"]]
    assert newest_first == sorted(newest_first, reverse=True)

    r = await admin_client.get(BASE, params={"module": "evidence", "action": "create", "limit": 2, "page": 2})
    assert len(r.json()["entries"]) == 1
