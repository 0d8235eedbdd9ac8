"""Answer library — CRUD, usage tracking, stats, improvement hints, CSV exchange."""
import csv
import io
from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import update

from compliancehub.models.answer_library import AnswerLibraryEntry

BASE = "/api/v1/answer-library"

LONG_ANSWER = (
    "Multi-factor authentication is enforced for every workforce account and "
    "all authentication events are logged centrally."
)


async def _entry(ac: AsyncClient, org_id: int, **extra) -> dict:
    payload = {
        "organization_id": org_id, "category": "ACCESS_CONTROL", "subcategory": "Authentication",
        "key_phrases": ["mfa"], "standard_answer": "MFA everywhere.",
    }
    payload.update(extra)
    r = await ac.post(BASE, json=payload)
    assert r.status_code == 201, r.text
    return r.json()


# ═══════════════════ CRUD ═══════════════════

@pytest.mark.asyncio
async def test_create_entry(manager_client: AsyncClient, seed):
    entry = await _entry(manager_client, seed.org_id, key_phrases=[" mfa ", "", "login"])
    assert entry["key_phrases"] == ["mfa", "login"]
    assert entry["usage_count"] == 0
    assert entry["confidence_score"] == 50
    assert entry["is_active"] is True
    assert entry["created_by"] == seed.manager_id


@pytest.mark.asyncio
async def test_create_requires_key_phrase(manager_client: AsyncClient, seed):
    r = await manager_client.post(BASE, json={
        "organization_id": seed.org_id, "category": "CUSTOM", "key_phrases": ["  "], "standard_answer": "x",
    })
    assert r.status_code == 400
    assert r.json()["error"] == "At least one key phrase is required"


@pytest.mark.asyncio
async def test_create_rejects_unknown_category(manager_client: AsyncClient, seed):
    r = await manager_client.post(BASE, json={
        "organization_id": seed.org_id, "category": "MARKETING", "key_phrases": ["x"], "standard_answer": "x",
    })
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_update_and_delete(manager_client: AsyncClient, seed):
    entry = await _entry(manager_client, seed.org_id)
    r = await manager_client.put(f"{BASE}/{entry['id']}", json={"confidence_score": 90, "subcategory": "MFA"})
    assert r.status_code == 200
    assert r.json()["confidence_score"] == 90
    assert r.json()["subcategory"] == "MFA"

    r = await manager_client.put(f"{BASE}/{entry['id']}", json={"confidence_score": 101})
    assert r.status_code == 400

    r = await manager_client.delete(f"{BASE}/{entry['id']}")
    assert r.json() == {"status": "deleted", "id": entry["id"]}
    r = await manager_client.get(f"{BASE}/{entry['id']}")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_outsider_denied(outsider_client: AsyncClient, manager_client: AsyncClient, seed):
    entry = await _entry(manager_client, seed.org_id)
    r = await outsider_client.get(f"{BASE}/{entry['id']}")
    assert r.status_code == 403
    r = await outsider_client.get(BASE, params={"organization_id": seed.org_id})
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_list_filters_and_order(manager_client: AsyncClient, seed):
    await _entry(manager_client, seed.org_id, key_phrases=["firewall"], category="NETWORK_SECURITY",
                 standard_answer="Perimeter firewalls.")
    used = await _entry(manager_client, seed.org_id, key_phrases=["backup"], category="BUSINESS_CONTINUITY",
                        standard_answer="Daily backups.")
    retired = await _entry(manager_client, seed.org_id, key_phrases=["fax"])
    await manager_client.post(f"{BASE}/{used['id']}/use")
    await manager_client.put(f"{BASE}/{retired['id']}", json={"is_active": False})

    r = await manager_client.get(BASE, params={"organization_id": seed.org_id})
    assert [e["id"] for e in r.json()][0] == used["id"]
    assert len(r.json()) == 2

    r = await manager_client.get(BASE, params={"organization_id": seed.org_id, "category": "network_security"})
    assert [e["standard_answer"] for e in r.json()] == ["Perimeter firewalls."]

    r = await manager_client.get(BASE, params={"organization_id": seed.org_id, "search": "BACKUP"})
    assert [e["id"] for e in r.json()] == [used["id"]]

    r = await manager_client.get(BASE, params={"organization_id": seed.org_id, "is_active": False})
    assert [e["id"] for e in r.json()] == [retired["id"]]


# ═══════════════════ USAGE / STATS ═══════════════════

@pytest.mark.asyncio
async def test_use_bumps_usage_and_confidence(manager_client: AsyncClient, seed):
    entry = await _entry(manager_client, seed.org_id)
    await manager_client.put(f"{BASE}/{entry['id']}", json={"confidence_score": 100})

    r = await manager_client.post(f"{BASE}/{entry['id']}/use")
    assert r.status_code == 200
    data = r.json()
    assert data["usage_count"] == 1
    assert data["confidence_score"] == 100
    assert data["last_used_at"] is not None


@pytest.mark.asyncio
async def test_stats(manager_client: AsyncClient, seed):
    used = await _entry(manager_client, seed.org_id)
    await _entry(manager_client, seed.org_id, category="DATA_PROTECTION", key_phrases=["encryption"])
    retired = await _entry(manager_client, seed.org_id, category="DATA_PROTECTION", key_phrases=["tape"])
    await manager_client.put(f"{BASE}/{retired['id']}", json={"is_active": False})
    await manager_client.post(f"{BASE}/{used['id']}/use")
    await manager_client.post(f"{BASE}/{used['id']}/use")

    r = await manager_client.get(f"{BASE}/stats", params={"organization_id": seed.org_id})
    assert r.status_code == 200
    stats = r.json()
    assert stats["total"] == 3
    assert stats["active"] == 2
    assert stats["total_usage"] == 2
    assert stats["average_confidence"] == 50.7
    assert stats["category_breakdown"] == {"ACCESS_CONTROL": 1, "DATA_PROTECTION": 1}
    assert stats["most_used"][0]["id"] == used["id"]
    assert len(stats["recently_updated"]) == 2


@pytest.mark.asyncio
async def test_stats_empty_library(manager_client: AsyncClient, seed):
    r = await manager_client.get(f"{BASE}/stats", params={"organization_id": seed.org_id})
    assert r.json()["total"] == 0
    assert r.json()["average_confidence"] == 0.0


# ═══════════════════ IMPROVEMENTS ═══════════════════

@pytest.mark.asyncio
async def test_improvements(manager_client: AsyncClient, seed):
    weak = await _entry(manager_client, seed.org_id, key_phrases=["mfa", "login", "password"],
                        standard_answer=LONG_ANSWER)
    await manager_client.put(f"{BASE}/{weak['id']}", json={"confidence_score": 10})
    short = await _entry(manager_client, seed.org_id)

    r = await manager_client.get(f"{BASE}/improvements", params={"organization_id": seed.org_id})
    assert r.status_code == 200
    items = r.json()
    assert items[0] == {
        "entry_id": weak["id"], "category": "ACCESS_CONTROL", "subcategory": "Authentication",
        "priority": "high", "issue": "Low confidence",
        "suggestion": "Low confidence score. Consider improving the answer quality.",
    }
    assert [i["priority"] for i in items] == ["high", "medium", "medium", "medium", "low"]
    assert {i["issue"] for i in items if i["entry_id"] == short["id"]} == {
        "Never used", "Few key phrases", "Short answer",
    }


@pytest.mark.asyncio
async def test_improvements_flag_outdated(manager_client: AsyncClient, seed, db):
    entry = await _entry(manager_client, seed.org_id, key_phrases=["mfa", "login", "password"],
                         standard_answer=LONG_ANSWER)
    await manager_client.post(f"{BASE}/{entry['id']}/use")
    await db.execute(
        update(AnswerLibraryEntry).where(AnswerLibraryEntry.id == entry["id"])
        .values(last_updated=datetime.utcnow() - timedelta(days=120))
    )
    await db.commit()

    r = await manager_client.get(f"{BASE}/improvements", params={"organization_id": seed.org_id})
    assert [i["issue"] for i in r.json()] == ["Outdated"]


# ═══════════════════ CSV EXCHANGE ═══════════════════

@pytest.mark.asyncio
async def test_export_csv(manager_client: AsyncClient, seed):
    await _entry(manager_client, seed.org_id, key_phrases=["mfa", "2fa"])

    r = await manager_client.get(f"{BASE}/export", params={"organization_id": seed.org_id})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert "answer_library_" in r.headers["content-disposition"]

    rows = list(csv.reader(io.StringIO(r.text)))
    assert rows[0] == [
        "Category", "Subcategory", "Key Phrases", "Standard Answer", "Usage Count",
        "Confidence Score", "Last Used", "Created By", "Is Active",
    ]
    assert rows[1] == ["ACCESS_CONTROL", "Authentication", "mfa;2fa", "MFA everywhere.", "0", "50", "",
                       "Maria Manager", "Yes"]


@pytest.mark.asyncio
async def test_import_csv(manager_client: AsyncClient, seed):
    csv_data = (
        "Category,Subcategory,Key Phrases,Standard Answer\n"
        "data_protection,Encryption,encryption; at rest,Data is encrypted with AES-256.\n"
        "Marketing,,brochure,We publish a trust page.\n"
        "ACCESS_CONTROL,,mfa,\n"
    )
    r = await manager_client.post(f"{BASE}/import", json={"organization_id": seed.org_id, "csv_data": csv_data})
    assert r.status_code == 200
    assert r.json() == {"imported": 2, "errors": ["Row 4: Missing required fields"]}

    entries = (await manager_client.get(BASE, params={"organization_id": seed.org_id})).json()
    by_category = {e["category"]: e for e in entries}
    assert set(by_category) == {"DATA_PROTECTION", "CUSTOM"}
    encryption = by_category["DATA_PROTECTION"]
    assert encryption["key_phrases"] == ["encryption", "at rest"]
    assert encryption["meta"]["imported"] is True
    assert encryption["meta"]["original_row"] == 2
    assert by_category["CUSTOM"]["subcategory"] is None


@pytest.mark.asyncio
async def test_import_blank_csv(manager_client: AsyncClient, seed):
    r = await manager_client.post(f"{BASE}/import", json={"organization_id": seed.org_id, "csv_data": "  \n "})
    assert r.status_code == 400
    assert r.json()["error"] == "CSV data is empty"
