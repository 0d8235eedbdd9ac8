"""Compliance catalogue — framework CRUD, statistics and YAML / Excel import."""
import io

import pytest
from httpx import AsyncClient
from openpyxl import Workbook
from sqlalchemy import func, select

from compliancehub.models.compliance import ComplianceAssessment

BASE = "/api/v1/compliance/frameworks"

YAML_FRAMEWORK = b"""
framework:
  name: NIST CSF
  version: "2.0"
  description: Cybersecurity Framework
  certification_body: NIST
  industry_tags: [government, critical-infrastructure]
topics:
  - name: Identify
    components:
      - name: Asset Management
        clauses:
          - clause_id: ID.AM-01
            title: Hardware inventory
            description: Inventories of hardware are maintained.
            risk_level: high
          - clause_id: ID.AM-02
            title: Software inventory
  - name: Protect
    components:
      - name: Identity Management
        clauses:
          - clause_id: PR.AA-01
            title: Identities are managed
            description: Identities and credentials are managed.
"""


def _xlsx(meta: dict, rows: list[list]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "framework"
    for k, v in meta.items():
        ws.append([k, v])
    clauses = wb.create_sheet("clauses")
    clauses.append(["Topic", "Component", "Clause ID", "Title", "Description", "Risk Level"])
    for row in rows:
        clauses.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


# ═══════════════════ LIST / DETAIL ═══════════════════

@pytest.mark.asyncio
async def test_list_frameworks_with_statistics(manager_client: AsyncClient, catalog):
    r = await manager_client.get(BASE)
    assert r.status_code == 200
    data = r.json()
    assert [f["name"] for f in data["frameworks"]] == ["ISO 27001", "SOC 2"]
    iso = data["frameworks"][0]
    assert iso["topic_count"] == 1
    assert iso["clause_count"] == 3
    assert iso["organization_count"] == 0
    assert data["statistics"] == {
        "total_frameworks": 2,
        "active_frameworks": 2,
        "total_organizations": 2,
        "compliant_organizations": 0,
        "pending_assessments": 0,
        "overdue_items": 0,
    }


@pytest.mark.asyncio
async def test_list_requires_login(client: AsyncClient):
    r = await client.get(BASE)
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_search_and_status_filter(admin_client: AsyncClient, catalog):
    r = await admin_client.get(BASE, params={"search": "security"})
    assert [f["name"] for f in r.json()["frameworks"]] == ["ISO 27001"]

    await admin_client.put(f"{BASE}/{catalog.other_framework_id}", json={"is_active": False})
    r = await admin_client.get(BASE, params={"status": "inactive"})
    assert [f["name"] for f in r.json()["frameworks"]] == ["SOC 2"]
    assert r.json()["statistics"]["active_frameworks"] == 1

    r = await admin_client.get(BASE, params={"status": "bogus"})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_detail_contains_structure(viewer_client: AsyncClient, catalog):
    r = await viewer_client.get(f"{BASE}/{catalog.framework_id}")
    assert r.status_code == 200
    data = r.json()
    assert data["name"] == "ISO 27001"
    topic = data["topics"][0]
    assert topic["name"] == "Organizational controls"
    clauses = topic["components"][0]["clauses"]
    assert [c["clause_id"] for c in clauses] == ["A.5.1", "A.5.2", "A.5.3"]
    assert clauses[0]["risk_level"] == "HIGH"


@pytest.mark.asyncio
async def test_detail_not_found(viewer_client: AsyncClient):
    r = await viewer_client.get(f"{BASE}/9999")
    assert r.status_code == 404
    assert r.json() == {"error": "Framework not found"}


# ═══════════════════ CREATE / UPDATE / DELETE ═══════════════════

@pytest.mark.asyncio
async def test_create_framework(admin_client: AsyncClient):
    r = await admin_client.post(BASE, json={
        "name": "  PCI DSS ", "version": "4.0", "industry_tags": ["payments"],
    })
    assert r.status_code == 201
    data = r.json()
    assert data["name"] == "PCI DSS"
    assert data["is_active"] is True
    assert data["topic_count"] == 0


@pytest.mark.asyncio
async def test_create_requires_platform_admin(manager_client: AsyncClient):
    r = await manager_client.post(BASE, json={"name": "Mine", "version": "1"})
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_duplicate_name_and_version(admin_client: AsyncClient, catalog):
    r = await admin_client.post(BASE, json={"name": "ISO 27001", "version": "2022"})
    assert r.status_code == 409
    assert r.json()["error"] == "Framework with this name and version already exists"

    r = await admin_client.post(BASE, json={"name": "ISO 27001", "version": "2013"})
    assert r.status_code == 201

    r = await admin_client.put(f"{BASE}/{r.json()['id']}", json={"version": "2022"})
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_delete_framework_removes_tree(admin_client: AsyncClient, catalog):
    r = await admin_client.delete(f"{BASE}/{catalog.framework_id}")
    assert r.status_code == 200
    assert r.json() == {"status": "deleted", "id": catalog.framework_id}

    r = await admin_client.get(f"/api/v1/compliance/clauses/{catalog.clause_ids[0]}")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_delete_framework_in_use_blocked(admin_client: AsyncClient, seed, catalog):
    r = await admin_client.post("/api/v1/compliance/selections", json={
        "organization_id": seed.org_id, "framework_id": catalog.framework_id,
    })
    assert r.status_code == 201

    r = await admin_client.delete(f"{BASE}/{catalog.framework_id}")
    assert r.status_code == 400
    assert "1 organizations" in r.json()["error"]


@pytest.mark.asyncio
async def test_delete_framework_takes_clause_data_along(admin_client: AsyncClient, manager_client: AsyncClient,
                                                        seed, catalog, db):
    clause = catalog.clause_ids[0]
    r = await manager_client.post("/api/v1/compliance/evidence", json={
        "organization_id": seed.org_id, "clause_id": clause, "file_name": "policy.pdf",
        "file_path": "uploads/policy.pdf", "file_size": 2048, "mime_type": "application/pdf",
    })
    assert r.status_code == 201, r.text
    sub_id = r.json()["id"]
    r = await manager_client.post("/api/v1/compliance/assessments", json={
        "organization_id": seed.org_id, "clause_id": clause, "assessment_type": "INITIAL",
    })
    assert r.status_code == 201, r.text

    fw = (await manager_client.post("/api/v1/frameworks", json={
        "organization_id": seed.org_id, "name": "Internal policy set", "type": "CUSTOM",
    })).json()
    mappings = f"/api/v1/frameworks/{fw['id']}/mappings"
    await manager_client.post(mappings, json={"compliance_clause_id": clause})
    await manager_client.post(mappings, json={"compliance_clause_id": clause, "external_ref": "ISO A.5.1"})

    r = await admin_client.delete(f"{BASE}/{catalog.framework_id}")
    assert r.status_code == 200

    assert (await manager_client.get(f"/api/v1/compliance/evidence/{sub_id}")).status_code == 404
    remaining = (await db.execute(
        select(func.count()).select_from(ComplianceAssessment).where(ComplianceAssessment.clause_id == clause)
    )).scalar()
    assert remaining == 0
    r = await manager_client.get(mappings)
    assert [(m["compliance_clause_id"], m["external_ref"]) for m in r.json()] == [(None, "ISO A.5.1")]


@pytest.mark.asyncio
async def test_delete_clause_drops_assessments(admin_client: AsyncClient, manager_client: AsyncClient,
                                               seed, catalog, db):
    clause = catalog.clause_ids[2]
    r = await manager_client.post("/api/v1/compliance/assessments", json={
        "organization_id": seed.org_id, "clause_id": clause, "assessment_type": "PERIODIC",
    })
    assert r.status_code == 201, r.text

    r = await admin_client.delete(f"/api/v1/compliance/clauses/{clause}")
    assert r.status_code == 200
    remaining = (await db.execute(
        select(func.count()).select_from(ComplianceAssessment).where(ComplianceAssessment.clause_id == clause)
    )).scalar()
    assert remaining == 0


# ═══════════════════ IMPORT ═══════════════════

@pytest.mark.asyncio
async def test_import_yaml(admin_client: AsyncClient):
    files = {"file": ("nist.yaml", io.BytesIO(YAML_FRAMEWORK), "application/x-yaml")}
    r = await admin_client.post(f"{BASE}/import", files=files)
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["name"] == "NIST CSF"
    assert data["version"] == "2.0"
    assert (data["topics"], data["components"], data["clauses"]) == (2, 2, 3)

    detail = (await admin_client.get(f"{BASE}/{data['framework_id']}")).json()
    assert detail["industry_tags"] == ["government", "critical-infrastructure"]
    assert [t["name"] for t in detail["topics"]] == ["Identify", "Protect"]
    hw, sw = detail["topics"][0]["components"][0]["clauses"]
    assert hw["risk_level"] == "HIGH"
    assert sw["risk_level"] == "MEDIUM"
    assert sw["description"] == "Software inventory"


@pytest.mark.asyncio
async def test_import_yaml_twice_conflicts(admin_client: AsyncClient):
    files = {"file": ("nist.yml", io.BytesIO(YAML_FRAMEWORK), "application/x-yaml")}
    assert (await admin_client.post(f"{BASE}/import", files=files)).status_code == 201
    files = {"file": ("nist.yml", io.BytesIO(YAML_FRAMEWORK), "application/x-yaml")}
    r = await admin_client.post(f"{BASE}/import", files=files)
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_import_excel(admin_client: AsyncClient):
    content = _xlsx(
        {"name": "CIS Controls", "version": "8", "industry_tags": "security, it"},
        [
            ["Basic", "Inventory", "1.1", "Enterprise asset inventory", "Maintain an inventory.", "HIGH"],
            ["Basic", "Inventory", "1.2", "Address unauthorized assets", None, None],
            ["Basic", "Software", "2.1", "Software inventory", "Maintain software list.", "low"],
            [None, None, None, None, None, None],
        ],
    )
    files = {"file": ("cis.xlsx", io.BytesIO(content), "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")}
    r = await admin_client.post(f"{BASE}/import", files=files)
    assert r.status_code == 201, r.text
    data = r.json()
    assert (data["topics"], data["components"], data["clauses"]) == (1, 2, 3)

    detail = (await admin_client.get(f"{BASE}/{data['framework_id']}")).json()
    assert detail["industry_tags"] == ["security", "it"]


@pytest.mark.asyncio
async def test_import_excel_missing_clauses_sheet(admin_client: AsyncClient):
    wb = Workbook()
    wb.active.title = "framework"
    wb.active.append(["name", "Empty"])
    wb.active.append(["version", "1"])
    buf = io.BytesIO()
    wb.save(buf)
    files = {"file": ("empty.xlsx", io.BytesIO(buf.getvalue()), "application/octet-stream")}
    r = await admin_client.post(f"{BASE}/import", files=files)
    assert r.status_code == 400
    assert r.json()["error"] == "Missing 'clauses' sheet"


@pytest.mark.asyncio
async def test_import_rejects_unknown_extension(admin_client: AsyncClient):
    files = {"file": ("fw.json", io.BytesIO(b"{}"), "application/json")}
    r = await admin_client.post(f"{BASE}/import", files=files)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_import_yaml_requires_version(admin_client: AsyncClient):
    files = {"file": ("bad.yaml", io.BytesIO(b"framework:\n  name: Nameless\n"), "application/x-yaml")}
    r = await admin_client.post(f"{BASE}/import", files=files)
    assert r.status_code == 400
    assert r.json()["error"] == "Framework name and version are required"


@pytest.mark.asyncio
async def test_import_yaml_duplicate_clause_in_component(admin_client: AsyncClient):
    doc = b"""
framework: {name: Dup, version: "1"}
topics:
  - name: T
    components:
      - name: C
        clauses:
          - {clause_id: "1", title: One}
          - {clause_id: "1", title: Again}
"""
    files = {"file": ("dup.yaml", io.BytesIO(doc), "application/x-yaml")}
    r = await admin_client.post(f"{BASE}/import", files=files)
    assert r.status_code == 400
    assert "Duplicate clause ID" in r.json()["error"]

    r = await admin_client.get(BASE)
    assert r.json()["frameworks"] == []
