"""
Compliance framework import — builds a framework catalogue
(topics → components → clauses) from a YAML or Excel file.

YAML layout:
    framework: {name, version, description, certification_body, industry_tags, ...}
    topics:
      - name: ...
        components:
          - name: ...
            clauses:
              - {clause_id, title, description, risk_level, ...}

Excel layout:
    sheet "framework": key/value rows (name, version, description, ...)
    sheet "clauses":   header row with topic, component, clause_id, title,
                       description, risk_level, implementation_guidance,
                       evidence_requirements, testing_procedures
"""
from __future__ import annotations

import logging
from typing import Any, BinaryIO

import yaml
from openpyxl import load_workbook
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.models.compliance import (
    ComplianceClause,
    ComplianceComponent,
    ComplianceFramework,
    ComplianceTopic,
)

log = logging.getLogger(__name__)

RISK_LEVELS = {"LOW", "MEDIUM", "HIGH", "CRITICAL"}
_CLAUSE_FIELDS = (
    "implementation_guidance", "evidence_requirements", "testing_procedures",
)


class DuplicateFrameworkError(ValueError):
    pass


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _tags(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [t.strip() for t in value.split(",") if t.strip()]
    return [str(t).strip() for t in value if str(t).strip()]


def _normalize_clause(raw: dict, where: str) -> dict:
    clause_id = _text(raw.get("clause_id") or raw.get("ref_id"))
    title = _text(raw.get("title") or raw.get("name"))
    description = _text(raw.get("description")) or title
    if not clause_id or not title:
        raise ValueError(f"{where}: clause_id and title are required")
    risk = (_text(raw.get("risk_level")) or "MEDIUM").upper()
    if risk not in RISK_LEVELS:
        raise ValueError(f"{where}: unknown risk level '{risk}'")
    clause = {"clause_id": clause_id, "title": title, "description": description, "risk_level": risk}
    for field in _CLAUSE_FIELDS:
        clause[field] = _text(raw.get(field))
    return clause


def _normalize_framework_meta(meta: dict) -> dict:
    name = _text(meta.get("name"))
    version = _text(meta.get("version"))
    if not name or not version:
        raise ValueError("Framework name and version are required")
    return {
        "name": name,
        "version": version,
        "description": _text(meta.get("description")),
        "certification_body": _text(meta.get("certification_body")),
        "documentation_url": _text(meta.get("documentation_url")),
        "industry_tags": _tags(meta.get("industry_tags")),
    }


# ═══════════════════════════════════════════════
# YAML PARSER
# ═══════════════════════════════════════════════

def parse_yaml(file: BinaryIO) -> dict:
    content = file.read()
    if isinstance(content, bytes):
        content = content.decode("utf-8")
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML: {e}")
    if not isinstance(data, dict):
        raise ValueError("Empty YAML file")

    framework = _normalize_framework_meta(data.get("framework") or data)
    topics = []
    for ti, raw_topic in enumerate(data.get("topics") or [], 1):
        topic_name = _text(raw_topic.get("name"))
        if not topic_name:
            raise ValueError(f"Topic #{ti}: name is required")
        components = []
        for ci, raw_comp in enumerate(raw_topic.get("components") or [], 1):
            comp_name = _text(raw_comp.get("name"))
            if not comp_name:
                raise ValueError(f"Topic '{topic_name}' component #{ci}: name is required")
            clauses = [
                _normalize_clause(raw, f"{topic_name} / {comp_name} clause #{li}")
                for li, raw in enumerate(raw_comp.get("clauses") or [], 1)
            ]
            components.append({
                "name": comp_name,
                "description": _text(raw_comp.get("description")),
                "clauses": clauses,
            })
        topics.append({
            "name": topic_name,
            "description": _text(raw_topic.get("description")),
            "components": components,
        })
    return {"framework": framework, "topics": topics}


# ═══════════════════════════════════════════════
# EXCEL PARSER
# ═══════════════════════════════════════════════

def parse_excel(file: BinaryIO) -> dict:
    try:
        wb = load_workbook(file, read_only=True, data_only=True)
    except Exception as e:
        raise ValueError(f"Cannot read Excel file: {e}")

    try:
        meta: dict[str, Any] = {}
        if "framework" in wb.sheetnames:
            for row in wb["framework"].iter_rows(min_row=1, max_col=2, values_only=True):
                if row[0] and row[1] is not None:
                    meta[str(row[0]).strip().lower().replace(" ", "_")] = row[1]
        framework = _normalize_framework_meta(meta)

        sheet_name = "clauses" if "clauses" in wb.sheetnames else None
        if sheet_name is None:
            raise ValueError("Missing 'clauses' sheet")
        ws = wb[sheet_name]
        rows = ws.iter_rows(values_only=True)
        header_row = next(rows, None)
        if not header_row:
            raise ValueError("The 'clauses' sheet is empty")
        headers = [str(c).strip().lower().replace(" ", "_") if c else "" for c in header_row]

        topics: dict[str, dict] = {}
        for ri, row in enumerate(rows, 2):
            record = {headers[i]: v for i, v in enumerate(row) if i < len(headers) and headers[i]}
            if not any(v is not None and str(v).strip() for v in record.values()):
                continue
            topic_name = _text(record.get("topic"))
            comp_name = _text(record.get("component"))
            if not topic_name or not comp_name:
                raise ValueError(f"Row {ri}: topic and component are required")
            topic = topics.setdefault(topic_name, {"name": topic_name, "description": None, "components": {}})
            comp = topic["components"].setdefault(comp_name, {"name": comp_name, "description": None, "clauses": []})
            comp["clauses"].append(_normalize_clause(record, f"Row {ri}"))
    finally:
        wb.close()

    return {
        "framework": framework,
        "topics": [
            {**t, "components": list(t["components"].values())}
            for t in topics.values()
        ],
    }


# ═══════════════════════════════════════════════
# PERSIST
# ═══════════════════════════════════════════════

async def import_framework(s: AsyncSession, data: dict) -> tuple[ComplianceFramework, dict[str, int]]:
    """Create the framework tree from parsed data. Caller commits."""
    meta = data["framework"]
    existing = (await s.execute(
        select(ComplianceFramework).where(
            ComplianceFramework.name == meta["name"],
            ComplianceFramework.version == meta["version"],
        )
    )).scalar_one_or_none()
    if existing:
        raise DuplicateFrameworkError("Framework with this name and version already exists")

    fw = ComplianceFramework(**meta)
    s.add(fw)
    await s.flush()

    counts = {"topics": 0, "components": 0, "clauses": 0}
    for ti, topic_data in enumerate(data["topics"]):
        topic = ComplianceTopic(
            framework_id=fw.id, name=topic_data["name"],
            description=topic_data["description"], order_index=ti,
        )
        s.add(topic)
        await s.flush()
        counts["topics"] += 1

        for ci, comp_data in enumerate(topic_data["components"]):
            comp = ComplianceComponent(
                topic_id=topic.id, name=comp_data["name"],
                description=comp_data["description"], order_index=ci,
            )
            s.add(comp)
            await s.flush()
            counts["components"] += 1

            seen: set[str] = set()
            for clause_data in comp_data["clauses"]:
                if clause_data["clause_id"] in seen:
                    raise ValueError(
                        f"Duplicate clause ID '{clause_data['clause_id']}' in component '{comp.name}'"
                    )
                seen.add(clause_data["clause_id"])
                s.add(ComplianceClause(component_id=comp.id, **clause_data))
                counts["clauses"] += 1

    await s.flush()
    log.info("Imported compliance framework %s %s: %s", fw.name, fw.version, counts)
    return fw, counts
