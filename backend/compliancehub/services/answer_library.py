"""
Answer library service — usage tracking, statistics, quality hints and
CSV exchange for canned questionnaire answers.
"""
from __future__ import annotations

import csv
import io
import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.models.answer_library import AnswerLibraryEntry
from compliancehub.models.user import User

logger = logging.getLogger(__name__)

CATEGORIES = (
    "ACCESS_CONTROL", "DATA_PROTECTION", "INCIDENT_RESPONSE", "NETWORK_SECURITY",
    "PHYSICAL_SECURITY", "BUSINESS_CONTINUITY", "VENDOR_MANAGEMENT",
    "COMPLIANCE_FRAMEWORK", "GENERAL_SECURITY", "CUSTOM",
)
EXPORT_HEADERS = [
    "Category", "Subcategory", "Key Phrases", "Standard Answer", "Usage Count",
    "Confidence Score", "Last Used", "Created By", "Is Active",
]
PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}
STALE_DAYS = 90


def library_ordering():
    return (
        AnswerLibraryEntry.usage_count.desc(),
        AnswerLibraryEntry.confidence_score.desc(),
        AnswerLibraryEntry.last_updated.desc(),
    )


async def record_usage(s: AsyncSession, entry: AnswerLibraryEntry) -> AnswerLibraryEntry:
    """Bump usage and confidence (capped at 100). Caller commits."""
    entry.usage_count = (entry.usage_count or 0) + 1
    entry.confidence_score = min(100, (entry.confidence_score or 0) + 1)
    entry.last_used_at = datetime.utcnow()
    await s.flush()
    return entry


async def library_stats(s: AsyncSession, organization_id: int) -> dict:
    base = AnswerLibraryEntry.organization_id == organization_id
    total = (await s.execute(select(func.count()).select_from(AnswerLibraryEntry).where(base))).scalar() or 0
    active = (await s.execute(
        select(func.count()).select_from(AnswerLibraryEntry).where(base, AnswerLibraryEntry.is_active.is_(True))
    )).scalar() or 0
    total_usage = (await s.execute(select(func.sum(AnswerLibraryEntry.usage_count)).where(base))).scalar() or 0
    avg_conf = (await s.execute(select(func.avg(AnswerLibraryEntry.confidence_score)).where(base))).scalar()

    breakdown_rows = (await s.execute(
        select(AnswerLibraryEntry.category, func.count())
        .where(base, AnswerLibraryEntry.is_active.is_(True))
        .group_by(AnswerLibraryEntry.category)
    )).all()

    most_used = (await s.execute(
        select(AnswerLibraryEntry).where(base, AnswerLibraryEntry.is_active.is_(True))
        .order_by(AnswerLibraryEntry.usage_count.desc(), AnswerLibraryEntry.id).limit(5)
    )).scalars().all()
    recently_updated = (await s.execute(
        select(AnswerLibraryEntry).where(base, AnswerLibraryEntry.is_active.is_(True))
        .order_by(AnswerLibraryEntry.last_updated.desc(), AnswerLibraryEntry.id.desc()).limit(5)
    )).scalars().all()

    return {
        "total": total,
        "active": active,
        "total_usage": int(total_usage),
        "average_confidence": round(float(avg_conf), 1) if avg_conf is not None else 0.0,
        "category_breakdown": {cat: cnt for cat, cnt in breakdown_rows},
        "most_used": most_used,
        "recently_updated": recently_updated,
    }


def entry_improvements(entry: AnswerLibraryEntry, now: datetime | None = None) -> list[dict]:
    now = now or datetime.utcnow()
    hints: list[tuple[str, str, str]] = []
    if not entry.usage_count:
        hints.append(("medium", "Never used",
                      "This entry has never been used. Consider reviewing or updating it."))
    if entry.confidence_score < 30:
        hints.append(("high", "Low confidence",
                      "Low confidence score. Consider improving the answer quality."))
    if len(entry.key_phrases or []) < 3:
        hints.append(("medium", "Few key phrases",
                      "Consider adding more key phrases to improve matching."))
    if len(entry.standard_answer or "") < 50:
        hints.append(("low", "Short answer",
                      "Answer is quite short. Consider providing more detailed information."))
    if entry.last_updated and (now - entry.last_updated).days > STALE_DAYS:
        hints.append(("medium", "Outdated",
                      f"Entry hasn't been updated in over {STALE_DAYS} days. Consider reviewing for accuracy."))
    return [
        {
            "entry_id": entry.id,
            "category": entry.category,
            "subcategory": entry.subcategory,
            "priority": priority,
            "issue": issue,
            "suggestion": suggestion,
        }
        for priority, issue, suggestion in hints
    ]


async def suggest_improvements(s: AsyncSession, organization_id: int) -> list[dict]:
    entries = (await s.execute(
        select(AnswerLibraryEntry).where(
            AnswerLibraryEntry.organization_id == organization_id,
            AnswerLibraryEntry.is_active.is_(True),
        ).order_by(*library_ordering())
    )).scalars().all()
    now = datetime.utcnow()
    items = [hint for entry in entries for hint in entry_improvements(entry, now)]
    items.sort(key=lambda h: PRIORITY_ORDER[h["priority"]])
    return items


# ═══════════════════════════════════════════════
# CSV EXCHANGE
# ═══════════════════════════════════════════════

async def export_csv(s: AsyncSession, organization_id: int) -> str:
    rows = (await s.execute(
        select(AnswerLibraryEntry, User.name)
        .outerjoin(User, User.id == AnswerLibraryEntry.created_by)
        .where(AnswerLibraryEntry.organization_id == organization_id)
        .order_by(*library_ordering())
    )).all()

    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(EXPORT_HEADERS)
    for entry, creator in rows:
        writer.writerow([
            entry.category,
            entry.subcategory or "",
            ";".join(entry.key_phrases or []),
            entry.standard_answer,
            entry.usage_count,
            entry.confidence_score,
            entry.last_used_at.isoformat() if entry.last_used_at else "",
            creator or "",
            "Yes" if entry.is_active else "No",
        ])
    return buf.getvalue()


def _header_key(name: str) -> str:
    return name.strip().lower().replace(" ", "_")


async def import_csv(s: AsyncSession, organization_id: int, csv_data: str, created_by: int | None) -> dict:
    """Create library entries from CSV rows. Caller commits."""
    reader = csv.reader(io.StringIO(csv_data.strip()))
    header = next(reader, None)
    if not header:
        raise ValueError("CSV data is empty")
    keys = [_header_key(h) for h in header]

    imported = 0
    errors: list[str] = []
    for row_no, values in enumerate(reader, 2):
        if not any(v.strip() for v in values):
            continue
        record = {keys[i]: v.strip() for i, v in enumerate(values) if i < len(keys)}
        category = record.get("category", "").upper()
        answer = record.get("standard_answer") or record.get("standardanswer")
        if not category or not answer:
            errors.append(f"Row {row_no}: Missing required fields")
            continue
        if category not in CATEGORIES:
            category = "CUSTOM"
        raw_phrases = record.get("key_phrases") or record.get("keyphrases") or ""
        phrases = [p.strip() for p in raw_phrases.split(";") if p.strip()]

        s.add(AnswerLibraryEntry(
            organization_id=organization_id,
            category=category,
            subcategory=record.get("subcategory") or None,
            key_phrases=phrases,
            standard_answer=answer,
            evidence_references=[],
            created_by=created_by,
            meta={"imported": True, "import_date": datetime.utcnow().isoformat(), "original_row": row_no},
        ))
        imported += 1

    await s.flush()
    logger.info("Imported %d answer library entries for organization %s (%d errors)",
                imported, organization_id, len(errors))
    return {"imported": imported, "errors": errors}
