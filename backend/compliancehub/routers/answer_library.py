"""
Answer library — /api/v1/answer-library
"""
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.database import get_session
from compliancehub.middleware.auth import get_current_user, require_organization_access
from compliancehub.models.answer_library import AnswerLibraryEntry
from compliancehub.models.user import User
from compliancehub.schemas.answer_library import (
    ImprovementOut,
    LibraryEntryCreate,
    LibraryEntryOut,
    LibraryEntryUpdate,
    LibraryImportRequest,
    LibraryImportResult,
    LibraryStats,
)
from compliancehub.services.answer_library import (
    export_csv,
    import_csv,
    library_ordering,
    library_stats,
    record_usage,
    suggest_improvements,
)

router = APIRouter(prefix="/api/v1/answer-library", tags=["Answer Library"])


async def _get_entry(s: AsyncSession, user: User, entry_id: int) -> AnswerLibraryEntry:
    entry = await s.get(AnswerLibraryEntry, entry_id)
    if not entry:
        raise HTTPException(404, "Library entry not found")
    await require_organization_access(s, user, entry.organization_id)
    return entry


# ═══════════════════ LIST ═══════════════════

@router.get("", response_model=list[LibraryEntryOut], summary="Library entries of an organization")
async def list_entries(
    organization_id: int = Query(...),
    category: str | None = Query(None),
    search: str | None = Query(None),
    is_active: bool | None = Query(True),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, organization_id)
    q = select(AnswerLibraryEntry).where(AnswerLibraryEntry.organization_id == organization_id)
    if category:
        q = q.where(AnswerLibraryEntry.category == category.upper())
    if is_active is not None:
        q = q.where(AnswerLibraryEntry.is_active.is_(is_active))
    if search:
        pattern = f"%{search.lower()}%"
        q = q.where(or_(
            func.lower(AnswerLibraryEntry.standard_answer).like(pattern),
            func.lower(AnswerLibraryEntry.subcategory).like(pattern),
            func.lower(cast(AnswerLibraryEntry.key_phrases, String)).like(pattern),
        ))
    q = q.order_by(*library_ordering(), AnswerLibraryEntry.id).offset(offset).limit(limit)
    return (await s.execute(q)).scalars().all()


# ═══════════════════ STATS / IMPROVEMENTS ═══════════════════

@router.get("/stats", response_model=LibraryStats, summary="Answer library statistics")
async def stats(
    organization_id: int = Query(...),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, organization_id)
    return await library_stats(s, organization_id)


@router.get("/improvements", response_model=list[ImprovementOut], summary="Quality hints for library entries")
async def improvements(
    organization_id: int = Query(...),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, organization_id)
    return await suggest_improvements(s, organization_id)


# ═══════════════════ CSV EXPORT / IMPORT ═══════════════════

@router.get("/export", summary="Export answer library (CSV)")
async def export_library(
    organization_id: int = Query(...),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, organization_id)
    content = await export_csv(s, organization_id)
    filename = f"answer_library_{datetime.utcnow():%Y%m%d}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/import", response_model=LibraryImportResult, summary="Import answer library (CSV)")
async def import_library(
    body: LibraryImportRequest,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, body.organization_id)
    try:
        result = await import_csv(s, body.organization_id, body.csv_data, created_by=user.id)
    except ValueError as e:
        await s.rollback()
        raise HTTPException(400, str(e))
    await s.commit()
    return result


# ═══════════════════ CRUD ═══════════════════

@router.post("", response_model=LibraryEntryOut, status_code=201, summary="Create library entry")
async def create_entry(
    body: LibraryEntryCreate,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, body.organization_id)
    data = body.model_dump()
    data["key_phrases"] = [p.strip() for p in data["key_phrases"] if p.strip()]
    if not data["key_phrases"]:
        raise HTTPException(400, "At least one key phrase is required")
    entry = AnswerLibraryEntry(**data, created_by=user.id)
    s.add(entry)
    await s.commit()
    await s.refresh(entry)
    return entry


@router.get("/{entry_id}", response_model=LibraryEntryOut, summary="Library entry")
async def get_entry(entry_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    return await _get_entry(s, user, entry_id)


@router.put("/{entry_id}", response_model=LibraryEntryOut, summary="Update library entry")
async def update_entry(
    entry_id: int,
    body: LibraryEntryUpdate,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    entry = await _get_entry(s, user, entry_id)
    for k, v in body.model_dump(exclude_unset=True).items():
        setattr(entry, k, v)
    entry.last_updated = datetime.utcnow()
    await s.commit()
    await s.refresh(entry)
    return entry


@router.delete("/{entry_id}", summary="Delete library entry")
async def delete_entry(entry_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    entry = await _get_entry(s, user, entry_id)
    await s.delete(entry)
    await s.commit()
    return {"status": "deleted", "id": entry_id}


@router.post("/{entry_id}/use", response_model=LibraryEntryOut, summary="Record library entry usage")
async def use_entry(entry_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    entry = await _get_entry(s, user, entry_id)
    await record_usage(s, entry)
    await s.commit()
    await s.refresh(entry)
    return entry
