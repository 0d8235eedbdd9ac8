"""
Evidence register, control links and file versions — /api/v1/evidence
"""
import hashlib
import logging
import os
import uuid
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.config import settings
from compliancehub.database import get_session
from compliancehub.middleware.audit import audit_log
from compliancehub.middleware.auth import get_current_user, require_permission
from compliancehub.models.evidence import ControlEvidenceLink, Evidence, EvidenceVersion
from compliancehub.models.framework import Control
from compliancehub.models.user import User
from compliancehub.schemas.common import Pagination
from compliancehub.schemas.evidence import (
    ControlLinkCreate,
    ControlLinkOut,
    EvidenceCreate,
    EvidenceOut,
    EvidencePage,
    EvidenceUpdate,
    EvidenceVersionOut,
)
from compliancehub.services.task_automation import detach_tasks

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/evidence", tags=["Evidence"])

EXPIRING_SOON_DAYS = 30


async def _evidence_out(s: AsyncSession, ev: Evidence, now: datetime | None = None) -> EvidenceOut:
    now = now or datetime.utcnow()
    uploader = await s.get(User, ev.added_by) if ev.added_by else None
    control_count = (await s.execute(
        select(func.count()).select_from(ControlEvidenceLink).where(ControlEvidenceLink.evidence_id == ev.id)
    )).scalar() or 0
    return EvidenceOut(
        id=ev.id, organization_id=ev.organization_id, title=ev.title, description=ev.description,
        file_id=ev.file_id, url=ev.url, source=ev.source, type=ev.type, status=ev.status,
        hash=ev.hash, version=ev.version, added_by=ev.added_by,
        uploader_name=uploader.name if uploader else None,
        approved_by=ev.approved_by, approved_at=ev.approved_at, expiry_date=ev.expiry_date,
        is_expired=bool(ev.expiry_date and ev.expiry_date < now),
        tags=ev.tags or [], meta=ev.meta, control_count=control_count,
        created_at=ev.created_at, updated_at=ev.updated_at,
    )


async def _get_evidence(s: AsyncSession, user: User, ev_id: int, action: str) -> Evidence:
    ev = await s.get(Evidence, ev_id)
    if not ev:
        raise HTTPException(404, "Evidence not found")
    await require_permission(s, user, ev.organization_id, "evidence", action)
    return ev


def _ensure_unlocked(ev: Evidence) -> None:
    if ev.status == "LOCKED":
        raise HTTPException(403, "Cannot modify this evidence")


# ═══════════════════ LIST ═══════════════════

@router.get("", response_model=EvidencePage, summary="Evidence of an organization")
async def list_evidence(
    organization_id: int = Query(...),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    search: str | None = Query(None),
    status: str | None = Query(None),
    type: str | None = Query(None),
    uploaded_by: int | None = Query(None),
    expiring_soon: bool = Query(False),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_permission(s, user, organization_id, "evidence", "read")
    now = datetime.utcnow()
    q = select(Evidence).where(Evidence.organization_id == organization_id)
    if search:
        pattern = f"%{search.lower()}%"
        q = q.where(or_(
            func.lower(Evidence.title).like(pattern),
            func.lower(Evidence.description).like(pattern),
            func.lower(Evidence.source).like(pattern),
        ))
    if status:
        q = q.where(Evidence.status == status.upper())
    if type:
        q = q.where(Evidence.type == type.upper())
    if uploaded_by is not None:
        q = q.where(Evidence.added_by == uploaded_by)
    if expiring_soon:
        q = q.where(Evidence.expiry_date >= now, Evidence.expiry_date <= now + timedelta(days=EXPIRING_SOON_DAYS))

    total = (await s.execute(select(func.count()).select_from(q.subquery()))).scalar() or 0
    q = q.order_by(Evidence.created_at.desc(), Evidence.id.desc()).offset((page - 1) * limit).limit(limit)
    items = (await s.execute(q)).scalars().all()
    return EvidencePage(
        evidence=[await _evidence_out(s, ev, now) for ev in items],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/{ev_id}", response_model=EvidenceOut, summary="Evidence details")
async def get_evidence(ev_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    return await _evidence_out(s, await _get_evidence(s, user, ev_id, "read"))


# ═══════════════════ CREATE / UPDATE / DELETE ═══════════════════

@router.post("", response_model=EvidenceOut, status_code=201, summary="Register evidence")
async def create_evidence(body: EvidenceCreate, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    await require_permission(s, user, body.organization_id, "evidence", "create")
    if not body.file_id and not body.url:
        raise HTTPException(400, "Either file_id or url must be provided")
    if body.status == "APPROVED":
        await require_permission(s, user, body.organization_id, "approvals", "approve")
    ev = Evidence(**body.model_dump(), added_by=user.id)
    if ev.status == "APPROVED":
        ev.approved_by = user.id
        ev.approved_at = datetime.utcnow()
    s.add(ev)
    await s.commit()
    await s.refresh(ev)
    return await _evidence_out(s, ev)


@router.put("/{ev_id}", response_model=EvidenceOut, summary="Update evidence")
async def update_evidence(
    ev_id: int,
    body: EvidenceUpdate,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    ev = await _get_evidence(s, user, ev_id, "update")
    _ensure_unlocked(ev)
    changes = body.model_dump(exclude_unset=True)
    if "url" in changes and not changes["url"] and not ev.file_id:
        raise HTTPException(400, "Either file_id or url must be provided")
    new_status = changes.get("status")
    if new_status == "APPROVED" and ev.status != "APPROVED":
        await require_permission(s, user, ev.organization_id, "approvals", "approve")
        ev.approved_by = user.id
        ev.approved_at = datetime.utcnow()
        await audit_log(
            s, module="evidence", action="approve", entity_type="evidence", entity_id=ev.id,
            changes={"status": (ev.status, "APPROVED")}, user_id=user.id,
        )
    for k, v in changes.items():
        setattr(ev, k, v)
    await s.commit()
    await s.refresh(ev)
    return await _evidence_out(s, ev)


@router.delete("/{ev_id}", summary="Delete evidence")
async def delete_evidence(ev_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    ev = await _get_evidence(s, user, ev_id, "delete")
    _ensure_unlocked(ev)
    for model, col in ((ControlEvidenceLink, ControlEvidenceLink.evidence_id), (EvidenceVersion, EvidenceVersion.evidence_id)):
        rows = (await s.execute(select(model).where(col == ev_id))).scalars().all()
        for row in rows:
            await s.delete(row)
    await detach_tasks(s, evidence_id=ev_id)
    await s.delete(ev)
    await s.commit()
    return {"status": "deleted", "id": ev_id}


# ═══════════════════ CONTROL LINKS ═══════════════════

@router.post("/{ev_id}/link-control", response_model=ControlLinkOut, status_code=201, summary="Link evidence to a control")
async def link_control(
    ev_id: int,
    body: ControlLinkCreate,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    ev = await _get_evidence(s, user, ev_id, "update")
    control = await s.get(Control, body.control_id)
    if not control or control.organization_id != ev.organization_id:
        raise HTTPException(404, "Control not found or access denied")
    existing = (await s.execute(
        select(ControlEvidenceLink.id).where(
            ControlEvidenceLink.control_id == body.control_id, ControlEvidenceLink.evidence_id == ev_id,
        )
    )).first()
    if existing:
        raise HTTPException(409, "Evidence is already linked to this control")
    link = ControlEvidenceLink(evidence_id=ev_id, created_by=user.id, **body.model_dump())
    s.add(link)
    await s.commit()
    await s.refresh(link)
    return link


@router.delete("/{ev_id}/link-control", summary="Unlink evidence from a control")
async def unlink_control(
    ev_id: int,
    control_id: int = Query(...),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await _get_evidence(s, user, ev_id, "update")
    link = (await s.execute(
        select(ControlEvidenceLink).where(
            ControlEvidenceLink.control_id == control_id, ControlEvidenceLink.evidence_id == ev_id,
        )
    )).scalar_one_or_none()
    if not link:
        raise HTTPException(404, "Link not found")
    await s.delete(link)
    await s.commit()
    return {"status": "deleted", "id": link.id}


# ═══════════════════ VERSIONS ═══════════════════

@router.get("/{ev_id}/versions", response_model=list[EvidenceVersionOut], summary="Evidence file versions")
async def list_versions(ev_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    await _get_evidence(s, user, ev_id, "read")
    q = select(EvidenceVersion).where(EvidenceVersion.evidence_id == ev_id).order_by(EvidenceVersion.version.desc())
    return (await s.execute(q)).scalars().all()


@router.post("/{ev_id}/versions", response_model=EvidenceVersionOut, status_code=201, summary="Upload new evidence version")
async def upload_version(
    ev_id: int,
    file: UploadFile = File(...),
    change_summary: str | None = Form(None),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    ev = await _get_evidence(s, user, ev_id, "update")
    _ensure_unlocked(ev)

    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(400, f"File too large. Maximum size is {settings.MAX_UPLOAD_MB}MB")
    if not content:
        raise HTTPException(400, "Uploaded file is empty")
    digest = hashlib.sha256(content).hexdigest()

    upload_dir = os.path.join(settings.UPLOAD_DIR, "evidence")
    os.makedirs(upload_dir, exist_ok=True)
    ext = os.path.splitext(file.filename or "file")[1]
    stored_name = f"{ev_id}_{uuid.uuid4().hex}{ext}"
    with open(os.path.join(upload_dir, stored_name), "wb") as f:
        f.write(content)

    current = (await s.execute(
        select(func.max(EvidenceVersion.version)).where(EvidenceVersion.evidence_id == ev_id)
    )).scalar() or 0
    version = EvidenceVersion(
        evidence_id=ev_id,
        version=current + 1,
        file_id=f"evidence/{stored_name}",
        original_name=file.filename or "file",
        file_size=len(content),
        hash=digest,
        uploaded_by=user.id,
        change_summary=change_summary,
    )
    s.add(version)
    ev.file_id = version.file_id
    ev.hash = digest
    ev.version = version.version
    await s.commit()
    await s.refresh(version)
    logger.info("Evidence %s version %d uploaded (%d bytes)", ev_id, version.version, len(content))
    return version
