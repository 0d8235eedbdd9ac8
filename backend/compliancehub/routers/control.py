"""
Controls — /api/v1/controls
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.database import get_session
from compliancehub.middleware.auth import get_current_user, require_permission
from compliancehub.models.evidence import ControlEvidenceLink, Evidence
from compliancehub.models.framework import Control, Framework, FrameworkMapping
from compliancehub.models.task import Task
from compliancehub.models.user import User
from compliancehub.schemas.common import Pagination
from compliancehub.schemas.framework import (
    ControlCreate,
    ControlDetail,
    ControlOut,
    ControlPage,
    ControlUpdate,
    LinkedEvidenceOut,
)
from compliancehub.services.task_automation import detach_tasks

router = APIRouter(prefix="/api/v1/controls", tags=["Controls"])


async def _control_out(s: AsyncSession, c: Control) -> ControlOut:
    fw = await s.get(Framework, c.framework_id)
    owner = await s.get(User, c.owner_id) if c.owner_id else None
    evidence_count = (await s.execute(
        select(func.count()).select_from(ControlEvidenceLink).where(ControlEvidenceLink.control_id == c.id)
    )).scalar() or 0
    task_count = (await s.execute(
        select(func.count()).select_from(Task).where(Task.control_id == c.id)
    )).scalar() or 0
    return ControlOut(
        id=c.id, organization_id=c.organization_id, framework_id=c.framework_id,
        framework_name=fw.name if fw else None, code=c.code, name=c.name,
        description=c.description, category=c.category, status=c.status,
        criticality=c.criticality, owner_id=c.owner_id, owner_name=owner.name if owner else None,
        next_review_date=c.next_review_date, evidence_count=evidence_count, task_count=task_count,
        created_by=c.created_by, created_at=c.created_at, updated_at=c.updated_at,
    )


async def _get_control(s: AsyncSession, user: User, control_id: int, action: str) -> Control:
    c = await s.get(Control, control_id)
    if not c:
        raise HTTPException(404, "Control not found")
    await require_permission(s, user, c.organization_id, "controls", action)
    return c


# ═══════════════════ LIST ═══════════════════

@router.get("", response_model=ControlPage, summary="Controls of an organization")
async def list_controls(
    organization_id: int = Query(...),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    search: str | None = Query(None),
    framework_id: int | None = Query(None),
    status: str | None = Query(None),
    category: str | None = Query(None),
    criticality: str | None = Query(None),
    owner_id: int | None = Query(None),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_permission(s, user, organization_id, "controls", "read")
    q = select(Control).where(Control.organization_id == organization_id)
    if search:
        pattern = f"%{search.lower()}%"
        q = q.where(or_(
            func.lower(Control.name).like(pattern),
            func.lower(Control.description).like(pattern),
            func.lower(Control.code).like(pattern),
        ))
    if framework_id is not None:
        q = q.where(Control.framework_id == framework_id)
    if status:
        q = q.where(Control.status == status.upper())
    if category:
        q = q.where(Control.category == category.upper())
    if criticality:
        q = q.where(Control.criticality == criticality.upper())
    if owner_id is not None:
        q = q.where(Control.owner_id == owner_id)

    total = (await s.execute(select(func.count()).select_from(q.subquery()))).scalar() or 0
    q = q.order_by(Control.code, Control.name).offset((page - 1) * limit).limit(limit)
    controls = (await s.execute(q)).scalars().all()
    return ControlPage(
        controls=[await _control_out(s, c) for c in controls],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/{control_id}", response_model=ControlDetail, summary="Control with linked evidence")
async def get_control(control_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    c = await _get_control(s, user, control_id, "read")
    rows = (await s.execute(
        select(ControlEvidenceLink, Evidence)
        .join(Evidence, Evidence.id == ControlEvidenceLink.evidence_id)
        .where(ControlEvidenceLink.control_id == control_id)
        .order_by(Evidence.title)
    )).all()
    out = await _control_out(s, c)
    return ControlDetail(
        **out.model_dump(),
        evidence=[
            LinkedEvidenceOut(
                link_id=link.id, evidence_id=ev.id, title=ev.title, status=ev.status,
                link_type=link.link_type, effectiveness_rating=link.effectiveness_rating,
                expiry_date=ev.expiry_date,
            )
            for link, ev in rows
        ],
    )


# ═══════════════════ CREATE / UPDATE / DELETE ═══════════════════

@router.post("", response_model=ControlOut, status_code=201, summary="Create control")
async def create_control(body: ControlCreate, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    await require_permission(s, user, body.organization_id, "controls", "create")
    fw = await s.get(Framework, body.framework_id)
    if not fw or fw.organization_id != body.organization_id:
        raise HTTPException(404, "Framework not found or access denied")
    c = Control(**body.model_dump(), created_by=user.id, updated_by=user.id)
    s.add(c)
    await s.commit()
    await s.refresh(c)
    return await _control_out(s, c)


@router.put("/{control_id}", response_model=ControlOut, summary="Update control")
async def update_control(
    control_id: int,
    body: ControlUpdate,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    c = await _get_control(s, user, control_id, "update")
    for k, v in body.model_dump(exclude_unset=True).items():
        setattr(c, k, v)
    c.updated_by = user.id
    await s.commit()
    await s.refresh(c)
    return await _control_out(s, c)


@router.delete("/{control_id}", summary="Delete control")
async def delete_control(control_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    c = await _get_control(s, user, control_id, "delete")
    links = (await s.execute(
        select(ControlEvidenceLink).where(ControlEvidenceLink.control_id == control_id)
    )).scalars().all()
    for link in links:
        await s.delete(link)
    mappings = (await s.execute(
        select(FrameworkMapping).where(FrameworkMapping.control_id == control_id)
    )).scalars().all()
    for m in mappings:
        await s.delete(m)
    await detach_tasks(s, control_id=control_id)
    await s.delete(c)
    await s.commit()
    return {"status": "deleted", "id": control_id}
