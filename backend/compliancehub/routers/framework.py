"""
Organization frameworks and their mappings — /api/v1/frameworks
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.database import get_session
from compliancehub.middleware.auth import get_current_user, require_permission
from compliancehub.models.compliance import ComplianceClause
from compliancehub.models.framework import Control, Framework, FrameworkMapping
from compliancehub.models.user import User
from compliancehub.schemas.common import Pagination
from compliancehub.schemas.framework import (
    FrameworkCreate,
    FrameworkOut,
    FrameworkPage,
    FrameworkUpdate,
    MappingCreate,
    MappingOut,
)

router = APIRouter(prefix="/api/v1/frameworks", tags=["Frameworks"])

DUPLICATE_MSG = "Framework with this name already exists"


async def _framework_out(s: AsyncSession, fw: Framework) -> FrameworkOut:
    status_rows = (await s.execute(
        select(Control.status, func.count()).where(Control.framework_id == fw.id).group_by(Control.status)
    )).all()
    control_status = {status: cnt for status, cnt in status_rows}
    mappings = (await s.execute(
        select(func.count()).select_from(FrameworkMapping).where(FrameworkMapping.framework_id == fw.id)
    )).scalar() or 0
    return FrameworkOut(
        id=fw.id, organization_id=fw.organization_id, name=fw.name, version=fw.version,
        description=fw.description, source=fw.source, type=fw.type, is_active=fw.is_active,
        control_count=sum(control_status.values()), mapping_count=mappings,
        control_status=control_status, created_at=fw.created_at, updated_at=fw.updated_at,
    )


async def _get_framework(s: AsyncSession, user: User, fw_id: int, action: str) -> Framework:
    fw = await s.get(Framework, fw_id)
    if not fw:
        raise HTTPException(404, "Framework not found")
    await require_permission(s, user, fw.organization_id, "frameworks", action)
    return fw


async def _check_name(s: AsyncSession, org_id: int, name: str, exclude_id: int | None = None) -> None:
    q = select(Framework.id).where(Framework.organization_id == org_id, Framework.name == name)
    if exclude_id is not None:
        q = q.where(Framework.id != exclude_id)
    if (await s.execute(q)).first():
        raise HTTPException(409, DUPLICATE_MSG)


async def _mapping_out(s: AsyncSession, m: FrameworkMapping) -> MappingOut:
    clause = await s.get(ComplianceClause, m.compliance_clause_id) if m.compliance_clause_id else None
    return MappingOut(
        id=m.id, framework_id=m.framework_id, control_id=m.control_id,
        compliance_clause_id=m.compliance_clause_id, clause_ref=clause.clause_id if clause else None,
        external_ref=m.external_ref, notes=m.notes, created_at=m.created_at,
    )


# ═══════════════════ LIST ═══════════════════

@router.get("", response_model=FrameworkPage, summary="Frameworks of an organization")
async def list_frameworks(
    organization_id: int = Query(...),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    search: str | None = Query(None),
    type: str | None = Query(None),
    is_active: bool | None = Query(None),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_permission(s, user, organization_id, "frameworks", "read")
    q = select(Framework).where(Framework.organization_id == organization_id)
    if search:
        pattern = f"%{search.lower()}%"
        q = q.where(or_(func.lower(Framework.name).like(pattern), func.lower(Framework.description).like(pattern)))
    if type:
        q = q.where(Framework.type == type.upper())
    if is_active is not None:
        q = q.where(Framework.is_active.is_(is_active))

    total = (await s.execute(select(func.count()).select_from(q.subquery()))).scalar() or 0
    q = q.order_by(Framework.name).offset((page - 1) * limit).limit(limit)
    frameworks = (await s.execute(q)).scalars().all()
    return FrameworkPage(
        frameworks=[await _framework_out(s, fw) for fw in frameworks],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/{fw_id}", response_model=FrameworkOut, summary="Framework details")
async def get_framework(fw_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    return await _framework_out(s, await _get_framework(s, user, fw_id, "read"))


# ═══════════════════ CREATE / UPDATE / DELETE ═══════════════════

@router.post("", response_model=FrameworkOut, status_code=201, summary="Create framework")
async def create_framework(body: FrameworkCreate, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    await require_permission(s, user, body.organization_id, "frameworks", "create")
    data = body.model_dump()
    data["name"] = data["name"].strip()
    await _check_name(s, body.organization_id, data["name"])
    fw = Framework(**data)
    s.add(fw)
    await s.commit()
    await s.refresh(fw)
    return await _framework_out(s, fw)


@router.put("/{fw_id}", response_model=FrameworkOut, summary="Update framework")
async def update_framework(
    fw_id: int,
    body: FrameworkUpdate,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    fw = await _get_framework(s, user, fw_id, "update")
    changes = body.model_dump(exclude_unset=True)
    if changes.get("name"):
        changes["name"] = changes["name"].strip()
        await _check_name(s, fw.organization_id, changes["name"], exclude_id=fw_id)
    for k, v in changes.items():
        setattr(fw, k, v)
    await s.commit()
    await s.refresh(fw)
    return await _framework_out(s, fw)


@router.delete("/{fw_id}", summary="Delete framework")
async def delete_framework(fw_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    fw = await _get_framework(s, user, fw_id, "delete")
    controls = (await s.execute(
        select(func.count()).select_from(Control).where(Control.framework_id == fw_id)
    )).scalar() or 0
    if controls:
        raise HTTPException(400, f"Cannot delete framework. It has {controls} controls.")
    mappings = (await s.execute(select(FrameworkMapping).where(FrameworkMapping.framework_id == fw_id))).scalars().all()
    for m in mappings:
        await s.delete(m)
    await s.delete(fw)
    await s.commit()
    return {"status": "deleted", "id": fw_id}


# ═══════════════════ MAPPINGS ═══════════════════

@router.get("/{fw_id}/mappings", response_model=list[MappingOut], summary="Framework mappings")
async def list_mappings(fw_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    await _get_framework(s, user, fw_id, "read")
    q = select(FrameworkMapping).where(FrameworkMapping.framework_id == fw_id).order_by(FrameworkMapping.id)
    return [await _mapping_out(s, m) for m in (await s.execute(q)).scalars().all()]


@router.post("/{fw_id}/mappings", response_model=MappingOut, status_code=201, summary="Add mapping")
async def create_mapping(
    fw_id: int,
    body: MappingCreate,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    fw = await _get_framework(s, user, fw_id, "update")
    if body.compliance_clause_id is None and not body.external_ref:
        raise HTTPException(400, "Either compliance_clause_id or external_ref must be provided")
    if body.control_id is not None:
        control = await s.get(Control, body.control_id)
        if not control or control.framework_id != fw.id:
            raise HTTPException(404, "Control not found in this framework")
    if body.compliance_clause_id is not None and not await s.get(ComplianceClause, body.compliance_clause_id):
        raise HTTPException(404, "Clause not found")
    m = FrameworkMapping(framework_id=fw_id, **body.model_dump())
    s.add(m)
    await s.commit()
    await s.refresh(m)
    return await _mapping_out(s, m)


@router.delete("/{fw_id}/mappings/{mapping_id}", summary="Delete mapping")
async def delete_mapping(
    fw_id: int,
    mapping_id: int,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await _get_framework(s, user, fw_id, "update")
    m = await s.get(FrameworkMapping, mapping_id)
    if not m or m.framework_id != fw_id:
        raise HTTPException(404, "Mapping not found")
    await s.delete(m)
    await s.commit()
    return {"status": "deleted", "id": mapping_id}
