"""
Organization compliance selections — /api/v1/compliance/selections
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.database import get_session
from compliancehub.middleware.auth import get_current_user, require_organization_access
from compliancehub.models.compliance import (
    ComplianceClause,
    ComplianceComponent,
    ComplianceFramework,
    ComplianceTopic,
    OrganizationComplianceSelection,
)
from compliancehub.models.user import User
from compliancehub.schemas.compliance import (
    SelectionBulkResult,
    SelectionCreate,
    SelectionGroup,
    SelectionList,
    SelectionOut,
    SelectionStatistics,
    SelectionUpdate,
)

router = APIRouter(prefix="/api/v1/compliance/selections", tags=["Compliance selections"])


def _selection_out(sel: OrganizationComplianceSelection, clause: ComplianceClause | None) -> SelectionOut:
    return SelectionOut(
        id=sel.id, organization_id=sel.organization_id, framework_id=sel.framework_id,
        clause_id=sel.clause_id,
        clause_ref=clause.clause_id if clause else None,
        clause_title=clause.title if clause else None,
        is_enabled=sel.is_enabled, internal_deadline=sel.internal_deadline,
        risk_tolerance=sel.risk_tolerance, internal_owner=sel.internal_owner, notes=sel.notes,
        created_at=sel.created_at, updated_at=sel.updated_at,
    )


async def _get_selection(s: AsyncSession, user: User, sel_id: int) -> OrganizationComplianceSelection:
    sel = await s.get(OrganizationComplianceSelection, sel_id)
    if not sel:
        raise HTTPException(404, "Selection not found")
    await require_organization_access(s, user, sel.organization_id)
    return sel


# ═══════════════════ LIST ═══════════════════

@router.get("", response_model=SelectionList, summary="Selections grouped by framework")
async def list_selections(
    organization_id: int = Query(...),
    framework_id: int | None = Query(None),
    status: str = Query("all", pattern=r"^(all|enabled|disabled)$"),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, organization_id)
    q = (
        select(OrganizationComplianceSelection, ComplianceFramework, ComplianceClause)
        .join(ComplianceFramework, ComplianceFramework.id == OrganizationComplianceSelection.framework_id)
        .outerjoin(ComplianceClause, ComplianceClause.id == OrganizationComplianceSelection.clause_id)
        .where(OrganizationComplianceSelection.organization_id == organization_id)
    )
    if framework_id is not None:
        q = q.where(OrganizationComplianceSelection.framework_id == framework_id)
    if status == "enabled":
        q = q.where(OrganizationComplianceSelection.is_enabled.is_(True))
    elif status == "disabled":
        q = q.where(OrganizationComplianceSelection.is_enabled.is_(False))
    q = q.order_by(ComplianceFramework.name, ComplianceClause.clause_id, OrganizationComplianceSelection.id)
    rows = (await s.execute(q)).all()

    groups: dict[int, SelectionGroup] = {}
    enabled = 0
    for sel, fw, clause in rows:
        group = groups.get(fw.id)
        if group is None:
            group = groups[fw.id] = SelectionGroup(
                framework_id=fw.id, framework_name=fw.name, framework_version=fw.version, selections=[],
            )
        group.selections.append(_selection_out(sel, clause))
        enabled += 1 if sel.is_enabled else 0

    return SelectionList(
        frameworks=list(groups.values()),
        statistics=SelectionStatistics(
            total=len(rows), enabled=enabled, disabled=len(rows) - enabled, frameworks_count=len(groups),
        ),
    )


# ═══════════════════ CREATE ═══════════════════

@router.post("", response_model=SelectionBulkResult, status_code=201, summary="Select a framework or its clauses")
async def create_selection(
    body: SelectionCreate,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, body.organization_id)
    if not await s.get(ComplianceFramework, body.framework_id):
        raise HTTPException(404, "Framework not found")
    settings_fields = body.model_dump(exclude={"organization_id", "framework_id", "clause_ids"})

    existing_q = select(OrganizationComplianceSelection).where(
        OrganizationComplianceSelection.organization_id == body.organization_id,
        OrganizationComplianceSelection.framework_id == body.framework_id,
    )

    if not body.clause_ids:
        existing = (await s.execute(
            existing_q.where(OrganizationComplianceSelection.clause_id.is_(None))
        )).scalars().first()
        if existing:
            raise HTTPException(409, "Framework selection already exists")
        sel = OrganizationComplianceSelection(
            organization_id=body.organization_id, framework_id=body.framework_id, **settings_fields,
        )
        s.add(sel)
        await s.commit()
        await s.refresh(sel)
        return SelectionBulkResult(selections=[_selection_out(sel, None)])

    clause_ids = list(dict.fromkeys(body.clause_ids))
    clauses = (await s.execute(
        select(ComplianceClause)
        .join(ComplianceComponent, ComplianceComponent.id == ComplianceClause.component_id)
        .join(ComplianceTopic, ComplianceTopic.id == ComplianceComponent.topic_id)
        .where(ComplianceTopic.framework_id == body.framework_id, ComplianceClause.id.in_(clause_ids))
    )).scalars().all()
    by_id = {c.id: c for c in clauses}
    foreign = [cid for cid in clause_ids if cid not in by_id]
    if foreign:
        raise HTTPException(400, f"Clauses do not belong to this framework: {', '.join(map(str, foreign))}")

    already = set((await s.execute(
        select(OrganizationComplianceSelection.clause_id).where(
            OrganizationComplianceSelection.organization_id == body.organization_id,
            OrganizationComplianceSelection.framework_id == body.framework_id,
            OrganizationComplianceSelection.clause_id.in_(clause_ids),
        )
    )).scalars().all())

    created = []
    for cid in clause_ids:
        if cid in already:
            continue
        sel = OrganizationComplianceSelection(
            organization_id=body.organization_id, framework_id=body.framework_id, clause_id=cid,
            **settings_fields,
        )
        s.add(sel)
        created.append(sel)
    await s.commit()
    for sel in created:
        await s.refresh(sel)
    return SelectionBulkResult(
        selections=[_selection_out(sel, by_id[sel.clause_id]) for sel in created],
        skipped=len(clause_ids) - len(created),
    )


# ═══════════════════ UPDATE / DELETE ═══════════════════

@router.put("/{sel_id}", response_model=SelectionOut, summary="Update selection")
async def update_selection(
    sel_id: int,
    body: SelectionUpdate,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    sel = await _get_selection(s, user, sel_id)
    for k, v in body.model_dump(exclude_unset=True).items():
        setattr(sel, k, v)
    await s.commit()
    await s.refresh(sel)
    clause = await s.get(ComplianceClause, sel.clause_id) if sel.clause_id else None
    return _selection_out(sel, clause)


@router.delete("/{sel_id}", summary="Delete selection")
async def delete_selection(sel_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    sel = await _get_selection(s, user, sel_id)
    await s.delete(sel)
    await s.commit()
    return {"status": "deleted", "id": sel_id}
