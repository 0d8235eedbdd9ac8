"""
Compliance framework structure — topics, components and clauses.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.database import get_session
from compliancehub.middleware.auth import get_current_user, require_platform_admin
from compliancehub.models.compliance import (
    ComplianceClause,
    ComplianceComponent,
    ComplianceFramework,
    ComplianceTopic,
    EvidenceSubmission,
    OrganizationComplianceSelection,
)
from compliancehub.models.user import User
from compliancehub.schemas.compliance import (
    ClauseCreate, ClauseOut, ClauseUpdate,
    ComponentCreate, ComponentOut, ComponentUpdate,
    TopicCreate, TopicOut, TopicUpdate,
)
from compliancehub.services.compliance_catalog import framework_tree, release_clauses

router = APIRouter(prefix="/api/v1/compliance", tags=["Compliance structure"])

CLAUSE_DUPLICATE_MSG = "Clause ID already exists in this component"


def _strip(data: dict, *keys: str) -> dict:
    for key in keys:
        if isinstance(data.get(key), str):
            data[key] = data[key].strip()
    return data


async def _next_order(s: AsyncSession, column, parent_col, parent_id: int) -> int:
    current = (await s.execute(select(func.max(column)).where(parent_col == parent_id))).scalar()
    return 0 if current is None else current + 1


async def _count(s: AsyncSession, model, cond) -> int:
    return (await s.execute(select(func.count()).select_from(model).where(cond))).scalar() or 0


async def _get(s: AsyncSession, model, obj_id: int, label: str):
    obj = await s.get(model, obj_id)
    if not obj:
        raise HTTPException(404, f"{label} not found")
    return obj


async def _check_clause_ref(s: AsyncSession, component_id: int, clause_ref: str, exclude_id: int | None = None) -> None:
    q = select(ComplianceClause.id).where(
        ComplianceClause.component_id == component_id, ComplianceClause.clause_id == clause_ref,
    )
    if exclude_id is not None:
        q = q.where(ComplianceClause.id != exclude_id)
    if (await s.execute(q)).first():
        raise HTTPException(409, CLAUSE_DUPLICATE_MSG)


def _topic_out(t: ComplianceTopic) -> TopicOut:
    return TopicOut(
        id=t.id, framework_id=t.framework_id, name=t.name, description=t.description,
        order_index=t.order_index, is_active=t.is_active,
    )


def _component_out(c: ComplianceComponent) -> ComponentOut:
    return ComponentOut(
        id=c.id, topic_id=c.topic_id, name=c.name, description=c.description,
        order_index=c.order_index, is_active=c.is_active,
    )


# ═══════════════════ STRUCTURE ═══════════════════

@router.get("/frameworks/{fw_id}/structure", response_model=list[TopicOut], summary="Ordered framework tree")
async def get_structure(fw_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    await _get(s, ComplianceFramework, fw_id, "Framework")
    return await framework_tree(s, fw_id)


# ═══════════════════ TOPICS ═══════════════════

@router.post("/frameworks/{fw_id}/topics", response_model=TopicOut, status_code=201, summary="Add topic")
async def create_topic(
    fw_id: int,
    body: TopicCreate,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    await _get(s, ComplianceFramework, fw_id, "Framework")
    data = _strip(body.model_dump(), "name", "description")
    topic = ComplianceTopic(
        framework_id=fw_id,
        order_index=await _next_order(s, ComplianceTopic.order_index, ComplianceTopic.framework_id, fw_id),
        **data,
    )
    s.add(topic)
    await s.commit()
    await s.refresh(topic)
    return _topic_out(topic)


@router.get("/topics/{topic_id}", response_model=TopicOut, summary="Topic details")
async def get_topic(topic_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    return _topic_out(await _get(s, ComplianceTopic, topic_id, "Topic"))


@router.put("/topics/{topic_id}", response_model=TopicOut, summary="Update topic")
async def update_topic(
    topic_id: int,
    body: TopicUpdate,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    topic = await _get(s, ComplianceTopic, topic_id, "Topic")
    for k, v in _strip(body.model_dump(exclude_unset=True), "name", "description").items():
        setattr(topic, k, v)
    await s.commit()
    await s.refresh(topic)
    return _topic_out(topic)


@router.delete("/topics/{topic_id}", summary="Delete topic")
async def delete_topic(topic_id: int, admin: User = Depends(require_platform_admin), s: AsyncSession = Depends(get_session)):
    topic = await _get(s, ComplianceTopic, topic_id, "Topic")
    children = await _count(s, ComplianceComponent, ComplianceComponent.topic_id == topic_id)
    if children:
        raise HTTPException(400, f"Cannot delete topic. It has {children} components.")
    await s.delete(topic)
    await s.commit()
    return {"status": "deleted", "id": topic_id}


# ═══════════════════ COMPONENTS ═══════════════════

@router.post("/topics/{topic_id}/components", response_model=ComponentOut, status_code=201, summary="Add component")
async def create_component(
    topic_id: int,
    body: ComponentCreate,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    await _get(s, ComplianceTopic, topic_id, "Topic")
    data = _strip(body.model_dump(), "name", "description")
    comp = ComplianceComponent(
        topic_id=topic_id,
        order_index=await _next_order(s, ComplianceComponent.order_index, ComplianceComponent.topic_id, topic_id),
        **data,
    )
    s.add(comp)
    await s.commit()
    await s.refresh(comp)
    return _component_out(comp)


@router.get("/components/{component_id}", response_model=ComponentOut, summary="Component with clauses")
async def get_component(component_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    comp = await _get(s, ComplianceComponent, component_id, "Component")
    clauses = (await s.execute(
        select(ComplianceClause).where(ComplianceClause.component_id == component_id)
        .order_by(ComplianceClause.clause_id)
    )).scalars().all()
    out = _component_out(comp)
    out.clauses = [ClauseOut.model_validate(c) for c in clauses]
    return out


@router.put("/components/{component_id}", response_model=ComponentOut, summary="Update component")
async def update_component(
    component_id: int,
    body: ComponentUpdate,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    comp = await _get(s, ComplianceComponent, component_id, "Component")
    for k, v in _strip(body.model_dump(exclude_unset=True), "name", "description").items():
        setattr(comp, k, v)
    await s.commit()
    await s.refresh(comp)
    return _component_out(comp)


@router.delete("/components/{component_id}", summary="Delete component")
async def delete_component(component_id: int, admin: User = Depends(require_platform_admin), s: AsyncSession = Depends(get_session)):
    comp = await _get(s, ComplianceComponent, component_id, "Component")
    children = await _count(s, ComplianceClause, ComplianceClause.component_id == component_id)
    if children:
        raise HTTPException(400, f"Cannot delete component. It has {children} clauses.")
    await s.delete(comp)
    await s.commit()
    return {"status": "deleted", "id": component_id}


# ═══════════════════ CLAUSES ═══════════════════

@router.post("/components/{component_id}/clauses", response_model=ClauseOut, status_code=201, summary="Add clause")
async def create_clause(
    component_id: int,
    body: ClauseCreate,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    await _get(s, ComplianceComponent, component_id, "Component")
    data = _strip(body.model_dump(), "clause_id", "title", "description")
    await _check_clause_ref(s, component_id, data["clause_id"])
    clause = ComplianceClause(component_id=component_id, **data)
    s.add(clause)
    await s.commit()
    await s.refresh(clause)
    return clause


@router.get("/clauses/{clause_id}", response_model=ClauseOut, summary="Clause details")
async def get_clause(clause_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    return await _get(s, ComplianceClause, clause_id, "Clause")


@router.put("/clauses/{clause_id}", response_model=ClauseOut, summary="Update clause")
async def update_clause(
    clause_id: int,
    body: ClauseUpdate,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    clause = await _get(s, ComplianceClause, clause_id, "Clause")
    changes = _strip(body.model_dump(exclude_unset=True), "clause_id", "title", "description")
    if changes.get("clause_id") and changes["clause_id"] != clause.clause_id:
        await _check_clause_ref(s, clause.component_id, changes["clause_id"], exclude_id=clause_id)
    for k, v in changes.items():
        setattr(clause, k, v)
    await s.commit()
    await s.refresh(clause)
    return clause


@router.delete("/clauses/{clause_id}", summary="Delete clause")
async def delete_clause(clause_id: int, admin: User = Depends(require_platform_admin), s: AsyncSession = Depends(get_session)):
    clause = await _get(s, ComplianceClause, clause_id, "Clause")
    selections = await _count(s, OrganizationComplianceSelection, OrganizationComplianceSelection.clause_id == clause_id)
    submissions = await _count(s, EvidenceSubmission, EvidenceSubmission.clause_id == clause_id)
    if selections or submissions:
        raise HTTPException(
            400,
            f"Cannot delete clause. It is referenced by {selections} selections and {submissions} evidence submissions.",
        )
    await release_clauses(s, [clause_id])
    await s.delete(clause)
    await s.commit()
    return {"status": "deleted", "id": clause_id}
