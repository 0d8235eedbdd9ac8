"""
Read and delete helpers for the compliance catalogue tree (framework → topics →
components → clauses).
"""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.models.compliance import (
    ComplianceAssessment,
    ComplianceClause,
    ComplianceComponent,
    ComplianceFramework,
    ComplianceTopic,
    EvidenceSubmission,
    OrganizationComplianceSelection,
)
from compliancehub.models.framework import FrameworkMapping
from compliancehub.schemas.compliance import ClauseOut, ComponentOut, TopicOut


async def framework_counts(s: AsyncSession, fw_id: int) -> dict[str, int]:
    topics = (await s.execute(
        select(func.count()).select_from(ComplianceTopic).where(ComplianceTopic.framework_id == fw_id)
    )).scalar() or 0
    clauses = (await s.execute(
        select(func.count()).select_from(ComplianceClause)
        .join(ComplianceComponent, ComplianceComponent.id == ComplianceClause.component_id)
        .join(ComplianceTopic, ComplianceTopic.id == ComplianceComponent.topic_id)
        .where(ComplianceTopic.framework_id == fw_id)
    )).scalar() or 0
    orgs = (await s.execute(
        select(func.count(func.distinct(OrganizationComplianceSelection.organization_id)))
        .where(OrganizationComplianceSelection.framework_id == fw_id)
    )).scalar() or 0
    return {"topic_count": topics, "clause_count": clauses, "organization_count": orgs}


async def framework_tree(s: AsyncSession, fw_id: int) -> list[TopicOut]:
    """Topics and components by order_index, clauses by clause_id."""
    topics = (await s.execute(
        select(ComplianceTopic).where(ComplianceTopic.framework_id == fw_id)
        .order_by(ComplianceTopic.order_index, ComplianceTopic.id)
    )).scalars().all()
    topic_ids = [t.id for t in topics]
    if not topic_ids:
        return []

    components = (await s.execute(
        select(ComplianceComponent).where(ComplianceComponent.topic_id.in_(topic_ids))
        .order_by(ComplianceComponent.order_index, ComplianceComponent.id)
    )).scalars().all()
    comp_ids = [c.id for c in components]
    clauses = []
    if comp_ids:
        clauses = (await s.execute(
            select(ComplianceClause).where(ComplianceClause.component_id.in_(comp_ids))
            .order_by(ComplianceClause.clause_id, ComplianceClause.id)
        )).scalars().all()

    clauses_by_comp: dict[int, list[ClauseOut]] = {}
    for cl in clauses:
        clauses_by_comp.setdefault(cl.component_id, []).append(ClauseOut.model_validate(cl))

    comps_by_topic: dict[int, list[ComponentOut]] = {}
    for c in components:
        comps_by_topic.setdefault(c.topic_id, []).append(ComponentOut(
            id=c.id, topic_id=c.topic_id, name=c.name, description=c.description,
            order_index=c.order_index, is_active=c.is_active,
            clauses=clauses_by_comp.get(c.id, []),
        ))

    return [
        TopicOut(
            id=t.id, framework_id=t.framework_id, name=t.name, description=t.description,
            order_index=t.order_index, is_active=t.is_active,
            components=comps_by_topic.get(t.id, []),
        )
        for t in topics
    ]


async def clause_framework_id(s: AsyncSession, clause_id: int) -> int | None:
    return (await s.execute(
        select(ComplianceTopic.framework_id)
        .join(ComplianceComponent, ComplianceComponent.topic_id == ComplianceTopic.id)
        .join(ComplianceClause, ComplianceClause.component_id == ComplianceComponent.id)
        .where(ComplianceClause.id == clause_id)
    )).scalar_one_or_none()


async def release_clauses(s: AsyncSession, clause_ids: list[int]) -> None:
    """Drop organization data hanging off clauses that are about to be deleted.

    Evidence submissions and assessments go with the clause. Framework mappings
    keep their external reference and lose the clause, or are removed when the
    clause was their only target. Caller commits.
    """
    if not clause_ids:
        return
    for model, column in (
        (EvidenceSubmission, EvidenceSubmission.clause_id),
        (ComplianceAssessment, ComplianceAssessment.clause_id),
    ):
        rows = (await s.execute(select(model).where(column.in_(clause_ids)))).scalars().all()
        for row in rows:
            await s.delete(row)
    mappings = (await s.execute(
        select(FrameworkMapping).where(FrameworkMapping.compliance_clause_id.in_(clause_ids))
    )).scalars().all()
    for m in mappings:
        if m.external_ref:
            m.compliance_clause_id = None
        else:
            await s.delete(m)
    await s.flush()


async def delete_framework_tree(s: AsyncSession, fw: ComplianceFramework) -> None:
    """Delete clauses, components and topics explicitly, then the framework. Caller commits."""
    topic_ids = select(ComplianceTopic.id).where(ComplianceTopic.framework_id == fw.id)
    comp_ids = select(ComplianceComponent.id).where(ComplianceComponent.topic_id.in_(topic_ids))
    clause_ids = (await s.execute(
        select(ComplianceClause.id).where(ComplianceClause.component_id.in_(comp_ids))
    )).scalars().all()
    await release_clauses(s, list(clause_ids))
    for model, cond in (
        (ComplianceClause, ComplianceClause.component_id.in_(comp_ids)),
        (ComplianceComponent, ComplianceComponent.topic_id.in_(topic_ids)),
        (ComplianceTopic, ComplianceTopic.framework_id == fw.id),
    ):
        rows = (await s.execute(select(model).where(cond))).scalars().all()
        for row in rows:
            await s.delete(row)
        await s.flush()
    await s.delete(fw)
