"""
Clause-level compliance assessments — /api/v1/compliance/assessments
"""
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.database import get_session
from compliancehub.middleware.auth import get_current_user, require_organization_access
from compliancehub.models.compliance import ComplianceAssessment, ComplianceClause
from compliancehub.models.user import User
from compliancehub.schemas.compliance import AssessmentCreate, AssessmentOut, AssessmentUpdate

router = APIRouter(prefix="/api/v1/compliance/assessments", tags=["Compliance assessments"])


def _assessment_out(a: ComplianceAssessment, now: datetime | None = None) -> AssessmentOut:
    now = now or datetime.utcnow()
    out = AssessmentOut.model_validate(a)
    out.is_overdue = bool(a.status == "IN_PROGRESS" and a.next_review_date and a.next_review_date < now)
    return out


@router.get("", response_model=list[AssessmentOut], summary="Assessments of an organization")
async def list_assessments(
    organization_id: int = Query(...),
    status: str | None = Query(None, pattern=r"^(IN_PROGRESS|COMPLETED|CANCELLED)$"),
    clause_id: int | None = Query(None),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, organization_id)
    q = select(ComplianceAssessment).where(ComplianceAssessment.organization_id == organization_id)
    if status:
        q = q.where(ComplianceAssessment.status == status)
    if clause_id is not None:
        q = q.where(ComplianceAssessment.clause_id == clause_id)
    q = q.order_by(ComplianceAssessment.assessed_at.desc())
    now = datetime.utcnow()
    return [_assessment_out(a, now) for a in (await s.execute(q)).scalars().all()]


@router.post("", response_model=AssessmentOut, status_code=201, summary="Start assessment")
async def create_assessment(
    body: AssessmentCreate,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, body.organization_id)
    if not await s.get(ComplianceClause, body.clause_id):
        raise HTTPException(404, "Clause not found")
    a = ComplianceAssessment(**body.model_dump(), assessor_id=user.id)
    s.add(a)
    await s.commit()
    await s.refresh(a)
    return _assessment_out(a)


@router.put("/{assessment_id}", response_model=AssessmentOut, summary="Update assessment")
async def update_assessment(
    assessment_id: int,
    body: AssessmentUpdate,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    a = await s.get(ComplianceAssessment, assessment_id)
    if not a:
        raise HTTPException(404, "Assessment not found")
    await require_organization_access(s, user, a.organization_id)
    changes = body.model_dump(exclude_unset=True)
    for k, v in changes.items():
        setattr(a, k, v)
    if changes.get("status") == "COMPLETED" and a.completed_at is None:
        a.completed_at = datetime.utcnow()
    await s.commit()
    await s.refresh(a)
    return _assessment_out(a)
