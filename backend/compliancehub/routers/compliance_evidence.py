"""
Compliance evidence submissions — /api/v1/compliance/evidence

Submissions are versioned per (organization, clause); exactly one row of
each chain carries is_latest.
"""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.database import get_session
from compliancehub.middleware.audit import audit_log
from compliancehub.middleware.auth import get_current_user, require_organization_access
from compliancehub.models.compliance import ComplianceClause, EvidenceSubmission
from compliancehub.models.user import User
from compliancehub.schemas.compliance import (
    SubmissionCreate,
    SubmissionGroup,
    SubmissionList,
    SubmissionOut,
    SubmissionReview,
    SubmissionStatistics,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/compliance/evidence", tags=["Compliance evidence"])

REVIEW_STATUSES = ("PENDING", "APPROVED", "REJECTED", "REQUIRES_REVISION")


def _submission_out(sub: EvidenceSubmission, clause: ComplianceClause | None, submitter: User | None) -> SubmissionOut:
    return SubmissionOut(
        id=sub.id, organization_id=sub.organization_id, clause_id=sub.clause_id,
        clause_ref=clause.clause_id if clause else None,
        clause_title=clause.title if clause else None,
        file_name=sub.file_name, file_path=sub.file_path, file_size=sub.file_size,
        mime_type=sub.mime_type, description=sub.description, tags=sub.tags or [],
        version=sub.version, is_latest=sub.is_latest,
        submitted_by=sub.submitted_by, submitter_name=submitter.name if submitter else None,
        submitted_at=sub.submitted_at, reviewed_by=sub.reviewed_by, reviewed_at=sub.reviewed_at,
        review_status=sub.review_status, review_notes=sub.review_notes,
    )


async def _out(s: AsyncSession, sub: EvidenceSubmission) -> SubmissionOut:
    return _submission_out(sub, await s.get(ComplianceClause, sub.clause_id), await s.get(User, sub.submitted_by))


async def _get_submission(s: AsyncSession, user: User, sub_id: int) -> EvidenceSubmission:
    sub = await s.get(EvidenceSubmission, sub_id)
    if not sub:
        raise HTTPException(404, "Evidence submission not found")
    await require_organization_access(s, user, sub.organization_id)
    return sub


# ═══════════════════ LIST ═══════════════════

@router.get("", response_model=SubmissionList, summary="Evidence submissions of an organization")
async def list_submissions(
    organization_id: int = Query(...),
    clause_id: int | None = Query(None),
    status: str | None = Query(None),
    latest_only: bool = Query(False),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, organization_id)
    q = (
        select(EvidenceSubmission, ComplianceClause, User)
        .join(ComplianceClause, ComplianceClause.id == EvidenceSubmission.clause_id)
        .outerjoin(User, User.id == EvidenceSubmission.submitted_by)
        .where(EvidenceSubmission.organization_id == organization_id)
    )
    if clause_id is not None:
        q = q.where(EvidenceSubmission.clause_id == clause_id)
    if status:
        q = q.where(EvidenceSubmission.review_status == status.upper())
    if latest_only:
        q = q.where(EvidenceSubmission.is_latest.is_(True))
    q = q.order_by(ComplianceClause.clause_id, EvidenceSubmission.version.desc())
    rows = (await s.execute(q)).all()

    submissions = [_submission_out(sub, clause, submitter) for sub, clause, submitter in rows]
    groups: dict[int, SubmissionGroup] = {}
    for out in submissions:
        group = groups.get(out.clause_id)
        if group is None:
            group = groups[out.clause_id] = SubmissionGroup(
                clause_id=out.clause_id, clause_ref=out.clause_ref, clause_title=out.clause_title, submissions=[],
            )
        group.submissions.append(out)

    def _n(review_status: str) -> int:
        return sum(1 for o in submissions if o.review_status == review_status)

    return SubmissionList(
        submissions=submissions,
        grouped_by_clause=list(groups.values()),
        statistics=SubmissionStatistics(
            total=len(submissions), pending=_n("PENDING"), approved=_n("APPROVED"), rejected=_n("REJECTED"),
        ),
    )


@router.get("/{sub_id}", response_model=SubmissionOut, summary="Evidence submission details")
async def get_submission(sub_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    return await _out(s, await _get_submission(s, user, sub_id))


# ═══════════════════ SUBMIT ═══════════════════

@router.post("", response_model=SubmissionOut, status_code=201, summary="Submit evidence for a clause")
async def create_submission(
    body: SubmissionCreate,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, body.organization_id)
    if not await s.get(ComplianceClause, body.clause_id):
        raise HTTPException(404, "Clause not found")

    chain = (
        EvidenceSubmission.organization_id == body.organization_id,
        EvidenceSubmission.clause_id == body.clause_id,
    )
    current = (await s.execute(select(func.max(EvidenceSubmission.version)).where(*chain))).scalar() or 0
    await s.execute(
        update(EvidenceSubmission).where(*chain, EvidenceSubmission.is_latest.is_(True)).values(is_latest=False),
        execution_options={"synchronize_session": False},
    )
    sub = EvidenceSubmission(
        **body.model_dump(),
        version=current + 1,
        is_latest=True,
        submitted_by=user.id,
        submitted_at=datetime.utcnow(),
    )
    s.add(sub)
    await s.commit()
    await s.refresh(sub)
    logger.info("Evidence submission v%d for clause %s (org %s)", sub.version, sub.clause_id, sub.organization_id)
    return await _out(s, sub)


# ═══════════════════ REVIEW ═══════════════════

@router.put("/{sub_id}/review", response_model=SubmissionOut, summary="Review evidence submission")
async def review_submission(
    sub_id: int,
    body: SubmissionReview,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    sub = await _get_submission(s, user, sub_id)
    new_status = body.review_status.strip().upper()
    if new_status not in REVIEW_STATUSES:
        raise HTTPException(400, f"Invalid review status. Use one of: {', '.join(REVIEW_STATUSES)}")

    old_status = sub.review_status
    sub.review_status = new_status
    sub.review_notes = body.review_notes
    sub.reviewed_by = user.id
    sub.reviewed_at = datetime.utcnow()
    await audit_log(
        s, module="compliance", action="approve" if new_status == "APPROVED" else "review",
        entity_type="evidence_submissions", entity_id=sub.id,
        changes={"review_status": (old_status, new_status)}, user_id=user.id,
    )
    await s.commit()
    await s.refresh(sub)
    return await _out(s, sub)


# ═══════════════════ DELETE ═══════════════════

@router.delete("/{sub_id}", summary="Delete evidence submission")
async def delete_submission(sub_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    sub = await _get_submission(s, user, sub_id)
    was_latest = sub.is_latest
    org_id, clause_id = sub.organization_id, sub.clause_id
    await s.delete(sub)
    await s.flush()

    if was_latest:
        previous = (await s.execute(
            select(EvidenceSubmission).where(
                EvidenceSubmission.organization_id == org_id,
                EvidenceSubmission.clause_id == clause_id,
            ).order_by(EvidenceSubmission.version.desc()).limit(1)
        )).scalar_one_or_none()
        if previous:
            previous.is_latest = True
    await s.commit()
    return {"status": "deleted", "id": sub_id}
