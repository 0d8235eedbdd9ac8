"""
Security questionnaires — /api/v1/questionnaires

Upload → parse into questions → draft answers (optionally from the answer
library) → submit → review → export.
"""
import io
import logging
import re
from datetime import datetime

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.config import settings
from compliancehub.database import get_session
from compliancehub.middleware.audit import audit_log
from compliancehub.middleware.auth import get_current_user, require_organization_access
from compliancehub.models.answer_library import AnswerLibraryEntry
from compliancehub.models.questionnaire import Answer, Question, Questionnaire, QuestionnaireActivity
from compliancehub.models.user import User
from compliancehub.schemas.questionnaire import (
    PRIORITY,
    ActivityOut,
    AnswerOut,
    AnswerReview,
    AnswerSave,
    AnswerSubmit,
    AssignRequest,
    QuestionnaireDetail,
    QuestionnaireStats,
    QuestionnaireSummary,
    QuestionOut,
    StatusUpdate,
    SuggestionOut,
)
from compliancehub.services.answer_library import record_usage
from compliancehub.services.questionnaire_parser import parse_questionnaire
from compliancehub.services.suggestion_engine import SuggestionEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/questionnaires", tags=["Questionnaires"])

CLOSED_STATUSES = ("APPROVED", "EXPORTED", "DELIVERED", "ARCHIVED")
APPROVED_STATUSES = ("APPROVED", "EXPORTED", "DELIVERED")
SUBMITTABLE = ("DRAFT", "REJECTED")

PRIORITY_RANK = case(
    (Questionnaire.priority == "URGENT", 4),
    (Questionnaire.priority == "HIGH", 3),
    (Questionnaire.priority == "MEDIUM", 2),
    else_=1,
)


# ═══════════════════ HELPERS ═══════════════════

def _log_activity(s: AsyncSession, questionnaire_id: int, user_id: int | None, action: str, details: dict | None = None) -> None:
    s.add(QuestionnaireActivity(
        questionnaire_id=questionnaire_id, user_id=user_id, action=action, details=details,
    ))


async def _get_questionnaire(s: AsyncSession, user: User, q_id: int) -> Questionnaire:
    qn = await s.get(Questionnaire, q_id)
    if not qn:
        raise HTTPException(404, "Questionnaire not found")
    await require_organization_access(s, user, qn.organization_id)
    return qn


async def _get_question(s: AsyncSession, qn: Questionnaire, question_id: int) -> Question:
    question = await s.get(Question, question_id)
    if not question or question.questionnaire_id != qn.id:
        raise HTTPException(404, "Question not found")
    return question


async def _get_answer(s: AsyncSession, qn: Questionnaire, answer_id: int) -> Answer:
    answer = await s.get(Answer, answer_id)
    if answer:
        question = await s.get(Question, answer.question_id)
        if question and question.questionnaire_id == qn.id:
            return answer
    raise HTTPException(404, "Answer not found")


async def _answered_count(s: AsyncSession, q_id: int) -> int:
    return (await s.execute(
        select(func.count()).select_from(Answer)
        .join(Question, Question.id == Answer.question_id)
        .where(Question.questionnaire_id == q_id)
    )).scalar() or 0


def _is_overdue(qn: Questionnaire, now: datetime) -> bool:
    return bool(qn.due_date and qn.due_date < now and qn.status not in CLOSED_STATUSES)


def _summary_fields(qn: Questionnaire, answered: int, now: datetime) -> dict:
    pct = round(qn.completed_questions / qn.total_questions * 100, 1) if qn.total_questions else 0.0
    return dict(
        id=qn.id, organization_id=qn.organization_id, title=qn.title, client_name=qn.client_name,
        status=qn.status, priority=qn.priority, due_date=qn.due_date, assigned_to=qn.assigned_to,
        total_questions=qn.total_questions, completed_questions=qn.completed_questions,
        answered_questions=answered, completion_percentage=pct,
        is_overdue=_is_overdue(qn, now), created_at=qn.created_at,
    )


async def _recompute_progress(s: AsyncSession, qn: Questionnaire) -> None:
    await s.flush()
    approved = (await s.execute(
        select(func.count()).select_from(Answer)
        .join(Question, Question.id == Answer.question_id)
        .where(Question.questionnaire_id == qn.id, Answer.status == "APPROVED")
    )).scalar() or 0
    qn.completed_questions = approved
    if qn.total_questions and approved >= qn.total_questions and qn.status == "IN_PROGRESS":
        qn.status = "UNDER_REVIEW"


# ═══════════════════ UPLOAD ═══════════════════

@router.post("/upload", response_model=QuestionnaireDetail, status_code=201, summary="Upload and parse questionnaire")
async def upload_questionnaire(
    file: UploadFile = File(...),
    organization_id: int = Form(...),
    title: str | None = Form(None),
    client_name: str | None = Form(None),
    due_date: datetime | None = Form(None),
    priority: str = Form("MEDIUM"),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, organization_id)
    priority = priority.upper()
    if not re.match(PRIORITY, priority):
        raise HTTPException(400, "Invalid priority. Use LOW, MEDIUM, HIGH or URGENT")
    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(400, f"File too large. Maximum size is {settings.MAX_UPLOAD_MB}MB")
    if not content:
        raise HTTPException(400, "Uploaded file is empty")

    filename = file.filename or "questionnaire"
    try:
        parsed = parse_questionnaire(filename, io.BytesIO(content))
    except ValueError as e:
        logger.warning("Questionnaire upload %s rejected: %s", filename, e)
        raise HTTPException(400, str(e))

    qn = Questionnaire(
        organization_id=organization_id,
        title=(title or "").strip() or parsed.title,
        description=parsed.description,
        client_name=(client_name or "").strip() or parsed.client_name,
        source_file_name=filename,
        source_format=parsed.source_format,
        status="PARSED",
        priority=priority,
        due_date=due_date,
        total_questions=len(parsed.questions),
        uploaded_by=user.id,
    )
    s.add(qn)
    await s.flush()
    for pq in parsed.questions:
        s.add(Question(
            questionnaire_id=qn.id, order_index=pq.order_index, section=pq.section, text=pq.text,
            question_type=pq.question_type, options=pq.options, is_required=pq.is_required,
            keywords=pq.keywords, control_mappings=pq.control_mappings,
            framework_mappings=pq.framework_mappings, risk_level=pq.risk_level,
        ))
    _log_activity(s, qn.id, user.id, "uploaded", {
        "file_name": filename, "format": parsed.source_format, "questions": len(parsed.questions),
        "frameworks": parsed.framework_mappings,
    })
    await s.commit()
    return await get_questionnaire(qn.id, include_suggestions=False, user=user, s=s)


# ═══════════════════ LIST / STATS ═══════════════════

@router.get("", response_model=list[QuestionnaireSummary], summary="Questionnaires of an organization")
async def list_questionnaires(
    organization_id: int = Query(...),
    status: str | None = Query(None),
    assigned_to: int | None = Query(None),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, organization_id)
    q = select(Questionnaire).where(Questionnaire.organization_id == organization_id)
    if status:
        q = q.where(Questionnaire.status == status.upper())
    if assigned_to is not None:
        q = q.where(Questionnaire.assigned_to == assigned_to)
    q = q.order_by(
        PRIORITY_RANK.desc(), Questionnaire.due_date.is_(None), Questionnaire.due_date.asc(),
        Questionnaire.created_at.desc(), Questionnaire.id.desc(),
    )
    now = datetime.utcnow()
    items = (await s.execute(q)).scalars().all()
    return [QuestionnaireSummary(**_summary_fields(qn, await _answered_count(s, qn.id), now)) for qn in items]


@router.get("/stats", response_model=QuestionnaireStats, summary="Questionnaire statistics")
async def questionnaire_stats(
    organization_id: int = Query(...),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, organization_id)
    items = (await s.execute(
        select(Questionnaire).where(Questionnaire.organization_id == organization_id)
    )).scalars().all()
    now = datetime.utcnow()
    approved = [qn for qn in items if qn.status in APPROVED_STATUSES]
    durations = [
        (qn.completion_date - qn.created_at).total_seconds() / 86400
        for qn in approved if qn.completion_date
    ]
    return QuestionnaireStats(
        total=len(items),
        in_progress=sum(1 for qn in items if qn.status == "IN_PROGRESS"),
        under_review=sum(1 for qn in items if qn.status == "UNDER_REVIEW"),
        approved=len(approved),
        overdue=sum(1 for qn in items if _is_overdue(qn, now)),
        average_completion_days=round(sum(durations) / len(durations), 1) if durations else None,
    )


# ═══════════════════ DETAIL ═══════════════════

@router.get("/{q_id}", response_model=QuestionnaireDetail, summary="Questionnaire with questions and answers")
async def get_questionnaire(
    q_id: int,
    include_suggestions: bool = Query(False),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    qn = await _get_questionnaire(s, user, q_id)
    rows = (await s.execute(
        select(Question, Answer)
        .outerjoin(Answer, Answer.question_id == Question.id)
        .where(Question.questionnaire_id == q_id)
        .order_by(Question.order_index, Question.id)
    )).all()
    engine = SuggestionEngine(s) if include_suggestions else None

    questions = []
    for question, answer in rows:
        suggestions = None
        if engine is not None and not answer:
            suggestions = [SuggestionOut(**x) for x in await engine.suggest_for_question(question, qn.organization_id)]
        questions.append(QuestionOut(
            id=question.id, order_index=question.order_index, section=question.section,
            text=question.text, question_type=question.question_type, options=question.options or [],
            is_required=question.is_required, keywords=question.keywords or [],
            control_mappings=question.control_mappings or [],
            framework_mappings=question.framework_mappings or [],
            risk_level=question.risk_level,
            answer=AnswerOut.model_validate(answer) if answer else None,
            suggestions=suggestions,
        ))

    answered = sum(1 for _, a in rows if a is not None)
    return QuestionnaireDetail(
        **_summary_fields(qn, answered, datetime.utcnow()),
        description=qn.description, source_file_name=qn.source_file_name,
        source_format=qn.source_format, uploaded_by=qn.uploaded_by,
        completion_date=qn.completion_date, questions=questions,
    )


# ═══════════════════ WORKFLOW ═══════════════════

@router.put("/{q_id}/assign", response_model=QuestionnaireSummary, summary="Assign questionnaire")
async def assign_questionnaire(
    q_id: int,
    body: AssignRequest,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    qn = await _get_questionnaire(s, user, q_id)
    assignee = await s.get(User, body.assigned_to)
    if not assignee:
        raise HTTPException(404, "User not found")
    qn.assigned_to = assignee.id
    qn.status = "IN_PROGRESS"
    _log_activity(s, qn.id, user.id, "assigned", {"assigned_to": assignee.id, "assignee_name": assignee.name})
    await s.commit()
    await s.refresh(qn)
    return QuestionnaireSummary(**_summary_fields(qn, await _answered_count(s, qn.id), datetime.utcnow()))


@router.put("/{q_id}/status", response_model=QuestionnaireSummary, summary="Change questionnaire status")
async def update_status(
    q_id: int,
    body: StatusUpdate,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    qn = await _get_questionnaire(s, user, q_id)
    old = qn.status
    qn.status = body.status
    if body.status == "APPROVED":
        qn.completion_date = datetime.utcnow()
    _log_activity(s, qn.id, user.id, "status_changed", {"from": old, "to": body.status})
    await s.commit()
    await s.refresh(qn)
    return QuestionnaireSummary(**_summary_fields(qn, await _answered_count(s, qn.id), datetime.utcnow()))


@router.post("/{q_id}/questions/{question_id}/answer", response_model=AnswerOut, summary="Save draft answer")
async def save_answer(
    q_id: int,
    question_id: int,
    body: AnswerSave,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    qn = await _get_questionnaire(s, user, q_id)
    question = await _get_question(s, qn, question_id)
    answer = (await s.execute(select(Answer).where(Answer.question_id == question.id))).scalar_one_or_none()
    if answer and answer.status == "APPROVED":
        raise HTTPException(409, "Approved answers cannot be edited")

    entry = None
    if body.source_library_id is not None:
        entry = await s.get(AnswerLibraryEntry, body.source_library_id)
        if not entry or entry.organization_id != qn.organization_id:
            raise HTTPException(404, "Answer library entry not found")

    if answer is None:
        answer = Answer(question_id=question.id)
        s.add(answer)
    answer.draft_text = body.draft_text
    answer.status = "DRAFT"
    answer.author_id = user.id
    answer.source_library_id = body.source_library_id
    answer.confidence_score = body.confidence_score
    if entry is not None:
        await record_usage(s, entry)
    if qn.status == "PARSED":
        qn.status = "IN_PROGRESS"
    _log_activity(s, qn.id, user.id, "answer_saved", {
        "question_id": question.id, "source_library_id": body.source_library_id,
    })
    await s.commit()
    await s.refresh(answer)
    return answer


@router.post("/{q_id}/answers/{answer_id}/submit", response_model=AnswerOut, summary="Submit answer for review")
async def submit_answer(
    q_id: int,
    answer_id: int,
    body: AnswerSubmit | None = None,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    qn = await _get_questionnaire(s, user, q_id)
    answer = await _get_answer(s, qn, answer_id)
    if answer.status not in SUBMITTABLE:
        raise HTTPException(409, f"Answer cannot be submitted from status {answer.status}")
    answer.status = "SUBMITTED"
    answer.submitted_at = datetime.utcnow()
    if body and body.reviewer_id is not None:
        answer.reviewer_id = body.reviewer_id
    _log_activity(s, qn.id, user.id, "answer_submitted", {"answer_id": answer.id})
    await s.commit()
    await s.refresh(answer)
    return answer


@router.post("/{q_id}/answers/{answer_id}/review", response_model=AnswerOut, summary="Approve or reject answer")
async def review_answer(
    q_id: int,
    answer_id: int,
    body: AnswerReview,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    qn = await _get_questionnaire(s, user, q_id)
    answer = await _get_answer(s, qn, answer_id)
    if answer.status != "SUBMITTED":
        raise HTTPException(409, f"Only submitted answers can be reviewed (current status {answer.status})")

    answer.reviewer_id = user.id
    answer.revision_notes = body.revision_notes
    if body.decision == "APPROVED":
        answer.status = "APPROVED"
        answer.final_text = body.final_text or answer.draft_text
        answer.approved_at = datetime.utcnow()
        answer.rejection_reason = None
    else:
        answer.status = "REJECTED"
        answer.rejection_reason = body.rejection_reason

    await _recompute_progress(s, qn)
    await audit_log(
        s, module="questionnaires", action="approve" if body.decision == "APPROVED" else "review",
        entity_type="answers", entity_id=answer.id,
        changes={"status": ("SUBMITTED", answer.status)}, user_id=user.id,
    )
    _log_activity(s, qn.id, user.id, "answer_reviewed", {"answer_id": answer.id, "decision": body.decision})
    await s.commit()
    await s.refresh(answer)
    return answer


@router.get("/{q_id}/questions/{question_id}/suggestions", response_model=list[SuggestionOut], summary="Answer suggestions")
async def question_suggestions(
    q_id: int,
    question_id: int,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    qn = await _get_questionnaire(s, user, q_id)
    question = await _get_question(s, qn, question_id)
    return await SuggestionEngine(s).suggest_for_question(question, qn.organization_id)


@router.get("/{q_id}/activities", response_model=list[ActivityOut], summary="Questionnaire activity log")
async def list_activities(q_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    await _get_questionnaire(s, user, q_id)
    q = (
        select(QuestionnaireActivity).where(QuestionnaireActivity.questionnaire_id == q_id)
        .order_by(QuestionnaireActivity.created_at.desc(), QuestionnaireActivity.id.desc())
    )
    return (await s.execute(q)).scalars().all()


# ═══════════════════ EXPORT ═══════════════════

@router.get("/{q_id}/export", summary="Export questionnaire answers (Excel)")
async def export_questionnaire(q_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    from openpyxl import Workbook
    from openpyxl.styles import Alignment, Font, PatternFill

    qn = await _get_questionnaire(s, user, q_id)
    rows = (await s.execute(
        select(Question, Answer)
        .outerjoin(Answer, Answer.question_id == Question.id)
        .where(Question.questionnaire_id == q_id)
        .order_by(Question.order_index, Question.id)
    )).all()

    wb = Workbook()
    ws = wb.active
    ws.title = "Questionnaire"
    headers = ["#", "Section", "Question", "Type", "Required", "Answer", "Answer Status", "Risk Level"]
    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
    for col, h in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col, value=h)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)

    for row_idx, (question, answer) in enumerate(rows, 2):
        text = (answer.final_text or answer.draft_text) if answer else None
        values = [
            question.order_index + 1, question.section, question.text, question.question_type,
            "Yes" if question.is_required else "No", text or "",
            answer.status if answer else "UNANSWERED", question.risk_level,
        ]
        for col, val in enumerate(values, 1):
            cell = ws.cell(row=row_idx, column=col, value=val)
            cell.alignment = Alignment(vertical="top", wrap_text=col in (3, 6))

    for col in ws.columns:
        max_len = max(len(str(c.value or "")) for c in col)
        ws.column_dimensions[col[0].column_letter].width = min(max_len + 4, 80)

    if qn.status == "APPROVED":
        qn.status = "EXPORTED"
    _log_activity(s, qn.id, user.id, "exported", {"questions": len(rows)})
    await s.commit()

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    safe_title = re.sub(r"[^\w\-]+", "_", qn.title)[:50] or "questionnaire"
    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={safe_title}_{datetime.utcnow():%Y%m%d}.xlsx"},
    )


# ═══════════════════ DELETE ═══════════════════

@router.delete("/{q_id}", summary="Delete questionnaire")
async def delete_questionnaire(q_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    qn = await _get_questionnaire(s, user, q_id)
    question_ids = select(Question.id).where(Question.questionnaire_id == q_id)
    for model, cond in ((Answer, Answer.question_id.in_(question_ids)), (Question, Question.questionnaire_id == q_id)):
        rows = (await s.execute(select(model).where(cond))).scalars().all()
        for row in rows:
            await s.delete(row)
        await s.flush()
    await s.execute(delete(QuestionnaireActivity).where(QuestionnaireActivity.questionnaire_id == q_id))
    await s.delete(qn)
    await s.commit()
    logger.info("Questionnaire %s deleted by user %s", q_id, user.id)
    return {"status": "deleted", "id": q_id}
