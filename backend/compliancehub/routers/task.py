"""
Tasks and rule-based task generation — /api/v1/tasks
"""
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.database import get_session
from compliancehub.middleware.auth import get_current_user, require_permission
from compliancehub.models.evidence import Evidence
from compliancehub.models.framework import Control
from compliancehub.models.task import Task
from compliancehub.models.user import User
from compliancehub.schemas.common import Pagination
from compliancehub.schemas.task import (
    TaskCreate,
    TaskGenerateRequest,
    TaskGenerateResult,
    TaskOut,
    TaskPage,
    TaskUpdate,
)
from compliancehub.services.task_automation import default_title, generate_tasks

router = APIRouter(prefix="/api/v1/tasks", tags=["Tasks"])

PRIORITY_RANK = case(
    (Task.priority == "CRITICAL", 4),
    (Task.priority == "HIGH", 3),
    (Task.priority == "MEDIUM", 2),
    else_=1,
)


def _is_overdue(t: Task, now: datetime) -> bool:
    return bool(t.due_date and t.due_date < now and t.status != "COMPLETED")


async def _task_out(s: AsyncSession, t: Task, now: datetime | None = None) -> TaskOut:
    now = now or datetime.utcnow()
    control = await s.get(Control, t.control_id) if t.control_id else None
    evidence = await s.get(Evidence, t.evidence_id) if t.evidence_id else None
    assignee = await s.get(User, t.assignee_id) if t.assignee_id else None
    return TaskOut(
        id=t.id, organization_id=t.organization_id, title=t.title, description=t.description,
        type=t.type, status=t.status, priority=t.priority,
        control_id=t.control_id, control_name=control.name if control else None,
        evidence_id=t.evidence_id, evidence_title=evidence.title if evidence else None,
        assignee_id=t.assignee_id, assignee_name=assignee.name if assignee else None,
        due_date=t.due_date, completed_at=t.completed_at, completed_by=t.completed_by,
        created_by=t.created_by, is_overdue=_is_overdue(t, now), meta=t.meta,
        created_at=t.created_at, updated_at=t.updated_at,
    )


async def _get_task(s: AsyncSession, user: User, task_id: int, action: str) -> Task:
    t = await s.get(Task, task_id)
    if not t:
        raise HTTPException(404, "Task not found")
    await require_permission(s, user, t.organization_id, "tasks", action)
    return t


# ═══════════════════ LIST ═══════════════════

@router.get("", response_model=TaskPage, summary="Tasks of an organization")
async def list_tasks(
    organization_id: int = Query(...),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    status: str | None = Query(None),
    priority: str | None = Query(None),
    type: str | None = Query(None),
    assignee_id: int | None = Query(None),
    control_id: int | None = Query(None),
    evidence_id: int | None = Query(None),
    overdue: bool = Query(False),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_permission(s, user, organization_id, "tasks", "read")
    now = datetime.utcnow()
    q = select(Task).where(Task.organization_id == organization_id)
    if status:
        q = q.where(Task.status == status.upper())
    if priority:
        q = q.where(Task.priority == priority.upper())
    if type:
        q = q.where(Task.type == type.upper())
    if assignee_id is not None:
        q = q.where(Task.assignee_id == assignee_id)
    if control_id is not None:
        q = q.where(Task.control_id == control_id)
    if evidence_id is not None:
        q = q.where(Task.evidence_id == evidence_id)
    if overdue:
        q = q.where(Task.due_date < now, Task.status != "COMPLETED")

    total = (await s.execute(select(func.count()).select_from(q.subquery()))).scalar() or 0
    q = q.order_by(
        PRIORITY_RANK.desc(), Task.due_date.is_(None), Task.due_date.asc(), Task.created_at.desc(), Task.id.desc(),
    ).offset((page - 1) * limit).limit(limit)
    tasks = (await s.execute(q)).scalars().all()
    return TaskPage(
        tasks=[await _task_out(s, t, now) for t in tasks],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/{task_id}", response_model=TaskOut, summary="Task details")
async def get_task(task_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    return await _task_out(s, await _get_task(s, user, task_id, "read"))


# ═══════════════════ CREATE / UPDATE / DELETE ═══════════════════

@router.post("", response_model=TaskOut, status_code=201, summary="Create task")
async def create_task(body: TaskCreate, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    await require_permission(s, user, body.organization_id, "tasks", "create")
    if body.control_id is None and body.evidence_id is None:
        raise HTTPException(400, "Either control_id or evidence_id must be provided")
    control = evidence = None
    if body.control_id is not None:
        control = await s.get(Control, body.control_id)
        if not control or control.organization_id != body.organization_id:
            raise HTTPException(404, "Control not found or access denied")
    if body.evidence_id is not None:
        evidence = await s.get(Evidence, body.evidence_id)
        if not evidence or evidence.organization_id != body.organization_id:
            raise HTTPException(404, "Evidence not found or access denied")

    data = body.model_dump()
    data["title"] = (data.get("title") or "").strip() or default_title(body.type, control, evidence)
    t = Task(**data, created_by=user.id)
    if t.status == "COMPLETED":
        t.completed_at = datetime.utcnow()
        t.completed_by = user.id
    s.add(t)
    await s.commit()
    await s.refresh(t)
    return await _task_out(s, t)


@router.put("/{task_id}", response_model=TaskOut, summary="Update task")
async def update_task(
    task_id: int,
    body: TaskUpdate,
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    t = await _get_task(s, user, task_id, "update")
    changes = body.model_dump(exclude_unset=True)
    new_status = changes.get("status")
    if new_status == "COMPLETED" and t.status != "COMPLETED":
        t.completed_at = datetime.utcnow()
        t.completed_by = user.id
    elif new_status and new_status != "COMPLETED":
        t.completed_at = None
        t.completed_by = None
    for k, v in changes.items():
        setattr(t, k, v)
    await s.commit()
    await s.refresh(t)
    return await _task_out(s, t)


@router.delete("/{task_id}", summary="Delete task")
async def delete_task(task_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    t = await _get_task(s, user, task_id, "delete")
    await s.delete(t)
    await s.commit()
    return {"status": "deleted", "id": task_id}


# ═══════════════════ GENERATION ═══════════════════

@router.post("/generate", response_model=TaskGenerateResult, summary="Generate tasks from rules")
async def generate(body: TaskGenerateRequest, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    await require_permission(s, user, body.organization_id, "tasks", "create")
    try:
        created, by_type = await generate_tasks(s, body.organization_id, body.types, created_by=user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))
    await s.commit()
    now = datetime.utcnow()
    tasks = []
    for t in created:
        await s.refresh(t)
        tasks.append(await _task_out(s, t, now))
    return TaskGenerateResult(created=len(created), by_type=by_type, tasks=tasks)
