"""
Rule-based task generation.

Rules:
    EVIDENCE_RENEWAL — approved/submitted evidence not yet expired but expiring
                       within 90 days, one task per linked control; HIGH, due in 30 days
    CONTROL_REVIEW   — controls untouched for a year whose next_review_date is
                       past or unset; MEDIUM, due in 90 days
    GAP_REMEDIATION  — HIGH-criticality controls in GAP status; HIGH, due in 14 days

A rule never creates a task when an OPEN/IN_PROGRESS task of the same type
already targets the same control/evidence.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.models.evidence import ControlEvidenceLink, Evidence
from compliancehub.models.framework import Control
from compliancehub.models.task import Task

logger = logging.getLogger(__name__)

ACTIVE_TASK_STATUSES = ("OPEN", "IN_PROGRESS")


@dataclass(frozen=True)
class TaskRule:
    type: str
    priority: str
    due_in_days: int


RULES = {
    "EVIDENCE_RENEWAL": TaskRule("EVIDENCE_RENEWAL", "HIGH", 30),
    "CONTROL_REVIEW": TaskRule("CONTROL_REVIEW", "MEDIUM", 90),
    "GAP_REMEDIATION": TaskRule("GAP_REMEDIATION", "HIGH", 14),
}

EXPIRY_WINDOW_DAYS = 90
REVIEW_STALE_DAYS = 365

_TITLE_PREFIX = {
    "EVIDENCE_COLLECTION": "Collect evidence",
    "EVIDENCE_RENEWAL": "Renew evidence",
    "CONTROL_REVIEW": "Review control",
    "GAP_REMEDIATION": "Remediate gap",
    "POLICY_REVIEW": "Review policy",
    "OTHER": "Task",
}


def default_title(task_type: str, control: Control | None = None, evidence: Evidence | None = None) -> str:
    prefix = _TITLE_PREFIX.get(task_type, "Task")
    target = (control.name if control else None) or (evidence.title if evidence else None)
    return f"{prefix}: {target}" if target else prefix


async def detach_tasks(s: AsyncSession, *, control_id: int | None = None, evidence_id: int | None = None) -> None:
    """Unlink tasks from a control or evidence item that is being deleted.

    A task left with neither a control nor an evidence target is deleted. Caller commits.
    """
    if control_id is not None:
        tasks = (await s.execute(select(Task).where(Task.control_id == control_id))).scalars().all()
    else:
        tasks = (await s.execute(select(Task).where(Task.evidence_id == evidence_id))).scalars().all()
    for task in tasks:
        if control_id is not None:
            task.control_id = None
        else:
            task.evidence_id = None
        if task.control_id is None and task.evidence_id is None:
            await s.delete(task)
    await s.flush()


async def _has_active_task(s: AsyncSession, organization_id: int, task_type: str,
                           control_id: int | None, evidence_id: int | None) -> bool:
    q = select(Task.id).where(
        Task.organization_id == organization_id,
        Task.type == task_type,
        Task.status.in_(ACTIVE_TASK_STATUSES),
    )
    q = q.where(Task.control_id == control_id if control_id is not None else Task.control_id.is_(None))
    q = q.where(Task.evidence_id == evidence_id if evidence_id is not None else Task.evidence_id.is_(None))
    return (await s.execute(q.limit(1))).first() is not None


async def _evidence_renewal(s: AsyncSession, organization_id: int, now: datetime) -> list[Task]:
    rule = RULES["EVIDENCE_RENEWAL"]
    rows = (await s.execute(
        select(Evidence, Control)
        .join(ControlEvidenceLink, ControlEvidenceLink.evidence_id == Evidence.id)
        .join(Control, Control.id == ControlEvidenceLink.control_id)
        .where(
            Evidence.organization_id == organization_id,
            Evidence.status.in_(("APPROVED", "SUBMITTED")),
            Evidence.expiry_date >= now,
            Evidence.expiry_date <= now + timedelta(days=EXPIRY_WINDOW_DAYS),
        )
        .order_by(Evidence.expiry_date, Control.id)
    )).all()

    tasks = []
    for evidence, control in rows:
        if await _has_active_task(s, organization_id, rule.type, control.id, evidence.id):
            continue
        tasks.append(Task(
            organization_id=organization_id,
            title=f"Renew evidence: {evidence.title}",
            description=(
                f'Evidence "{evidence.title}" expires on {evidence.expiry_date:%Y-%m-%d}. '
                "Please renew or replace this evidence."
            ),
            type=rule.type,
            priority=rule.priority,
            control_id=control.id,
            evidence_id=evidence.id,
            due_date=now + timedelta(days=rule.due_in_days),
            meta={"generated": True, "rule": rule.type},
        ))
    return tasks


async def _control_review(s: AsyncSession, organization_id: int, now: datetime) -> list[Task]:
    rule = RULES["CONTROL_REVIEW"]
    controls = (await s.execute(
        select(Control).where(
            Control.organization_id == organization_id,
            or_(Control.next_review_date <= now, Control.next_review_date.is_(None)),
            Control.updated_at <= now - timedelta(days=REVIEW_STALE_DAYS),
        ).order_by(Control.id)
    )).scalars().all()

    tasks = []
    for control in controls:
        if await _has_active_task(s, organization_id, rule.type, control.id, None):
            continue
        tasks.append(Task(
            organization_id=organization_id,
            title=f"Review control: {control.name}",
            description=(
                f'Control "{control.name}" requires periodic review. '
                "Please assess current implementation and evidence."
            ),
            type=rule.type,
            priority=rule.priority,
            control_id=control.id,
            assignee_id=control.owner_id,
            due_date=now + timedelta(days=rule.due_in_days),
            meta={"generated": True, "rule": rule.type},
        ))
    return tasks


async def _gap_remediation(s: AsyncSession, organization_id: int, now: datetime) -> list[Task]:
    rule = RULES["GAP_REMEDIATION"]
    controls = (await s.execute(
        select(Control).where(
            Control.organization_id == organization_id,
            Control.status == "GAP",
            Control.criticality == "HIGH",
        ).order_by(Control.id)
    )).scalars().all()

    tasks = []
    for control in controls:
        if await _has_active_task(s, organization_id, rule.type, control.id, None):
            continue
        tasks.append(Task(
            organization_id=organization_id,
            title=f"Remediate gap: {control.name}",
            description=(
                f'High-priority control "{control.name}" has GAP status. '
                "Please implement required controls and provide evidence."
            ),
            type=rule.type,
            priority=rule.priority,
            control_id=control.id,
            assignee_id=control.owner_id,
            due_date=now + timedelta(days=rule.due_in_days),
            meta={"generated": True, "rule": rule.type},
        ))
    return tasks


_GENERATORS = {
    "EVIDENCE_RENEWAL": _evidence_renewal,
    "CONTROL_REVIEW": _control_review,
    "GAP_REMEDIATION": _gap_remediation,
}


async def generate_tasks(s: AsyncSession, organization_id: int, types: list[str] | None = None,
                         created_by: int | None = None) -> tuple[list[Task], dict[str, int]]:
    """Run the selected rules (all by default). Caller commits."""
    selected = types or list(RULES)
    unknown = [t for t in selected if t not in RULES]
    if unknown:
        raise ValueError(f"Unknown task generation type(s): {', '.join(unknown)}")

    now = datetime.utcnow()
    created: list[Task] = []
    by_type: dict[str, int] = {}
    for task_type in selected:
        tasks = await _GENERATORS[task_type](s, organization_id, now)
        for task in tasks:
            task.created_by = created_by
            s.add(task)
        by_type[task_type] = len(tasks)
        created.extend(tasks)

    await s.flush()
    logger.info("Generated %d tasks for organization %s: %s", len(created), organization_id, by_type)
    return created, by_type
