"""
Dashboard aggregations — control status, per-framework compliance scores
and evidence expiration windows for one organization.
"""
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.models.evidence import Evidence
from compliancehub.models.framework import Control, Framework
from compliancehub.schemas.dashboard import (
    ControlStatusOut,
    ControlStatusSummary,
    EvidenceExpirationOut,
    ExpiringEvidence,
    FrameworkMetric,
    StatusBucket,
)

CONTROL_STATUSES = ("MET", "PARTIAL", "GAP", "NOT_APPLICABLE")
UPCOMING_LIMIT = 10


def compliance_score(met: int, partial: int, total: int, not_applicable: int) -> float | None:
    """(met + 0.5*partial) / applicable controls, as a percentage."""
    applicable = total - not_applicable
    if applicable <= 0:
        return None
    return round((met + 0.5 * partial) / applicable * 100, 1)


async def get_control_status(s: AsyncSession, organization_id: int, framework_id: int | None = None) -> ControlStatusOut:
    q = (
        select(Control.status, func.count())
        .where(Control.organization_id == organization_id)
        .group_by(Control.status)
    )
    if framework_id is not None:
        q = q.where(Control.framework_id == framework_id)
    counts = {status: cnt for status, cnt in (await s.execute(q)).all()}
    total = sum(counts.values())

    distribution = [
        StatusBucket(
            status=status,
            count=cnt,
            percentage=round(cnt / total * 100, 1) if total else 0.0,
        )
        for status, cnt in sorted(counts.items(), key=lambda kv: -kv[1])
    ]
    return ControlStatusOut(
        total_controls=total,
        status_distribution=distribution,
        summary=ControlStatusSummary(
            met=counts.get("MET", 0),
            partial=counts.get("PARTIAL", 0),
            gap=counts.get("GAP", 0),
            not_applicable=counts.get("NOT_APPLICABLE", 0),
        ),
    )


async def get_framework_metrics(s: AsyncSession, organization_id: int) -> list[FrameworkMetric]:
    frameworks = (await s.execute(
        select(Framework)
        .where(Framework.organization_id == organization_id, Framework.is_active.is_(True))
        .order_by(Framework.name)
    )).scalars().all()

    rows = (await s.execute(
        select(Control.framework_id, Control.status, func.count())
        .where(Control.organization_id == organization_id)
        .group_by(Control.framework_id, Control.status)
    )).all()
    by_fw: dict[int, dict[str, int]] = {}
    for fw_id, status, cnt in rows:
        by_fw.setdefault(fw_id, {})[status] = cnt

    metrics = []
    for fw in frameworks:
        counts = by_fw.get(fw.id, {})
        total = sum(counts.values())
        met = counts.get("MET", 0)
        partial = counts.get("PARTIAL", 0)
        na = counts.get("NOT_APPLICABLE", 0)
        metrics.append(FrameworkMetric(
            framework_id=fw.id,
            framework_name=fw.name,
            type=fw.type,
            total_controls=total,
            met=met,
            partial=partial,
            gap=counts.get("GAP", 0),
            not_applicable=na,
            compliance_score=compliance_score(met, partial, total, na),
        ))
    return metrics


async def get_evidence_expiration(s: AsyncSession, organization_id: int, now: datetime | None = None) -> EvidenceExpirationOut:
    now = now or datetime.utcnow()
    base = (Evidence.organization_id == organization_id, Evidence.expiry_date.is_not(None))

    async def _count(*conds) -> int:
        q = select(func.count()).select_from(Evidence).where(*base, *conds)
        return (await s.execute(q)).scalar() or 0

    def _window(days: int):
        return (Evidence.expiry_date >= now, Evidence.expiry_date <= now + timedelta(days=days))

    upcoming = (await s.execute(
        select(Evidence)
        .where(*base, Evidence.expiry_date >= now)
        .order_by(Evidence.expiry_date.asc(), Evidence.id)
        .limit(UPCOMING_LIMIT)
    )).scalars().all()

    return EvidenceExpirationOut(
        expired=await _count(Evidence.expiry_date < now),
        expiring_30=await _count(*_window(30)),
        expiring_60=await _count(*_window(60)),
        expiring_90=await _count(*_window(90)),
        upcoming=[
            ExpiringEvidence(
                id=ev.id, title=ev.title, status=ev.status, expiry_date=ev.expiry_date,
                days_left=(ev.expiry_date - now).days,
            )
            for ev in upcoming
        ],
    )
