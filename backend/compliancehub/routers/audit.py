"""
Audit trail — /api/v1/audit-log

Read-only, platform administrators only. Newest entries first.
"""
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.database import get_session
from compliancehub.middleware.auth import require_platform_admin
from compliancehub.models.audit import AuditLog
from compliancehub.models.user import User
from compliancehub.schemas.audit import AuditEntryListResponse, AuditEntryOut
from compliancehub.schemas.common import Pagination

router = APIRouter(
    prefix="/api/v1/audit-log",
    tags=["Audit Trail"],
    dependencies=[Depends(require_platform_admin)],
)


@router.get("", response_model=AuditEntryListResponse, summary="Browse the change log")
async def list_audit_entries(
    module: str | None = Query(None, description="compliance, evidence, questionnaires, ..."),
    entity_type: str | None = Query(None, description="Table name, e.g. evidence or answers"),
    entity_id: int | None = Query(None),
    action: str | None = Query(None, description="create / update / delete / review / approve"),
    user_id: int | None = Query(None),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    s: AsyncSession = Depends(get_session),
):
    filters = []
    for column, value in (
        (AuditLog.module, module),
        (AuditLog.entity_type, entity_type),
        (AuditLog.entity_id, entity_id),
        (AuditLog.action, action),
        (AuditLog.user_id, user_id),
    ):
        if value is not None:
            filters.append(column == value)
    if date_from:
        filters.append(AuditLog.created_at >= date_from)
    if date_to:
        filters.append(AuditLog.created_at <= date_to)

    total = (await s.execute(select(func.count()).select_from(AuditLog).where(*filters))).scalar() or 0
    rows = (await s.execute(
        select(AuditLog, User.name)
        .outerjoin(User, User.id == AuditLog.user_id)
        .where(*filters)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )).all()

    return AuditEntryListResponse(
        entries=[
            AuditEntryOut(
                id=log.id, user_id=log.user_id, user_name=user_name, module=log.module,
                action=log.action, entity_type=log.entity_type, entity_id=log.entity_id,
                field_name=log.field_name, old_value=log.old_value, new_value=log.new_value,
                ip_address=log.ip_address, created_at=log.created_at,
            )
            for log, user_name in rows
        ],
        pagination=Pagination.build(page, limit, total),
    )
