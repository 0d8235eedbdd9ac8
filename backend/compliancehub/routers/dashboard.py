"""
Dashboard API — /api/v1/dashboard

All endpoints require `organization_id` and organization access.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.database import get_session
from compliancehub.middleware.auth import get_current_user, require_organization_access
from compliancehub.models.user import User
from compliancehub.schemas.dashboard import ControlStatusOut, EvidenceExpirationOut, FrameworkMetric
from compliancehub.services import dashboard as svc

router = APIRouter(prefix="/api/v1/dashboard", tags=["Dashboard"])


@router.get(
    "/control-status",
    response_model=ControlStatusOut,
    summary="Control status distribution",
)
async def control_status(
    organization_id: int = Query(...),
    framework_id: int | None = Query(None, description="Limit to one framework"),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, organization_id)
    return await svc.get_control_status(s, organization_id, framework_id)


@router.get(
    "/framework-metrics",
    response_model=list[FrameworkMetric],
    summary="Compliance score per active framework",
)
async def framework_metrics(
    organization_id: int = Query(...),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, organization_id)
    return await svc.get_framework_metrics(s, organization_id)


@router.get(
    "/evidence-expiration",
    response_model=EvidenceExpirationOut,
    summary="Expired and expiring evidence",
)
async def evidence_expiration(
    organization_id: int = Query(...),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    await require_organization_access(s, user, organization_id)
    return await svc.get_evidence_expiration(s, organization_id)
