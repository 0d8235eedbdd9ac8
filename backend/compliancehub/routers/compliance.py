"""
Compliance framework catalogue — /api/v1/compliance/frameworks
"""
import io
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.database import get_session
from compliancehub.middleware.auth import get_current_user, require_platform_admin
from compliancehub.models.compliance import (
    ComplianceAssessment,
    ComplianceFramework,
    OrganizationComplianceSelection,
)
from compliancehub.models.organization import Organization
from compliancehub.models.user import User
from compliancehub.schemas.compliance import (
    ComplianceFrameworkCreate,
    ComplianceFrameworkDetail,
    ComplianceFrameworkList,
    ComplianceFrameworkOut,
    ComplianceFrameworkUpdate,
    ComplianceStatistics,
    FrameworkImportResult,
)
from compliancehub.services.compliance_catalog import delete_framework_tree, framework_counts, framework_tree
from compliancehub.services.compliance_import import (
    DuplicateFrameworkError,
    import_framework,
    parse_excel,
    parse_yaml,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/compliance/frameworks", tags=["Compliance frameworks"])

DUPLICATE_MSG = "Framework with this name and version already exists"


async def _framework_out(s: AsyncSession, fw: ComplianceFramework) -> ComplianceFrameworkOut:
    counts = await framework_counts(s, fw.id)
    return ComplianceFrameworkOut(
        id=fw.id, name=fw.name, version=fw.version, description=fw.description,
        effective_date=fw.effective_date, industry_tags=fw.industry_tags or [],
        certification_body=fw.certification_body, documentation_url=fw.documentation_url,
        is_active=fw.is_active, created_at=fw.created_at, updated_at=fw.updated_at,
        **counts,
    )


async def _get_framework(s: AsyncSession, fw_id: int) -> ComplianceFramework:
    fw = await s.get(ComplianceFramework, fw_id)
    if not fw:
        raise HTTPException(404, "Framework not found")
    return fw


async def _check_duplicate(s: AsyncSession, name: str, version: str, exclude_id: int | None = None) -> None:
    q = select(ComplianceFramework.id).where(
        ComplianceFramework.name == name, ComplianceFramework.version == version,
    )
    if exclude_id is not None:
        q = q.where(ComplianceFramework.id != exclude_id)
    if (await s.execute(q)).first():
        raise HTTPException(409, DUPLICATE_MSG)


async def _statistics(s: AsyncSession) -> ComplianceStatistics:
    now = datetime.utcnow()

    async def count(q) -> int:
        return (await s.execute(q)).scalar() or 0

    return ComplianceStatistics(
        total_frameworks=await count(select(func.count()).select_from(ComplianceFramework)),
        active_frameworks=await count(
            select(func.count()).select_from(ComplianceFramework).where(ComplianceFramework.is_active.is_(True))
        ),
        total_organizations=await count(select(func.count()).select_from(Organization)),
        compliant_organizations=await count(
            select(func.count(func.distinct(OrganizationComplianceSelection.organization_id)))
            .join(Organization, Organization.id == OrganizationComplianceSelection.organization_id)
            .where(OrganizationComplianceSelection.is_enabled.is_(True), Organization.status == "active")
        ),
        pending_assessments=await count(
            select(func.count()).select_from(ComplianceAssessment).where(ComplianceAssessment.status == "IN_PROGRESS")
        ),
        overdue_items=await count(
            select(func.count()).select_from(ComplianceAssessment).where(
                ComplianceAssessment.status == "IN_PROGRESS",
                ComplianceAssessment.next_review_date < now,
            )
        ),
    )


# ═══════════════════ LIST / DETAIL ═══════════════════

@router.get("", response_model=ComplianceFrameworkList, summary="List compliance frameworks")
async def list_frameworks(
    search: str | None = Query(None),
    status: str = Query("all", pattern=r"^(all|active|inactive)$"),
    user: User = Depends(get_current_user),
    s: AsyncSession = Depends(get_session),
):
    q = select(ComplianceFramework)
    if search:
        pattern = f"%{search.lower()}%"
        q = q.where(or_(
            func.lower(ComplianceFramework.name).like(pattern),
            func.lower(ComplianceFramework.description).like(pattern),
            func.lower(ComplianceFramework.certification_body).like(pattern),
            func.lower(cast(ComplianceFramework.industry_tags, String)).like(pattern),
        ))
    if status == "active":
        q = q.where(ComplianceFramework.is_active.is_(True))
    elif status == "inactive":
        q = q.where(ComplianceFramework.is_active.is_(False))
    q = q.order_by(ComplianceFramework.name, ComplianceFramework.version)
    frameworks = (await s.execute(q)).scalars().all()
    return ComplianceFrameworkList(
        frameworks=[await _framework_out(s, fw) for fw in frameworks],
        statistics=await _statistics(s),
    )


@router.get("/{fw_id}", response_model=ComplianceFrameworkDetail, summary="Framework with its structure")
async def get_framework(fw_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    fw = await _get_framework(s, fw_id)
    out = await _framework_out(s, fw)
    return ComplianceFrameworkDetail(**out.model_dump(), topics=await framework_tree(s, fw_id))


# ═══════════════════ CREATE / UPDATE / DELETE ═══════════════════

@router.post("", response_model=ComplianceFrameworkOut, status_code=201, summary="Create compliance framework")
async def create_framework(
    body: ComplianceFrameworkCreate,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    data = body.model_dump()
    data["name"] = data["name"].strip()
    data["version"] = data["version"].strip()
    await _check_duplicate(s, data["name"], data["version"])
    fw = ComplianceFramework(**data)
    s.add(fw)
    await s.commit()
    await s.refresh(fw)
    logger.info("Compliance framework %s %s created by user %s", fw.name, fw.version, admin.id)
    return await _framework_out(s, fw)


@router.put("/{fw_id}", response_model=ComplianceFrameworkOut, summary="Update compliance framework")
async def update_framework(
    fw_id: int,
    body: ComplianceFrameworkUpdate,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    fw = await _get_framework(s, fw_id)
    changes = body.model_dump(exclude_unset=True)
    for key in ("name", "version"):
        if changes.get(key) is not None:
            changes[key] = changes[key].strip()
        elif key in changes:
            del changes[key]
    if "name" in changes or "version" in changes:
        await _check_duplicate(
            s, changes.get("name", fw.name), changes.get("version", fw.version), exclude_id=fw_id,
        )
    for k, v in changes.items():
        setattr(fw, k, v)
    await s.commit()
    await s.refresh(fw)
    return await _framework_out(s, fw)


@router.delete("/{fw_id}", summary="Delete compliance framework")
async def delete_framework(
    fw_id: int,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    fw = await _get_framework(s, fw_id)
    in_use = (await s.execute(
        select(func.count(func.distinct(OrganizationComplianceSelection.organization_id)))
        .where(OrganizationComplianceSelection.framework_id == fw_id)
    )).scalar() or 0
    if in_use:
        raise HTTPException(400, f"Cannot delete framework. {in_use} organizations are using this framework.")
    await delete_framework_tree(s, fw)
    await s.commit()
    logger.info("Compliance framework %s deleted by user %s", fw_id, admin.id)
    return {"status": "deleted", "id": fw_id}


# ═══════════════════ IMPORT ═══════════════════

@router.post("/import", response_model=FrameworkImportResult, status_code=201, summary="Import framework from YAML or Excel")
async def import_framework_file(
    file: UploadFile = File(...),
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    filename = (file.filename or "").lower()
    content = await file.read()
    try:
        if filename.endswith((".yaml", ".yml")):
            data = parse_yaml(io.BytesIO(content))
        elif filename.endswith(".xlsx"):
            data = parse_excel(io.BytesIO(content))
        else:
            raise ValueError("Unsupported file type. Use .yaml, .yml or .xlsx")
        fw, counts = await import_framework(s, data)
    except DuplicateFrameworkError as e:
        await s.rollback()
        raise HTTPException(409, str(e))
    except ValueError as e:
        await s.rollback()
        logger.warning("Framework import of %s failed: %s", file.filename, e)
        raise HTTPException(400, str(e))
    await s.commit()
    return FrameworkImportResult(framework_id=fw.id, name=fw.name, version=fw.version, **counts)
