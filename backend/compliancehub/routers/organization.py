"""
Organizations, memberships and organization roles — /api/v1/organizations
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.database import get_session
from compliancehub.middleware.auth import get_current_user, require_organization_access, require_platform_admin
from compliancehub.models.compliance import OrganizationComplianceSelection
from compliancehub.models.organization import Organization, OrganizationRole, OrganizationUser
from compliancehub.models.user import User
from compliancehub.schemas.organization import (
    MemberCreate, MemberOut, MemberUpdate,
    OrganizationCreate, OrganizationOut, OrganizationUpdate,
    RoleCreate, RoleOut, RoleUpdate,
)

router = APIRouter(prefix="/api/v1/organizations", tags=["Organizations"])


async def _get_org(s: AsyncSession, org_id: int) -> Organization:
    org = await s.get(Organization, org_id)
    if not org:
        raise HTTPException(404, "Organization not found")
    return org


async def _org_out(s: AsyncSession, org: Organization) -> OrganizationOut:
    members = (await s.execute(
        select(func.count()).select_from(OrganizationUser).where(
            OrganizationUser.organization_id == org.id, OrganizationUser.is_active.is_(True),
        )
    )).scalar() or 0
    return OrganizationOut(
        id=org.id, name=org.name, slug=org.slug, domain=org.domain,
        status=org.status, plan=org.plan, description=org.description,
        website=org.website, settings=org.settings, member_count=members,
        created_at=org.created_at, updated_at=org.updated_at,
    )


async def _check_slug(s: AsyncSession, slug: str, exclude_id: int | None = None) -> None:
    q = select(Organization.id).where(Organization.slug == slug)
    if exclude_id is not None:
        q = q.where(Organization.id != exclude_id)
    if (await s.execute(q)).first():
        raise HTTPException(409, "Organization with this slug already exists")


def _member_out(m: OrganizationUser, user: User | None) -> MemberOut:
    return MemberOut(
        id=m.id, user_id=m.user_id,
        user_name=user.name if user else None, user_email=user.email if user else None,
        organization_id=m.organization_id, role=m.role, department=m.department,
        is_active=m.is_active, joined_at=m.joined_at,
    )


# ═══════════════════ ORGANIZATIONS ═══════════════════

@router.get("", response_model=list[OrganizationOut], summary="List organizations")
async def list_organizations(user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    q = select(Organization)
    if not user.is_platform_admin:
        q = q.join(OrganizationUser, OrganizationUser.organization_id == Organization.id).where(
            OrganizationUser.user_id == user.id, OrganizationUser.is_active.is_(True),
        )
    orgs = (await s.execute(q.order_by(Organization.name))).scalars().all()
    return [await _org_out(s, o) for o in orgs]


@router.get("/{org_id}", response_model=OrganizationOut, summary="Organization details")
async def get_organization(org_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    org = await _get_org(s, org_id)
    await require_organization_access(s, user, org_id)
    return await _org_out(s, org)


@router.post("", response_model=OrganizationOut, status_code=201, summary="Create organization")
async def create_organization(
    body: OrganizationCreate,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    await _check_slug(s, body.slug)
    org = Organization(**body.model_dump())
    s.add(org)
    await s.commit()
    await s.refresh(org)
    return await _org_out(s, org)


@router.put("/{org_id}", response_model=OrganizationOut, summary="Update organization")
async def update_organization(
    org_id: int,
    body: OrganizationUpdate,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    org = await _get_org(s, org_id)
    changes = body.model_dump(exclude_unset=True)
    if changes.get("slug"):
        await _check_slug(s, changes["slug"], exclude_id=org_id)
    for k, v in changes.items():
        setattr(org, k, v)
    await s.commit()
    await s.refresh(org)
    return await _org_out(s, org)


@router.delete("/{org_id}", summary="Delete organization")
async def delete_organization(
    org_id: int,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    org = await _get_org(s, org_id)
    members = (await s.execute(
        select(func.count()).select_from(OrganizationUser).where(OrganizationUser.organization_id == org_id)
    )).scalar() or 0
    selections = (await s.execute(
        select(func.count()).select_from(OrganizationComplianceSelection)
        .where(OrganizationComplianceSelection.organization_id == org_id)
    )).scalar() or 0
    if members or selections:
        raise HTTPException(
            400, f"Cannot delete organization. It has {members} members and {selections} compliance selections."
        )
    await s.delete(org)
    await s.commit()
    return {"status": "deleted", "id": org_id}


# ═══════════════════ MEMBERS ═══════════════════

@router.get("/{org_id}/members", response_model=list[MemberOut], summary="Organization members")
async def list_members(org_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    await _get_org(s, org_id)
    await require_organization_access(s, user, org_id)
    rows = (await s.execute(
        select(OrganizationUser, User)
        .join(User, User.id == OrganizationUser.user_id)
        .where(OrganizationUser.organization_id == org_id)
        .order_by(User.email)
    )).all()
    return [_member_out(m, u) for m, u in rows]


@router.post("/{org_id}/members", response_model=MemberOut, status_code=201, summary="Add member")
async def add_member(
    org_id: int,
    body: MemberCreate,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    await _get_org(s, org_id)
    member_user = await s.get(User, body.user_id)
    if not member_user:
        raise HTTPException(404, "User not found")
    existing = (await s.execute(
        select(OrganizationUser.id).where(
            OrganizationUser.organization_id == org_id, OrganizationUser.user_id == body.user_id,
        )
    )).first()
    if existing:
        raise HTTPException(409, "User is already a member of this organization")
    m = OrganizationUser(organization_id=org_id, **body.model_dump())
    s.add(m)
    await s.commit()
    await s.refresh(m)
    return _member_out(m, member_user)


async def _get_member(s: AsyncSession, org_id: int, user_id: int) -> OrganizationUser:
    m = (await s.execute(
        select(OrganizationUser).where(
            OrganizationUser.organization_id == org_id, OrganizationUser.user_id == user_id,
        )
    )).scalar_one_or_none()
    if not m:
        raise HTTPException(404, "Membership not found")
    return m


@router.put("/{org_id}/members/{user_id}", response_model=MemberOut, summary="Update member")
async def update_member(
    org_id: int,
    user_id: int,
    body: MemberUpdate,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    m = await _get_member(s, org_id, user_id)
    for k, v in body.model_dump(exclude_unset=True).items():
        setattr(m, k, v)
    await s.commit()
    await s.refresh(m)
    return _member_out(m, await s.get(User, user_id))


@router.delete("/{org_id}/members/{user_id}", summary="Remove member")
async def remove_member(
    org_id: int,
    user_id: int,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    m = await _get_member(s, org_id, user_id)
    await s.delete(m)
    await s.commit()
    return {"status": "deleted", "id": m.id}


# ═══════════════════ ROLES ═══════════════════

@router.get("/{org_id}/roles", response_model=list[RoleOut], summary="Organization roles")
async def list_roles(org_id: int, user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    await _get_org(s, org_id)
    await require_organization_access(s, user, org_id)
    q = select(OrganizationRole).where(OrganizationRole.organization_id == org_id).order_by(OrganizationRole.name)
    return (await s.execute(q)).scalars().all()


async def _check_role_name(s: AsyncSession, org_id: int, name: str, exclude_id: int | None = None) -> None:
    q = select(OrganizationRole.id).where(OrganizationRole.organization_id == org_id, OrganizationRole.name == name)
    if exclude_id is not None:
        q = q.where(OrganizationRole.id != exclude_id)
    if (await s.execute(q)).first():
        raise HTTPException(409, "Role with this name already exists")


@router.post("/{org_id}/roles", response_model=RoleOut, status_code=201, summary="Create role")
async def create_role(
    org_id: int,
    body: RoleCreate,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    await _get_org(s, org_id)
    await _check_role_name(s, org_id, body.name)
    role = OrganizationRole(organization_id=org_id, **body.model_dump())
    s.add(role)
    await s.commit()
    await s.refresh(role)
    return role


async def _get_role(s: AsyncSession, org_id: int, role_id: int) -> OrganizationRole:
    role = await s.get(OrganizationRole, role_id)
    if not role or role.organization_id != org_id:
        raise HTTPException(404, "Role not found")
    return role


@router.put("/{org_id}/roles/{role_id}", response_model=RoleOut, summary="Update role")
async def update_role(
    org_id: int,
    role_id: int,
    body: RoleUpdate,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    role = await _get_role(s, org_id, role_id)
    changes = body.model_dump(exclude_unset=True)
    if changes.get("name") and changes["name"] != role.name:
        await _check_role_name(s, org_id, changes["name"], exclude_id=role_id)
        # memberships reference roles by name
        members = (await s.execute(
            select(OrganizationUser).where(
                OrganizationUser.organization_id == org_id, OrganizationUser.role == role.name,
            )
        )).scalars().all()
        for m in members:
            m.role = changes["name"]
    for k, v in changes.items():
        setattr(role, k, v)
    await s.commit()
    await s.refresh(role)
    return role


@router.delete("/{org_id}/roles/{role_id}", summary="Delete role")
async def delete_role(
    org_id: int,
    role_id: int,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    role = await _get_role(s, org_id, role_id)
    in_use = (await s.execute(
        select(func.count()).select_from(OrganizationUser).where(
            OrganizationUser.organization_id == org_id, OrganizationUser.role == role.name,
        )
    )).scalar() or 0
    if in_use:
        raise HTTPException(400, f"Cannot delete role. {in_use} members are assigned to it.")
    await s.delete(role)
    await s.commit()
    return {"status": "deleted", "id": role_id}
