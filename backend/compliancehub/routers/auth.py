"""
Authentication — /api/v1/auth
"""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.database import get_session
from compliancehub.middleware.auth import get_current_user, hash_password, verify_password
from compliancehub.models.organization import Organization, OrganizationRole, OrganizationUser
from compliancehub.models.user import User
from compliancehub.schemas.auth import LoginIn, MembershipOut, MeOut, RegisterIn, UserOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


async def _memberships(s: AsyncSession, user_id: int) -> list[MembershipOut]:
    rows = (await s.execute(
        select(OrganizationUser, Organization, OrganizationRole)
        .join(Organization, Organization.id == OrganizationUser.organization_id)
        .outerjoin(OrganizationRole, (OrganizationRole.organization_id == OrganizationUser.organization_id)
                   & (OrganizationRole.name == OrganizationUser.role)
                   & OrganizationRole.is_active.is_(True))
        .where(OrganizationUser.user_id == user_id, OrganizationUser.is_active.is_(True))
        .order_by(Organization.name)
    )).all()
    return [
        MembershipOut(
            organization_id=org.id, organization_name=org.name, organization_slug=org.slug,
            role=m.role, permissions=list(role.permissions or []) if role else [],
        )
        for m, org, role in rows
    ]


@router.post("/register", response_model=UserOut, status_code=201, summary="Register a user account")
async def register(body: RegisterIn, request: Request, s: AsyncSession = Depends(get_session)):
    email = body.email.strip().lower()
    exists = (await s.execute(select(User.id).where(func.lower(User.email) == email))).first()
    if exists:
        raise HTTPException(409, "User with this email already exists")
    user = User(email=email, name=body.name.strip(), password_hash=hash_password(body.password))
    s.add(user)
    await s.commit()
    await s.refresh(user)
    request.session["user_id"] = user.id
    logger.info("Registered user %s", user.id)
    return user


@router.post("/login", response_model=UserOut, summary="Log in")
async def login(body: LoginIn, request: Request, s: AsyncSession = Depends(get_session)):
    user = (await s.execute(
        select(User).where(func.lower(User.email) == body.email.strip().lower())
    )).scalar_one_or_none()
    if not user or not user.is_active or not verify_password(body.password, user.password_hash):
        logger.info("Failed login for %s", body.email)
        raise HTTPException(401, "Invalid credentials")
    user.last_login_at = datetime.utcnow()
    await s.commit()
    await s.refresh(user)
    request.session.clear()
    request.session["user_id"] = user.id
    return user


@router.post("/logout", summary="Log out")
async def logout(request: Request):
    request.session.clear()
    return {"status": "logged_out"}


@router.get("/me", response_model=MeOut, summary="Current user with memberships")
async def me(user: User = Depends(get_current_user), s: AsyncSession = Depends(get_session)):
    return MeOut(
        **UserOut.model_validate(user).model_dump(),
        memberships=await _memberships(s, user.id),
    )
