"""
Authentication and authorization guards.

Sessions are cookie based (Starlette SessionMiddleware); after login the
session carries ``user_id``.  Guards return ``None`` when access is allowed
or an ``{"error", "status"}`` dict describing the refusal; ``enforce()``
turns a refusal into an HTTPException.
"""
from __future__ import annotations

import logging

import bcrypt
from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.config import settings
from compliancehub.database import get_session
from compliancehub.models.organization import OrganizationRole, OrganizationUser
from compliancehub.models.user import User

logger = logging.getLogger(__name__)

PERMISSION_MODULES = ("frameworks", "controls", "evidence", "tasks", "approvals", "reports", "audit")
PERMISSION_ACTIONS = ("read", "create", "update", "delete", "approve", "export")


# ============================================================
# PASSWORD HASHING
# ============================================================

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)).decode()


def verify_password(password: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ============================================================
# SESSION USER
# ============================================================

async def get_current_user(request: Request, s: AsyncSession = Depends(get_session)) -> User:
    """Dependency: require an authenticated, active user."""
    user_id = request.session.get("user_id")
    if user_id is None:
        raise HTTPException(401, "Unauthorized")
    user = await s.get(User, user_id)
    if not user or not user.is_active:
        request.session.clear()
        raise HTTPException(401, "Unauthorized")
    return user


# ============================================================
# GUARDS
# ============================================================

def guard_platform_admin(user: User) -> dict | None:
    if user.is_platform_admin:
        return None
    return {"error": "Forbidden", "status": 403}


async def _membership(s: AsyncSession, user_id: int, organization_id: int) -> OrganizationUser | None:
    q = select(OrganizationUser).where(
        OrganizationUser.user_id == user_id,
        OrganizationUser.organization_id == organization_id,
        OrganizationUser.is_active.is_(True),
    )
    return (await s.execute(q)).scalar_one_or_none()


async def guard_organization_access(s: AsyncSession, user: User, organization_id: int) -> dict | None:
    if user.is_platform_admin:
        return None
    if await _membership(s, user.id, organization_id):
        return None
    return {"error": "Access denied to this organization", "status": 403}


async def has_permission(s: AsyncSession, user: User, organization_id: int, module: str, action: str) -> bool:
    """SUPER_ADMIN passes; everyone else needs `module:action` on their organization role."""
    if user.platform_role == "SUPER_ADMIN":
        return True
    membership = await _membership(s, user.id, organization_id)
    if not membership:
        return False
    role = (await s.execute(
        select(OrganizationRole).where(
            OrganizationRole.organization_id == organization_id,
            OrganizationRole.name == membership.role,
            OrganizationRole.is_active.is_(True),
        )
    )).scalar_one_or_none()
    return bool(role and f"{module}:{action}" in (role.permissions or []))


def enforce(refusal: dict | None) -> None:
    if refusal is not None:
        raise HTTPException(refusal["status"], refusal["error"])


async def require_platform_admin(user: User = Depends(get_current_user)) -> User:
    """Dependency: platform administrators only."""
    enforce(guard_platform_admin(user))
    return user


async def require_organization_access(s: AsyncSession, user: User, organization_id: int) -> None:
    enforce(await guard_organization_access(s, user, organization_id))


async def require_permission(s: AsyncSession, user: User, organization_id: int, module: str, action: str) -> None:
    if not await has_permission(s, user, organization_id, module, action):
        logger.info("Permission %s:%s denied for user %s in organization %s",
                    module, action, user.id, organization_id)
        raise HTTPException(403, "Insufficient permissions")
