"""
Platform user administration — /api/v1/users
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.database import get_session
from compliancehub.middleware.auth import require_platform_admin
from compliancehub.models.user import User
from compliancehub.schemas.auth import UserOut, UserRoleUpdate

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.get("", response_model=list[UserOut], summary="List users")
async def list_users(
    search: str | None = Query(None),
    is_active: bool | None = Query(None),
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    q = select(User)
    if search:
        pattern = f"%{search.lower()}%"
        q = q.where(or_(func.lower(User.email).like(pattern), func.lower(User.name).like(pattern)))
    if is_active is not None:
        q = q.where(User.is_active.is_(is_active))
    return (await s.execute(q.order_by(User.email))).scalars().all()


@router.put("/{user_id}/role", response_model=UserOut, summary="Change platform role or activation")
async def update_user_role(
    user_id: int,
    body: UserRoleUpdate,
    admin: User = Depends(require_platform_admin),
    s: AsyncSession = Depends(get_session),
):
    user = await s.get(User, user_id)
    if not user:
        raise HTTPException(404, "User not found")
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if changes.get("platform_role") == "SUPER_ADMIN" and admin.platform_role != "SUPER_ADMIN":
        raise HTTPException(403, "Only a super admin can grant SUPER_ADMIN")
    if user.id == admin.id and changes.get("is_active") is False:
        raise HTTPException(400, "You cannot deactivate your own account")
    for k, v in changes.items():
        setattr(user, k, v)
    await s.commit()
    await s.refresh(user)
    return user
