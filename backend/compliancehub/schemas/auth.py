from datetime import datetime

from pydantic import BaseModel, Field

PLATFORM_ROLE_PATTERN = r"^(SUPER_ADMIN|PLATFORM_ADMIN|PLATFORM_DEVELOPER|PLATFORM_SUPPORT|USER)$"


class RegisterIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    password: str = Field(..., min_length=8, max_length=200)


class LoginIn(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: int
    email: str
    name: str | None = None
    platform_role: str
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime
    model_config = {"from_attributes": True}


class MembershipOut(BaseModel):
    organization_id: int
    organization_name: str
    organization_slug: str
    role: str
    permissions: list[str] = []


class MeOut(UserOut):
    memberships: list[MembershipOut] = []


class UserRoleUpdate(BaseModel):
    platform_role: str | None = Field(None, pattern=PLATFORM_ROLE_PATTERN)
    is_active: bool | None = None
