from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from compliancehub.middleware.auth import PERMISSION_ACTIONS, PERMISSION_MODULES

from .common import reject_null


class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=300)
    slug: str = Field(..., pattern=r"^[a-z0-9][a-z0-9-]*$", max_length=100)
    domain: str | None = Field(None, max_length=255)
    plan: str = Field("free", max_length=30)
    description: str | None = None
    website: str | None = Field(None, max_length=500)
    settings: dict | None = None


class OrganizationUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=300)
    slug: str | None = Field(None, pattern=r"^[a-z0-9][a-z0-9-]*$", max_length=100)
    domain: str | None = None
    status: str | None = Field(None, pattern=r"^(active|inactive|suspended)$")
    plan: str | None = Field(None, max_length=30)
    description: str | None = None
    website: str | None = None
    settings: dict | None = None

    reject_nulls = field_validator("name", "slug", "status", "plan")(reject_null)


class OrganizationOut(BaseModel):
    id: int
    name: str
    slug: str
    domain: str | None = None
    status: str
    plan: str
    description: str | None = None
    website: str | None = None
    settings: dict | None = None
    member_count: int = 0
    created_at: datetime
    updated_at: datetime
    model_config = {"from_attributes": True}


# ── Members ──

class MemberCreate(BaseModel):
    user_id: int
    role: str = Field(..., min_length=1, max_length=100)
    department: str | None = Field(None, max_length=200)


class MemberUpdate(BaseModel):
    role: str | None = Field(None, min_length=1, max_length=100)
    department: str | None = None
    is_active: bool | None = None

    reject_nulls = field_validator("role", "is_active")(reject_null)


class MemberOut(BaseModel):
    id: int
    user_id: int
    user_name: str | None = None
    user_email: str | None = None
    organization_id: int
    role: str
    department: str | None = None
    is_active: bool
    joined_at: datetime


# ── Roles ──

def _check_permissions(value: list[str] | None) -> list[str] | None:
    if value is None:
        return value
    for perm in value:
        module, _, action = perm.partition(":")
        if module not in PERMISSION_MODULES or action not in PERMISSION_ACTIONS:
            raise ValueError(f"Unknown permission '{perm}'")
    return sorted(set(value))


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    permissions: list[str] = []

    check_permissions = field_validator("permissions")(_check_permissions)


class RoleUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    permissions: list[str] | None = None
    is_active: bool | None = None

    reject_nulls = field_validator("name", "permissions", "is_active")(reject_null)

    check_permissions = field_validator("permissions")(_check_permissions)


class RoleOut(BaseModel):
    id: int
    organization_id: int
    name: str
    description: str | None = None
    permissions: list[str] = []
    is_active: bool
    created_at: datetime
    model_config = {"from_attributes": True}
