from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .common import Pagination, reject_null

FRAMEWORK_TYPE = r"^(SOC2|ISO27001|PCI_DSS|HIPAA|GDPR|NIST|CIS|CUSTOM)$"
CONTROL_STATUS = r"^(MET|PARTIAL|GAP|NOT_APPLICABLE)$"
CONTROL_CATEGORY = (
    r"^(ACCESS_CONTROL|AUTHENTICATION|ENCRYPTION|DATA_PROTECTION|NETWORK_SECURITY|"
    r"INCIDENT_RESPONSE|BUSINESS_CONTINUITY|HR|PHYSICAL|GOVERNANCE|OTHER)$"
)
CRITICALITY = r"^(LOW|MEDIUM|HIGH)$"


# ═══════════════════ FRAMEWORKS ═══════════════════

class FrameworkCreate(BaseModel):
    organization_id: int
    name: str = Field(..., min_length=1, max_length=300)
    type: str = Field(..., pattern=FRAMEWORK_TYPE)
    version: str | None = Field(None, max_length=50)
    description: str | None = None
    source: str | None = Field(None, max_length=300)
    is_active: bool = True


class FrameworkUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=300)
    type: str | None = Field(None, pattern=FRAMEWORK_TYPE)
    version: str | None = None
    description: str | None = None
    source: str | None = None
    is_active: bool | None = None

    reject_nulls = field_validator("name", "type", "is_active")(reject_null)


class FrameworkOut(BaseModel):
    id: int
    organization_id: int
    name: str
    version: str | None = None
    description: str | None = None
    source: str | None = None
    type: str
    is_active: bool
    control_count: int = 0
    mapping_count: int = 0
    control_status: dict[str, int] = {}
    created_at: datetime
    updated_at: datetime
    model_config = {"from_attributes": True}


class FrameworkPage(BaseModel):
    frameworks: list[FrameworkOut]
    pagination: Pagination


class MappingCreate(BaseModel):
    control_id: int | None = None
    compliance_clause_id: int | None = None
    external_ref: str | None = Field(None, max_length=200)
    notes: str | None = None


class MappingOut(BaseModel):
    id: int
    framework_id: int
    control_id: int | None = None
    compliance_clause_id: int | None = None
    clause_ref: str | None = None
    external_ref: str | None = None
    notes: str | None = None
    created_at: datetime


# ═══════════════════ CONTROLS ═══════════════════

class ControlCreate(BaseModel):
    organization_id: int
    framework_id: int
    name: str = Field(..., min_length=1, max_length=500)
    category: str = Field(..., pattern=CONTROL_CATEGORY)
    code: str | None = Field(None, max_length=50)
    description: str | None = None
    status: str = Field("GAP", pattern=CONTROL_STATUS)
    criticality: str = Field("MEDIUM", pattern=CRITICALITY)
    owner_id: int | None = None
    next_review_date: datetime | None = None


class ControlUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=500)
    category: str | None = Field(None, pattern=CONTROL_CATEGORY)
    code: str | None = None
    description: str | None = None
    status: str | None = Field(None, pattern=CONTROL_STATUS)
    criticality: str | None = Field(None, pattern=CRITICALITY)
    owner_id: int | None = None
    next_review_date: datetime | None = None

    reject_nulls = field_validator("name", "category", "status", "criticality")(reject_null)


class ControlOut(BaseModel):
    id: int
    organization_id: int
    framework_id: int
    framework_name: str | None = None
    code: str | None = None
    name: str
    description: str | None = None
    category: str
    status: str
    criticality: str
    owner_id: int | None = None
    owner_name: str | None = None
    next_review_date: datetime | None = None
    evidence_count: int = 0
    task_count: int = 0
    created_by: int | None = None
    created_at: datetime
    updated_at: datetime


class LinkedEvidenceOut(BaseModel):
    link_id: int
    evidence_id: int
    title: str
    status: str
    link_type: str
    effectiveness_rating: float
    expiry_date: datetime | None = None


class ControlDetail(ControlOut):
    evidence: list[LinkedEvidenceOut] = []


class ControlPage(BaseModel):
    controls: list[ControlOut]
    pagination: Pagination
