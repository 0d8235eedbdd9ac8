from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .common import reject_null

RISK_LEVEL = r"^(LOW|MEDIUM|HIGH|CRITICAL)$"
RISK_TOLERANCE = r"^(LOW|MEDIUM|HIGH)$"
REVIEW_STATUS = r"^(PENDING|APPROVED|REJECTED|REQUIRES_REVISION)$"


# ═══════════════════ FRAMEWORKS ═══════════════════

class ComplianceFrameworkCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=300)
    version: str = Field(..., min_length=1, max_length=50)
    description: str | None = None
    effective_date: datetime | None = None
    industry_tags: list[str] = []
    certification_body: str | None = Field(None, max_length=300)
    documentation_url: str | None = Field(None, max_length=500)
    is_active: bool = True


class ComplianceFrameworkUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=300)
    version: str | None = Field(None, min_length=1, max_length=50)
    description: str | None = None
    effective_date: datetime | None = None
    industry_tags: list[str] | None = None
    certification_body: str | None = None
    documentation_url: str | None = None
    is_active: bool | None = None

    reject_nulls = field_validator("is_active")(reject_null)


class ComplianceFrameworkOut(BaseModel):
    id: int
    name: str
    version: str
    description: str | None = None
    effective_date: datetime | None = None
    industry_tags: list[str] = []
    certification_body: str | None = None
    documentation_url: str | None = None
    is_active: bool
    topic_count: int = 0
    clause_count: int = 0
    organization_count: int = 0
    created_at: datetime
    updated_at: datetime
    model_config = {"from_attributes": True}


class ComplianceStatistics(BaseModel):
    total_frameworks: int
    active_frameworks: int
    total_organizations: int
    compliant_organizations: int
    pending_assessments: int
    overdue_items: int


class ComplianceFrameworkList(BaseModel):
    frameworks: list[ComplianceFrameworkOut]
    statistics: ComplianceStatistics


# ═══════════════════ STRUCTURE ═══════════════════

class TopicCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=300)
    description: str | None = None


class TopicUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=300)
    description: str | None = None
    order_index: int | None = Field(None, ge=0)
    is_active: bool | None = None

    reject_nulls = field_validator("name", "order_index", "is_active")(reject_null)


class ComponentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=300)
    description: str | None = None


class ComponentUpdate(TopicUpdate):
    pass


class ClauseCreate(BaseModel):
    clause_id: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1)
    implementation_guidance: str | None = None
    evidence_requirements: str | None = None
    risk_level: str = Field("MEDIUM", pattern=RISK_LEVEL)
    testing_procedures: str | None = None


class ClauseUpdate(BaseModel):
    clause_id: str | None = Field(None, min_length=1, max_length=50)
    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = Field(None, min_length=1)
    implementation_guidance: str | None = None
    evidence_requirements: str | None = None
    risk_level: str | None = Field(None, pattern=RISK_LEVEL)
    testing_procedures: str | None = None
    is_active: bool | None = None

    reject_nulls = field_validator("clause_id", "title", "description", "risk_level", "is_active")(reject_null)


class ClauseOut(BaseModel):
    id: int
    component_id: int
    clause_id: str
    title: str
    description: str
    implementation_guidance: str | None = None
    evidence_requirements: str | None = None
    risk_level: str
    testing_procedures: str | None = None
    is_active: bool
    created_at: datetime
    model_config = {"from_attributes": True}


class ComponentOut(BaseModel):
    id: int
    topic_id: int
    name: str
    description: str | None = None
    order_index: int
    is_active: bool
    clauses: list[ClauseOut] = []
    model_config = {"from_attributes": True}


class TopicOut(BaseModel):
    id: int
    framework_id: int
    name: str
    description: str | None = None
    order_index: int
    is_active: bool
    components: list[ComponentOut] = []
    model_config = {"from_attributes": True}


class ComplianceFrameworkDetail(ComplianceFrameworkOut):
    topics: list[TopicOut] = []


class FrameworkImportResult(BaseModel):
    framework_id: int
    name: str
    version: str
    topics: int
    components: int
    clauses: int


# ═══════════════════ SELECTIONS ═══════════════════

class SelectionCreate(BaseModel):
    organization_id: int
    framework_id: int
    clause_ids: list[int] | None = None
    is_enabled: bool = True
    internal_deadline: datetime | None = None
    risk_tolerance: str = Field("MEDIUM", pattern=RISK_TOLERANCE)
    internal_owner: str | None = Field(None, max_length=200)
    notes: str | None = None


class SelectionUpdate(BaseModel):
    is_enabled: bool | None = None
    internal_deadline: datetime | None = None
    risk_tolerance: str | None = Field(None, pattern=RISK_TOLERANCE)
    internal_owner: str | None = None
    notes: str | None = None

    reject_nulls = field_validator("is_enabled", "risk_tolerance")(reject_null)


class SelectionOut(BaseModel):
    id: int
    organization_id: int
    framework_id: int
    clause_id: int | None = None
    clause_ref: str | None = None
    clause_title: str | None = None
    is_enabled: bool
    internal_deadline: datetime | None = None
    risk_tolerance: str
    internal_owner: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class SelectionGroup(BaseModel):
    framework_id: int
    framework_name: str
    framework_version: str
    selections: list[SelectionOut]


class SelectionStatistics(BaseModel):
    total: int
    enabled: int
    disabled: int
    frameworks_count: int


class SelectionList(BaseModel):
    frameworks: list[SelectionGroup]
    statistics: SelectionStatistics


class SelectionBulkResult(BaseModel):
    selections: list[SelectionOut]
    skipped: int = 0


# ═══════════════════ EVIDENCE SUBMISSIONS ═══════════════════

class SubmissionCreate(BaseModel):
    organization_id: int
    clause_id: int
    file_name: str = Field(..., min_length=1, max_length=500)
    file_path: str = Field(..., min_length=1, max_length=1000)
    file_size: int = Field(..., ge=0)
    mime_type: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    tags: list[str] = []


class SubmissionReview(BaseModel):
    review_status: str
    review_notes: str | None = None


class SubmissionOut(BaseModel):
    id: int
    organization_id: int
    clause_id: int
    clause_ref: str | None = None
    clause_title: str | None = None
    file_name: str
    file_path: str
    file_size: int
    mime_type: str
    description: str | None = None
    tags: list[str] = []
    version: int
    is_latest: bool
    submitted_by: int
    submitter_name: str | None = None
    submitted_at: datetime
    reviewed_by: int | None = None
    reviewed_at: datetime | None = None
    review_status: str
    review_notes: str | None = None


class SubmissionGroup(BaseModel):
    clause_id: int
    clause_ref: str | None = None
    clause_title: str | None = None
    submissions: list[SubmissionOut]


class SubmissionStatistics(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int


class SubmissionList(BaseModel):
    submissions: list[SubmissionOut]
    grouped_by_clause: list[SubmissionGroup]
    statistics: SubmissionStatistics


# ═══════════════════ ASSESSMENTS ═══════════════════

class AssessmentCreate(BaseModel):
    organization_id: int
    clause_id: int
    assessment_type: str = Field(..., pattern=r"^(INITIAL|PERIODIC|FOLLOW_UP|REMEDIATION)$")
    score: int | None = Field(None, ge=0, le=100)
    findings: str | None = None
    recommendations: str | None = None
    next_review_date: datetime | None = None


class AssessmentUpdate(BaseModel):
    status: str | None = Field(None, pattern=r"^(IN_PROGRESS|COMPLETED|CANCELLED)$")
    score: int | None = Field(None, ge=0, le=100)
    findings: str | None = None
    recommendations: str | None = None
    next_review_date: datetime | None = None

    reject_nulls = field_validator("status")(reject_null)


class AssessmentOut(BaseModel):
    id: int
    organization_id: int
    clause_id: int
    assessment_type: str
    assessor_id: int
    score: int | None = None
    status: str
    findings: str | None = None
    recommendations: str | None = None
    next_review_date: datetime | None = None
    assessed_at: datetime
    completed_at: datetime | None = None
    is_overdue: bool = False
    model_config = {"from_attributes": True}
