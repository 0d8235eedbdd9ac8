from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .common import Pagination, reject_null

TASK_TYPE = r"^(EVIDENCE_COLLECTION|EVIDENCE_RENEWAL|CONTROL_REVIEW|GAP_REMEDIATION|POLICY_REVIEW|OTHER)$"
TASK_STATUS = r"^(OPEN|IN_PROGRESS|COMPLETED|CANCELLED)$"
TASK_PRIORITY = r"^(LOW|MEDIUM|HIGH|CRITICAL)$"


class TaskCreate(BaseModel):
    organization_id: int
    type: str = Field(..., pattern=TASK_TYPE)
    title: str | None = Field(None, max_length=500)
    description: str | None = None
    control_id: int | None = None
    evidence_id: int | None = None
    status: str = Field("OPEN", pattern=TASK_STATUS)
    priority: str = Field("MEDIUM", pattern=TASK_PRIORITY)
    assignee_id: int | None = None
    due_date: datetime | None = None
    meta: dict | None = None


class TaskUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = None
    status: str | None = Field(None, pattern=TASK_STATUS)
    priority: str | None = Field(None, pattern=TASK_PRIORITY)
    assignee_id: int | None = None
    due_date: datetime | None = None

    reject_nulls = field_validator("title", "status", "priority")(reject_null)


class TaskOut(BaseModel):
    id: int
    organization_id: int
    title: str
    description: str | None = None
    type: str
    status: str
    priority: str
    control_id: int | None = None
    control_name: str | None = None
    evidence_id: int | None = None
    evidence_title: str | None = None
    assignee_id: int | None = None
    assignee_name: str | None = None
    due_date: datetime | None = None
    completed_at: datetime | None = None
    completed_by: int | None = None
    created_by: int | None = None
    is_overdue: bool = False
    meta: dict | None = None
    created_at: datetime
    updated_at: datetime


class TaskPage(BaseModel):
    tasks: list[TaskOut]
    pagination: Pagination


class TaskGenerateRequest(BaseModel):
    organization_id: int
    types: list[str] | None = Field(None, description="Subset of EVIDENCE_RENEWAL / CONTROL_REVIEW / GAP_REMEDIATION")


class TaskGenerateResult(BaseModel):
    created: int
    by_type: dict[str, int]
    tasks: list[TaskOut]
