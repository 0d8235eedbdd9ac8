from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .common import Pagination, reject_null

EVIDENCE_TYPE = r"^(DOCUMENT|SCREENSHOT|POLICY|PROCEDURE|REPORT|LOG|CONFIGURATION|OTHER)$"
EVIDENCE_STATUS = r"^(DRAFT|SUBMITTED|APPROVED|REJECTED|EXPIRED|LOCKED)$"


class EvidenceCreate(BaseModel):
    organization_id: int
    title: str = Field(..., min_length=1, max_length=500)
    type: str = Field(..., pattern=EVIDENCE_TYPE)
    description: str | None = None
    file_id: str | None = Field(None, max_length=500)
    url: str | None = Field(None, max_length=1000)
    source: str | None = Field(None, max_length=200)
    status: str = Field("DRAFT", pattern=EVIDENCE_STATUS)
    expiry_date: datetime | None = None
    tags: list[str] = []
    meta: dict | None = None


class EvidenceUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=500)
    type: str | None = Field(None, pattern=EVIDENCE_TYPE)
    description: str | None = None
    url: str | None = None
    source: str | None = None
    status: str | None = Field(None, pattern=EVIDENCE_STATUS)
    expiry_date: datetime | None = None
    tags: list[str] | None = None
    meta: dict | None = None

    reject_nulls = field_validator("title", "type", "status")(reject_null)


class EvidenceOut(BaseModel):
    id: int
    organization_id: int
    title: str
    description: str | None = None
    file_id: str | None = None
    url: str | None = None
    source: str | None = None
    type: str
    status: str
    hash: str | None = None
    version: int
    added_by: int | None = None
    uploader_name: str | None = None
    approved_by: int | None = None
    approved_at: datetime | None = None
    expiry_date: datetime | None = None
    is_expired: bool = False
    tags: list[str] = []
    meta: dict | None = None
    control_count: int = 0
    created_at: datetime
    updated_at: datetime


class EvidencePage(BaseModel):
    evidence: list[EvidenceOut]
    pagination: Pagination


class ControlLinkCreate(BaseModel):
    control_id: int
    link_type: str = Field("supports", max_length=30)
    effectiveness_rating: float = Field(1.0, ge=0, le=1)
    notes: str | None = None


class ControlLinkOut(BaseModel):
    id: int
    control_id: int
    evidence_id: int
    link_type: str
    effectiveness_rating: float
    notes: str | None = None
    created_by: int | None = None
    created_at: datetime
    model_config = {"from_attributes": True}


class EvidenceVersionOut(BaseModel):
    id: int
    evidence_id: int
    version: int
    file_id: str
    original_name: str | None = None
    file_size: int | None = None
    hash: str
    uploaded_by: int | None = None
    change_summary: str | None = None
    created_at: datetime
    model_config = {"from_attributes": True}
