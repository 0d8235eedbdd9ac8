from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .common import reject_null

LIBRARY_CATEGORY = (
    r"^(ACCESS_CONTROL|DATA_PROTECTION|INCIDENT_RESPONSE|NETWORK_SECURITY|PHYSICAL_SECURITY|"
    r"BUSINESS_CONTINUITY|VENDOR_MANAGEMENT|COMPLIANCE_FRAMEWORK|GENERAL_SECURITY|CUSTOM)$"
)


class LibraryEntryCreate(BaseModel):
    organization_id: int
    category: str = Field(..., pattern=LIBRARY_CATEGORY)
    subcategory: str | None = Field(None, max_length=200)
    key_phrases: list[str] = Field(..., min_length=1)
    standard_answer: str = Field(..., min_length=1)
    evidence_references: list[str] = []
    meta: dict | None = None


class LibraryEntryUpdate(BaseModel):
    category: str | None = Field(None, pattern=LIBRARY_CATEGORY)
    subcategory: str | None = None
    key_phrases: list[str] | None = None
    standard_answer: str | None = Field(None, min_length=1)
    evidence_references: list[str] | None = None
    confidence_score: int | None = Field(None, ge=0, le=100)
    is_active: bool | None = None
    meta: dict | None = None

    reject_nulls = field_validator(
        "category", "key_phrases", "standard_answer", "confidence_score", "is_active",
    )(reject_null)


class LibraryEntryOut(BaseModel):
    id: int
    organization_id: int
    category: str
    subcategory: str | None = None
    key_phrases: list[str] = []
    standard_answer: str
    evidence_references: list[str] = []
    usage_count: int
    confidence_score: int
    last_used_at: datetime | None = None
    last_updated: datetime
    created_by: int | None = None
    is_active: bool
    meta: dict | None = None
    created_at: datetime
    model_config = {"from_attributes": True}


class LibraryStats(BaseModel):
    total: int
    active: int
    total_usage: int
    average_confidence: float
    category_breakdown: dict[str, int]
    most_used: list[LibraryEntryOut]
    recently_updated: list[LibraryEntryOut]


class LibraryImportRequest(BaseModel):
    organization_id: int
    csv_data: str = Field(..., min_length=1)


class LibraryImportResult(BaseModel):
    imported: int
    errors: list[str]


class ImprovementOut(BaseModel):
    entry_id: int
    category: str
    subcategory: str | None = None
    priority: str
    issue: str
    suggestion: str
