from datetime import datetime

from pydantic import BaseModel


class StatusBucket(BaseModel):
    status: str
    count: int
    percentage: float


class ControlStatusSummary(BaseModel):
    met: int = 0
    partial: int = 0
    gap: int = 0
    not_applicable: int = 0


class ControlStatusOut(BaseModel):
    total_controls: int
    status_distribution: list[StatusBucket]
    summary: ControlStatusSummary


class FrameworkMetric(BaseModel):
    framework_id: int
    framework_name: str
    type: str
    total_controls: int
    met: int
    partial: int
    gap: int
    not_applicable: int
    compliance_score: float | None = None


class ExpiringEvidence(BaseModel):
    id: int
    title: str
    status: str
    expiry_date: datetime
    days_left: int


class EvidenceExpirationOut(BaseModel):
    expired: int
    expiring_30: int
    expiring_60: int
    expiring_90: int
    upcoming: list[ExpiringEvidence]
