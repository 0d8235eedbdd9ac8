"""
Compliance catalogue models — platform-managed frameworks broken down into
topics → components → clauses, plus per-organization clause selections,
evidence submissions and clause assessments.
"""
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


# ─── Catalogue ────────────────────────────────────────────────


class ComplianceFramework(Base):
    __tablename__ = "compliance_frameworks"
    __table_args__ = (UniqueConstraint("name", "version", name="uq_compliance_fw_name_version"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    version: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    effective_date: Mapped[datetime | None] = mapped_column(DateTime)
    industry_tags: Mapped[list | None] = mapped_column(JSON, default=list)
    certification_body: Mapped[str | None] = mapped_column(String(300))
    documentation_url: Mapped[str | None] = mapped_column(String(500))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class ComplianceTopic(Base):
    __tablename__ = "compliance_topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    framework_id: Mapped[int] = mapped_column(ForeignKey("compliance_frameworks.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class ComplianceComponent(Base):
    __tablename__ = "compliance_components"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    topic_id: Mapped[int] = mapped_column(ForeignKey("compliance_topics.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class ComplianceClause(Base):
    """Smallest addressable requirement. `clause_id` is the human reference (e.g. A.5.1)."""
    __tablename__ = "compliance_clauses"
    __table_args__ = (UniqueConstraint("component_id", "clause_id", name="uq_clause_in_component"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    component_id: Mapped[int] = mapped_column(ForeignKey("compliance_components.id", ondelete="CASCADE"), nullable=False, index=True)
    clause_id: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    implementation_guidance: Mapped[str | None] = mapped_column(Text)
    evidence_requirements: Mapped[str | None] = mapped_column(Text)
    risk_level: Mapped[str] = mapped_column(String(10), default="MEDIUM", nullable=False)
    testing_procedures: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


# ─── Organization scope ───────────────────────────────────────


class OrganizationComplianceSelection(Base):
    """Which organization opted into which framework / clause.

    clause_id NULL means a framework-level selection.
    """
    __tablename__ = "organization_compliance_selections"
    __table_args__ = (
        UniqueConstraint("organization_id", "framework_id", "clause_id", name="uq_org_fw_clause"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    framework_id: Mapped[int] = mapped_column(ForeignKey("compliance_frameworks.id"), nullable=False, index=True)
    clause_id: Mapped[int | None] = mapped_column(ForeignKey("compliance_clauses.id"))
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    internal_deadline: Mapped[datetime | None] = mapped_column(DateTime)
    risk_tolerance: Mapped[str] = mapped_column(String(10), default="MEDIUM", nullable=False)
    internal_owner: Mapped[str | None] = mapped_column(String(200))
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class EvidenceSubmission(Base):
    """Evidence file submitted against a clause. Versions chain per (organization, clause)."""
    __tablename__ = "evidence_submissions"
    __table_args__ = (
        Index("ix_evidence_sub_org_clause", "organization_id", "clause_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    clause_id: Mapped[int] = mapped_column(ForeignKey("compliance_clauses.id", ondelete="CASCADE"), nullable=False)
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_path: Mapped[str] = mapped_column(String(1000), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    tags: Mapped[list | None] = mapped_column(JSON, default=list)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_latest: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    submitted_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    reviewed_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime)
    # PENDING / APPROVED / REJECTED / REQUIRES_REVISION
    review_status: Mapped[str] = mapped_column(String(20), default="PENDING", nullable=False)
    review_notes: Mapped[str | None] = mapped_column(Text)


class ComplianceAssessment(Base):
    __tablename__ = "compliance_assessments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    clause_id: Mapped[int] = mapped_column(ForeignKey("compliance_clauses.id", ondelete="CASCADE"), nullable=False)
    # INITIAL / PERIODIC / FOLLOW_UP / REMEDIATION
    assessment_type: Mapped[str] = mapped_column(String(20), nullable=False)
    assessor_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    score: Mapped[int | None] = mapped_column(Integer)
    # IN_PROGRESS / COMPLETED / CANCELLED
    status: Mapped[str] = mapped_column(String(20), default="IN_PROGRESS", nullable=False)
    findings: Mapped[str | None] = mapped_column(Text)
    recommendations: Mapped[str | None] = mapped_column(Text)
    next_review_date: Mapped[datetime | None] = mapped_column(DateTime)
    assessed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)
