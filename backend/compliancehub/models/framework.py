"""
Organization-scoped GRC models — frameworks adopted by an organization,
their controls and cross-references to the compliance catalogue.
"""
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Framework(Base):
    __tablename__ = "frameworks"
    __table_args__ = (UniqueConstraint("organization_id", "name", name="uq_framework_org_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    version: Mapped[str | None] = mapped_column(String(50))
    description: Mapped[str | None] = mapped_column(Text)
    source: Mapped[str | None] = mapped_column(String(300))
    # SOC2 / ISO27001 / PCI_DSS / HIPAA / GDPR / NIST / CIS / CUSTOM
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Control(Base):
    __tablename__ = "controls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    framework_id: Mapped[int] = mapped_column(ForeignKey("frameworks.id"), nullable=False, index=True)
    code: Mapped[str | None] = mapped_column(String(50))
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    # MET / PARTIAL / GAP / NOT_APPLICABLE
    status: Mapped[str] = mapped_column(String(20), default="GAP", nullable=False)
    criticality: Mapped[str] = mapped_column(String(10), default="MEDIUM", nullable=False)
    owner_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    next_review_date: Mapped[datetime | None] = mapped_column(DateTime)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    updated_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class FrameworkMapping(Base):
    """Maps an organization framework (or one of its controls) to a catalogue clause or external reference."""
    __tablename__ = "framework_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    framework_id: Mapped[int] = mapped_column(ForeignKey("frameworks.id", ondelete="CASCADE"), nullable=False, index=True)
    control_id: Mapped[int | None] = mapped_column(ForeignKey("controls.id", ondelete="CASCADE"))
    compliance_clause_id: Mapped[int | None] = mapped_column(ForeignKey("compliance_clauses.id", ondelete="SET NULL"))
    external_ref: Mapped[str | None] = mapped_column(String(200))
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
