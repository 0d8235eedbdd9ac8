"""Initial schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18

Creates: users, organizations (+ members, roles), compliance catalogue
         (frameworks, topics, components, clauses), selections, evidence
         submissions, compliance assessments, organization frameworks,
         controls, mappings, evidence (+ versions, control links), tasks,
         answer library, questionnaires (+ questions, answers, activities),
         audit_log.
"""
from alembic import op
import sqlalchemy as sa

revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # ── 1. Identity / tenancy ─────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("password_hash", sa.String(100), nullable=True),
        sa.Column("platform_role", sa.String(30), server_default="USER", nullable=False),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column("last_login_at", sa.DateTime, nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("slug", sa.String(100), unique=True, nullable=False),
        sa.Column("domain", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), server_default="active", nullable=False),
        sa.Column("plan", sa.String(30), server_default="free", nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("website", sa.String(500), nullable=True),
        sa.Column("settings", sa.JSON, nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "organization_users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.String(100), nullable=False),
        sa.Column("department", sa.String(200), nullable=True),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column("joined_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column("last_active_at", sa.DateTime, nullable=True),
        sa.UniqueConstraint("user_id", "organization_id", name="uq_org_user"),
    )

    op.create_table(
        "organization_roles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("permissions", sa.JSON, nullable=False),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "name", name="uq_org_role_name"),
    )

    # ── 2. Compliance catalogue ───────────────────────────────────
    op.create_table(
        "compliance_frameworks",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("version", sa.String(50), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("effective_date", sa.DateTime, nullable=True),
        sa.Column("industry_tags", sa.JSON, nullable=True),
        sa.Column("certification_body", sa.String(300), nullable=True),
        sa.Column("documentation_url", sa.String(500), nullable=True),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("name", "version", name="uq_compliance_fw_name_version"),
    )

    op.create_table(
        "compliance_topics",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("framework_id", sa.Integer, sa.ForeignKey("compliance_frameworks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("order_index", sa.Integer, server_default="0", nullable=False),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_compliance_topics_framework_id", "compliance_topics", ["framework_id"])

    op.create_table(
        "compliance_components",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("topic_id", sa.Integer, sa.ForeignKey("compliance_topics.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("order_index", sa.Integer, server_default="0", nullable=False),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_compliance_components_topic_id", "compliance_components", ["topic_id"])

    op.create_table(
        "compliance_clauses",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("component_id", sa.Integer, sa.ForeignKey("compliance_components.id", ondelete="CASCADE"), nullable=False),
        sa.Column("clause_id", sa.String(50), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("implementation_guidance", sa.Text, nullable=True),
        sa.Column("evidence_requirements", sa.Text, nullable=True),
        sa.Column("risk_level", sa.String(10), server_default="MEDIUM", nullable=False),
        sa.Column("testing_procedures", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("component_id", "clause_id", name="uq_clause_in_component"),
    )
    op.create_index("ix_compliance_clauses_component_id", "compliance_clauses", ["component_id"])

    # ── 3. Organization compliance scope ──────────────────────────
    op.create_table(
        "organization_compliance_selections",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("framework_id", sa.Integer, sa.ForeignKey("compliance_frameworks.id"), nullable=False),
        sa.Column("clause_id", sa.Integer, sa.ForeignKey("compliance_clauses.id"), nullable=True),
        sa.Column("is_enabled", sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column("internal_deadline", sa.DateTime, nullable=True),
        sa.Column("risk_tolerance", sa.String(10), server_default="MEDIUM", nullable=False),
        sa.Column("internal_owner", sa.String(200), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "framework_id", "clause_id", name="uq_org_fw_clause"),
    )
    op.create_index("ix_organization_compliance_selections_organization_id",
                    "organization_compliance_selections", ["organization_id"])
    op.create_index("ix_organization_compliance_selections_framework_id",
                    "organization_compliance_selections", ["framework_id"])

    op.create_table(
        "evidence_submissions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("clause_id", sa.Integer, sa.ForeignKey("compliance_clauses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("file_name", sa.String(500), nullable=False),
        sa.Column("file_path", sa.String(1000), nullable=False),
        sa.Column("file_size", sa.Integer, nullable=False),
        sa.Column("mime_type", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("tags", sa.JSON, nullable=True),
        sa.Column("version", sa.Integer, server_default="1", nullable=False),
        sa.Column("is_latest", sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column("submitted_by", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("submitted_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column("reviewed_by", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime, nullable=True),
        sa.Column("review_status", sa.String(20), server_default="PENDING", nullable=False),
        sa.Column("review_notes", sa.Text, nullable=True),
    )
    op.create_index("ix_evidence_sub_org_clause", "evidence_submissions", ["organization_id", "clause_id"])

    op.create_table(
        "compliance_assessments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("clause_id", sa.Integer, sa.ForeignKey("compliance_clauses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("assessment_type", sa.String(20), nullable=False),
        sa.Column("assessor_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("score", sa.Integer, nullable=True),
        sa.Column("status", sa.String(20), server_default="IN_PROGRESS", nullable=False),
        sa.Column("findings", sa.Text, nullable=True),
        sa.Column("recommendations", sa.Text, nullable=True),
        sa.Column("next_review_date", sa.DateTime, nullable=True),
        sa.Column("assessed_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column("completed_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_compliance_assessments_organization_id", "compliance_assessments", ["organization_id"])

    # ── 4. Organization frameworks / controls ─────────────────────
    op.create_table(
        "frameworks",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("version", sa.String(50), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("source", sa.String(300), nullable=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "name", name="uq_framework_org_name"),
    )
    op.create_index("ix_frameworks_organization_id", "frameworks", ["organization_id"])

    op.create_table(
        "controls",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("framework_id", sa.Integer, sa.ForeignKey("frameworks.id"), nullable=False),
        sa.Column("code", sa.String(50), nullable=True),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("category", sa.String(30), nullable=False),
        sa.Column("status", sa.String(20), server_default="GAP", nullable=False),
        sa.Column("criticality", sa.String(10), server_default="MEDIUM", nullable=False),
        sa.Column("owner_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("next_review_date", sa.DateTime, nullable=True),
        sa.Column("created_by", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("updated_by", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_controls_organization_id", "controls", ["organization_id"])
    op.create_index("ix_controls_framework_id", "controls", ["framework_id"])

    op.create_table(
        "framework_mappings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("framework_id", sa.Integer, sa.ForeignKey("frameworks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("control_id", sa.Integer, sa.ForeignKey("controls.id", ondelete="CASCADE"), nullable=True),
        sa.Column("compliance_clause_id", sa.Integer, sa.ForeignKey("compliance_clauses.id", ondelete="SET NULL"), nullable=True),
        sa.Column("external_ref", sa.String(200), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_framework_mappings_framework_id", "framework_mappings", ["framework_id"])

    # ── 5. Evidence register ──────────────────────────────────────
    op.create_table(
        "evidence",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("file_id", sa.String(500), nullable=True),
        sa.Column("url", sa.String(1000), nullable=True),
        sa.Column("source", sa.String(200), nullable=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), server_default="DRAFT", nullable=False),
        sa.Column("hash", sa.String(64), nullable=True),
        sa.Column("version", sa.Integer, server_default="1", nullable=False),
        sa.Column("added_by", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_by", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_at", sa.DateTime, nullable=True),
        sa.Column("expiry_date", sa.DateTime, nullable=True),
        sa.Column("tags", sa.JSON, nullable=True),
        sa.Column("metadata", sa.JSON, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_evidence_organization_id", "evidence", ["organization_id"])

    op.create_table(
        "evidence_versions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("evidence_id", sa.Integer, sa.ForeignKey("evidence.id", ondelete="CASCADE"), nullable=False),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("file_id", sa.String(500), nullable=False),
        sa.Column("original_name", sa.String(500), nullable=True),
        sa.Column("file_size", sa.Integer, nullable=True),
        sa.Column("hash", sa.String(64), nullable=False),
        sa.Column("uploaded_by", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("change_summary", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("evidence_id", "version", name="uq_evidence_version"),
    )

    op.create_table(
        "control_evidence_links",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("control_id", sa.Integer, sa.ForeignKey("controls.id", ondelete="CASCADE"), nullable=False),
        sa.Column("evidence_id", sa.Integer, sa.ForeignKey("evidence.id", ondelete="CASCADE"), nullable=False),
        sa.Column("link_type", sa.String(30), server_default="supports", nullable=False),
        sa.Column("effectiveness_rating", sa.Float, server_default="1.0", nullable=False),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_by", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("control_id", "evidence_id", name="uq_control_evidence"),
    )

    # ── 6. Tasks ──────────────────────────────────────────────────
    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("status", sa.String(20), server_default="OPEN", nullable=False),
        sa.Column("priority", sa.String(10), server_default="MEDIUM", nullable=False),
        sa.Column("control_id", sa.Integer, sa.ForeignKey("controls.id", ondelete="SET NULL"), nullable=True),
        sa.Column("evidence_id", sa.Integer, sa.ForeignKey("evidence.id", ondelete="SET NULL"), nullable=True),
        sa.Column("assignee_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("due_date", sa.DateTime, nullable=True),
        sa.Column("completed_at", sa.DateTime, nullable=True),
        sa.Column("completed_by", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_by", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("metadata", sa.JSON, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_tasks_organization_id", "tasks", ["organization_id"])

    # ── 7. Answer library / questionnaires ────────────────────────
    op.create_table(
        "answer_library",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("category", sa.String(30), nullable=False),
        sa.Column("subcategory", sa.String(200), nullable=True),
        sa.Column("key_phrases", sa.JSON, nullable=False),
        sa.Column("standard_answer", sa.Text, nullable=False),
        sa.Column("evidence_references", sa.JSON, nullable=True),
        sa.Column("usage_count", sa.Integer, server_default="0", nullable=False),
        sa.Column("confidence_score", sa.Integer, server_default="50", nullable=False),
        sa.Column("last_used_at", sa.DateTime, nullable=True),
        sa.Column("last_updated", sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column("created_by", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column("metadata", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_answer_library_organization_id", "answer_library", ["organization_id"])

    op.create_table(
        "questionnaires",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("client_name", sa.String(300), nullable=True),
        sa.Column("source_file_name", sa.String(500), nullable=True),
        sa.Column("source_format", sa.String(10), nullable=True),
        sa.Column("status", sa.String(20), server_default="UPLOADED", nullable=False),
        sa.Column("priority", sa.String(10), server_default="MEDIUM", nullable=False),
        sa.Column("due_date", sa.DateTime, nullable=True),
        sa.Column("assigned_to", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("total_questions", sa.Integer, server_default="0", nullable=False),
        sa.Column("completed_questions", sa.Integer, server_default="0", nullable=False),
        sa.Column("uploaded_by", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("completion_date", sa.DateTime, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_questionnaires_organization_id", "questionnaires", ["organization_id"])

    op.create_table(
        "questions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("questionnaire_id", sa.Integer, sa.ForeignKey("questionnaires.id", ondelete="CASCADE"), nullable=False),
        sa.Column("order_index", sa.Integer, server_default="0", nullable=False),
        sa.Column("section", sa.String(300), nullable=True),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("question_type", sa.String(20), server_default="TEXT_INPUT", nullable=False),
        sa.Column("options", sa.JSON, nullable=True),
        sa.Column("is_required", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("keywords", sa.JSON, nullable=True),
        sa.Column("control_mappings", sa.JSON, nullable=True),
        sa.Column("framework_mappings", sa.JSON, nullable=True),
        sa.Column("risk_level", sa.String(10), server_default="MEDIUM", nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_questions_questionnaire_id", "questions", ["questionnaire_id"])

    op.create_table(
        "answers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("question_id", sa.Integer, sa.ForeignKey("questions.id", ondelete="CASCADE"), unique=True, nullable=False),
        sa.Column("draft_text", sa.Text, nullable=True),
        sa.Column("final_text", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), server_default="DRAFT", nullable=False),
        sa.Column("source_library_id", sa.Integer, sa.ForeignKey("answer_library.id", ondelete="SET NULL"), nullable=True),
        sa.Column("confidence_score", sa.Integer, nullable=True),
        sa.Column("author_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("reviewer_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("submitted_at", sa.DateTime, nullable=True),
        sa.Column("approved_at", sa.DateTime, nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        sa.Column("revision_notes", sa.Text, nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "questionnaire_activities",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("questionnaire_id", sa.Integer, sa.ForeignKey("questionnaires.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("details", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_questionnaire_activities_questionnaire_id", "questionnaire_activities", ["questionnaire_id"])

    # ── 8. Audit trail ────────────────────────────────────────────
    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("module", sa.String(50), nullable=False),
        sa.Column("action", sa.Enum("create", "update", "delete", "review", "approve", name="audit_action"), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.Integer, nullable=False),
        sa.Column("field_name", sa.String(100), nullable=True),
        sa.Column("old_value", sa.Text, nullable=True),
        sa.Column("new_value", sa.Text, nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])
    op.create_index("ix_audit_log_entity", "audit_log", ["entity_type", "entity_id"])
    op.create_index("ix_audit_log_module_action", "audit_log", ["module", "action"])


def downgrade() -> None:
    for table in (
        "audit_log",
        "questionnaire_activities", "answers", "questions", "questionnaires", "answer_library",
        "tasks",
        "control_evidence_links", "evidence_versions", "evidence",
        "framework_mappings", "controls", "frameworks",
        "compliance_assessments", "evidence_submissions", "organization_compliance_selections",
        "compliance_clauses", "compliance_components", "compliance_topics", "compliance_frameworks",
        "organization_roles", "organization_users", "organizations", "users",
    ):
        op.drop_table(table)
    sa.Enum(name="audit_action").drop(op.get_bind(), checkfirst=True)
