from .base import Base
from .user import User
from .organization import Organization, OrganizationRole, OrganizationUser
from .compliance import (
    ComplianceFramework,
    ComplianceTopic,
    ComplianceComponent,
    ComplianceClause,
    OrganizationComplianceSelection,
    EvidenceSubmission,
    ComplianceAssessment,
)
from .framework import Framework, Control, FrameworkMapping
from .evidence import Evidence, EvidenceVersion, ControlEvidenceLink
from .task import Task
from .answer_library import AnswerLibraryEntry
from .questionnaire import Questionnaire, Question, Answer, QuestionnaireActivity
from .audit import AuditLog

__all__ = [
    "Base",
    "User",
    "Organization", "OrganizationRole", "OrganizationUser",
    "ComplianceFramework", "ComplianceTopic", "ComplianceComponent", "ComplianceClause",
    "OrganizationComplianceSelection", "EvidenceSubmission", "ComplianceAssessment",
    "Framework", "Control", "FrameworkMapping",
    "Evidence", "EvidenceVersion", "ControlEvidenceLink",
    "Task",
    "AnswerLibraryEntry",
    "Questionnaire", "Question", "Answer", "QuestionnaireActivity",
    "AuditLog",
]
