from datetime import datetime

from pydantic import BaseModel, Field

QUESTIONNAIRE_STATUS = (
    r"^(UPLOADED|PARSING|PARSED|IN_PROGRESS|UNDER_REVIEW|APPROVED|EXPORTED|DELIVERED|ARCHIVED)$"
)
PRIORITY = r"^(LOW|MEDIUM|HIGH|URGENT)$"


class AnswerOut(BaseModel):
    id: int
    question_id: int
    draft_text: str | None = None
    final_text: str | None = None
    status: str
    source_library_id: int | None = None
    confidence_score: int | None = None
    author_id: int | None = None
    reviewer_id: int | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    revision_notes: str | None = None
    updated_at: datetime
    model_config = {"from_attributes": True}


class SuggestionOut(BaseModel):
    library_entry_id: int
    suggested_text: str
    confidence: float
    reasoning: str
    category: str


class QuestionOut(BaseModel):
    id: int
    order_index: int
    section: str | None = None
    text: str
    question_type: str
    options: list[str] = []
    is_required: bool
    keywords: list[str] = []
    control_mappings: list[str] = []
    framework_mappings: list[str] = []
    risk_level: str
    answer: AnswerOut | None = None
    suggestions: list[SuggestionOut] | None = None


class QuestionnaireSummary(BaseModel):
    id: int
    organization_id: int
    title: str
    client_name: str | None = None
    status: str
    priority: str
    due_date: datetime | None = None
    assigned_to: int | None = None
    total_questions: int
    completed_questions: int
    answered_questions: int = 0
    completion_percentage: float = 0.0
    is_overdue: bool = False
    created_at: datetime


class QuestionnaireDetail(QuestionnaireSummary):
    description: str | None = None
    source_file_name: str | None = None
    source_format: str | None = None
    uploaded_by: int | None = None
    completion_date: datetime | None = None
    questions: list[QuestionOut] = []


class QuestionnaireStats(BaseModel):
    total: int
    in_progress: int
    under_review: int
    approved: int
    overdue: int
    average_completion_days: float | None = None


class AssignRequest(BaseModel):
    assigned_to: int


class StatusUpdate(BaseModel):
    status: str = Field(..., pattern=QUESTIONNAIRE_STATUS)


class AnswerSave(BaseModel):
    draft_text: str = Field(..., min_length=1)
    source_library_id: int | None = None
    confidence_score: int | None = Field(None, ge=0, le=100)


class AnswerSubmit(BaseModel):
    reviewer_id: int | None = None


class AnswerReview(BaseModel):
    decision: str = Field(..., pattern=r"^(APPROVED|REJECTED)$")
    final_text: str | None = None
    rejection_reason: str | None = None
    revision_notes: str | None = None


class ActivityOut(BaseModel):
    id: int
    questionnaire_id: int
    user_id: int | None = None
    action: str
    details: dict | None = None
    created_at: datetime
    model_config = {"from_attributes": True}
