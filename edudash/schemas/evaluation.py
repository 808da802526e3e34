# edudash/schemas/evaluation.py
from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator

from edudash.models.evaluation import EvaluationMode


class BatchCreate(BaseModel):
    mode: EvaluationMode = EvaluationMode.BULK
    name: str = Field(min_length=1, max_length=200)
    subject: str = Field(min_length=1, max_length=100)
    class_section: str | None = Field(default=None, max_length=50)
    total_marks: int = Field(default=100, ge=3, le=1000)
    due_date: date | None = None

    # single-mode only
    student_name: str | None = Field(default=None, max_length=100)
    roll_no: str | None = Field(default=None, max_length=50)

    @model_validator(mode="after")
    def check_mode_fields(self):
        if self.mode == EvaluationMode.BULK:
            if not self.class_section or self.due_date is None:
                raise ValueError("bulk evaluations need class_section and due_date")
        else:
            if not self.student_name or not self.roll_no:
                raise ValueError("single evaluations need student_name and roll_no")
        return self


class AnswerSheetUpdate(BaseModel):
    student_name: str | None = Field(default=None, min_length=1, max_length=100)
    roll_no: str | None = Field(default=None, min_length=1, max_length=50)
    # null unlinks the sheet from a student account
    student_id: int | None = None


class MarksUpdate(BaseModel):
    marks: float = Field(allow_inf_nan=False)


class CommentUpdate(BaseModel):
    comment: str = Field(max_length=2000)


class FinalizeRequest(BaseModel):
    confirm_unreviewed: bool = False


class AnswerSheetPublic(BaseModel):
    id: int
    position: int
    student_name: str
    roll_no: str
    student_id: int | None = None
    filename: str
    content_type: str
    size: int

    model_config = {"from_attributes": True}


class QuestionResultPublic(BaseModel):
    question_number: int
    ai_marks: float
    total: float
    ai_comment: str
    teacher_comment: str | None = None
    teacher_adjusted_marks: float | None = None

    model_config = {"from_attributes": True}


class RecordPublic(BaseModel):
    id: int
    student_name: str
    roll_no: str
    student_id: int | None = None
    score: float
    total_marks: int
    status: str
    teacher_approved: bool
    teacher_reviewed: bool
    breakdown: list[QuestionResultPublic] = []
    ai_suggestions: list[str] = []
    overall_comment: str | None = None

    model_config = {"from_attributes": True}


class ReviewSummary(BaseModel):
    total: int
    approved_count: int
    needs_revision_count: int
    pending_count: int
    can_finalize: bool
    # "approved/total", shown on the finalize button
    approved_label: str


class BatchPublic(BaseModel):
    id: int
    teacher_id: int
    mode: str
    name: str
    subject: str
    class_section: str | None = None
    total_marks: int
    due_date: date | None = None
    student_name: str | None = None
    roll_no: str | None = None
    status: str
    progress: int
    error_message: str | None = None
    created_at: datetime | None = None
    finalized_at: datetime | None = None
    summary: ReviewSummary


class BatchDetail(BatchPublic):
    question_paper_name: str | None = None
    question_paper_type: str | None = None
    question_paper_preview: str | None = None
    answer_sheets: list[AnswerSheetPublic] = []
    records: list[RecordPublic] = []


class ProgressPublic(BaseModel):
    status: str
    progress: int
    error_message: str | None = None


class StudentEvaluation(BaseModel):
    """A finalized, approved result as its student sees it."""

    record_id: int
    evaluation_id: int
    name: str
    subject: str
    score: float
    total_marks: int
    percentage: float
    teacher_comments: list[str] = []
    evaluated_at: datetime | None = None


class StudentStats(BaseModel):
    xp: int
    level: int
    streak: int
    tests_completed: int
    avg_score: int
    rank: int | None = None
