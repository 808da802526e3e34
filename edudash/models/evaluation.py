# edudash/models/evaluation.py
import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Float,
    Date,
    DateTime,
    ForeignKey,
    JSON,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from edudash.db.base import Base


class EvaluationMode(str, enum.Enum):
    SINGLE = "single"
    BULK = "bulk"


class BatchStatus(str, enum.Enum):
    DRAFT = "draft"
    GRADING = "grading"
    IN_REVIEW = "in_review"
    FINALIZED = "finalized"
    FAILED = "failed"


class ReviewStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    NEEDS_REVISION = "needs_revision"


class EvaluationBatch(Base):
    __tablename__ = "evaluation_batches"

    id = Column(Integer, primary_key=True, index=True)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    mode = Column(String(10), nullable=False, default=EvaluationMode.BULK.value)
    name = Column(String(200), nullable=False)
    subject = Column(String(100), nullable=False)
    class_section = Column(String(50), nullable=True)
    total_marks = Column(Integer, nullable=False, default=100)
    due_date = Column(Date, nullable=True)

    # single mode: the one student this batch grades
    student_name = Column(String(100), nullable=True)
    roll_no = Column(String(50), nullable=True)

    # draft / grading / in_review / finalized / failed
    status = Column(String(20), nullable=False, default=BatchStatus.DRAFT.value, index=True)
    progress = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)

    question_paper_name = Column(String(255), nullable=True)
    question_paper_type = Column(String(100), nullable=True)
    question_paper_size = Column(Integer, nullable=True)
    question_paper_preview = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
    finalized_at = Column(DateTime(timezone=True), nullable=True)

    answer_sheets = relationship(
        "AnswerSheet",
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="AnswerSheet.position",
    )
    records = relationship(
        "EvaluationRecord",
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="EvaluationRecord.id",
    )


class AnswerSheet(Base):
    __tablename__ = "answer_sheets"

    id = Column(Integer, primary_key=True, index=True)
    batch_id = Column(Integer, ForeignKey("evaluation_batches.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)

    student_name = Column(String(100), nullable=False)
    roll_no = Column(String(50), nullable=False)
    # optional link to the student's account; names stay display-only
    student_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    filename = Column(String(255), nullable=False)
    content_type = Column(String(100), nullable=False)
    size = Column(Integer, nullable=False, default=0)
    preview = Column(Text, nullable=True)

    batch = relationship("EvaluationBatch", back_populates="answer_sheets")


class EvaluationRecord(Base):
    """One student's graded answer sheet inside a batch.

    ``status`` is the single source of truth for the review state; the
    approved/reviewed flags are derived from it.
    """

    __tablename__ = "evaluation_records"

    id = Column(Integer, primary_key=True, index=True)
    batch_id = Column(Integer, ForeignKey("evaluation_batches.id"), nullable=False, index=True)
    answer_sheet_id = Column(Integer, ForeignKey("answer_sheets.id"), nullable=True)

    student_name = Column(String(100), nullable=False)
    roll_no = Column(String(50), nullable=False)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    score = Column(Float, nullable=False, default=0.0)
    total_marks = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=ReviewStatus.PENDING.value, index=True)

    ai_suggestions = Column(JSON, nullable=False, default=list)
    overall_comment = Column(Text, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    batch = relationship("EvaluationBatch", back_populates="records")
    breakdown = relationship(
        "QuestionResult",
        back_populates="record",
        cascade="all, delete-orphan",
        order_by="QuestionResult.question_number",
    )

    @property
    def teacher_approved(self) -> bool:
        return self.status == ReviewStatus.APPROVED.value

    @property
    def teacher_reviewed(self) -> bool:
        return self.status != ReviewStatus.PENDING.value


class QuestionResult(Base):
    __tablename__ = "question_results"

    id = Column(Integer, primary_key=True, index=True)
    record_id = Column(Integer, ForeignKey("evaluation_records.id"), nullable=False, index=True)
    question_number = Column(Integer, nullable=False)

    ai_marks = Column(Float, nullable=False)
    total = Column(Float, nullable=False)
    ai_comment = Column(Text, nullable=False)

    teacher_comment = Column(Text, nullable=True)
    teacher_adjusted_marks = Column(Float, nullable=True)

    record = relationship("EvaluationRecord", back_populates="breakdown")

    @property
    def effective_marks(self) -> float:
        if self.teacher_adjusted_marks is not None:
            return self.teacher_adjusted_marks
        return self.ai_marks
