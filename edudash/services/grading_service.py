# edudash/services/grading_service.py
"""
AI grading step.

Only a mock grader exists: it never reads the uploaded files and draws a
percentage from ``MOCK_SCORE_BASE + randrange(MOCK_SCORE_SPREAD)``, then
spreads it over a fixed three-question template. A real grader has to
implement the same ``Grader`` protocol.
"""
from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from sqlalchemy.orm import Session

from edudash.core.config import settings
from edudash.models.evaluation import (
    BatchStatus,
    EvaluationBatch,
    EvaluationRecord,
    QuestionResult,
    ReviewStatus,
)

logger = logging.getLogger(__name__)

QUESTION_COUNT = 3
PROGRESS_STEPS = tuple(range(0, 101, 10))

AI_SUGGESTIONS = [
    "Student shows strong conceptual understanding",
    "Minor issues with calculation accuracy",
    "Presentation could be more structured",
]


class GradingError(Exception):
    pass


@dataclass
class QuestionGrade:
    question_number: int
    marks: float
    total: float
    comment: str


@dataclass
class GradeOutcome:
    breakdown: list[QuestionGrade]
    suggestions: list[str] = field(default_factory=list)
    overall_comment: str = ""

    @property
    def score(self) -> float:
        return sum(q.marks for q in self.breakdown)


class Grader(Protocol):
    name: str

    def grade(self, *, student_name: str, total_marks: int) -> GradeOutcome:
        """Grade one answer sheet out of ``total_marks``."""


def split_marks(total_marks: int, parts: int = QUESTION_COUNT) -> list[int]:
    """Split a paper's total over ``parts`` questions; later ones take the remainder."""
    if parts <= 0 or total_marks < parts:
        raise ValueError(f"cannot split {total_marks} marks over {parts} questions")
    base, remainder = divmod(total_marks, parts)
    return [base + (1 if i >= parts - remainder else 0) for i in range(parts)]


def _comment_for(ratio: float) -> str:
    if ratio >= 0.9:
        return "Excellent understanding of the concept. Clear explanation with proper steps."
    if ratio >= 0.75:
        return "Good approach to the problem. Formula applied correctly."
    return "Partially correct. Key steps are missing or incomplete."


class MockGrader:
    name = "mock"

    def __init__(
        self,
        *,
        base: Optional[int] = None,
        spread: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self.base = settings.MOCK_SCORE_BASE if base is None else base
        self.spread = settings.MOCK_SCORE_SPREAD if spread is None else spread
        self.rng = rng or random.Random()

    def grade(self, *, student_name: str, total_marks: int) -> GradeOutcome:
        percent = self.base + (self.rng.randrange(self.spread) if self.spread > 0 else 0)
        percent = min(max(percent, 0), 100)

        breakdown = []
        for number, question_total in enumerate(split_marks(total_marks), start=1):
            marks = min(question_total, round(question_total * percent / 100))
            breakdown.append(
                QuestionGrade(
                    question_number=number,
                    marks=float(marks),
                    total=float(question_total),
                    comment=_comment_for(marks / question_total),
                )
            )

        return GradeOutcome(
            breakdown=breakdown,
            suggestions=list(AI_SUGGESTIONS),
            overall_comment=f"{student_name} demonstrates a sound grasp of the subject matter.",
        )


def get_grader() -> Grader:
    if settings.GRADER_BACKEND == "mock":
        return MockGrader()
    raise GradingError(f"Unknown grader backend: {settings.GRADER_BACKEND}")


def _build_record(batch: EvaluationBatch, sheet, outcome: GradeOutcome) -> EvaluationRecord:
    record = EvaluationRecord(
        answer_sheet_id=sheet.id,
        student_id=sheet.student_id,
        student_name=sheet.student_name,
        roll_no=sheet.roll_no,
        total_marks=batch.total_marks,
        score=outcome.score,
        status=ReviewStatus.PENDING.value,
        ai_suggestions=outcome.suggestions,
        overall_comment=outcome.overall_comment,
    )
    record.breakdown = [
        QuestionResult(
            question_number=q.question_number,
            ai_marks=q.marks,
            total=q.total,
            ai_comment=q.comment,
        )
        for q in outcome.breakdown
    ]
    return record


def run_grading(
    db: Session,
    batch_id: int,
    *,
    grader: Optional[Grader] = None,
    step_delay: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> EvaluationBatch:
    """
    Grade every answer sheet of a batch that is in ``grading`` state.

    - progress moves through 0, 10, ..., 100 (one commit per step)
    - one pending EvaluationRecord per answer sheet
    - status: 'grading' -> 'in_review' ('failed' on error)
    """
    batch: Optional[EvaluationBatch] = db.get(EvaluationBatch, batch_id)
    if batch is None:
        raise GradingError(f"evaluation batch {batch_id} not found")
    if batch.status != BatchStatus.GRADING.value:
        raise GradingError(f"evaluation batch {batch_id} is {batch.status}, not grading")

    grader = grader or get_grader()
    delay = settings.GRADING_STEP_DELAY if step_delay is None else step_delay

    try:
        for step in PROGRESS_STEPS:
            if delay > 0:
                sleep(delay)
            batch.progress = step
            db.add(batch)
            db.commit()

        batch.records = [
            _build_record(
                batch,
                sheet,
                grader.grade(student_name=sheet.student_name, total_marks=batch.total_marks),
            )
            for sheet in batch.answer_sheets
        ]
        batch.status = BatchStatus.IN_REVIEW.value
        batch.error_message = None
        db.add(batch)
        db.commit()
    except Exception as e:
        db.rollback()
        batch.status = BatchStatus.FAILED.value
        batch.error_message = str(e)
        batch.updated_at = datetime.now(timezone.utc)
        db.add(batch)
        db.commit()
        logger.error("Grading failed for batch %s: %s", batch_id, e, exc_info=True)
        raise GradingError(f"grading failed for batch {batch_id}: {e}") from e

    db.refresh(batch)
    logger.info(
        "Graded batch %s with %s: %d records", batch_id, grader.name, len(batch.records)
    )
    return batch
