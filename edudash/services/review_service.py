# edudash/services/review_service.py
"""
Teacher review of graded records.

Record states::

    pending --approve--> approved --undo--> pending
    pending --revise---> needs_revision --approve--> approved
    approved --revise--> needs_revision

Every mutation is one transaction and only runs while the batch is
``in_review``. Finalizing needs at least one approved record; if records are
still pending or need revision the caller has to confirm explicitly.
"""
import logging
import math
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from edudash.core.errors import Conflict, NotFound, ValidationFailed
from edudash.core.validation import sanitize_text
from edudash.models.evaluation import (
    BatchStatus,
    EvaluationBatch,
    EvaluationRecord,
    QuestionResult,
    ReviewStatus,
)
from edudash.models.user import User
from edudash.schemas.evaluation import ReviewSummary
from edudash.services import notification_service
from edudash.services.gamify_service import XP_REWARDS, award_xp
from edudash.services.realtime import publish_change

logger = logging.getLogger(__name__)

MAX_XP_AWARD = 1000
MAX_COMMENT_LENGTH = 2000

# action -> (allowed source states, target state)
TRANSITIONS = {
    "approve": (
        (ReviewStatus.PENDING.value, ReviewStatus.NEEDS_REVISION.value),
        ReviewStatus.APPROVED.value,
    ),
    "revise": (
        (ReviewStatus.PENDING.value, ReviewStatus.APPROVED.value),
        ReviewStatus.NEEDS_REVISION.value,
    ),
    "undo": (
        (ReviewStatus.APPROVED.value,),
        ReviewStatus.PENDING.value,
    ),
}


def summarize(batch: EvaluationBatch) -> ReviewSummary:
    statuses = [r.status for r in batch.records]
    approved = statuses.count(ReviewStatus.APPROVED.value)
    return ReviewSummary(
        total=len(statuses),
        approved_count=approved,
        needs_revision_count=statuses.count(ReviewStatus.NEEDS_REVISION.value),
        pending_count=statuses.count(ReviewStatus.PENDING.value),
        can_finalize=batch.status == BatchStatus.IN_REVIEW.value and approved > 0,
        approved_label=f"{approved}/{len(statuses)}",
    )


def ensure_in_review(batch: EvaluationBatch) -> None:
    if batch.status != BatchStatus.IN_REVIEW.value:
        raise Conflict(
            f"Evaluation is {batch.status}; review actions need it to be in_review",
            status=batch.status,
        )


def get_record(batch: EvaluationBatch, record_id: int) -> EvaluationRecord:
    for record in batch.records:
        if record.id == record_id:
            return record
    raise NotFound("Record not found")


def _get_question(record: EvaluationRecord, question_number: int) -> QuestionResult:
    for question in record.breakdown:
        if question.question_number == question_number:
            return question
    raise NotFound("Question not found")


def _ensure_editable(record: EvaluationRecord) -> None:
    if record.status == ReviewStatus.APPROVED.value:
        raise Conflict("Record is approved; undo the approval before editing")


def transition(
    db: Session, *, batch: EvaluationBatch, record_id: int, action: str
) -> EvaluationRecord:
    if action not in TRANSITIONS:
        raise ValidationFailed(f"Unknown review action: {action}")
    ensure_in_review(batch)
    record = get_record(batch, record_id)

    sources, target = TRANSITIONS[action]
    if record.status not in sources:
        raise Conflict(
            f"Cannot {action} a record that is {record.status}",
            status=record.status,
        )

    record.status = target
    record.reviewed_at = None if target == ReviewStatus.PENDING.value else datetime.now(timezone.utc)
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("Record %s of evaluation %s: %s -> %s", record.id, batch.id, action, target)
    return record


def approve(db: Session, *, batch: EvaluationBatch, record_id: int) -> EvaluationRecord:
    return transition(db, batch=batch, record_id=record_id, action="approve")


def revise(db: Session, *, batch: EvaluationBatch, record_id: int) -> EvaluationRecord:
    return transition(db, batch=batch, record_id=record_id, action="revise")


def undo(db: Session, *, batch: EvaluationBatch, record_id: int) -> EvaluationRecord:
    return transition(db, batch=batch, record_id=record_id, action="undo")


def approve_all(db: Session, *, batch: EvaluationBatch) -> int:
    """Approve every record; returns how many changed state."""
    ensure_in_review(batch)
    now = datetime.now(timezone.utc)
    changed = 0
    for record in batch.records:
        if record.status != ReviewStatus.APPROVED.value:
            record.status = ReviewStatus.APPROVED.value
            record.reviewed_at = now
            changed += 1
    db.add(batch)
    db.commit()
    db.refresh(batch)
    logger.info("Approved %d records of evaluation %s", changed, batch.id)
    return changed


def recompute_score(record: EvaluationRecord) -> float:
    record.score = sum(q.effective_marks for q in record.breakdown)
    return record.score


def update_marks(
    db: Session,
    *,
    batch: EvaluationBatch,
    record_id: int,
    question_number: int,
    marks: float,
) -> EvaluationRecord:
    ensure_in_review(batch)
    record = get_record(batch, record_id)
    _ensure_editable(record)
    question = _get_question(record, question_number)
    if not math.isfinite(marks) or marks < 0 or marks > question.total:
        raise ValidationFailed(f"Marks must be between 0 and {question.total:g}")

    question.teacher_adjusted_marks = marks
    recompute_score(record)
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def update_comment(
    db: Session,
    *,
    batch: EvaluationBatch,
    record_id: int,
    question_number: int,
    comment: str,
) -> EvaluationRecord:
    ensure_in_review(batch)
    record = get_record(batch, record_id)
    _ensure_editable(record)
    question = _get_question(record, question_number)
    question.teacher_comment = sanitize_text(comment, max_length=MAX_COMMENT_LENGTH) or None
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def _notify_students(db: Session, *, batch: EvaluationBatch, sender: Optional[User]) -> set[int]:
    """Tell each linked student their approved result is published."""
    notified = set()
    for record in batch.records:
        if record.student_id is None or record.status != ReviewStatus.APPROVED.value:
            continue
        notification_service.create_notification(
            db,
            user_id=record.student_id,
            sender=sender,
            type="evaluation",
            title="New result published",
            message=f"{batch.name}: {record.score:g}/{record.total_marks}",
            action_url="/dashboard/student/evaluations",
            metadata={"evaluationId": batch.id, "recordId": record.id},
            commit=False,
        )
        notified.add(record.student_id)
    return notified


def finalize(
    db: Session,
    *,
    batch: EvaluationBatch,
    confirm_unreviewed: bool = False,
    finalized_by: Optional[User] = None,
) -> EvaluationBatch:
    """
    in_review -> finalized.

    Awards TEACHER_REVIEW XP per approved record to the batch owner and sends
    them an ``evaluation`` notification. Students linked to approved records
    are notified that their result is published. All of it is one commit.
    """
    ensure_in_review(batch)
    summary = summarize(batch)
    if summary.approved_count == 0:
        raise Conflict("Approve at least one record before finalizing", **summary.model_dump())

    unreviewed = summary.pending_count + summary.needs_revision_count
    if unreviewed and not confirm_unreviewed:
        raise Conflict(
            f"{unreviewed} records are not approved; confirm to finalize anyway",
            **summary.model_dump(),
        )

    batch.status = BatchStatus.FINALIZED.value
    batch.finalized_at = datetime.now(timezone.utc)
    db.add(batch)

    xp = min(XP_REWARDS["TEACHER_REVIEW"] * summary.approved_count, MAX_XP_AWARD)
    award_xp(
        db,
        user_id=batch.teacher_id,
        amount=xp,
        reason=f"Reviewed evaluation {batch.name}"[:200],
        awarded_by=finalized_by,
        commit=False,
    )
    notification_service.create_notification(
        db,
        user_id=batch.teacher_id,
        sender=finalized_by,
        type="evaluation",
        title="Evaluation finalized",
        message=(
            f"{batch.name}: {summary.approved_count}/{summary.total} "
            "answer sheets approved."
        ),
        action_url=f"/evaluations/{batch.id}",
        metadata={"evaluationId": batch.id, "approved": summary.approved_count},
        commit=False,
    )
    students = _notify_students(db, batch=batch, sender=finalized_by)
    db.commit()
    db.refresh(batch)
    publish_change(batch.teacher_id)
    for student_id in students:
        publish_change(student_id)

    logger.info(
        "Evaluation %s finalized: %d/%d approved",
        batch.id,
        summary.approved_count,
        summary.total,
    )
    return batch
