# edudash/services/dashboard_service.py
"""Per-role dashboard summaries."""
from sqlalchemy import func
from sqlalchemy.orm import Session

from edudash.core.validation import VALID_ROLES
from edudash.models.evaluation import BatchStatus, EvaluationBatch, EvaluationRecord, ReviewStatus
from edudash.models.user import User
from edudash.schemas.evaluation import StudentEvaluation, StudentStats
from edudash.schemas.user import UserPublic
from edudash.services import gamify_service, notification_service


def _profile(user: User) -> dict:
    return UserPublic.model_validate(user).model_dump(mode="json")


def _percentage(score: float, total: int) -> float:
    return round(score / total * 100, 1) if total else 0.0


def student_evaluations(db: Session, user: User, *, limit: int = 10) -> list[StudentEvaluation]:
    """Approved results of finalized evaluations linked to ``user``, newest first."""
    rows = (
        db.query(EvaluationRecord, EvaluationBatch)
        .join(EvaluationBatch, EvaluationRecord.batch_id == EvaluationBatch.id)
        .filter(
            EvaluationRecord.student_id == user.id,
            EvaluationRecord.status == ReviewStatus.APPROVED.value,
            EvaluationBatch.status == BatchStatus.FINALIZED.value,
        )
        .order_by(EvaluationBatch.finalized_at.desc(), EvaluationRecord.id.desc())
        .limit(limit)
        .all()
    )
    return [
        StudentEvaluation(
            record_id=record.id,
            evaluation_id=batch.id,
            name=batch.name,
            subject=batch.subject,
            score=record.score,
            total_marks=record.total_marks,
            percentage=_percentage(record.score, record.total_marks),
            teacher_comments=[q.teacher_comment for q in record.breakdown if q.teacher_comment],
            evaluated_at=batch.finalized_at,
        )
        for record, batch in rows
    ]


def student_stats(db: Session, user: User) -> StudentStats:
    history = student_evaluations(db, user, limit=50)
    avg = sum(e.percentage for e in history) / len(history) if history else 0
    return StudentStats(
        xp=user.xp,
        level=user.level,
        streak=user.streak,
        tests_completed=len(history),
        avg_score=round(avg),
        rank=gamify_service.rank_of(db, user),
    )


def student_summary(db: Session, user: User) -> dict:
    return {
        "user": _profile(user),
        "xp": user.xp,
        "level": user.level,
        "levelProgress": gamify_service.level_progress(user.xp),
        "nextLevelXp": gamify_service.xp_for_next_level(user.level),
        "badges": list(user.badges or []),
        "streak": user.streak,
        "unreadNotifications": notification_service.get_unread_count(db, user_id=user.id),
        "stats": student_stats(db, user).model_dump(),
        "recentEvaluations": [
            e.model_dump(mode="json") for e in student_evaluations(db, user, limit=5)
        ],
    }


def teacher_summary(db: Session, user: User) -> dict:
    counts = dict(
        db.query(EvaluationBatch.status, func.count(EvaluationBatch.id))
        .filter(EvaluationBatch.teacher_id == user.id)
        .group_by(EvaluationBatch.status)
        .all()
    )
    awaiting_review = (
        db.query(EvaluationRecord)
        .join(EvaluationBatch, EvaluationRecord.batch_id == EvaluationBatch.id)
        .filter(
            EvaluationBatch.teacher_id == user.id,
            EvaluationBatch.status == BatchStatus.IN_REVIEW.value,
            EvaluationRecord.status != ReviewStatus.APPROVED.value,
        )
        .count()
    )
    return {
        "user": _profile(user),
        "evaluations": {s.value: counts.get(s.value, 0) for s in BatchStatus},
        "recordsAwaitingReview": awaiting_review,
        "unreadNotifications": notification_service.get_unread_count(db, user_id=user.id),
    }


def admin_summary(db: Session, user: User) -> dict:
    counts = dict(db.query(User.role, func.count(User.id)).group_by(User.role).all())
    return {
        "user": _profile(user),
        "usersByRole": {role: counts.get(role, 0) for role in VALID_ROLES},
        "totalUsers": sum(counts.values()),
        "totalEvaluations": db.query(EvaluationBatch).count(),
    }


def institution_summary(db: Session, user: User) -> dict:
    members = []
    if user.institution_id:
        members = (
            db.query(User)
            .filter(User.institution_id == user.institution_id, User.id != user.id)
            .order_by(User.display_name)
            .all()
        )
    return {
        "user": _profile(user),
        "institutionId": user.institution_id,
        "students": [_profile(m) for m in members if m.role == "student"],
        "teachers": [_profile(m) for m in members if m.role == "teacher"],
    }
