# edudash/services/gamify_service.py
"""XP, levels and badges."""
import logging
import math
from typing import Any, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from edudash.core.errors import NotFound, ValidationFailed
from edudash.core.validation import is_valid_badge_id, is_valid_xp_amount
from edudash.models.activity import Activity
from edudash.models.user import User
from edudash.schemas.gamify import LeaderboardEntry
from edudash.services import notification_service
from edudash.services.realtime import publish_change

logger = logging.getLogger(__name__)

XP_REWARDS = {
    "SIGNUP": 10,
    "FIRST_UPLOAD": 50,
    "EVALUATION_COMPLETE": 20,
    "PERFECT_SCORE": 100,
    "DAILY_LOGIN": 5,
    "TEACHER_REVIEW": 15,
    "BADGE_EARNED": 30,
}

MAX_REASON_LENGTH = 200


def calculate_level(xp: int) -> int:
    return math.floor(math.sqrt(max(xp, 0) / 100)) + 1


def xp_for_next_level(current_level: int) -> int:
    return (current_level ** 2) * 100


def level_progress(xp: int) -> float:
    """Percent (0-100) of the way from the current level to the next."""
    level = calculate_level(xp)
    current_level_xp = xp_for_next_level(level - 1)
    next_level_xp = xp_for_next_level(level)
    progress = (xp - current_level_xp) / (next_level_xp - current_level_xp) * 100
    return min(max(progress, 0.0), 100.0)


def coerce_user_id(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationFailed("Bad Request: Invalid userId format")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationFailed("Bad Request: Invalid userId format")


def _lock_user(db: Session, user_id: int) -> User:
    # row lock on Postgres so concurrent awards do not lose updates
    user = db.query(User).filter(User.id == user_id).with_for_update().first()
    if user is None:
        raise NotFound("Not Found: User does not exist")
    return user


def award_xp(
    db: Session,
    *,
    user_id: int,
    amount: Any,
    reason: Any,
    awarded_by: Optional[User] = None,
    commit: bool = True,
) -> User:
    if not is_valid_xp_amount(amount):
        raise ValidationFailed("Bad Request: XP amount must be between 1 and 1000")
    if (
        not isinstance(reason, str)
        or not reason.strip()
        or len(reason) > MAX_REASON_LENGTH
    ):
        raise ValidationFailed("Bad Request: Reason must be 1-200 characters")

    user = _lock_user(db, user_id)
    user.xp = (user.xp or 0) + amount
    user.level = calculate_level(user.xp)
    db.add(user)
    db.add(
        Activity(
            user_id=user.id,
            awarded_by=awarded_by.id if awarded_by else None,
            type="xp_awarded",
            xp_amount=amount,
            reason=reason.strip(),
        )
    )
    if commit:
        db.commit()
        db.refresh(user)

    logger.info(
        "Awarded %s XP to user %s: %s (total: %s, level: %s)",
        amount,
        user.id,
        reason,
        user.xp,
        user.level,
    )
    return user


def award_badge(
    db: Session,
    *,
    user_id: int,
    badge_id: Any,
    awarded_by: Optional[User] = None,
) -> bool:
    """Returns False when the user already holds the badge."""
    if not is_valid_badge_id(badge_id):
        raise ValidationFailed("Bad Request: Invalid badgeId format")

    user = _lock_user(db, user_id)
    current = list(user.badges or [])
    if badge_id in current:
        logger.info("Badge %s already awarded to user %s", badge_id, user.id)
        return False

    # reassign so the JSON column is flagged dirty
    user.badges = current + [badge_id]
    db.add(user)
    db.add(
        Activity(
            user_id=user.id,
            awarded_by=awarded_by.id if awarded_by else None,
            type="badge_awarded",
            badge_id=badge_id,
        )
    )
    notification_service.create_notification(
        db,
        user_id=user.id,
        sender=awarded_by,
        type="badge",
        title="New badge earned",
        message=f"You earned the '{badge_id}' badge.",
        metadata={"badgeId": badge_id},
        commit=False,
    )
    db.commit()
    publish_change(user.id)

    logger.info("Awarded badge %s to user %s", badge_id, user.id)
    return True



LEADERBOARD_SCOPES = ("global", "institution")


def leaderboard(
    db: Session,
    *,
    scope: str = "global",
    institution_id: Optional[str] = None,
    limit: int = 20,
) -> list[LeaderboardEntry]:
    """Students ranked by XP, optionally restricted to one institution."""
    if scope not in LEADERBOARD_SCOPES:
        raise ValidationFailed("Invalid scope. Must be: global or institution")

    query = db.query(User).filter(User.role == "student")
    if scope == "institution":
        if not institution_id:
            raise ValidationFailed("Institution leaderboard needs an institution")
        query = query.filter(User.institution_id == institution_id)

    students = query.order_by(User.xp.desc(), User.id).limit(limit).all()
    return [
        LeaderboardEntry(
            rank=index + 1,
            uid=student.id,
            name=student.display_name,
            xp=student.xp,
            level=student.level,
            streak=student.streak,
            institution_id=student.institution_id,
        )
        for index, student in enumerate(students)
    ]


def rank_of(db: Session, user: User) -> Optional[int]:
    """Global rank of a student, in the same order as ``leaderboard``."""
    if user.role != "student":
        return None
    ahead = (
        db.query(User)
        .filter(
            User.role == "student",
            or_(User.xp > user.xp, and_(User.xp == user.xp, User.id < user.id)),
        )
        .count()
    )
    return ahead + 1
