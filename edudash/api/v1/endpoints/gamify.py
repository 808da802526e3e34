# edudash/api/v1/endpoints/gamify.py
import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from edudash.core.errors import ServiceError
from edudash.core.security import get_current_user, require_roles
from edudash.db.session import get_db
from edudash.models.user import User
from edudash.schemas.gamify import BadgeAwardRequest, LeaderboardEntry, XpAwardRequest
from edudash.services import gamify_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gamify", tags=["gamify"])

get_current_awarder = require_roles("teacher", "admin")


def _internal_error(e: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": str(e) or "Internal Server Error"},
    )


@router.post("/xp")
def award_xp(
    payload: XpAwardRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_awarder),
):
    try:
        user_id = gamify_service.coerce_user_id(payload.user_id)
        user = gamify_service.award_xp(
            db,
            user_id=user_id,
            amount=payload.amount,
            reason=payload.reason,
            awarded_by=current_user,
        )
    except ServiceError:
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Error awarding XP")
        return _internal_error(e)

    return {
        "success": True,
        "userId": user.id,
        "xp": user.xp,
        "level": user.level,
        "levelProgress": gamify_service.level_progress(user.xp),
    }


@router.post("/badges")
def award_badge(
    payload: BadgeAwardRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_awarder),
):
    try:
        user_id = gamify_service.coerce_user_id(payload.user_id)
        was_awarded = gamify_service.award_badge(
            db,
            user_id=user_id,
            badge_id=payload.badge_id,
            awarded_by=current_user,
        )
    except ServiceError:
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Error awarding badge")
        return _internal_error(e)

    return {
        "success": True,
        "userId": user_id,
        "badgeId": payload.badge_id,
        "wasAwarded": was_awarded,
    }


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
def get_leaderboard(
    scope: str = "global",
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Students by XP; ``scope=institution`` uses the caller's institution."""
    return gamify_service.leaderboard(
        db,
        scope=scope,
        institution_id=current_user.institution_id,
        limit=limit,
    )
