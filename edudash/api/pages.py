# edudash/api/pages.py
"""
Role-gated dashboard pages.

No session redirects to /login, a role outside the page's allow-list
redirects to the caller's own dashboard. dev may open every page.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from edudash.core.security import (
    dashboard_path_for,
    get_optional_user,
    login_redirect_location,
    require_page_roles,
)
from edudash.db.session import get_db
from edudash.models.user import User
from edudash.services import dashboard_service, gamify_service

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("")
def dashboard_home(current_user: User | None = Depends(get_optional_user)):
    if current_user is None:
        return RedirectResponse(login_redirect_location("/dashboard"), status_code=303)
    return RedirectResponse(dashboard_path_for(current_user.role), status_code=303)


@router.get("/student")
def student_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_page_roles("student")),
):
    return dashboard_service.student_summary(db, current_user)


@router.get("/teacher")
def teacher_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_page_roles("teacher")),
):
    return dashboard_service.teacher_summary(db, current_user)


@router.get("/admin")
def admin_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_page_roles("admin")),
):
    return dashboard_service.admin_summary(db, current_user)


@router.get("/institution")
def institution_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_page_roles("institution")),
):
    return dashboard_service.institution_summary(db, current_user)


@router.get("/student/evaluations")
def student_evaluations_page(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_page_roles("student")),
):
    return {
        "stats": dashboard_service.student_stats(db, current_user).model_dump(),
        "evaluations": [
            e.model_dump(mode="json")
            for e in dashboard_service.student_evaluations(db, current_user, limit=50)
        ],
    }


@router.get("/student/leaderboard")
def student_leaderboard_page(
    scope: str = "global",
    db: Session = Depends(get_db),
    current_user: User = Depends(require_page_roles("student")),
):
    entries = gamify_service.leaderboard(
        db, scope=scope, institution_id=current_user.institution_id
    )
    return {
        "scope": scope,
        "entries": [e.model_dump() for e in entries],
        "myRank": gamify_service.rank_of(db, current_user),
    }
