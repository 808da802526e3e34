# edudash/api/v1/endpoints/students.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from edudash.core.security import require_roles
from edudash.db.session import get_db
from edudash.models.user import User
from edudash.schemas.evaluation import StudentEvaluation, StudentStats
from edudash.services import dashboard_service

router = APIRouter(prefix="/students", tags=["students"])

get_current_student = require_roles("student")


@router.get("/me/evaluations", response_model=list[StudentEvaluation])
def my_evaluations(
    limit: int = Query(default=10, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_student),
):
    return dashboard_service.student_evaluations(db, current_user, limit=limit)


@router.get("/me/stats", response_model=StudentStats)
def my_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_student),
):
    return dashboard_service.student_stats(db, current_user)
