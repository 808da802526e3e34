# edudash/api/v1/endpoints/health.py
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from edudash.db.session import get_db
from edudash.workers.queue import GRADING_QUEUE_NAME, redis_available

router = APIRouter(tags=["health"])


@router.get("/live")
def liveness_probe():
    return {"status": "ok"}


@router.get("/db")
def db_health(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"status": "ok"}


@router.get("/queue")
def queue_health():
    if not redis_available():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable", "queue": GRADING_QUEUE_NAME},
        )
    return {"status": "ok", "queue": GRADING_QUEUE_NAME}
