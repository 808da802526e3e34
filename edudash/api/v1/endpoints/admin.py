# edudash/api/v1/endpoints/admin.py
"""
Admin user management: one endpoint, ``POST {action, data}``.

Actions: create, resetPassword, deleteAuth, bulkCreate.
"""
import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from edudash.core.errors import ServiceError, ValidationFailed
from edudash.core.security import get_current_admin
from edudash.db.session import get_db
from edudash.models.user import User
from edudash.schemas.admin import AdminUserRequest
from edudash.services import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _create(db: Session, data: dict) -> dict:
    user = user_service.create_user(db, data)
    return {"success": True, "userId": user.id}


def _reset_password(db: Session, data: dict) -> dict:
    user_service.reset_password(
        db, user_id=data.get("userId"), new_password=data.get("newPassword")
    )
    return {"success": True}


def _delete_auth(db: Session, data: dict) -> dict:
    user_service.delete_auth(db, user_id=data.get("userId"))
    return {"success": True}


def _bulk_create(db: Session, data: dict) -> dict:
    return {"success": True, "results": user_service.bulk_create(db, data.get("users"))}


ACTIONS = {
    "create": _create,
    "resetPassword": _reset_password,
    "deleteAuth": _delete_auth,
    "bulkCreate": _bulk_create,
}


@router.post("/users")
def manage_users(
    payload: AdminUserRequest,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    handler = ACTIONS.get(payload.action or "")
    if handler is None:
        raise ValidationFailed("Invalid action")

    try:
        return handler(db, payload.data)
    except ServiceError:
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Error in admin users API (action=%s)", payload.action)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(e) or "Internal server error"},
        )
