# edudash/api/v1/endpoints/role.py
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from edudash.core.security import get_optional_user, require_roles
from edudash.db.session import get_db
from edudash.models.user import User
from edudash.schemas.auth import RoleUpdate
from edudash.schemas.user import UserPublic
from edudash.services import user_service

router = APIRouter(prefix="/role", tags=["role"])


@router.get("")
def read_role(current_user: Optional[User] = Depends(get_optional_user)):
    """Role of the caller; ``guest`` without a valid session."""
    if current_user is None:
        return {"role": "guest"}
    return {
        "role": current_user.role,
        "user": UserPublic.model_validate(current_user).model_dump(mode="json"),
    }


@router.post("")
def update_role(
    payload: RoleUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(require_roles("admin")),
):
    user = user_service.set_role(db, uid=payload.uid, role=payload.role)
    return {"success": True, "uid": user.id, "role": user.role}
