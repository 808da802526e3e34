# edudash/api/v1/endpoints/users.py
from fastapi import APIRouter, Depends

from edudash.core.security import get_current_user
from edudash.models.user import User
from edudash.schemas.user import UserPublic

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserPublic)
def read_me(current_user: User = Depends(get_current_user)):
    return current_user
