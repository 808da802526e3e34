# edudash/api/v1/endpoints/auth.py
from fastapi import APIRouter, Depends, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from edudash.core.config import settings
from edudash.core.errors import AuthError
from edudash.core.security import (
    authenticate_user,
    create_session_token,
    get_current_user,
)
from edudash.core.validation import normalize_email
from edudash.db.session import get_db
from edudash.models.user import User
from edudash.schemas.auth import LoginRequest, RegisterRequest, SessionInfo, Token
from edudash.schemas.user import UserPublic
from edudash.services import user_service

router = APIRouter()


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


@router.post("/register", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
def register_user(payload: RegisterRequest, db: Session = Depends(get_db)):
    """Self sign-up as a student (or teacher)."""
    return user_service.register_user(
        db,
        {
            "email": payload.email,
            "password": payload.password,
            "displayName": payload.display_name,
            "role": payload.role,
        },
    )


# JSON body login; also sets the __session cookie for page routes
@router.post("/login", response_model=Token)
def login_for_session(
    payload: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    user = authenticate_user(db, normalize_email(payload.email), payload.password)
    if not user:
        raise AuthError("Incorrect email or password")

    token = create_session_token(user.id)
    _set_session_cookie(response, token)
    return Token(access_token=token)


@router.post("/token", response_model=Token)
def login_for_access_token_form(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    """
    OAuth2 password form login (Swagger "Authorize" button).

    The ``username`` field carries the email address.
    """
    email = normalize_email(form_data.username)
    user = authenticate_user(db, email, form_data.password) if email else None
    if not user:
        raise AuthError("Incorrect email or password")
    return Token(access_token=create_session_token(user.id))


@router.post("/session", response_model=SessionInfo)
def verify_session(current_user: User = Depends(get_current_user)):
    return SessionInfo(uid=current_user.id, role=current_user.role)


@router.delete("/session")
def logout(response: Response):
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return {"success": True}
