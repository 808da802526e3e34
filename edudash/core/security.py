# edudash/core/security.py
"""
Session handling and role-based access control.

Every request is authenticated the same way: the session token is read from
the ``__session`` cookie (or an ``Authorization: Bearer`` header), verified,
and the caller's role is loaded from the ``users`` table on each request.
API routes use ``require_roles`` and fail with 401/403; page routes use
``require_page_roles`` and answer with redirects instead.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

from fastapi import Depends, Request
from fastapi.responses import RedirectResponse
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from edudash.core.config import settings
from edudash.core.errors import AuthError, PermissionDenied
from edudash.db.session import get_db
from edudash.models.user import AuthAccount, User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

# dev can open every dashboard; its home is the admin one
ROLE_DASHBOARDS = {
    "student": "/dashboard/student",
    "teacher": "/dashboard/teacher",
    "admin": "/dashboard/admin",
    "institution": "/dashboard/institution",
    "dev": "/dashboard/admin",
}
SUPERUSER_ROLE = "dev"
LOGIN_PATH = "/login"


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_session_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.SESSION_EXPIRE_MINUTES)
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode = {"sub": str(user_id), "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_session_token(token: str) -> Optional[int]:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    sub = payload.get("sub")
    if sub is None:
        return None
    try:
        return int(sub)
    except (TypeError, ValueError):
        return None


def read_session_token(request: Request) -> Optional[str]:
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    scheme, _, credentials = auth_header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None


def resolve_user(db: Session, token: Optional[str]) -> Optional[User]:
    """Verify a session token and load the caller's profile (with its role)."""
    if not token:
        return None
    user_id = decode_session_token(token)
    if user_id is None:
        return None
    # a deleted login invalidates outstanding sessions
    if db.get(AuthAccount, user_id) is None:
        return None
    return db.get(User, user_id)


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    account = db.query(AuthAccount).filter(AuthAccount.email == email).first()
    if account is None or not verify_password(password, account.password_hash):
        return None
    user = db.get(User, account.id)
    if user is None:
        # auth account without a profile cannot sign in
        logger.warning("Auth account %s has no profile row", account.id)
        return None
    account.last_login_at = datetime.now(timezone.utc)
    db.add(account)
    db.commit()
    return user


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    return resolve_user(db, read_session_token(request))


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    token = read_session_token(request)
    if not token:
        raise AuthError("Unauthorized: Session required")
    user = resolve_user(db, token)
    if user is None:
        raise AuthError("Unauthorized: Invalid or expired session")
    return user


def has_role(user: User, allowed: tuple[str, ...]) -> bool:
    return user.role == SUPERUSER_ROLE or user.role in allowed


def require_roles(*roles: str):
    """Dependency factory: the caller must hold one of ``roles`` (or be dev)."""

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if not has_role(current_user, roles):
            logger.warning(
                "User %s (role: %s) denied; requires one of %s",
                current_user.id,
                current_user.role,
                ", ".join(roles),
            )
            raise PermissionDenied("Forbidden")
        return current_user

    return dependency


get_current_teacher = require_roles("teacher", "admin", "institution")
get_current_admin = require_roles("admin")


def dashboard_path_for(role: Optional[str]) -> str:
    return ROLE_DASHBOARDS.get(role or "student", ROLE_DASHBOARDS["student"])


class PageRedirect(Exception):
    def __init__(self, location: str):
        super().__init__(location)
        self.location = location


def login_redirect_location(next_path: str) -> str:
    return f"{LOGIN_PATH}?{urlencode({'next': next_path})}"


def require_page_roles(*roles: str):
    """Page guard: no session -> /login, wrong role -> the caller's own dashboard."""

    def dependency(request: Request, db: Session = Depends(get_db)) -> User:
        user = resolve_user(db, read_session_token(request))
        if user is None:
            raise PageRedirect(login_redirect_location(request.url.path))
        if not has_role(user, roles):
            raise PageRedirect(dashboard_path_for(user.role))
        return user

    return dependency


async def page_redirect_handler(request: Request, exc: PageRedirect) -> RedirectResponse:
    return RedirectResponse(url=exc.location, status_code=303)
