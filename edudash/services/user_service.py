# edudash/services/user_service.py
"""
Account management: admin actions (create / resetPassword / deleteAuth /
bulkCreate), self sign-up and role changes.

Creating a user writes the login (``auth_accounts``) first and the profile
(``users``) second. If the profile insert fails the login is deleted again so
no orphaned account can sign in.
"""
import logging
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from edudash.core.config import settings
from edudash.core.errors import NotFound, ValidationFailed
from edudash.core.security import get_password_hash
from edudash.core.validation import (
    is_valid_account_type,
    is_valid_display_name,
    is_valid_institution_id,
    is_valid_password,
    is_valid_role,
    normalize_email,
    sanitize_display_name,
)
from edudash.models.user import AuthAccount, User
from edudash.services.gamify_service import XP_REWARDS, award_xp

logger = logging.getLogger(__name__)

SELF_SIGNUP_ROLES = ("student", "teacher")


def validate_new_user(data: dict[str, Any]) -> dict[str, Any]:
    """Check an incoming user payload and return the cleaned fields.

    Raises ValidationFailed with a message naming the offending field.
    """
    if not isinstance(data, dict):
        raise ValidationFailed("Invalid user data")

    email = normalize_email(data.get("email"))
    if email is None:
        raise ValidationFailed("Invalid email format")

    display_name = data.get("displayName", data.get("display_name"))
    if not is_valid_display_name(display_name):
        raise ValidationFailed("Display name must be between 2 and 100 characters")

    role = data.get("role") or "student"
    if not is_valid_role(role):
        raise ValidationFailed(
            "Invalid role. Must be: student, teacher, admin, institution, or dev"
        )

    password = data.get("password") or settings.DEFAULT_TEMP_PASSWORD
    if not is_valid_password(password):
        raise ValidationFailed(
            "Password must be at least 8 characters and contain uppercase, "
            "lowercase, and a number"
        )

    institution_id = data.get("institutionId", data.get("institution_id"))
    if institution_id is not None and not is_valid_institution_id(institution_id):
        raise ValidationFailed("Invalid institutionId")

    account_type = data.get("accountType", data.get("account_type")) or "individual"
    if not is_valid_account_type(account_type):
        raise ValidationFailed("Invalid accountType. Must be: individual or institution")

    return {
        "email": email,
        "display_name": sanitize_display_name(display_name),
        "role": role,
        "password": password,
        "institution_id": institution_id,
        "account_type": account_type,
    }


def email_taken(db: Session, email: str) -> bool:
    if db.query(AuthAccount).filter(AuthAccount.email == email).first():
        return True
    return db.query(User).filter(User.email == email).first() is not None


def _insert_profile(db: Session, account: AuthAccount, fields: dict[str, Any]) -> User:
    profile = User(
        id=account.id,
        email=fields["email"],
        display_name=fields["display_name"],
        role=fields["role"],
        xp=0,
        level=1,
        badges=[],
        streak=0,
        institution_id=fields["institution_id"],
        account_type=fields["account_type"],
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


def _delete_account(db: Session, account_id: int) -> None:
    account = db.get(AuthAccount, account_id)
    if account is not None:
        db.delete(account)
        db.commit()


def create_user(db: Session, data: dict[str, Any]) -> User:
    fields = validate_new_user(data)
    if email_taken(db, fields["email"]):
        raise ValidationFailed("Email already registered")

    account = AuthAccount(
        email=fields["email"],
        password_hash=get_password_hash(fields["password"]),
    )
    db.add(account)
    db.commit()
    db.refresh(account)
    account_id = account.id

    try:
        profile = _insert_profile(db, account, fields)
    except Exception:
        db.rollback()
        logger.exception(
            "Profile insert failed for %s; removing auth account %s",
            fields["email"],
            account_id,
        )
        _delete_account(db, account_id)
        raise

    logger.info("User created: %s (%s)", profile.id, profile.role)
    return profile


def _get_account(db: Session, user_id: Any) -> AuthAccount:
    if isinstance(user_id, bool) or not isinstance(user_id, (int, str)):
        raise ValidationFailed("userId is required")
    try:
        user_id = int(user_id)
    except ValueError:
        raise ValidationFailed("Invalid userId")
    account = db.get(AuthAccount, user_id)
    if account is None:
        raise NotFound("User not found")
    return account


def reset_password(db: Session, *, user_id: Any, new_password: Any) -> None:
    if not is_valid_password(new_password):
        raise ValidationFailed(
            "Password must be at least 8 characters and contain uppercase, "
            "lowercase, and a number"
        )
    account = _get_account(db, user_id)
    account.password_hash = get_password_hash(new_password)
    db.add(account)
    db.commit()
    logger.info("Password reset for user: %s", account.id)


def delete_auth(db: Session, *, user_id: Any) -> None:
    """Remove the login only; the profile row (and its history) stays."""
    account = _get_account(db, user_id)
    db.delete(account)
    db.commit()
    logger.info("Auth user deleted: %s", account.id)


def bulk_create(db: Session, users: Any) -> List[dict[str, Any]]:
    if not isinstance(users, list) or not users:
        raise ValidationFailed("users must be a non-empty list")

    results = []
    for entry in users:
        email = entry.get("email") if isinstance(entry, dict) else None
        try:
            profile = create_user(db, entry)
        except ValidationFailed as e:
            results.append({"success": False, "email": email, "error": e.message})
        except Exception as e:
            logger.exception("Bulk create failed for %s", email)
            results.append({"success": False, "email": email, "error": str(e)})
        else:
            results.append({"success": True, "email": profile.email, "uid": profile.id})

    created = sum(1 for r in results if r["success"])
    logger.info("Bulk created %d of %d users", created, len(results))
    return results


def register_user(db: Session, data: dict[str, Any]) -> User:
    role = data.get("role") or "student"
    if role not in SELF_SIGNUP_ROLES:
        raise ValidationFailed("Self sign-up is only available for students and teachers")
    user = create_user(db, {**data, "role": role})
    return award_xp(db, user_id=user.id, amount=XP_REWARDS["SIGNUP"], reason="signup")


def set_role(db: Session, *, uid: Optional[int], role: Optional[str]) -> User:
    if not uid or not role:
        raise ValidationFailed("uid and role required")
    if not is_valid_role(role):
        raise ValidationFailed("Invalid role")
    user = db.get(User, uid)
    if user is None:
        raise NotFound("User not found")
    user.role = role
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Role of user %s set to %s", user.id, role)
    return user
