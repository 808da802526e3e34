# edudash/core/validation.py
"""
Input validation and sanitising helpers shared by the admin, auth and
gamification endpoints.
"""
import re
from typing import Optional

from email_validator import EmailNotValidError, validate_email

VALID_ROLES = ("student", "teacher", "admin", "institution", "dev")
VALID_ACCOUNT_TYPES = ("individual", "institution")

_TAG_RE = re.compile(r"<[^>]*>")
_SCRIPT_RE = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_INSTITUTION_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{3,50}$")
_BADGE_ID_RE = re.compile(r"^[a-z0-9-]{3,50}$")


def normalize_email(email) -> Optional[str]:
    """Return the canonical lower-cased address, or None when it is not valid.

    Uses the same checks as pydantic's ``EmailStr`` so an address accepted
    here is also accepted by the login endpoints.
    """
    if not isinstance(email, str) or not email.strip():
        return None
    try:
        result = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError:
        return None
    return result.normalized.lower()


def is_valid_email(email) -> bool:
    return normalize_email(email) is not None


def sanitize_display_name(name) -> str:
    """Strip tags and quote characters, trim, and cap at 100 chars."""
    if not isinstance(name, str):
        return ""
    cleaned = _TAG_RE.sub("", name.strip())
    cleaned = re.sub(r"[<>'\"]", "", cleaned)
    return cleaned[:100]


def is_valid_display_name(name) -> bool:
    sanitized = sanitize_display_name(name)
    return 2 <= len(sanitized) <= 100


def is_valid_password(password) -> bool:
    """8+ chars with at least one uppercase, one lowercase and one digit."""
    if not isinstance(password, str) or len(password) < 8:
        return False
    return (
        re.search(r"[A-Z]", password) is not None
        and re.search(r"[a-z]", password) is not None
        and re.search(r"[0-9]", password) is not None
    )


def is_valid_role(role) -> bool:
    return role in VALID_ROLES


def is_valid_account_type(account_type) -> bool:
    return account_type in VALID_ACCOUNT_TYPES


def is_valid_institution_id(institution_id) -> bool:
    if not isinstance(institution_id, str) or not institution_id.strip():
        return False
    return bool(_INSTITUTION_ID_RE.match(institution_id))


def sanitize_text(text, max_length: int = 500) -> str:
    if not isinstance(text, str):
        return ""
    cleaned = _SCRIPT_RE.sub("", text.strip())
    cleaned = _TAG_RE.sub("", cleaned)
    return cleaned[:max_length]


def is_valid_xp_amount(amount) -> bool:
    # bool is an int subclass; True must not count as 1 XP
    if isinstance(amount, bool) or not isinstance(amount, int):
        return False
    return 0 < amount <= 1000


def is_valid_badge_id(badge_id) -> bool:
    if not isinstance(badge_id, str) or not badge_id.strip():
        return False
    return bool(_BADGE_ID_RE.match(badge_id))
