import pytest

from edudash.core.validation import (
    is_valid_badge_id,
    is_valid_display_name,
    is_valid_email,
    is_valid_institution_id,
    is_valid_password,
    is_valid_role,
    is_valid_xp_amount,
    normalize_email,
    sanitize_display_name,
    sanitize_text,
)


@pytest.mark.parametrize(
    "email, expected",
    [
        ("teacher@example.com", True),
        ("first.last+tag@school.org", True),
        ("no-at-sign.example.com", False),
        ("teacher@school", False),
        ("two@@example.com", False),
        ("", False),
        ("   ", False),
        (None, False),
    ],
)
def test_is_valid_email(email, expected):
    assert is_valid_email(email) is expected


def test_normalize_email_lowercases_and_trims():
    assert normalize_email("  Jane.Doe@Example.COM ") == "jane.doe@example.com"
    assert normalize_email("teacher@school") is None
    assert normalize_email(42) is None


def test_sanitize_display_name_strips_markup_and_quotes():
    assert sanitize_display_name("  <b>Ada</b> 'Lovelace' ") == "Ada Lovelace"
    assert sanitize_display_name(42) == ""


def test_display_name_length_is_checked_after_sanitising():
    assert is_valid_display_name("Al")
    assert not is_valid_display_name("<i>A</i>")
    assert not is_valid_display_name("x")
    assert len(sanitize_display_name("y" * 150)) == 100


@pytest.mark.parametrize(
    "password, expected",
    [
        ("Password123", True),
        ("password123", False),
        ("PASSWORD123", False),
        ("Password", False),
        ("Pa1", False),
        (None, False),
    ],
)
def test_is_valid_password(password, expected):
    assert is_valid_password(password) is expected


def test_roles():
    for role in ("student", "teacher", "admin", "institution", "dev"):
        assert is_valid_role(role)
    assert not is_valid_role("superuser")


def test_xp_amount_bounds():
    assert is_valid_xp_amount(1)
    assert is_valid_xp_amount(1000)
    assert not is_valid_xp_amount(0)
    assert not is_valid_xp_amount(1001)
    assert not is_valid_xp_amount(True)
    assert not is_valid_xp_amount(5.0)
    assert not is_valid_xp_amount("10")


def test_badge_and_institution_ids():
    assert is_valid_badge_id("first-upload")
    assert not is_valid_badge_id("First Upload")
    assert not is_valid_badge_id("ab")
    assert is_valid_institution_id("springfield_high-01")
    assert not is_valid_institution_id("no spaces")


def test_sanitize_text_removes_scripts():
    assert sanitize_text("Hi <script>alert(1)</script><b>there</b>") == "Hi there"
    assert len(sanitize_text("z" * 800)) == 500
