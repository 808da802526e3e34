from datetime import timedelta

from edudash.core.config import settings
from edudash.core.security import (
    create_session_token,
    dashboard_path_for,
    decode_session_token,
    resolve_user,
)
from edudash.services import user_service
from tests.conftest import DEFAULT_PASSWORD, auth_headers


def test_session_token_round_trip():
    token = create_session_token(42)
    assert decode_session_token(token) == 42


def test_expired_or_garbage_token_is_rejected():
    expired = create_session_token(42, expires_delta=timedelta(minutes=-1))
    assert decode_session_token(expired) is None
    assert decode_session_token("not-a-token") is None


def test_role_dashboard_map():
    assert dashboard_path_for("student") == "/dashboard/student"
    assert dashboard_path_for("teacher") == "/dashboard/teacher"
    assert dashboard_path_for("institution") == "/dashboard/institution"
    assert dashboard_path_for("dev") == "/dashboard/admin"
    assert dashboard_path_for(None) == "/dashboard/student"


def test_deleted_login_invalidates_session(db_session, test_student):
    token = create_session_token(test_student.id)
    assert resolve_user(db_session, token).id == test_student.id

    user_service.delete_auth(db_session, user_id=test_student.id)
    assert resolve_user(db_session, token) is None


def test_login_sets_session_cookie(client, test_teacher):
    resp = client.post(
        "/api/v1/auth/login",
        json={"email": "teacher@example.com", "password": DEFAULT_PASSWORD},
    )
    assert resp.status_code == 200
    assert resp.json()["access_token"]
    assert settings.SESSION_COOKIE_NAME in resp.cookies

    # the cookie alone authenticates
    session = client.post("/api/v1/auth/session")
    assert session.status_code == 200
    assert session.json() == {"success": True, "uid": test_teacher.id, "role": "teacher"}


def test_login_with_wrong_password(client, test_teacher):
    resp = client.post(
        "/api/v1/auth/login",
        json={"email": "teacher@example.com", "password": "WrongPass123"},
    )
    assert resp.status_code == 401
    assert resp.json() == {"error": "Incorrect email or password"}


def test_token_form_login(client, test_student):
    resp = client.post(
        "/api/v1/auth/token",
        data={"username": "student@example.com", "password": DEFAULT_PASSWORD},
    )
    assert resp.status_code == 200
    token = resp.json()["access_token"]
    me = client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["email"] == "student@example.com"


def test_session_endpoint_requires_session(client):
    resp = client.post("/api/v1/auth/session")
    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized: Session required"}

    resp = client.post("/api/v1/auth/session", headers={"Authorization": "Bearer junk"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized: Invalid or expired session"}


def test_logout_clears_cookie(client, test_student):
    client.post(
        "/api/v1/auth/login",
        json={"email": "student@example.com", "password": DEFAULT_PASSWORD},
    )
    resp = client.delete("/api/v1/auth/session")
    assert resp.status_code == 200
    assert client.post("/api/v1/auth/session").status_code == 401


def test_register_student_awards_signup_xp(client):
    resp = client.post(
        "/api/v1/auth/register",
        json={
            "email": "new@example.com",
            "password": "Password123",
            "display_name": "New Student",
        },
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["role"] == "student"
    assert body["xp"] == 10


def test_register_cannot_pick_admin_role(client):
    resp = client.post(
        "/api/v1/auth/register",
        json={
            "email": "sneaky@example.com",
            "password": "Password123",
            "display_name": "Sneaky",
            "role": "admin",
        },
    )
    assert resp.status_code == 400
    assert "error" in resp.json()


def test_role_endpoint_guest_and_user(client, test_teacher):
    assert client.get("/api/v1/role").json() == {"role": "guest"}

    body = client.get("/api/v1/role", headers=auth_headers(test_teacher)).json()
    assert body["role"] == "teacher"
    assert body["user"]["id"] == test_teacher.id


def test_set_role_admin_only(client, test_admin, test_student, test_teacher):
    resp = client.post(
        "/api/v1/role",
        json={"uid": test_student.id, "role": "teacher"},
        headers=auth_headers(test_teacher),
    )
    assert resp.status_code == 403

    resp = client.post(
        "/api/v1/role",
        json={"uid": test_student.id, "role": "teacher"},
        headers=auth_headers(test_admin),
    )
    assert resp.status_code == 200
    assert resp.json()["role"] == "teacher"


def test_set_role_validation(client, test_dev, test_student):
    headers = auth_headers(test_dev)
    assert client.post("/api/v1/role", json={"uid": test_student.id}, headers=headers).status_code == 400
    assert (
        client.post(
            "/api/v1/role", json={"uid": test_student.id, "role": "wizard"}, headers=headers
        ).status_code
        == 400
    )
    assert (
        client.post("/api/v1/role", json={"uid": 9999, "role": "teacher"}, headers=headers).status_code
        == 404
    )


def test_role_is_read_on_every_request(client, db_session, test_student):
    headers = auth_headers(test_student)
    assert client.get("/api/v1/role", headers=headers).json()["role"] == "student"

    test_student.role = "teacher"
    db_session.commit()
    assert client.get("/api/v1/role", headers=headers).json()["role"] == "teacher"


def test_security_headers_on_every_response(client):
    resp = client.get("/api/v1/health/live")
    assert resp.status_code == 200
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert "camera=()" in resp.headers["Permissions-Policy"]
    assert "max-age=31536000" in resp.headers["Strict-Transport-Security"]
