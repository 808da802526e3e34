import pytest

from edudash.core.errors import NotFound, ValidationFailed
from edudash.models.activity import Activity
from edudash.models.notification import Notification
from edudash.services import gamify_service
from tests.conftest import auth_headers


@pytest.mark.parametrize(
    "xp, level",
    [(0, 1), (99, 1), (100, 2), (399, 2), (400, 3), (900, 4)],
)
def test_calculate_level(xp, level):
    assert gamify_service.calculate_level(xp) == level


def test_level_progress_bounds():
    assert gamify_service.xp_for_next_level(1) == 100
    assert gamify_service.xp_for_next_level(3) == 900
    assert gamify_service.level_progress(0) == 0.0
    assert gamify_service.level_progress(50) == 50.0
    assert 0.0 <= gamify_service.level_progress(123456) <= 100.0


def test_award_xp_updates_level_and_logs_activity(db_session, test_student, test_teacher):
    user = gamify_service.award_xp(
        db_session,
        user_id=test_student.id,
        amount=150,
        reason="Great essay",
        awarded_by=test_teacher,
    )
    assert user.xp == 150
    assert user.level == 2

    activity = db_session.query(Activity).filter(Activity.user_id == test_student.id).one()
    assert activity.type == "xp_awarded"
    assert activity.xp_amount == 150
    assert activity.awarded_by == test_teacher.id


def test_award_xp_validation(db_session, test_student):
    with pytest.raises(ValidationFailed):
        gamify_service.award_xp(db_session, user_id=test_student.id, amount=0, reason="x")
    with pytest.raises(ValidationFailed):
        gamify_service.award_xp(db_session, user_id=test_student.id, amount=10, reason="")
    with pytest.raises(ValidationFailed):
        gamify_service.award_xp(db_session, user_id=test_student.id, amount=10, reason="r" * 201)
    with pytest.raises(NotFound):
        gamify_service.award_xp(db_session, user_id=9999, amount=10, reason="ok")


def test_coerce_user_id():
    assert gamify_service.coerce_user_id(7) == 7
    assert gamify_service.coerce_user_id(" 12 ") == 12
    for bad in (True, "abc", None, 1.5):
        with pytest.raises(ValidationFailed):
            gamify_service.coerce_user_id(bad)


def test_xp_endpoint(client, test_teacher, test_student):
    resp = client.post(
        "/api/v1/gamify/xp",
        json={"userId": test_student.id, "amount": 100, "reason": "Helped a classmate"},
        headers=auth_headers(test_teacher),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["xp"] == 100
    assert body["level"] == 2
    assert body["levelProgress"] == 0.0


def test_xp_endpoint_errors(client, test_teacher, test_student):
    headers = auth_headers(test_teacher)
    resp = client.post(
        "/api/v1/gamify/xp",
        json={"userId": test_student.id, "amount": 5000, "reason": "too much"},
        headers=headers,
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "Bad Request: XP amount must be between 1 and 1000"}

    resp = client.post(
        "/api/v1/gamify/xp",
        json={"userId": "abc", "amount": 5, "reason": "ok"},
        headers=headers,
    )
    assert resp.status_code == 400

    resp = client.post(
        "/api/v1/gamify/xp",
        json={"userId": 9999, "amount": 5, "reason": "ok"},
        headers=headers,
    )
    assert resp.status_code == 404


def test_students_cannot_award(client, test_student):
    resp = client.post(
        "/api/v1/gamify/xp",
        json={"userId": test_student.id, "amount": 1000, "reason": "self"},
        headers=auth_headers(test_student),
    )
    assert resp.status_code == 403


def test_badge_award_is_idempotent(client, db_session, test_teacher, test_student):
    headers = auth_headers(test_teacher)
    payload = {"userId": test_student.id, "badgeId": "first-upload"}

    first = client.post("/api/v1/gamify/badges", json=payload, headers=headers)
    assert first.status_code == 200
    assert first.json()["wasAwarded"] is True

    second = client.post("/api/v1/gamify/badges", json=payload, headers=headers)
    assert second.json()["wasAwarded"] is False

    db_session.refresh(test_student)
    assert test_student.badges == ["first-upload"]
    badge_notes = (
        db_session.query(Notification)
        .filter(Notification.user_id == test_student.id, Notification.type == "badge")
        .all()
    )
    assert len(badge_notes) == 1


def test_badge_id_format(client, test_teacher, test_student):
    resp = client.post(
        "/api/v1/gamify/badges",
        json={"userId": test_student.id, "badgeId": "Not Valid!"},
        headers=auth_headers(test_teacher),
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "Bad Request: Invalid badgeId format"}
