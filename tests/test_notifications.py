import pytest
from starlette.websockets import WebSocketDisconnect

from edudash.core.errors import NotFound, ValidationFailed
from edudash.models.notification import Notification
from edudash.services import notification_service
from edudash.services.realtime import NotificationHub, hub
from tests.conftest import auth_headers, make_user


def _notify(db, user, title="Hello", **kwargs):
    return notification_service.create_notification(
        db, user_id=user.id, title=title, message=f"{title} message", **kwargs
    )


def test_create_notification_sanitises_content(db_session, test_student):
    n = notification_service.create_notification(
        db_session,
        user_id=test_student.id,
        title="<b>Graded</b>",
        message="Your <script>x()</script>result is ready",
        type="evaluation",
        action_url="/evaluations/1",
        metadata={"evaluationId": 1},
    )
    assert n.title == "Graded"
    assert n.message == "Your result is ready"
    assert n.read is False
    assert n.extra == {"evaluationId": 1}


def test_create_notification_rejects_unknown_type(db_session, test_student):
    with pytest.raises(ValidationFailed):
        _notify(db_session, test_student, type="gossip")


def test_fetch_is_newest_first_and_filterable(db_session, test_student):
    first = _notify(db_session, test_student, "First", type="info")
    second = _notify(db_session, test_student, "Second", type="reminder")
    third = _notify(db_session, test_student, "Third", type="info")
    notification_service.mark_as_read(
        db_session, notification_id=third.id, user_id=test_student.id
    )

    items = notification_service.fetch_notifications(db_session, user_id=test_student.id)
    assert [n.id for n in items] == [third.id, second.id, first.id]

    unread = notification_service.fetch_notifications(
        db_session, user_id=test_student.id, unread_only=True
    )
    assert [n.id for n in unread] == [second.id, first.id]

    reminders = notification_service.fetch_notifications(
        db_session, user_id=test_student.id, type="reminder"
    )
    assert [n.id for n in reminders] == [second.id]

    limited = notification_service.fetch_notifications(db_session, user_id=test_student.id, limit=1)
    assert len(limited) == 1


def test_users_cannot_touch_each_others_notifications(db_session, test_student, test_teacher):
    n = _notify(db_session, test_student)
    with pytest.raises(NotFound):
        notification_service.mark_as_read(db_session, notification_id=n.id, user_id=test_teacher.id)
    with pytest.raises(NotFound):
        notification_service.delete_notification(
            db_session, notification_id=n.id, user_id=test_teacher.id
        )


def test_bulk_send_skips_unknown_and_duplicate_ids(db_session, test_teacher, test_student):
    count = notification_service.send_bulk_notifications(
        db_session,
        user_ids=[test_student.id, test_student.id, 9999],
        sender=test_teacher,
        title="Reminder",
        message="Homework due Friday",
        type="reminder",
    )
    assert count == 1
    row = db_session.query(Notification).filter(Notification.user_id == test_student.id).one()
    assert row.sender_id == test_teacher.id
    assert row.sender_name == test_teacher.display_name
    assert row.sender_role == "teacher"


def test_list_and_unread_count_api(client, db_session, test_student):
    _notify(db_session, test_student, "One")
    _notify(db_session, test_student, "Two")
    headers = auth_headers(test_student)

    resp = client.get("/api/v1/notifications", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert [n["title"] for n in body] == ["Two", "One"]
    assert set(body[0]) >= {"id", "type", "title", "message", "read", "action_url", "metadata", "created_at"}

    assert client.get("/api/v1/notifications/unread-count", headers=headers).json() == {
        "success": True,
        "count": 2,
    }


def test_mark_read_and_read_all_api(client, db_session, test_student):
    a = _notify(db_session, test_student, "A")
    _notify(db_session, test_student, "B")
    _notify(db_session, test_student, "C")
    headers = auth_headers(test_student)

    resp = client.post(f"/api/v1/notifications/{a.id}/read", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["read"] is True

    resp = client.post("/api/v1/notifications/read-all", headers=headers)
    assert resp.json() == {"success": True, "count": 2}
    assert notification_service.get_unread_count(db_session, user_id=test_student.id) == 0


def test_delete_api(client, db_session, test_student, test_teacher):
    a = _notify(db_session, test_student, "A")
    b = _notify(db_session, test_student, "B")
    c = _notify(db_session, test_student, "C")
    other = _notify(db_session, test_teacher, "Not yours")
    headers = auth_headers(test_student)

    assert client.delete(f"/api/v1/notifications/{a.id}", headers=headers).status_code == 200
    assert client.delete(f"/api/v1/notifications/{other.id}", headers=headers).status_code == 404

    resp = client.post(
        "/api/v1/notifications/delete", json={"ids": [b.id, other.id]}, headers=headers
    )
    assert resp.json()["count"] == 1

    resp = client.delete("/api/v1/notifications", headers=headers)
    assert resp.json()["count"] == 1
    remaining = db_session.query(Notification).all()
    assert [n.id for n in remaining] == [other.id]
    assert c.id not in [n.id for n in remaining]


def test_send_requires_sender_role(client, test_student):
    resp = client.post(
        "/api/v1/notifications/send",
        json={"title": "Hi", "message": "There", "role": "student"},
        headers=auth_headers(test_student),
    )
    assert resp.status_code == 403


def test_send_by_role_and_institution(client, db_session, test_teacher, test_student):
    make_user(db_session, email="s2@example.com", role="student", institution_id="springfield-high")
    headers = auth_headers(test_teacher)

    resp = client.post(
        "/api/v1/notifications/send",
        json={"title": "Exam", "message": "Tomorrow", "type": "announcement", "role": "student"},
        headers=headers,
    )
    assert resp.status_code == 201
    assert resp.json()["count"] == 2

    resp = client.post(
        "/api/v1/notifications/send",
        json={"title": "Assembly", "message": "Hall at 9", "institution_id": "springfield-high"},
        headers=headers,
    )
    assert resp.json()["count"] == 1


def test_send_needs_exactly_one_target(client, test_teacher, test_student):
    resp = client.post(
        "/api/v1/notifications/send",
        json={"title": "Hi", "message": "There", "role": "student", "user_ids": [test_student.id]},
        headers=auth_headers(test_teacher),
    )
    assert resp.status_code == 400


def test_hub_dispatch_without_subscribers_is_a_no_op():
    local_hub = NotificationHub()
    local_hub.dispatch(123)
    assert local_hub.subscriber_count(123) == 0


def test_websocket_rejects_missing_session(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/notifications"):
            pass


def test_websocket_sends_full_list_on_connect_and_change(client, db_session, test_student):
    _notify(db_session, test_student, "Welcome")
    token = auth_headers(test_student)["Authorization"].split()[1]

    with client.websocket_connect(f"/ws/notifications?token={token}") as ws:
        first = ws.receive_json()
        assert first["type"] == "notifications"
        assert [n["title"] for n in first["notifications"]] == ["Welcome"]
        assert first["unreadCount"] == 1
        assert hub.subscriber_count(test_student.id) == 1

        _notify(db_session, test_student, "Graded")
        second = ws.receive_json()
        assert [n["title"] for n in second["notifications"]] == ["Graded", "Welcome"]
        assert second["unreadCount"] == 2


def test_send_to_unknown_user(db_session, test_teacher):
    with pytest.raises(NotFound):
        notification_service.send_notification_to_user(
            db_session, user_id=9999, sender=test_teacher, title="Hi", message="There"
        )


def test_send_to_single_user(db_session, test_teacher, test_student):
    n = notification_service.send_notification_to_user(
        db_session,
        user_id=test_student.id,
        sender=test_teacher,
        title="Well done",
        message="Great work on the quiz",
        type="success",
    )
    assert n.user_id == test_student.id
    assert n.sender_role == "teacher"
