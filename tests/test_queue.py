from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.pool import StaticPool

from edudash.core.config import settings
from edudash.db.session import engine_options
from edudash.services import evaluation_service
from edudash.workers import queue, tasks
from tests.conftest import auth_headers

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


class RecordingQueue:
    name = queue.GRADING_QUEUE_NAME

    def __init__(self):
        self.calls = []

    def enqueue(self, func, *args, **kwargs):
        self.calls.append((func, args, kwargs))
        return type("Job", (), {"id": "job-1"})()


def _ready_batch(client, teacher):
    headers = auth_headers(teacher)
    batch = client.post(
        "/api/v1/evaluations",
        json={
            "mode": "bulk",
            "name": "Finals",
            "subject": "History",
            "class_section": "12-B",
            "due_date": "2026-12-10",
        },
        headers=headers,
    ).json()
    client.put(
        f"/api/v1/evaluations/{batch['id']}/question-paper",
        files={"file": ("paper.png", PNG, "image/png")},
        headers=headers,
    )
    client.post(
        f"/api/v1/evaluations/{batch['id']}/answer-sheets",
        files=[("files", ("s1.png", PNG, "image/png"))],
        headers=headers,
    )
    return batch["id"]


def test_engine_options():
    assert engine_options("postgresql+psycopg2://u:p@db/edudash") == {"pool_pre_ping": True}

    memory = engine_options("sqlite://")
    assert memory["poolclass"] is StaticPool
    assert memory["connect_args"] == {"check_same_thread": False}

    assert "poolclass" not in engine_options("sqlite:///./edudash.db")


def test_enqueue_grading_task_uses_grading_queue(monkeypatch):
    recording = RecordingQueue()
    monkeypatch.setattr(queue, "grading_queue", lambda: recording)

    assert queue.enqueue_grading_task(7) == "job-1"
    func, args, kwargs = recording.calls[0]
    assert func is tasks.grading_task
    assert args == (7,)
    assert kwargs["job_timeout"] == settings.GRADING_JOB_TIMEOUT
    assert kwargs["description"] == "grade evaluation 7"


def test_grade_is_queued_outside_inline_mode(client, test_teacher, monkeypatch):
    queued = []
    monkeypatch.setattr(settings, "GRADING_MODE", "queue")
    monkeypatch.setattr(
        evaluation_service, "enqueue_grading_task", lambda batch_id: queued.append(batch_id) or "j"
    )
    batch_id = _ready_batch(client, test_teacher)

    resp = client.post(f"/api/v1/evaluations/{batch_id}/grade", headers=auth_headers(test_teacher))
    assert resp.status_code == 202
    assert resp.json()["status"] == "grading"
    assert queued == [batch_id]


def test_unreachable_queue_fails_the_batch(client, test_teacher, monkeypatch):
    def refuse(batch_id):
        raise RedisConnectionError("connection refused")

    monkeypatch.setattr(settings, "GRADING_MODE", "queue")
    monkeypatch.setattr(evaluation_service, "enqueue_grading_task", refuse)
    batch_id = _ready_batch(client, test_teacher)
    headers = auth_headers(test_teacher)

    resp = client.post(f"/api/v1/evaluations/{batch_id}/grade", headers=headers)
    assert resp.status_code == 503
    assert "error" in resp.json()

    progress = client.get(f"/api/v1/evaluations/{batch_id}/progress", headers=headers).json()
    assert progress["status"] == "failed"
    assert "connection refused" in progress["error_message"]


def test_queue_health(client, monkeypatch):
    monkeypatch.setattr("edudash.api.v1.endpoints.health.redis_available", lambda: True)
    assert client.get("/api/v1/health/queue").json() == {"status": "ok", "queue": "grading"}

    monkeypatch.setattr("edudash.api.v1.endpoints.health.redis_available", lambda: False)
    resp = client.get("/api/v1/health/queue")
    assert resp.status_code == 503
    assert resp.json()["status"] == "unavailable"
