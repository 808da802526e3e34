# edudash/workers/queue.py
"""
RQ plumbing for the ``grading`` queue.

The Redis connection is shared with the realtime relay, which publishes
notification changes on the same server.
"""
import logging

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue

from edudash.core.config import settings

logger = logging.getLogger(__name__)

GRADING_QUEUE_NAME = "grading"

_redis_conn: Redis | None = None


def get_redis_connection() -> Redis:
    global _redis_conn
    if _redis_conn is None:
        _redis_conn = Redis.from_url(
            settings.REDIS_URL,
            socket_connect_timeout=settings.REDIS_CONNECT_TIMEOUT,
        )
    return _redis_conn


def redis_available() -> bool:
    try:
        return bool(get_redis_connection().ping())
    except RedisError as e:
        logger.warning("Redis ping failed: %s", e)
        return False


def grading_queue() -> Queue:
    return Queue(GRADING_QUEUE_NAME, connection=get_redis_connection())


def enqueue_grading_task(batch_id: int) -> str:
    """Queue grading for one batch and return the RQ job id."""
    from edudash.workers.tasks import grading_task

    job = grading_queue().enqueue(
        grading_task,
        batch_id,
        job_timeout=settings.GRADING_JOB_TIMEOUT,
        result_ttl=settings.GRADING_RESULT_TTL,
        description=f"grade evaluation {batch_id}",
    )
    return job.id
