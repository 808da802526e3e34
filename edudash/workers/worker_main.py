# edudash/workers/worker_main.py
"""Entry point of the ``edudash-worker`` console script."""
import logging

from rq import SimpleWorker

from edudash.core.logging_config import setup_logging
from edudash.workers.queue import get_redis_connection, grading_queue

logger = logging.getLogger(__name__)


def main():
    setup_logging()
    queue = grading_queue()
    # SimpleWorker runs jobs in this process; grading opens its own DB session
    worker = SimpleWorker([queue], connection=get_redis_connection())
    logger.info("Worker %s listening on queue %r", worker.name, queue.name)
    worker.work()


if __name__ == "__main__":
    main()
