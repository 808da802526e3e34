"""
Grading tasks for the RQ worker.
"""

import logging

from edudash.db.session import SessionLocal
from edudash.services.grading_service import GradingError, run_grading

logger = logging.getLogger(__name__)


def grading_task(batch_id: int) -> dict:
    """
    Worker task that grades every answer sheet of an evaluation batch.

    Opens its own database session, runs the configured grader and returns
    a summary dict. Failures are already recorded on the batch (status
    ``failed`` plus ``error_message``) by the grading service.
    """
    db = SessionLocal()
    try:
        logger.info("Starting grading task for batch %s", batch_id)
        batch = run_grading(db, batch_id)

        result = {
            "status": "success",
            "batch_id": batch.id,
            "records": len(batch.records),
            "batch_status": batch.status,
            "message": f"Successfully graded batch {batch_id}",
        }
        logger.info("Completed grading task for batch %s: %d records", batch_id, len(batch.records))
        return result

    except GradingError as e:
        logger.error("Grading failed for batch %s: %s", batch_id, e)
        return {
            "status": "error",
            "batch_id": batch_id,
            "error": str(e),
            "message": f"Grading failed for batch {batch_id}",
        }

    except Exception as e:
        logger.error(
            "Unexpected error during grading task for batch %s: %s",
            batch_id,
            e,
            exc_info=True,
        )
        return {
            "status": "error",
            "batch_id": batch_id,
            "error": str(e),
            "message": "Unexpected error during grading",
        }

    finally:
        db.close()
