"""
Dramatiq actors that drive durable workflows and batch detection.

Retries are owned by the step runner (per step, checkpointed), so the
workflow actor itself does not retry; re-sending the same instance id
resumes from the last completed step.
"""
import logging

import dramatiq

# Import broker setup (must be before actor definitions)
from feedback_radar.workers import broker  # noqa: F401
from feedback_radar.database import SessionLocal
from feedback_radar.services.workflow_service import WorkflowRunner, run_async

logger = logging.getLogger(__name__)


@dramatiq.actor(max_retries=0)
def run_workflow(instance_id: str):
    """
    Run or resume a workflow instance.

    Args:
        instance_id: Business key of the instance ("feedback-42", "daily-2026-10-19")
    """
    from feedback_radar.services.ai_service import ClaudeService
    from feedback_radar.services.search_service import get_search_service

    db = SessionLocal()
    try:
        instance = WorkflowRunner(
            db, judgment=ClaudeService(), search=get_search_service()
        ).run(instance_id)
        logger.info("Workflow %s finished with status %s", instance_id, instance.status)
    finally:
        db.close()


@dramatiq.actor(max_retries=2, min_backoff=5000, max_backoff=60000)
def run_batch_detection(limit: int = None):
    """Classify every unflagged feedback item in the recent window."""
    from feedback_radar.services.ai_service import ClaudeService
    from feedback_radar.services.feedback_store import FeedbackStore
    from feedback_radar.services.under_radar_service import BatchDetector, UnderRadarClassifier

    db = SessionLocal()
    try:
        store = FeedbackStore(db)
        detector = BatchDetector(store, UnderRadarClassifier(store, ClaudeService()))
        flagged = run_async(detector.run_batch_detection(limit=limit))
        logger.info("Batch detection flagged %d feedback items", flagged)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
