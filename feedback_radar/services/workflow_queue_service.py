"""
Service for submitting workflow instances and enqueuing them via Dramatiq.

Submission is idempotent on the business key: a duplicate submission
returns the existing instance and does not enqueue a second run.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from feedback_radar.models import Feedback, WorkflowInstance
from feedback_radar.services.workflow_service import WorkflowService
from feedback_radar.workers.workflow_worker import run_workflow
from feedback_radar.workflows import daily_edition_workflow, feedback_workflow

logger = logging.getLogger(__name__)


class WorkflowQueueService:
    """Creates workflow instances and hands new ones to the worker."""

    def __init__(self, db: Session):
        self.db = db
        self.workflows = WorkflowService(db)

    def submit_feedback_workflow(self, feedback: Feedback) -> Tuple[WorkflowInstance, bool]:
        """
        Submit the per-feedback workflow for a stored feedback item.

        Returns:
            (instance, created)
        """
        instance, created = self.workflows.create_instance(
            feedback_workflow.WORKFLOW_TYPE,
            feedback_workflow.instance_id_for(feedback.id),
            {
                "feedbackId": feedback.id,
                "content": feedback.content,
                "source": feedback.source,
                "timestamp": feedback.timestamp,
                "user_id": feedback.user_id,
                "metadata": feedback.metadata_json,
            },
        )
        if created:
            run_workflow.send(instance.id)
            logger.info("Enqueued workflow %s", instance.id)
        return instance, created

    def submit_daily_edition(
        self, edition_date: Optional[str] = None, force: bool = False, enqueue: bool = True
    ) -> Tuple[WorkflowInstance, bool]:
        """
        Submit the daily edition workflow for a date (default: today, UTC).

        Args:
            edition_date: YYYY-MM-DD
            force: Use a fresh timestamped key so an edition is regenerated even
                if the date's instance already ran
            enqueue: Send new instances to the worker; False lets the caller
                run the instance in-process

        Returns:
            (instance, created)

        Raises:
            ValueError: If edition_date is not a YYYY-MM-DD calendar date
        """
        if edition_date is None:
            edition_date = daily_edition_workflow.today_utc()
        else:
            try:
                edition_date = datetime.strptime(edition_date, "%Y-%m-%d").date().isoformat()
            except ValueError as e:
                raise ValueError(
                    f"Invalid edition date '{edition_date}', expected YYYY-MM-DD"
                ) from e
        instance_id = daily_edition_workflow.instance_id_for(edition_date)
        if force:
            timestamp_ms = int(datetime.utcnow().timestamp() * 1000)
            instance_id = f"{instance_id}-{timestamp_ms}"

        instance, created = self.workflows.create_instance(
            daily_edition_workflow.WORKFLOW_TYPE,
            instance_id,
            {"edition_date": edition_date},
        )
        if created and enqueue:
            run_workflow.send(instance.id)
            logger.info("Enqueued workflow %s", instance.id)
        return instance, created
