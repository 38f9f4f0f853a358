"""
Durable step runner.

A workflow instance is a row keyed by its business id ("feedback-42",
"daily-2026-10-19"). Each step writes a checkpoint row holding its status,
attempt count and JSON output. The runner consults those checkpoints before
running a step, so re-running an instance resumes at the first step that has
not completed instead of starting over.

State machine per instance:
    pending -> running(step 1) -> ... -> running(step n) -> completed
    running(step i) -> failed   (step i exhausted its retry budget; terminal)
"""

import asyncio
import inspect
import json
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from feedback_radar.models import WorkflowInstance, WorkflowStep
from feedback_radar.workflows import get_definition
from feedback_radar.workflows.base import Step, StepContext, WorkflowDefinition

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"completed", "failed"}


def run_async(coro):
    """Helper to run async code in sync context."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _loads(value: Optional[str]) -> Any:
    return json.loads(value) if value is not None else None


class WorkflowService:
    """Idempotent creation and status lookup for workflow instances."""

    def __init__(self, db: Session):
        self.db = db

    def create_instance(
        self, workflow_type: str, instance_id: str, params: Optional[dict] = None
    ) -> Tuple[WorkflowInstance, bool]:
        """
        Create a workflow instance, or return the existing one for the same key.

        Re-submitting an existing business key is a success, not an error.

        Returns:
            (instance, created) where created is False for duplicate submissions

        Raises:
            ValueError: Unknown workflow type
        """
        get_definition(workflow_type)

        existing = self.db.get(WorkflowInstance, instance_id)
        if existing:
            logger.info("Workflow instance %s already exists (%s)", instance_id, existing.status)
            return existing, False

        instance = WorkflowInstance(
            id=instance_id,
            workflow_type=workflow_type,
            params=json.dumps(params or {}),
            status="pending",
        )
        self.db.add(instance)
        try:
            self.db.commit()
        except IntegrityError:
            # Concurrent submission with the same key won the insert
            self.db.rollback()
            if instance in self.db:
                self.db.expunge(instance)
            logger.info("Workflow instance %s created concurrently, reusing it", instance_id)
            return self.db.get(WorkflowInstance, instance_id), False

        self.db.refresh(instance)
        return instance, True

    def get_instance(self, instance_id: str) -> Optional[WorkflowInstance]:
        return self.db.get(WorkflowInstance, instance_id)

    def get_status(self, instance_id: str) -> Dict:
        """Instance status plus its step checkpoints."""
        instance = self.get_instance(instance_id)
        if not instance:
            return {"error": "Workflow instance not found"}

        return {
            "id": instance.id,
            "workflow_type": instance.workflow_type,
            "status": instance.status,
            "current_step": instance.current_step,
            "result": _loads(instance.result),
            "error_message": instance.error_message,
            "created_at": instance.created_at.isoformat() if instance.created_at else None,
            "started_at": instance.started_at.isoformat() if instance.started_at else None,
            "completed_at": instance.completed_at.isoformat() if instance.completed_at else None,
            "steps": [
                {
                    "name": step.step_name,
                    "status": step.status,
                    "attempts": step.attempts,
                    "last_error": step.last_error,
                }
                for step in instance.steps
            ],
        }


class WorkflowRunner:
    """Executes one workflow instance's steps in order, with per-step retries."""

    def __init__(
        self,
        db: Session,
        judgment=None,
        search=None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self._judgment = judgment
        self._search = search
        self.sleep = sleep

    @property
    def judgment(self):
        if self._judgment is None:
            from feedback_radar.services.ai_service import ClaudeService

            self._judgment = ClaudeService()
        return self._judgment

    @property
    def search(self):
        if self._search is None:
            from feedback_radar.services.search_service import get_search_service

            self._search = get_search_service()
        return self._search

    def run(self, instance_id: str) -> WorkflowInstance:
        """
        Run (or resume) an instance until it completes or a step fails.

        Completed and failed instances are returned untouched.

        Raises:
            LookupError: Instance does not exist
        """
        instance = self.db.get(WorkflowInstance, instance_id)
        if instance is None:
            raise LookupError(f"Workflow instance {instance_id} not found")
        if instance.status in TERMINAL_STATUSES:
            return instance

        definition = get_definition(instance.workflow_type)
        params = _loads(instance.params) or {}

        if instance.status == "pending":
            instance.status = "running"
            instance.started_at = datetime.utcnow()
            self.db.commit()
            logger.info("Workflow %s started", instance_id)

        outputs: Dict[str, Any] = {}
        for step in definition.steps:
            checkpoint = self._get_checkpoint(instance_id, step.name)
            if checkpoint is not None and checkpoint.status == "completed":
                outputs[step.name] = _loads(checkpoint.output)
                continue

            instance.current_step = step.name
            self.db.commit()

            succeeded, output = self._run_step(instance_id, step, checkpoint, params, outputs)
            if not succeeded:
                return self._mark_failed(instance_id, step.name)
            outputs[step.name] = output

        return self._mark_completed(instance_id, definition, params, outputs)

    # =========================================================================
    # STEP EXECUTION
    # =========================================================================

    def _get_checkpoint(self, instance_id: str, step_name: str) -> Optional[WorkflowStep]:
        return (
            self.db.query(WorkflowStep)
            .filter(WorkflowStep.instance_id == instance_id, WorkflowStep.step_name == step_name)
            .first()
        )

    def _run_step(
        self,
        instance_id: str,
        step: Step,
        checkpoint: Optional[WorkflowStep],
        params: dict,
        outputs: dict,
    ) -> Tuple[bool, Any]:
        if checkpoint is None:
            checkpoint = WorkflowStep(
                instance_id=instance_id,
                step_name=step.name,
                status="running",
                attempts=0,
                started_at=datetime.utcnow(),
            )
            self.db.add(checkpoint)
            self.db.commit()

        while checkpoint.attempts < step.max_attempts:
            checkpoint.attempts += 1
            self.db.commit()
            attempt = checkpoint.attempts

            context = StepContext(
                instance_id=instance_id,
                params=params,
                outputs=dict(outputs),
                db=self.db,
                judgment=self.judgment,
                search=self.search,
            )
            try:
                output = self._invoke(step, context)
                serialized = json.dumps(output)
            except Exception as e:
                self.db.rollback()
                checkpoint.last_error = f"{type(e).__name__}: {e}"
                self.db.commit()
                logger.warning(
                    "Workflow %s step %s failed (attempt %d/%d): %s",
                    instance_id,
                    step.name,
                    attempt,
                    step.max_attempts,
                    e,
                )
                if attempt < step.max_attempts:
                    self.sleep(step.delay_seconds)
                continue

            checkpoint.status = "completed"
            checkpoint.output = serialized
            checkpoint.completed_at = datetime.utcnow()
            self.db.commit()
            return True, output

        checkpoint.status = "failed"
        checkpoint.completed_at = datetime.utcnow()
        self.db.commit()
        return False, None

    def _invoke(self, step: Step, context: StepContext) -> Any:
        if inspect.iscoroutinefunction(step.fn):
            return run_async(step.fn(context))
        return step.fn(context)

    # =========================================================================
    # TERMINAL TRANSITIONS
    # =========================================================================

    def _mark_failed(self, instance_id: str, step_name: str) -> WorkflowInstance:
        instance = self.db.get(WorkflowInstance, instance_id)
        checkpoint = self._get_checkpoint(instance_id, step_name)
        instance.status = "failed"
        instance.error_message = (
            f"Step {step_name} failed after {checkpoint.attempts} attempts: "
            f"{checkpoint.last_error}"
        )
        instance.completed_at = datetime.utcnow()
        self.db.commit()
        logger.error("Workflow %s failed at step %s", instance_id, step_name)
        return instance

    def _mark_completed(
        self,
        instance_id: str,
        definition: WorkflowDefinition,
        params: dict,
        outputs: dict,
    ) -> WorkflowInstance:
        instance = self.db.get(WorkflowInstance, instance_id)
        result = definition.finalize(params, outputs) if definition.finalize else outputs
        instance.status = "completed"
        instance.current_step = None
        instance.result = json.dumps(result)
        instance.completed_at = datetime.utcnow()
        self.db.commit()
        logger.info("Workflow %s completed", instance_id)
        return instance
