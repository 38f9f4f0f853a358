"""
Unit tests for the durable step runner.

Tests idempotent instance creation, checkpoint reuse on resume, fixed-delay
retries, retry exhaustion and terminal states. Runner tests are synchronous:
the runner drives async steps on its own event loop, as the worker does.
"""
import json
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from feedback_radar.models import WorkflowInstance, WorkflowStep
from feedback_radar.workflows.base import Step, WorkflowDefinition
from feedback_radar.services.workflow_service import WorkflowRunner, WorkflowService


class WorkerCrash(BaseException):
    """Simulates the process dying mid-step (not caught by the runner)."""


class Recorder:
    """Step functions with call counting and scripted failures."""

    def __init__(self):
        self.calls = {}
        self.failures = {}  # step name -> number of times to raise
        self.crash_on = None

    def step(self, name, output=None):
        def fn(ctx):
            self.calls[name] = self.calls.get(name, 0) + 1
            if self.crash_on == name:
                self.crash_on = None
                raise WorkerCrash()
            if self.failures.get(name, 0) > 0:
                self.failures[name] -= 1
                raise RuntimeError(f"{name} exploded")
            return output if output is not None else {"step": name, "seen": sorted(ctx.outputs)}

        return fn


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def definition(recorder):
    return WorkflowDefinition(
        workflow_type="test",
        steps=[
            Step("one", recorder.step("one", {"value": 1}), retries=3, delay_seconds=2.0),
            Step("two", recorder.step("two"), retries=3, delay_seconds=2.0),
            Step("three", recorder.step("three"), retries=3, delay_seconds=5.0),
        ],
        finalize=lambda params, outputs: {"params": params, "one": outputs["one"]},
    )


@pytest.fixture
def registered(definition):
    with patch.dict("feedback_radar.workflows.WORKFLOW_DEFINITIONS", {"test": definition}):
        yield definition


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def runner(db: Session, mock_judgment, mock_search, sleeps) -> WorkflowRunner:
    return WorkflowRunner(db, judgment=mock_judgment, search=mock_search, sleep=sleeps.append)


def checkpoint(db: Session, instance_id: str, name: str) -> WorkflowStep:
    return (
        db.query(WorkflowStep)
        .filter(WorkflowStep.instance_id == instance_id, WorkflowStep.step_name == name)
        .one()
    )


# =============================================================================
# WorkflowService Tests
# =============================================================================

class TestWorkflowService:
    """Tests for instance creation and status."""

    def test_create_instance(self, db, registered):
        instance, created = WorkflowService(db).create_instance("test", "test-1", {"a": 1})

        assert created is True
        assert instance.status == "pending"
        assert json.loads(instance.params) == {"a": 1}

    def test_duplicate_key_returns_existing(self, db, registered):
        service = WorkflowService(db)
        first, _ = service.create_instance("test", "test-1", {"a": 1})
        second, created = service.create_instance("test", "test-1", {"a": 2})

        assert created is False
        assert second.id == first.id
        assert json.loads(second.params) == {"a": 1}
        assert db.query(WorkflowInstance).count() == 1

    def test_concurrent_insert_returns_existing(self, db, registered):
        service = WorkflowService(db)
        service.create_instance("test", "test-1", {"a": 1})
        # The winning insert came from another session
        db.expunge_all()

        real_get = db.get
        lookups = []

        def racing_get(model, key):
            lookups.append(key)
            if len(lookups) == 1:
                return None  # Lost the race: row not visible at check time
            return real_get(model, key)

        with patch.object(db, "get", side_effect=racing_get):
            instance, created = service.create_instance("test", "test-1", {"a": 2})

        assert created is False
        assert instance.id == "test-1"
        assert json.loads(instance.params) == {"a": 1}
        assert lookups == ["test-1", "test-1"]
        assert db.query(WorkflowInstance).count() == 1

    def test_unknown_type_rejected(self, db):
        with pytest.raises(ValueError):
            WorkflowService(db).create_instance("nope", "nope-1")

    def test_status_missing_instance(self, db):
        assert WorkflowService(db).get_status("missing") == {
            "error": "Workflow instance not found"
        }


# =============================================================================
# WorkflowRunner Tests
# =============================================================================

class TestWorkflowRunner:
    """Tests for running, resuming and failing instances."""

    def test_runs_all_steps_in_order(self, db, registered, runner, recorder):
        WorkflowService(db).create_instance("test", "test-1", {"a": 1})

        instance = runner.run("test-1")

        assert instance.status == "completed"
        assert instance.current_step is None
        assert instance.started_at is not None
        assert instance.completed_at is not None
        assert json.loads(instance.result) == {"params": {"a": 1}, "one": {"value": 1}}
        assert recorder.calls == {"one": 1, "two": 1, "three": 1}
        # Each step sees the outputs of all earlier steps
        assert json.loads(checkpoint(db, "test-1", "three").output)["seen"] == ["one", "two"]

    def test_status_lists_checkpoints(self, db, registered, runner):
        WorkflowService(db).create_instance("test", "test-1")
        runner.run("test-1")

        status = WorkflowService(db).get_status("test-1")

        assert status["status"] == "completed"
        assert [s["name"] for s in status["steps"]] == ["one", "two", "three"]
        assert all(s["status"] == "completed" and s["attempts"] == 1 for s in status["steps"])

    def test_retry_then_succeed(self, db, registered, runner, recorder, sleeps):
        recorder.failures["two"] = 2
        WorkflowService(db).create_instance("test", "test-1")

        instance = runner.run("test-1")

        assert instance.status == "completed"
        assert recorder.calls["two"] == 3
        assert sleeps == [2.0, 2.0]
        step = checkpoint(db, "test-1", "two")
        assert step.attempts == 3
        assert step.last_error == "RuntimeError: two exploded"

    def test_retry_exhaustion_fails_instance(self, db, registered, runner, recorder, sleeps):
        recorder.failures["three"] = 100
        WorkflowService(db).create_instance("test", "test-1")

        instance = runner.run("test-1")

        assert instance.status == "failed"
        assert "three" in instance.error_message
        assert recorder.calls["three"] == 4  # 1 + 3 retries
        assert sleeps == [5.0, 5.0, 5.0]
        assert checkpoint(db, "test-1", "three").status == "failed"
        # Earlier checkpoints stay completed
        assert checkpoint(db, "test-1", "one").status == "completed"

    def test_failed_instance_is_terminal(self, db, registered, runner, recorder):
        recorder.failures["one"] = 100
        WorkflowService(db).create_instance("test", "test-1")
        runner.run("test-1")
        calls_before = dict(recorder.calls)

        instance = runner.run("test-1")

        assert instance.status == "failed"
        assert recorder.calls == calls_before

    def test_completed_instance_is_not_rerun(self, db, registered, runner, recorder):
        WorkflowService(db).create_instance("test", "test-1")
        runner.run("test-1")

        runner.run("test-1")

        assert recorder.calls == {"one": 1, "two": 1, "three": 1}

    def test_resume_after_crash_skips_completed_steps(self, db, registered, runner, recorder):
        recorder.crash_on = "two"
        WorkflowService(db).create_instance("test", "test-1")

        with pytest.raises(WorkerCrash):
            runner.run("test-1")

        interrupted = db.get(WorkflowInstance, "test-1")
        assert interrupted.status == "running"
        assert interrupted.current_step == "two"

        instance = runner.run("test-1")

        assert instance.status == "completed"
        assert recorder.calls == {"one": 1, "two": 2, "three": 1}
        # The crashed attempt counts against the step's budget
        assert checkpoint(db, "test-1", "two").attempts == 2
        assert json.loads(instance.result)["one"] == {"value": 1}

    def test_async_steps_are_awaited(self, db, runner):
        async def async_step(ctx):
            return {"instance": ctx.instance_id}

        definition = WorkflowDefinition(workflow_type="async", steps=[Step("only", async_step)])
        with patch.dict("feedback_radar.workflows.WORKFLOW_DEFINITIONS", {"async": definition}):
            WorkflowService(db).create_instance("async", "async-1")
            instance = runner.run("async-1")

        assert instance.status == "completed"
        assert json.loads(instance.result) == {"only": {"instance": "async-1"}}

    def test_unserializable_output_counts_as_failure(self, db, runner, sleeps):
        definition = WorkflowDefinition(
            workflow_type="bad",
            steps=[Step("only", lambda ctx: object(), retries=1, delay_seconds=0.5)],
        )
        with patch.dict("feedback_radar.workflows.WORKFLOW_DEFINITIONS", {"bad": definition}):
            WorkflowService(db).create_instance("bad", "bad-1")
            instance = runner.run("bad-1")

        assert instance.status == "failed"
        assert sleeps == [0.5]

    def test_missing_instance_raises(self, runner):
        with pytest.raises(LookupError):
            runner.run("missing")
