"""Building blocks for durable workflows: steps, step context and definitions."""
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from feedback_radar.config import settings


@dataclass
class StepContext:
    """Everything a step may read: instance params, prior outputs, collaborators."""

    instance_id: str
    params: Dict[str, Any]
    outputs: Dict[str, Any]  # Checkpointed outputs of earlier steps, by step name
    db: Session
    judgment: Any  # JudgmentService
    search: Any  # SimilaritySearch


@dataclass(frozen=True)
class Step:
    """
    One durable unit of work.

    fn receives a StepContext and returns a JSON-serializable value, which is
    checkpointed before the next step starts. fn may be sync or async.
    retries is the number of attempts after the first; delay_seconds is the
    fixed pause between attempts.
    """

    name: str
    fn: Callable[[StepContext], Any]
    retries: int = settings.step_retry_limit
    delay_seconds: float = settings.step_retry_delay_seconds

    @property
    def max_attempts(self) -> int:
        return 1 + self.retries


@dataclass(frozen=True)
class WorkflowDefinition:
    workflow_type: str
    steps: List[Step]
    # Builds the instance result from params and all step outputs
    finalize: Optional[Callable[[Dict[str, Any], Dict[str, Any]], Any]] = None

    def step_names(self) -> List[str]:
        return [step.name for step in self.steps]
