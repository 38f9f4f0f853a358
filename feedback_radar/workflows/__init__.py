"""Registry of workflow definitions, keyed by workflow type."""

from feedback_radar.workflows.base import Step, StepContext, WorkflowDefinition
from feedback_radar.workflows.feedback_workflow import FEEDBACK_WORKFLOW
from feedback_radar.workflows.daily_edition_workflow import DAILY_EDITION_WORKFLOW

WORKFLOW_DEFINITIONS = {
    FEEDBACK_WORKFLOW.workflow_type: FEEDBACK_WORKFLOW,
    DAILY_EDITION_WORKFLOW.workflow_type: DAILY_EDITION_WORKFLOW,
}


def get_definition(workflow_type: str) -> WorkflowDefinition:
    """
    Raises:
        ValueError: Unknown workflow type
    """
    try:
        return WORKFLOW_DEFINITIONS[workflow_type]
    except KeyError:
        raise ValueError(f"Unknown workflow type: {workflow_type}") from None


__all__ = [
    "Step",
    "StepContext",
    "WorkflowDefinition",
    "FEEDBACK_WORKFLOW",
    "DAILY_EDITION_WORKFLOW",
    "WORKFLOW_DEFINITIONS",
    "get_definition",
]
