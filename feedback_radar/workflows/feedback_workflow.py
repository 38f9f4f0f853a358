"""
Per-feedback triage workflow.

Steps:
1. sentiment-analysis: AI sentiment, persisted onto the feedback row
2. find-similar: nearest neighbours from similarity search
3. group-feedback: attach to a case using the neighbours from step 2
"""
import logging

from feedback_radar.config import settings
from feedback_radar.services.ai_base import NEUTRAL_SENTIMENT
from feedback_radar.services.case_service import CaseClusterer
from feedback_radar.services.feedback_store import FeedbackStore
from feedback_radar.workflows.base import Step, StepContext, WorkflowDefinition

logger = logging.getLogger(__name__)

WORKFLOW_TYPE = "feedback"


def instance_id_for(feedback_id: int) -> str:
    return f"feedback-{feedback_id}"


async def analyze_sentiment(ctx: StepContext) -> dict:
    feedback_id = ctx.params["feedbackId"]
    try:
        result = await ctx.judgment.analyze_sentiment(ctx.params["content"])
    except Exception as e:
        logger.warning(
            "Sentiment analysis failed for feedback %s, using neutral: %s", feedback_id, e
        )
        result = NEUTRAL_SENTIMENT

    FeedbackStore(ctx.db).update_feedback_sentiment(feedback_id, result.sentiment, result.score)
    return result.to_dict()


async def find_similar(ctx: StepContext) -> list:
    results = await ctx.search.find_similar_feedback(
        ctx.params["content"], settings.similar_feedback_limit
    )
    return [{"id": r.id, "score": r.score} for r in results]


def group_feedback(ctx: StepContext) -> dict:
    # Reuses the checkpointed neighbours; must not query search again
    clusterer = CaseClusterer(FeedbackStore(ctx.db), ctx.search)
    case_id = clusterer.attach_with_neighbours(
        ctx.params["feedbackId"],
        ctx.params["content"],
        ctx.outputs["find-similar"],
    )
    return {"linked": True, "caseId": case_id}


def _finalize(params: dict, outputs: dict) -> dict:
    return {"sentiment": outputs["sentiment-analysis"], "feedbackId": params["feedbackId"]}


FEEDBACK_WORKFLOW = WorkflowDefinition(
    workflow_type=WORKFLOW_TYPE,
    steps=[
        Step("sentiment-analysis", analyze_sentiment),
        Step("find-similar", find_similar),
        Step("group-feedback", group_feedback),
    ],
    finalize=_finalize,
)
