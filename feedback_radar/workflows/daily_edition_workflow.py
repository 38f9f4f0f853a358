"""Daily edition workflow: load-data -> generate-edition -> store-edition."""
from datetime import datetime, timezone

from feedback_radar.config import settings
from feedback_radar.services.edition_service import (
    build_edition_input,
    generate_edition,
    store_edition,
)
from feedback_radar.services.feedback_store import FeedbackStore
from feedback_radar.workflows.base import Step, StepContext, WorkflowDefinition

WORKFLOW_TYPE = "daily_edition"


def today_utc() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def instance_id_for(edition_date: str) -> str:
    return f"daily-{edition_date}"


def load_data(ctx: StepContext) -> dict:
    return build_edition_input(FeedbackStore(ctx.db))


async def generate(ctx: StepContext) -> dict:
    return await generate_edition(ctx.judgment, ctx.outputs["load-data"])


def store(ctx: StepContext) -> dict:
    edition_date = ctx.params["edition_date"]
    edition_id = store_edition(FeedbackStore(ctx.db), edition_date, ctx.outputs["generate-edition"])
    return {"editionDate": edition_date, "editionId": edition_id}


def _finalize(params: dict, outputs: dict) -> dict:
    return {"editionDate": params["edition_date"], "success": True}


DAILY_EDITION_WORKFLOW = WorkflowDefinition(
    workflow_type=WORKFLOW_TYPE,
    steps=[
        Step("load-data", load_data),
        Step(
            "generate-edition",
            generate,
            delay_seconds=settings.edition_step_retry_delay_seconds,
        ),
        Step("store-edition", store),
    ],
    finalize=_finalize,
)
