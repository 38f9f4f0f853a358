"""Daily edition: aggregate cases, flags and recent feedback, then summarize."""

import copy
import json
import logging

from feedback_radar.services.ai_base import JudgmentService, EDITION_FALLBACK
from feedback_radar.services.feedback_store import FeedbackStore

logger = logging.getLogger(__name__)

# Aggregation limits
MAX_CASES = 20
MAX_FEEDBACK_PER_CASE = 5
MAX_FLAGS = 15
RECENT_FEEDBACK_WINDOW = 50
MAX_RECENT_EXCERPTS = 20

# Excerpt lengths (characters)
CASE_EXCERPT_LENGTH = 150
FLAG_EXCERPT_LENGTH = 100
RECENT_EXCERPT_LENGTH = 120


def build_edition_input(store: FeedbackStore) -> dict:
    """
    Build the three text summaries fed to the edition generator.

    Returns:
        {"casesSummary": str, "underRadarSummary": str, "recentFeedbackSummary": str}
    """
    cases_summary_parts = []
    for case in store.list_cases(limit=MAX_CASES):
        feedback = store.get_feedback_for_case(case.id)[:MAX_FEEDBACK_PER_CASE]
        excerpts = [f"[{f.id}] {f.content[:CASE_EXCERPT_LENGTH]}..." for f in feedback]
        cases_summary_parts.append(f'Case #{case.id} "{case.title}": {" | ".join(excerpts)}')

    flags = store.list_flags_with_feedback(limit=MAX_FLAGS)
    if flags:
        under_radar_summary = "\n".join(
            f"[{flag.feedback_id}] severity {flag.severity_score}: {flag.reason} "
            f'- "{(feedback.content or "")[:FLAG_EXCERPT_LENGTH]}..."'
            for flag, feedback in flags
        )
    else:
        under_radar_summary = "None"

    recent = store.list_feedback(limit=RECENT_FEEDBACK_WINDOW)
    if recent:
        recent_feedback_summary = "\n".join(
            f"[{f.id}] {f.source}: {f.content[:RECENT_EXCERPT_LENGTH]}..."
            for f in recent[:MAX_RECENT_EXCERPTS]
        )
    else:
        recent_feedback_summary = "No recent feedback"

    return {
        "casesSummary": "\n".join(cases_summary_parts) or "No cases yet.",
        "underRadarSummary": under_radar_summary,
        "recentFeedbackSummary": recent_feedback_summary,
    }


async def generate_edition(judgment: JudgmentService, edition_input: dict) -> dict:
    """Generate the edition artifact; collaborator failures yield the fallback edition."""
    try:
        return await judgment.generate_newsroom_edition(edition_input)
    except Exception as e:
        logger.warning("Edition generation failed, using fallback edition: %s", e)
        return copy.deepcopy(EDITION_FALLBACK)


def store_edition(store: FeedbackStore, edition_date: str, edition: dict) -> int:
    """Upsert the edition for a date. Returns the new row id."""
    row = store.upsert_daily_edition(edition_date, json.dumps(edition))
    return row.id


def parse_edition_content(content: str):
    """Decode stored edition JSON; non-JSON content is wrapped as {"raw": ...}."""
    try:
        return json.loads(content)
    except (TypeError, ValueError):
        return {"raw": content}
