"""
Seed sample feedback for local development.

Inserts a fixed set of feedback items across channels, indexes them for
similarity search and submits their triage workflows. The CLI can follow up
with a batch detection sweep and a week-to-date edition backfill.
"""
import json
import logging
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from feedback_radar.models import Feedback
from feedback_radar.services.ai_base import JudgmentService
from feedback_radar.services.edition_service import (
    build_edition_input,
    generate_edition,
    store_edition,
)
from feedback_radar.services.feedback_store import FeedbackStore
from feedback_radar.services.search_service import SimilaritySearch
from feedback_radar.services.workflow_queue_service import WorkflowQueueService

logger = logging.getLogger(__name__)

SAMPLE_SPACING_MS = 60_000

SAMPLE_FEEDBACK = [
    {
        "source": "support",
        "content": "Production down for our team since the last deploy, every API call returns 502. Urgent!!",
        "user_id": "acme-ops",
        "metadata": {"plan": "enterprise"},
    },
    {
        "source": "github",
        "content": "Webhook deliveries are delayed by 10+ minutes after the queue migration",
        "user_id": "octo-dev",
    },
    {
        "source": "discord",
        "content": "Anyone else seeing webhooks arrive late? Ours lag by several minutes",
        "user_id": "lena#2231",
    },
    {
        "source": "email",
        "content": "The new pricing page is confusing, I can't tell which plan includes SSO",
        "user_id": "cfo@northwind.example",
    },
    {
        "source": "twitter",
        "content": "Love the new dark mode, the dashboard finally looks great at night",
    },
    {
        "source": "forum",
        "content": "CLI login fails with a timeout error behind our corporate proxy",
        "user_id": "proxy-pete",
    },
    {
        "source": "github",
        "content": "Rate limit of 100 requests/min is too low for our 12,000 nightly syncs",
        "user_id": "sync-bot-maintainer",
        "metadata": {"repo": "northwind/etl"},
    },
    {
        "source": "support",
        "content": "Customer reports CSV export silently drops rows over 5000 entries",
        "user_id": "support-agent-7",
    },
    {
        "source": "discord",
        "content": "The docs for the Python SDK still show the old auth flow",
    },
    {
        "source": "email",
        "content": "Billing charged us twice this month, please refund the duplicate invoice",
        "user_id": "ap@contoso.example",
    },
]


async def seed_feedback(
    store: FeedbackStore,
    search: SimilaritySearch,
    queue: Optional[WorkflowQueueService] = None,
) -> List[Feedback]:
    """
    Insert and index the sample feedback, submitting a workflow per item.

    Skips seeding when any feedback already exists.

    Returns:
        The created feedback items (empty when skipped)
    """
    if store.list_feedback(limit=1):
        logger.info("Feedback already present, skipping seed")
        return []

    now_ms = int(datetime.now(timezone.utc).timestamp() * 1000)
    base_ms = now_ms - len(SAMPLE_FEEDBACK) * SAMPLE_SPACING_MS

    created = []
    for offset, sample in enumerate(SAMPLE_FEEDBACK):
        metadata = sample.get("metadata")
        feedback = store.insert_feedback(
            source=sample["source"],
            content=sample["content"],
            timestamp=base_ms + offset * SAMPLE_SPACING_MS,
            user_id=sample.get("user_id"),
            metadata=json.dumps(metadata) if metadata else None,
        )
        await search.index_feedback(
            feedback.id,
            feedback.content,
            {"source": feedback.source, "timestamp": feedback.timestamp},
        )
        if queue is not None:
            queue.submit_feedback_workflow(feedback)
        created.append(feedback)

    logger.info("Seeded %d feedback items", len(created))
    return created


def week_to_date(today: date) -> List[str]:
    """Dates from the Monday of today's week through today, as YYYY-MM-DD."""
    monday = today - timedelta(days=today.weekday())
    return [(monday + timedelta(days=n)).isoformat() for n in range((today - monday).days + 1)]


async def backfill_week_editions(
    store: FeedbackStore, judgment: JudgmentService, today: Optional[date] = None
) -> List[str]:
    """
    Generate one edition from the current data and store it for every day
    from Monday through today (UTC), replacing existing editions.

    Returns:
        The edition dates written
    """
    if today is None:
        today = datetime.now(timezone.utc).date()

    edition = await generate_edition(judgment, build_edition_input(store))
    dates = week_to_date(today)
    for edition_date in dates:
        store_edition(store, edition_date, edition)
    return dates
