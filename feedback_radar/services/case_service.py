"""
Case clustering: group related feedback into cases via similarity search.

Two entry points share the same neighbour filtering:
- expand_from_seed: a user promotes one feedback item into a new case
- attach_to_case: the per-feedback workflow attaches a new item to the case
  of its closest already-clustered neighbour, or starts a new case
"""

import logging
from typing import Iterable, List, Optional

from feedback_radar.config import settings
from feedback_radar.models import Case
from feedback_radar.services.ai_base import JudgmentService, SUMMARY_FALLBACK, VERDICT_FALLBACK
from feedback_radar.services.feedback_store import FeedbackStore
from feedback_radar.services.scoring import UNDER_RADAR_THRESHOLD, calculate_severity_score
from feedback_radar.services.search_service import SimilaritySearch

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "…"


def make_case_title(content: str, max_length: Optional[int] = None) -> str:
    """Truncate content to at most max_length characters, marker included, marking only if cut."""
    if max_length is None:
        max_length = settings.case_title_max_length
    if len(content) > max_length:
        keep = max(max_length - len(TRUNCATION_MARKER), 0)
        return content[:keep] + TRUNCATION_MARKER
    return content


def parse_neighbour_ids(
    neighbours: Iterable, exclude_id: Optional[int] = None
) -> List[int]:
    """
    Turn ranked search results into valid feedback ids.

    Accepts SearchResult objects or {"id": ..., "score": ...} dicts (the shape
    checkpointed by the find-similar step). Non-numeric and non-positive ids
    and exclude_id are dropped; rank order is kept and duplicates removed.
    """
    ids = []
    for neighbour in neighbours:
        raw_id = neighbour["id"] if isinstance(neighbour, dict) else neighbour.id
        try:
            feedback_id = int(str(raw_id).strip())
        except (TypeError, ValueError):
            continue
        if feedback_id <= 0 or feedback_id == exclude_id or feedback_id in ids:
            continue
        ids.append(feedback_id)
    return ids


class CaseClusterer:
    """Merge-or-create clustering of feedback into cases."""

    def __init__(self, store: FeedbackStore, search: SimilaritySearch):
        self.store = store
        self.search = search

    def create_case(self, title: str, feedback_ids: Iterable[int] = ()) -> Case:
        """Create an open case and link the given feedback ids to it."""
        case = self.store.create_case(title=title, status="open")
        for feedback_id in dict.fromkeys(feedback_ids):
            self.store.link_feedback_to_case(case.id, feedback_id)
        return case

    async def expand_from_seed(
        self, seed_id: int, title: str, top_k: Optional[int] = None
    ) -> Case:
        """
        Create a case from one seed item plus its nearest neighbours.

        Raises:
            LookupError: If the seed feedback does not exist
        """
        seed = self.store.get_feedback(seed_id)
        if not seed:
            raise LookupError(f"Feedback {seed_id} not found")

        results = await self.search.find_similar_feedback(
            seed.content, settings.similar_feedback_limit if top_k is None else top_k
        )
        neighbour_ids = parse_neighbour_ids(results, exclude_id=seed_id)
        return self.create_case(title, [seed_id, *neighbour_ids])

    async def attach_to_case(
        self, feedback_id: int, content: str, top_k: Optional[int] = None
    ) -> int:
        """Query neighbours for a new item, then attach it. Returns the case id."""
        results = await self.search.find_similar_feedback(
            content, settings.similar_feedback_limit if top_k is None else top_k
        )
        return self.attach_with_neighbours(feedback_id, content, results)

    def attach_with_neighbours(
        self, feedback_id: int, content: str, neighbours: Iterable
    ) -> int:
        """
        Attach a new feedback item using already-fetched neighbours.

        Walks neighbours in rank order; the first one that belongs to any case
        decides the case (first match wins, no merging). If none does, a new
        case titled from the content is created with the item and all of its
        valid neighbours.

        If the item is already linked (a retried step whose earlier attempt
        failed part-way), that case is reused instead of starting a second
        one. When the case was started for this item, its remaining
        neighbours are linked too.

        Returns:
            The case id the feedback was linked to
        """
        neighbour_ids = parse_neighbour_ids(neighbours, exclude_id=feedback_id)

        existing = self.store.get_case_ids_for_feedback(feedback_id)
        if existing:
            case_id = existing[0]
            case = self.store.get_case(case_id)
            if case is not None and case.title == make_case_title(content):
                for neighbour_id in neighbour_ids:
                    self.store.link_feedback_to_case(case_id, neighbour_id)
            logger.info("Feedback %s already in case %s, resuming", feedback_id, case_id)
            return case_id

        for neighbour_id in neighbour_ids:
            case_ids = self.store.get_case_ids_for_feedback(neighbour_id)
            if case_ids:
                case_id = case_ids[0]
                self.store.link_feedback_to_case(case_id, feedback_id)
                logger.info(
                    "Attached feedback %s to case %s via neighbour %s",
                    feedback_id,
                    case_id,
                    neighbour_id,
                )
                return case_id

        case = self.create_case(make_case_title(content), [feedback_id, *neighbour_ids])
        logger.info(
            "Created case %s for feedback %s with %d neighbours",
            case.id,
            feedback_id,
            len(neighbour_ids),
        )
        return case.id


class CaseReviewer:
    """
    Builds the prosecution / defense / verdict view of a case.

    The prosecution summarizes the high-severity feedback in the case, the
    defense is a fixed statistical counterpoint, and the AI rules on both.
    """

    def __init__(self, store: FeedbackStore, judgment: JudgmentService):
        self.store = store
        self.judgment = judgment

    async def review(self, case: Case) -> dict:
        feedback = self.store.get_feedback_for_case(case.id)
        severe = [
            f for f in feedback
            if calculate_severity_score(f.content).score >= UNDER_RADAR_THRESHOLD
        ]

        prosecution = "No critical feedback found."
        if severe:
            try:
                prosecution = await self.judgment.summarize_feedback([f.content for f in severe])
            except Exception as e:
                logger.warning("Feedback summary failed for case %s: %s", case.id, e)
                prosecution = SUMMARY_FALLBACK

        defense = (
            f"Total feedback: {len(feedback)} items.\n"
            f"{len(severe)} items flagged as high-severity.\n"
            f"Most feedback is from: {feedback[0].source if feedback else 'unknown'} source.\n"
            "Consider: This might be expected behavior or user error."
        )

        try:
            verdict = await self.judgment.generate_verdict(prosecution, defense)
        except Exception as e:
            logger.warning("Verdict generation failed for case %s: %s", case.id, e)
            verdict = VERDICT_FALLBACK

        return {
            "case": case.to_dict(),
            "feedback": [f.to_dict() for f in feedback],
            "prosecution": prosecution,
            "defense": defense,
            "verdict": verdict.to_dict(),
        }
