"""
Under-the-radar detection: high-severity feedback that few people reported.

UnderRadarClassifier decides and persists the flag for one item.
BatchDetector sweeps the most recent feedback window through the classifier.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from feedback_radar.config import settings
from feedback_radar.models import Feedback, UnderRadarFlag
from feedback_radar.services.ai_base import (
    JudgmentService,
    UnderRadarJudgment,
    UNDER_RADAR_FALLBACK,
)
from feedback_radar.services.feedback_store import FeedbackStore
from feedback_radar.services.scoring import (
    SeverityScore,
    calculate_severity_score,
    is_under_radar,
)

logger = logging.getLogger(__name__)


@dataclass
class ClassificationResult:
    flagged: bool
    flag: Optional[UnderRadarFlag] = None
    created: bool = False  # True only when this call inserted the flag
    heuristic: Optional[SeverityScore] = None  # None when an existing flag short-circuited
    judgment: Optional[UnderRadarJudgment] = None

    def to_dict(self) -> dict:
        return {
            "flagged": self.flagged,
            "created": self.created,
            "flag": self.flag.to_dict() if self.flag else None,
            "severityScore": self.heuristic.to_dict() if self.heuristic else None,
            "analysis": self.judgment.to_dict() if self.judgment else None,
        }


class UnderRadarClassifier:
    """Combines the severity heuristic with an AI judgment and flags at most once per item."""

    def __init__(self, store: FeedbackStore, judgment: JudgmentService):
        self.store = store
        self.judgment = judgment

    async def classify(self, feedback: Feedback) -> ClassificationResult:
        """
        Classify one feedback item and persist a flag if it qualifies.

        An existing flag is returned unchanged without calling the AI. AI
        failures are absorbed with UNDER_RADAR_FALLBACK. Storage failures
        propagate as PersistenceError.
        """
        existing = self.store.get_flag_by_feedback_id(feedback.id)
        if existing:
            return ClassificationResult(flagged=True, flag=existing)

        heuristic = calculate_severity_score(feedback.content)
        judgment = await self._judge(feedback)

        if not (is_under_radar(heuristic.score) or judgment.is_under_radar):
            return ClassificationResult(flagged=False, heuristic=heuristic, judgment=judgment)

        flag = self.store.insert_flag(
            feedback_id=feedback.id,
            severity_score=max(heuristic.score, judgment.severity),
            reason=f"AI: {judgment.reason}. Scoring: {heuristic.reason}",
        )
        logger.info(
            "Flagged feedback %s as under the radar (severity %s)",
            feedback.id,
            flag.severity_score,
        )
        return ClassificationResult(
            flagged=True,
            flag=flag,
            created=True,
            heuristic=heuristic,
            judgment=judgment,
        )

    async def classify_by_id(self, feedback_id: int) -> Optional[ClassificationResult]:
        """Classify by id; None when the feedback does not exist."""
        feedback = self.store.get_feedback(feedback_id)
        if not feedback:
            return None
        return await self.classify(feedback)

    async def _judge(self, feedback: Feedback) -> UnderRadarJudgment:
        try:
            return await self.judgment.detect_under_radar(feedback.content)
        except Exception as e:
            logger.warning(
                "Under-radar judgment failed for feedback %s, using safe default: %s",
                feedback.id,
                e,
            )
            return UNDER_RADAR_FALLBACK


class BatchDetector:
    """
    Periodic sweep of recent feedback through the classifier.

    Items that were evaluated but did not qualify leave no marker, so every
    run re-evaluates them (including a fresh AI call).
    """

    def __init__(self, store: FeedbackStore, classifier: UnderRadarClassifier):
        self.store = store
        self.classifier = classifier

    async def run_batch_detection(self, limit: Optional[int] = None) -> int:
        """
        Classify every unflagged item in the most recent window.

        Args:
            limit: Window size (defaults to settings.batch_detection_window)

        Returns:
            Number of flags created by this run
        """
        if limit is None:
            limit = settings.batch_detection_window
        window = self.store.list_feedback(limit=limit)
        flagged_count = 0

        for feedback in window:
            if self.store.get_flag_by_feedback_id(feedback.id):
                continue

            result = await self.classifier.classify(feedback)
            if result.created:
                flagged_count += 1

        logger.info(
            "Batch detection scanned %d items, flagged %d", len(window), flagged_count
        )
        return flagged_count
