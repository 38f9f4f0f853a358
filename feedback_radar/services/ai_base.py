"""Abstract AI judgment interface and the value types it returns."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Optional


@dataclass(frozen=True)
class SentimentResult:
    sentiment: str  # positive|negative|neutral
    score: float  # 0-1

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class UnderRadarJudgment:
    is_under_radar: bool
    reason: str
    severity: int  # 1-10

    def to_dict(self) -> dict:
        return {
            "isUnderRadar": self.is_under_radar,
            "reason": self.reason,
            "severity": self.severity,
        }


@dataclass(frozen=True)
class Verdict:
    verdict: str
    urgency: str  # low|medium|high|critical
    suggested_action: str

    def to_dict(self) -> dict:
        return {
            "verdict": self.verdict,
            "urgency": self.urgency,
            "suggestedAction": self.suggested_action,
        }


# Safe defaults substituted by callers when the judgment collaborator fails
NEUTRAL_SENTIMENT = SentimentResult(sentiment="neutral", score=0.5)
UNDER_RADAR_FALLBACK = UnderRadarJudgment(
    is_under_radar=False, reason="Error analyzing", severity=3
)
VERDICT_FALLBACK = Verdict(
    verdict="Unable to generate verdict",
    urgency="medium",
    suggested_action="Manual review required",
)
SUMMARY_FALLBACK = "Error generating summary"
EDITION_FALLBACK = {
    "topStory": {
        "headline": "Edition unavailable",
        "body": "AI could not generate today's edition.",
        "feedbackId": None,
    },
    "breakingIssues": [],
    "underRadar": [],
    "developerExperience": [],
    "pricingLimits": [],
    "falseAlarms": [],
}


class JudgmentService(ABC):
    """
    AI judgment capability used by the triage pipeline.

    Implementations may raise ServiceUnavailableError or RateLimitError; the
    component that calls them is responsible for substituting a safe default.
    """

    @abstractmethod
    async def analyze_sentiment(self, content: str) -> SentimentResult:
        pass

    @abstractmethod
    async def detect_under_radar(
        self, content: str, context: Optional[str] = None
    ) -> UnderRadarJudgment:
        pass

    @abstractmethod
    async def summarize_feedback(self, feedback_items: list[str]) -> str:
        pass

    @abstractmethod
    async def generate_verdict(self, prosecution: str, defense: str) -> Verdict:
        pass

    @abstractmethod
    async def generate_newsroom_edition(self, edition_input: dict) -> dict:
        """
        Summarize cases, flags and recent feedback into an edition artifact.

        Args:
            edition_input: {"casesSummary", "underRadarSummary", "recentFeedbackSummary"}

        Returns:
            Edition dict with topStory and the five list sections. Unparseable
            model output yields EDITION_FALLBACK rather than an exception.
        """
        pass
