"""
Keyword heuristic for feedback severity.

Higher score = higher severity. Looks for language that indicates production
issues, blocking problems, customer impact and scale.
"""
import re
from dataclasses import dataclass


UNDER_RADAR_THRESHOLD = 5
MAX_SEVERITY = 10

CRITICAL_KEYWORDS = [
    "urgent",
    "critical",
    "production down",
    "prod down",
    "incident",
    "blocked",
    "blocking",
    "breaking",
    "broken",
    "down",
    "failed",
    "timeout",
    "error",
    "bug",
    "unacceptable",
]

HIGH_KEYWORDS = [
    "issue",
    "problem",
    "confusing",
    "unexpected",
    "inconsistent",
    "frustrated",
    "disappointed",
    "concerned",
]

CRITICAL_WEIGHT = 3
HIGH_WEIGHT = 1
PRODUCTION_BONUS = 2
CUSTOMER_BONUS = 1
SCALE_BONUS = 1
EMPHASIS_BONUS = 1

SCALE_PATTERN = re.compile(r"\d+k|\d+,\d+|\d{4,}")

NORMAL_FEEDBACK_REASON = "Normal feedback"


@dataclass(frozen=True)
class SeverityScore:
    score: int
    reason: str

    def to_dict(self) -> dict:
        return {"score": self.score, "reason": self.reason}


def calculate_severity_score(content: str) -> SeverityScore:
    """
    Score feedback content from 0 to 10.

    Every matched critical keyword adds 3 and every matched high-severity
    keyword adds 1. Mentions of production (+2), customers or users (+1),
    scale numbers like "12k" (+1) and repeated exclamation marks (+1) add
    bonuses. The sum is capped at 10.

    Args:
        content: Raw feedback text

    Returns:
        SeverityScore with the capped score and a "; "-joined reason listing
        each rule that fired, or "Normal feedback" when none did.
    """
    lower_content = content.lower()
    score = 0
    reasons = []

    critical_matches = [k for k in CRITICAL_KEYWORDS if k in lower_content]
    if critical_matches:
        score += len(critical_matches) * CRITICAL_WEIGHT
        reasons.append(f"Critical keywords detected: {', '.join(critical_matches)}")

    high_matches = [k for k in HIGH_KEYWORDS if k in lower_content]
    if high_matches:
        score += len(high_matches) * HIGH_WEIGHT
        reasons.append(f"High-severity keywords: {', '.join(high_matches)}")

    if "production" in lower_content or "prod" in lower_content:
        score += PRODUCTION_BONUS
        reasons.append("Production environment mentioned")

    if "customer" in lower_content or "user" in lower_content:
        score += CUSTOMER_BONUS
        reasons.append("Customer/user impact mentioned")

    scale_matches = SCALE_PATTERN.findall(lower_content)
    if scale_matches:
        score += SCALE_BONUS
        reasons.append(f"Scale indicators found: {', '.join(scale_matches)}")

    # Two or more "!" split the text into more than two parts
    if len(lower_content.split("!")) > 2:
        score += EMPHASIS_BONUS
        reasons.append("Strong emotional language detected")

    return SeverityScore(
        score=min(score, MAX_SEVERITY),
        reason="; ".join(reasons) or NORMAL_FEEDBACK_REASON,
    )


def is_under_radar(severity_score: float, volume: int = 1) -> bool:
    """High severity, low volume: score >= 5 reported by at most 3 items."""
    return severity_score >= UNDER_RADAR_THRESHOLD and volume <= 3
