"""
AI prompt templates for feedback triage, case verdicts and the daily edition.

Prompts ask for bare JSON. Responses are still cleaned defensively because
models occasionally wrap JSON in markdown fences or add leading prose.
"""

# =============================================================================
# PER-FEEDBACK JUDGMENTS (judgment model)
# =============================================================================

SENTIMENT_SYSTEM_PROMPT = """You classify the sentiment of product feedback.

Respond with JSON only, no markdown:
{"sentiment": "positive|negative|neutral", "score": 0-1}

score is 0 for strongly negative, 0.5 for neutral, 1 for strongly positive."""

UNDER_RADAR_SYSTEM_PROMPT = """Analyze this feedback to determine if it represents an item "flying under the radar": a high-severity issue that might be overlooked because few people reported it.

Under the radar indicators:
- production issues or outages
- blocking problems with no workaround
- critical bugs, data loss, security concerns
- direct customer impact
- urgent language

Respond with JSON only, no markdown:
{"isUnderRadar": true/false, "reason": "one sentence explanation", "severity": 1-10}"""

# =============================================================================
# CASE REVIEW (edition model)
# =============================================================================

SUMMARIZE_FEEDBACK_SYSTEM_PROMPT = """Summarize the following customer feedback into a concise 2-3 sentence summary. Focus on the main issue or theme. Respond with plain text only."""

VERDICT_SYSTEM_PROMPT = """You are a product manager evaluating a case of bundled customer feedback.

You receive a prosecution (the customer complaints) and a defense (counterpoints).

Respond with JSON only, no markdown:
{"verdict": "your assessment", "urgency": "low|medium|high|critical", "suggestedAction": "what to do next"}"""

# =============================================================================
# DAILY EDITION (edition model)
# =============================================================================

NEWSROOM_EDITION_SYSTEM_PROMPT = """You are writing the daily Feedback Journal, a newspaper-style digest of product feedback for the engineering and product teams.

Respond with ONLY a JSON object (no markdown) with this exact structure:
{
  "topStory": { "headline": "string", "body": "string", "feedbackId": number or null },
  "breakingIssues": [ { "title": "string", "excerpt": "string", "feedbackId": number or null } ],
  "underRadar": [ { "excerpt": "string", "severity": number, "reason": "string", "feedbackId": number or null } ],
  "developerExperience": [ { "title": "string", "excerpt": "string", "feedbackId": number or null } ],
  "pricingLimits": [ { "title": "string", "excerpt": "string", "feedbackId": number or null } ],
  "falseAlarms": [ { "title": "string", "excerpt": "string", "feedbackId": number or null } ]
}

GUIDELINES:
- Feedback ids appear in square brackets in the input, e.g. [42]. Reference them in feedbackId.
- Use empty arrays where there are no items.
- Keep excerpts under 200 characters.
- falseAlarms holds loud feedback that turned out to be expected behaviour or user error."""


def build_edition_user_message(edition_input: dict) -> str:
    """Format the aggregated edition input for the user turn."""
    return f"""Based on the following data, produce today's edition as JSON.

Cases/bundled feedback summary:
{edition_input.get("casesSummary", "No cases yet.")}

Under-the-radar (high-severity, low-volume) feedback:
{edition_input.get("underRadarSummary", "None")}

Recent feedback summary:
{edition_input.get("recentFeedbackSummary", "No recent feedback")}"""


def build_verdict_user_message(prosecution: str, defense: str) -> str:
    return f"""Prosecution (customer complaints):
{prosecution}

Defense (counterpoints):
{defense}

Generate the verdict."""
