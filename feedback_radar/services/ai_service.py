"""
Claude AI integration for feedback triage.

This service provides the AI judgment capability used by the pipeline:
1. Sentiment classification (per-feedback workflow)
2. Under-the-radar judgment (classifier and batch detector)
3. Case review: feedback summary + verdict
4. Daily edition generation
"""

import copy
import json
import re
import asyncio
import random
import logging
from typing import Optional
from functools import wraps

from anthropic import Anthropic
import anthropic
import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from feedback_radar.config import settings
from feedback_radar.services.ai_base import (
    JudgmentService,
    SentimentResult,
    UnderRadarJudgment,
    Verdict,
    EDITION_FALLBACK,
)
from feedback_radar.services.ai_schemas import (
    SentimentSchema,
    UnderRadarSchema,
    VerdictSchema,
    TopStorySchema,
    EditionItemSchema,
    UnderRadarItemSchema,
)
from feedback_radar.services.prompts import (
    SENTIMENT_SYSTEM_PROMPT,
    UNDER_RADAR_SYSTEM_PROMPT,
    SUMMARIZE_FEEDBACK_SYSTEM_PROMPT,
    VERDICT_SYSTEM_PROMPT,
    NEWSROOM_EDITION_SYSTEM_PROMPT,
    build_edition_user_message,
    build_verdict_user_message,
)


logger = logging.getLogger(__name__)

_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)
_JSON_SPAN_RE = re.compile(r"\{[\s\S]*\}|\[[\s\S]*\]")

EDITION_LIST_SECTIONS = {
    "breakingIssues": EditionItemSchema,
    "underRadar": UnderRadarItemSchema,
    "developerExperience": EditionItemSchema,
    "pricingLimits": EditionItemSchema,
    "falseAlarms": EditionItemSchema,
}


def _fix_trailing_commas(text: str) -> str:
    """Fix trailing commas in JSON (common LLM error)."""
    text = re.sub(r",\s*}", "}", text)
    text = re.sub(r",\s*]", "]", text)
    return text


def clean_ai_response(response_text: str) -> str:
    """
    Extract the JSON payload from a model response.

    Handles ```json fenced blocks, leading/trailing prose and trailing commas.
    Incomplete JSON is returned as-is so field-level fallbacks can still run.
    """
    cleaned = response_text.strip()

    match = _CODE_BLOCK_RE.search(cleaned)
    if match and match.group(1):
        cleaned = match.group(1).strip()
    else:
        span = _JSON_SPAN_RE.search(cleaned)
        if span:
            cleaned = span.group(0)

    # Drop anything before the first { or [
    first_brace = cleaned.find("{")
    first_bracket = cleaned.find("[")
    if first_brace != -1 and (first_bracket == -1 or first_brace < first_bracket):
        cleaned = cleaned[first_brace:]
    elif first_bracket != -1:
        cleaned = cleaned[first_bracket:]

    # Drop anything after the matching last } or ]
    last_brace = cleaned.rfind("}")
    last_bracket = cleaned.rfind("]")
    if cleaned.startswith("{") and last_brace > 0:
        cleaned = cleaned[: last_brace + 1]
    elif cleaned.startswith("[") and last_bracket > 0:
        cleaned = cleaned[: last_bracket + 1]

    return _fix_trailing_commas(cleaned.strip())


def retry_on_connection_error(max_attempts=3, base_delay=1.0):
    """
    Retry decorator for API calls that may fail due to transient network issues.

    Args:
        max_attempts: Maximum retry attempts (default 3)
        base_delay: Base delay in seconds for exponential backoff (default 1.0)
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except anthropic.APIConnectionError as e:
                    last_exception = e

                    if attempt < max_attempts - 1:
                        # Exponential backoff with jitter
                        delay = base_delay * (2**attempt)
                        jitter = delay * 0.1 * (2 * random.random() - 1)
                        sleep_time = delay + jitter

                        logger.warning(
                            "Connection error on attempt %d/%d, retrying in %.1fs...",
                            attempt + 1,
                            max_attempts,
                            sleep_time,
                        )
                        await asyncio.sleep(sleep_time)
                    else:
                        logger.error("All %d attempts failed", max_attempts)

            raise ServiceUnavailableError(
                "AI service temporarily unavailable after retries"
            ) from last_exception

        return wrapper

    return decorator


def _extract_under_radar_fields(cleaned_text: str) -> UnderRadarJudgment:
    """Best-effort field extraction from malformed under-radar JSON."""
    lower = cleaned_text.lower()

    reason_match = re.search(
        r"[\"']reason[\"']\s*:\s*[\"']([^\"']+)[\"']", cleaned_text, re.IGNORECASE
    ) or re.search(r"reason[\"\s:]*\"([^\"]+)\"", cleaned_text, re.IGNORECASE)
    severity_match = re.search(
        r"[\"']severity[\"']\s*:\s*(\d+)", cleaned_text, re.IGNORECASE
    ) or re.search(r"severity[\"\s:]*(\d+)", cleaned_text, re.IGNORECASE)
    flag_match = re.search(
        r"[\"']isUnderRadar[\"']\s*:\s*(true|false)", cleaned_text, re.IGNORECASE
    )

    if flag_match:
        is_flagged = flag_match.group(1).lower() == "true"
    elif re.search(r"isunderradar[\"\s:]*true", lower):
        is_flagged = True
    else:
        is_flagged = (
            "under the radar" in lower or "high-severity" in lower or "overlooked" in lower
        )

    if reason_match:
        reason = reason_match.group(1)
    else:
        reason = re.sub(r"```json|```|[{}\[\]]", "", cleaned_text).strip()[:200]

    if severity_match:
        severity = int(severity_match.group(1))
    elif "critical" in lower:
        severity = 9
    elif "high" in lower:
        severity = 7
    else:
        severity = 3

    return UnderRadarJudgment(
        is_under_radar=is_flagged,
        reason=reason or "High-severity issue detected",
        severity=max(1, min(severity, 10)),
    )


def _extract_sentiment(cleaned_text: str) -> SentimentResult:
    lower = cleaned_text.lower()
    if "positive" in lower:
        return SentimentResult(sentiment="positive", score=0.7)
    if "negative" in lower:
        return SentimentResult(sentiment="negative", score=0.3)
    return SentimentResult(sentiment="neutral", score=0.5)


def _extract_verdict(cleaned_text: str) -> Verdict:
    lower = cleaned_text.lower()
    verdict_text = re.sub(r"```json|```", "", cleaned_text).strip()[:300]
    verdict_text = re.sub(r"^[^{]*\{", "", verdict_text)
    verdict_text = re.sub(r"\}[^}]*$", "", verdict_text).strip()

    if "critical" in lower:
        urgency = "critical"
    elif "high" in lower:
        urgency = "high"
    elif "low" in lower:
        urgency = "low"
    else:
        urgency = "medium"

    action_match = re.search(r"suggestedaction[\"\s:]*\"([^\"]+)\"", cleaned_text, re.IGNORECASE)
    return Verdict(
        verdict=verdict_text or "Needs investigation",
        urgency=urgency,
        suggested_action=(
            action_match.group(1)
            if action_match
            else "Review feedback and take appropriate action"
        ),
    )


def _coerce_edition(parsed: dict) -> dict:
    """
    Validate an edition payload section by section.

    Invalid list items are dropped rather than failing the whole edition.
    """
    top_story = parsed.get("topStory")
    try:
        top = TopStorySchema.model_validate(top_story if isinstance(top_story, dict) else {})
    except ValidationError:
        top = TopStorySchema()

    edition = {"topStory": top.model_dump(by_alias=True)}
    for section, schema_class in EDITION_LIST_SECTIONS.items():
        items = parsed.get(section)
        valid = []
        if isinstance(items, list):
            for item in items:
                try:
                    valid.append(schema_class.model_validate(item).model_dump(by_alias=True))
                except ValidationError:
                    logger.warning("Dropping invalid %s item from edition: %r", section, item)
        edition[section] = valid
    return edition


class ClaudeService(JudgmentService):
    """Centralized Claude API integration for all AI features."""

    def __init__(self):
        timeout = httpx.Timeout(
            timeout=settings.anthropic_timeout,
            connect=settings.anthropic_connect_timeout,
        )
        self.client = Anthropic(api_key=settings.anthropic_api_key, timeout=timeout)
        self.judgment_model = settings.judgment_model
        self.edition_model = settings.edition_model

    # =========================================================================
    # REQUEST + PARSE HELPERS
    # =========================================================================

    def _complete(self, model: str, system: str, user_content: str, max_tokens: int) -> str:
        """
        Make a single Messages API call and return the concatenated text.

        Raises:
            anthropic.APIConnectionError: Connection failure or timeout (retried by caller)
            ServiceUnavailableError: 5xx from the API
            RateLimitError: Too many requests
            ValueError: Other request errors
        """
        try:
            response = self.client.messages.create(
                model=model,
                max_tokens=max_tokens,
                system=system,
                messages=[{"role": "user", "content": user_content}],
            )
        except anthropic.RateLimitError as e:
            raise RateLimitError("Too many requests, please try again in 1 minute") from e
        except anthropic.APIStatusError as e:
            if e.status_code >= 500:
                raise ServiceUnavailableError("AI service error") from e
            raise ValueError(f"Request error: {e.message}") from e

        response_text = ""
        for block in response.content:
            if hasattr(block, "text"):
                response_text += block.text
        return response_text

    def _parse_with_schema(self, cleaned_text: str, schema_class: type[BaseModel]) -> BaseModel:
        """
        Parse cleaned JSON text and validate it against a schema.

        Raises:
            ValueError: If the text is not valid JSON or fails validation
        """
        try:
            parsed = json.loads(cleaned_text)
            return TypeAdapter(schema_class).validate_python(parsed)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(
                "AI response schema validation failed for %s: %s",
                schema_class.__name__,
                str(e),
            )
            raise ValueError(f"AI response failed schema validation: {e}") from e

    # =========================================================================
    # PER-FEEDBACK JUDGMENTS
    # =========================================================================

    @retry_on_connection_error(max_attempts=3, base_delay=1.0)
    async def analyze_sentiment(self, content: str) -> SentimentResult:
        """
        Classify the sentiment of one feedback item.

        Falls back to keyword extraction when the response is not valid JSON.

        Raises:
            ServiceUnavailableError: AI service unavailable
            RateLimitError: Too many requests
        """
        raw_text = self._complete(
            self.judgment_model, SENTIMENT_SYSTEM_PROMPT, content, max_tokens=100
        )
        cleaned = clean_ai_response(raw_text)
        try:
            validated = self._parse_with_schema(cleaned, SentimentSchema)
        except ValueError:
            return _extract_sentiment(cleaned)
        return SentimentResult(sentiment=validated.sentiment, score=validated.score)

    @retry_on_connection_error(max_attempts=3, base_delay=1.0)
    async def detect_under_radar(
        self, content: str, context: Optional[str] = None
    ) -> UnderRadarJudgment:
        """
        Judge whether feedback is a high-severity item that could be overlooked.

        Args:
            content: Feedback text
            context: Optional extra context appended to the user turn

        Returns:
            UnderRadarJudgment with severity clamped to 1-10

        Raises:
            ServiceUnavailableError: AI service unavailable
            RateLimitError: Too many requests
        """
        user_content = f"{content}\n\nContext: {context}" if context else content
        raw_text = self._complete(
            self.judgment_model, UNDER_RADAR_SYSTEM_PROMPT, user_content, max_tokens=150
        )
        cleaned = clean_ai_response(raw_text)
        try:
            validated = self._parse_with_schema(cleaned, UnderRadarSchema)
        except ValueError:
            return _extract_under_radar_fields(cleaned)
        return UnderRadarJudgment(
            is_under_radar=validated.is_under_radar,
            reason=validated.reason or "Normal feedback",
            severity=validated.severity,
        )

    # =========================================================================
    # CASE REVIEW
    # =========================================================================

    @retry_on_connection_error(max_attempts=3, base_delay=1.0)
    async def summarize_feedback(self, feedback_items: list[str]) -> str:
        combined = "\n\n---\n\n".join(feedback_items)
        summary = self._complete(
            self.edition_model, SUMMARIZE_FEEDBACK_SYSTEM_PROMPT, combined, max_tokens=200
        )
        return summary.strip() or "Unable to generate summary"

    @retry_on_connection_error(max_attempts=3, base_delay=1.0)
    async def generate_verdict(self, prosecution: str, defense: str) -> Verdict:
        raw_text = self._complete(
            self.edition_model,
            VERDICT_SYSTEM_PROMPT,
            build_verdict_user_message(prosecution, defense),
            max_tokens=300,
        )
        cleaned = clean_ai_response(raw_text)
        try:
            validated = self._parse_with_schema(cleaned, VerdictSchema)
        except ValueError:
            return _extract_verdict(cleaned)
        return Verdict(
            verdict=validated.verdict,
            urgency=validated.urgency,
            suggested_action=validated.suggested_action,
        )

    # =========================================================================
    # DAILY EDITION
    # =========================================================================

    @retry_on_connection_error(max_attempts=3, base_delay=2.0)
    async def generate_newsroom_edition(self, edition_input: dict) -> dict:
        """
        Produce the daily edition artifact.

        Returns:
            {
                "topStory": {"headline": str, "body": str, "feedbackId": int|None},
                "breakingIssues": [{"title", "excerpt", "feedbackId"}],
                "underRadar": [{"excerpt", "severity", "reason", "feedbackId"}],
                "developerExperience": [...],
                "pricingLimits": [...],
                "falseAlarms": [...]
            }

        Raises:
            ServiceUnavailableError: AI service unavailable
            RateLimitError: Too many requests
        """
        raw_text = self._complete(
            self.edition_model,
            NEWSROOM_EDITION_SYSTEM_PROMPT,
            build_edition_user_message(edition_input),
            max_tokens=2000,
        )
        cleaned = clean_ai_response(raw_text)
        try:
            parsed = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.warning("Newsroom edition was not valid JSON, using fallback: %s", e)
            return copy.deepcopy(EDITION_FALLBACK)

        if not isinstance(parsed, dict):
            logger.warning("Newsroom edition was not a JSON object, using fallback")
            return copy.deepcopy(EDITION_FALLBACK)

        return _coerce_edition(parsed)


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================


class ServiceUnavailableError(Exception):
    """AI service is temporarily unavailable."""

    pass


class RateLimitError(Exception):
    """Rate limit exceeded."""

    pass
