"""
Pydantic models for validating structured JSON responses from Claude AI.

Each schema corresponds to one AI method's expected response format.
Used by _parse_with_schema() in ai_service.py.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Sentiment (analyze_sentiment) ---


class SentimentSchema(BaseModel):
    sentiment: Literal["positive", "negative", "neutral"] = "neutral"
    score: float = Field(ge=0, le=1, default=0.5)

    @field_validator("sentiment", mode="before")
    @classmethod
    def normalize_sentiment(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


# --- Under-the-radar detection (detect_under_radar) ---


class UnderRadarSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_under_radar: bool = Field(alias="isUnderRadar", default=False)
    reason: str = "Normal feedback"
    severity: int = Field(ge=1, le=10, default=3)


# --- Case verdict (generate_verdict) ---


class VerdictSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    verdict: str = "Needs investigation"
    urgency: Literal["low", "medium", "high", "critical"] = "medium"
    suggested_action: str = Field(alias="suggestedAction", default="Review feedback")


# --- Daily edition (generate_newsroom_edition) ---


class _EditionModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class TopStorySchema(_EditionModel):
    headline: str = "No top story"
    body: str = ""
    feedback_id: Optional[int] = Field(alias="feedbackId", default=None)


class EditionItemSchema(_EditionModel):
    title: Optional[str] = None
    excerpt: str
    feedback_id: Optional[int] = Field(alias="feedbackId", default=None)


class UnderRadarItemSchema(_EditionModel):
    excerpt: str
    severity: float = 0
    reason: str = ""
    feedback_id: Optional[int] = Field(alias="feedbackId", default=None)
