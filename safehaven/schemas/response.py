"""Pydantic schemas for survey answers and scored results."""

from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field

from safehaven.schemas.survey import QuestionType

AnswerValue = Union[str, int, float, list[str], None]


class ResponseState(str, Enum):
    """Lifecycle states of a survey response."""
    IN_PROGRESS = "en_progreso"
    COMPLETED = "completada"
    ABANDONED = "abandonada"


class SubmittedAnswer(BaseModel):
    """Raw answer to one question, referenced by ordinal."""
    question_order: int = Field(..., ge=1, description="Ordinal of the answered question")
    value: AnswerValue = Field(None, description="Answer text, selected labels or number")

    def is_blank(self) -> bool:
        """True when the value counts as unanswered."""
        return self.value is None or self.value == "" or self.value == []


class EnrichedAnswer(SubmittedAnswer):
    """Answer echoed with its question and computed score."""
    question_prompt: str
    question_type: QuestionType
    score: int = Field(..., ge=0)


class AnswerSet(BaseModel):
    """Request body carrying a full or partial answer set."""
    answers: list[SubmittedAnswer] = Field(default_factory=list)


class RecommendationResult(BaseModel):
    """Tier and guidance selected for a total score."""
    tier: str
    description: Optional[str] = None
    recommendations: list[str] = Field(..., min_length=1)
    color: Optional[str] = None


class ScoredResponse(BaseModel):
    """Outcome of a completed survey.

    ``total_score`` is always the sum of the enriched answer scores, and
    the tier fields are derived from it.
    """
    response_id: Optional[int] = None
    survey_id: Optional[int] = None
    survey_title: str
    respondent_id: Optional[str] = None
    answers: list[EnrichedAnswer]
    total_score: int = Field(..., ge=0)
    risk_tier: str
    tier_description: Optional[str] = None
    tier_color: Optional[str] = None
    recommendations: list[str]
    completed_at: datetime
    completion_seconds: Optional[int] = None
    report_url: Optional[str] = None


class ResponseOut(BaseModel):
    """Stored survey response as returned by the API."""
    id: int
    survey_id: int
    survey_title: str
    state: ResponseState
    answers: list[dict]
    total_score: Optional[int] = None
    risk_tier: Optional[str] = None
    recommendations: Optional[list[str]] = None
    started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    completion_seconds: Optional[int] = None
    report_url: Optional[str] = None


class SurveyStatistics(BaseModel):
    """Aggregate figures over a survey's completed responses."""
    survey_id: int
    total_responses: int
    average_score: float
    tier_distribution: dict[str, int]
    average_completion_seconds: float
    first_completed_at: Optional[datetime] = None
    last_completed_at: Optional[datetime] = None
