"""Pydantic schemas for data validation.

This package contains all Pydantic models for survey definitions, answers
and scored results.
"""

from safehaven.schemas.survey import (
    QuestionType,
    SurveyCategory,
    RiskTier,
    RiskScheme,
    PlainLabel,
    WeightedLabel,
    Question,
    RiskBand,
    SurveyDefinition,
    SurveyOut,
    SurveyPage,
)
from safehaven.schemas.response import (
    ResponseState,
    SubmittedAnswer,
    EnrichedAnswer,
    AnswerSet,
    RecommendationResult,
    ScoredResponse,
    ResponseOut,
    SurveyStatistics,
)

__all__ = [
    "QuestionType",
    "SurveyCategory",
    "RiskTier",
    "RiskScheme",
    "PlainLabel",
    "WeightedLabel",
    "Question",
    "RiskBand",
    "SurveyDefinition",
    "SurveyOut",
    "SurveyPage",
    "ResponseState",
    "SubmittedAnswer",
    "EnrichedAnswer",
    "AnswerSet",
    "RecommendationResult",
    "ScoredResponse",
    "ResponseOut",
    "SurveyStatistics",
]
