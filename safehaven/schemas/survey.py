"""Pydantic schemas for survey definitions.

This module defines the structure and validation rules for self-assessment
surveys: ordered questions with typed options, optional custom risk bands
and the default risk scheme the survey is scored with.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


class QuestionType(str, Enum):
    """Valid question types in survey definitions."""
    SINGLE_CHOICE = "opcion_unica"
    MULTIPLE_CHOICE = "opcion_multiple"
    SCALE = "escala"
    FREE_TEXT = "texto_libre"


class SurveyCategory(str, Enum):
    """Survey categories shown in the catalogue."""
    MENTAL_HEALTH = "salud_mental"
    WELLBEING = "bienestar"
    STRESS = "estres"
    ANXIETY = "ansiedad"
    DEPRESSION = "depresion"
    OTHER = "otro"


class RiskTier(str, Enum):
    """Canonical risk tiers produced by the default schemes."""
    LOW = "bajo"
    MEDIUM = "medio"
    HIGH = "alto"
    CRITICAL = "crítico"


class RiskScheme(str, Enum):
    """Default classification used when no custom band matches.

    RELATIVE: thresholds at 25/50/75% of question_count * 4
    ABSOLUTE: fixed cutoffs at 10/20/30 points
    """
    RELATIVE = "relative"
    ABSOLUTE = "absolute"


class PlainLabel(BaseModel):
    """Option scored by its 0-based position in the option list."""
    kind: Literal["plain"] = "plain"
    label: str = Field(..., min_length=1, description="Option text")


class WeightedLabel(BaseModel):
    """Option carrying an explicit score."""
    kind: Literal["weighted"] = "weighted"
    label: str = Field(..., min_length=1, description="Option text")
    score: int = Field(..., ge=0, description="Score awarded when selected")


Option = Annotated[Union[PlainLabel, WeightedLabel], Field(discriminator="kind")]


class Question(BaseModel):
    """A single survey question.

    Options may be given as bare strings or as ``{label, score}`` mappings;
    both are resolved into tagged options during validation.

    Attributes:
        prompt: Question text shown to the respondent
        order: Unique 1-based position within the survey
        type: Answer type
        options: Between 2 and 10 options, all plain or all weighted
        required: Whether completion requires an answer
    """
    prompt: str = Field(..., min_length=1, max_length=500, description="Question text")
    order: int = Field(..., ge=1, description="Position within the survey")
    type: QuestionType = Field(default=QuestionType.SINGLE_CHOICE, description="Answer type")
    options: list[Option] = Field(..., min_length=2, max_length=10, description="Answer options")
    required: bool = Field(default=True, description="Answer required for completion")

    @field_validator("options", mode="before")
    @classmethod
    def resolve_option_shapes(cls, v):
        """Tag raw strings and ``{label, score}`` mappings."""
        if not isinstance(v, list):
            return v

        resolved = []
        for raw in v:
            if isinstance(raw, str):
                resolved.append({"kind": "plain", "label": raw})
            elif isinstance(raw, dict) and "kind" not in raw:
                kind = "weighted" if raw.get("score") is not None else "plain"
                resolved.append({**raw, "kind": kind})
            else:
                resolved.append(raw)
        return resolved

    @model_validator(mode="after")
    def validate_options(self):
        """Reject mixed option kinds and duplicate labels."""
        kinds = {option.kind for option in self.options}
        if len(kinds) > 1:
            raise ValueError(
                f"Question {self.order} mixes plain and weighted options"
            )

        labels = self.labels
        if len(labels) != len(set(labels)):
            duplicates = sorted({label for label in labels if labels.count(label) > 1})
            raise ValueError(f"Question {self.order} has duplicate options: {duplicates}")

        return self

    @property
    def labels(self) -> list[str]:
        """Option labels in display order."""
        return [option.label for option in self.options]

    @property
    def is_weighted(self) -> bool:
        """True when options carry explicit scores."""
        return bool(self.options) and isinstance(self.options[0], WeightedLabel)


class RiskBand(BaseModel):
    """Custom score range overriding the default classification.

    Attributes:
        min_score: Inclusive lower bound
        max_score: Inclusive upper bound
        tier: Tier name reported for totals in range
        description: Explanation shown with the tier
        recommendations: Guidance shown to the respondent, in order
        color: Display color in #RRGGBB form
    """
    min_score: int = Field(..., ge=0, description="Inclusive minimum score")
    max_score: int = Field(..., ge=0, description="Inclusive maximum score")
    tier: str = Field(..., min_length=1, max_length=100, description="Tier name")
    description: Optional[str] = Field(None, max_length=1000, description="Tier description")
    recommendations: list[str] = Field(..., min_length=1, description="Ordered guidance")
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$", description="Hex color")

    @model_validator(mode="after")
    def max_not_below_min(self):
        """Ensure the range is not inverted."""
        if self.max_score < self.min_score:
            raise ValueError(
                f"Band '{self.tier}' has max_score {self.max_score} < min_score {self.min_score}"
            )
        return self

    def contains(self, score: int) -> bool:
        """Check whether a total falls inside this band."""
        return self.min_score <= score <= self.max_score


class SurveyDefinition(BaseModel):
    """Complete survey definition.

    Attributes:
        title: Survey title
        description: Survey description
        category: Catalogue category
        estimated_minutes: Estimated completion time
        version: Author-assigned version label
        risk_scheme: Default classification applied when no band matches
        questions: Ordered questions (sorted by ``order`` on validation)
        risk_bands: Optional custom risk bands
    """
    title: str = Field(..., min_length=5, max_length=200, description="Survey title")
    description: Optional[str] = Field(None, max_length=1000, description="Survey description")
    category: SurveyCategory = Field(default=SurveyCategory.OTHER, description="Survey category")
    estimated_minutes: Optional[int] = Field(None, ge=1, le=120, description="Estimated duration")
    version: str = Field(default="1.0", min_length=1, max_length=20, description="Survey version")
    risk_scheme: RiskScheme = Field(..., description="Default risk classification scheme")
    questions: list[Question] = Field(..., min_length=1, max_length=50)
    risk_bands: list[RiskBand] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_question_order(self):
        """Check ordinal uniqueness and sort questions by ordinal."""
        orders = [question.order for question in self.questions]
        if len(orders) != len(set(orders)):
            duplicates = sorted({o for o in orders if orders.count(o) > 1})
            raise ValueError(f"Duplicate question orders found: {duplicates}")

        self.questions.sort(key=lambda question: question.order)
        return self

    def get_question(self, order: int) -> Optional[Question]:
        """Get question by ordinal position.

        Args:
            order: Question ordinal

        Returns:
            Question if found, None otherwise
        """
        for question in self.questions:
            if question.order == order:
                return question
        return None

    @property
    def required_questions(self) -> list[Question]:
        """Questions that must be answered before completion."""
        return [question for question in self.questions if question.required]


class SurveyOut(SurveyDefinition):
    """Stored survey as returned by the API."""
    id: int
    active: bool
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SurveyPage(BaseModel):
    """One page of the survey catalogue."""
    surveys: list[SurveyOut]
    page: int
    total_pages: int
    total: int
