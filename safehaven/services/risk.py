"""Risk tier resolution.

A survey's custom bands take precedence. When none contains the total, the
survey's declared default scheme applies: either thresholds relative to the
maximum attainable score, or fixed absolute cutoffs.
"""

from typing import Optional

from safehaven.schemas.survey import RiskBand, RiskScheme, RiskTier, SurveyDefinition
from safehaven.logging_config import get_logger

logger = get_logger(__name__)

# Nominal maximum per question used by the relative scheme
MAX_SCORE_PER_QUESTION = 4

# Percentages of the maximum at which medio, alto and crítico begin
RELATIVE_THRESHOLD_PERCENTS = (25, 50, 75)

# Inclusive upper bounds for bajo, medio and alto; above is crítico
ABSOLUTE_CUTOFFS = (
    (10, RiskTier.LOW),
    (20, RiskTier.MEDIUM),
    (30, RiskTier.HIGH),
)


def relative_thresholds(question_count: int) -> tuple[int, int, int]:
    """Compute the medio/alto/crítico thresholds for a question count.

    Args:
        question_count: Number of questions in the survey

    Returns:
        Thresholds at 25%, 50% and 75% of the maximum, rounded up

    Example:
        >>> relative_thresholds(15)
        (15, 30, 45)
    """
    max_possible = question_count * MAX_SCORE_PER_QUESTION
    # Integer ceiling division avoids float rounding at exact boundaries
    medium, high, critical = (
        -(-max_possible * percent // 100) for percent in RELATIVE_THRESHOLD_PERCENTS
    )
    return medium, high, critical


def classify_relative(total_score: int, question_count: int) -> RiskTier:
    """Classify a total against thresholds derived from the question count."""
    medium, high, critical = relative_thresholds(question_count)

    if total_score >= critical:
        return RiskTier.CRITICAL
    if total_score >= high:
        return RiskTier.HIGH
    if total_score >= medium:
        return RiskTier.MEDIUM
    return RiskTier.LOW


def classify_absolute(total_score: int) -> RiskTier:
    """Classify a total against the fixed 10/20/30 cutoffs."""
    for upper_bound, tier in ABSOLUTE_CUTOFFS:
        if total_score <= upper_bound:
            return tier
    return RiskTier.CRITICAL


def classify_default(total_score: int, survey: SurveyDefinition) -> RiskTier:
    """Apply the survey's declared default scheme."""
    if survey.risk_scheme == RiskScheme.ABSOLUTE:
        return classify_absolute(total_score)
    return classify_relative(total_score, len(survey.questions))


def find_band(total_score: int, bands: list[RiskBand]) -> Optional[RiskBand]:
    """Find the custom band containing a total.

    Bands are scanned lowest ``min_score`` first; bands sharing a minimum
    keep their authored order. The first containing band wins.

    Args:
        total_score: Summed score
        bands: Custom bands in authored order

    Returns:
        Matching band, or None
    """
    for band in sorted(bands, key=lambda b: b.min_score):
        if band.contains(total_score):
            return band
    return None


def resolve_risk_tier(total_score: int, survey: SurveyDefinition) -> str:
    """Resolve the tier name for a total score.

    Args:
        total_score: Summed score
        survey: Survey definition providing bands and default scheme

    Returns:
        Tier name: a band's tier, or a canonical tier value
    """
    band = find_band(total_score, survey.risk_bands)
    if band is not None:
        return band.tier

    if survey.risk_bands:
        logger.debug(
            f"No custom band contains score {total_score}; "
            f"using {survey.risk_scheme.value} scheme"
        )
    return classify_default(total_score, survey).value
