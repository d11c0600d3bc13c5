"""Aggregate statistics over a survey's completed responses."""

from sqlalchemy.orm import Session

from safehaven.models.response import as_utc
from safehaven.schemas.response import SurveyStatistics
from safehaven.schemas.survey import RiskTier
from safehaven.services.response_store import ResponseRepository
from safehaven.services.survey_store import SurveyRepository


def survey_statistics(db: Session, survey_id: int) -> SurveyStatistics:
    """Summarize completed responses to a survey.

    The canonical tiers always appear in the distribution; custom band
    tier names are added as they occur.

    Args:
        db: Database session
        survey_id: Survey to summarize

    Returns:
        SurveyStatistics (zeros when nothing has been completed)

    Raises:
        NotFoundError: If no survey has this id
    """
    SurveyRepository(db).find_survey_by_id(survey_id)
    responses = ResponseRepository(db).completed_for_survey(survey_id)

    distribution = {tier.value: 0 for tier in RiskTier}
    for response in responses:
        if response.risk_tier:
            distribution[response.risk_tier] = distribution.get(response.risk_tier, 0) + 1

    if not responses:
        return SurveyStatistics(
            survey_id=survey_id,
            total_responses=0,
            average_score=0.0,
            tier_distribution=distribution,
            average_completion_seconds=0.0,
        )

    count = len(responses)
    completed = [as_utc(r.completed_at) for r in responses if r.completed_at is not None]

    return SurveyStatistics(
        survey_id=survey_id,
        total_responses=count,
        average_score=round(sum(r.total_score or 0 for r in responses) / count, 2),
        tier_distribution=distribution,
        average_completion_seconds=round(
            sum(r.completion_seconds or 0 for r in responses) / count, 2
        ),
        first_completed_at=min(completed) if completed else None,
        last_completed_at=max(completed) if completed else None,
    )
