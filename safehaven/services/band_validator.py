"""Risk band validator for structural analysis.

This module inspects a survey's custom risk bands to find:
- Overlapping ranges (the lowest-starting band wins at scoring time)
- Gaps between consecutive ranges
- Attainable totals not covered by any band
"""

from typing import List

from safehaven.schemas.survey import QuestionType, RiskBand, SurveyDefinition
from safehaven.errors import SurveyDefinitionError
from safehaven.services.scoring import SCORED_TYPES
from safehaven.logging_config import get_logger

logger = get_logger(__name__)


class RiskBandValidator:
    """Service for validating the coverage of custom risk bands."""

    @staticmethod
    def find_issues(survey: SurveyDefinition) -> List[str]:
        """Describe overlaps, gaps and uncovered totals.

        Args:
            survey: Survey whose bands to inspect

        Returns:
            Human-readable issue descriptions (empty when bands partition
            the attainable score range)

        Example:
            >>> RiskBandValidator.find_issues(survey)
            ["Bands 'A' (0-10) and 'B' (8-20) overlap on 8-10"]
        """
        bands = sorted(survey.risk_bands, key=lambda b: b.min_score)
        if not bands:
            return []

        issues: List[str] = []

        for previous, current in zip(bands, bands[1:]):
            if current.min_score <= previous.max_score:
                overlap_end = min(previous.max_score, current.max_score)
                issues.append(
                    f"Bands {RiskBandValidator._describe(previous)} and "
                    f"{RiskBandValidator._describe(current)} overlap on "
                    f"{current.min_score}-{overlap_end}"
                )
            elif current.min_score > previous.max_score + 1:
                issues.append(
                    f"Scores {previous.max_score + 1}-{current.min_score - 1} "
                    f"fall between bands {RiskBandValidator._describe(previous)} "
                    f"and {RiskBandValidator._describe(current)}"
                )

        max_attainable = RiskBandValidator.max_attainable_score(survey)
        if bands[0].min_score > 0:
            issues.append(f"Scores 0-{bands[0].min_score - 1} are not covered by any band")

        highest = max(band.max_score for band in bands)
        if highest < max_attainable:
            issues.append(
                f"Scores {highest + 1}-{max_attainable} are not covered by any band"
            )

        return issues

    @staticmethod
    def validate(survey: SurveyDefinition, strict: bool = False) -> List[str]:
        """Validate bands, logging or raising on issues.

        Args:
            survey: Survey to validate
            strict: Raise instead of warning

        Returns:
            Issues found (only when not strict)

        Raises:
            SurveyDefinitionError: If strict and any issue is found
        """
        issues = RiskBandValidator.find_issues(survey)

        if issues and strict:
            raise SurveyDefinitionError("; ".join(issues))

        for issue in issues:
            logger.warning(f"Survey '{survey.title}': {issue}")

        return issues

    @staticmethod
    def max_attainable_score(survey: SurveyDefinition) -> int:
        """Highest total a respondent can reach.

        Multi-choice questions may select every option; other scored
        questions contribute their best single option.
        """
        total = 0
        for question in survey.questions:
            if question.type not in SCORED_TYPES:
                continue

            scores = [
                option.score if question.is_weighted else index
                for index, option in enumerate(question.options)
            ]
            if question.type == QuestionType.MULTIPLE_CHOICE:
                total += sum(scores)
            else:
                total += max(scores)
        return total

    @staticmethod
    def _describe(band: RiskBand) -> str:
        """Short label for a band in messages."""
        return f"'{band.tier}' ({band.min_score}-{band.max_score})"
