"""Survey completion orchestration.

This module drives a response from submitted answers to a scored,
classified, persisted and rendered result:

1. Check that every required question has a non-blank answer
2. Enrich each answer with its question's prompt, type and score
3. Sum the scores and resolve tier and recommendations
4. Persist (authenticated respondents only) in a single commit
5. Render the PDF report
6. Upload the report when artifact storage is configured
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from safehaven.errors import (
    AnswerValidationError,
    InvalidStateError,
    NotFoundError,
    OwnershipError,
    ReportRenderingError,
)
from safehaven.models.response import SurveyResponseRecord, as_utc
from safehaven.models.survey import SurveyRecord
from safehaven.schemas.response import (
    EnrichedAnswer,
    ResponseState,
    ScoredResponse,
    SubmittedAnswer,
)
from safehaven.schemas.survey import SurveyDefinition
from safehaven.services.artifact_storage import ArtifactStorage, get_artifact_storage
from safehaven.services.recommendations import select_recommendations
from safehaven.services.report_renderer import ReportRenderer, get_report_renderer
from safehaven.services.response_store import ResponseRepository
from safehaven.services.scoring import score_answer
from safehaven.services.survey_store import SurveyRepository
from safehaven.logging_config import get_logger, mask_identifier

logger = get_logger(__name__)


@dataclass
class CompletionResult:
    """Result of a survey completion.

    Attributes:
        scored: Scored response (response_id set when persisted)
        report: Rendered PDF bytes
    """
    scored: ScoredResponse
    report: bytes


def check_unique_answers(answers: list[SubmittedAnswer]) -> None:
    """Reject answer sets that answer the same question more than once.

    Raises:
        AnswerValidationError: Naming the first repeated question ordinal
    """
    seen = set()
    for answer in answers:
        if answer.question_order in seen:
            raise AnswerValidationError(
                f"Question {answer.question_order} is answered more than once"
            )
        seen.add(answer.question_order)


def check_required_answers(survey: SurveyDefinition, answers: list[SubmittedAnswer]) -> None:
    """Ensure every required question has a non-blank answer.

    Raises:
        AnswerValidationError: Naming the first unanswered required question
    """
    answered = {answer.question_order for answer in answers if not answer.is_blank()}
    for question in survey.required_questions:
        if question.order not in answered:
            raise AnswerValidationError(f"Question '{question.prompt}' is required")


def enrich_answers(
    survey: SurveyDefinition,
    answers: list[SubmittedAnswer]
) -> list[EnrichedAnswer]:
    """Attach prompt, type and score to each answer.

    Raises:
        NotFoundError: If an answer references an unknown question ordinal
    """
    enriched = []
    for answer in answers:
        question = survey.get_question(answer.question_order)
        if question is None:
            raise NotFoundError(f"Question {answer.question_order} not found in survey")

        enriched.append(EnrichedAnswer(
            question_order=answer.question_order,
            value=answer.value,
            question_prompt=question.prompt,
            question_type=question.type,
            score=score_answer(question, answer.value),
        ))
    return enriched


def score_submission(
    survey: SurveyDefinition,
    answers: list[SubmittedAnswer],
    respondent_id: Optional[str] = None,
    survey_id: Optional[int] = None
) -> ScoredResponse:
    """Validate, enrich, total and classify a submitted answer set.

    Pure apart from reading the clock; nothing is persisted.

    Raises:
        AnswerValidationError: If a required question is unanswered or an
            ordinal is answered twice
        NotFoundError: If an answer references an unknown ordinal
    """
    check_unique_answers(answers)
    check_required_answers(survey, answers)
    enriched = enrich_answers(survey, answers)

    total_score = sum(answer.score for answer in enriched)
    result = select_recommendations(total_score, survey)

    return ScoredResponse(
        survey_id=survey_id,
        survey_title=survey.title,
        respondent_id=respondent_id,
        answers=enriched,
        total_score=total_score,
        risk_tier=result.tier,
        tier_description=result.description,
        tier_color=result.color,
        recommendations=result.recommendations,
        completed_at=datetime.now(timezone.utc),
    )


class SurveyCompletionService:
    """Service for starting, saving and completing survey responses."""

    def __init__(
        self,
        db: Session,
        renderer: Optional[ReportRenderer] = None,
        storage: Optional[ArtifactStorage] = None
    ):
        """Initialize completion service.

        Args:
            db: SQLAlchemy database session
            renderer: Report renderer (defaults to global instance)
            storage: Artifact storage (defaults to global instance)
        """
        self.db = db
        self.surveys = SurveyRepository(db)
        self.responses = ResponseRepository(db)
        self.renderer = renderer or get_report_renderer()
        self.storage = storage or get_artifact_storage()

    def complete_survey_response(
        self,
        survey: SurveyRecord,
        answers: list[SubmittedAnswer],
        respondent_id: Optional[str] = None
    ) -> CompletionResult:
        """Score a full answer set and render its report.

        Each call is an independent attempt: authenticated respondents get a
        new completed record every time, anonymous ones get none.

        Args:
            survey: Stored survey the answers belong to
            answers: Submitted answers
            respondent_id: Respondent identity, None for anonymous

        Returns:
            CompletionResult with the scored response and PDF bytes

        Raises:
            AnswerValidationError: If a required question is unanswered
            NotFoundError: If an answer references an unknown ordinal
            ReportRenderingError: If the report could not be rendered
        """
        definition = survey.to_definition()
        scored = score_submission(definition, answers, respondent_id, survey.id)

        record = None
        if respondent_id is not None:
            record = SurveyResponseRecord(
                respondent_id=respondent_id,
                survey_id=survey.id,
                survey_snapshot=dict(survey.definition),
                started_at=scored.completed_at,
            )
            record.mark_completed(scored)
            self._commit_new(record)
            scored.response_id = record.id
            scored.completion_seconds = record.completion_seconds

        logger.info(
            f"Completed survey '{definition.title}' "
            f"(score {scored.total_score}, tier {scored.risk_tier}, "
            f"respondent {mask_identifier(respondent_id) if respondent_id else 'anonymous'})",
            extra={"survey_id": survey.id, "response_id": scored.response_id}
        )

        report = self._render(scored, definition)
        if record is not None:
            self._store_report(record, scored, report)

        return CompletionResult(scored=scored, report=report)

    def start_survey(
        self,
        survey_id: int,
        respondent_id: str
    ) -> Tuple[SurveyResponseRecord, bool]:
        """Resume or begin a respondent's attempt at a survey.

        Args:
            survey_id: Survey to start
            respondent_id: Respondent identity

        Returns:
            Tuple of (response, created)

        Raises:
            NotFoundError: If the survey doesn't exist
            InvalidStateError: If the survey is inactive
        """
        survey = self.surveys.get_active_survey(survey_id)

        existing = self.responses.find_in_progress_response(respondent_id, survey_id)
        if existing is not None:
            logger.debug(
                f"Resuming response {existing.id}",
                extra={"survey_id": survey_id, "response_id": existing.id}
            )
            return existing, False

        record = SurveyResponseRecord(
            respondent_id=respondent_id,
            survey_id=survey.id,
            survey_snapshot=dict(survey.definition),
            answers=[],
            state=ResponseState.IN_PROGRESS.value,
        )
        self._commit_new(record)

        logger.info(
            f"Started survey '{survey.title}' for respondent {mask_identifier(respondent_id)}",
            extra={"survey_id": survey_id, "response_id": record.id}
        )
        return record, True

    def save_partial_answers(
        self,
        response_id: int,
        answers: list[SubmittedAnswer],
        respondent_id: str
    ) -> SurveyResponseRecord:
        """Store in-progress answers without scoring.

        Answers are merged by question ordinal: a resubmitted ordinal
        replaces the earlier value, other stored answers are kept.

        Raises:
            NotFoundError: If the response or a question ordinal doesn't exist
            OwnershipError: If the respondent doesn't own the response
            AnswerValidationError: If an ordinal is answered twice
            InvalidStateError: If the response is completed or abandoned
        """
        check_unique_answers(answers)
        record = self._get_open_response(response_id, respondent_id)
        snapshot = record.snapshot_definition()

        merged = {item["question_order"]: item for item in record.answers or []}
        for answer in answers:
            if snapshot.get_question(answer.question_order) is None:
                raise NotFoundError(f"Question {answer.question_order} not found in survey")
            merged[answer.question_order] = answer.model_dump(mode="json")

        record.replace_answers([merged[order] for order in sorted(merged)])
        self._commit(record)

        logger.info(
            f"Saved {len(answers)} partial answers",
            extra={"survey_id": record.survey_id, "response_id": record.id}
        )
        return record

    def complete_started_response(
        self,
        response_id: int,
        answers: list[SubmittedAnswer],
        respondent_id: str
    ) -> CompletionResult:
        """Complete a started response against its frozen snapshot.

        An empty answer set completes with the answers saved so far.

        Raises:
            NotFoundError: If the response or a question ordinal doesn't exist
            OwnershipError: If the respondent doesn't own the response
            InvalidStateError: If the response is completed or abandoned
            AnswerValidationError: If a required question is unanswered
            ReportRenderingError: If the report could not be rendered
        """
        record = self._get_open_response(response_id, respondent_id)
        snapshot = record.snapshot_definition()

        if not answers:
            answers = [SubmittedAnswer.model_validate(item) for item in record.answers or []]

        scored = score_submission(snapshot, answers, respondent_id, record.survey_id)
        record.mark_completed(scored)
        self._commit(record)
        scored.response_id = record.id
        scored.completion_seconds = record.completion_seconds

        logger.info(
            f"Completed response (score {scored.total_score}, tier {scored.risk_tier})",
            extra={"survey_id": record.survey_id, "response_id": record.id}
        )

        report = self._render(scored, snapshot)
        self._store_report(record, scored, report)
        return CompletionResult(scored=scored, report=report)

    def abandon_response(self, response_id: int, respondent_id: str) -> SurveyResponseRecord:
        """Mark an in-progress response as abandoned.

        Raises:
            NotFoundError: If the response doesn't exist
            OwnershipError: If the respondent doesn't own the response
            InvalidStateError: If the response is completed or abandoned
        """
        record = self._get_open_response(response_id, respondent_id)
        record.mark_abandoned()
        self._commit(record)

        logger.info(
            "Response abandoned",
            extra={"survey_id": record.survey_id, "response_id": record.id}
        )
        return record

    def get_owned_response(self, response_id: int, respondent_id: str) -> SurveyResponseRecord:
        """Get a response owned by the respondent.

        Raises:
            NotFoundError: If the response doesn't exist
            OwnershipError: If the respondent doesn't own the response
        """
        record = self.responses.get_response(response_id)
        if record is None:
            raise NotFoundError(f"Response {response_id} not found")
        if record.respondent_id != respondent_id:
            raise OwnershipError(f"Response {response_id} belongs to another respondent")
        return record

    def list_responses(
        self,
        respondent_id: str,
        state: Optional[ResponseState] = None,
        survey_id: Optional[int] = None
    ) -> list[SurveyResponseRecord]:
        """List a respondent's responses, newest first."""
        return self.responses.list_for_respondent(respondent_id, state=state, survey_id=survey_id)

    def render_preview(self, response_id: int, respondent_id: str) -> str:
        """Render the HTML report of a completed response.

        Raises:
            NotFoundError: If the response doesn't exist
            OwnershipError: If the respondent doesn't own the response
            InvalidStateError: If the response is not completed
            ReportRenderingError: If the template fails to render
        """
        record = self.get_owned_response(response_id, respondent_id)
        if not record.is_completed:
            raise InvalidStateError(f"Response {response_id} is not completed")
        return self.renderer.render_html(self.scored_from_record(record), record.snapshot_definition())

    @staticmethod
    def scored_from_record(record: SurveyResponseRecord) -> ScoredResponse:
        """Rebuild the scored response stored on a completed record."""
        return ScoredResponse(
            response_id=record.id,
            survey_id=record.survey_id,
            survey_title=record.survey_snapshot.get("title", ""),
            respondent_id=record.respondent_id,
            answers=[EnrichedAnswer.model_validate(item) for item in record.answers],
            total_score=record.total_score or 0,
            risk_tier=record.risk_tier,
            tier_description=record.tier_description,
            tier_color=record.tier_color,
            recommendations=list(record.recommendations or []),
            completed_at=as_utc(record.completed_at),
            completion_seconds=record.completion_seconds,
            report_url=record.report_url,
        )

    def _get_open_response(self, response_id: int, respondent_id: str) -> SurveyResponseRecord:
        """Get an owned response that still accepts answers."""
        record = self.get_owned_response(response_id, respondent_id)
        if not record.is_in_progress:
            raise InvalidStateError(f"Response {response_id} is already {record.state}")
        return record

    def _render(self, scored: ScoredResponse, survey: SurveyDefinition) -> bytes:
        """Render the PDF, attaching the scored response to failures."""
        try:
            return self.renderer.render_report(scored, survey)
        except ReportRenderingError as e:
            e.scored_response = scored
            raise

    def _store_report(
        self,
        record: SurveyResponseRecord,
        scored: ScoredResponse,
        report: bytes
    ) -> None:
        """Upload the report and record its URL when the upload succeeds.

        Storage and URL bookkeeping failures never fail the completion.
        """
        url = self.storage.upload_report(report, f"encuesta_{record.id}")
        if url is None:
            return

        record.report_url = url
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            # The scored result is already stored; only the URL is lost
            logger.warning(
                f"Failed to record report URL for response {record.id}: {e}",
                extra={"survey_id": record.survey_id, "response_id": record.id}
            )
            self.db.rollback()
            return
        scored.report_url = url

    def _commit_new(self, record: SurveyResponseRecord) -> None:
        """Insert a record in one commit, rolling back on failure."""
        try:
            self.responses.create_response(record)
            self.db.commit()
            self.db.refresh(record)
        except SQLAlchemyError as e:
            logger.error(f"Failed to store response: {e}")
            self.db.rollback()
            raise

    def _commit(self, record: SurveyResponseRecord) -> None:
        """Commit pending changes to a record, rolling back on failure."""
        try:
            self.db.commit()
            self.db.refresh(record)
        except SQLAlchemyError as e:
            logger.error(f"Failed to update response {record.id}: {e}")
            self.db.rollback()
            raise
