"""Integration tests for the survey completion service.

These tests run the full pipeline against an in-memory SQLite database:
- One-shot completion (authenticated and anonymous)
- Required answer enforcement and unknown ordinals
- Start, partial save, completion of started responses and abandonment
- Report rendering failures and upload degradation
"""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from unittest.mock import patch

from conftest import FakeRenderer, FakeStorage, make_survey
from safehaven.errors import (
    AnswerValidationError,
    InvalidStateError,
    NotFoundError,
    OwnershipError,
    ReportRenderingError,
)
from safehaven.models.response import SurveyResponseRecord
from safehaven.schemas.response import ResponseState, SubmittedAnswer
from safehaven.services.completion import SurveyCompletionService, score_submission
from safehaven.services.survey_store import SurveyRepository


def answers(*pairs) -> list[SubmittedAnswer]:
    return [SubmittedAnswer(question_order=order, value=value) for order, value in pairs]


def count_responses(db_session) -> int:
    return db_session.execute(select(func.count()).select_from(SurveyResponseRecord)).scalar_one()


@pytest.fixture
def service(db_session, fake_renderer, fake_storage) -> SurveyCompletionService:
    return SurveyCompletionService(db_session, renderer=fake_renderer, storage=fake_storage)


class TestScoreSubmission:
    """Scoring without persistence."""

    def test_mostly_no_answers_score_low(self, yes_no_survey):
        scored = score_submission(yes_no_survey, answers((1, "Sí"), (2, "No"), (3, "Sí")))
        assert scored.total_score == 2
        assert scored.risk_tier == "bajo"

    def test_all_yes_reaches_medium(self, yes_no_survey):
        scored = score_submission(yes_no_survey, answers((1, "Sí"), (2, "Sí"), (3, "Sí")))
        assert scored.total_score == 3
        assert scored.risk_tier == "medio"

    def test_missing_required_names_question(self, yes_no_survey):
        with pytest.raises(AnswerValidationError, match="Te sientes solo"):
            score_submission(yes_no_survey, answers((1, "Sí"), (3, "Sí")))

    @pytest.mark.parametrize("blank", [None, "", []])
    def test_blank_values_count_as_unanswered(self, yes_no_survey, blank):
        with pytest.raises(AnswerValidationError, match="Te sientes solo"):
            score_submission(yes_no_survey, answers((1, "Sí"), (2, blank), (3, "Sí")))

    def test_first_unmet_question_reported(self, yes_no_survey):
        with pytest.raises(AnswerValidationError, match="Duermes mal"):
            score_submission(yes_no_survey, [])

    def test_unknown_ordinal_names_ordinal(self, yes_no_survey):
        with pytest.raises(NotFoundError, match="Question 9"):
            score_submission(yes_no_survey, answers((1, "Sí"), (2, "No"), (3, "No"), (9, "Sí")))

    def test_repeated_ordinal_rejected(self, yes_no_survey):
        submitted = answers(*([(1, "Sí")] * 6), (2, "No"), (3, "No"))
        with pytest.raises(AnswerValidationError, match="Question 1 is answered more than once"):
            score_submission(yes_no_survey, submitted)

    def test_list_on_scale_question_cannot_inflate_total(self, yes_no_survey):
        scored = score_submission(yes_no_survey, answers((1, ["Sí"] * 9), (2, "No"), (3, "No")))
        assert scored.total_score == 0
        assert scored.risk_tier == "bajo"

    def test_optional_question_may_be_skipped(self):
        survey = make_survey(questions=[
            {"order": 1, "prompt": "Obligatoria", "type": "escala", "options": ["No", "Sí"]},
            {"order": 2, "prompt": "Opcional", "type": "texto_libre",
             "options": ["a", "b"], "required": False},
        ])
        scored = score_submission(survey, answers((1, "Sí")))
        assert scored.total_score == 1

    def test_total_is_sum_of_answer_scores(self):
        survey = make_survey(
            risk_scheme="absolute",
            questions=[
                {"order": 1, "prompt": "Ponderada", "type": "escala",
                 "options": [{"label": "Sí", "score": 3}, {"label": "No", "score": 0}]},
                {"order": 2, "prompt": "Múltiple", "type": "opcion_multiple",
                 "options": ["Nada", "Insomnio", "Ansiedad"]},
                {"order": 3, "prompt": "Libre", "type": "texto_libre",
                 "options": ["a", "b"], "required": False},
            ],
        )
        scored = score_submission(
            survey,
            answers((1, "Sí"), (2, ["Insomnio", "Ansiedad"]), (3, "algo")),
        )
        assert [a.score for a in scored.answers] == [3, 3, 0]
        assert scored.total_score == sum(a.score for a in scored.answers) == 6
        assert scored.answers[1].question_prompt == "Múltiple"

    def test_custom_band_applies(self):
        survey = make_survey(risk_bands=[{
            "min_score": 0,
            "max_score": 3,
            "tier": "Relación no abusiva",
            "description": "Sin señales de violencia.",
            "recommendations": ["Mantén la comunicación abierta."],
            "color": "#4CAF50",
        }])
        scored = score_submission(survey, answers((1, "Sí"), (2, "Sí"), (3, "Sí")))
        assert scored.risk_tier == "Relación no abusiva"
        assert scored.recommendations == ["Mantén la comunicación abierta."]
        assert scored.tier_color == "#4CAF50"


class TestCompleteSurveyResponse:
    """One-shot completion."""

    def test_authenticated_completion_is_persisted(
        self, service, stored_survey, respondent_id, db_session, fake_renderer
    ):
        result = service.complete_survey_response(
            stored_survey,
            answers((1, "Sí"), (2, "No"), (3, "Sí")),
            respondent_id=respondent_id,
        )

        assert result.report.startswith(b"%PDF")
        assert result.scored.response_id is not None
        assert len(fake_renderer.rendered) == 1

        record = db_session.get(SurveyResponseRecord, result.scored.response_id)
        assert record.state == ResponseState.COMPLETED.value
        assert record.total_score == 2
        assert record.risk_tier == "bajo"
        assert record.recommendations
        assert record.completed_at is not None
        assert record.survey_snapshot["title"] == stored_survey.title

    def test_anonymous_completion_is_not_persisted(self, service, stored_survey, db_session):
        result = service.complete_survey_response(
            stored_survey,
            answers((1, "Sí"), (2, "Sí"), (3, "Sí")),
        )

        assert result.scored.risk_tier == "medio"
        assert result.scored.response_id is None
        assert result.report.startswith(b"%PDF")
        assert count_responses(db_session) == 0

    def test_validation_failure_persists_nothing(self, service, stored_survey, respondent_id, db_session):
        with pytest.raises(AnswerValidationError):
            service.complete_survey_response(
                stored_survey,
                answers((1, "Sí"), (3, "Sí")),
                respondent_id=respondent_id,
            )
        assert count_responses(db_session) == 0

    def test_each_call_is_a_new_attempt(self, service, stored_survey, respondent_id, db_session):
        submitted = answers((1, "No"), (2, "No"), (3, "No"))
        first = service.complete_survey_response(stored_survey, submitted, respondent_id=respondent_id)
        second = service.complete_survey_response(stored_survey, submitted, respondent_id=respondent_id)

        assert first.scored.response_id != second.scored.response_id
        assert count_responses(db_session) == 2

    def test_rendering_failure_carries_scored_response(
        self, db_session, stored_survey, respondent_id, fake_storage
    ):
        renderer = FakeRenderer(fail_with=ReportRenderingError("renderer offline"))
        service = SurveyCompletionService(db_session, renderer=renderer, storage=fake_storage)

        with pytest.raises(ReportRenderingError) as exc_info:
            service.complete_survey_response(
                stored_survey,
                answers((1, "Sí"), (2, "Sí"), (3, "Sí")),
                respondent_id=respondent_id,
            )

        scored = exc_info.value.scored_response
        assert scored.total_score == 3
        assert scored.risk_tier == "medio"
        assert count_responses(db_session) == 1
        assert fake_storage.uploads == []

    def test_uploaded_report_url_is_recorded(self, db_session, stored_survey, respondent_id):
        storage = FakeStorage(url="https://res.cloudinary.com/demo/raw/upload/encuesta.pdf")
        service = SurveyCompletionService(db_session, renderer=FakeRenderer(), storage=storage)

        result = service.complete_survey_response(
            stored_survey,
            answers((1, "No"), (2, "No"), (3, "No")),
            respondent_id=respondent_id,
        )

        assert result.scored.report_url == storage.url
        assert storage.uploads[0][1] == f"encuesta_{result.scored.response_id}"
        record = db_session.get(SurveyResponseRecord, result.scored.response_id)
        assert record.report_url == storage.url

    def test_report_url_write_failure_still_returns_report(
        self, db_session, stored_survey, respondent_id
    ):
        storage = FakeStorage(url="https://res.cloudinary.com/demo/raw/upload/encuesta.pdf")
        service = SurveyCompletionService(db_session, renderer=FakeRenderer(), storage=storage)
        real_commit = db_session.commit
        calls = []

        def flaky_commit():
            calls.append(1)
            if len(calls) == 2:
                raise OperationalError("UPDATE survey_responses", {}, Exception("db gone"))
            real_commit()

        with patch.object(db_session, "commit", side_effect=flaky_commit):
            result = service.complete_survey_response(
                stored_survey,
                answers((1, "Sí"), (2, "No"), (3, "No")),
                respondent_id=respondent_id,
            )

        assert result.report.startswith(b"%PDF")
        assert result.scored.report_url is None
        assert result.scored.total_score == 1
        record = db_session.get(SurveyResponseRecord, result.scored.response_id)
        assert record.state == ResponseState.COMPLETED.value
        assert record.report_url is None

    def test_failed_upload_still_returns_report(self, service, stored_survey, respondent_id, fake_storage):
        result = service.complete_survey_response(
            stored_survey,
            answers((1, "No"), (2, "No"), (3, "No")),
            respondent_id=respondent_id,
        )
        assert len(fake_storage.uploads) == 1
        assert result.scored.report_url is None
        assert result.report.startswith(b"%PDF")

    def test_anonymous_reports_are_not_uploaded(self, service, stored_survey, fake_storage):
        service.complete_survey_response(stored_survey, answers((1, "No"), (2, "No"), (3, "No")))
        assert fake_storage.uploads == []


class TestStartedResponses:
    """Start, partial save, completion and abandonment."""

    def test_start_creates_then_resumes(self, service, stored_survey, respondent_id):
        first, created = service.start_survey(stored_survey.id, respondent_id)
        again, created_again = service.start_survey(stored_survey.id, respondent_id)

        assert created is True
        assert created_again is False
        assert again.id == first.id
        assert first.state == ResponseState.IN_PROGRESS.value

    def test_start_inactive_survey_rejected(self, service, stored_survey, respondent_id, db_session):
        SurveyRepository(db_session).set_active(stored_survey.id, False)
        with pytest.raises(InvalidStateError):
            service.start_survey(stored_survey.id, respondent_id)

    def test_start_unknown_survey(self, service, respondent_id):
        with pytest.raises(NotFoundError):
            service.start_survey(999, respondent_id)

    def test_partial_save_merges_by_ordinal(self, service, stored_survey, respondent_id):
        record, _ = service.start_survey(stored_survey.id, respondent_id)

        service.save_partial_answers(record.id, answers((2, "No"), (1, "Sí")), respondent_id)
        updated = service.save_partial_answers(record.id, answers((2, "Sí")), respondent_id)

        assert updated.answers == [
            {"question_order": 1, "value": "Sí"},
            {"question_order": 2, "value": "Sí"},
        ]
        assert updated.total_score is None
        assert updated.risk_tier is None

    def test_partial_save_unknown_response(self, service, respondent_id):
        with pytest.raises(NotFoundError):
            service.save_partial_answers(12345, answers((1, "Sí")), respondent_id)

    def test_partial_save_by_other_respondent(self, service, stored_survey, respondent_id):
        record, _ = service.start_survey(stored_survey.id, respondent_id)
        with pytest.raises(OwnershipError):
            service.save_partial_answers(record.id, answers((1, "Sí")), "someone-else")

    def test_partial_save_after_completion(self, service, stored_survey, respondent_id):
        record, _ = service.start_survey(stored_survey.id, respondent_id)
        service.complete_started_response(
            record.id, answers((1, "Sí"), (2, "No"), (3, "No")), respondent_id
        )
        with pytest.raises(InvalidStateError):
            service.save_partial_answers(record.id, answers((1, "No")), respondent_id)

    def test_partial_save_repeated_ordinal(self, service, stored_survey, respondent_id):
        record, _ = service.start_survey(stored_survey.id, respondent_id)
        with pytest.raises(AnswerValidationError, match="Question 2"):
            service.save_partial_answers(record.id, answers((2, "Sí"), (2, "No")), respondent_id)

    def test_partial_save_unknown_ordinal(self, service, stored_survey, respondent_id):
        record, _ = service.start_survey(stored_survey.id, respondent_id)
        with pytest.raises(NotFoundError, match="Question 7"):
            service.save_partial_answers(record.id, answers((7, "Sí")), respondent_id)

    def test_complete_started_response_uses_saved_answers(self, service, stored_survey, respondent_id):
        record, _ = service.start_survey(stored_survey.id, respondent_id)
        service.save_partial_answers(record.id, answers((1, "Sí"), (2, "Sí"), (3, "Sí")), respondent_id)

        result = service.complete_started_response(record.id, [], respondent_id)

        assert result.scored.response_id == record.id
        assert result.scored.total_score == 3
        assert result.scored.risk_tier == "medio"
        assert result.scored.completion_seconds is not None

    def test_complete_started_response_uses_frozen_snapshot(
        self, service, stored_survey, respondent_id, db_session
    ):
        record, _ = service.start_survey(stored_survey.id, respondent_id)

        # Reverse option order after the response started: "Sí" would score 0
        SurveyRepository(db_session).update_survey(stored_survey.id, make_survey(questions=[
            {"order": i, "prompt": f"Nueva {i}", "type": "escala", "options": ["Sí", "No"]}
            for i in range(1, 4)
        ]))

        result = service.complete_started_response(
            record.id, answers((1, "Sí"), (2, "Sí"), (3, "Sí")), respondent_id
        )
        assert result.scored.total_score == 3
        assert result.scored.answers[0].question_prompt == "¿Duermes mal?"

    def test_complete_started_response_twice_rejected(self, service, stored_survey, respondent_id):
        record, _ = service.start_survey(stored_survey.id, respondent_id)
        submitted = answers((1, "No"), (2, "No"), (3, "No"))
        service.complete_started_response(record.id, submitted, respondent_id)

        with pytest.raises(InvalidStateError):
            service.complete_started_response(record.id, submitted, respondent_id)

    def test_complete_started_response_missing_answer(self, service, stored_survey, respondent_id):
        record, _ = service.start_survey(stored_survey.id, respondent_id)
        with pytest.raises(AnswerValidationError):
            service.complete_started_response(record.id, answers((1, "No")), respondent_id)

        refreshed = service.get_owned_response(record.id, respondent_id)
        assert refreshed.is_in_progress

    def test_abandon_response(self, service, stored_survey, respondent_id):
        record, _ = service.start_survey(stored_survey.id, respondent_id)
        abandoned = service.abandon_response(record.id, respondent_id)
        assert abandoned.state == ResponseState.ABANDONED.value

        with pytest.raises(InvalidStateError):
            service.abandon_response(record.id, respondent_id)

        # A fresh attempt is created after abandoning
        new_record, created = service.start_survey(stored_survey.id, respondent_id)
        assert created is True
        assert new_record.id != record.id

    def test_list_responses_filters(self, service, stored_survey, respondent_id):
        started, _ = service.start_survey(stored_survey.id, respondent_id)
        service.complete_survey_response(
            stored_survey, answers((1, "No"), (2, "No"), (3, "No")), respondent_id=respondent_id
        )
        service.start_survey(stored_survey.id, "other-respondent")

        mine = service.list_responses(respondent_id)
        assert len(mine) == 2
        completed = service.list_responses(respondent_id, state=ResponseState.COMPLETED)
        assert len(completed) == 1
        in_progress = service.list_responses(respondent_id, state=ResponseState.IN_PROGRESS)
        assert [r.id for r in in_progress] == [started.id]

    def test_render_preview_requires_completion(self, service, stored_survey, respondent_id):
        record, _ = service.start_survey(stored_survey.id, respondent_id)
        with pytest.raises(InvalidStateError):
            service.render_preview(record.id, respondent_id)

        service.complete_started_response(
            record.id, answers((1, "Sí"), (2, "Sí"), (3, "Sí")), respondent_id
        )
        assert service.render_preview(record.id, respondent_id) == "<html>medio</html>"
