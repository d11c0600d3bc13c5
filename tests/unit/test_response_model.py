"""Unit tests for SurveyResponseRecord helper methods.

These tests verify model methods without requiring a database connection.
"""

from datetime import datetime, timedelta, timezone

from safehaven.models.response import SurveyResponseRecord, as_utc
from safehaven.schemas.response import EnrichedAnswer, ResponseState, ScoredResponse
from safehaven.schemas.survey import QuestionType


def make_scored(completed_at: datetime) -> ScoredResponse:
    return ScoredResponse(
        survey_id=1,
        survey_title="Encuesta de prueba",
        answers=[
            EnrichedAnswer(question_order=1, value="Sí", question_prompt="¿Duermes mal?",
                           question_type=QuestionType.SCALE, score=1),
        ],
        total_score=1,
        risk_tier="bajo",
        tier_description="Riesgo bajo.",
        tier_color="#4CAF50",
        recommendations=["Mantén tus buenos hábitos"],
        completed_at=completed_at,
    )


def make_record(**overrides) -> SurveyResponseRecord:
    data = {
        "respondent_id": "user-1",
        "survey_id": 1,
        "survey_snapshot": {"title": "Encuesta de prueba"},
        "answers": [],
        "state": ResponseState.IN_PROGRESS.value,
    }
    data.update(overrides)
    return SurveyResponseRecord(**data)


class TestAsUtc:
    def test_naive_becomes_utc(self):
        assert as_utc(datetime(2024, 1, 1, 12, 0)).tzinfo == timezone.utc

    def test_aware_unchanged_and_none_passthrough(self):
        aware = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert as_utc(aware) is aware
        assert as_utc(None) is None


class TestSurveyResponseRecordHelpers:
    """Test SurveyResponseRecord helper methods."""

    def test_mark_completed_copies_outcome(self):
        started = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        record = make_record(started_at=started)

        record.mark_completed(make_scored(started + timedelta(minutes=4, seconds=30)))

        assert record.is_completed
        assert not record.is_in_progress
        assert record.total_score == 1
        assert record.risk_tier == "bajo"
        assert record.recommendations == ["Mantén tus buenos hábitos"]
        assert record.tier_color == "#4CAF50"
        assert record.completion_seconds == 270
        assert record.answers[0]["score"] == 1
        assert record.answers[0]["question_type"] == "escala"

    def test_mark_completed_with_naive_start(self):
        record = make_record(started_at=datetime(2024, 5, 1, 10, 0))
        record.mark_completed(make_scored(datetime(2024, 5, 1, 10, 1, tzinfo=timezone.utc)))
        assert record.completion_seconds == 60

    def test_mark_abandoned(self):
        record = make_record()
        record.mark_abandoned()
        assert record.state == ResponseState.ABANDONED.value
        assert not record.is_in_progress

    def test_replace_answers_assigns_new_list(self):
        original = [{"question_order": 1, "value": "No"}]
        record = make_record(answers=original)
        record.replace_answers(original)
        assert record.answers == original
        assert record.answers is not original

    def test_to_out(self):
        record = make_record(id=5, started_at=datetime(2024, 5, 1, 10, 0))
        out = record.to_out()
        assert out.id == 5
        assert out.survey_title == "Encuesta de prueba"
        assert out.state == ResponseState.IN_PROGRESS
        assert out.started_at.tzinfo == timezone.utc
