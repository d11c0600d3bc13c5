"""Survey response store."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from safehaven.models.response import SurveyResponseRecord
from safehaven.schemas.response import ResponseState


class ResponseRepository:
    """SQLAlchemy-backed response store.

    Methods add and query records but never commit; callers commit once
    per operation.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_response(self, record: SurveyResponseRecord) -> SurveyResponseRecord:
        """Add a response and assign its id."""
        self.db.add(record)
        self.db.flush()
        return record

    def get_response(self, response_id: int) -> Optional[SurveyResponseRecord]:
        return self.db.get(SurveyResponseRecord, response_id)

    def find_in_progress_response(
        self,
        respondent_id: str,
        survey_id: int
    ) -> Optional[SurveyResponseRecord]:
        """Get the respondent's open attempt at a survey, if any."""
        return self.db.execute(
            select(SurveyResponseRecord).where(
                SurveyResponseRecord.respondent_id == respondent_id,
                SurveyResponseRecord.survey_id == survey_id,
                SurveyResponseRecord.state == ResponseState.IN_PROGRESS.value,
            ).order_by(SurveyResponseRecord.id.desc())
        ).scalars().first()

    def list_for_respondent(
        self,
        respondent_id: str,
        state: Optional[ResponseState] = None,
        survey_id: Optional[int] = None
    ) -> list[SurveyResponseRecord]:
        """List a respondent's responses, newest first."""
        query = select(SurveyResponseRecord).where(
            SurveyResponseRecord.respondent_id == respondent_id
        )
        if state is not None:
            query = query.where(SurveyResponseRecord.state == state.value)
        if survey_id is not None:
            query = query.where(SurveyResponseRecord.survey_id == survey_id)

        return list(self.db.execute(
            query.order_by(SurveyResponseRecord.started_at.desc(), SurveyResponseRecord.id.desc())
        ).scalars().all())

    def completed_for_survey(self, survey_id: int) -> list[SurveyResponseRecord]:
        """All completed responses to a survey."""
        return list(self.db.execute(
            select(SurveyResponseRecord).where(
                SurveyResponseRecord.survey_id == survey_id,
                SurveyResponseRecord.state == ResponseState.COMPLETED.value,
            )
        ).scalars().all())
