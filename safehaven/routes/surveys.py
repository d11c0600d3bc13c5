"""Survey catalogue, administration and completion endpoints."""

import math
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from safehaven.middleware.identity import get_respondent_id, require_respondent_id, verify_admin_token
from safehaven.models.database import get_db
from safehaven.schemas.response import AnswerSet, ResponseOut, SurveyStatistics
from safehaven.schemas.survey import SurveyCategory, SurveyDefinition, SurveyOut, SurveyPage
from safehaven.services.completion import CompletionResult, SurveyCompletionService
from safehaven.services.statistics import survey_statistics
from safehaven.services.survey_store import SurveyRepository
from safehaven.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/surveys")

ADMIN_CREATOR = "admin"


def pdf_response(result: CompletionResult, status_code: int = 200) -> Response:
    """Wrap a rendered report in a PDF download response.

    Score and tier travel in headers so clients can show them without
    parsing the document. The tier is percent-encoded since header values
    must be latin-1.
    """
    scored = result.scored
    suffix = scored.response_id if scored.response_id is not None else "anonimo"
    headers = {
        "Content-Disposition": f'attachment; filename="resultado_encuesta_{suffix}.pdf"',
        "X-Total-Score": str(scored.total_score),
        "X-Risk-Tier": quote(scored.risk_tier),
    }
    if scored.response_id is not None:
        headers["X-Response-Id"] = str(scored.response_id)
    if scored.report_url:
        headers["X-Report-Url"] = scored.report_url

    return Response(
        content=result.report,
        status_code=status_code,
        media_type="application/pdf",
        headers=headers,
    )


@router.get("", response_model=SurveyPage)
async def list_surveys(
    category: Optional[SurveyCategory] = None,
    search: Optional[str] = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db)
) -> SurveyPage:
    """List active surveys with optional category and title filters."""
    records, total = SurveyRepository(db).list_surveys(
        active=True,
        category=category,
        search=search,
        page=page,
        limit=limit,
    )
    return SurveyPage(
        surveys=[record.to_out() for record in records],
        page=page,
        total_pages=math.ceil(total / limit),
        total=total,
    )


@router.get("/{survey_id}", response_model=SurveyOut)
async def get_survey(survey_id: int, db: Session = Depends(get_db)) -> SurveyOut:
    """Get an active survey."""
    return SurveyRepository(db).get_active_survey(survey_id).to_out()


@router.post(
    "",
    response_model=SurveyOut,
    status_code=201,
    dependencies=[Depends(verify_admin_token)]
)
async def create_survey(definition: SurveyDefinition, db: Session = Depends(get_db)) -> SurveyOut:
    """Create a survey (administrators only)."""
    return SurveyRepository(db).create_survey(definition, created_by=ADMIN_CREATOR).to_out()


@router.put(
    "/{survey_id}",
    response_model=SurveyOut,
    dependencies=[Depends(verify_admin_token)]
)
async def update_survey(
    survey_id: int,
    definition: SurveyDefinition,
    db: Session = Depends(get_db)
) -> SurveyOut:
    """Replace a survey definition (administrators only)."""
    return SurveyRepository(db).update_survey(survey_id, definition).to_out()


@router.put(
    "/{survey_id}/activate",
    response_model=SurveyOut,
    dependencies=[Depends(verify_admin_token)]
)
async def activate_survey(survey_id: int, db: Session = Depends(get_db)) -> SurveyOut:
    return SurveyRepository(db).set_active(survey_id, True).to_out()


@router.put(
    "/{survey_id}/deactivate",
    response_model=SurveyOut,
    dependencies=[Depends(verify_admin_token)]
)
async def deactivate_survey(survey_id: int, db: Session = Depends(get_db)) -> SurveyOut:
    return SurveyRepository(db).set_active(survey_id, False).to_out()


@router.get(
    "/{survey_id}/statistics",
    response_model=SurveyStatistics,
    dependencies=[Depends(verify_admin_token)]
)
async def get_survey_statistics(survey_id: int, db: Session = Depends(get_db)) -> SurveyStatistics:
    """Aggregate completed responses (administrators only)."""
    return survey_statistics(db, survey_id)


@router.post("/{survey_id}/start", response_model=ResponseOut)
async def start_survey(
    survey_id: int,
    response: Response,
    respondent_id: str = Depends(require_respondent_id),
    db: Session = Depends(get_db)
) -> ResponseOut:
    """Start a survey, or resume the respondent's in-progress attempt.

    Answers 201 when a new response was created, 200 when resuming.
    """
    record, created = SurveyCompletionService(db).start_survey(survey_id, respondent_id)
    response.status_code = 201 if created else 200
    return record.to_out()


@router.post("/{survey_id}/complete")
async def complete_survey(
    survey_id: int,
    answer_set: AnswerSet,
    respondent_id: Optional[str] = Depends(get_respondent_id),
    db: Session = Depends(get_db)
) -> Response:
    """Complete a survey in one request and download the PDF report.

    Anonymous callers get the report without anything being stored.
    """
    survey = SurveyRepository(db).get_active_survey(survey_id)
    result = SurveyCompletionService(db).complete_survey_response(
        survey,
        answer_set.answers,
        respondent_id=respondent_id,
    )
    return pdf_response(result, status_code=201 if result.scored.response_id else 200)
