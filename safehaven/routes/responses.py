"""Endpoints for a respondent's own survey responses."""

from typing import Optional

from fastapi import APIRouter, Depends, Response
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from safehaven.middleware.identity import require_respondent_id
from safehaven.models.database import get_db
from safehaven.routes.surveys import pdf_response
from safehaven.schemas.response import AnswerSet, ResponseOut, ResponseState
from safehaven.services.completion import SurveyCompletionService

router = APIRouter(prefix="/api/responses")


@router.get("", response_model=list[ResponseOut])
async def list_responses(
    state: Optional[ResponseState] = None,
    survey_id: Optional[int] = None,
    respondent_id: str = Depends(require_respondent_id),
    db: Session = Depends(get_db)
) -> list[ResponseOut]:
    """List the respondent's responses, newest first."""
    records = SurveyCompletionService(db).list_responses(
        respondent_id,
        state=state,
        survey_id=survey_id,
    )
    return [record.to_out() for record in records]


@router.get("/{response_id}", response_model=ResponseOut)
async def get_response(
    response_id: int,
    respondent_id: str = Depends(require_respondent_id),
    db: Session = Depends(get_db)
) -> ResponseOut:
    return SurveyCompletionService(db).get_owned_response(response_id, respondent_id).to_out()


@router.get("/{response_id}/report", response_class=HTMLResponse)
async def preview_report(
    response_id: int,
    respondent_id: str = Depends(require_respondent_id),
    db: Session = Depends(get_db)
) -> HTMLResponse:
    """HTML preview of a completed response's report."""
    html = SurveyCompletionService(db).render_preview(response_id, respondent_id)
    return HTMLResponse(content=html)


@router.put("/{response_id}/partial", response_model=ResponseOut)
async def save_partial(
    response_id: int,
    answer_set: AnswerSet,
    respondent_id: str = Depends(require_respondent_id),
    db: Session = Depends(get_db)
) -> ResponseOut:
    """Save in-progress answers without scoring."""
    record = SurveyCompletionService(db).save_partial_answers(
        response_id,
        answer_set.answers,
        respondent_id,
    )
    return record.to_out()


@router.put("/{response_id}/complete")
async def complete_response(
    response_id: int,
    answer_set: AnswerSet,
    respondent_id: str = Depends(require_respondent_id),
    db: Session = Depends(get_db)
) -> Response:
    """Complete a started response and download the PDF report.

    An empty answer list completes with the answers saved so far.
    """
    result = SurveyCompletionService(db).complete_started_response(
        response_id,
        answer_set.answers,
        respondent_id,
    )
    return pdf_response(result)


@router.put("/{response_id}/abandon", response_model=ResponseOut)
async def abandon_response(
    response_id: int,
    respondent_id: str = Depends(require_respondent_id),
    db: Session = Depends(get_db)
) -> ResponseOut:
    return SurveyCompletionService(db).abandon_response(response_id, respondent_id).to_out()
