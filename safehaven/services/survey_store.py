"""Survey definition store.

Administrators create, edit, activate and deactivate surveys here; the
public catalogue and the completion path read through the same repository.
"""

from typing import Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from safehaven.config import get_settings
from safehaven.errors import InvalidStateError, NotFoundError
from safehaven.models.survey import SurveyRecord
from safehaven.schemas.survey import SurveyCategory, SurveyDefinition
from safehaven.services.band_validator import RiskBandValidator
from safehaven.logging_config import get_logger

logger = get_logger(__name__)


class SurveyRepository:
    """SQLAlchemy-backed survey definition store."""

    def __init__(self, db: Session):
        """Initialize repository.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def find_survey_by_id(self, survey_id: int) -> SurveyRecord:
        """Get a survey regardless of its active flag.

        Raises:
            NotFoundError: If no survey has this id
        """
        record = self.db.get(SurveyRecord, survey_id)
        if record is None:
            raise NotFoundError(f"Survey {survey_id} not found")
        return record

    def get_active_survey(self, survey_id: int) -> SurveyRecord:
        """Get a survey that accepts responses.

        Raises:
            NotFoundError: If no survey has this id
            InvalidStateError: If the survey is deactivated
        """
        record = self.find_survey_by_id(survey_id)
        if not record.active:
            raise InvalidStateError(f"Survey {survey_id} is not active")
        return record

    def find_by_title(self, title: str) -> Optional[SurveyRecord]:
        """Get a survey by exact title, if any."""
        return self.db.execute(
            select(SurveyRecord).where(SurveyRecord.title == title)
        ).scalars().first()

    def create_survey(
        self,
        definition: SurveyDefinition,
        created_by: Optional[str] = None
    ) -> SurveyRecord:
        """Store a new survey.

        Args:
            definition: Validated survey definition
            created_by: Identifier of the creating administrator

        Returns:
            The stored record

        Raises:
            SurveyDefinitionError: If strict band validation is enabled and
                the bands overlap or leave gaps
        """
        RiskBandValidator.validate(definition, strict=get_settings().strict_risk_bands)

        record = SurveyRecord.from_definition(definition, created_by=created_by)
        self.db.add(record)
        self._commit(record, "create survey")

        logger.info(
            f"Created survey '{record.title}' with {len(definition.questions)} questions",
            extra={"survey_id": record.id}
        )
        return record

    def update_survey(self, survey_id: int, definition: SurveyDefinition) -> SurveyRecord:
        """Replace a survey's definition.

        Responses already started keep their frozen snapshot.

        Raises:
            NotFoundError: If no survey has this id
            SurveyDefinitionError: If strict band validation fails
        """
        record = self.find_survey_by_id(survey_id)
        RiskBandValidator.validate(definition, strict=get_settings().strict_risk_bands)

        record.apply_definition(definition)
        self._commit(record, f"update survey {survey_id}")

        logger.info(f"Updated survey '{record.title}'", extra={"survey_id": record.id})
        return record

    def set_active(self, survey_id: int, active: bool) -> SurveyRecord:
        """Activate or deactivate a survey.

        Raises:
            NotFoundError: If no survey has this id
            InvalidStateError: If the survey already has the requested state
        """
        record = self.find_survey_by_id(survey_id)
        if record.active == active:
            state = "active" if active else "inactive"
            raise InvalidStateError(f"Survey {survey_id} is already {state}")

        record.active = active
        self._commit(record, f"change active flag of survey {survey_id}")

        logger.info(
            f"Survey '{record.title}' {'activated' if active else 'deactivated'}",
            extra={"survey_id": record.id}
        )
        return record

    def list_surveys(
        self,
        active: Optional[bool] = True,
        category: Optional[SurveyCategory] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[list[SurveyRecord], int]:
        """List surveys, newest first.

        Args:
            active: Filter on the active flag (None for all)
            category: Filter on category
            search: Case-insensitive title substring
            page: 1-based page number
            limit: Page size

        Returns:
            Tuple of (records on this page, total matching)
        """
        query = select(SurveyRecord)
        if active is not None:
            query = query.where(SurveyRecord.active == active)
        if category is not None:
            query = query.where(SurveyRecord.category == category.value)
        if search:
            query = query.where(SurveyRecord.title.ilike(f"%{search}%"))

        total = self.db.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar_one()

        records = self.db.execute(
            query.order_by(SurveyRecord.created_at.desc(), SurveyRecord.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()

        return list(records), total

    def _commit(self, record: SurveyRecord, action: str) -> None:
        """Commit pending changes, rolling back on failure."""
        try:
            self.db.commit()
            self.db.refresh(record)
        except SQLAlchemyError as e:
            logger.error(f"Failed to {action}: {e}")
            self.db.rollback()
            raise

