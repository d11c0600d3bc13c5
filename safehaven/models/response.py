"""SurveyResponseRecord model for respondent attempts at a survey.

Each record freezes a snapshot of the survey definition when it is created,
so later edits to the survey do not alter historical results.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Index,
    String,
    Text,
    Integer,
    DateTime,
    ForeignKey,
    JSON,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from safehaven.models.database import Base
from safehaven.schemas.response import ResponseOut, ResponseState, ScoredResponse
from safehaven.schemas.survey import SurveyDefinition


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps read back from SQLite."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SurveyResponseRecord(Base):
    """Model for one respondent's attempt at a survey.

    Attributes:
        id: Primary key
        respondent_id: Identity of the respondent (NULL never persisted for
            anonymous completions, which are not stored)
        survey_id: Foreign key to surveys table
        survey_snapshot: Survey definition frozen at creation time
        answers: Submitted or enriched answers as JSON
        state: en_progreso, completada or abandonada
        total_score: Sum of enriched answer scores
        risk_tier: Tier derived from total_score
        tier_description: Description of the tier
        tier_color: Display color of the tier
        recommendations: Guidance derived from total_score
        started_at: When the response was created
        updated_at: Last update timestamp
        completed_at: When scoring completed
        completion_seconds: Seconds between start and completion
        report_url: URL of the uploaded report, if any
    """

    __tablename__ = "survey_responses"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    respondent_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        index=True,
        comment="Respondent identity"
    )
    survey_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("surveys.id"),
        nullable=False,
        comment="Foreign key to surveys table"
    )

    survey_snapshot: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        comment="Survey definition frozen at creation time"
    )
    answers: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Submitted or enriched answers"
    )
    state: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ResponseState.IN_PROGRESS.value,
        comment="en_progreso, completada or abandonada"
    )

    # Scoring Outcome
    total_score: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Sum of enriched answer scores"
    )
    risk_tier: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Tier derived from total_score"
    )
    tier_description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Description of the resolved tier"
    )
    tier_color: Mapped[Optional[str]] = mapped_column(
        String(7),
        nullable=True,
        comment="Display color of the resolved tier"
    )
    recommendations: Mapped[Optional[list]] = mapped_column(
        JSON,
        nullable=True,
        comment="Guidance derived from total_score"
    )

    # Timestamps
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        comment="When the response was created"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
        comment="Last update timestamp"
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When scoring completed"
    )
    completion_seconds: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Seconds between start and completion"
    )

    report_url: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="URL of the uploaded report"
    )

    survey: Mapped["SurveyRecord"] = relationship(
        "SurveyRecord",
        back_populates="responses",
    )

    __table_args__ = (
        Index("idx_respondent_survey", "respondent_id", "survey_id"),
        Index("idx_survey_state", "survey_id", "state"),
    )

    @property
    def is_completed(self) -> bool:
        """Check if the response reached the completed state."""
        return self.state == ResponseState.COMPLETED.value

    @property
    def is_in_progress(self) -> bool:
        """Check if the response still accepts answers."""
        return self.state == ResponseState.IN_PROGRESS.value

    def snapshot_definition(self) -> SurveyDefinition:
        """Rebuild the frozen survey definition."""
        return SurveyDefinition.model_validate(self.survey_snapshot)

    def replace_answers(self, answers: list[dict]) -> None:
        """Replace the stored answer list.

        Note:
            Assigns a new list so SQLAlchemy detects the JSON change.
        """
        self.answers = list(answers)

    def mark_completed(self, scored: ScoredResponse) -> None:
        """Record a scoring outcome and move to the completed state.

        Args:
            scored: Scored result; all outcome fields are copied together
        """
        self.answers = [answer.model_dump(mode="json") for answer in scored.answers]
        self.total_score = scored.total_score
        self.risk_tier = scored.risk_tier
        self.tier_description = scored.tier_description
        self.tier_color = scored.tier_color
        self.recommendations = list(scored.recommendations)
        self.completed_at = scored.completed_at
        self.state = ResponseState.COMPLETED.value

        started = as_utc(self.started_at)
        if started is not None:
            elapsed = (as_utc(scored.completed_at) - started).total_seconds()
            self.completion_seconds = max(0, int(elapsed))

    def mark_abandoned(self) -> None:
        """Move an in-progress response to the abandoned state."""
        self.state = ResponseState.ABANDONED.value

    def to_out(self) -> ResponseOut:
        """Convert to the API representation."""
        return ResponseOut(
            id=self.id,
            survey_id=self.survey_id,
            survey_title=self.survey_snapshot.get("title", ""),
            state=ResponseState(self.state),
            answers=list(self.answers or []),
            total_score=self.total_score,
            risk_tier=self.risk_tier,
            recommendations=self.recommendations,
            started_at=as_utc(self.started_at),
            updated_at=as_utc(self.updated_at),
            completed_at=as_utc(self.completed_at),
            completion_seconds=self.completion_seconds,
            report_url=self.report_url,
        )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<SurveyResponseRecord(id={self.id}, "
            f"survey_id={self.survey_id}, "
            f"state={self.state}, "
            f"total_score={self.total_score})>"
        )
