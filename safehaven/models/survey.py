"""SurveyRecord model for stored survey definitions.

The full validated definition lives in a JSON column; title, category and
the active flag are duplicated into columns for catalogue queries.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Index,
    String,
    Boolean,
    DateTime,
    JSON,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from safehaven.models.database import Base
from safehaven.schemas.survey import SurveyDefinition, SurveyOut


class SurveyRecord(Base):
    """Model for administrator-defined surveys.

    Surveys are deactivated rather than deleted so that stored responses
    keep a valid reference.

    Attributes:
        id: Primary key
        title: Survey title
        category: Catalogue category
        version: Author-assigned version label
        active: Whether the survey accepts new responses
        created_by: Identifier of the creating administrator
        definition: Validated SurveyDefinition as JSON
        created_at: Creation timestamp
        updated_at: Last modification timestamp
        responses: Relationship to SurveyResponseRecord
    """

    __tablename__ = "surveys"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Survey title"
    )
    category: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="otro",
        comment="Catalogue category"
    )
    version: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="1.0",
        comment="Author-assigned version label"
    )
    active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether the survey accepts new responses"
    )
    created_by: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="Identifier of the creating administrator"
    )

    definition: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        comment="Validated survey definition"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        comment="Creation timestamp"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
        comment="Last update timestamp"
    )

    responses: Mapped[list["SurveyResponseRecord"]] = relationship(
        "SurveyResponseRecord",
        back_populates="survey",
    )

    __table_args__ = (
        Index("idx_survey_active_category", "active", "category"),
        Index("idx_survey_created_at", "created_at"),
    )

    @classmethod
    def from_definition(
        cls,
        definition: SurveyDefinition,
        created_by: Optional[str] = None
    ) -> "SurveyRecord":
        """Build a new record from a validated definition."""
        record = cls(created_by=created_by, active=True)
        record.apply_definition(definition)
        return record

    def apply_definition(self, definition: SurveyDefinition) -> None:
        """Replace the stored definition and its indexed columns."""
        self.title = definition.title
        self.category = definition.category.value
        self.version = definition.version
        self.definition = definition.model_dump(mode="json")

    def to_definition(self) -> SurveyDefinition:
        """Rebuild the validated definition from JSON."""
        return SurveyDefinition.model_validate(self.definition)

    def to_out(self) -> SurveyOut:
        """Convert to the API representation."""
        return SurveyOut(
            **self.definition,
            id=self.id,
            active=self.active,
            created_by=self.created_by,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<SurveyRecord(id={self.id}, "
            f"title={self.title!r}, "
            f"active={self.active})>"
        )
