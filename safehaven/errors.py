"""Error taxonomy for survey operations.

Every error carries the HTTP status the API layer answers with, so routes
can let them propagate to the handler registered in ``safehaven.main``.
"""

from typing import Any, Optional


class SafeHavenError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    error = "Internal server error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AnswerValidationError(SafeHavenError):
    """Raised when a required question is unanswered or an answer set is malformed."""

    status_code = 400
    error = "Validation error"


class NotFoundError(SafeHavenError):
    """Raised when a survey, question ordinal or response does not exist."""

    status_code = 404
    error = "Not found"


class OwnershipError(SafeHavenError):
    """Raised when a respondent acts on a response they do not own."""

    status_code = 403
    error = "Access denied"


class InvalidStateError(SafeHavenError):
    """Raised when an operation targets a survey or response in the wrong state."""

    status_code = 409
    error = "Invalid state"


class SurveyDefinitionError(SafeHavenError):
    """Raised when a survey definition cannot be loaded or fails band checks."""

    status_code = 422
    error = "Invalid survey definition"


class ReportRenderingError(SafeHavenError):
    """Raised when the report document could not be produced.

    Attributes:
        scored_response: Scored result computed before rendering failed,
            so callers can still show the score and tier
    """

    status_code = 502
    error = "Report generation failed"

    def __init__(self, message: str, scored_response: Optional[Any] = None):
        super().__init__(message)
        self.scored_response = scored_response
