"""Database models and session management.

This package contains all SQLAlchemy ORM models and database utilities.
"""

from safehaven.models.database import Base, engine, SessionLocal, get_db, init_db
from safehaven.models.survey import SurveyRecord
from safehaven.models.response import SurveyResponseRecord

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "init_db",
    "SurveyRecord",
    "SurveyResponseRecord",
]
