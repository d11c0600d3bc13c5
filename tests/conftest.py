"""Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests.
"""

import os
from typing import Generator, Optional

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Set required environment variables for tests BEFORE importing safehaven modules
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ADMIN_TOKEN", "test_admin_token_for_testing_only")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("SEED_SURVEYS", "false")

from safehaven.models import Base
from safehaven.schemas.survey import SurveyDefinition
from safehaven.services.survey_store import SurveyRepository

ADMIN_TOKEN = os.environ["ADMIN_TOKEN"]


class FakeRenderer:
    """Report renderer double that records calls."""

    def __init__(self, fail_with: Optional[Exception] = None):
        self.fail_with = fail_with
        self.rendered = []

    def render_report(self, scored, survey) -> bytes:
        if self.fail_with is not None:
            raise self.fail_with
        self.rendered.append((scored, survey))
        return b"%PDF-1.4 fake report"

    def render_html(self, scored, survey) -> str:
        return f"<html>{scored.risk_tier}</html>"


class FakeStorage:
    """Artifact storage double returning a fixed URL (or None)."""

    def __init__(self, url: Optional[str] = None):
        self.url = url
        self.uploads = []

    def upload_report(self, pdf: bytes, name: str) -> Optional[str]:
        self.uploads.append((pdf, name))
        return self.url


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine with SQLite in-memory database.

    Yields:
        Engine: SQLAlchemy engine for testing

    Note:
        StaticPool keeps one connection so the in-memory database is shared
        with the TestClient's worker thread.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    # Enable foreign key support for SQLite
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session.

    Yields:
        Session: SQLAlchemy session for testing
    """
    TestSessionLocal = sessionmaker(
        bind=db_engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )

    session = TestSessionLocal()

    yield session

    session.rollback()
    session.close()


def make_survey(**overrides) -> SurveyDefinition:
    """Build a three-question yes/no survey, overriding any field."""
    data = {
        "title": "Encuesta de prueba",
        "description": "Tres preguntas de sí o no",
        "risk_scheme": "relative",
        "questions": [
            {"order": 1, "prompt": "¿Duermes mal?", "type": "escala", "options": ["No", "Sí"]},
            {"order": 2, "prompt": "¿Te sientes solo?", "type": "escala", "options": ["No", "Sí"]},
            {"order": 3, "prompt": "¿Tienes miedo?", "type": "escala", "options": ["No", "Sí"]},
        ],
    }
    data.update(overrides)
    return SurveyDefinition.model_validate(data)


@pytest.fixture
def yes_no_survey() -> SurveyDefinition:
    """Three required scaled questions with options No (0) and Sí (1)."""
    return make_survey()


@pytest.fixture
def stored_survey(db_session, yes_no_survey):
    """The yes/no survey stored in the database."""
    return SurveyRepository(db_session).create_survey(yes_no_survey, created_by="tester")


@pytest.fixture
def fake_renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def respondent_id() -> str:
    return "user-0001-abcdef"
