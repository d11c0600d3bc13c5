"""FastAPI application entry point for the SafeHaven survey service.

This module initializes the FastAPI application, sets up logging and the
database, seeds surveys, registers routers, and handles global exception
handling.
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from safehaven.config import get_settings
from safehaven.errors import ReportRenderingError, SafeHavenError
from safehaven.logging_config import setup_logging, get_logger
from safehaven.models.database import SessionLocal, init_db
from safehaven.routes import health, responses, surveys
from safehaven.services.survey_loader import get_survey_loader
from safehaven.services.survey_store import SurveyRepository

# Initialize logger (will be configured during startup)
logger = get_logger(__name__)

SERVICE_NAME = "SafeHaven Survey Service"
SERVICE_VERSION = "1.0.0"


def seed_surveys() -> int:
    """Insert YAML surveys that are not stored yet.

    Returns:
        Number of surveys created
    """
    db = SessionLocal()
    try:
        created = get_survey_loader().seed(SurveyRepository(db))
    finally:
        db.close()
    return len(created)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup:
    - Configure logging
    - Create missing tables
    - Seed surveys from YAML files (when enabled)

    Shutdown:
    - Log shutdown event

    Args:
        app: FastAPI application instance

    Yields:
        None
    """
    # Startup
    settings = get_settings()
    setup_logging()

    logger.info(
        f"{SERVICE_NAME} starting - "
        f"Environment: {settings.environment}, "
        f"Log Level: {settings.log_level}, "
        f"Database: {settings.database_url.split('@')[-1] if '@' in settings.database_url else 'configured'}, "
        f"Report upload: {'enabled' if settings.cloudinary_configured else 'disabled'}, "
        f"Version: {settings.git_commit_sha}"
    )

    init_db()

    if settings.seed_surveys:
        seeded = seed_surveys()
        logger.info(f"Survey seeding finished ({seeded} created)")

    yield

    # Shutdown
    logger.info(f"{SERVICE_NAME} shutting down")


# Initialize FastAPI application
app = FastAPI(
    title=SERVICE_NAME,
    description="Self-assessment surveys with risk scoring and PDF reports",
    version=SERVICE_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Id", "X-Total-Score", "X-Risk-Tier", "X-Report-Url"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Assign a request id and log method, path, status and duration."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = request_id
    started = time.perf_counter()

    response = await call_next(request)

    duration_ms = (time.perf_counter() - started) * 1000
    response.headers["X-Request-ID"] = request_id
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms:.1f} ms)",
        extra={"request_id": request_id}
    )
    return response


# Root endpoint
@app.get("/")
async def root() -> dict:
    """Root endpoint with basic API information.

    Returns:
        dict: API information and status
    """
    settings = get_settings()
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "commit": settings.git_commit_sha,
        "environment": settings.environment,
        "status": "operational"
    }


# Register routers
app.include_router(health.router, tags=["Health"])
app.include_router(surveys.router, tags=["Surveys"])
app.include_router(responses.router, tags=["Responses"])


@app.exception_handler(SafeHavenError)
async def safehaven_exception_handler(request: Request, exc: SafeHavenError) -> JSONResponse:
    """Translate service errors into JSON error responses.

    Report rendering failures also carry the computed score and tier so
    the caller can still show them.
    """
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        f"{exc.error} for {request.method} {request.url.path}: {exc.message}",
        extra={"request_id": getattr(request.state, "request_id", None)}
    )

    content = {"error": exc.error, "message": exc.message}
    if isinstance(exc, ReportRenderingError) and exc.scored_response is not None:
        content["scored_response"] = exc.scored_response.model_dump(mode="json")

    return JSONResponse(status_code=exc.status_code, content=content)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled exceptions.

    Logs all unhandled exceptions and returns a generic error response
    to prevent leaking sensitive information.

    Args:
        request: FastAPI request object
        exc: Exception that was raised

    Returns:
        JSONResponse: Generic error response
    """
    logger.error(
        f"Unhandled exception for {request.method} {request.url}: {exc}",
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later."
        }
    )
