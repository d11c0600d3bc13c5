"""Application configuration management using Pydantic Settings.

This module loads and validates environment variables using Pydantic Settings.
All configuration is loaded from environment variables or a .env file.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Attributes:
        database_url: SQLAlchemy connection string
        database_pool_size: Number of connections to maintain in pool
        database_max_overflow: Maximum overflow connections beyond pool_size
        environment: Application environment (development, staging, production)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        surveys_dir: Path to directory containing survey YAML seed files
        seed_surveys: Whether to insert YAML surveys at startup
        git_commit_sha: Git commit SHA reported by the root endpoint
        admin_token: Shared token required on administrator endpoints
        allowed_origins: Comma-separated list of allowed CORS origins
        cloudinary_cloud_name: Cloudinary cloud name (reports are not uploaded if unset)
        cloudinary_api_key: Cloudinary API key
        cloudinary_api_secret: Cloudinary API secret
        cloudinary_folder: Cloudinary folder for survey reports
        strict_risk_bands: Reject surveys whose risk bands overlap or leave gaps
    """

    # Database Configuration
    database_url: str = Field(
        description="SQLAlchemy connection string"
    )
    database_pool_size: int = Field(
        default=5,
        description="Number of database connections in pool"
    )
    database_max_overflow: int = Field(
        default=10,
        description="Maximum overflow connections beyond pool size"
    )

    # Application Configuration
    environment: str = Field(
        default="development",
        description="Application environment"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    surveys_dir: str = Field(
        default="./surveys",
        description="Path to survey seed directory"
    )
    seed_surveys: bool = Field(
        default=True,
        description="Insert surveys from surveys_dir at startup"
    )
    git_commit_sha: str = Field(
        default="local",
        description="Git commit SHA for versioning"
    )

    # Security Configuration
    admin_token: str = Field(
        description="Shared token for administrator endpoints"
    )
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:8000",
        description="Comma-separated list of allowed CORS origins"
    )

    # Report Storage Configuration
    cloudinary_cloud_name: Optional[str] = Field(
        default=None,
        description="Cloudinary cloud name"
    )
    cloudinary_api_key: Optional[str] = Field(
        default=None,
        description="Cloudinary API key"
    )
    cloudinary_api_secret: Optional[str] = Field(
        default=None,
        description="Cloudinary API secret"
    )
    cloudinary_folder: str = Field(
        default="safehaven/encuestas",
        description="Cloudinary folder for generated reports"
    )

    # Survey Configuration
    strict_risk_bands: bool = Field(
        default=False,
        description="Reject risk bands that overlap or leave gaps"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is one of the allowed values."""
        allowed = {"development", "staging", "production"}
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of {allowed}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"Log level must be one of {allowed}")
        return v_upper

    @field_validator("admin_token")
    @classmethod
    def validate_admin_token(cls, v: str) -> str:
        """Reject trivially short admin tokens."""
        if len(v) < 16:
            raise ValueError("Admin token must be at least 16 characters")
        return v

    def get_allowed_origins_list(self) -> List[str]:
        """Parse allowed_origins string into a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def cloudinary_configured(self) -> bool:
        """Check if all Cloudinary credentials are present."""
        return all([
            self.cloudinary_cloud_name,
            self.cloudinary_api_key,
            self.cloudinary_api_secret,
        ])

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Application settings singleton

    Note:
        Uses lru_cache to ensure settings are only loaded once
        and shared across the application.
    """
    return Settings()
