"""Survey loader service with caching and validation.

This module loads survey definitions from YAML files, validates them against
Pydantic schemas, and caches the results. At startup the loaded surveys
seed the database.
"""

from pathlib import Path
from functools import lru_cache
from typing import Optional
import yaml
from pydantic import ValidationError

from safehaven.config import get_settings
from safehaven.errors import NotFoundError, SurveyDefinitionError
from safehaven.models.survey import SurveyRecord
from safehaven.schemas.survey import SurveyDefinition
from safehaven.services.survey_store import SurveyRepository
from safehaven.logging_config import get_logger

logger = get_logger(__name__)

SEED_CREATOR = "seed"


class SurveyLoader:
    """Service for loading and caching survey definitions from YAML.

    Each file in the surveys directory holds one survey definition, keyed
    by its filename without the .yaml extension.
    """

    def __init__(self, surveys_dir: Optional[str] = None):
        """Initialize survey loader.

        Args:
            surveys_dir: Path to surveys directory (defaults to settings)
        """
        if surveys_dir is None:
            surveys_dir = get_settings().surveys_dir

        self.surveys_dir = Path(surveys_dir)

        if not self.surveys_dir.exists():
            logger.warning(f"Surveys directory not found: {self.surveys_dir}")

    @lru_cache(maxsize=128)
    def load_survey(self, name: str) -> SurveyDefinition:
        """Load and validate a survey from YAML file.

        Results are cached. Clear cache with clear_cache() if needed.

        Args:
            name: Survey file name without .yaml

        Returns:
            Validated SurveyDefinition

        Raises:
            NotFoundError: If survey file doesn't exist
            SurveyDefinitionError: If survey fails parsing or validation

        Example:
            >>> loader = SurveyLoader()
            >>> survey = loader.load_survey("abuso_pareja")
            >>> print(survey.risk_scheme)
            RiskScheme.ABSOLUTE
        """
        yaml_path = self.surveys_dir / f"{name}.yaml"

        if not yaml_path.exists():
            logger.error(f"Survey file not found: {yaml_path}")
            raise NotFoundError(f"Survey '{name}' not found at {yaml_path}")

        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                raw_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"YAML parsing error for {name}: {e}")
            raise SurveyDefinitionError(f"Invalid YAML in survey '{name}': {e}")

        if not isinstance(raw_data, dict):
            raise SurveyDefinitionError(f"Survey '{name}' must be a mapping")

        try:
            survey = SurveyDefinition.model_validate(raw_data)
        except ValidationError as e:
            logger.error(f"Validation error for survey {name}: {e}")
            raise SurveyDefinitionError(f"Validation failed for survey '{name}': {e}")

        logger.info(f"Loaded survey: {name} (version {survey.version})")
        return survey

    def list_surveys(self) -> list[str]:
        """List all available survey names.

        Returns:
            Sorted file names without the .yaml extension
        """
        if not self.surveys_dir.exists():
            return []

        names = sorted(f.stem for f in self.surveys_dir.glob("*.yaml"))
        logger.debug(f"Found {len(names)} survey files: {names}")
        return names

    def clear_cache(self):
        """Clear the survey cache."""
        self.load_survey.cache_clear()
        logger.info("Survey cache cleared")

    def seed(self, repository: SurveyRepository) -> list[SurveyRecord]:
        """Insert every file survey whose title is not stored yet.

        Args:
            repository: Survey store to insert into

        Returns:
            Newly created records
        """
        created = []
        for name in self.list_surveys():
            definition = self.load_survey(name)
            if repository.find_by_title(definition.title) is not None:
                logger.debug(f"Survey '{definition.title}' already present, skipping seed")
                continue
            created.append(repository.create_survey(definition, created_by=SEED_CREATOR))

        if created:
            logger.info(f"Seeded {len(created)} surveys from {self.surveys_dir}")
        return created


# Global singleton instance
_loader_instance: Optional[SurveyLoader] = None


def get_survey_loader() -> SurveyLoader:
    """Get global SurveyLoader instance.

    Creates singleton instance on first call.

    Returns:
        Global SurveyLoader instance
    """
    global _loader_instance
    if _loader_instance is None:
        _loader_instance = SurveyLoader()
    return _loader_instance
