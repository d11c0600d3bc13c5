"""Report artifact storage on Cloudinary.

Uploads are best effort: when credentials are missing or the upload fails,
the caller gets None and the completion still succeeds.
"""

import io
from datetime import datetime, timezone
from typing import Optional

import cloudinary
import cloudinary.uploader

from safehaven.config import get_settings
from safehaven.logging_config import get_logger

logger = get_logger(__name__)


class ArtifactStorage:
    """Service for uploading generated reports to Cloudinary."""

    def __init__(
        self,
        cloud_name: Optional[str] = None,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        folder: Optional[str] = None
    ):
        """Initialize storage.

        Args:
            cloud_name: Cloudinary cloud name (defaults to settings)
            api_key: Cloudinary API key (defaults to settings)
            api_secret: Cloudinary API secret (defaults to settings)
            folder: Destination folder (defaults to settings)
        """
        settings = get_settings()
        self.cloud_name = cloud_name or settings.cloudinary_cloud_name
        self.api_key = api_key or settings.cloudinary_api_key
        self.api_secret = api_secret or settings.cloudinary_api_secret
        self.folder = folder or settings.cloudinary_folder

        if self.is_configured:
            cloudinary.config(
                cloud_name=self.cloud_name,
                api_key=self.api_key,
                api_secret=self.api_secret,
                secure=True,
            )
            logger.info(f"Cloudinary storage configured (cloud: {self.cloud_name})")
        else:
            logger.warning("Cloudinary credentials not configured; reports will not be uploaded")

    @property
    def is_configured(self) -> bool:
        """Check whether all credentials are present."""
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def upload_report(self, pdf: bytes, name: str) -> Optional[str]:
        """Upload a PDF report.

        The public id is the name suffixed with the upload date, so repeated
        reports for the same response on different days do not collide.

        Args:
            pdf: PDF document bytes
            name: Base file name, e.g. ``encuesta_42``

        Returns:
            Secure URL of the uploaded file, or None if storage is not
            configured or the upload failed
        """
        if not self.is_configured:
            return None

        date_label = datetime.now(timezone.utc).strftime("%d-%m-%Y")

        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(pdf),
                resource_type="auto",
                folder=self.folder,
                public_id=f"{name}_{date_label}",
                format="pdf",
            )
        except Exception as e:
            logger.error(f"Failed to upload report {name}: {e}", exc_info=True)
            return None

        url = result.get("secure_url")
        logger.info(f"Uploaded report {name} to {url}")
        return url


# Global singleton instance
_storage_instance: Optional[ArtifactStorage] = None


def get_artifact_storage() -> ArtifactStorage:
    """Get global ArtifactStorage instance.

    Returns:
        Global ArtifactStorage instance
    """
    global _storage_instance
    if _storage_instance is None:
        _storage_instance = ArtifactStorage()
    return _storage_instance
